"""
Access control for records and their entries.

Permissions form a two-level tree::

    Admin ──owns──> Record ──contains──> Entry

    operation              who may perform it
    ─────────────────────  ──────────────────────────────────────────────
    create record          any Admin (becomes the owner)
    list / read record     owner, or viewer with an active grant
    delete record          owner only
    create / delete entry  Admin role AND owner of the parent record
    read entries           same as reading the parent record

A record's existence is not hidden from authenticated callers: a missing
record raises ``RecordNotFound`` and an existing one the caller may not use
raises ``AccessDenied``.

Every helper takes the caller's identity explicitly (anything exposing
``id``, ``role`` and ``is_admin``, usually ``flask_login.current_user``).
"""
from utils.db_helpers import get_record_or_404, has_active_grant
from utils.errors import AccessDenied, IdentityMismatch, Unauthenticated, ValidationError


def _require_identity(identity):
    if identity is None or not getattr(identity, 'is_authenticated', False):
        raise Unauthenticated()


def is_record_owner(identity, record):
    return identity is not None and record.owner_user_id == identity.id


def can_read_record(identity, record):
    """True if *identity* owns *record* or holds an active grant on it."""
    if identity is None or not getattr(identity, 'is_authenticated', False):
        return False
    return is_record_owner(identity, record) or has_active_grant(identity.id, record.id)


def require_admin(identity, action='perform this action'):
    """Raise ``AccessDenied`` unless *identity* has the Admin role."""
    _require_identity(identity)
    if not identity.is_admin:
        raise AccessDenied(f'Only admins can {action}.')


def require_record_reader(identity, record_id):
    """Return the record if *identity* may read it."""
    _require_identity(identity)
    record = get_record_or_404(record_id)
    if not can_read_record(identity, record):
        raise AccessDenied('You do not have access to this record.')
    return record


def require_record_owner(identity, record_id, action='modify this record'):
    """Return the record if *identity* owns it."""
    _require_identity(identity)
    record = get_record_or_404(record_id)
    if not is_record_owner(identity, record):
        raise AccessDenied(f'Only the record owner can {action}.')
    return record


def check_claimed_admin(identity, claimed_admin_id):
    """Reject payloads that name an admin other than the authenticated caller."""
    if claimed_admin_id in (None, ''):
        return
    if str(claimed_admin_id) != str(identity.id):
        raise IdentityMismatch()


def require_entry_writer(identity, record_id, expected_type=None, claimed_admin_id=None):
    """Authorize an entry create/delete on *record_id* and return the record.

    Checks, in order: Admin role, identity claimed in the payload, ownership
    of the parent record, and (when given) that the record holds entries of
    *expected_type*.
    """
    require_admin(identity, 'add or remove entries')
    check_claimed_admin(identity, claimed_admin_id)
    record = require_record_owner(identity, record_id, 'add or remove entries')
    if expected_type is not None and record.type != expected_type:
        raise ValidationError.for_field(
            'record_id', f'Record "{record.name}" holds {record.type} entries, not {expected_type}.'
        )
    return record
