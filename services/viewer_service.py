"""
Viewer Service
==============
Invitation, acceptance and revocation of read-only viewer access.

Grant lifecycle (one RecordViewer row per record/viewer pair)
-------------------------------------------------------------

    NoRelation ──invite──> Invited ──accept──> Active ──revoke──> Revoked
                              │                                      │
                              └───────────revoke──────────> Revoked  │
                                                             ▲       │
                                         Invited <──invite───┴───────┘

  - invite on an Invited or Active pair fails with ``AlreadyViewer``.
  - invite on a Revoked pair re-opens it as Invited (allowed, not accepted).
  - revoke on a missing or Revoked pair is a no-op.
  - accept is explicit: the first-login flow calls ``accept_pending`` once
    the viewer has set a permanent password; existing users accept each
    record with ``accept``, which is refused while the password is temporary.

Uniqueness of the pair is enforced by the table's composite primary key.
A concurrent duplicate invite surfaces as ``IntegrityError`` at commit and is
reported as ``AlreadyViewer``.  If another request provisions the same email
first, the invite falls back to the existing-user path.

Emails are sent only after the state change has been committed.
"""
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from models.records import Record, RecordViewer
from models.users import User, ROLE_VIEWER
from services.credential_service import CredentialService
from services.email_service import EmailService, KIND_INVITE, KIND_REVOKE
from utils.db_helpers import get_grant, get_user_or_404
from utils.errors import AccessDenied, AlreadyExists, AlreadyViewer, RecordNotFound, ValidationError
from utils.permissions import require_admin


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_email(email):
    if not isinstance(email, str):
        return ''
    return email.strip().lower()


class ViewerService:

    @staticmethod
    def resolve_record(owner_id, record_id=None, record_name=None):
        """Find the owner's record by id, or by name as a legacy fallback.

        Raises:
            ValidationError: neither reference given, or the name matches
                more than one of the owner's records.
            RecordNotFound: the owner has no matching record.
        """
        if record_id is not None:
            record = Record.query.filter_by(id=record_id, owner_user_id=owner_id).first()
        elif record_name:
            current_app.logger.warning(
                f'Record lookup by name "{record_name}" for admin {owner_id}; callers should pass record_id'
            )
            matches = Record.query.filter_by(name=record_name, owner_user_id=owner_id).limit(2).all()
            if len(matches) > 1:
                raise ValidationError.for_field(
                    'record_name', f'More than one record is named "{record_name}". Pass record_id instead.'
                )
            record = matches[0] if matches else None
        else:
            raise ValidationError.for_field('record_id', 'record_id is required.')

        if record is None:
            raise RecordNotFound('Record not found for this admin.')
        return record

    # ------------------------------------------------------------------
    # Invite
    # ------------------------------------------------------------------

    @staticmethod
    def invite(identity, email, record_id=None, record_name=None):
        """Invite *email* to view one of the caller's records.

        Returns:
            (user, message): the existing or newly provisioned user and a
            message naming the record.
        """
        require_admin(identity, 'invite viewers')
        email = normalize_email(email)
        if not email:
            raise ValidationError.for_field('email', 'Email is required.')

        inviter = get_user_or_404(identity.id)
        record = ViewerService.resolve_record(inviter.id, record_id, record_name)

        if email == inviter.email:
            raise ValidationError.for_field('email', 'You cannot invite yourself.')

        user = User.query.filter_by(email=email).first()
        if user is not None:
            return ViewerService._invite_existing(inviter, record, user)
        return ViewerService._invite_new(inviter, record, email)

    @staticmethod
    def _invite_existing(inviter, record, user):
        grant = get_grant(record.id, user.id)
        if grant is not None and grant.allow_viewer_access:
            raise AlreadyViewer(f'User already viewer in this record: {record.name}')

        if grant is None:
            db.session.add(RecordViewer(
                record_id=record.id,
                viewer_user_id=user.id,
                allow_viewer_access=True,
                is_accepted=False,
            ))
        else:
            # Revoked grant re-opened by a fresh invitation
            grant.allow_viewer_access = True
            grant.is_accepted = False

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise AlreadyViewer(f'User already viewer in this record: {record.name}')

        current_app.logger.info(f'Admin {inviter.id} invited existing user {user.id} to record {record.id}')
        EmailService.send(KIND_INVITE, user.email, {
            'name': user.full_name,
            'inviter_name': inviter.full_name,
            'record_name': record.name,
            'temp_password': None,
        })
        return user, f'User {user.email} added as viewer for {record.name}. Notification sent.'

    @staticmethod
    def _invite_new(inviter, record, email):
        temp_password = CredentialService.generate_temporary_password()
        user = User(
            email=email,
            full_name=email.split('@')[0],
            role=ROLE_VIEWER,
            admin_id=inviter.id,
            must_change_password=True,
            password_reset_token_expiry=_utcnow() + current_app.config['TEMP_PASSWORD_TTL'],
        )
        user.set_password(temp_password)
        db.session.add(user)
        try:
            db.session.flush()
            db.session.add(RecordViewer(
                record_id=record.id,
                viewer_user_id=user.id,
                allow_viewer_access=True,
                is_accepted=False,
            ))
            db.session.commit()
        except IntegrityError:
            # Another request provisioned this email first; invite that account instead
            db.session.rollback()
            existing = User.query.filter_by(email=email).first()
            if existing is None:
                raise AlreadyExists('User with this email already exists.')
            return ViewerService._invite_existing(inviter, record, existing)

        current_app.logger.info(f'Admin {inviter.id} provisioned viewer {user.id} for record {record.id}')
        EmailService.send(KIND_INVITE, user.email, {
            'name': user.full_name,
            'inviter_name': inviter.full_name,
            'record_name': record.name,
            'temp_password': temp_password,
        })
        return user, f'New user {email} invited as viewer for {record.name}. Temporary password sent by email.'

    # ------------------------------------------------------------------
    # Accept
    # ------------------------------------------------------------------

    @staticmethod
    def accept(viewer_id, record_id):
        """Mark the viewer's invitation to *record_id* as accepted."""
        if get_user_or_404(viewer_id).must_change_password:
            raise AccessDenied('Change your temporary password before accepting invitations.')
        grant = get_grant(record_id, viewer_id)
        if grant is None:
            raise RecordNotFound('No invitation found for this record.')
        if not grant.allow_viewer_access:
            raise AccessDenied('Access to this record has been revoked.')
        if not grant.is_accepted:
            grant.is_accepted = True
            db.session.commit()
            current_app.logger.info(f'Viewer {viewer_id} accepted record {record_id}')
        return grant

    @staticmethod
    def accept_pending(viewer_id):
        """Accept every open invitation held by *viewer_id*; returns the accepted grants."""
        grants = ViewerService.pending_invitations(viewer_id)
        for grant in grants:
            grant.is_accepted = True
        if grants:
            db.session.commit()
            current_app.logger.info(
                f'Viewer {viewer_id} accepted records {[g.record_id for g in grants]}'
            )
        return grants

    @staticmethod
    def pending_invitations(viewer_id):
        return (
            RecordViewer.query
            .filter_by(viewer_user_id=viewer_id, allow_viewer_access=True, is_accepted=False)
            .order_by(RecordViewer.record_id)
            .all()
        )

    # ------------------------------------------------------------------
    # Revoke
    # ------------------------------------------------------------------

    @staticmethod
    def revoke(identity, viewer_id, record_id=None, record_name=None):
        """Soft-revoke a viewer's grant on one of the caller's records.

        Returns True if a grant was revoked, False if there was nothing to do.
        """
        require_admin(identity, 'revoke viewers')
        if not viewer_id:
            raise ValidationError.for_field('viewer_id', 'viewer_id is required.')
        record = ViewerService.resolve_record(identity.id, record_id, record_name)

        grant = get_grant(record.id, viewer_id)
        if grant is None or not grant.allow_viewer_access:
            current_app.logger.debug(f'Revoke of viewer {viewer_id} on record {record.id}: nothing to revoke')
            return False

        grant.allow_viewer_access = False
        db.session.commit()
        current_app.logger.info(f'Admin {identity.id} revoked viewer {viewer_id} on record {record.id}')

        viewer = grant.viewer
        EmailService.send(KIND_REVOKE, viewer.email, {
            'name': viewer.full_name,
            'record_name': record.name,
            'admin_name': record.owner.full_name,
        })
        return True

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    @staticmethod
    def list_invited_viewers(admin_id):
        """Viewer-role users holding a grant on *admin_id*'s records, with per-record state."""
        rows = (
            db.session.query(RecordViewer, Record, User)
            .join(Record, RecordViewer.record_id == Record.id)
            .join(User, RecordViewer.viewer_user_id == User.id)
            .filter(Record.owner_user_id == admin_id)
            .filter(User.role == ROLE_VIEWER)
            .order_by(User.email, Record.id)
            .all()
        )

        viewers = {}
        for grant, record, user in rows:
            entry = viewers.setdefault(user.id, {
                'id': user.id,
                'email': user.email,
                'full_name': user.full_name,
                'role': user.role,
                'records': [],
            })
            entry['records'].append({
                'id': record.id,
                'name': record.name,
                'type': record.type,
                'allow_viewer_access': grant.allow_viewer_access,
                'is_accepted': grant.is_accepted,
                'state': grant.state,
            })
        return list(viewers.values())
