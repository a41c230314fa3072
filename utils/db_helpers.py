"""
Database query helpers for record-scoped access.

Records are the unit of sharing: a user may read a record they own, or one
they hold an *active* grant on (``allow_viewer_access`` and ``is_accepted``
both true).  Entry queries always go through their parent record, so these
helpers are the single place where read visibility is expressed in SQL.

Usage
-----
In any service function::

    from utils.db_helpers import readable_records_query, get_record_or_404

    # Every record the caller may read, own first
    records = readable_records_query(identity.id).order_by(Record.id).all()

    # Fetch one record or raise RecordNotFound
    record = get_record_or_404(record_id)
"""
from sqlalchemy import and_, exists, or_

from extensions import db
from models.records import Record, RecordViewer
from models.users import User
from utils.errors import RecordNotFound, UserNotFound


# ---------------------------------------------------------------------------
# Grant predicates
# ---------------------------------------------------------------------------

def active_grant_clause(user_id):
    """SQL EXISTS clause: *user_id* holds an active grant on the outer Record."""
    return exists().where(and_(
        RecordViewer.record_id == Record.id,
        RecordViewer.viewer_user_id == user_id,
        RecordViewer.allow_viewer_access.is_(True),
        RecordViewer.is_accepted.is_(True),
    ))


def has_active_grant(user_id, record_id):
    """True if *user_id* is an accepted, allowed viewer of *record_id*."""
    if user_id is None:
        return False
    return db.session.query(
        RecordViewer.query.filter_by(
            record_id=record_id,
            viewer_user_id=user_id,
            allow_viewer_access=True,
            is_accepted=True,
        ).exists()
    ).scalar()


# ---------------------------------------------------------------------------
# Record queries
# ---------------------------------------------------------------------------

def readable_records_query(user_id):
    """Records owned by *user_id* UNION records shared with it.

    Returns a query that yields zero rows when *user_id* is ``None`` rather
    than leaking data.
    """
    if user_id is None:
        return Record.query.filter(Record.id == -1)
    return Record.query.filter(or_(
        Record.owner_user_id == user_id,
        active_grant_clause(user_id),
    ))


def shared_records_query(user_id):
    """Records shared with *user_id* by other owners (own records excluded)."""
    if user_id is None:
        return Record.query.filter(Record.id == -1)
    return Record.query.filter(
        Record.owner_user_id != user_id,
        active_grant_clause(user_id),
    )


def owned_records_query(owner_id):
    return Record.query.filter_by(owner_user_id=owner_id)


def get_record_or_404(record_id):
    """Fetch a record by id or raise ``RecordNotFound``."""
    record = db.session.get(Record, record_id) if record_id is not None else None
    if record is None:
        raise RecordNotFound()
    return record


def get_user_or_404(user_id):
    user = db.session.get(User, user_id) if user_id else None
    if user is None:
        raise UserNotFound()
    return user


def get_grant(record_id, viewer_user_id):
    return db.session.get(RecordViewer, (record_id, viewer_user_id))
