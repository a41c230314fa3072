"""
Tests for record visibility and ownership.

These are the most security-critical tests in the suite.  They verify that
readable_records_query() and the permission helpers never leak one admin's
records to another, that revoked grants stop access immediately, and that
unauthenticated callers get nothing.
"""
import pytest

from conftest import grant, identity, make_record
from extensions import db
from models.entries import RentEntry
from models.records import Record, RecordViewer
from services.record_service import RecordService
from utils.db_helpers import readable_records_query, shared_records_query
from utils.errors import AccessDenied, RecordNotFound, Unauthenticated, ValidationError
from utils.permissions import require_entry_writer, require_record_owner, require_record_reader


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------

class TestReadableRecords:
    def test_owner_sees_own_records_only(self, app, admin, other_admin):
        mine = make_record(admin, 'Mine', 'Milk')
        make_record(other_admin, 'Theirs', 'Milk')

        names = {r.name for r in readable_records_query(admin.id)}

        assert names == {mine.name}

    def test_active_grant_makes_record_visible(self, app, admin, viewer, milk_record):
        grant(milk_record, viewer)

        assert [r.id for r in readable_records_query(viewer.id)] == [milk_record.id]
        assert [r.id for r in shared_records_query(viewer.id)] == [milk_record.id]

    def test_pending_grant_is_not_visible(self, app, admin, viewer, milk_record):
        grant(milk_record, viewer, accepted=False)

        assert readable_records_query(viewer.id).all() == []

    def test_revoked_grant_is_not_visible(self, app, admin, viewer, milk_record):
        grant(milk_record, viewer, allow=False)

        assert readable_records_query(viewer.id).all() == []

    def test_no_identity_returns_zero_rows(self, app, milk_record):
        assert readable_records_query(None).all() == []

    def test_grant_on_one_record_does_not_leak_others(self, app, admin, viewer, milk_record, rent_record):
        grant(milk_record, viewer)

        visible = {r.id for r in RecordService.list_for(identity(viewer))}

        assert visible == {milk_record.id}


# ---------------------------------------------------------------------------
# Permission helpers
# ---------------------------------------------------------------------------

class TestPermissionHelpers:
    def test_reader_check_for_stranger(self, app, other_admin, milk_record):
        with pytest.raises(AccessDenied):
            require_record_reader(identity(other_admin), milk_record.id)

    def test_reader_check_for_viewer(self, app, viewer, milk_record):
        grant(milk_record, viewer)

        assert require_record_reader(identity(viewer), milk_record.id) is milk_record

    def test_missing_record_is_not_found(self, app, admin):
        with pytest.raises(RecordNotFound):
            require_record_reader(identity(admin), 9999)

    def test_unauthenticated_caller(self, app, milk_record):
        with pytest.raises(Unauthenticated):
            require_record_reader(None, milk_record.id)

    def test_viewer_is_never_owner(self, app, viewer, milk_record):
        grant(milk_record, viewer)

        with pytest.raises(AccessDenied):
            require_record_owner(identity(viewer), milk_record.id)

    def test_entry_writer_rejects_viewer_role(self, app, viewer, milk_record):
        grant(milk_record, viewer)

        with pytest.raises(AccessDenied):
            require_entry_writer(identity(viewer), milk_record.id, 'Milk')

    def test_entry_writer_rejects_other_admin(self, app, other_admin, milk_record):
        with pytest.raises(AccessDenied):
            require_entry_writer(identity(other_admin), milk_record.id, 'Milk')

    def test_entry_writer_checks_record_type(self, app, admin, milk_record):
        with pytest.raises(ValidationError):
            require_entry_writer(identity(admin), milk_record.id, 'Rent')


# ---------------------------------------------------------------------------
# Record lifecycle
# ---------------------------------------------------------------------------

class TestRecordService:
    def test_create_sets_owner(self, app, admin):
        record = RecordService.create(identity(admin), '  Groceries Milk ', 'Milk')

        assert record.owner_user_id == admin.id
        assert record.name == 'Groceries Milk'

    def test_viewer_cannot_create(self, app, viewer):
        with pytest.raises(AccessDenied):
            RecordService.create(identity(viewer), 'Sneaky', 'Milk')

    @pytest.mark.parametrize('name,record_type', [('', 'Milk'), ('Water', 'Water')])
    def test_create_validates_input(self, app, admin, name, record_type):
        with pytest.raises(ValidationError):
            RecordService.create(identity(admin), name, record_type)

    def test_detail_shows_viewers_to_owner_only(self, app, admin, viewer, milk_record):
        grant(milk_record, viewer)

        owner_view = RecordService.get_detail(identity(admin), milk_record.id)
        viewer_view = RecordService.get_detail(identity(viewer), milk_record.id)

        assert [v['email'] for v in owner_view['viewers']] == [viewer.email]
        assert 'viewers' not in viewer_view
        assert viewer_view['created_by'] == admin.full_name

    def test_delete_cascades_entries_and_grants(self, app, admin, viewer, rent_record):
        grant(rent_record, viewer)
        db.session.add(RentEntry(record_id=rent_record.id, month='2024-05', amount=1000, admin_id=admin.id))
        db.session.commit()
        record_id = rent_record.id

        RecordService.delete(identity(admin), record_id)

        assert db.session.get(Record, record_id) is None
        assert RentEntry.query.filter_by(record_id=record_id).count() == 0
        assert RecordViewer.query.filter_by(record_id=record_id).count() == 0

    def test_only_owner_deletes(self, app, other_admin, milk_record):
        with pytest.raises(AccessDenied):
            RecordService.delete(identity(other_admin), milk_record.id)
