"""
Tests for milk, bill and rent entries: validation, authorization, the milk
rate snapshot and bill attachments.
"""
import io
import os
from datetime import date
from decimal import Decimal

import pytest
from werkzeug.datastructures import FileStorage

from conftest import grant, identity
from extensions import db
from models.entries import ElectricityBill, MilkEntry
from services.blob_store import get_blob_store
from services.entry_service import BillService, MilkService, RentService
from services.settings_service import SettingsService
from utils.errors import (
    AccessDenied, EntryNotFound, ExternalDependencyError, IdentityMismatch, ValidationError,
)


def _pdf(name='bill.pdf', payload=b'%PDF-1.4 test'):
    return FileStorage(stream=io.BytesIO(payload), filename=name, content_type='application/pdf')


# ---------------------------------------------------------------------------
# Milk
# ---------------------------------------------------------------------------

class TestMilkEntries:
    def test_total_uses_current_rate(self, app, admin, milk_record):
        SettingsService.update_milk_rate(identity(admin), '60')

        entry = MilkService.create(identity(admin), milk_record.id, date(2024, 5, 1), '1.5')

        assert entry.rate_per_liter == Decimal('60.00')
        assert entry.total_cost == Decimal('90.00')
        assert entry.admin_id == admin.id

    def test_rate_change_does_not_touch_existing_entries(self, app, admin, milk_record):
        SettingsService.update_milk_rate(identity(admin), '60')
        first = MilkService.create(identity(admin), milk_record.id, date(2024, 5, 1), '2')

        SettingsService.update_milk_rate(identity(admin), '75')
        second = MilkService.create(identity(admin), milk_record.id, date(2024, 5, 2), '2')

        assert db.session.get(MilkEntry, first.id).total_cost == Decimal('120.00')
        assert second.total_cost == Decimal('150.00')

    def test_default_rate_when_no_settings(self, app, admin, milk_record):
        entry = MilkService.create(identity(admin), milk_record.id, date(2024, 5, 1), '1')

        assert entry.rate_per_liter == Decimal(app.config['DEFAULT_MILK_RATE_PER_LITER'])

    def test_leave_day_costs_nothing(self, app, admin, milk_record):
        entry = MilkService.create(identity(admin), milk_record.id, date(2024, 5, 3), '0', status='Leave')

        assert entry.total_cost == Decimal('0.00')
        assert entry.status == 'Leave'

    @pytest.mark.parametrize('quantity,status,field', [
        ('-1', 'Bought', 'quantity_liters'),
        ('0', 'Bought', 'quantity_liters'),
        ('lots', 'Bought', 'quantity_liters'),
        ('1', 'Spilled', 'status'),
    ])
    def test_invalid_input(self, app, admin, milk_record, quantity, status, field):
        with pytest.raises(ValidationError) as exc:
            MilkService.create(identity(admin), milk_record.id, date(2024, 5, 1), quantity, status=status)
        assert field in exc.value.fields

    def test_claimed_admin_must_match_caller(self, app, admin, other_admin, milk_record):
        with pytest.raises(IdentityMismatch):
            MilkService.create(identity(admin), milk_record.id, date(2024, 5, 1), '1', admin_id=other_admin.id)

    def test_wrong_record_type(self, app, admin, rent_record):
        with pytest.raises(ValidationError):
            MilkService.create(identity(admin), rent_record.id, date(2024, 5, 1), '1')

    def test_viewer_reads_but_cannot_write(self, app, admin, viewer, milk_record):
        grant(milk_record, viewer)
        MilkService.create(identity(admin), milk_record.id, date(2024, 5, 1), '1')

        assert len(MilkService.list(identity(viewer), milk_record.id)) == 1
        with pytest.raises(AccessDenied):
            MilkService.create(identity(viewer), milk_record.id, date(2024, 5, 2), '1')

    def test_list_is_ordered_by_date(self, app, admin, milk_record):
        for day in (3, 1, 2):
            MilkService.create(identity(admin), milk_record.id, date(2024, 5, day), '1')

        days = [e.date.day for e in MilkService.list(identity(admin), milk_record.id)]

        assert days == [1, 2, 3]

    def test_delete(self, app, admin, milk_record):
        entry = MilkService.create(identity(admin), milk_record.id, date(2024, 5, 1), '1')

        MilkService.delete(identity(admin), entry.id)

        with pytest.raises(EntryNotFound):
            MilkService.delete(identity(admin), entry.id)


# ---------------------------------------------------------------------------
# Bills
# ---------------------------------------------------------------------------

class TestBills:
    def test_create_with_attachment(self, app, admin, bill_record):
        bill = BillService.create(identity(admin), bill_record.id, '2024-05', '1450.50', 'EB-001', file=_pdf())

        assert bill.amount == Decimal('1450.50')
        assert bill.file_path.endswith('.pdf')
        with open(BillService.attachment_path(identity(admin), bill.id), 'rb') as fh:
            assert fh.read() == b'%PDF-1.4 test'

    @pytest.mark.parametrize('month,amount,reference,field', [
        ('2024-13', '10', 'R1', 'month'),
        ('May 2024', '10', 'R1', 'month'),
        ('2024-05', '0', 'R1', 'amount'),
        ('2024-05', '-5', 'R1', 'amount'),
        ('2024-05', '10', '  ', 'reference_number'),
        ('2024-05', '10', 12345, 'reference_number'),
    ])
    def test_invalid_input(self, app, admin, bill_record, month, amount, reference, field):
        with pytest.raises(ValidationError) as exc:
            BillService.create(identity(admin), bill_record.id, month, amount, reference)
        assert field in exc.value.fields

    def test_disallowed_file_type(self, app, admin, bill_record):
        with pytest.raises(ValidationError):
            BillService.create(identity(admin), bill_record.id, '2024-05', '10', 'R1', file=_pdf('run.exe'))
        assert ElectricityBill.query.count() == 0

    def test_upload_failure_keeps_bill(self, app, admin, bill_record, monkeypatch):
        def broken(self, data, content_type, filename=None):
            raise ExternalDependencyError('disk full')
        monkeypatch.setattr('services.blob_store.LocalBlobStore.put', broken)

        with pytest.raises(ExternalDependencyError):
            BillService.create(identity(admin), bill_record.id, '2024-05', '10', 'R1', file=_pdf())

        bill = ElectricityBill.query.one()
        assert bill.file_path is None

    def test_delete_releases_attachment(self, app, admin, bill_record):
        bill = BillService.create(identity(admin), bill_record.id, '2024-05', '10', 'R1', file=_pdf())
        path = get_blob_store().open(bill.file_path)

        BillService.delete(identity(admin), bill.id)

        assert not os.path.exists(path)

    def test_stranger_cannot_download(self, app, admin, other_admin, bill_record):
        bill = BillService.create(identity(admin), bill_record.id, '2024-05', '10', 'R1', file=_pdf())

        with pytest.raises(AccessDenied):
            BillService.attachment_path(identity(other_admin), bill.id)


# ---------------------------------------------------------------------------
# Rent
# ---------------------------------------------------------------------------

class TestRent:
    def test_create_and_list(self, app, admin, rent_record):
        RentService.create(identity(admin), rent_record.id, '2024-06', 12000)
        RentService.create(identity(admin), rent_record.id, '2024-05', '12000.00')

        months = [e.month for e in RentService.list(identity(admin), rent_record.id)]

        assert months == ['2024-05', '2024-06']

    def test_rejects_zero_amount(self, app, admin, rent_record):
        with pytest.raises(ValidationError):
            RentService.create(identity(admin), rent_record.id, '2024-06', 0)

    def test_other_admin_cannot_delete(self, app, admin, other_admin, rent_record):
        entry = RentService.create(identity(admin), rent_record.id, '2024-06', 100)

        with pytest.raises(AccessDenied):
            RentService.delete(identity(other_admin), entry.id)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class TestSettings:
    def test_get_or_create_uses_default_rate(self, app, admin):
        settings = SettingsService.get_or_create(admin.id)

        assert settings.milk_rate_per_liter == Decimal(app.config['DEFAULT_MILK_RATE_PER_LITER'])

    def test_update_is_an_upsert(self, app, admin):
        SettingsService.update_milk_rate(identity(admin), '55.5')
        settings = SettingsService.update_milk_rate(identity(admin), '58')

        assert settings.milk_rate_per_liter == Decimal('58.00')
        assert SettingsService.rate_for(admin.id) == Decimal('58.00')

    @pytest.mark.parametrize('rate', ['-1', 'free', None])
    def test_rejects_invalid_rate(self, app, admin, rate):
        with pytest.raises(ValidationError):
            SettingsService.update_milk_rate(identity(admin), rate)

    def test_viewer_cannot_change_rate(self, app, viewer):
        with pytest.raises(AccessDenied):
            SettingsService.update_milk_rate(identity(viewer), '10')
