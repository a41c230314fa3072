"""
Entry Services
==============
Milk deliveries, electricity bills and rent payments.

Every write goes through ``require_entry_writer`` (Admin role, identity in the
payload matches the token, caller owns the parent record, record type matches
the entry type).  Every read goes through ``require_record_reader``.
``admin_id`` on a new entry always comes from the verified identity.

Money values are Decimals quantized to 2 places.

Bill attachments
----------------
The bill row is committed first; the upload runs afterwards and its reference
is stored in a second commit.  An upload failure therefore leaves a valid bill
without an attachment and is reported as ``ExternalDependencyError``.
Deleting a bill commits the delete before releasing the blob.
"""
import re
from datetime import date as date_type
from decimal import Decimal, InvalidOperation

from flask import current_app

from extensions import db
from models.entries import (
    ElectricityBill, MilkEntry, RentEntry, MILK_STATUSES, MILK_STATUS_BOUGHT,
)
from models.records import RECORD_TYPE_BILL, RECORD_TYPE_MILK, RECORD_TYPE_RENT
from services.blob_store import check_upload, get_blob_store, release_blob, store_upload
from services.settings_service import SettingsService
from utils.errors import EntryNotFound, ExternalDependencyError, ValidationError
from utils.permissions import require_entry_writer, require_record_reader

MONTH_PATTERN = re.compile(r'^\d{4}-(0[1-9]|1[0-2])$')
CENTS = Decimal('0.01')


# ---------------------------------------------------------------------------
# Field validation
# ---------------------------------------------------------------------------

def parse_decimal(value, field):
    if isinstance(value, float):
        value = str(value)
    try:
        number = Decimal(value)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError.for_field(field, f'{field} must be a number.')
    if not number.is_finite():
        raise ValidationError.for_field(field, f'{field} must be a number.')
    return number


def validate_amount(value, field='amount'):
    """Amount must be strictly positive."""
    amount = parse_decimal(value, field)
    if amount <= 0:
        raise ValidationError.for_field(field, 'Amount must be greater than 0.')
    return amount.quantize(CENTS)


def validate_month(value, field='month'):
    """Month must be YYYY-MM with a real month number."""
    month = (value or '').strip() if isinstance(value, str) else ''
    if not MONTH_PATTERN.match(month):
        raise ValidationError.for_field(field, 'Month must be in YYYY-MM format.')
    return month


def _collect_errors(*checks):
    """Run each validator and merge their field errors."""
    errors = {}
    for check in checks:
        try:
            check()
        except ValidationError as exc:
            errors.update(exc.fields)
    return errors


def _get_entry_or_404(model, entry_id):
    entry = db.session.get(model, entry_id) if entry_id is not None else None
    if entry is None:
        raise EntryNotFound()
    return entry


class MilkService:

    @staticmethod
    def list(identity, record_id):
        require_record_reader(identity, record_id)
        return (
            MilkEntry.query.filter_by(record_id=record_id)
            .order_by(MilkEntry.date, MilkEntry.id)
            .all()
        )

    @staticmethod
    def create(identity, record_id, entry_date, quantity_liters, status=MILK_STATUS_BOUGHT, admin_id=None):
        """Add a milk delivery.  The rate is snapshotted from the owner's settings."""
        errors = {}
        if not isinstance(entry_date, date_type):
            errors['date'] = ['Date is required.']
        if status not in MILK_STATUSES:
            errors['status'] = ['Status must be Bought or Leave.']
        try:
            quantity = parse_decimal(quantity_liters, 'quantity_liters')
        except ValidationError as exc:
            errors.update(exc.fields)
            quantity = None
        if quantity is not None:
            if quantity < 0:
                errors['quantity_liters'] = ['Quantity cannot be negative.']
            elif quantity == 0 and status == MILK_STATUS_BOUGHT:
                errors['quantity_liters'] = ['Quantity must be greater than 0 for a delivery.']
        if errors:
            raise ValidationError('Validation failed.', fields=errors)

        require_entry_writer(identity, record_id, RECORD_TYPE_MILK, admin_id)

        rate = SettingsService.rate_for(identity.id)
        quantity = quantity.quantize(CENTS)
        entry = MilkEntry(
            record_id=record_id,
            date=entry_date,
            quantity_liters=quantity,
            rate_per_liter=rate.quantize(CENTS),
            status=status,
            total_cost=MilkEntry.compute_total(quantity, rate, status),
            admin_id=identity.id,
        )
        db.session.add(entry)
        db.session.commit()
        return entry

    @staticmethod
    def delete(identity, entry_id):
        entry = _get_entry_or_404(MilkEntry, entry_id)
        require_entry_writer(identity, entry.record_id)
        db.session.delete(entry)
        db.session.commit()


class BillService:

    @staticmethod
    def list(identity, record_id):
        require_record_reader(identity, record_id)
        return (
            ElectricityBill.query.filter_by(record_id=record_id)
            .order_by(ElectricityBill.month, ElectricityBill.id)
            .all()
        )

    @staticmethod
    def create(identity, record_id, month, amount, reference_number, file=None, admin_id=None):
        errors = _collect_errors(lambda: validate_month(month), lambda: validate_amount(amount))
        if reference_number is not None and not isinstance(reference_number, str):
            errors['reference_number'] = ['Reference Number must be text.']
        elif not (reference_number or '').strip():
            errors['reference_number'] = ['Reference Number is required.']
        elif len(reference_number.strip()) > 100:
            errors['reference_number'] = ['Reference Number must be at most 100 characters.']
        if errors:
            raise ValidationError('Validation failed.', fields=errors)

        require_entry_writer(identity, record_id, RECORD_TYPE_BILL, admin_id)
        reference_number = reference_number.strip()
        has_file = check_upload(file)

        bill = ElectricityBill(
            record_id=record_id,
            month=validate_month(month),
            amount=validate_amount(amount),
            reference_number=reference_number,
            admin_id=identity.id,
        )
        db.session.add(bill)
        db.session.commit()

        if has_file:
            try:
                bill.file_path = store_upload(file)
            except ExternalDependencyError as exc:
                current_app.logger.error(f'Bill {bill.id} saved without attachment: {exc.message}')
                raise ExternalDependencyError(f'Bill saved, but the attachment could not be stored: {exc.message}')
            db.session.commit()
        return bill

    @staticmethod
    def delete(identity, entry_id):
        bill = _get_entry_or_404(ElectricityBill, entry_id)
        require_entry_writer(identity, bill.record_id)
        reference = bill.file_path
        db.session.delete(bill)
        db.session.commit()
        release_blob(reference)

    @staticmethod
    def attachment_path(identity, entry_id):
        """Filesystem path of a bill's attachment, for readers of its record."""
        bill = _get_entry_or_404(ElectricityBill, entry_id)
        require_record_reader(identity, bill.record_id)
        path = get_blob_store().open(bill.file_path) if bill.file_path else None
        if path is None:
            raise EntryNotFound('This bill has no attachment.')
        return path


class RentService:

    @staticmethod
    def list(identity, record_id):
        require_record_reader(identity, record_id)
        return (
            RentEntry.query.filter_by(record_id=record_id)
            .order_by(RentEntry.month, RentEntry.id)
            .all()
        )

    @staticmethod
    def create(identity, record_id, month, amount, admin_id=None):
        errors = _collect_errors(lambda: validate_month(month), lambda: validate_amount(amount))
        if errors:
            raise ValidationError('Validation failed.', fields=errors)

        require_entry_writer(identity, record_id, RECORD_TYPE_RENT, admin_id)

        entry = RentEntry(
            record_id=record_id,
            month=validate_month(month),
            amount=validate_amount(amount),
            admin_id=identity.id,
        )
        db.session.add(entry)
        db.session.commit()
        return entry

    @staticmethod
    def delete(identity, entry_id):
        entry = _get_entry_or_404(RentEntry, entry_id)
        require_entry_writer(identity, entry.record_id)
        db.session.delete(entry)
        db.session.commit()
