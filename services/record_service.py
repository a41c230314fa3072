"""
Record Service
Create, list, inspect and delete records, gated by utils.permissions.
"""
from flask import current_app

from extensions import db
from models.records import Record, RECORD_TYPES
from services.blob_store import release_blob
from utils.db_helpers import readable_records_query, shared_records_query
from utils.errors import ValidationError
from utils.permissions import is_record_owner, require_admin, require_record_owner, require_record_reader


class RecordService:

    @staticmethod
    def list_for(identity):
        """Records the caller owns plus records shared with them."""
        return readable_records_query(identity.id).order_by(Record.id).all()

    @staticmethod
    def shared_with(identity):
        """Records shared with the caller by other admins."""
        return shared_records_query(identity.id).order_by(Record.id).all()

    @staticmethod
    def get_detail(identity, record_id):
        """Record with its entries; the viewer list is included for the owner only."""
        record = require_record_reader(identity, record_id)
        detail = record.to_dict()
        detail['entries'] = [entry.to_dict() for entry in record.entries()]
        if is_record_owner(identity, record):
            detail['viewers'] = [
                {
                    'user_id': grant.viewer_user_id,
                    'email': grant.viewer.email,
                    'allow_viewer_access': grant.allow_viewer_access,
                    'is_accepted': grant.is_accepted,
                }
                for grant in sorted(record.viewers, key=lambda g: g.viewer.email)
            ]
        return detail

    @staticmethod
    def create(identity, name, record_type):
        require_admin(identity, 'create records')
        name = (name or '').strip()
        errors = {}
        if not name:
            errors['name'] = ['Name is required.']
        elif len(name) > 100:
            errors['name'] = ['Name must be at most 100 characters.']
        if record_type not in RECORD_TYPES:
            errors['type'] = ['Type must be Milk, Bill, or Rent.']
        if errors:
            raise ValidationError('Validation failed.', fields=errors)

        record = Record(name=name, type=record_type, owner_user_id=identity.id)
        db.session.add(record)
        db.session.commit()
        current_app.logger.info(f'Admin {identity.id} created {record_type} record {record.id}')
        return record

    @staticmethod
    def delete(identity, record_id):
        """Delete a record with its entries and viewer grants (owner only)."""
        record = require_record_owner(identity, record_id, 'delete it')
        attachments = [bill.file_path for bill in record.bills if bill.file_path]

        db.session.delete(record)
        db.session.commit()
        current_app.logger.info(f'Admin {identity.id} deleted record {record_id}')

        for reference in attachments:
            release_blob(reference)
