from flask import jsonify
from flask_login import current_user
from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, Optional

from . import rent_bp
from services.entry_service import RentService
from utils.forms import AmountField, ApiForm, validate_form


class RentEntryForm(ApiForm):
    record_id = IntegerField('Record', validators=[DataRequired(message='record_id is required')])
    month = StringField('Month', validators=[DataRequired(message='Month is required')])
    # Positive-amount check lives in entry_service
    amount = AmountField('Amount')
    admin_id = StringField('Admin', validators=[Optional()])


@rent_bp.route('/<int:record_id>', methods=['GET'])
def list_entries(record_id):
    entries = RentService.list(current_user, record_id)
    return jsonify([entry.to_dict() for entry in entries])


@rent_bp.route('/', methods=['POST'])
def create_entry():
    form = validate_form(RentEntryForm())
    entry = RentService.create(
        current_user,
        form.record_id.data,
        form.month.data,
        form.amount.data,
        admin_id=form.admin_id.data or None,
    )
    return jsonify(entry.to_dict()), 201


@rent_bp.route('/<int:entry_id>', methods=['DELETE'])
def delete_entry(entry_id):
    RentService.delete(current_user, entry_id)
    return '', 204
