from flask import jsonify
from flask_login import current_user
from wtforms import DateField, DecimalField, IntegerField, StringField
from wtforms.validators import DataRequired, Optional

from . import milk_bp
from models.entries import MILK_STATUS_BOUGHT
from services.entry_service import MilkService
from utils.forms import ApiForm, validate_form


class MilkEntryForm(ApiForm):
    record_id = IntegerField('Record', validators=[DataRequired(message='record_id is required')])
    date = DateField('Date', format='%Y-%m-%d', validators=[DataRequired(message='Date is required')])
    # Zero is a valid quantity on Leave days; range checks happen in MilkService
    quantity_liters = DecimalField('Quantity (liters)')
    status = StringField('Status', default=MILK_STATUS_BOUGHT)
    admin_id = StringField('Admin', validators=[Optional()])


@milk_bp.route('/<int:record_id>', methods=['GET'])
def list_entries(record_id):
    entries = MilkService.list(current_user, record_id)
    return jsonify([entry.to_dict() for entry in entries])


@milk_bp.route('/', methods=['POST'])
def create_entry():
    form = validate_form(MilkEntryForm())
    entry = MilkService.create(
        current_user,
        form.record_id.data,
        form.date.data,
        form.quantity_liters.data,
        status=form.status.data or MILK_STATUS_BOUGHT,
        admin_id=form.admin_id.data or None,
    )
    return jsonify(entry.to_dict()), 201


@milk_bp.route('/<int:entry_id>', methods=['DELETE'])
def delete_entry(entry_id):
    MilkService.delete(current_user, entry_id)
    return '', 204
