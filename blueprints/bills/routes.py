"""
Electricity bill routes.  Create accepts multipart/form-data so a scanned
bill can be attached in the ``file`` field; JSON bodies work without one.
"""
from flask import jsonify, send_file
from flask_login import current_user
from flask_wtf.file import FileField
from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, Length, Optional

from . import bills_bp
from services.entry_service import BillService
from utils.forms import AmountField, ApiForm, validate_form


class BillForm(ApiForm):
    record_id = IntegerField('Record', validators=[DataRequired(message='record_id is required')])
    month = StringField('Month', validators=[DataRequired(message='Month is required')])
    # Positive-amount check lives in entry_service
    amount = AmountField('Amount')
    reference_number = StringField('Reference Number', validators=[
        DataRequired(message='Reference Number is required'),
        Length(max=100)
    ])
    file = FileField('Bill')
    admin_id = StringField('Admin', validators=[Optional()])


@bills_bp.route('/<int:record_id>', methods=['GET'])
def list_bills(record_id):
    bills = BillService.list(current_user, record_id)
    return jsonify([bill.to_dict() for bill in bills])


@bills_bp.route('/', methods=['POST'])
def create_bill():
    form = validate_form(BillForm())
    bill = BillService.create(
        current_user,
        form.record_id.data,
        form.month.data,
        form.amount.data,
        form.reference_number.data,
        file=form.file.data,
        admin_id=form.admin_id.data or None,
    )
    return jsonify(bill.to_dict()), 201


@bills_bp.route('/<int:bill_id>', methods=['DELETE'])
def delete_bill(bill_id):
    BillService.delete(current_user, bill_id)
    return '', 204


@bills_bp.route('/<int:bill_id>/file', methods=['GET'])
def bill_file(bill_id):
    """Download the attachment stored for a bill"""
    return send_file(BillService.attachment_path(current_user, bill_id))
