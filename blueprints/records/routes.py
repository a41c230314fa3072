from flask import jsonify
from flask_login import current_user
from wtforms import StringField
from wtforms.validators import DataRequired, Length

from . import records_bp
from services.record_service import RecordService
from utils.forms import ApiForm, validate_form


class RecordForm(ApiForm):
    name = StringField('Name', validators=[
        DataRequired(message='Name is required'),
        Length(max=100, message='Name must be at most 100 characters')
    ])
    type = StringField('Type', validators=[DataRequired(message='Type is required')])


@records_bp.route('/', methods=['GET'])
def list_records():
    """Records the caller owns or has been granted"""
    return jsonify([record.to_dict() for record in RecordService.list_for(current_user)])


@records_bp.route('/viewer-records', methods=['GET'])
def viewer_records():
    return jsonify([record.to_dict() for record in RecordService.shared_with(current_user)])


@records_bp.route('/<int:record_id>', methods=['GET'])
def record_detail(record_id):
    return jsonify(RecordService.get_detail(current_user, record_id))


@records_bp.route('/', methods=['POST'])
def create_record():
    form = validate_form(RecordForm())
    record = RecordService.create(current_user, form.name.data, form.type.data)
    return jsonify(record.to_dict()), 201


@records_bp.route('/<int:record_id>', methods=['DELETE'])
def delete_record(record_id):
    RecordService.delete(current_user, record_id)
    return '', 204
