from flask import jsonify
from flask_login import current_user
from wtforms import DecimalField

from . import settings_bp
from services.settings_service import SettingsService
from utils.forms import ApiForm, validate_form


class SettingsForm(ApiForm):
    milk_rate_per_liter = DecimalField('Milk rate per liter')


@settings_bp.route('/', methods=['GET'])
def get_settings():
    """Settings of the caller's admin scope (viewers see their inviting admin's)"""
    settings = SettingsService.get_or_create(current_user.effective_admin_id)
    return jsonify(settings.to_dict())


@settings_bp.route('/', methods=['POST'])
def update_settings():
    form = validate_form(SettingsForm())
    settings = SettingsService.update_milk_rate(current_user, form.milk_rate_per_liter.data)
    return jsonify(settings.to_dict())
