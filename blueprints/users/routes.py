from flask import jsonify
from flask_login import current_user
from flask_wtf.file import FileField
from wtforms import PasswordField, StringField
from wtforms.validators import Length, Optional

from . import users_bp
from blueprints.auth.forms import StrongPassword
from services.user_service import UserService
from utils.forms import ApiForm, validate_form


class ProfileForm(ApiForm):
    full_name = StringField('Full Name', validators=[
        Optional(),
        Length(min=2, max=100, message='Name must be between 2 and 100 characters')
    ])
    password = PasswordField('Password', validators=[Optional(), StrongPassword()])
    image = FileField('Profile Image')


@users_bp.route('/<user_id>', methods=['PUT'])
def update_user(user_id):
    """Update the caller's own profile (multipart/form-data)"""
    form = validate_form(ProfileForm())
    user = UserService.update_profile(
        current_user, user_id,
        full_name=form.full_name.data,
        password=form.password.data,
        image=form.image.data,
    )
    return jsonify(user.to_dict())
