"""
Authentication Forms
Input validation for login, registration, password and invitation requests
"""
import re

from flask import current_app
from wtforms import IntegerField, PasswordField, StringField
from wtforms.validators import DataRequired, Email, Length, Optional, ValidationError

from utils.forms import ApiForm


def validate_password_strength(password):
    """
    Validate password meets security requirements
    Returns: (is_valid, error_message)
    """
    min_length = current_app.config.get('PASSWORD_MIN_LENGTH', 8)
    require_uppercase = current_app.config.get('PASSWORD_REQUIRE_UPPERCASE', True)
    require_lowercase = current_app.config.get('PASSWORD_REQUIRE_LOWERCASE', True)
    require_digit = current_app.config.get('PASSWORD_REQUIRE_DIGIT', True)
    require_special = current_app.config.get('PASSWORD_REQUIRE_SPECIAL', False)

    errors = []

    if len(password) < min_length:
        errors.append(f"at least {min_length} characters")

    if require_uppercase and not re.search(r'[A-Z]', password):
        errors.append("an uppercase letter")

    if require_lowercase and not re.search(r'[a-z]', password):
        errors.append("a lowercase letter")

    if require_digit and not re.search(r'\d', password):
        errors.append("a number")

    if require_special and not re.search(r'[!@#$%^&*(),.?":{}|<>]', password):
        errors.append("a special character (!@#$%^&*(),.?\":{}|<>)")

    if errors:
        return False, f"Password must contain {', '.join(errors)}"

    return True, None


class StrongPassword:
    """WTForms validator wrapping validate_password_strength()."""

    def __call__(self, form, field):
        if not field.data:
            return
        is_valid, message = validate_password_strength(field.data)
        if not is_valid:
            raise ValidationError(message)


class LoginForm(ApiForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address')
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message='Password is required')
    ])


class RegisterForm(ApiForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address'),
        Length(max=254)
    ])
    full_name = StringField('Full Name', validators=[
        DataRequired(message='Full name is required'),
        Length(min=2, max=100, message='Name must be between 2 and 100 characters')
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message='Password is required'),
        StrongPassword()
    ])


class ChangePasswordForm(ApiForm):
    current_password = PasswordField('Current Password', validators=[
        DataRequired(message='Current password is required')
    ])
    new_password = PasswordField('New Password', validators=[
        DataRequired(message='New password is required'),
        StrongPassword()
    ])


class ForgotPasswordForm(ApiForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address')
    ])


class ResetPasswordForm(ApiForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address')
    ])
    token = StringField('Token', validators=[
        DataRequired(message='Token is required')
    ])
    new_password = PasswordField('New Password', validators=[
        DataRequired(message='New password is required'),
        StrongPassword()
    ])


class RecordRefForm(ApiForm):
    """A record given by id, or by name for older clients."""
    # Either record_id or record_name must be present; see validate_record_id
    record_id = IntegerField('Record ID')
    record_name = StringField('Record Name', validators=[Optional(), Length(max=100)])

    def validate_record_id(self, field):
        if field.data is None and not (self.record_name.data or '').strip():
            raise ValidationError('record_id is required')


class InviteForm(RecordRefForm):
    email = StringField('Email', validators=[
        DataRequired(message='Email is required'),
        Email(message='Invalid email address')
    ])


class RevokeForm(RecordRefForm):
    viewer_id = StringField('Viewer ID', validators=[
        DataRequired(message='Viewer ID is required'),
        Length(max=36)
    ])
