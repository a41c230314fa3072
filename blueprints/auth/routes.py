"""
Authentication Routes
Registration, login, password management and viewer invitations
"""
from flask import current_app, jsonify
from flask_login import current_user, login_required

from . import auth_bp
from .forms import (
    ChangePasswordForm, ForgotPasswordForm, InviteForm, LoginForm,
    RegisterForm, ResetPasswordForm, RevokeForm,
)
from extensions import limiter
from services.user_service import UserService
from services.viewer_service import ViewerService
from utils.db_helpers import get_user_or_404
from utils.forms import validate_form
from utils.permissions import require_admin


@auth_bp.route('/register', methods=['POST'])
@limiter.limit("5 per minute")
def register():
    """Create an Admin account"""
    form = validate_form(RegisterForm())
    result = UserService.register(form.email.data, form.full_name.data, form.password.data)
    return jsonify(result.to_dict()), 201


@auth_bp.route('/login', methods=['POST'])
@limiter.limit("10 per minute")  # Rate limit login attempts
def login():
    form = validate_form(LoginForm())
    result = UserService.login(form.email.data, form.password.data)
    current_app.logger.info(f'User {result.user.id} logged in')
    return jsonify(result.to_dict())


@auth_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    """Set a new password; for invited viewers this also accepts pending invitations"""
    form = validate_form(ChangePasswordForm())
    result, accepted = UserService.complete_first_login(
        current_user, form.current_password.data, form.new_password.data
    )
    payload = result.to_dict()
    payload['accepted_record_ids'] = [grant.record_id for grant in accepted]
    return jsonify(payload)


@auth_bp.route('/forgot-password', methods=['POST'])
@limiter.limit("5 per minute")
def forgot_password():
    form = validate_form(ForgotPasswordForm())
    UserService.request_password_reset(form.email.data)
    # Same answer whether or not the email is registered
    return jsonify({'message': 'If that email is registered, a reset link has been sent.'})


@auth_bp.route('/reset-password', methods=['POST'])
@limiter.limit("10 per minute")
def reset_password():
    form = validate_form(ResetPasswordForm())
    UserService.reset_password(form.email.data, form.token.data, form.new_password.data)
    return jsonify({'message': 'Password has been reset. Please log in.'})


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    user = get_user_or_404(current_user.id)
    return jsonify(user.to_dict())


# ============================================================================
# VIEWER INVITATIONS
# ============================================================================

@auth_bp.route('/invite', methods=['POST'])
@login_required
def invite():
    form = validate_form(InviteForm())
    user, message = ViewerService.invite(
        current_user, form.email.data,
        record_id=form.record_id.data, record_name=form.record_name.data,
    )
    return jsonify({'message': message, 'user': user.to_dict()})


@auth_bp.route('/revoke', methods=['POST'])
@login_required
def revoke():
    form = validate_form(RevokeForm())
    revoked = ViewerService.revoke(
        current_user, form.viewer_id.data,
        record_id=form.record_id.data, record_name=form.record_name.data,
    )
    message = 'Viewer access revoked.' if revoked else 'Viewer had no active access to this record.'
    return jsonify({'message': message, 'revoked': revoked})


@auth_bp.route('/invited-viewers', methods=['GET'])
@login_required
def invited_viewers():
    require_admin(current_user, 'list viewers')
    return jsonify(ViewerService.list_invited_viewers(current_user.id))


@auth_bp.route('/invitations', methods=['GET'])
@login_required
def pending_invitations():
    grants = ViewerService.pending_invitations(current_user.id)
    return jsonify([
        dict(grant.to_dict(), record_name=grant.record.name, record_type=grant.record.type)
        for grant in grants
    ])


@auth_bp.route('/invitations/<int:record_id>/accept', methods=['POST'])
@login_required
def accept_invitation(record_id):
    grant = ViewerService.accept(current_user.id, record_id)
    return jsonify(grant.to_dict())
