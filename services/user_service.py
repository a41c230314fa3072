"""
User Service
Registration, login, password changes and profile updates.

Invited viewers start on a temporary password (``must_change_password``
with ``password_reset_token_expiry`` as its deadline).  Login still succeeds
while it is valid but reports ``requires_password_change``; the viewer then
calls ``complete_first_login`` which sets the permanent password and accepts
every pending invitation.
"""
from datetime import datetime, timezone
from urllib.parse import quote, urlencode

from flask import current_app
from sqlalchemy.exc import IntegrityError

from extensions import db
from models.users import User, ROLE_ADMIN
from services.blob_store import check_upload, release_blob, store_upload
from services.credential_service import CredentialService
from services.email_service import EmailService, KIND_PASSWORD_RESET, KIND_WELCOME
from services.token_service import TokenService
from services.viewer_service import ViewerService, normalize_email
from utils.db_helpers import get_user_or_404
from utils.errors import AccessDenied, AlreadyExists, Unauthenticated, ValidationError


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class LoginResult:
    """Outcome of a successful credential check."""

    def __init__(self, user, token):
        self.user = user
        self.token = token

    @property
    def requires_password_change(self):
        return self.user.must_change_password

    def to_dict(self):
        if self.requires_password_change:
            return {'token': self.token, 'requires_password_change': True}
        return {'token': self.token, 'requires_password_change': False, 'user': self.user.to_dict()}


class UserService:

    @staticmethod
    def register(email, full_name, password):
        """Create an Admin account and send the welcome email."""
        email = normalize_email(email)
        if User.query.filter_by(email=email).first() is not None:
            raise AlreadyExists('User with this email already exists.')

        user = User(email=email, full_name=full_name.strip(), role=ROLE_ADMIN)
        user.set_password(password)
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise AlreadyExists('User with this email already exists.')

        current_app.logger.info(f'Registered admin {user.id}')
        EmailService.send(KIND_WELCOME, user.email, {'name': user.full_name})
        return LoginResult(user, TokenService.issue(user))

    @staticmethod
    def login(email, password):
        """Check credentials, applying the lockout policy.

        Raises:
            Unauthenticated: unknown email, wrong password, locked account or
                expired temporary password.  The message never reveals which
                of email/password was wrong.
        """
        cfg = current_app.config
        user = User.query.filter_by(email=normalize_email(email)).first()
        if user is None:
            raise Unauthenticated('Invalid email or password.')

        if user.is_locked():
            minutes_left = int((user.locked_until - _utcnow()).total_seconds() / 60) + 1
            raise Unauthenticated(
                f'Account temporarily locked due to multiple failed login attempts. '
                f'Try again in {minutes_left} minutes.'
            )

        if not user.check_password(password):
            user.record_failed_login(cfg['MAX_LOGIN_ATTEMPTS'], cfg.get('LOCKOUT_DURATION'))
            db.session.commit()
            if user.is_locked():
                current_app.logger.warning(f'Account {user.id} locked after {user.failed_login_attempts} failed logins')
            raise Unauthenticated('Invalid email or password.')

        if user.temporary_password_expired:
            raise Unauthenticated('Your temporary password has expired. Please request a password reset.')

        user.reset_failed_logins()
        user.last_login = _utcnow()
        db.session.commit()
        return LoginResult(user, TokenService.issue(user))

    @staticmethod
    def complete_first_login(identity, current_password, new_password):
        """Replace the caller's password; for invited viewers also accept their invitations.

        Returns:
            (LoginResult, accepted_grants)
        """
        user = get_user_or_404(identity.id)
        if not user.check_password(current_password):
            raise ValidationError.for_field('current_password', 'Current password is incorrect.')
        if current_password == new_password:
            raise ValidationError.for_field('new_password', 'New password must differ from the current one.')

        was_temporary = user.must_change_password
        user.set_password(new_password)
        if was_temporary:
            user.must_change_password = False
            user.password_reset_token_expiry = None
        db.session.commit()

        accepted = ViewerService.accept_pending(user.id) if was_temporary else []
        return LoginResult(user, TokenService.issue(user)), accepted

    @staticmethod
    def request_password_reset(email):
        """Issue a reset token and email a link.  Silently does nothing for unknown emails."""
        user = User.query.filter_by(email=normalize_email(email)).first()
        if user is None:
            current_app.logger.info('Password reset requested for unknown email')
            return None

        token = CredentialService.generate_reset_token()
        user.password_reset_token = token
        user.password_reset_token_expiry = _utcnow() + current_app.config['PASSWORD_RESET_TTL']
        db.session.commit()

        query = urlencode({'token': token, 'email': user.email}, quote_via=quote)
        reset_link = f"{current_app.config['FRONTEND_BASE_URL'].rstrip('/')}/reset-password?{query}"
        EmailService.send(KIND_PASSWORD_RESET, user.email, {'name': user.full_name, 'reset_link': reset_link})
        return token

    @staticmethod
    def reset_password(email, token, new_password):
        user = User.query.filter_by(email=normalize_email(email)).first()
        invalid = ValidationError.for_field(
            'token', 'Invalid token or email. Please try again or request a new reset link.'
        )
        if user is None or not CredentialService.tokens_match(user.password_reset_token, token):
            raise invalid
        if user.password_reset_token_expiry is None or user.password_reset_token_expiry <= _utcnow():
            raise invalid

        user.set_password(new_password)
        user.password_reset_token = None
        user.password_reset_token_expiry = None
        user.must_change_password = False
        user.reset_failed_logins()
        db.session.commit()
        current_app.logger.info(f'Password reset completed for {user.id}')
        return user

    @staticmethod
    def update_profile(identity, user_id, full_name=None, password=None, image=None):
        """Update the caller's own name, password and profile image."""
        user = get_user_or_404(user_id)
        if identity.id != user.id:
            raise AccessDenied('You can only update your own profile.')
        has_image = check_upload(image, 'image')

        if full_name and full_name.strip():
            user.full_name = full_name.strip()
        if password:
            user.set_password(password)
        db.session.commit()

        if has_image:
            previous = user.image_path
            user.image_path = store_upload(image, 'image')
            db.session.commit()
            release_blob(previous)
        return user
