"""
User Model for Authentication
Admins own records; viewers are provisioned by invitation.
"""
import uuid
from datetime import datetime, timezone

from extensions import db


ROLE_ADMIN = 'Admin'
ROLE_VIEWER = 'Viewer'
ROLES = (ROLE_ADMIN, ROLE_VIEWER)


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(db.Model):
    """User account.  Primary keys are opaque strings."""
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = db.Column(db.String(254), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(100), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=ROLE_ADMIN)
    # Inviting admin for viewers; informational only, access flows through record_viewers
    admin_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    image_path = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)
    last_login = db.Column(db.DateTime)

    # Password reset / temporary password
    password_reset_token = db.Column(db.String(128), nullable=True, index=True)
    password_reset_token_expiry = db.Column(db.DateTime, nullable=True)
    must_change_password = db.Column(db.Boolean, default=False, nullable=False)

    # Login security fields
    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    locked_until = db.Column(db.DateTime)

    records = db.relationship('Record', back_populates='owner', lazy='dynamic')
    viewer_links = db.relationship('RecordViewer', back_populates='viewer',
                                   cascade='all, delete-orphan')

    def set_password(self, password):
        """Hash and set the user's password"""
        from services.credential_service import CredentialService
        self.password_hash = CredentialService.hash(password)

    def check_password(self, password):
        """Check if provided password matches the hash"""
        from services.credential_service import CredentialService
        return CredentialService.verify(password, self.password_hash)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    @property
    def is_viewer(self):
        return self.role == ROLE_VIEWER

    @property
    def effective_admin_id(self):
        """The admin whose data this user acts within: the inviter for viewers, else self."""
        if self.is_viewer and self.admin_id:
            return self.admin_id
        return self.id

    @property
    def temporary_password_expired(self):
        if not self.must_change_password:
            return False
        expiry = self.password_reset_token_expiry
        return expiry is None or expiry <= _utcnow()

    def is_locked(self):
        """Check if account is locked due to failed login attempts"""
        return bool(self.locked_until and self.locked_until > _utcnow())

    def record_failed_login(self, max_attempts, lockout_duration):
        """Record a failed login attempt and lock if threshold exceeded"""
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= max_attempts and lockout_duration:
            self.locked_until = _utcnow() + lockout_duration

    def reset_failed_logins(self):
        self.failed_login_attempts = 0
        self.locked_until = None

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'role': self.role,
            'admin_id': self.admin_id,
            'image_path': self.image_path,
        }

    def __repr__(self):
        return f'<User {self.email}>'
