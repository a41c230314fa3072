"""
Token Service
=============
Issues and verifies the signed bearer tokens used on every protected call.

Claims
------
  sub       user id (opaque string)
  email     user email at issue time
  role      'Admin' | 'Viewer'
  admin_id  effective admin scope: the inviting admin for viewers, else the user
  iat/exp   issue time and expiry (JWT_ACCESS_TOKEN_EXPIRES, 24h by default)
  iss/aud   JWT_ISSUER / JWT_AUDIENCE
  jti       random token id

Verification is local (signature + registered claims) and has no side
effects; the request loader builds an ``Identity`` straight from the claims.
"""
import uuid
from datetime import datetime, timezone

import jwt
from flask import current_app
from flask_login import UserMixin

from models.users import ROLE_ADMIN, ROLE_VIEWER
from utils.errors import InvalidToken

REQUIRED_CLAIMS = ['sub', 'email', 'role', 'admin_id', 'exp', 'iat', 'iss', 'aud']


class Identity(UserMixin):
    """Authenticated caller as described by a verified token."""

    def __init__(self, user_id, email, role, admin_id):
        self.id = user_id
        self.email = email
        self.role = role
        self.admin_id = admin_id

    @classmethod
    def from_claims(cls, claims):
        return cls(claims['sub'], claims['email'], claims['role'], claims['admin_id'])

    @classmethod
    def for_user(cls, user):
        return cls(user.id, user.email, user.role, user.effective_admin_id)

    @property
    def is_admin(self):
        return self.role == ROLE_ADMIN

    @property
    def is_viewer(self):
        return self.role == ROLE_VIEWER

    @property
    def effective_admin_id(self):
        return self.admin_id

    def to_dict(self):
        return {'id': self.id, 'email': self.email, 'role': self.role, 'admin_id': self.admin_id}

    def __repr__(self):
        return f'<Identity {self.email} {self.role}>'


class TokenService:

    @staticmethod
    def issue(user):
        """Return a signed access token for *user*."""
        cfg = current_app.config
        now = datetime.now(timezone.utc)
        payload = {
            'sub': user.id,
            'email': user.email,
            'role': user.role,
            'admin_id': user.effective_admin_id,
            'iat': now,
            'exp': now + cfg['JWT_ACCESS_TOKEN_EXPIRES'],
            'iss': cfg['JWT_ISSUER'],
            'aud': cfg['JWT_AUDIENCE'],
            'jti': uuid.uuid4().hex,
        }
        return jwt.encode(payload, cfg['JWT_SECRET_KEY'], algorithm=cfg['JWT_ALGORITHM'])

    @staticmethod
    def verify(token):
        """Decode *token* and return its claims.

        Raises:
            InvalidToken: bad signature, expired, wrong issuer/audience,
                missing claims or unknown role.
        """
        if not token:
            raise InvalidToken('Missing access token.')
        cfg = current_app.config
        try:
            claims = jwt.decode(
                token,
                cfg['JWT_SECRET_KEY'],
                algorithms=[cfg['JWT_ALGORITHM']],
                audience=cfg['JWT_AUDIENCE'],
                issuer=cfg['JWT_ISSUER'],
                options={'require': REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidToken('The access token has expired.')
        except jwt.PyJWTError:
            raise InvalidToken()
        if claims['role'] not in (ROLE_ADMIN, ROLE_VIEWER):
            raise InvalidToken()
        return claims

    @staticmethod
    def identity_from_header(header_value):
        """Parse an ``Authorization: Bearer <token>`` header into an Identity."""
        if not header_value:
            raise InvalidToken('Missing access token.')
        scheme, _, token = header_value.partition(' ')
        if scheme.lower() != 'bearer' or not token.strip():
            raise InvalidToken('Authorization header must be "Bearer <token>".')
        return Identity.from_claims(TokenService.verify(token.strip()))
