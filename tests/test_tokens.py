"""
Tests for bearer tokens: issue/verify round trip, expiry, tampering and
the Authorization header parser.
"""
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from conftest import auth_headers
from services.credential_service import CredentialService
from services.token_service import Identity, TokenService
from utils.errors import InvalidToken


def _claims(user, **overrides):
    now = datetime.now(timezone.utc)
    claims = {
        'sub': user.id,
        'email': user.email,
        'role': user.role,
        'admin_id': user.effective_admin_id,
        'iat': now,
        'exp': now + timedelta(hours=1),
        'iss': 'homeledger',
        'aud': 'homeledger-clients',
    }
    claims.update(overrides)
    return claims


def _sign(app, claims, key=None):
    return jwt.encode(claims, key or app.config['JWT_SECRET_KEY'], algorithm='HS256')


class TestIssueAndVerify:
    def test_verified_claims_describe_the_user(self, app, viewer, admin):
        claims = TokenService.verify(TokenService.issue(viewer))

        assert claims['sub'] == viewer.id
        assert claims['email'] == viewer.email
        assert claims['role'] == 'Viewer'
        assert claims['admin_id'] == admin.id

    def test_identity_from_header(self, app, admin):
        ident = TokenService.identity_from_header(auth_headers(admin)['Authorization'])

        assert isinstance(ident, Identity)
        assert ident.id == admin.id
        assert ident.is_admin is True
        assert ident.is_authenticated is True

    def test_each_token_is_unique(self, app, admin):
        assert TokenService.issue(admin) != TokenService.issue(admin)


class TestRejectedTokens:
    def test_expired_token(self, app, admin):
        past = datetime.now(timezone.utc) - timedelta(hours=2)
        token = _sign(app, _claims(admin, iat=past, exp=past + timedelta(hours=1)))

        with pytest.raises(InvalidToken) as exc:
            TokenService.verify(token)
        assert 'expired' in exc.value.message

    def test_wrong_signing_key(self, app, admin):
        token = _sign(app, _claims(admin), key='another-key-that-is-long-enough-for-hs256')

        with pytest.raises(InvalidToken):
            TokenService.verify(token)

    def test_tampered_payload(self, app, admin):
        header, payload, signature = TokenService.issue(admin).split('.')
        forged = _sign(app, _claims(admin, role='Viewer')).split('.')[1]

        with pytest.raises(InvalidToken):
            TokenService.verify('.'.join([header, forged, signature]))

    def test_wrong_audience(self, app, admin):
        with pytest.raises(InvalidToken):
            TokenService.verify(_sign(app, _claims(admin, aud='someone-else')))

    def test_missing_claim(self, app, admin):
        claims = _claims(admin)
        del claims['admin_id']

        with pytest.raises(InvalidToken):
            TokenService.verify(_sign(app, claims))

    def test_unknown_role(self, app, admin):
        with pytest.raises(InvalidToken):
            TokenService.verify(_sign(app, _claims(admin, role='Root')))

    @pytest.mark.parametrize('header', ['', 'Token abc', 'Bearer ', 'Bearer not.a.jwt'])
    def test_malformed_header(self, app, header):
        with pytest.raises(InvalidToken):
            TokenService.identity_from_header(header)


class TestCredentials:
    def test_hash_and_verify(self, app):
        digest = CredentialService.hash('Secret123')

        assert CredentialService.verify('Secret123', digest) is True
        assert CredentialService.verify('secret123', digest) is False

    def test_same_password_hashes_differently(self, app):
        assert CredentialService.hash('Secret123') != CredentialService.hash('Secret123')

    def test_empty_digest_never_matches(self, app):
        assert CredentialService.verify('', '') is False

    def test_temporary_password_has_mixed_characters(self, app):
        for _ in range(20):
            password = CredentialService.generate_temporary_password()
            assert len(password) == 12
            assert any(c.isupper() for c in password)
            assert any(c.islower() for c in password)
            assert any(c.isdigit() for c in password)
