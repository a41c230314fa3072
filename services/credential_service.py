"""
Credential Service
Password hashing and verification, plus generation of the temporary
passwords handed to invited viewers.
"""
import secrets
import string

from werkzeug.security import generate_password_hash, check_password_hash


# scrypt is salted and memory-hard; werkzeug embeds the parameters in the digest
HASH_METHOD = 'scrypt'

_TEMP_ALPHABET = string.ascii_letters + string.digits


class CredentialService:

    @staticmethod
    def hash(password):
        """Return a salted digest for *password*."""
        return generate_password_hash(password, method=HASH_METHOD)

    @staticmethod
    def verify(password, digest):
        """True if *password* matches *digest*.  Empty digests never match."""
        if not digest or password is None:
            return False
        return check_password_hash(digest, password)

    @staticmethod
    def generate_temporary_password(length=12):
        """Random password with at least one upper, lower and digit character."""
        while True:
            candidate = ''.join(secrets.choice(_TEMP_ALPHABET) for _ in range(length))
            if (any(c.islower() for c in candidate)
                    and any(c.isupper() for c in candidate)
                    and any(c.isdigit() for c in candidate)):
                return candidate

    @staticmethod
    def generate_reset_token():
        return secrets.token_urlsafe(48)

    @staticmethod
    def tokens_match(expected, supplied):
        if not expected or not supplied:
            return False
        return secrets.compare_digest(expected, supplied)
