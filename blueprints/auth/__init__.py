"""Auth blueprint – accounts, passwords and viewer invitations."""
from flask import Blueprint

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

# Note: no global @before_request login_required here because register,
# login and the password reset routes are public.
# Per-route @login_required is applied in routes.py instead.

from . import routes  # noqa: E402,F401
