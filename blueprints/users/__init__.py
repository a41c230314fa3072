from flask import Blueprint
from flask_login import login_required

users_bp = Blueprint('users', __name__, url_prefix='/api/users')

# Require authentication for all routes in this blueprint
@users_bp.before_request
@login_required
def require_login():
    pass

from . import routes
