from flask import Blueprint
from flask_login import login_required

milk_bp = Blueprint('milk', __name__, url_prefix='/api/milk')

# Require authentication for all routes in this blueprint
@milk_bp.before_request
@login_required
def require_login():
    pass

from . import routes
