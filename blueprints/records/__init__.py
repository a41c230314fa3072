from flask import Blueprint
from flask_login import login_required

records_bp = Blueprint('records', __name__, url_prefix='/api/records')

# Require authentication for all routes in this blueprint
@records_bp.before_request
@login_required
def require_login():
    pass

from . import routes
