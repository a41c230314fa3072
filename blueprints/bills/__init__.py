from flask import Blueprint
from flask_login import login_required

bills_bp = Blueprint('bills', __name__, url_prefix='/api/bills')

# Require authentication for all routes in this blueprint
@bills_bp.before_request
@login_required
def require_login():
    pass

from . import routes
