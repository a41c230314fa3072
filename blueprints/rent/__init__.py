from flask import Blueprint
from flask_login import login_required

rent_bp = Blueprint('rent', __name__, url_prefix='/api/rent')

# Require authentication for all routes in this blueprint
@rent_bp.before_request
@login_required
def require_login():
    pass

from . import routes
