"""
Shared pytest fixtures for the HomeLedger test suite.

All tests run against an in-memory SQLite database (TestingConfig).
A single app context is pushed for the whole session so that SQLAlchemy
objects remain attached throughout.  After each test, clean_db wipes all
rows and the captured mail so tests are fully independent.

Emails are captured by the 'memory' mail backend in
``app.extensions['mail_outbox']``; uploads go to a temporary directory.
"""
import re

import pytest
from flask import g
from app import create_app
from extensions import db as _db
from services.blob_store import LocalBlobStore


ADMIN_PASSWORD = 'AdminPass1'
VIEWER_PASSWORD = 'ViewerPass1'


# ---------------------------------------------------------------------------
# Application / database lifecycle
# ---------------------------------------------------------------------------

@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create a test Flask application with an in-memory SQLite database."""
    application = create_app('testing')
    application.extensions['blob_store'] = LocalBlobStore(str(tmp_path_factory.mktemp('blobs')))
    ctx = application.app_context()
    ctx.push()
    _db.create_all()
    yield application
    _db.session.remove()
    _db.drop_all()
    ctx.pop()


@pytest.fixture(autouse=True)
def clean_db(app):
    """Wipe every table after each test so tests never share state."""
    yield
    _db.session.rollback()
    for table in reversed(_db.metadata.sorted_tables):
        _db.session.execute(table.delete())
    _db.session.commit()
    _db.session.expunge_all()
    app.extensions['mail_outbox'] = []


@pytest.fixture
def client(app):
    return app.test_client()


class ApiClient:
    """Test client that attaches a bearer token to each request."""

    def __init__(self, client):
        self.client = client

    def call(self, method, url, token=None, **kwargs):
        # The session app context is shared by every request, so drop the
        # user Flask-Login cached on g by the previous one
        g.pop('_login_user', None)
        headers = kwargs.pop('headers', {})
        if token:
            headers['Authorization'] = f'Bearer {token}'
        return self.client.open(url, method=method, headers=headers, **kwargs)

    def get(self, url, token=None, **kwargs):
        return self.call('GET', url, token, **kwargs)

    def post(self, url, token=None, **kwargs):
        return self.call('POST', url, token, **kwargs)

    def put(self, url, token=None, **kwargs):
        return self.call('PUT', url, token, **kwargs)

    def delete(self, url, token=None, **kwargs):
        return self.call('DELETE', url, token, **kwargs)


@pytest.fixture
def api(client):
    return ApiClient(client)


@pytest.fixture
def outbox(app):
    """Messages sent during the test, oldest first."""
    app.extensions['mail_outbox'] = []
    return app.extensions['mail_outbox']


# ---------------------------------------------------------------------------
# Common model helpers
# ---------------------------------------------------------------------------

def make_user(email, full_name, password=ADMIN_PASSWORD, role='Admin', admin_id=None):
    from models.users import User
    u = User(email=email, full_name=full_name, role=role, admin_id=admin_id)
    u.set_password(password)
    _db.session.add(u)
    _db.session.commit()
    return u


def make_record(owner, name, record_type):
    from models.records import Record
    r = Record(name=name, type=record_type, owner_user_id=owner.id)
    _db.session.add(r)
    _db.session.commit()
    return r


def grant(record, viewer, allow=True, accepted=True):
    from models.records import RecordViewer
    link = RecordViewer(record_id=record.id, viewer_user_id=viewer.id,
                        allow_viewer_access=allow, is_accepted=accepted)
    _db.session.add(link)
    _db.session.commit()
    return link


def identity(user):
    """Identity equivalent to a verified token for *user*."""
    from services.token_service import Identity
    return Identity.for_user(user)


def auth_headers(user):
    from services.token_service import TokenService
    return {'Authorization': f'Bearer {TokenService.issue(user)}'}


def html_body(message):
    return message.get_body(preferencelist=('html',)).get_content()


def temp_password_from(message):
    """The temporary password shown in an Invite email."""
    match = re.search(r'<code>([^<]+)</code>', html_body(message))
    assert match, 'invite email carries no temporary password'
    return match.group(1)


@pytest.fixture
def admin(app):
    return make_user('admin@home.io', 'Alice Admin')


@pytest.fixture
def other_admin(app):
    return make_user('other@home.io', 'Oscar Other')


@pytest.fixture
def viewer(app, admin):
    return make_user('viewer@x.com', 'Vera Viewer', password=VIEWER_PASSWORD,
                     role='Viewer', admin_id=admin.id)


@pytest.fixture
def milk_record(app, admin):
    return make_record(admin, 'Daily Milk', 'Milk')


@pytest.fixture
def bill_record(app, admin):
    return make_record(admin, 'Electricity', 'Bill')


@pytest.fixture
def rent_record(app, admin):
    return make_record(admin, 'Flat Rent', 'Rent')
