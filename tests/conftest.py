import itertools
import os

# must be set before the app module builds its config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest

import storage
from app import app as flask_app
from database import db


ADMIN_PASSWORD = "admin-secret"


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.create_all()

    yield flask_app

    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def register(app):
    """Factory: register a fresh user with ``role`` and return (client, user).

    The returned test client keeps the session cookie, so it acts as that user.
    """
    counter = itertools.count(1)

    def _register(role="customer", **overrides):
        n = next(counter)
        body = {
            "username": f"{role}{n}",
            "password": "secret123",
            "email": f"{role}{n}@example.com",
            "firstName": role.capitalize(),
            "lastName": f"Number{n}",
            "role": role,
        }
        body.update(overrides)
        c = app.test_client()
        response = c.post("/api/register", json=body)
        assert response.status_code == 201, response.get_json()
        return c, response.get_json()

    return _register


@pytest.fixture
def admin(app):
    with app.app_context():
        storage.create_user({
            "username": "root",
            "password": ADMIN_PASSWORD,
            "email": "root@example.com",
            "first_name": "Root",
            "last_name": "Admin",
            "role": "admin",
        })
    c = app.test_client()
    response = c.post("/api/login", json={"username": "root", "password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.get_json()
    return c
