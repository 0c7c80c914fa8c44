"""
Pytest configuration and shared fixtures for the fleet backend tests.
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from yachtdesk import create_app
from yachtdesk.extensions import bcrypt
from yachtdesk.extensions import db as database
from yachtdesk.models import User, Yacht, YachtBooking
from yachtdesk.services.scope_service import SessionContext

PASSWORD = "password123"


class FakeFunctions:
    """Stands in for the serverless endpoints through an httpx mock transport."""

    def __init__(self):
        self.calls = []
        self.responses = {}

    def respond(self, name, status=200, body=None):
        self.responses[name] = (status, body if body is not None else {"success": True})

    def names(self):
        return [call["name"] for call in self.calls]

    def handler(self, request):
        name = request.url.path.rsplit("/", 1)[-1]
        payload = json.loads(request.content or b"{}")
        self.calls.append({"name": name, "json": payload, "authorization": request.headers.get("authorization")})
        response = self.responses.get(name, (200, {"success": True}))
        if isinstance(response, Exception):
            raise response
        status, body = response
        return httpx.Response(status, json=body)

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)


@pytest.fixture
def functions():
    return FakeFunctions()


@pytest.fixture
def app(tmp_path, functions):
    """Create a test app bound to an in-memory database."""
    app = create_app("testing")
    app.config["UPLOAD_DIR"] = str(tmp_path / "uploads")
    app.extensions["functions_transport"] = functions.transport

    with app.app_context():
        database.create_all()
        yield app
        database.session.remove()
        database.drop_all()


@pytest.fixture
def db(app):
    return database


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def _user(email, role, yacht=None, first_name="Test", last_name=None):
    user = User(
        email=email,
        first_name=first_name,
        last_name=last_name or role.title(),
        role=role,
        yacht_id=yacht.id if yacht else None,
        password_hash=bcrypt.generate_password_hash(PASSWORD).decode("utf-8"),
    )
    database.session.add(user)
    return user


@pytest.fixture
def fleet(db):
    """Two active yachts, one inactive yacht and one user per role."""
    utopia = Yacht(name="Utopia", model="Sea Ray 400", marina_name="Lake Powell", is_active=True)
    serenity = Yacht(name="Serenity", model="Bayliner 35", is_active=True)
    retired = Yacht(name="Retired", is_active=False)
    db.session.add_all([utopia, serenity, retired])
    db.session.flush()

    users = {
        "master": _user("master@example.com", "master", first_name="Mara"),
        "staff": _user("staff@example.com", "staff", first_name="Sam"),
        "mechanic": _user("mechanic@example.com", "mechanic", first_name="Max"),
        "manager": _user("manager@example.com", "manager", utopia, first_name="Morgan"),
        "owner": _user("owner@example.com", "owner", utopia, first_name="Olive"),
        "co_owner": _user("co-owner@example.com", "owner", utopia, first_name="Casey"),
        "other_owner": _user("other-owner@example.com", "owner", serenity, first_name="Rowan"),
    }
    db.session.commit()

    class Fleet:
        pass

    result = Fleet()
    result.utopia = utopia
    result.serenity = serenity
    result.retired = retired
    for key, user in users.items():
        setattr(result, key, user)
    return result


@pytest.fixture
def ctx_for():
    def _ctx(user, impersonated_role=None, impersonated_yacht_id=None):
        return SessionContext.for_user(
            user, impersonated_role=impersonated_role, impersonated_yacht_id=impersonated_yacht_id
        )

    return _ctx


@pytest.fixture
def make_booking(db):
    def _make(yacht, user=None, start=None, days=3, **fields):
        start = start or datetime.now(timezone.utc) - timedelta(hours=1)
        booking = YachtBooking(
            yacht_id=yacht.id,
            user_id=user.id if user else None,
            start_date=start,
            end_date=start + timedelta(days=days),
            **fields,
        )
        db.session.add(booking)
        db.session.commit()
        return booking

    return _make


@pytest.fixture
def login(client):
    def _login(user, password=PASSWORD):
        response = client.post("/api/v1/auth/login", json={"email": user.email, "password": password})
        assert response.status_code == 200, response.get_json()
        return response

    return _login
