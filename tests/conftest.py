"""
Pytest configuration and shared fixtures.

The environment is seeded before anything from ``stratosafe`` is imported:
the app refuses to start without a signing key.
"""
import os

os.environ.setdefault("JWT_SECRET", "test-signing-key-0123456789abcdefghijklmnop")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DB_AUTO_CREATE", "true")
os.environ.setdefault("ENVIRONMENT", "test")

import pyotp
import pytest
from fastapi.testclient import TestClient

from stratosafe.core.config import load_settings
from stratosafe.core.db import create_schema, make_engine, make_sessionmaker
from stratosafe.core.security import PasswordHasher, SessionTokenIssuer
from stratosafe.main import create_app
from stratosafe.services.auth import AuthService
from stratosafe.services.credentials import CredentialStore
from stratosafe.services.totp import TotpEngine

EMAIL = "a@x.com"
PASSWORD = "Secret123!"


# ============================================
# Core objects
# ============================================

@pytest.fixture
def settings():
    return load_settings(_env_file=None)


@pytest.fixture
def hasher(settings):
    return PasswordHasher(settings.BCRYPT_ROUNDS)


@pytest.fixture
def tokens(settings):
    return SessionTokenIssuer.from_settings(settings)


@pytest.fixture
def totp(settings):
    return TotpEngine.from_settings(settings)


# ============================================
# Database Fixtures
# ============================================

@pytest.fixture
async def db(settings):
    """Fresh in-memory database per test."""
    engine = make_engine(settings)
    await create_schema(engine)
    async with make_sessionmaker(engine)() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def store(db):
    return CredentialStore(db)


@pytest.fixture
def service(store, settings, hasher, tokens):
    return AuthService.build(store, settings, hasher, tokens)


@pytest.fixture
async def account(service):
    return await service.register(EMAIL, PASSWORD, "Ada", "Lovelace")


@pytest.fixture
async def mfa_account(service, account):
    """Account with MFA switched on through the normal setup/enable flow."""
    setup = await service.setup_mfa(account)
    await service.enable_mfa(account, pyotp.TOTP(setup.secret).now())
    return account


# ============================================
# HTTP Fixtures
# ============================================

@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as c:
        yield c


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def registered(client):
    res = client.post("/api/users/register", json={
        "email": EMAIL, "password": PASSWORD, "firstName": "Ada", "lastName": "Lovelace",
    })
    assert res.status_code == 201, res.text
    return res.json()


@pytest.fixture
def session_token(client, registered):
    res = client.post("/api/users/login", json={"email": EMAIL, "password": PASSWORD})
    assert res.status_code == 200, res.text
    return res.json()["token"]


@pytest.fixture
def mfa_secret(client, session_token):
    """Enables MFA over HTTP and returns the shared secret."""
    setup = client.get("/api/users/mfa/setup", headers=auth_header(session_token)).json()
    res = client.post(
        "/api/users/mfa/enable",
        json={"token": pyotp.TOTP(setup["secret"]).now()},
        headers=auth_header(session_token),
    )
    assert res.status_code == 200, res.text
    return setup["secret"]
