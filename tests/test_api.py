"""
HTTP tests for the account and MFA endpoints.

Covers:
- Registration, login, profile, password change
- Bearer guard
- MFA setup / enable / status / disable / backup codes
- Post-login MFA verification, scenarios A-E
- Rate limiting on the MFA routes
"""
import time

import pyotp
import pytest
from fastapi.testclient import TestClient

from stratosafe.main import create_app

EMAIL = "a@x.com"
PASSWORD = "Secret123!"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def wrong_code(secret: str) -> str:
    valid = {pyotp.TOTP(secret).at(time.time() + d) for d in (-60, -30, 0, 30, 60)}
    return next(c for c in ("000000", "111111", "222222", "333333") if c not in valid)


# ============================================
# Health
# ============================================

class TestHealth:

    def test_health(self, client):
        res = client.get("/health")
        assert res.status_code == 200
        assert res.json() == {"status": "ok"}

    def test_request_id_header(self, client):
        res = client.get("/health", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"


# ============================================
# Accounts
# ============================================

class TestRegister:

    def test_register_returns_public_user(self, client, registered):
        assert registered["email"] == EMAIL
        assert registered["firstName"] == "Ada"
        assert registered["lastName"] == "Lovelace"
        assert registered["mfaEnabled"] is False
        for hidden in ("password", "passwordHash", "mfaSecret", "mfaBackupCodes"):
            assert hidden not in registered

    def test_duplicate_email(self, client, registered):
        res = client.post("/api/users/register", json={
            "email": EMAIL, "password": "Another123!", "firstName": "B", "lastName": "C",
        })
        assert res.status_code == 400
        assert res.json() == {"message": "User already exists"}

    @pytest.mark.parametrize("body", [
        {"password": PASSWORD, "firstName": "A", "lastName": "B"},
        {"email": "not-an-email", "password": PASSWORD, "firstName": "A", "lastName": "B"},
        {"email": EMAIL, "password": "short", "firstName": "A", "lastName": "B"},
        {"email": EMAIL, "password": PASSWORD, "firstName": "", "lastName": "B"},
    ])
    def test_validation(self, client, body):
        res = client.post("/api/users/register", json=body)
        assert res.status_code == 400
        assert res.json()["message"] == "Invalid request"


class TestLogin:

    def test_scenario_a_login_returns_token_and_user(self, client, registered):
        res = client.post("/api/users/login", json={"email": EMAIL, "password": PASSWORD})
        assert res.status_code == 200
        body = res.json()
        assert body["user"]["id"] == registered["id"]
        assert "mfaSecret" not in body["user"]

        profile = client.get("/api/users/profile", headers=bearer(body["token"]))
        assert profile.status_code == 200
        assert profile.json()["email"] == EMAIL

    @pytest.mark.parametrize("email,password", [
        ("nobody@x.com", PASSWORD),
        (EMAIL, "WrongPassword1"),
    ])
    def test_invalid_credentials_are_uniform(self, client, registered, email, password):
        res = client.post("/api/users/login", json={"email": email, "password": password})
        assert res.status_code == 401
        assert res.json() == {"message": "Invalid credentials"}


class TestBearerGuard:

    def test_missing_header(self, client):
        res = client.get("/api/users/profile")
        assert res.status_code == 401
        assert res.json() == {"message": "Authentication required"}
        assert res.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.parametrize("token", ["garbage", "a.b.c"])
    def test_invalid_token_same_response(self, client, token):
        res = client.get("/api/users/profile", headers=bearer(token))
        assert res.status_code == 401
        assert res.json() == {"message": "Authentication required"}

    def test_tampered_token(self, client, session_token):
        res = client.get("/api/users/profile", headers=bearer(session_token[:-2] + "xx"))
        assert res.status_code == 401


class TestChangePassword:

    def test_change_password(self, client, session_token):
        res = client.post(
            "/api/users/change-password",
            json={"currentPassword": PASSWORD, "newPassword": "NewSecret456!"},
            headers=bearer(session_token),
        )
        assert res.status_code == 200
        assert res.json()["success"] is True

        old = client.post("/api/users/login", json={"email": EMAIL, "password": PASSWORD})
        assert old.status_code == 401
        new = client.post("/api/users/login", json={"email": EMAIL, "password": "NewSecret456!"})
        assert new.status_code == 200

    def test_wrong_current_password(self, client, session_token):
        res = client.post(
            "/api/users/change-password",
            json={"currentPassword": "Nope12345", "newPassword": "NewSecret456!"},
            headers=bearer(session_token),
        )
        assert res.status_code == 400
        assert res.json() == {"message": "Current password is incorrect"}


# ============================================
# MFA management
# ============================================

class TestMfaSetup:

    def test_setup(self, client, session_token):
        res = client.get("/api/users/mfa/setup", headers=bearer(session_token))
        assert res.status_code == 200
        body = res.json()
        assert len(body["secret"]) == 32
        assert body["qrCode"].startswith("data:image/png;base64,")
        assert body["otpauthUrl"].startswith("otpauth://totp/")
        assert "Scan the QR code" in body["message"]

        status = client.get("/api/users/mfa/status", headers=bearer(session_token)).json()
        assert status["mfaEnabled"] is False

    def test_requires_authentication(self, client):
        assert client.get("/api/users/mfa/setup").status_code == 401

    def test_setup_when_enabled_conflicts(self, client, session_token, mfa_secret):
        res = client.get("/api/users/mfa/setup", headers=bearer(session_token))
        assert res.status_code == 409


class TestMfaEnable:

    def test_scenario_b_enable_then_login_requires_mfa(self, client, session_token, mfa_secret):
        status = client.get("/api/users/mfa/status", headers=bearer(session_token)).json()
        assert status == {"mfaEnabled": True, "hasBackupCodes": True, "backupCodesRemaining": 10}

        res = client.post("/api/users/login", json={"email": EMAIL, "password": PASSWORD})
        assert res.status_code == 200
        assert res.json() == {"requiresMfa": True, "email": EMAIL}

    def test_enable_response_has_count_not_codes(self, client, session_token):
        setup = client.get("/api/users/mfa/setup", headers=bearer(session_token)).json()
        res = client.post(
            "/api/users/mfa/enable",
            json={"token": pyotp.TOTP(setup["secret"]).now()},
            headers=bearer(session_token),
        )
        body = res.json()
        assert body == {"success": True, "backupCodesCount": 10, "message": "MFA enabled successfully"}

    def test_invalid_token(self, client, session_token):
        setup = client.get("/api/users/mfa/setup", headers=bearer(session_token)).json()
        res = client.post(
            "/api/users/mfa/enable",
            json={"token": wrong_code(setup["secret"])},
            headers=bearer(session_token),
        )
        # the session is fine, only the code is wrong
        assert res.status_code == 400
        assert res.json() == {"message": "Invalid token"}
        assert "WWW-Authenticate" not in res.headers
        status = client.get("/api/users/mfa/status", headers=bearer(session_token)).json()
        assert status["mfaEnabled"] is False

    def test_token_is_required(self, client, session_token):
        res = client.post("/api/users/mfa/enable", json={}, headers=bearer(session_token))
        assert res.status_code == 400


class TestMfaDisable:

    def test_disable(self, client, session_token, mfa_secret):
        res = client.post("/api/users/mfa/disable", headers=bearer(session_token))
        assert res.status_code == 200
        assert res.json()["success"] is True

        status = client.get("/api/users/mfa/status", headers=bearer(session_token)).json()
        assert status == {"mfaEnabled": False, "hasBackupCodes": False, "backupCodesRemaining": 0}

        login = client.post("/api/users/login", json={"email": EMAIL, "password": PASSWORD})
        assert "token" in login.json()

    def test_requires_authentication(self, client):
        assert client.post("/api/users/mfa/disable").status_code == 401


class TestBackupCodeGeneration:

    def test_generate(self, client, session_token, mfa_secret):
        res = client.post("/api/users/mfa/backup-codes", headers=bearer(session_token))
        assert res.status_code == 200
        codes = res.json()["backupCodes"]
        assert len(codes) == 10
        assert all(len(c) == 8 for c in codes)

    def test_requires_mfa(self, client, session_token):
        res = client.post("/api/users/mfa/backup-codes", headers=bearer(session_token))
        assert res.status_code == 400
        assert res.json() == {"message": "MFA is not enabled"}


# ============================================
# MFA verification after login
# ============================================

class TestVerifyMfa:

    def test_scenario_c_totp_accepted_twice_in_window(self, client, registered, mfa_secret):
        code = pyotp.TOTP(mfa_secret).now()
        for _ in range(2):
            res = client.post("/api/users/verify-mfa", json={"email": EMAIL, "token": code, "isBackupCode": False})
            assert res.status_code == 200
            body = res.json()
            assert body["user"]["id"] == registered["id"]
            profile = client.get("/api/users/profile", headers=bearer(body["token"]))
            assert profile.status_code == 200

    def test_scenario_d_backup_code_single_use(self, client, session_token, mfa_secret):
        codes = client.post("/api/users/mfa/backup-codes", headers=bearer(session_token)).json()["backupCodes"]

        def use(code):
            return client.post("/api/users/verify-mfa", json={"email": EMAIL, "token": code, "isBackupCode": True})

        assert use(codes[2]).status_code == 200
        again = use(codes[2])
        assert again.status_code == 401
        assert again.json() == {"message": "Invalid backup code"}
        for i, code in enumerate(codes):
            if i != 2:
                assert use(code).status_code == 200, f"code #{i + 1}"

        status = client.get("/api/users/mfa/status", headers=bearer(session_token)).json()
        assert status == {"mfaEnabled": True, "hasBackupCodes": False, "backupCodesRemaining": 0}

    @pytest.mark.parametrize("code", ["abcdef", "12ab56", "1"])
    def test_scenario_e_malformed_totp(self, client, mfa_secret, code):
        res = client.post("/api/users/verify-mfa", json={"email": EMAIL, "token": code, "isBackupCode": False})
        assert res.status_code == 401
        assert res.json() == {"message": "Invalid token"}

    def test_wrong_totp(self, client, mfa_secret):
        res = client.post(
            "/api/users/verify-mfa",
            json={"email": EMAIL, "token": wrong_code(mfa_secret), "isBackupCode": False},
        )
        assert res.status_code == 401
        assert res.json() == {"message": "Invalid token"}

    @pytest.mark.parametrize("is_backup,message", [(False, "Invalid token"), (True, "Invalid backup code")])
    def test_unknown_email_looks_like_wrong_code(self, client, is_backup, message):
        res = client.post(
            "/api/users/verify-mfa",
            json={"email": "nobody@x.com", "token": "123456", "isBackupCode": is_backup},
        )
        assert res.status_code == 401
        assert res.json() == {"message": message}

    def test_is_backup_code_defaults_to_totp(self, client, mfa_secret):
        res = client.post("/api/users/verify-mfa", json={"email": EMAIL, "token": pyotp.TOTP(mfa_secret).now()})
        assert res.status_code == 200


# ============================================
# Rate limiting
# ============================================

class TestRateLimit:

    @pytest.fixture
    def limited_client(self, settings):
        app = create_app(settings.model_copy(update={"RATE_LIMIT": "3/minute"}))
        with TestClient(app) as c:
            yield c

    def verify(self, client):
        return client.post("/api/users/verify-mfa", json={"email": EMAIL, "token": "123456"})

    def test_verify_mfa_is_limited(self, limited_client):
        for _ in range(3):
            assert self.verify(limited_client).status_code == 401
        res = self.verify(limited_client)
        assert res.status_code == 429
        assert res.json() == {"message": "Too many requests, please try again later."}

    def test_budget_is_shared_with_mfa_routes(self, limited_client):
        for _ in range(2):
            self.verify(limited_client)
        assert limited_client.get("/api/users/mfa/status").status_code == 401
        assert limited_client.get("/api/users/mfa/status").status_code == 429

    def test_login_is_not_limited(self, limited_client):
        for _ in range(5):
            res = limited_client.post("/api/users/login", json={"email": EMAIL, "password": PASSWORD})
            assert res.status_code == 401

    def test_disabled(self, settings):
        app = create_app(settings.model_copy(update={"RATE_LIMIT": "1/minute", "RATE_LIMIT_ENABLED": False}))
        with TestClient(app) as c:
            for _ in range(3):
                assert self.verify(c).status_code == 401
