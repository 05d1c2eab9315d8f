"""Authentication tests — signup per role, login with role check, JWT, password policy, role guards."""

import os
import sys

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from crowdfund.database import Base, get_db
from crowdfund.main import app
from crowdfund.models.user import User
from crowdfund.schemas.auth_schema import validate_password_strength
from crowdfund.services.auth_utils import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

# ---------------------------------------------------------------------------
# Test database setup (file-based SQLite for compatibility)
# ---------------------------------------------------------------------------
TEST_DATABASE_URL = "sqlite:///./test_auth.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Strong password that passes all rules
STRONG_PW = "Str0ng!Pass"


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


client = TestClient(app)


@pytest.fixture(autouse=True)
def setup_db():
    """Create tables before each test, drop after."""
    app.dependency_overrides[get_db] = override_get_db
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides.pop(get_db, None)


def _signup(email, role, **extra):
    body = {
        "email": email,
        "password": STRONG_PW,
        "first_name": "Test",
        "last_name": "User",
        "role": role,
    }
    if role == "startup":
        body.setdefault("company_name", "Acme Robotics")
        body.setdefault("sector", "robotics")
    if role == "investor":
        body.setdefault("investor_type", "individual")
    body.update(extra)
    return client.post("/auth/signup", json=body)


def _login(email, role, password=STRONG_PW):
    return client.post("/auth/login", json={"email": email, "password": password, "role": role})


# ===================================================================== #
#  Unit tests: auth_utils                                                 #
# ===================================================================== #

class TestPasswordHashing:
    def test_hash_and_verify(self):
        pw = "securePassword123!"
        hashed = hash_password(pw)
        assert hashed != pw
        assert verify_password(pw, hashed) is True

    def test_wrong_password(self):
        hashed = hash_password("Correct1!")
        assert verify_password("wrong", hashed) is False


class TestJWT:
    def test_create_and_decode(self):
        token = create_access_token("user-123", "test@example.com", "investor")
        payload = decode_access_token(token)
        assert payload is not None
        assert payload["sub"] == "user-123"
        assert payload["email"] == "test@example.com"
        assert payload["role"] == "investor"

    def test_invalid_token(self):
        assert decode_access_token("garbage.token.here") is None

    def test_expired_token(self):
        token = create_access_token("user-123", "test@example.com", "investor", expires_minutes=-1)
        assert decode_access_token(token) is None


# ===================================================================== #
#  Unit tests: password policy                                             #
# ===================================================================== #

class TestPasswordPolicy:
    def test_strong_password_accepted(self):
        result = validate_password_strength(STRONG_PW)
        assert result == STRONG_PW

    def test_weak_no_uppercase(self):
        with pytest.raises(ValueError, match="uppercase"):
            validate_password_strength("weak1pass!")

    def test_weak_no_number(self):
        with pytest.raises(ValueError, match="number"):
            validate_password_strength("WeakPass!!")

    def test_weak_no_special(self):
        with pytest.raises(ValueError, match="special"):
            validate_password_strength("WeakPass11")

    def test_weak_too_short(self):
        with pytest.raises(ValueError, match="8 characters"):
            validate_password_strength("Ab1!")

    def test_common_password_rejected(self):
        with pytest.raises(ValueError, match="common"):
            validate_password_strength("Password1!")  # "password" is common


# ===================================================================== #
#  Integration tests: auth routes                                         #
# ===================================================================== #

class TestSignup:
    def test_signup_startup_creates_profile(self):
        resp = _signup("founder@example.com", "startup")
        assert resp.status_code == 201

        login = _login("founder@example.com", "startup")
        assert login.status_code == 200
        assert login.json()["user"]["startup_id"] is not None

    def test_signup_investor(self):
        resp = _signup("investor@example.com", "investor", investor_type="corporate")
        assert resp.status_code == 201

    def test_signup_committee(self):
        resp = _signup("committee@example.com", "committee")
        assert resp.status_code == 201

    def test_signup_duplicate_email(self):
        _signup("dup@example.com", "investor")
        resp = _signup("dup@example.com", "committee")
        assert resp.status_code == 409

    def test_signup_admin_role_rejected(self):
        resp = _signup("sneaky@example.com", "admin")
        assert resp.status_code == 422

    def test_signup_startup_requires_company(self):
        resp = _signup("nocompany@example.com", "startup", company_name="")
        assert resp.status_code == 422

    def test_signup_investor_requires_type(self):
        resp = client.post("/auth/signup", json={
            "email": "notype@example.com",
            "password": STRONG_PW,
            "first_name": "No",
            "last_name": "Type",
            "role": "investor",
        })
        assert resp.status_code == 422

    def test_signup_weak_password_rejected(self):
        resp = _signup("weak@example.com", "committee", password="weakpass")
        assert resp.status_code == 422


class TestLogin:
    def test_login_success(self):
        _signup("login@example.com", "investor")
        resp = _login("login@example.com", "investor")
        assert resp.status_code == 200
        data = resp.json()
        assert "access_token" in data
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "investor"
        assert decode_access_token(data["access_token"])["role"] == "investor"

    def test_login_wrong_password(self):
        _signup("login@example.com", "investor")
        resp = _login("login@example.com", "investor", password="WrongPass1!")
        assert resp.status_code == 401

    def test_login_wrong_role(self):
        _signup("login@example.com", "investor")
        resp = _login("login@example.com", "startup")
        assert resp.status_code == 401

    def test_login_nonexistent_email(self):
        resp = _login("nobody@example.com", "investor")
        assert resp.status_code == 401

    def test_login_deactivated_account(self):
        _signup("gone@example.com", "committee")
        db = TestingSessionLocal()
        user = db.query(User).filter(User.email == "gone@example.com").first()
        user.is_active = False
        db.commit()
        db.close()

        resp = _login("gone@example.com", "committee")
        assert resp.status_code == 403


class TestProtectedRoutes:
    def _get_auth_header(self, email="protected@example.com", role="investor"):
        _signup(email, role)
        token = _login(email, role).json()["access_token"]
        return {"Authorization": f"Bearer {token}"}

    def test_me_requires_auth(self):
        resp = client.get("/auth/me")
        assert resp.status_code in (401, 403)

    def test_me_with_auth(self):
        headers = self._get_auth_header()
        resp = client.get("/auth/me", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["email"] == "protected@example.com"
        assert data["role"] == "investor"

    def test_refresh_issues_new_token(self):
        headers = self._get_auth_header()
        resp = client.post("/auth/refresh", headers=headers)
        assert resp.status_code == 200
        assert decode_access_token(resp.json()["access_token"])["email"] == "protected@example.com"

    def test_garbage_token_rejected(self):
        resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_role_guard_blocks_other_roles(self):
        headers = self._get_auth_header("committee@example.com", "committee")
        resp = client.post("/commitments", headers=headers, json={
            "round_id": "00000000-0000-0000-0000-000000000000",
            "amount": 1000,
        })
        assert resp.status_code == 403

    def test_admin_routes_block_investors(self):
        headers = self._get_auth_header()
        resp = client.post("/rounds/00000000-0000-0000-0000-000000000000/approve", headers=headers)
        assert resp.status_code == 403
