import os
# Override DATABASE_URL before any app imports to avoid PostgreSQL driver requirement
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
# Keep external integrations disabled by default for unit/API tests. Individual
# tests can opt-in by monkeypatching settings.
os.environ["MVP_DISABLE_LEMON"] = "true"
os.environ["CRON_SECRET"] = "test-cron-secret"

import uuid
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from hirecredits.platform.database import Base, get_db, get_session_factory
from hirecredits.main import app
from hirecredits.platform.middleware import _rate_limit_store
from hirecredits.components.credits import ledger
from hirecredits.models.company import Company
from hirecredits.models.credit_ledger import LedgerReason
from hirecredits.models.invitation import AssessmentInvitation
from hirecredits.models.user import User, UserRole
from hirecredits.shared.utils import utcnow

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Enable foreign key support for SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

def override_get_session_factory():
    return TestingSessionLocal

@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = override_get_session_factory
    Base.metadata.create_all(bind=engine)
    # Clear in-memory rate limit state between tests to prevent 429 bleed-through
    _rate_limit_store.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    _rate_limit_store.clear()


# ---------------------------------------------------------------------------
# Factory helpers: create test entities quickly and consistently
# ---------------------------------------------------------------------------

_counter = 0

def _unique_id() -> str:
    global _counter
    _counter += 1
    return f"{_counter}-{uuid.uuid4().hex[:8]}"


def make_company(db, name=None, credits=0):
    """Create a company with its balance row, optionally seeded with purchased credits."""
    company = Company(name=name or f"Company {_unique_id()}", slug=f"company-{_unique_id()}")
    db.add(company)
    db.flush()
    ledger.provision_balance(db, company.id)
    if credits:
        ledger.credit(
            db,
            company.id,
            credits,
            reason=LedgerReason.PURCHASE,
            external_ref=f"test:seed:{_unique_id()}",
        )
    db.commit()
    return company


def make_user(db, *, role=UserRole.CANDIDATE.value, company_id=None, email=None):
    user = User(
        email=email or f"{role}-{_unique_id()}@test.com",
        hashed_password="not-used",
        is_active=True,
        is_verified=True,
        role=role,
        company_id=company_id,
    )
    db.add(user)
    db.commit()
    return user


def age_invitation(db, invitation_id, days=1):
    """Move an invitation's deadline ``days`` into the past."""
    inv = db.query(AssessmentInvitation).filter(AssessmentInvitation.id == invitation_id).first()
    inv.expires_at = utcnow() - timedelta(days=days)
    db.commit()
    return inv


def seed_credits(company_id, credits):
    db = TestingSessionLocal()
    try:
        ledger.credit(
            db,
            company_id,
            credits,
            reason=LedgerReason.PURCHASE,
            external_ref=f"test:seed:{_unique_id()}",
        )
        db.commit()
    finally:
        db.close()


def set_role(email: str, role: str) -> None:
    db = TestingSessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        user.role = role
        db.commit()
    finally:
        db.close()


def get_user(email: str):
    db = TestingSessionLocal()
    try:
        return db.query(User).filter(User.email == email).first()
    finally:
        db.close()


def register_user(client, email=None, password="TestPass123!", full_name="Test User", role="candidate", company_name=None):
    """Register a user via the API. Returns the response."""
    email = email or f"user-{_unique_id()}@test.com"
    payload = {
        "email": email,
        "password": password,
        "full_name": full_name,
        "role": role,
    }
    if company_name is not None:
        payload["company_name"] = company_name
    resp = client.post("/api/v1/auth/register", json=payload)
    return resp


def login_user(client, email, password="TestPass123!"):
    """Log in a user via the API (FastAPI-Users JWT). Returns the response."""
    return client.post(
        "/api/v1/auth/jwt/login",
        data={"username": email, "password": password},
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )


def auth_headers(client, email=None, password="TestPass123!", full_name="Test User", role="recruiter", company_name="TestCo"):
    """Register and login a user and return Authorization headers + email.

    Returns (headers_dict, email) tuple.
    """
    email = email or f"user-{_unique_id()}@test.com"
    reg = register_user(
        client,
        email=email,
        password=password,
        full_name=full_name,
        role=role,
        company_name=company_name if role == "recruiter" else None,
    )
    assert reg.status_code == 201, f"Registration failed: {reg.text}"
    login_resp = login_user(client, email, password)
    assert login_resp.status_code == 200, f"Login failed: {login_resp.text}"
    token = login_resp.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}, email


def recruiter_headers(client, credits=0):
    """Recruiter with a freshly registered company. Returns (headers, email, company_id)."""
    headers, email = auth_headers(client, role="recruiter", company_name=f"Co {_unique_id()}")
    company_id = get_user(email).company_id
    if credits:
        seed_credits(company_id, credits)
    return headers, email, company_id


def candidate_headers(client):
    headers, email = auth_headers(client, role="candidate")
    return headers, email, get_user(email).id


def admin_headers(client):
    headers, email = auth_headers(client, role="candidate")
    set_role(email, UserRole.ADMIN.value)
    return headers, email
