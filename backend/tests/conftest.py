"""
Shared fixtures: in-memory database, record store, users and API client.
"""
from datetime import date
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from crm_engine.database import Base, get_db
from crm_engine.main import app
from crm_engine.models import Contact, Deal, Organization, PipelineStage, User, UserRole
from crm_engine.schemas.common import ActingUser
from crm_engine.services.audit_log_service import AuditLogStore
from crm_engine.services.auth_service import get_auth_service
from crm_engine.services.record_store import SQLAlchemyRecordStore


# ============================================================================
# Database Test Setup
# ============================================================================

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Isolated database session; tables are dropped after each test."""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def store(db_session: Session) -> SQLAlchemyRecordStore:
    return SQLAlchemyRecordStore(db_session)


@pytest.fixture
def audit_log(db_session: Session) -> AuditLogStore:
    return AuditLogStore(db_session)


# ============================================================================
# Users
# ============================================================================

def _make_user(db: Session, email: str, role: str) -> User:
    user = User(email=email, full_name=email.split("@")[0].title(), role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session: Session) -> User:
    return _make_user(db_session, "admin@example.com", UserRole.ADMIN)


@pytest.fixture
def member_user(db_session: Session) -> User:
    return _make_user(db_session, "member@example.com", UserRole.MEMBER)


@pytest.fixture
def admin(admin_user: User) -> ActingUser:
    return ActingUser.model_validate(admin_user)


@pytest.fixture
def member(member_user: User) -> ActingUser:
    return ActingUser.model_validate(member_user)


# ============================================================================
# Seed records
# ============================================================================

@pytest.fixture
def acme(db_session: Session) -> Organization:
    org = Organization(name="Acme Corp", domain="acme.com", industry="Manufacturing")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def contacts(db_session: Session, acme: Organization):
    """Three contacts, the first two at Acme."""
    records = [
        Contact(first_name="Jane", last_name="Doe", email="jane@acme.com",
                lead_score=40, status="prospect", company_id=acme.id),
        Contact(first_name="John", last_name="Roe", email="john@acme.com",
                lead_score=75, status="customer", company_id=acme.id),
        Contact(first_name="Ann", last_name="Lee", email="ann@solo.dev", lead_score=10),
    ]
    records[0].tags = ["vip"]
    records[1].tags = ["newsletter", "partner"]
    db_session.add_all(records)
    db_session.commit()
    return records


@pytest.fixture
def stages(db_session: Session):
    records = [
        PipelineStage(name="Qualified", probability=25, position=1),
        PipelineStage(name="Proposal", probability=60, position=2),
    ]
    db_session.add_all(records)
    db_session.commit()
    return records


@pytest.fixture
def deals(db_session: Session, acme: Organization, stages):
    records = [
        Deal(title="Acme renewal", value=12000.0, probability=25, status="open",
             stage_id=stages[0].id, company_id=acme.id,
             expected_close_date=date(2026, 12, 1)),
        Deal(title="Pilot", value=1500.0, probability=10, status="open"),
    ]
    db_session.add_all(records)
    db_session.commit()
    return records


# ============================================================================
# API client
# ============================================================================

@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """TestClient whose requests share the test session."""

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers_for(user: User) -> dict:
    token = get_auth_service().create_access_token(user.id, user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_headers_for(admin_user)


@pytest.fixture
def member_headers(member_user: User) -> dict:
    return auth_headers_for(member_user)
