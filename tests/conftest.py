from __future__ import annotations

import os
import uuid
from decimal import Decimal

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlmodel import Session, SQLModel, create_engine

from handoff.core.config import settings
from handoff.db import session as db_session_module
from handoff.db.session import get_session
from handoff.main import app
from handoff.models.client import Client
from handoff.models.project import Project
from handoff.models.user import Profile, User
from handoff.realtime.capture import install_change_capture, uninstall_change_capture
from handoff.realtime.feed import ChangeFeed
from handoff.utils.security import get_password_hash


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def db_engine(tmp_path):
    test_database_url = os.getenv("TEST_DATABASE_URL")
    if not test_database_url:
        db_path = tmp_path / f"test_{uuid.uuid4().hex}.db"
        test_database_url = f"sqlite:///{db_path}"

    is_postgres = test_database_url.startswith("postgresql")

    admin_engine = None
    schema_name = None

    if is_postgres:
        schema_name = f"test_{uuid.uuid4().hex}"
        admin_engine = create_engine(test_database_url, future=True)
        with admin_engine.connect() as conn:
            conn.execution_options(isolation_level="AUTOCOMMIT").execute(
                text(f'CREATE SCHEMA IF NOT EXISTS "{schema_name}"')
            )
        connect_args = {"options": f"-csearch_path={schema_name},public"}
        engine = create_engine(test_database_url, connect_args=connect_args, future=True)
    else:
        engine = create_engine(test_database_url, connect_args={"check_same_thread": False})

    SQLModel.metadata.create_all(bind=engine)

    original_engine = db_session_module.engine
    original_get_session = db_session_module.get_session

    db_session_module.engine = engine

    def _get_session():
        with Session(engine) as session:
            yield session

    db_session_module.get_session = _get_session

    def override_dependency():
        yield from _get_session()

    app.dependency_overrides[get_session] = override_dependency

    yield engine

    app.dependency_overrides.pop(get_session, None)
    db_session_module.get_session = original_get_session
    db_session_module.engine = original_engine
    engine.dispose()
    if is_postgres and admin_engine and schema_name:
        with admin_engine.connect() as conn:
            conn.execution_options(isolation_level="AUTOCOMMIT").execute(
                text(f'DROP SCHEMA IF EXISTS "{schema_name}" CASCADE')
            )
        admin_engine.dispose()


@pytest.fixture()
def storage_env(monkeypatch, tmp_path) -> None:
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir(exist_ok=True)
    monkeypatch.setenv("HANDOFF_STORAGE", str(storage_dir))
    yield


@pytest.fixture()
def client(db_engine, storage_env) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db_session(db_engine) -> Session:
    with Session(db_engine) as session:
        yield session


@pytest.fixture()
def session_factory(db_engine):
    def factory() -> Session:
        return Session(db_engine)

    return factory


@pytest.fixture()
def feed():
    change_feed = ChangeFeed()
    install_change_capture(change_feed)
    yield change_feed
    uninstall_change_capture(change_feed)


def create_owner(session: Session, email: str = "owner@example.com", org_name: str = "Studio") -> User:
    user = User(email=f"{uuid.uuid4().hex[:8]}_{email}", password_hash=get_password_hash("secret-pass"))
    session.add(user)
    session.flush()
    session.add(Profile(id=user.id, full_name="Owner", org_name=org_name, brand_color="#112233"))
    session.commit()
    session.refresh(user)
    return user


def create_client(session: Session, owner: User, name: str = "Acme") -> Client:
    client = Client(owner_user_id=owner.id, name=name, email="contact@acme.example.com")
    session.add(client)
    session.commit()
    session.refresh(client)
    return client


def create_project(
    session: Session,
    owner: User,
    client: Client | None,
    name: str = "Redesign",
    budget: str | None = None,
) -> Project:
    project = Project(
        owner_user_id=owner.id,
        client_id=client.id if client else None,
        name=name,
        budget=Decimal(budget) if budget else None,
    )
    session.add(project)
    session.commit()
    session.refresh(project)
    return project


def register_and_login(client: TestClient, email: str, password: str) -> tuple[dict[str, str], str]:
    unique_email = f"{uuid.uuid4().hex[:8]}_{email}"
    payload = {
        "email": unique_email,
        "password": password,
        "full_name": "Owner Teste",
        "org_name": "Studio Teste",
        "account_type": "agency",
    }
    register_response = client.post(f"{settings.api_v1_str}/auth/register", json=payload)
    assert register_response.status_code == status.HTTP_201_CREATED, register_response.json()

    login_response = client.post(
        f"{settings.api_v1_str}/auth/login",
        json={"email": unique_email, "password": password},
    )
    assert login_response.status_code == status.HTTP_200_OK, login_response.json()
    token = login_response.json()
    return token, unique_email


def auth_headers(token: dict[str, str]) -> dict[str, str]:
    return {"Authorization": f"Bearer {token['access_token']}"}
