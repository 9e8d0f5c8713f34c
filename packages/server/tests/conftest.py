"""
Shared fixtures: an isolated SQLite database per test, in-memory blob store
and revocation list, and an httpx client bound to a freshly built app.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine

from entraide_api.core.auth import LocalIdentityProvider
from entraide_api.core.config import Settings
from entraide_api.core.database import build_session_factory, init_db
from entraide_api.core.redis import InMemoryRevocationList
from entraide_api.core.storage import InMemoryBlobStore
from entraide_api.main import create_app


@dataclass
class RegisteredUser:
    id: str
    email: str
    password: str
    token: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'entraide.db'}",
        secret_key="test-secret-key-with-enough-length",
        bcrypt_rounds=4,
        use_in_memory_backends=True,
        log_level="WARNING",
    )


@pytest.fixture
async def engine(settings: Settings):
    engine = create_async_engine(settings.database_url)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def revocations() -> InMemoryRevocationList:
    return InMemoryRevocationList()


@pytest.fixture
def identity_provider(session_factory, settings, revocations) -> LocalIdentityProvider:
    return LocalIdentityProvider(session_factory, settings, revocations)


@pytest.fixture
def app(settings, session_factory, identity_provider, blob_store):
    return create_app(
        settings,
        session_factory=session_factory,
        identity_provider=identity_provider,
        blob_store=blob_store,
    )


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def register_user(client: AsyncClient):
    """Register through the API and return the user with a live session."""

    async def _register(name: str = "Alice Martin", email: str | None = None, password: str = "secret123", **extra):
        email = email or f"{name.split()[0].lower()}-{uuid.uuid4().hex[:8]}@example.com"
        response = await client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "name": name, **extra},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return RegisteredUser(
            id=body["user"]["id"],
            email=email,
            password=password,
            token=body["session"]["access_token"],
        )

    return _register


@pytest.fixture
async def alice(register_user) -> RegisteredUser:
    return await register_user("Alice Martin")


@pytest.fixture
async def bob(register_user) -> RegisteredUser:
    return await register_user("Bob Tremblay")


@pytest.fixture
def create_project(client: AsyncClient):
    async def _create(user: RegisteredUser, **overrides):
        body = {"location": "Montreal", "minPersonReq": 2, **overrides}
        response = await client.post("/api/projects", json=body, headers=user.headers)
        assert response.status_code == 201, response.text
        return response.json()["project"]

    return _create


@pytest.fixture
def create_resource(client: AsyncClient):
    async def _create(user: RegisteredUser, path: str = "materiel", **overrides):
        body = {"name": "Sandbags", "location": "Laval", **overrides}
        response = await client.post(f"/api/{path}", json=body, headers=user.headers)
        assert response.status_code == 201, response.text
        return response.json()[{"materiel": "materiel", "outils": "outil", "transport": "transport"}[path]]

    return _create
