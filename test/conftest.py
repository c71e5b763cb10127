"""
Pytest configuration and fixtures for Grid Manager tests
"""

import os
import sys
from collections.abc import AsyncGenerator
from datetime import timedelta

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

from app.auth import CredentialStore  # noqa: E402
from app.config import Settings  # noqa: E402
from app.database import Base, get_db  # noqa: E402
from app.dependencies import (  # noqa: E402
    get_credential_store,
    get_http_transport,
    get_oauth_provider_config,
    get_settings,
    get_token_service,
)
from app.models.user import User  # noqa: E402
from app.services.auth_service import AuthService  # noqa: E402
from app.services.directory_service import BranchDraft, IdentityDirectory, TenantDraft, UserDraft  # noqa: E402
from app.services.external_identity_service import ExternalIdentityBroker, OAuthProviderConfig  # noqa: E402
from app.services.provisioning_service import ProvisioningService  # noqa: E402
from app.services.token_service import TokenService  # noqa: E402
from main import app  # noqa: E402
from utils.mocks import (  # noqa: E402
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    CALLBACK_URL,
    CLIENT_BASE_URL,
    NOW,
    TEST_SECRET_KEY,
    FakeOAuthServer,
    FrozenClock,
)


@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    """A fresh SQLite database file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def credentials() -> CredentialStore:
    # Minimum bcrypt cost keeps the suite fast
    return CredentialStore(rounds=4)


@pytest.fixture
def token_service(clock) -> TokenService:
    return TokenService(secret_key=TEST_SECRET_KEY, clock=clock)


@pytest.fixture
def directory(test_db) -> IdentityDirectory:
    return IdentityDirectory(test_db)


@pytest.fixture
def provisioning(directory, credentials, token_service, clock) -> ProvisioningService:
    return ProvisioningService(directory, credentials, token_service, trial_days=14, clock=clock)


@pytest.fixture
def auth_service(directory, credentials, token_service) -> AuthService:
    return AuthService(directory, credentials, token_service)


@pytest.fixture
def oauth_provider() -> OAuthProviderConfig:
    return OAuthProviderConfig(
        name="google",
        client_id="test-client-id",
        client_secret="test-client-secret",
        callback_url=CALLBACK_URL,
    )


@pytest.fixture
def oauth_server() -> FakeOAuthServer:
    return FakeOAuthServer()


@pytest.fixture
def broker(oauth_provider, directory, token_service, provisioning, oauth_server) -> ExternalIdentityBroker:
    return ExternalIdentityBroker(
        oauth_provider, directory, token_service, provisioning, transport=oauth_server.transport
    )


@pytest.fixture
async def admin_user(directory, credentials) -> User:
    """An ACTIVE ADMIN with a local password, in tenant 'acme'."""
    _, _, user = await directory.create_tenant_branch_user(
        TenantDraft(name="Acme", slug="acme", email=ADMIN_EMAIL, trial_ends=NOW + timedelta(days=14)),
        BranchDraft(email=ADMIN_EMAIL),
        UserDraft(email=ADMIN_EMAIL, name="Admin", password_hash=credentials.hash(ADMIN_PASSWORD)),
    )
    return user


@pytest.fixture
async def client(
    session_factory, credentials, token_service, oauth_provider, oauth_server
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to the app, with storage and outbound OAuth calls redirected to test doubles."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    test_settings = Settings(secret_key=TEST_SECRET_KEY, client_base_url=CLIENT_BASE_URL)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_credential_store] = lambda: credentials
    app.dependency_overrides[get_token_service] = lambda: token_service
    app.dependency_overrides[get_oauth_provider_config] = lambda: oauth_provider
    app.dependency_overrides[get_http_transport] = lambda: oauth_server.transport

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client

    app.dependency_overrides.clear()


@pytest.fixture
def bearer(token_service):
    """Build an Authorization header for a user id."""

    def _bearer(user_id: str) -> dict:
        return {"Authorization": f"Bearer {token_service.issue_pair(user_id).access_token}"}

    return _bearer
