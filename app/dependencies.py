"""
FastAPI dependency providers.

Services are built per request from the application Settings and the
request's database session. Tests override these providers through
``app.dependency_overrides``.
"""

import logging
from datetime import timedelta

import httpx
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import CredentialStore, credential_store
from app.config import DEFAULT_SECRET_KEY, Settings, settings
from app.database import get_db
from app.exceptions import AccountNotActiveError, AuthenticationError
from app.models.user import User
from app.services.auth_service import AuthService
from app.services.directory_service import IdentityDirectory
from app.services.external_identity_service import ExternalIdentityBroker, OAuthProviderConfig
from app.services.provisioning_service import ProvisioningService
from app.services.token_service import TokenClass, TokenService

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

if settings.secret_key == DEFAULT_SECRET_KEY:
    logger.warning("Using default SECRET_KEY. This is insecure and should be changed in production!")


def get_settings() -> Settings:
    return settings


def get_token_service(config: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(
        secret_key=config.secret_key,
        access_ttl=timedelta(minutes=config.access_token_expire_minutes),
        refresh_ttl=timedelta(days=config.refresh_token_expire_days),
        pending_ttl=timedelta(minutes=config.pending_registration_expire_minutes),
    )


def get_credential_store() -> CredentialStore:
    return credential_store


def get_identity_directory(db: AsyncSession = Depends(get_db)) -> IdentityDirectory:
    return IdentityDirectory(db)


def get_provisioning_service(
    directory: IdentityDirectory = Depends(get_identity_directory),
    credentials: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service),
    config: Settings = Depends(get_settings),
) -> ProvisioningService:
    return ProvisioningService(directory, credentials, tokens, trial_days=config.trial_days)


def get_auth_service(
    directory: IdentityDirectory = Depends(get_identity_directory),
    credentials: CredentialStore = Depends(get_credential_store),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(directory, credentials, tokens)


def get_oauth_provider_config(config: Settings = Depends(get_settings)) -> OAuthProviderConfig:
    return OAuthProviderConfig(
        name="google",
        client_id=config.google_client_id,
        client_secret=config.google_client_secret,
        callback_url=config.google_callback_url,
        timeout_seconds=config.external_http_timeout_seconds,
    )


def get_http_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for outbound OAuth calls; None uses httpx's default."""
    return None


def get_external_identity_broker(
    provider: OAuthProviderConfig = Depends(get_oauth_provider_config),
    directory: IdentityDirectory = Depends(get_identity_directory),
    tokens: TokenService = Depends(get_token_service),
    provisioning: ProvisioningService = Depends(get_provisioning_service),
    transport: httpx.AsyncBaseTransport | None = Depends(get_http_transport),
) -> ExternalIdentityBroker:
    return ExternalIdentityBroker(provider, directory, tokens, provisioning, transport=transport)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
    directory: IdentityDirectory = Depends(get_identity_directory),
) -> User:
    """Resolve the bearer access token to an active user."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Access token required")

    user_id = tokens.verify(credentials.credentials, TokenClass.ACCESS)
    user = await directory.get_user(user_id)
    if user is None:
        logger.warning(f"Token subject no longer exists: {user_id}")
        raise AuthenticationError("Invalid or inactive user")
    if not user.is_active:
        raise AccountNotActiveError()
    return user
