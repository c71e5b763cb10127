import asyncio
import logging
from dataclasses import dataclass

from app.auth import CredentialStore
from app.exceptions import AccountNotActiveError, AuthenticationError, InvalidCredentialsError
from app.models.user import User
from app.services.directory_service import IdentityDirectory
from app.services.provisioning_service import normalize_email
from app.services.token_service import TokenClass, TokenPair, TokenService

logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    user: User
    tokens: TokenPair


class AuthService:
    """Credential login and token refresh. Login never mutates stored state."""

    def __init__(self, directory: IdentityDirectory, credentials: CredentialStore, tokens: TokenService):
        self.directory = directory
        self.credentials = credentials
        self.tokens = tokens

    async def login(self, email: str, password: str) -> AuthResult:
        """
        Authenticate by email and password.

        Unknown email, an account without a password and a wrong password all
        raise the same InvalidCredentialsError. AccountNotActiveError is only
        raised once the password has matched, so it does not reveal whether
        an inactive account exists to someone who does not own it.
        """
        email = normalize_email(email)
        user = await self.directory.find_user_by_email(email) if email else None

        user = await self._check_credentials(user, email, password)
        logger.info(f"User logged in: {user.id}")
        return AuthResult(user=user, tokens=self.tokens.issue_pair(user.id))

    async def login_to_tenant(self, email: str, password: str, tenant_slug: str) -> AuthResult:
        """
        Authenticate a user of one specific tenant.

        The tenant must exist and be ACTIVE or TRIAL, and the user must belong
        to it. A missing or closed tenant and a user of another tenant fail
        exactly like an unknown email.
        """
        email = normalize_email(email)
        tenant = await self.directory.get_tenant_by_slug(tenant_slug) if tenant_slug else None
        user = await self.directory.find_user_by_email(email) if email and tenant is not None else None

        if tenant is None or not tenant.accepts_logins:
            logger.warning(f"Tenant login refused for tenant: {tenant_slug}")
            user = None
        elif user is not None and user.tenant_id != tenant.id:
            user = None

        user = await self._check_credentials(user, email, password)
        logger.info(f"User logged in to tenant {tenant.slug}: {user.id}")
        return AuthResult(user=user, tokens=self.tokens.issue_pair(user.id))

    async def _check_credentials(self, user: User | None, email: str, password: str) -> User:
        if user is None or not user.password_hash:
            await asyncio.to_thread(self.credentials.dummy_verify)
            logger.warning(f"Login failed for email: {email}")
            raise InvalidCredentialsError()

        if not await asyncio.to_thread(self.credentials.verify, password, user.password_hash):
            logger.warning(f"Invalid password attempt for email: {email}")
            raise InvalidCredentialsError()

        if not user.is_active:
            logger.warning(f"Login attempt on {user.status} account: {email}")
            raise AccountNotActiveError()

        return user

    async def refresh(self, refresh_token: str) -> AuthResult:
        """Exchange a valid refresh token for a new pair."""
        user_id = self.tokens.verify(refresh_token, TokenClass.REFRESH)
        user = await self.directory.get_user(user_id)
        if user is None:
            raise AuthenticationError("Invalid or inactive user")
        if not user.is_active:
            raise AccountNotActiveError()
        return AuthResult(user=user, tokens=self.tokens.issue_pair(user.id))
