"""
External Identity Broker

Google OAuth 2.0 authorization-code flow:

    AWAIT_REDIRECT        build the authorization URL, nothing stored
        | callback(code)  exchange code, fetch profile
        v
    AUTHENTICATED         known external id or email -> token pair
                          (an email-only match is linked first)
    PENDING_REGISTRATION  unknown identity -> signed registration token,
                          nothing stored until complete_registration()

The pending hand-off travels through the client as a PENDING_EXTERNAL
token so the profile fields cannot be altered before completion.
"""

import enum
import logging
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx

from app.exceptions import (
    AccountNotActiveError,
    AuthenticationError,
    CodeExchangeError,
    DuplicateEmailError,
    DuplicateExternalIdentityError,
    ProfileFetchError,
    ProviderNotConfiguredError,
    ValidationError,
)
from app.models.user import User
from app.services.directory_service import IdentityDirectory
from app.services.provisioning_service import (
    ExternalProfile,
    ProvisioningResult,
    ProvisioningService,
    normalize_email,
)
from app.services.token_service import TokenClass, TokenPair, TokenService

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


@dataclass(frozen=True)
class OAuthProviderConfig:
    name: str
    client_id: str | None
    client_secret: str | None
    callback_url: str
    authorize_url: str = GOOGLE_AUTHORIZE_URL
    token_url: str = GOOGLE_TOKEN_URL
    userinfo_url: str = GOOGLE_USERINFO_URL
    scopes: tuple[str, ...] = ("openid", "email", "profile")
    timeout_seconds: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


class BrokerState(str, enum.Enum):
    AWAIT_REDIRECT = "AWAIT_REDIRECT"
    AUTHENTICATED = "AUTHENTICATED"
    PENDING_REGISTRATION = "PENDING_REGISTRATION"


@dataclass
class CallbackOutcome:
    state: BrokerState
    profile: ExternalProfile
    user: User | None = None
    tokens: TokenPair | None = None
    registration_token: str | None = None


class ExternalIdentityBroker:
    def __init__(
        self,
        provider: OAuthProviderConfig,
        directory: IdentityDirectory,
        tokens: TokenService,
        provisioning: ProvisioningService,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider = provider
        self.directory = directory
        self.tokens = tokens
        self.provisioning = provisioning
        self._transport = transport

    def _require_configured(self) -> None:
        if not self.provider.configured:
            raise ProviderNotConfiguredError(self.provider.name)

    def authorization_url(self) -> str:
        """Build the redirect to the provider's consent screen."""
        self._require_configured()
        params = {
            "client_id": self.provider.client_id,
            "redirect_uri": self.provider.callback_url,
            "response_type": "code",
            "scope": " ".join(self.provider.scopes),
            "prompt": "select_account",
        }
        return f"{self.provider.authorize_url}?{urlencode(params)}"

    async def handle_callback(self, code: str | None) -> CallbackOutcome:
        self._require_configured()
        if not code:
            raise ValidationError("Authorization code is required", field="code")

        async with httpx.AsyncClient(timeout=self.provider.timeout_seconds, transport=self._transport) as client:
            access_token = await self._exchange_code(client, code)
            profile = await self._fetch_profile(client, access_token)

        user = await self.directory.find_user_by_external_id(profile.external_id)
        if user is None:
            user = await self.directory.find_user_by_email(profile.email)

        if user is None:
            registration_token = self.tokens.issue(
                profile.external_id,
                TokenClass.PENDING_EXTERNAL,
                extra_claims={
                    "email": profile.email,
                    "name": profile.name,
                    "avatar": profile.avatar,
                    "provider": profile.provider,
                },
            )
            logger.info("External identity pending registration: provider=%s", profile.provider)
            return CallbackOutcome(
                state=BrokerState.PENDING_REGISTRATION,
                profile=profile,
                registration_token=registration_token,
            )

        if user.external_id != profile.external_id:
            user = await self._link(user, profile)

        if not user.is_active:
            raise AccountNotActiveError()

        logger.info("External identity login: user_id=%s provider=%s", user.id, profile.provider)
        return CallbackOutcome(
            state=BrokerState.AUTHENTICATED,
            profile=profile,
            user=user,
            tokens=self.tokens.issue_pair(user.id),
        )

    async def _link(self, user: User, profile: ExternalProfile) -> User:
        user_id = user.id
        try:
            return await self.directory.link_external_identity(
                user_id, profile.external_id, avatar=profile.avatar, provider=profile.provider
            )
        except DuplicateExternalIdentityError:
            # A concurrent callback may have linked this identity first
            owner = await self.directory.find_user_by_external_id(profile.external_id)
            if owner is None:
                raise
            logger.info("External identity already linked concurrently: user_id=%s", owner.id)
            return owner

    async def _exchange_code(self, client: httpx.AsyncClient, code: str) -> str:
        try:
            response = await client.post(
                self.provider.token_url,
                data={
                    "code": code,
                    "client_id": self.provider.client_id,
                    "client_secret": self.provider.client_secret,
                    "redirect_uri": self.provider.callback_url,
                    "grant_type": "authorization_code",
                },
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"OAuth code exchange failed: {e}")
            raise CodeExchangeError(self.provider.name) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            logger.error("OAuth code exchange returned no access_token")
            raise CodeExchangeError(self.provider.name)
        return access_token

    async def _fetch_profile(self, client: httpx.AsyncClient, access_token: str) -> ExternalProfile:
        try:
            response = await client.get(
                self.provider.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"OAuth profile fetch failed: {e}")
            raise ProfileFetchError(self.provider.name) from e

        if not isinstance(data, dict):
            raise ProfileFetchError(self.provider.name)

        external_id = data.get("sub") or data.get("id")
        email = normalize_email(data.get("email"))
        if not external_id or not email:
            raise ProfileFetchError(self.provider.name, "External profile has no id or email")
        if data.get("email_verified") is False:
            raise ProfileFetchError(self.provider.name, "External account email is not verified")

        return ExternalProfile(
            external_id=str(external_id),
            email=email,
            name=data.get("name") or email.split("@")[0],
            avatar=data.get("picture"),
            provider=self.provider.name,
        )

    async def complete_registration(
        self,
        registration_token: str,
        tenant_name: str,
        external_id: str | None = None,
        email: str | None = None,
    ) -> ProvisioningResult:
        """
        Finish a PENDING_REGISTRATION hand-off by provisioning a tenant.

        The profile comes from the signed registration token. ``external_id``
        and ``email`` echoed back by the client must match it.
        """
        try:
            claims = self.tokens.decode(registration_token, TokenClass.PENDING_EXTERNAL)
        except AuthenticationError as e:
            raise ValidationError("Registration token is invalid or expired", field="registrationToken") from e

        profile = ExternalProfile(
            external_id=claims["sub"],
            email=normalize_email(claims.get("email")),
            name=claims.get("name") or "",
            avatar=claims.get("avatar"),
            provider=claims.get("provider") or self.provider.name,
        )
        if external_id is not None and external_id != profile.external_id:
            raise ValidationError("Registration data does not match the external identity", field="externalId")
        if email is not None and normalize_email(email) != profile.email:
            raise ValidationError("Registration data does not match the external identity", field="email")

        # Re-check: the identity may have been registered since the callback
        if await self.directory.find_user_by_external_id(profile.external_id) is not None:
            raise DuplicateExternalIdentityError(profile.external_id)
        if await self.directory.find_user_by_email(profile.email) is not None:
            raise DuplicateEmailError(profile.email)

        return await self.provisioning.register_tenant(
            email=profile.email,
            display_name=profile.name,
            password=None,
            tenant_name=tenant_name,
            external_identity=profile,
        )
