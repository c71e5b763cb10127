"""
External Identity Routes (Google OAuth)

GET  /api/v1/auth/external-identity/start     -> 302 to the provider, 503 if unconfigured
GET  /api/v1/auth/external-identity/callback  -> 302 to the client app
POST /api/v1/auth/external-identity/complete  -> finish a pending registration

The browser is mid-navigation during the callback, so failures there are
reported as an ``error`` query parameter on a client redirect, never as JSON.
"""

import json
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, status
from fastapi.responses import RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from app.config import Settings
from app.dependencies import get_external_identity_broker, get_settings
from app.exceptions import (
    AccountNotActiveError,
    ConflictError,
    GridError,
    UpstreamError,
    ValidationError,
)
from app.schemas import (
    CompleteExternalRegistrationRequest,
    CompleteExternalRegistrationResponse,
    Token,
    UserProfile,
)
from app.services.external_identity_service import BrokerState, CallbackOutcome, ExternalIdentityBroker

logger = logging.getLogger(__name__)

router = APIRouter()


def client_redirect(config: Settings, path: str, params: dict) -> RedirectResponse:
    base_url = config.client_base_url.rstrip("/")
    return RedirectResponse(f"{base_url}{path}?{urlencode(params)}", status_code=status.HTTP_302_FOUND)


def error_redirect(config: Settings, code: str) -> RedirectResponse:
    return client_redirect(config, "/login", {"error": code})


def redirect_error_code(exc: GridError) -> str:
    if isinstance(exc, UpstreamError):
        return exc.redirect_code
    if isinstance(exc, AccountNotActiveError):
        return "account_not_active"
    if isinstance(exc, ConflictError):
        return "external_identity_conflict"
    if isinstance(exc, ValidationError):
        return "missing_code"
    return "external_auth_failed"


def outcome_redirect(config: Settings, outcome: CallbackOutcome) -> RedirectResponse:
    if outcome.state == BrokerState.AUTHENTICATED:
        profile = UserProfile.from_user(outcome.user)
        return client_redirect(
            config,
            "/auth/callback",
            {
                "accessToken": outcome.tokens.access_token,
                "refreshToken": outcome.tokens.refresh_token,
                "user": json.dumps(profile.model_dump(mode="json", by_alias=True)),
            },
        )

    profile = outcome.profile
    return client_redirect(
        config,
        "/complete-registration",
        {
            "externalId": profile.external_id,
            "email": profile.email,
            "name": profile.name,
            "avatar": profile.avatar or "",
            "provider": profile.provider,
            "registrationToken": outcome.registration_token,
        },
    )


@router.get("/start")
async def start_external_login(broker: ExternalIdentityBroker = Depends(get_external_identity_broker)):
    """Redirect to the provider's consent screen."""
    return RedirectResponse(broker.authorization_url(), status_code=status.HTTP_302_FOUND)


@router.get("/callback")
async def external_login_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    broker: ExternalIdentityBroker = Depends(get_external_identity_broker),
    config: Settings = Depends(get_settings),
):
    if error:
        logger.warning(f"External identity provider returned error: {error}")
        return error_redirect(config, "access_denied")

    try:
        outcome = await broker.handle_callback(code)
    except GridError as e:
        log = logger.error if e.status_code >= 500 and not isinstance(e, UpstreamError) else logger.warning
        log(f"External identity callback failed: {type(e).__name__}: {e.message}")
        return error_redirect(config, redirect_error_code(e))
    except SQLAlchemyError as e:
        logger.error(f"External identity callback failed on storage: {e}")
        return error_redirect(config, "external_auth_failed")

    return outcome_redirect(config, outcome)


@router.post("/complete", response_model=CompleteExternalRegistrationResponse)
async def complete_external_registration(
    payload: CompleteExternalRegistrationRequest,
    broker: ExternalIdentityBroker = Depends(get_external_identity_broker),
):
    result = await broker.complete_registration(
        registration_token=payload.registration_token,
        tenant_name=payload.tenant_name,
        external_id=payload.external_id,
        email=payload.email,
    )
    return CompleteExternalRegistrationResponse(
        tokens=Token.from_pair(result.tokens),
        user=UserProfile.from_user(result.user, tenant=result.tenant, branch=result.branch),
    )
