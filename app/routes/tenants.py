"""
Public Tenant Routes

GET  /api/v1/tenants/info/{slug} -> public branding and plan of a tenant
POST /api/v1/tenants/login       -> credential login scoped to one tenant

Used by the client login page to render tenant branding before the user
has authenticated. Cancelled tenants are reported as not found.
"""

import logging

from fastapi import APIRouter, Depends

from app.dependencies import get_auth_service, get_identity_directory
from app.exceptions import NotFoundError
from app.models.tenant import TenantStatus
from app.schemas import LoginResponse, TenantInfoResponse, TenantLoginRequest, Token, UserProfile
from app.services.auth_service import AuthService
from app.services.directory_service import IdentityDirectory
from app.services.provisioning_service import default_branding

router = APIRouter(tags=["Tenants"])
logger = logging.getLogger(__name__)


@router.get("/info/{slug}", response_model=TenantInfoResponse)
async def get_tenant_info(
    slug: str,
    directory: IdentityDirectory = Depends(get_identity_directory),
):
    tenant = await directory.get_tenant_by_slug(slug)
    if tenant is None or tenant.status == TenantStatus.CANCELLED.value:
        raise NotFoundError("Tenant", slug)

    branding = (tenant.settings or {}).get("branding") or default_branding(tenant.name)
    return TenantInfoResponse(
        name=tenant.name,
        slug=tenant.slug,
        plan=tenant.plan,
        status=tenant.status,
        branding=branding,
    )


@router.post("/login", response_model=LoginResponse)
async def login_to_tenant(
    payload: TenantLoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Refused with 401 unless the tenant is ACTIVE or TRIAL and the user belongs to it."""
    result = await auth_service.login_to_tenant(payload.email, payload.password, payload.tenant_slug)
    return LoginResponse(user=UserProfile.from_user(result.user), tokens=Token.from_pair(result.tokens))
