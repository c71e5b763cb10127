"""
Authentication Routes

POST /api/v1/auth/register-tenant  -> provision tenant + admin, 201
POST /api/v1/auth/login            -> credential login
POST /api/v1/auth/refresh          -> exchange refresh token for a new pair
GET  /api/v1/auth/me               -> profile of the bearer token's user
"""

import logging

from fastapi import APIRouter, Depends, status

from app.dependencies import get_auth_service, get_current_user, get_provisioning_service
from app.models.user import User
from app.schemas import (
    BranchSummary,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RefreshRequest,
    RegisterTenantRequest,
    RegisterTenantResponse,
    TenantSummary,
    Token,
    UserProfile,
)
from app.services.auth_service import AuthService
from app.services.provisioning_service import ProvisioningService

# Initialize logger
logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register-tenant", response_model=RegisterTenantResponse, status_code=status.HTTP_201_CREATED)
async def register_tenant(
    payload: RegisterTenantRequest,
    provisioning: ProvisioningService = Depends(get_provisioning_service),
):
    """
    Public registration: create a tenant, its main branch and its admin user.
    """
    result = await provisioning.register_tenant(
        email=payload.email,
        display_name=payload.name,
        password=payload.password,
        tenant_name=payload.tenant_name,
    )
    return RegisterTenantResponse(
        tokens=Token.from_pair(result.tokens),
        tenant=TenantSummary.from_tenant(result.tenant),
        user=UserProfile.from_user(result.user, tenant=result.tenant, branch=result.branch),
        branch=BranchSummary.from_branch(result.branch),
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    result = await auth_service.login(payload.email, payload.password)
    return LoginResponse(user=UserProfile.from_user(result.user), tokens=Token.from_pair(result.tokens))


@router.post("/refresh", response_model=LoginResponse)
async def refresh_tokens(
    payload: RefreshRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    result = await auth_service.refresh(payload.refresh_token)
    return LoginResponse(user=UserProfile.from_user(result.user), tokens=Token.from_pair(result.tokens))


@router.get("/me", response_model=MeResponse)
async def read_current_user(current_user: User = Depends(get_current_user)):
    return MeResponse(user=UserProfile.from_user(current_user))
