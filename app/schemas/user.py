from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.branch import Branch
from app.models.tenant import Tenant
from app.models.user import User
from app.schemas.token import Token


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="A valid email address.")
    password: str = Field(..., min_length=1, max_length=128)


class TenantLoginRequest(LoginRequest):
    model_config = ConfigDict(populate_by_name=True)

    tenant_slug: str = Field(..., alias="tenantSlug", min_length=1, max_length=50)


class BranchSummary(BaseModel):
    id: str
    name: str

    @classmethod
    def from_branch(cls, branch: Optional[Branch]) -> Optional["BranchSummary"]:
        if branch is None:
            return None
        return cls(id=branch.id, name=branch.name)


class TenantSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    slug: str
    plan: str
    status: str
    trial_ends: Optional[datetime] = Field(None, alias="trialEnds")

    @classmethod
    def from_tenant(cls, tenant: Optional[Tenant]) -> Optional["TenantSummary"]:
        if tenant is None:
            return None
        return cls(
            id=tenant.id,
            name=tenant.name,
            slug=tenant.slug,
            plan=tenant.plan,
            status=tenant.status,
            trial_ends=tenant.trial_ends,
        )


class UserProfile(BaseModel):
    """Public profile of an authenticated user. Never carries credentials."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    email: str
    name: str
    role: str
    status: str
    provider: str
    avatar: Optional[str] = None
    branch_id: Optional[str] = Field(None, alias="branchId")
    branch: Optional[BranchSummary] = None
    tenant: Optional[TenantSummary] = None

    @classmethod
    def from_user(
        cls,
        user: User,
        tenant: Optional[Tenant] = None,
        branch: Optional[Branch] = None,
    ) -> "UserProfile":
        return cls(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            status=user.status,
            provider=user.provider,
            avatar=user.avatar,
            branch_id=user.branch_id,
            branch=BranchSummary.from_branch(branch if branch is not None else user.branch),
            tenant=TenantSummary.from_tenant(tenant if tenant is not None else user.tenant),
        )


class LoginResponse(BaseModel):
    user: UserProfile
    tokens: Token


class MeResponse(BaseModel):
    user: UserProfile

