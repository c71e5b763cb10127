from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.schemas.token import Token
from app.schemas.user import BranchSummary, TenantSummary, UserProfile


class RegisterTenantRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr = Field(..., description="Email of the founding administrator.")
    name: str = Field(..., min_length=1, max_length=200, description="Administrator display name.")
    password: str = Field(..., min_length=6, max_length=128, description="Password must be between 6 and 128 characters.")
    tenant_name: str = Field(..., alias="tenantName", min_length=1, max_length=200)


class RegisterTenantResponse(BaseModel):
    tokens: Token
    tenant: TenantSummary
    user: UserProfile
    branch: BranchSummary


class CompleteExternalRegistrationRequest(BaseModel):
    """
    Body of the external registration completion call.

    Profile fields are echoed from the callback redirect; the signed
    registration token is authoritative and the echoed id/email must match it.
    """

    model_config = ConfigDict(populate_by_name=True)

    registration_token: str = Field(..., alias="registrationToken", min_length=1)
    tenant_name: str = Field(..., alias="tenantName", min_length=1, max_length=200)
    external_id: Optional[str] = Field(None, alias="externalId")
    email: Optional[EmailStr] = None
    name: Optional[str] = None
    avatar: Optional[str] = None


class CompleteExternalRegistrationResponse(BaseModel):
    tokens: Token
    user: UserProfile


class TenantInfoResponse(BaseModel):
    name: str
    slug: str
    plan: str
    status: str
    branding: dict[str, Any]
