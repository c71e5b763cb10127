from .token import RefreshRequest, Token
from .user import (
    BranchSummary,
    LoginRequest,
    LoginResponse,
    MeResponse,
    TenantLoginRequest,
    TenantSummary,
    UserProfile,
)
from .tenant import (
    CompleteExternalRegistrationRequest,
    CompleteExternalRegistrationResponse,
    RegisterTenantRequest,
    RegisterTenantResponse,
    TenantInfoResponse,
)

# Define the public API of this module
__all__ = [
    "Token",
    "RefreshRequest",
    "LoginRequest",
    "TenantLoginRequest",
    "LoginResponse",
    "MeResponse",
    "UserProfile",
    "BranchSummary",
    "TenantSummary",
    "RegisterTenantRequest",
    "RegisterTenantResponse",
    "CompleteExternalRegistrationRequest",
    "CompleteExternalRegistrationResponse",
    "TenantInfoResponse",
]
