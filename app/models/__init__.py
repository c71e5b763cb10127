from .tenant import Tenant, TenantPlan, TenantStatus
from .branch import Branch
from .user import User, UserRole, UserStatus

__all__ = [
    "Tenant",
    "TenantPlan",
    "TenantStatus",
    "Branch",
    "User",
    "UserRole",
    "UserStatus",
]
