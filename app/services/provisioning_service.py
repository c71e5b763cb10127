"""
Provisioning Service

Turns a registration request into a usable tenant: one TRIAL Tenant, its
"Principal" Branch and a founding ADMIN User, created together or not at
all, followed by a token pair for the new user.

Slug collisions are not auto-suffixed. A second tenant whose name derives
to an existing slug fails with DuplicateSlugError and the caller must pick
another name.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.auth import CredentialStore
from app.exceptions import DuplicateEmailError, DuplicateExternalIdentityError, ValidationError
from app.models.branch import DEFAULT_BRANCH_NAME, Branch
from app.models.tenant import Tenant, TenantPlan, TenantStatus
from app.models.user import LOCAL_PROVIDER, User, UserRole, UserStatus
from app.services.directory_service import BranchDraft, IdentityDirectory, TenantDraft, UserDraft
from app.services.token_service import TokenPair, TokenService
from app.utils.slugify import slugify

logger = logging.getLogger(__name__)

DEFAULT_LIMITS = {"maxUsers": 3, "maxProducts": 100, "maxSalesPerMonth": 500, "storageGB": 1}
DEFAULT_FEATURES = {"analytics": True, "multiCurrency": False, "api": False, "customReports": False}


def default_branding(company_name: str) -> dict:
    return {
        "logo": "",
        "primaryColor": "#10b981",
        "secondaryColor": "#3b82f6",
        "companyName": company_name,
    }


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


@dataclass(frozen=True)
class ExternalProfile:
    """Profile returned by an external identity provider."""

    external_id: str
    email: str
    name: str
    provider: str
    avatar: str | None = None


@dataclass
class ProvisioningResult:
    tenant: Tenant
    branch: Branch
    user: User
    tokens: TokenPair


class ProvisioningService:
    def __init__(
        self,
        directory: IdentityDirectory,
        credentials: CredentialStore,
        tokens: TokenService,
        trial_days: int = 14,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.directory = directory
        self.credentials = credentials
        self.tokens = tokens
        self.trial_days = trial_days
        self.clock = clock

    async def register_tenant(
        self,
        email: str | None,
        display_name: str | None,
        password: str | None,
        tenant_name: str | None,
        external_identity: ExternalProfile | None = None,
    ) -> ProvisioningResult:
        """
        Register a new tenant with its founding admin.

        Raises:
            ValidationError: missing email, name, tenant name or credential
            DuplicateEmailError: a user with the email already exists
            DuplicateExternalIdentityError: the external identity is taken
            DuplicateSlugError: the derived slug is taken
        """
        email = normalize_email(email or (external_identity.email if external_identity else None))
        display_name = (display_name or (external_identity.name if external_identity else "") or "").strip()
        tenant_name = (tenant_name or "").strip()

        if not email:
            raise ValidationError("Email is required", field="email")
        if not display_name:
            raise ValidationError("Name is required", field="name")
        if not tenant_name:
            raise ValidationError("Tenant name is required", field="tenantName")
        if not password and external_identity is None:
            raise ValidationError("Password is required", field="password")

        slug = slugify(tenant_name)
        if not slug:
            raise ValidationError("Tenant name must contain at least one letter or digit", field="tenantName")

        if await self.directory.find_user_by_email(email) is not None:
            logger.info("Registration rejected, email already registered: %s", email)
            raise DuplicateEmailError(email)
        if external_identity is not None:
            if await self.directory.find_user_by_external_id(external_identity.external_id) is not None:
                raise DuplicateExternalIdentityError(external_identity.external_id)

        password_hash = None
        if password:
            password_hash = await asyncio.to_thread(self.credentials.hash, password)

        return await self._provision(
            email=email,
            display_name=display_name,
            tenant_name=tenant_name,
            slug=slug,
            password_hash=password_hash,
            external_identity=external_identity,
        )

    async def _provision(
        self,
        email: str,
        display_name: str,
        tenant_name: str,
        slug: str,
        password_hash: str | None,
        external_identity: ExternalProfile | None,
    ) -> ProvisioningResult:
        tenant_draft = TenantDraft(
            name=tenant_name,
            slug=slug,
            email=email,
            plan=TenantPlan.TRIAL.value,
            status=TenantStatus.TRIAL.value,
            trial_ends=self.clock() + timedelta(days=self.trial_days),
            settings={"branding": default_branding(tenant_name)},
            limits=dict(DEFAULT_LIMITS),
            features=dict(DEFAULT_FEATURES),
        )
        branch_draft = BranchDraft(name=DEFAULT_BRANCH_NAME, email=email, is_main=True, active=True)
        user_draft = UserDraft(
            email=email,
            name=display_name,
            password_hash=password_hash,
            external_id=external_identity.external_id if external_identity else None,
            avatar=external_identity.avatar if external_identity else None,
            provider=external_identity.provider if external_identity else LOCAL_PROVIDER,
            role=UserRole.ADMIN.value,
            status=UserStatus.ACTIVE.value,
        )

        tenant, branch, user = await self.directory.create_tenant_branch_user(tenant_draft, branch_draft, user_draft)
        tokens = self.tokens.issue_pair(user.id)
        logger.info(
            "Tenant provisioned: tenant_id=%s slug=%s user_id=%s provider=%s",
            tenant.id,
            tenant.slug,
            user.id,
            user.provider,
        )
        return ProvisioningResult(tenant=tenant, branch=branch, user=user, tokens=tokens)
