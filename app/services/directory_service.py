"""
Identity Directory

Durable storage of Tenants, Branches and Users on an injected AsyncSession.
Uniqueness (tenant slug, tenant email, user email, user external id) is
enforced by named unique constraints in the database; this module only
translates constraint violations into the directory error types.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    DirectoryIntegrityError,
    DuplicateEmailError,
    DuplicateExternalIdentityError,
    DuplicateSlugError,
    GridError,
    NotFoundError,
)
from app.models.branch import DEFAULT_BRANCH_NAME, Branch
from app.models.tenant import Tenant, TenantPlan, TenantStatus
from app.models.user import LOCAL_PROVIDER, User, UserRole, UserStatus

logger = logging.getLogger(__name__)


@dataclass
class TenantDraft:
    name: str
    slug: str
    email: str
    trial_ends: datetime | None = None
    plan: str = TenantPlan.TRIAL.value
    status: str = TenantStatus.TRIAL.value
    phone: str | None = None
    settings: dict[str, Any] = field(default_factory=dict)
    limits: dict[str, Any] = field(default_factory=dict)
    features: dict[str, Any] = field(default_factory=dict)


@dataclass
class BranchDraft:
    name: str = DEFAULT_BRANCH_NAME
    address: str = ""
    phone: str = ""
    email: str | None = None
    is_main: bool = True
    active: bool = True


@dataclass
class UserDraft:
    email: str
    name: str
    password_hash: str | None = None
    external_id: str | None = None
    avatar: str | None = None
    provider: str = LOCAL_PROVIDER
    role: str = UserRole.ADMIN.value
    status: str = UserStatus.ACTIVE.value


# Constraint name (PostgreSQL) and table.column (SQLite) markers per error
_CONSTRAINT_MARKERS = (
    (("uq_tenants_slug", "tenants.slug"), "tenant_slug"),
    (("uq_tenants_email", "tenants.email"), "tenant_email"),
    (("uq_users_email", "users.email"), "user_email"),
    (("uq_users_external_id", "users.external_id"), "user_external_id"),
)


def map_integrity_error(
    exc: IntegrityError,
    slug: str | None = None,
    email: str | None = None,
    external_id: str | None = None,
) -> GridError:
    """Translate a unique-constraint violation into a directory error."""
    text = str(getattr(exc, "orig", None) or exc)
    for markers, kind in _CONSTRAINT_MARKERS:
        if any(marker in text for marker in markers):
            if kind == "tenant_slug":
                return DuplicateSlugError(slug)
            if kind == "tenant_email":
                return DuplicateEmailError(email, resource_type="Tenant")
            if kind == "user_email":
                return DuplicateEmailError(email)
            return DuplicateExternalIdentityError(external_id)
    logger.error(f"Unexpected integrity violation: {text}")
    return DirectoryIntegrityError(operation="integrity")


class IdentityDirectory:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_user_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def find_user_by_external_id(self, external_id: str) -> User | None:
        result = await self.db.execute(select(User).where(User.external_id == external_id))
        return result.scalars().first()

    async def get_user(self, user_id: str) -> User | None:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalars().first()

    async def get_tenant_by_slug(self, slug: str) -> Tenant | None:
        result = await self.db.execute(select(Tenant).where(Tenant.slug == slug))
        return result.scalars().first()

    async def create_tenant_branch_user(
        self,
        tenant_draft: TenantDraft,
        branch_draft: BranchDraft,
        user_draft: UserDraft,
    ) -> tuple[Tenant, Branch, User]:
        """
        Create a Tenant, its Branch and its first User in one transaction.

        Rows are flushed in Tenant -> Branch -> User order and committed
        together. Any constraint violation rolls back all three.
        """
        if not user_draft.password_hash and not user_draft.external_id:
            raise DirectoryIntegrityError(
                "User must have a password hash or an external identity", operation="create_user"
            )

        try:
            tenant = Tenant(
                name=tenant_draft.name,
                slug=tenant_draft.slug,
                email=tenant_draft.email,
                phone=tenant_draft.phone,
                plan=tenant_draft.plan,
                status=tenant_draft.status,
                trial_ends=tenant_draft.trial_ends,
                settings=tenant_draft.settings,
                limits=tenant_draft.limits,
                features=tenant_draft.features,
            )
            self.db.add(tenant)
            await self.db.flush()

            branch = Branch(
                tenant=tenant,
                name=branch_draft.name,
                address=branch_draft.address,
                phone=branch_draft.phone,
                email=branch_draft.email,
                is_main=branch_draft.is_main,
                active=branch_draft.active,
            )
            self.db.add(branch)
            await self.db.flush()

            user = User(
                tenant=tenant,
                branch=branch,
                email=user_draft.email,
                name=user_draft.name,
                password_hash=user_draft.password_hash,
                external_id=user_draft.external_id,
                avatar=user_draft.avatar,
                provider=user_draft.provider,
                role=user_draft.role,
                status=user_draft.status,
            )
            self.db.add(user)
            await self.db.flush()

            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise map_integrity_error(
                e, slug=tenant_draft.slug, email=user_draft.email, external_id=user_draft.external_id
            ) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Tenant provisioning transaction failed: {e}")
            raise DirectoryIntegrityError(operation="create_tenant_branch_user") from e

        logger.info("Tenant created: id=%s slug=%s", tenant.id, tenant.slug)
        return tenant, branch, user

    async def link_external_identity(
        self,
        user_id: str,
        external_id: str,
        avatar: str | None = None,
        provider: str | None = None,
    ) -> User:
        """
        Attach ``external_id`` to an existing user.

        A no-op when the user already carries the same external id. Fails with
        DuplicateExternalIdentityError when the id belongs to another user or
        the user is already linked to a different identity.
        """
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        if user.external_id == external_id:
            return user
        if user.external_id is not None:
            raise DuplicateExternalIdentityError(external_id)

        owner = await self.find_user_by_external_id(external_id)
        if owner is not None and owner.id != user.id:
            raise DuplicateExternalIdentityError(external_id)

        email = user.email
        user.external_id = external_id
        if avatar:
            user.avatar = avatar
        if provider:
            user.provider = provider
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise map_integrity_error(e, email=email, external_id=external_id) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"External identity link failed: {e}")
            raise DirectoryIntegrityError(operation="link_external_identity") from e

        logger.info("External identity linked: user_id=%s provider=%s", user.id, user.provider)
        return user
