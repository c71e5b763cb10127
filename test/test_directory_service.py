"""
Tests for the identity directory

Runs against a real SQLite database so the unique constraints and the
single-transaction tenant/branch/user creation are exercised.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError, OperationalError

from app.exceptions import (
    DirectoryIntegrityError,
    DuplicateEmailError,
    DuplicateExternalIdentityError,
    DuplicateSlugError,
    NotFoundError,
)
from app.models import Branch, Tenant, User
from app.services.directory_service import BranchDraft, TenantDraft, UserDraft, map_integrity_error
from utils.mocks import ADMIN_EMAIL, NOW, count_rows


def drafts(slug="globex", email="owner@globex.com", user_email=None, password_hash="$2b$04$hash", external_id=None):
    return (
        TenantDraft(name="Globex", slug=slug, email=email, trial_ends=NOW + timedelta(days=14)),
        BranchDraft(email=email),
        UserDraft(
            email=user_email or email,
            name="Owner",
            password_hash=password_hash,
            external_id=external_id,
        ),
    )


class TestCreateTenantBranchUser:
    async def test_creates_all_three_linked(self, directory, test_db):
        tenant, branch, user = await directory.create_tenant_branch_user(*drafts())

        assert branch.tenant_id == tenant.id
        assert user.tenant_id == tenant.id
        assert user.branch_id == branch.id
        assert branch.name == "Principal"
        assert branch.is_main is True
        assert await count_rows(test_db, Tenant) == 1
        assert await count_rows(test_db, Branch) == 1
        assert await count_rows(test_db, User) == 1

    async def test_duplicate_slug_rolls_back_everything(self, directory, test_db, admin_user):
        with pytest.raises(DuplicateSlugError) as exc_info:
            await directory.create_tenant_branch_user(*drafts(slug="acme"))

        assert exc_info.value.details["value"] == "acme"
        assert await count_rows(test_db, Tenant) == 1
        assert await count_rows(test_db, Branch) == 1
        assert await count_rows(test_db, User) == 1

    async def test_duplicate_user_email_rolls_back_tenant_and_branch(self, directory, test_db, admin_user):
        """The tenant row is written before the user; a user conflict still leaves nothing behind"""
        with pytest.raises(DuplicateEmailError):
            await directory.create_tenant_branch_user(*drafts(email="billing@globex.com", user_email=ADMIN_EMAIL))

        assert await count_rows(test_db, Tenant) == 1
        assert await count_rows(test_db, Branch) == 1
        assert await directory.get_tenant_by_slug("globex") is None

    async def test_duplicate_external_id_rolls_back(self, directory, test_db):
        await directory.create_tenant_branch_user(*drafts(password_hash=None, external_id="ext-1"))

        with pytest.raises(DuplicateExternalIdentityError):
            await directory.create_tenant_branch_user(
                *drafts(slug="initech", email="owner@initech.com", password_hash=None, external_id="ext-1")
            )

        assert await count_rows(test_db, Tenant) == 1

    async def test_user_without_credential_is_refused(self, directory, test_db):
        with pytest.raises(DirectoryIntegrityError):
            await directory.create_tenant_branch_user(*drafts(password_hash=None))

        assert await count_rows(test_db, Tenant) == 0

    async def test_external_only_user_allowed(self, directory):
        _, _, user = await directory.create_tenant_branch_user(*drafts(password_hash=None, external_id="ext-1"))

        assert user.password_hash is None
        assert user.external_id == "ext-1"


class TestLookups:
    async def test_find_by_email(self, directory, admin_user):
        found = await directory.find_user_by_email(ADMIN_EMAIL)

        assert found is not None
        assert found.id == admin_user.id
        assert found.tenant.slug == "acme"

    async def test_find_missing(self, directory):
        assert await directory.find_user_by_email("nobody@x.com") is None
        assert await directory.find_user_by_external_id("nope") is None
        assert await directory.get_user("missing-id") is None
        assert await directory.get_tenant_by_slug("missing") is None


class TestLinkExternalIdentity:
    async def test_link_sets_identity_fields(self, directory, admin_user):
        user_id = admin_user.id

        user = await directory.link_external_identity(
            user_id, "ext-1", avatar="https://img/a.png", provider="google"
        )

        assert user.external_id == "ext-1"
        assert user.avatar == "https://img/a.png"
        assert user.provider == "google"
        assert (await directory.find_user_by_external_id("ext-1")).id == user_id

    async def test_link_is_idempotent(self, directory, admin_user):
        await directory.link_external_identity(admin_user.id, "ext-1")

        user = await directory.link_external_identity(admin_user.id, "ext-1")

        assert user.external_id == "ext-1"

    async def test_link_to_identity_owned_by_another_user(self, directory, admin_user):
        await directory.create_tenant_branch_user(*drafts(password_hash=None, external_id="ext-1"))

        with pytest.raises(DuplicateExternalIdentityError):
            await directory.link_external_identity(admin_user.id, "ext-1")

    async def test_relink_to_a_different_identity_refused(self, directory, admin_user):
        await directory.link_external_identity(admin_user.id, "ext-1")

        with pytest.raises(DuplicateExternalIdentityError):
            await directory.link_external_identity(admin_user.id, "ext-2")

    async def test_link_unknown_user(self, directory):
        with pytest.raises(NotFoundError):
            await directory.link_external_identity("missing-id", "ext-1")

    async def test_link_storage_failure(self, directory, admin_user, test_db):
        user_id = admin_user.id
        failure = OperationalError("UPDATE users", {}, Exception("disk I/O error"))

        with patch.object(test_db, "commit", AsyncMock(side_effect=failure)):
            with pytest.raises(DirectoryIntegrityError) as exc_info:
                await directory.link_external_identity(user_id, "ext-1")

        assert exc_info.value.details["operation"] == "link_external_identity"
        assert await directory.find_user_by_external_id("ext-1") is None


class TestMapIntegrityError:
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ('duplicate key value violates unique constraint "uq_tenants_slug"', DuplicateSlugError),
            ("UNIQUE constraint failed: tenants.email", DuplicateEmailError),
            ("UNIQUE constraint failed: users.email", DuplicateEmailError),
            ('duplicate key value violates unique constraint "uq_users_external_id"', DuplicateExternalIdentityError),
            ("FOREIGN KEY constraint failed", DirectoryIntegrityError),
        ],
    )
    def test_maps_constraint_names(self, message, expected):
        exc = IntegrityError("INSERT ...", {}, Exception(message))

        assert isinstance(map_integrity_error(exc), expected)


class TestModelRelationships:
    def test_user_to_tenant_is_one_directional(self):
        assert "tenant" in inspect(User).relationships
        assert "branches" in inspect(Tenant).relationships
        assert "users" not in inspect(Tenant).relationships
