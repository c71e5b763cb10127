"""
Tests for authentication service

Tests credential login and refresh against a seeded directory.
"""

from unittest.mock import patch

import pytest

from app.exceptions import (
    AccountNotActiveError,
    AuthenticationError,
    InvalidCredentialsError,
    WrongTokenClassError,
)
from app.models.tenant import TenantStatus
from app.models.user import UserStatus
from app.services.directory_service import BranchDraft, TenantDraft, UserDraft
from app.services.token_service import TokenClass
from utils.mocks import ADMIN_EMAIL, ADMIN_PASSWORD


class TestLogin:
    """Test user authentication"""

    @pytest.mark.asyncio
    async def test_login_success(self, auth_service, token_service, admin_user):
        """Test successful user authentication"""
        result = await auth_service.login(ADMIN_EMAIL, ADMIN_PASSWORD)

        assert result.user.id == admin_user.id
        assert result.user.role == "ADMIN"
        assert token_service.verify(result.tokens.access_token, TokenClass.ACCESS) == admin_user.id
        assert token_service.verify(result.tokens.refresh_token, TokenClass.REFRESH) == admin_user.id

    @pytest.mark.asyncio
    async def test_login_email_is_case_insensitive(self, auth_service, admin_user):
        result = await auth_service.login("  ADMIN@X.com", ADMIN_PASSWORD)

        assert result.user.id == admin_user.id

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email_look_the_same(self, auth_service, admin_user):
        """Unknown email and wrong password produce identical errors"""
        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await auth_service.login(ADMIN_EMAIL, "wrong")
        with pytest.raises(InvalidCredentialsError) as unknown_email:
            await auth_service.login("nobody@x.com", ADMIN_PASSWORD)

        assert wrong_password.value.status_code == unknown_email.value.status_code == 401
        assert wrong_password.value.error_code == unknown_email.value.error_code
        assert wrong_password.value.message == unknown_email.value.message

    @pytest.mark.asyncio
    async def test_unknown_email_spends_verification_time(self, auth_service, credentials):
        with patch.object(credentials, "dummy_verify", wraps=credentials.dummy_verify) as dummy_verify:
            with pytest.raises(InvalidCredentialsError):
                await auth_service.login("nobody@x.com", "whatever")

        dummy_verify.assert_called_once()

    @pytest.mark.asyncio
    async def test_account_without_password_cannot_log_in(self, auth_service, directory):
        await directory.create_tenant_branch_user(
            TenantDraft(name="Globex", slug="globex", email="g@gmail.com"),
            BranchDraft(),
            UserDraft(email="g@gmail.com", name="G", external_id="ext-1", provider="google"),
        )

        with pytest.raises(InvalidCredentialsError):
            await auth_service.login("g@gmail.com", "anything")

    @pytest.mark.asyncio
    async def test_inactive_account_with_correct_password(self, auth_service, admin_user, test_db):
        admin_user.status = UserStatus.SUSPENDED.value
        await test_db.commit()

        with pytest.raises(AccountNotActiveError) as exc_info:
            await auth_service.login(ADMIN_EMAIL, ADMIN_PASSWORD)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_account_with_wrong_password(self, auth_service, admin_user, test_db):
        """Account status is not revealed without the right password"""
        admin_user.status = UserStatus.INACTIVE.value
        await test_db.commit()

        with pytest.raises(InvalidCredentialsError):
            await auth_service.login(ADMIN_EMAIL, "wrong")

    @pytest.mark.asyncio
    async def test_login_does_not_modify_user(self, auth_service, admin_user):
        password_hash = admin_user.password_hash

        await auth_service.login(ADMIN_EMAIL, ADMIN_PASSWORD)

        assert admin_user.password_hash == password_hash
        assert admin_user.status == "ACTIVE"


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refresh_issues_new_pair(self, auth_service, token_service, admin_user, clock):
        pair = token_service.issue_pair(admin_user.id)
        clock.advance(minutes=30)

        result = await auth_service.refresh(pair.refresh_token)

        assert result.user.id == admin_user.id
        assert token_service.verify(result.tokens.access_token, TokenClass.ACCESS) == admin_user.id

    @pytest.mark.asyncio
    async def test_refresh_rejects_access_token(self, auth_service, token_service, admin_user):
        pair = token_service.issue_pair(admin_user.id)

        with pytest.raises(WrongTokenClassError):
            await auth_service.refresh(pair.access_token)

    @pytest.mark.asyncio
    async def test_refresh_for_deleted_subject(self, auth_service, token_service):
        pair = token_service.issue_pair("missing-user")

        with pytest.raises(AuthenticationError):
            await auth_service.refresh(pair.refresh_token)

    @pytest.mark.asyncio
    async def test_refresh_for_suspended_user(self, auth_service, token_service, admin_user, test_db):
        pair = token_service.issue_pair(admin_user.id)
        admin_user.status = UserStatus.SUSPENDED.value
        await test_db.commit()

        with pytest.raises(AccountNotActiveError):
            await auth_service.refresh(pair.refresh_token)


class TestTenantLogin:
    """Test login scoped to one tenant"""

    @pytest.mark.asyncio
    async def test_login_to_own_tenant(self, auth_service, token_service, admin_user):
        result = await auth_service.login_to_tenant(ADMIN_EMAIL, ADMIN_PASSWORD, "acme")

        assert result.user.id == admin_user.id
        assert result.user.tenant.slug == "acme"
        assert token_service.verify(result.tokens.access_token, TokenClass.ACCESS) == admin_user.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("tenant_status", [TenantStatus.SUSPENDED.value, TenantStatus.CANCELLED.value])
    async def test_closed_tenant_is_refused(self, auth_service, admin_user, test_db, tenant_status):
        admin_user.tenant.status = tenant_status
        await test_db.commit()

        with pytest.raises(InvalidCredentialsError):
            await auth_service.login_to_tenant(ADMIN_EMAIL, ADMIN_PASSWORD, "acme")

    @pytest.mark.asyncio
    async def test_active_tenant_is_accepted(self, auth_service, admin_user, test_db):
        admin_user.tenant.status = TenantStatus.ACTIVE.value
        await test_db.commit()

        result = await auth_service.login_to_tenant(ADMIN_EMAIL, ADMIN_PASSWORD, "acme")

        assert result.user.id == admin_user.id

    @pytest.mark.asyncio
    async def test_user_of_another_tenant_is_refused(self, auth_service, directory, credentials, admin_user):
        await directory.create_tenant_branch_user(
            TenantDraft(name="Globex", slug="globex", email="owner@globex.com"),
            BranchDraft(),
            UserDraft(email="owner@globex.com", name="Owner", password_hash=credentials.hash("globex123")),
        )

        with pytest.raises(InvalidCredentialsError):
            await auth_service.login_to_tenant(ADMIN_EMAIL, ADMIN_PASSWORD, "globex")

    @pytest.mark.asyncio
    async def test_unknown_tenant_looks_like_wrong_password(self, auth_service, credentials, admin_user):
        with pytest.raises(InvalidCredentialsError) as wrong_password:
            await auth_service.login_to_tenant(ADMIN_EMAIL, "wrong", "acme")
        with patch.object(credentials, "dummy_verify", wraps=credentials.dummy_verify) as dummy_verify:
            with pytest.raises(InvalidCredentialsError) as unknown_tenant:
                await auth_service.login_to_tenant(ADMIN_EMAIL, ADMIN_PASSWORD, "nope")

        dummy_verify.assert_called_once()
        assert wrong_password.value.message == unknown_tenant.value.message
        assert wrong_password.value.error_code == unknown_tenant.value.error_code

    @pytest.mark.asyncio
    async def test_general_login_is_unaffected_by_tenant_status(self, auth_service, admin_user, test_db):
        admin_user.tenant.status = TenantStatus.SUSPENDED.value
        await test_db.commit()

        result = await auth_service.login(ADMIN_EMAIL, ADMIN_PASSWORD)

        assert result.user.id == admin_user.id
