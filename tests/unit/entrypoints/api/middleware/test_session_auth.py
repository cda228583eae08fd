"""Unit tests for session auth dependencies."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from strataccess.core.auth.types import Role
from strataccess.core.outcomes import Unauthenticated
from strataccess.core.rbac.policy import Capability
from strataccess.entrypoints.api.middleware.session_auth import (
    SESSION_COOKIE,
    authorize_or_raise,
    extract_credential,
    require_capability,
    require_principal,
    verify_session,
)
from tests.fixtures.domain_objects import make_principal


class TestExtractCredential:
    """Tests for extract_credential."""

    def test_header_wins(self) -> None:
        """The Authorization header is preferred over the cookie."""
        request = MagicMock()
        request.cookies = {SESSION_COOKIE: "from-cookie"}
        header = HTTPAuthorizationCredentials(scheme="Bearer", credentials="from-header")

        assert extract_credential(request, header) == "from-header"

    def test_cookie_fallback(self) -> None:
        """Browsers authenticate with the session cookie."""
        request = MagicMock()
        request.cookies = {SESSION_COOKIE: "from-cookie"}

        assert extract_credential(request, None) == "from-cookie"

    def test_nothing(self) -> None:
        """No header and no cookie yields None."""
        request = MagicMock()
        request.cookies = {}

        assert extract_credential(request, None) is None


class TestVerifySession:
    """Tests for verify_session."""

    @pytest.fixture
    def mock_request(self) -> MagicMock:
        """Return a mock request without cookies."""
        request = MagicMock()
        request.cookies = {}
        return request

    @pytest.mark.asyncio
    async def test_unauthenticated_raises_401(self, mock_request: MagicMock) -> None:
        """Unauthenticated outcomes become 401 with the reason."""
        authenticator = MagicMock()
        authenticator.authenticate = AsyncMock(return_value=Unauthenticated("revoked_credential"))

        with pytest.raises(HTTPException) as exc_info:
            await verify_session(mock_request, authenticator, None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["reason"] == "revoked_credential"
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    async def test_principal_attached_to_request(self, mock_request: MagicMock) -> None:
        """The principal is stored on request state."""
        principal = make_principal()
        authenticator = MagicMock()
        authenticator.authenticate = AsyncMock(return_value=principal)

        result = await verify_session(mock_request, authenticator, None)

        assert result == principal
        assert mock_request.state.principal == principal


class TestRequirePrincipal:
    """Tests for require_principal."""

    @pytest.mark.asyncio
    async def test_forced_change_blocks(self) -> None:
        """A pending forced change is 403 on ordinary routes."""
        with pytest.raises(HTTPException) as exc_info:
            await require_principal(make_principal(must_change_password=True))

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["error"] == "password_change_required"

    @pytest.mark.asyncio
    async def test_normal_principal_passes(self) -> None:
        """Principals without the flag pass through."""
        principal = make_principal()
        assert await require_principal(principal) == principal


class TestCapabilityChecks:
    """Tests for capability dependencies."""

    def test_authorize_or_raise_denied(self) -> None:
        """Denied capabilities raise 403 naming the capability."""
        with pytest.raises(HTTPException) as exc_info:
            authorize_or_raise(make_principal(Role.LEADER), Capability.CREATE_STRATEGY)

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == {"error": "forbidden", "capability": "create_strategy"}

    def test_authorize_or_raise_allowed(self) -> None:
        """Allowed capabilities return quietly."""
        authorize_or_raise(make_principal(Role.EXECUTIVE), Capability.CREATE_STRATEGY)

    def test_authorize_or_raise_owner_scoped(self) -> None:
        """Handlers pass the record owner so leaders reach only their own tactics."""
        leader = make_principal(Role.LEADER)

        authorize_or_raise(leader, Capability.EDIT_ASSIGNED_TACTIC, resource_owner_id=leader.id)
        with pytest.raises(HTTPException) as exc_info:
            authorize_or_raise(leader, Capability.EDIT_ASSIGNED_TACTIC, resource_owner_id=uuid4())

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == {
            "error": "forbidden",
            "capability": "edit_assigned_tactic",
        }

    @pytest.mark.asyncio
    async def test_require_capability(self) -> None:
        """The dependency returns the principal when allowed."""
        checker = require_capability(Capability.MANAGE_USERS)
        admin = make_principal(Role.ADMINISTRATOR)

        assert await checker(admin) == admin

        with pytest.raises(HTTPException):
            await checker(make_principal(Role.EXECUTIVE))
