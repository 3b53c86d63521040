"""Unit tests for JWT decoding and the caller dependencies."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException
from jose import jwt

from config.settings import settings
from src.cm_auth.dependencies import CallerIdentity, get_current_user, require_admin
from src.cm_auth.jwt_handler import create_access_token, decode_token
from src.cm_common.errors import AccountDisabledError, AdminRequiredError, InvalidCredentialsError
from src.cm_directory.domain.models import User


class TestJwt:
    def test_round_trip_subject(self) -> None:
        token = create_access_token("user-1")
        payload = decode_token(token)
        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"

    def test_expired(self) -> None:
        token = create_access_token("user-1", expires_in=timedelta(seconds=-1))
        with pytest.raises(InvalidCredentialsError):
            decode_token(token)

    def test_wrong_secret(self) -> None:
        token = jwt.encode({"sub": "user-1", "type": "access"}, "other-secret", algorithm="HS256")
        with pytest.raises(InvalidCredentialsError):
            decode_token(token)

    def test_refresh_token_rejected(self) -> None:
        token = jwt.encode({"sub": "user-1", "type": "refresh"}, settings.JWT_SECRET, algorithm="HS256")
        with pytest.raises(InvalidCredentialsError):
            decode_token(token)

    def test_missing_subject(self) -> None:
        token = jwt.encode({"type": "access"}, settings.JWT_SECRET, algorithm="HS256")
        with pytest.raises(InvalidCredentialsError):
            decode_token(token)

    def test_garbage(self) -> None:
        with pytest.raises(InvalidCredentialsError):
            decode_token("not.a.token")


class TestGetCurrentUser:
    async def test_resolves_caller(self) -> None:
        user = User(id="user-1", name="A", email="a@campus.test", is_admin=True)
        with patch("src.cm_auth.dependencies._users") as users:
            users.get_user = AsyncMock(return_value=user)
            caller = await get_current_user(create_access_token("user-1"), AsyncMock())
        assert caller == CallerIdentity(user_id="user-1", is_admin=True)

    async def test_unknown_user_is_401(self) -> None:
        with patch("src.cm_auth.dependencies._users") as users:
            users.get_user = AsyncMock(return_value=None)
            with pytest.raises(HTTPException) as exc_info:
                await get_current_user(create_access_token("ghost"), AsyncMock())
        assert exc_info.value.status_code == 401

    async def test_bad_token_is_401(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("bad", AsyncMock())
        assert exc_info.value.status_code == 401

    async def test_disabled_account(self) -> None:
        user = User(id="user-1", name="A", email="a@campus.test", is_active=False)
        with patch("src.cm_auth.dependencies._users") as users:
            users.get_user = AsyncMock(return_value=user)
            with pytest.raises(AccountDisabledError):
                await get_current_user(create_access_token("user-1"), AsyncMock())


class TestRequireAdmin:
    async def test_admin_passes(self) -> None:
        caller = CallerIdentity(user_id="admin", is_admin=True)
        assert await require_admin(caller) is caller

    async def test_non_admin_rejected(self) -> None:
        with pytest.raises(AdminRequiredError):
            await require_admin(CallerIdentity(user_id="user-1"))
