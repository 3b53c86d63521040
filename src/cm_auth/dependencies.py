"""FastAPI dependencies: get_current_user, require_admin.

Usage in any protected router:
    from src.cm_auth.dependencies import CallerIdentity, get_current_user

    @router.get("/protected")
    async def protected(caller: Annotated[CallerIdentity, Depends(get_current_user)]):
        ...
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_auth.jwt_handler import decode_token
from src.cm_common.database import get_db_session
from src.cm_common.errors import AccountDisabledError, AdminRequiredError, InvalidCredentialsError
from src.cm_directory.domain.repository import UserLookupProtocol
from src.cm_directory.infrastructure.persistence import UserLookup

# Tokens are issued by the marketplace auth service; tokenUrl only feeds Swagger UI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)

_users: UserLookupProtocol = UserLookup()


@dataclass(frozen=True)
class CallerIdentity:
    user_id: str
    is_admin: bool = False


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> CallerIdentity:
    """Decode the Bearer token and load the caller.

    Raises HTTP 401 if the token is invalid or names an unknown user,
    and AccountDisabledError (403) if the account is disabled.
    """
    try:
        payload = decode_token(token)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    user = await _users.get_user(db, payload["sub"])
    if user is None:
        raise _CREDENTIALS_EXCEPTION
    if not user.is_active:
        raise AccountDisabledError()
    return CallerIdentity(user_id=user.id, is_admin=user.is_admin)


async def require_admin(
    caller: Annotated[CallerIdentity, Depends(get_current_user)],
) -> CallerIdentity:
    if not caller.is_admin:
        raise AdminRequiredError()
    return caller
