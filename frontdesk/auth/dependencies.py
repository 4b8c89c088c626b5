"""Route guards: resolve the staff member behind a bearer token and check their role.

The token only identifies the account. Activity and role are always read from
the ``users`` row, so demoting or deactivating someone takes effect on their
next request rather than when their token expires.
"""

import uuid
from collections.abc import Awaitable, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.auth.jwt import decode_token
from frontdesk.database import get_db
from frontdesk.models.user import ROLES, User

# Requests without an Authorization header never reach the handler
_bearer_scheme = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _account_id(token: str) -> uuid.UUID:
    """Decode an access token and return the account id it was issued for."""
    try:
        claims = decode_token(token)
    except JWTError:
        raise _unauthorized("Could not validate credentials") from None

    if claims.get("type") != "access":
        raise _unauthorized("Invalid token type")

    try:
        return uuid.UUID(claims.get("sub") or "")
    except ValueError:
        raise _unauthorized("Could not validate credentials") from None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Return the account named by the bearer token, active or not.

    Raises:
        HTTPException 401: Bad, expired or refresh token, or the account is gone.
    """
    user = await db.get(User, _account_id(credentials.credentials))
    if user is None:
        raise _unauthorized("Could not validate credentials")
    return user


async def get_current_active_user(user: User = Depends(get_current_user)) -> User:
    """Like :func:`get_current_user`, but deactivated accounts get a 403."""
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is inactive")
    return user


def require_roles(*roles: str) -> Callable[..., Awaitable[User]]:
    """Dependency factory admitting active users whose stored role is in ``roles``.

    Role names are checked when the guard is built, so a typo fails at import
    time instead of silently locking everyone out::

        require_manager = require_roles("admin", "manager")
    """
    unknown = sorted(set(roles) - set(ROLES))
    if unknown:
        raise ValueError(f"Unknown role(s): {', '.join(unknown)}")
    allowed = ", ".join(roles)

    async def _guard(user: User = Depends(get_current_active_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"This action requires one of the roles: {allowed}",
            )
        return user

    return _guard
