"""Auth API router: staff registration, login, token refresh and profile."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from frontdesk.api.deps import get_current_active_user, get_db
from frontdesk.auth.jwt import create_token_pair, decode_token
from frontdesk.auth.passwords import hash_password, needs_rehash, verify_password
from frontdesk.database import utcnow
from frontdesk.models.user import User
from frontdesk.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    PasswordChange,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


async def _user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenResponse(**create_token_pair(str(user.id), user.role)),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Create a desk staff account and sign it in."""
    if await _user_by_email(db, body.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = User(
        email=body.email,
        hashed_password=hash_password(body.password),
        name=body.name,
        role="staff",
        last_login_at=utcnow(),
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    logger.info("Registered staff account %s", user.id)
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Sign in with email and password.

    Records the login time and upgrades the stored hash when the configured
    bcrypt cost has changed since it was made.
    """
    user = await _user_by_email(db, body.email)
    if user is None or not verify_password(body.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    if needs_rehash(user.hashed_password):
        user.hashed_password = hash_password(body.password)
        logger.info("Upgraded password hash for user %s", user.id)
    user.last_login_at = utcnow()
    await db.flush()
    await db.refresh(user)
    return _auth_response(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    """Exchange a refresh token for a new pair. Deactivated accounts are refused."""
    invalid = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired refresh token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(body.refresh_token)
        user_id = uuid.UUID(payload.get("sub") or "")
    except (JWTError, ValueError):
        raise invalid from None

    if payload.get("type") != "refresh":
        raise invalid

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise invalid

    return TokenResponse(**create_token_pair(str(user.id), user.role))


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_active_user)) -> User:
    return current_user


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Change the signed-in account's name or email. Role and status stay with admins."""
    update_data = body.model_dump(exclude_unset=True, exclude_none=True)

    email = update_data.get("email")
    if email is not None and email != current_user.email:
        existing = await _user_by_email(db, email)
        if existing is not None and existing.id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Email already registered",
            )

    for field_name, value in update_data.items():
        setattr(current_user, field_name, value)
    await db.flush()
    await db.refresh(current_user)
    logger.info("Updated profile fields %s for user %s", sorted(update_data), current_user.id)
    return current_user


@router.put("/change-password", response_model=MessageResponse)
async def change_password(
    body: PasswordChange,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> MessageResponse:
    """Replace the signed-in account's password after confirming the current one.

    Tokens already issued stay valid until they expire.
    """
    if not verify_password(body.current_password, current_user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    current_user.hashed_password = hash_password(body.new_password)
    await db.flush()
    logger.info("Password changed for user %s", current_user.id)
    return MessageResponse(message="Password changed successfully")
