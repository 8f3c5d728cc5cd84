"""FastAPI auth routes: signup, login, JWT refresh, and password reset."""

import os
import secrets
from datetime import datetime, timedelta

from fastapi import APIRouter, Cookie, HTTPException, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import delete, select

from config import Config
from dependencies import CurrentUser, DB
from logging_config import get_logger
from models_async import PasswordResetToken, User
from schemas import ForgotPasswordRequest, LoginRequest, ResetPasswordRequest, SignupRequest
from security import (
    REFRESH_TOKEN_DAYS, create_access_token, create_refresh_token, decode_token,
    hash_password, verify_password,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])
limiter = Limiter(key_func=get_remote_address, enabled=Config.RATELIMIT_ENABLED)

REFRESH_COOKIE = "onenote_refresh"
REFRESH_COOKIE_PATH = "/auth/refresh"
RESET_TOKEN_HOURS = 1


def _is_production() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() in ("production", "prod")


def _cookie_options() -> dict:
    # samesite="none" is only accepted together with secure=True (HTTPS)
    https = os.getenv("HTTPS_ONLY", "").lower() == "true" or _is_production()
    return {
        "path": REFRESH_COOKIE_PATH,
        "httponly": True,
        "secure": https,
        "samesite": "none" if https else "lax",
    }


def _session_response(user: User, response: Response) -> dict:
    """Set a fresh refresh cookie and return the access token with the user profile."""
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=create_refresh_token(user),
        max_age=REFRESH_TOKEN_DAYS * 86400,
        **_cookie_options(),
    )
    return {"access_token": create_access_token(user), "user": user.to_dict()}


async def _user_by_email(db, email: str):
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


@router.post("/signup", status_code=201)
@limiter.limit("5/minute")
async def signup(data: SignupRequest, request: Request, response: Response, db: DB):
    if await _user_by_email(db, data.email):
        raise HTTPException(status_code=409, detail="Email already registered")

    user = User(
        name=data.name.strip(),
        email=data.email,
        password_hash=await hash_password(data.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("auth.signup", user_id=user.id)

    return _session_response(user, response)


@router.post("/login")
@limiter.limit("10/minute")
async def login(data: LoginRequest, request: Request, response: Response, db: DB):
    user = await _user_by_email(db, data.email.strip().lower())
    if not user or not await verify_password(data.password, user.password_hash):
        logger.info("auth.login.failed")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return _session_response(user, response)


@router.get("/me")
async def me(current_user: CurrentUser):
    return {"user": current_user.to_dict()}


@router.post("/refresh")
@limiter.limit("30/minute")
async def refresh_token(
    request: Request,
    response: Response,
    db: DB,
    onenote_refresh: str = Cookie(default=None),
):
    """Exchange the refresh cookie for a new access token; the cookie is rotated too."""
    if not onenote_refresh:
        raise HTTPException(status_code=401, detail="No refresh token")

    payload = decode_token(onenote_refresh, "refresh")
    user = await db.get(User, payload.get("user_id"))
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    return _session_response(user, response)


@router.post("/forgot-password")
@limiter.limit("5/minute")
async def forgot_password(data: ForgotPasswordRequest, request: Request, db: DB):
    """Issue a reset token. The answer is the same whether or not the email exists."""
    response_data: dict = {
        "message": "If an account exists for that email, a reset link has been generated."
    }

    user = await _user_by_email(db, data.email)
    if not user:
        return response_data

    await db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id))
    token = secrets.token_urlsafe(32)
    db.add(PasswordResetToken(
        user_id=user.id,
        token=token,
        expires_at=datetime.utcnow() + timedelta(hours=RESET_TOKEN_HOURS),
    ))
    await db.commit()
    logger.info("auth.reset_token.issued", user_id=user.id)

    # no mail delivery outside production: hand the token back directly
    if not _is_production():
        response_data["reset_token"] = token
    return response_data


@router.post("/reset-password")
@limiter.limit("5/minute")
async def reset_password(data: ResetPasswordRequest, request: Request, db: DB):
    result = await db.execute(
        select(PasswordResetToken).where(
            PasswordResetToken.token == data.token,
            PasswordResetToken.used.is_(False),
            PasswordResetToken.expires_at > datetime.utcnow(),
        )
    )
    reset_token = result.scalar_one_or_none()
    if not reset_token:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")

    user = await db.get(User, reset_token.user_id)
    if not user:
        raise HTTPException(status_code=400, detail="User not found")

    user.password_hash = await hash_password(data.new_password)
    reset_token.used = True
    await db.commit()
    logger.info("auth.password_reset", user_id=user.id)

    return {"message": "Password reset successfully. You can now sign in with your new password."}


@router.post("/logout")
async def logout(response: Response):
    opts = _cookie_options()
    response.delete_cookie(
        key=REFRESH_COOKIE, path=opts["path"], secure=opts["secure"], samesite=opts["samesite"]
    )
    return {"message": "Logged out"}
