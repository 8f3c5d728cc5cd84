"""Password hashing and JWT helpers shared by the auth router and dependencies."""

import asyncio
import os
from datetime import datetime, timedelta
from functools import partial

import bcrypt
import jwt
from fastapi import HTTPException

JWT_SECRET = os.getenv("JWT_SECRET") or os.getenv("SECRET_KEY")
if not JWT_SECRET:
    raise SystemExit(
        "FATAL: JWT_SECRET environment variable is not set. "
        "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
    )

# Access token lives in frontend memory; refresh token in an httpOnly cookie
ACCESS_TOKEN_MINUTES = int(os.getenv("ACCESS_TOKEN_MINUTES", "60"))
REFRESH_TOKEN_DAYS = int(os.getenv("REFRESH_TOKEN_DAYS", "30"))
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))


def _encode(user, token_type: str, lifetime: timedelta, **claims) -> str:
    now = datetime.utcnow()
    payload = {"user_id": user.id, "type": token_type, "iat": now, "exp": now + lifetime, **claims}
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def create_access_token(user) -> str:
    return _encode(user, "access", timedelta(minutes=ACCESS_TOKEN_MINUTES), email=user.email)


def create_refresh_token(user) -> str:
    return _encode(user, "refresh", timedelta(days=REFRESH_TOKEN_DAYS))


def decode_token(token: str, expected_type: str) -> dict:
    """Return the payload of a valid *expected_type* token or raise 401."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired, please log in again")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    if payload.get("type") != expected_type:
        raise HTTPException(status_code=401, detail="Token type mismatch")
    return payload


# bcrypt is CPU-bound; keep it off the event loop
async def hash_password(password: str) -> str:
    loop = asyncio.get_running_loop()
    salt = await loop.run_in_executor(None, partial(bcrypt.gensalt, rounds=BCRYPT_ROUNDS))
    hashed = await loop.run_in_executor(None, bcrypt.hashpw, password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


async def verify_password(password: str, password_hash: str) -> bool:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, bcrypt.checkpw, password.encode("utf-8"), password_hash.encode("utf-8")
    )
