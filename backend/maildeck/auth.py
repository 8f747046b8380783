"""
Authentication for the single-operator webmail.

POST /login checks APP_USER / APP_PASSWORD and issues an HS256 JWT signed
with APP_JWT_SECRET. Every other route depends on get_current_user, which
verifies that token locally with python-jose; there is no session store.
"""

import hmac
import os
import time
from typing import Optional

from dotenv import load_dotenv
from fastapi import Header, HTTPException
from jose import ExpiredSignatureError, JWTError, jwt

from maildeck.errors import AuthError

load_dotenv()

# ---------------------------------------------------------------------------
# Module-level settings, loaded once at startup.
# ---------------------------------------------------------------------------
APP_USER: Optional[str] = os.environ.get("APP_USER") or None
APP_PASSWORD: Optional[str] = os.environ.get("APP_PASSWORD") or None
APP_JWT_SECRET: Optional[str] = os.environ.get("APP_JWT_SECRET") or None
APP_TOKEN_TTL_SECONDS = int(os.getenv("APP_TOKEN_TTL_SECONDS", "43200"))

_ALGORITHM = "HS256"


def check_credentials(username: Optional[str], password: Optional[str]) -> bool:
    """Constant-time comparison against the configured operator credentials."""
    if not APP_USER or not APP_PASSWORD or not username or not password:
        return False
    user_ok = hmac.compare_digest(username.encode(), APP_USER.encode())
    password_ok = hmac.compare_digest(password.encode(), APP_PASSWORD.encode())
    return user_ok and password_ok


def issue_token(username: str) -> str:
    """
    Sign a bearer token for ``username``.

    Raises:
        RuntimeError: If APP_JWT_SECRET is not configured
    """
    if not APP_JWT_SECRET:
        raise RuntimeError("APP_JWT_SECRET is not configured; cannot issue tokens")

    now = int(time.time())
    payload = {"sub": username, "iat": now, "exp": now + APP_TOKEN_TTL_SECONDS}
    return jwt.encode(payload, APP_JWT_SECRET, algorithm=_ALGORITHM)


def verify_token(token: str) -> str:
    """
    Verify a bearer token and return its subject.

    Raises:
        AuthError: On any verification failure
    """
    if not APP_JWT_SECRET:
        raise AuthError("Authentication is not configured")

    try:
        payload = jwt.decode(token, APP_JWT_SECRET, algorithms=[_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("Token expired")
    except JWTError:
        raise AuthError("Invalid token")

    subject: Optional[str] = payload.get("sub")
    if not subject:
        raise AuthError("Invalid token")
    return subject


async def get_current_user(authorization: Optional[str] = Header(None)) -> str:
    """
    Extract and verify the bearer token from the Authorization header.

    Returns:
        The authenticated username (the JWT ``sub`` claim)

    Raises:
        HTTPException: 401 if the token is missing, malformed, invalid, or expired
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="Not authenticated")

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise HTTPException(status_code=401, detail="Invalid authentication credentials")

    try:
        return verify_token(parts[1])
    except AuthError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
