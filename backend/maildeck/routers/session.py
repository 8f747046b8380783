"""
Login endpoint.

POST /login {username, password} → {success, token} | 401
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from maildeck.auth import check_credentials, issue_token

router = APIRouter()

logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(BaseModel):
    success: bool
    token: str


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest):
    if not check_credentials(body.username, body.password):
        logger.warning(f"Rejected login for {body.username!r}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    try:
        token = issue_token(body.username)
    except RuntimeError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail="Authentication is not configured")

    return {"success": True, "token": token}
