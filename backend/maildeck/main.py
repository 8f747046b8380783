"""
MailDeck Backend API
FastAPI application serving inbox / sent / trash views over a Supabase Storage
bucket of raw messages, with outbound mail through Amazon SES.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from maildeck.db import MAIL_BUCKET
from maildeck.dependencies import get_message_store
from maildeck.errors import MailDeckError
from maildeck.routers import compose, mailbox, session
from maildeck.services.blocking import run_blocking
from maildeck.services.message_store import MessageStore

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


def get_cors_origins() -> List[str]:
    """
    Build the list of allowed CORS origins.

    Always includes the local static-server origin used during development
    (http://127.0.0.1:5501). When VERCEL_URL is set, https://<VERCEL_URL> is
    added. Additional origins are read from CORS_ORIGINS as a comma-separated
    list. Duplicates are removed while preserving order.
    """
    always_included = ["http://127.0.0.1:5501"]

    vercel_url = os.getenv("VERCEL_URL", "").strip()
    if vercel_url:
        always_included.append(f"https://{vercel_url}")

    extra_origins: List[str] = []
    cors_env = os.getenv("CORS_ORIGINS", "").strip()
    if cors_env:
        extra_origins = [o.strip() for o in cors_env.split(",") if o.strip()]

    seen: set = set()
    origins: List[str] = []
    for origin in always_included + extra_origins:
        if origin not in seen:
            seen.add(origin)
            origins.append(origin)

    return origins


@asynccontextmanager
async def lifespan(app: FastAPI):
    host_port = os.getenv("HOST_PORT", "8000")
    logger.info(
        "MailDeck API running at http://localhost:%s (bucket: %s)",
        host_port,
        MAIL_BUCKET,
    )
    yield
    logger.info("Shutting down")


app = FastAPI(
    title="MailDeck API",
    description="Webmail over object storage and Amazon SES",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query parameters are client errors: answer 400."""
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


# Include routers
app.include_router(session.router, tags=["session"])
app.include_router(mailbox.router, tags=["mailbox"])
app.include_router(compose.router, tags=["compose"])


@app.get("/")
async def root():
    return {"message": "MailDeck API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/storage")
async def health_storage():
    """
    Test Supabase Storage access.

    Verifies the configured mail bucket exists. Returns 503 if storage is
    unreachable, unconfigured, or the bucket is missing.
    """
    try:
        store: MessageStore = get_message_store()
    except ValueError as exc:
        raise HTTPException(status_code=503, detail=f"Storage client unavailable: {str(exc)}")

    try:
        exists = await run_blocking(store.check_bucket)
    except MailDeckError as exc:
        logger.error(f"Storage health check failed: {exc.detail}")
        raise HTTPException(status_code=503, detail=exc.detail)

    if not exists:
        raise HTTPException(status_code=503, detail=f"Storage bucket '{MAIL_BUCKET}' not found")

    return {"status": "ok", "storage": "reachable", "bucket": MAIL_BUCKET}
