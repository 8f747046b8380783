"""
Run blocking client calls (Supabase Storage, boto3) off the event loop.

Every external call gets an explicit timeout; a timeout surfaces as
UpstreamServiceError. The clock starts when a worker thread picks the call
up, so time spent queued behind other calls on a busy executor does not
count against it. Nothing here retries.
"""

import asyncio
import contextvars
import functools
import logging
from typing import Any, Callable, Optional

from maildeck.db import STORE_CALL_TIMEOUT_SECONDS
from maildeck.errors import UpstreamServiceError

logger = logging.getLogger(__name__)


async def run_blocking(
    func: Callable[..., Any],
    *args: Any,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> Any:
    """Call ``func(*args, **kwargs)`` in a worker thread, bounded by ``timeout``."""
    limit = STORE_CALL_TIMEOUT_SECONDS if timeout is None else timeout
    loop = asyncio.get_running_loop()
    started = asyncio.Event()

    def call():
        loop.call_soon_threadsafe(started.set)
        return func(*args, **kwargs)

    ctx = contextvars.copy_context()
    future = loop.run_in_executor(None, functools.partial(ctx.run, call))

    await started.wait()
    try:
        return await asyncio.wait_for(future, limit)
    except asyncio.TimeoutError as exc:
        name = getattr(func, "__name__", "external call")
        logger.error(f"{name} timed out after {limit:g}s")
        raise UpstreamServiceError(f"{name} timed out after {limit:g}s") from exc
