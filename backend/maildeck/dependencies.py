"""
FastAPI dependency providers for the mail services.

Each provider builds its object once per process. Tests replace them through
``app.dependency_overrides``.
"""

import logging
import os
from functools import lru_cache

from maildeck.db import MAIL_BUCKET, get_ses_client, get_supabase_admin
from maildeck.services.message_store import MessageStore
from maildeck.services.outbound import SesTransport
from maildeck.services.sender_allowlist import SenderAllowList, parse_sender_list

logger = logging.getLogger(__name__)


@lru_cache
def get_message_store() -> MessageStore:
    return MessageStore(get_supabase_admin(), MAIL_BUCKET)


@lru_cache
def get_transport() -> SesTransport:
    return SesTransport(get_ses_client())


@lru_cache
def get_sender_allowlist() -> SenderAllowList:
    """
    Static list when ALLOWED_SENDERS is set, otherwise SES verified identities.

    SENDER_CACHE_TTL_SECONDS bounds how long a resolved list is reused;
    unset or 0 keeps it until restart.
    """
    static = parse_sender_list(os.getenv("ALLOWED_SENDERS"))
    if static:
        logger.info(f"Using static sender allow-list ({len(static)} address(es))")
        return SenderAllowList(static_senders=static)

    ttl = float(os.getenv("SENDER_CACHE_TTL_SECONDS", "0")) or None
    return SenderAllowList(resolver=get_transport().list_verified_senders, ttl_seconds=ttl)
