"""
Mailbox materializer.

Builds the inbox / sent / trash views from the raw objects in the bucket:

  1. list objects under the folder prefix (root listing excludes sent/ and trash/)
  2. drop the prefix marker and zero-byte placeholders
  3. sort by last-modified, newest first
  4. keep the MAX_MESSAGES most recent
  5. fetch + parse the survivors concurrently (at most MAX_CONCURRENT_FETCHES
     downloads in flight), keeping the step-3 order

A single object that fails to download or parse becomes a placeholder entry
with ``error`` set; it never fails the whole listing. Only a failure of the
listing call itself propagates.

totalCount is the number of entries after truncation, not the number of
objects under the prefix.
"""

import asyncio
import logging

from maildeck.errors import UpstreamServiceError, ValidationError
from maildeck.models.mail import MailboxView, ParsedMessage
from maildeck.services.blocking import run_blocking
from maildeck.services.message_parser import parse_message
from maildeck.services.message_store import MessageStore, StoredObject

logger = logging.getLogger(__name__)

INBOX_PREFIX = ""
SENT_PREFIX = "sent/"
TRASH_PREFIX = "trash/"

FOLDER_PREFIXES = {
    "inbox": INBOX_PREFIX,
    "sent": SENT_PREFIX,
    "trash": TRASH_PREFIX,
}

MAX_MESSAGES = 100

# Downloads in flight per listing
MAX_CONCURRENT_FETCHES = 8

UNREADABLE_SUBJECT = "(unreadable message)"


def select_recent(objects: list[StoredObject], prefix: str, limit: int = MAX_MESSAGES) -> list[StoredObject]:
    """Drop markers and empty objects, then keep the ``limit`` newest."""
    candidates = [obj for obj in objects if obj.key != prefix and obj.size > 0]
    candidates.sort(key=lambda obj: obj.last_modified, reverse=True)
    return candidates[:limit]


def _placeholder(obj: StoredObject, reason: str) -> ParsedMessage:
    return ParsedMessage(
        id=obj.key,
        subject=UNREADABLE_SUBJECT,
        date=obj.last_modified.isoformat(),
        error=reason,
    )


async def _materialize(store: MessageStore, obj: StoredObject, slots: asyncio.Semaphore) -> ParsedMessage:
    try:
        async with slots:
            raw = await run_blocking(store.get, obj.key)
    except UpstreamServiceError as e:
        logger.warning(f"Skipping {obj.key!r}: {e.detail}")
        return _placeholder(obj, e.detail)

    try:
        return parse_message(obj.key, raw, obj.last_modified)
    except Exception as e:
        logger.error(f"Failed to parse {obj.key!r}: {e}")
        return _placeholder(obj, f"Failed to parse message: {str(e)}")


async def list_folder(store: MessageStore, folder: str) -> MailboxView:
    """
    Materialize the view for ``folder`` ("inbox", "sent" or "trash").

    Raises:
        ValidationError: Unknown folder name
        UpstreamServiceError: The listing itself failed
    """
    if folder not in FOLDER_PREFIXES:
        raise ValidationError(f"Unknown folder {folder!r}")

    prefix = FOLDER_PREFIXES[folder]
    objects = await run_blocking(store.list_objects, prefix)
    selected = select_recent(objects, prefix)

    slots = asyncio.Semaphore(MAX_CONCURRENT_FETCHES)
    # gather preserves argument order regardless of completion order
    emails = await asyncio.gather(*(_materialize(store, obj, slots) for obj in selected))

    failed = sum(1 for e in emails if e.error)
    logger.info(
        f"Listed {folder}: {len(objects)} object(s), {len(selected)} shown"
        + (f", {failed} unreadable" if failed else "")
    )
    return MailboxView(emails=list(emails), total_count=len(selected))
