"""
Attachment retrieval.

Attachments have no storage of their own: the raw message is downloaded and
re-parsed on every request, and the attachment is picked by the zero-based
index that the listing reported.
"""

import logging

from maildeck.errors import NotFoundError, UpstreamServiceError
from maildeck.models.mail import AttachmentContent
from maildeck.services.blocking import run_blocking
from maildeck.services.message_parser import extract_attachment
from maildeck.services.message_store import MessageStore

logger = logging.getLogger(__name__)


async def get_attachment(store: MessageStore, key: str, index: int) -> AttachmentContent:
    """
    Raises:
        NotFoundError: No attachment at ``index``
        UpstreamServiceError: The message could not be downloaded or parsed
    """
    raw = await run_blocking(store.get, key)

    try:
        attachment = await run_blocking(extract_attachment, raw, index)
    except UpstreamServiceError:
        raise
    except Exception as e:
        logger.error(f"Failed to parse {key!r} for attachment {index}: {e}")
        raise UpstreamServiceError(f"Failed to parse message {key!r}: {str(e)}") from e

    if attachment is None:
        raise NotFoundError("Attachment not found at that index.")

    logger.info(f"Serving attachment {index} of {key!r} ({len(attachment.content)} bytes)")
    return attachment
