"""
Send pipeline: validate, build MIME, dispatch, persist to sent/.

Steps
-----
1. Validate required fields (from, to, subject, html) and reject header
   values containing line breaks.
2. Check ``from`` against the sender allow-list. Nothing is built, sent or
   stored for a sender that is not allowed.
3. Build a multipart/mixed message with the fixed boundary MAILDECK_BOUNDARY:
   one text/html part, then one base64 attachment part per file. The
   X-MailDeck-Sender trace header records the logical sender.
4. Dispatch the raw bytes through the outbound transport (no retry).
5. Store the exact bytes sent at sent/<provider message id>.

If step 5 fails the send has still happened: the failure is logged and
reported as ``sent_copy_stored=False`` instead of an error.
"""

import logging
from email import policy
from email.errors import HeaderParseError
from email.message import EmailMessage
from email.utils import formatdate, parseaddr

from maildeck.errors import SenderNotAllowedError, UpstreamServiceError, ValidationError
from maildeck.models.mail import SendRequest, SendResult
from maildeck.services.blocking import run_blocking
from maildeck.services.mailbox import SENT_PREFIX
from maildeck.services.message_parser import SENDER_HEADER
from maildeck.services.message_store import MessageStore
from maildeck.services.outbound import SesTransport
from maildeck.services.sender_allowlist import SenderAllowList

logger = logging.getLogger(__name__)

MAILDECK_BOUNDARY = "----=_MailDeck_Part_000"

_REQUIRED_FIELDS = (("from_", "from"), ("to", "to"), ("subject", "subject"), ("html", "html"))


def split_addresses(value: str | None) -> list[str]:
    """Split a comma-separated recipient field, dropping empty entries."""
    if not value:
        return []
    return [a.strip() for a in value.split(",") if a.strip()]


def _is_valid_address(value: str) -> bool:
    """Accept ``local@domain`` or ``Name <local@domain>``."""
    _, address = parseaddr(value)
    local, at, domain = address.rpartition("@")
    return bool(at and local and domain) and " " not in address


def validate_request(request: SendRequest) -> None:
    """
    Raises:
        ValidationError: A required field is missing/blank, a header value
            contains a line break, no usable To address was given, or an
            address is malformed
    """
    missing = [name for attr, name in _REQUIRED_FIELDS if not (getattr(request, attr) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for name in ("from_", "to", "cc", "bcc", "subject"):
        value = getattr(request, name) or ""
        if "\r" in value or "\n" in value:
            raise ValidationError(f"Field {name.rstrip('_')!r} must not contain line breaks")

    if not split_addresses(request.to):
        raise ValidationError("At least one To address is required")

    for name in ("from_", "to", "cc", "bcc"):
        for address in split_addresses(getattr(request, name)):
            if not _is_valid_address(address):
                raise ValidationError(f"Invalid email address in {name.rstrip('_')!r}: {address}")


def _split_content_type(content_type: str | None) -> tuple[str, str]:
    if content_type and "/" in content_type:
        maintype, _, subtype = content_type.partition("/")
        subtype = subtype.split(";")[0].strip()
        if maintype.strip() and subtype:
            return maintype.strip().lower(), subtype.lower()
    return "application", "octet-stream"


def build_raw_message(request: SendRequest) -> bytes:
    """
    Build the raw MIME bytes for ``request``.

    Bcc recipients are never written into the headers; they are handed to
    the transport separately.

    Raises:
        ValidationError: An address header cannot be parsed
    """
    message = EmailMessage()
    cc = split_addresses(request.cc)
    try:
        message["From"] = request.from_.strip()
        message["To"] = ", ".join(split_addresses(request.to))
        if cc:
            message["Cc"] = ", ".join(cc)
    except (IndexError, ValueError, HeaderParseError) as e:
        raise ValidationError(f"Invalid address header: {str(e)}") from e
    message["Subject"] = request.subject
    message["Date"] = formatdate(usegmt=True)
    message[SENDER_HEADER] = request.from_.strip()

    message.set_content(request.html, subtype="html", charset="utf-8")
    message.make_mixed(boundary=MAILDECK_BOUNDARY)

    for attachment in request.attachments:
        maintype, subtype = _split_content_type(attachment.content_type)
        message.add_attachment(
            attachment.content,
            maintype=maintype,
            subtype=subtype,
            filename=attachment.filename,
        )

    return message.as_bytes(policy=policy.SMTP)


async def send_email(
    request: SendRequest,
    store: MessageStore,
    transport: SesTransport,
    allowlist: SenderAllowList,
) -> SendResult:
    """
    Run the full send pipeline.

    Raises:
        ValidationError: Invalid request
        SenderNotAllowedError: ``from`` is not on the allow-list
        UpstreamServiceError: Allow-list resolution or dispatch failed
    """
    validate_request(request)

    sender = request.from_.strip()
    if not await allowlist.is_allowed(sender):
        raise SenderNotAllowedError(f"Sending from {sender} is not permitted or verified.")

    raw = build_raw_message(request)

    message_id = await run_blocking(
        transport.send_raw,
        raw,
        sender,
        split_addresses(request.to),
        split_addresses(request.cc),
        split_addresses(request.bcc),
    )
    logger.info(f"Sent message {message_id} from {sender} ({len(request.attachments)} attachment(s))")

    sent_key = f"{SENT_PREFIX}{message_id}"
    try:
        await run_blocking(store.put, sent_key, raw)
        stored = True
    except UpstreamServiceError as e:
        logger.warning(f"Message {message_id} was sent but the copy at {sent_key!r} was not stored: {e.detail}")
        stored = False

    return SendResult(message="Email sent", message_id=message_id, sent_copy_stored=stored)
