"""
Raw message parser.

Turns the RFC 5322 bytes stored in the bucket into a ParsedMessage: headers,
snippet, HTML body, and an ordered attachment index.

Attachment ordering
-------------------
Attachments are numbered by a depth-first walk of the MIME tree in encoding
order. Downloads address an attachment only by this zero-based index, so the
walk must never reorder parts (no sorting by name or size). Parsing the same
bytes always yields the same list.

A leaf part is treated as an attachment when any of these hold:
  - Content-Disposition is ``attachment``
  - it carries a filename
  - it is not ``text/plain`` or ``text/html``
Embedded ``message/rfc822`` parts count as a single attachment.
"""

import html
import logging
import re
from datetime import datetime
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import parsedate_to_datetime
from typing import Iterator, Optional

from maildeck.models.mail import AttachmentContent, AttachmentInfo, ParsedMessage

logger = logging.getLogger(__name__)

# Trace header carrying the application-level sender. The outbound service may
# rewrite the envelope From, so this wins over the structural From header.
SENDER_HEADER = "X-MailDeck-Sender"

NO_SUBJECT = "(no subject)"
SNIPPET_LENGTH = 200
DEFAULT_ATTACHMENT_NAME = "attachment.bin"

_BODY_TYPES = ("text/plain", "text/html")

_STYLE_RE = re.compile(r"<style[^>]*>.*?</style\s*>", re.IGNORECASE | re.DOTALL)
_SCRIPT_RE = re.compile(r"<script[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_PARAGRAPH_RE = re.compile(r"\r?\n\s*\r?\n")


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def html_to_text(markup: str) -> str:
    """
    Derive plain text from HTML.

    Drops <style> and <script> blocks, replaces remaining tags with a space,
    decodes entities, then collapses whitespace runs (including &nbsp;).
    """
    text = _STYLE_RE.sub("", markup)
    text = _SCRIPT_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def text_to_html(text: str) -> str:
    """Render a plain-text body as minimal HTML paragraphs."""
    paragraphs = [p for p in _PARAGRAPH_RE.split(text.strip()) if p.strip()]
    return "".join(
        "<p>" + "<br/>".join(html.escape(line) for line in p.splitlines()) + "</p>"
        for p in paragraphs
    )


def make_snippet(text: str, html_body: str) -> str:
    """First SNIPPET_LENGTH characters of the text body, else of the HTML-derived text."""
    source = text or (html_to_text(html_body) if html_body else "")
    return source[:SNIPPET_LENGTH]


# ---------------------------------------------------------------------------
# MIME walking
# ---------------------------------------------------------------------------

def _iter_leaves(part: EmailMessage) -> Iterator[EmailMessage]:
    """Depth-first leaves in encoding order; message/* parts are not descended."""
    if part.get_content_maintype() == "multipart":
        for sub in part.iter_parts():
            yield from _iter_leaves(sub)
    else:
        yield part


def _is_attachment(part: EmailMessage) -> bool:
    if part.get_content_disposition() == "attachment":
        return True
    if part.get_filename():
        return True
    return part.get_content_type() not in _BODY_TYPES


def _part_bytes(part: EmailMessage) -> bytes:
    if part.get_content_maintype() == "message" and part.is_multipart():
        return part.get_payload(0).as_bytes()
    return part.get_payload(decode=True) or b""


def _decode_text(part: EmailMessage) -> str:
    try:
        return part.get_content()
    except (LookupError, UnicodeError):
        # Unknown or lying charset: keep what we can
        return _part_bytes(part).decode("utf-8", errors="replace")


def _attachment_parts(message: EmailMessage) -> list[EmailMessage]:
    return [p for p in _iter_leaves(message) if _is_attachment(p)]


def _parse_bytes(raw: bytes) -> EmailMessage:
    return BytesParser(policy=policy.default).parsebytes(raw)


def _header(message: EmailMessage, name: str) -> str:
    value = message.get(name)
    return str(value).strip() if value is not None else ""


def _message_date(message: EmailMessage, fallback: Optional[datetime]) -> str:
    value = message.get("Date")
    if value is not None:
        try:
            return parsedate_to_datetime(str(value)).isoformat()
        except (TypeError, ValueError, IndexError):
            logger.debug(f"Unparseable Date header: {value!r}")
    return fallback.isoformat() if fallback else ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def parse_message(key: str, raw: bytes, last_modified: Optional[datetime] = None) -> ParsedMessage:
    """
    Parse raw message bytes into a ParsedMessage.

    Args:
        key: Object-store key; becomes ParsedMessage.id
        raw: The stored RFC 5322 bytes
        last_modified: Store timestamp, used when the Date header is missing

    Returns:
        ParsedMessage with snippet, HTML body and attachment index filled in
    """
    message = _parse_bytes(raw)

    text_body = ""
    html_body = ""
    attachments: list[AttachmentInfo] = []

    for part in _iter_leaves(message):
        if _is_attachment(part):
            attachments.append(
                AttachmentInfo(
                    filename=part.get_filename() or DEFAULT_ATTACHMENT_NAME,
                    size=len(_part_bytes(part)),
                    index=len(attachments),
                )
            )
        elif part.get_content_type() == "text/plain" and not text_body:
            text_body = _decode_text(part)
        elif part.get_content_type() == "text/html" and not html_body:
            html_body = _decode_text(part)

    from_header = _header(message, "From")

    return ParsedMessage(
        id=key,
        from_=from_header,
        to=_header(message, "To"),
        sender=_header(message, SENDER_HEADER) or from_header,
        subject=_header(message, "Subject") or NO_SUBJECT,
        date=_message_date(message, last_modified),
        snippet=make_snippet(text_body, html_body),
        html_body=html_body or (text_to_html(text_body) if text_body else ""),
        has_attachments=bool(attachments),
        attachments=attachments,
    )


def extract_attachment(raw: bytes, index: int) -> Optional[AttachmentContent]:
    """
    Return the attachment at zero-based ``index``, or None if out of range.

    Uses the same walk as parse_message, so indices match the listing.
    """
    if index < 0:
        return None

    parts = _attachment_parts(_parse_bytes(raw))
    if index >= len(parts):
        return None

    part = parts[index]
    return AttachmentContent(
        filename=part.get_filename() or DEFAULT_ATTACHMENT_NAME,
        content_type=part.get_content_type(),
        content=_part_bytes(part),
    )
