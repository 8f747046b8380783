"""
Pydantic models for mailbox views, composition, and folder transitions.

Models:
  AttachmentInfo           - one attachment entry in a parsed message
  ParsedMessage            - structured view of one raw message object
  MailboxView              - folder listing returned by /inbox, /sent, /trash
  AttachmentContent        - decoded bytes of a single attachment
  OutgoingAttachment       - file uploaded with a send request
  SendRequest / SendResult - compose pipeline input and output
  EmailIdsRequest          - request body for move-to-trash / delete-permanently
  TransitionOutcome        - per-id result of a folder transition
  FolderTransitionResult   - aggregated folder transition response

JSON field names are camelCase (``htmlBody``, ``totalCount``, ``emailIds``) to
match what the web client already consumes; Python code uses the snake_case
attribute names.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Mailbox views
# ---------------------------------------------------------------------------

class AttachmentInfo(_CamelModel):
    """Attachment metadata. ``index`` is the only handle used for downloads."""

    filename: str
    size: int
    index: int


class ParsedMessage(_CamelModel):
    """
    Structured view of a raw message.

    ``id`` is the object-store key. ``error`` is set only on placeholder
    entries produced when the object could not be fetched or parsed.
    """

    id: str
    from_: str = Field("", alias="from")
    to: str = ""
    sender: str = ""
    subject: str = ""
    date: str = ""
    snippet: str = ""
    html_body: str = Field("", alias="htmlBody")
    has_attachments: bool = Field(False, alias="hasAttachments")
    attachments: list[AttachmentInfo] = []
    error: Optional[str] = None


class MailboxView(_CamelModel):
    emails: list[ParsedMessage]
    total_count: int = Field(..., alias="totalCount")


class AttachmentContent(BaseModel):
    """A single attachment, decoded to raw bytes."""

    filename: str
    content_type: str
    content: bytes


# ---------------------------------------------------------------------------
# Compose
# ---------------------------------------------------------------------------

class OutgoingAttachment(_CamelModel):
    filename: str
    content_type: str = Field("application/octet-stream", alias="contentType")
    content: bytes


class SendRequest(_CamelModel):
    """
    A compose request. ``to``, ``cc`` and ``bcc`` are comma-separated
    address lists exactly as submitted by the compose form.
    """

    from_: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    cc: Optional[str] = None
    bcc: Optional[str] = None
    subject: Optional[str] = None
    html: Optional[str] = None
    attachments: list[OutgoingAttachment] = []


class SendResult(_CamelModel):
    message: str
    message_id: str = Field(..., alias="messageId")
    # False when the message went out but the sent/ copy could not be written
    sent_copy_stored: bool = Field(True, alias="sentCopyStored")


# ---------------------------------------------------------------------------
# Folder transitions
# ---------------------------------------------------------------------------

class EmailIdsRequest(_CamelModel):
    email_ids: Optional[list[str]] = Field(None, alias="emailIds")


class TransitionOutcome(_CamelModel):
    id: str
    success: bool
    target_key: Optional[str] = Field(None, alias="targetKey")
    error: Optional[str] = None


class FolderTransitionResult(_CamelModel):
    success: bool
    message: str
    results: list[TransitionOutcome] = []

    @property
    def failed_ids(self) -> list[str]:
        return [r.id for r in self.results if not r.success]
