"""
Compose API endpoints.

Endpoints:
  GET  /get-senders  - addresses the operator may send from
  POST /send-email   - multipart form: from, to, cc?, bcc?, subject, html, attachments[]
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from maildeck.auth import get_current_user
from maildeck.dependencies import get_message_store, get_sender_allowlist, get_transport
from maildeck.errors import MailDeckError
from maildeck.models.mail import OutgoingAttachment, SendRequest, SendResult
from maildeck.services.message_store import MessageStore
from maildeck.services.outbound import SesTransport
from maildeck.services.send_pipeline import send_email
from maildeck.services.sender_allowlist import SenderAllowList

router = APIRouter()

logger = logging.getLogger(__name__)


@router.get("/get-senders", response_model=List[str])
async def get_senders(
    user: str = Depends(get_current_user),
    allowlist: SenderAllowList = Depends(get_sender_allowlist),
):
    try:
        return await allowlist.get_senders()
    except MailDeckError as e:
        logger.error(f"Failed to resolve senders: {e.detail}")
        raise HTTPException(status_code=e.status_code, detail=f"Failed to load senders: {e.detail}")


@router.post("/send-email", response_model=SendResult)
async def send(
    from_: Optional[str] = Form(None, alias="from"),
    to: Optional[str] = Form(None),
    cc: Optional[str] = Form(None),
    bcc: Optional[str] = Form(None),
    subject: Optional[str] = Form(None),
    html: Optional[str] = Form(None),
    attachments: Optional[List[UploadFile]] = File(None),
    user: str = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
    transport: SesTransport = Depends(get_transport),
    allowlist: SenderAllowList = Depends(get_sender_allowlist),
):
    """
    Send a message and keep a copy under sent/.

    Returns 400 for missing fields, 403 for a sender outside the allow-list,
    and 500 when the outbound service rejects the message.
    """
    files = []
    for upload in attachments or []:
        files.append(
            OutgoingAttachment(
                filename=upload.filename or "attachment.bin",
                content_type=upload.content_type or "application/octet-stream",
                content=await upload.read(),
            )
        )

    request = SendRequest(
        from_=from_,
        to=to,
        cc=cc,
        bcc=bcc,
        subject=subject,
        html=html,
        attachments=files,
    )

    try:
        return await send_email(request, store, transport, allowlist)
    except MailDeckError as e:
        if e.status_code >= 500:
            logger.error(f"Send failed: {e.detail}")
            raise HTTPException(status_code=e.status_code, detail=f"Failed to send email: {e.detail}")
        raise HTTPException(status_code=e.status_code, detail=e.detail)
