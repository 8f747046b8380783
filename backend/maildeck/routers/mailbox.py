"""
Mailbox API endpoints.

Endpoints:
  GET  /inbox                       - newest 100 inbox messages
  GET  /sent                        - newest 100 sent messages
  GET  /trash                       - newest 100 trashed messages
  POST /emails/move-to-trash        - copy+delete each id into trash/
  POST /emails/delete-permanently   - batch delete
  GET  /download-attachment         - one attachment by message key + index

Folder transitions answer 200 when every id succeeded and 207 with per-id
results when only some did.
"""

import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, Response

from maildeck.auth import get_current_user
from maildeck.dependencies import get_message_store
from maildeck.errors import MailDeckError
from maildeck.models.mail import EmailIdsRequest, FolderTransitionResult, MailboxView
from maildeck.services.attachments import get_attachment
from maildeck.services.folders import delete_permanently, move_to_trash
from maildeck.services.mailbox import list_folder
from maildeck.services.message_store import MessageStore

router = APIRouter()

logger = logging.getLogger(__name__)

_FOLDER_LABELS = {"inbox": "inbox", "sent": "sent items", "trash": "trash"}


async def _load_folder(folder: str, store: MessageStore) -> MailboxView:
    try:
        return await list_folder(store, folder)
    except MailDeckError as e:
        logger.error(f"Failed to load {folder}: {e.detail}")
        raise HTTPException(
            status_code=e.status_code,
            detail=f"Failed to load {_FOLDER_LABELS[folder]}: {e.detail}",
        )


@router.get("/inbox", response_model=MailboxView)
async def inbox(
    user: str = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
):
    return await _load_folder("inbox", store)


@router.get("/sent", response_model=MailboxView)
async def sent(
    user: str = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
):
    return await _load_folder("sent", store)


@router.get("/trash", response_model=MailboxView)
async def trash(
    user: str = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
):
    return await _load_folder("trash", store)


def _transition_response(result: FolderTransitionResult) -> JSONResponse:
    return JSONResponse(
        status_code=200 if result.success else 207,
        content=result.model_dump(by_alias=True),
    )


@router.post("/emails/move-to-trash", response_model=FolderTransitionResult)
async def move_emails_to_trash(
    body: EmailIdsRequest,
    user: str = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
):
    """
    Move messages to trash.

    Ids are processed one at a time and a failure does not stop the rest;
    the response lists the outcome for every id.
    """
    try:
        result = await move_to_trash(store, body.email_ids)
    except MailDeckError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    return _transition_response(result)


@router.post("/emails/delete-permanently", response_model=FolderTransitionResult)
async def delete_emails_permanently(
    body: EmailIdsRequest,
    user: str = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
):
    try:
        result = await delete_permanently(store, body.email_ids)
    except MailDeckError as e:
        logger.error(f"Permanent delete failed: {e.detail}")
        detail = e.detail if e.status_code < 500 else f"Failed to permanently delete emails: {e.detail}"
        raise HTTPException(status_code=e.status_code, detail=detail)
    return _transition_response(result)


def _content_disposition(filename: str) -> str:
    """attachment header with an ASCII fallback and an RFC 5987 UTF-8 name."""
    fallback = filename.encode("ascii", "replace").decode().replace('"', "_").replace("?", "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@router.get("/download-attachment")
async def download_attachment(
    email_id: Optional[str] = Query(None, alias="emailId"),
    index: Optional[str] = Query(None),
    user: str = Depends(get_current_user),
    store: MessageStore = Depends(get_message_store),
):
    """Stream one attachment of a stored message."""
    if not email_id or index is None:
        raise HTTPException(status_code=400, detail="Missing email ID or attachment index.")
    try:
        position = int(index)
    except ValueError:
        raise HTTPException(status_code=400, detail="Attachment index must be an integer.")

    try:
        attachment = await get_attachment(store, email_id, position)
    except MailDeckError as e:
        if e.status_code >= 500:
            logger.error(f"Attachment download failed for {email_id!r}: {e.detail}")
            raise HTTPException(status_code=e.status_code, detail="Could not download attachment.")
        raise HTTPException(status_code=e.status_code, detail=e.detail)

    return Response(
        content=attachment.content,
        media_type=attachment.content_type,
        headers={"Content-Disposition": _content_disposition(attachment.filename)},
    )
