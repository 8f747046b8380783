"""
Folder transitions: move-to-trash and permanent delete.

The store has no rename and no transactions, so a move is two steps:

  phase 1  copy  <key>            -> trash/<basename(key)>
  phase 2  delete <key>

If phase 2 fails (or the process dies between the phases) the message exists
in both places. Duplication is the accepted failure mode; the original is
never deleted before its copy exists. Directory components of the original
key are discarded when building the trash key.

Policy for a list of ids: process them one by one, keep going after a
failure, and report an outcome per id.
"""

import logging
import posixpath
from dataclasses import dataclass

from maildeck.errors import UpstreamServiceError, ValidationError
from maildeck.models.mail import FolderTransitionResult, TransitionOutcome
from maildeck.services.blocking import run_blocking
from maildeck.services.mailbox import TRASH_PREFIX
from maildeck.services.message_store import MessageStore

logger = logging.getLogger(__name__)


def trash_key_for(key: str) -> str:
    return f"{TRASH_PREFIX}{posixpath.basename(key)}"


def _normalize_ids(ids) -> list[str]:
    """Reject empty/non-list input; drop duplicates keeping first-seen order."""
    if not ids or not isinstance(ids, list):
        raise ValidationError("No email IDs provided")
    seen: set = set()
    unique: list[str] = []
    for key in ids:
        if not isinstance(key, str) or not key.strip():
            raise ValidationError("Email IDs must be non-empty strings")
        if key not in seen:
            seen.add(key)
            unique.append(key)
    return unique


@dataclass
class TrashMove:
    """
    One copy-then-delete move. Each phase is a separate blocking call so
    callers (and tests) can observe the state between them.
    """

    store: MessageStore
    source_key: str
    copied: bool = False
    deleted: bool = False

    @property
    def target_key(self) -> str:
        return trash_key_for(self.source_key)

    def copy(self) -> None:
        self.store.copy(self.source_key, self.target_key)
        self.copied = True

    def delete_source(self) -> None:
        if not self.copied:
            raise RuntimeError(f"Refusing to delete {self.source_key!r} before it was copied")
        self.store.delete(self.source_key)
        self.deleted = True


async def _move_one(store: MessageStore, key: str) -> TransitionOutcome:
    move = TrashMove(store, key)

    if not posixpath.basename(key):
        return TransitionOutcome(id=key, success=False, error="Invalid email id")
    if move.target_key == key:
        return TransitionOutcome(id=key, success=False, target_key=key, error="Email is already in trash")

    try:
        await run_blocking(move.copy)
    except UpstreamServiceError as e:
        logger.error(f"Move to trash: copy failed for {key!r}: {e.detail}")
        return TransitionOutcome(id=key, success=False, error=e.detail)

    try:
        await run_blocking(move.delete_source)
    except UpstreamServiceError as e:
        logger.error(
            f"Move to trash: {key!r} copied to {move.target_key!r} but not deleted "
            f"(now duplicated): {e.detail}"
        )
        return TransitionOutcome(
            id=key,
            success=False,
            target_key=move.target_key,
            error=f"Copied to trash but original not removed: {e.detail}",
        )

    return TransitionOutcome(id=key, success=True, target_key=move.target_key)


async def move_to_trash(store: MessageStore, ids) -> FolderTransitionResult:
    """
    Move each id to trash/, sequentially, collecting per-id outcomes.

    Raises:
        ValidationError: ``ids`` is empty or not a list of strings
    """
    keys = _normalize_ids(ids)

    results = []
    for key in keys:
        results.append(await _move_one(store, key))

    moved = sum(1 for r in results if r.success)
    if moved == len(keys):
        message = f"Moved {moved} email(s) to trash."
    else:
        message = f"Moved {moved} of {len(keys)} email(s) to trash; {len(keys) - moved} failed."
    logger.info(message)

    return FolderTransitionResult(success=moved == len(keys), message=message, results=results)


async def delete_permanently(store: MessageStore, ids) -> FolderTransitionResult:
    """
    Delete all ids in one batch request.

    Keys the store does not confirm are reported as failed.

    Raises:
        ValidationError: ``ids`` is empty or not a list of strings
        UpstreamServiceError: The batch request itself failed
    """
    keys = _normalize_ids(ids)

    confirmed = await run_blocking(store.delete_many, keys)

    results = [
        TransitionOutcome(id=key, success=True)
        if key in confirmed
        else TransitionOutcome(id=key, success=False, error="Store did not confirm deletion")
        for key in keys
    ]

    deleted = len([r for r in results if r.success])
    if deleted == len(keys):
        message = f"Permanently deleted {deleted} email(s)."
    else:
        message = f"Permanently deleted {deleted} of {len(keys)} email(s); {len(keys) - deleted} failed."
    logger.info(message)

    return FolderTransitionResult(success=deleted == len(keys), message=message, results=results)
