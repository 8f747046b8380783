"""
Supabase Storage service for raw message objects.
Handles listing, download, upload, copy, and (batch) deletion.

Folder membership is encoded purely by key prefix:
  <key>                      - inbox (bucket root)
  sent/<provider message id> - sent items
  trash/<basename>           - trash

Supabase Storage lists one level at a time, so listing the root never returns
objects that live under sent/ or trash/ (those come back as folder entries,
which are skipped).

All methods are blocking; async callers go through ``run_blocking``. Every
client failure is re-raised as UpstreamServiceError.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from maildeck.errors import UpstreamServiceError

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class StoredObject:
    """One listing entry."""

    key: str
    size: int
    last_modified: datetime


def _parse_timestamp(value: Optional[str]) -> datetime:
    """Parse a Supabase ISO-8601 timestamp; unknown values sort last."""
    if not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_stored_object(prefix: str, entry: dict) -> Optional[StoredObject]:
    # Folder entries have no object id and no metadata
    if entry.get("id") is None:
        return None

    metadata = entry.get("metadata") or {}
    stamp = metadata.get("lastModified") or entry.get("updated_at") or entry.get("created_at")
    return StoredObject(
        key=f"{prefix}{entry['name']}",
        size=int(metadata.get("size") or 0),
        last_modified=_parse_timestamp(stamp),
    )


class MessageStore:
    """Raw message objects in one Supabase Storage bucket."""

    LIST_PAGE_SIZE = 1000

    def __init__(self, client, bucket: str):
        self.client = client
        self.bucket = bucket

    def _objects(self):
        return self.client.storage.from_(self.bucket)

    def list_objects(self, prefix: str) -> list[StoredObject]:
        """
        List objects directly under ``prefix`` ("" for the bucket root).

        Pages through the listing until the store returns a short page.

        Raises:
            UpstreamServiceError: If the listing request fails
        """
        path = prefix.rstrip("/")
        objects: list[StoredObject] = []
        offset = 0

        try:
            while True:
                page = self._objects().list(
                    path,
                    {
                        "limit": self.LIST_PAGE_SIZE,
                        "offset": offset,
                        "sortBy": {"column": "name", "order": "asc"},
                    },
                ) or []
                for entry in page:
                    obj = _to_stored_object(prefix, entry)
                    if obj is not None:
                        objects.append(obj)
                if len(page) < self.LIST_PAGE_SIZE:
                    break
                offset += self.LIST_PAGE_SIZE
        except Exception as e:
            raise UpstreamServiceError(f"Failed to list objects under {prefix!r}: {str(e)}") from e

        return objects

    def get(self, key: str) -> bytes:
        """Download the raw bytes stored at ``key``."""
        try:
            return self._objects().download(key)
        except Exception as e:
            raise UpstreamServiceError(f"Failed to download {key!r}: {str(e)}") from e

    def put(self, key: str, data: bytes, content_type: str = "message/rfc822") -> str:
        """
        Store ``data`` at ``key``, overwriting any existing object.

        Returns:
            The key written
        """
        try:
            self._objects().upload(
                key,
                data,
                {
                    "content-type": content_type,
                    "upsert": "true",
                },
            )
            return key
        except Exception as e:
            raise UpstreamServiceError(f"Failed to upload {key!r}: {str(e)}") from e

    def copy(self, source_key: str, target_key: str) -> None:
        try:
            self._objects().copy(source_key, target_key)
        except Exception as e:
            raise UpstreamServiceError(
                f"Failed to copy {source_key!r} to {target_key!r}: {str(e)}"
            ) from e

    def delete(self, key: str) -> None:
        """
        Delete a single object.

        Raises:
            UpstreamServiceError: If the request fails or the store does not
                confirm the deletion
        """
        if key not in self.delete_many([key]):
            raise UpstreamServiceError(f"Store did not confirm deletion of {key!r}")

    def delete_many(self, keys: Iterable[str]) -> set[str]:
        """
        Delete several objects in one request.

        The batch is not atomic. Supabase returns the objects it actually
        removed; keys missing from that response were not deleted.

        Returns:
            The set of keys the store confirmed as deleted
        """
        keys = list(keys)
        try:
            removed = self._objects().remove(keys) or []
        except Exception as e:
            raise UpstreamServiceError(f"Failed to delete {len(keys)} object(s): {str(e)}") from e

        confirmed = {entry.get("name") for entry in removed if isinstance(entry, dict)}
        missing = [k for k in keys if k not in confirmed]
        if missing:
            logger.warning(f"Store did not confirm deletion of {len(missing)} key(s): {missing}")
        return confirmed & set(keys)

    def check_bucket(self) -> bool:
        """Return True if the configured bucket exists."""
        try:
            buckets = self.client.storage.list_buckets()
        except Exception as e:
            raise UpstreamServiceError(f"Storage check failed: {str(e)}") from e
        return self.bucket in [b.name for b in buckets]
