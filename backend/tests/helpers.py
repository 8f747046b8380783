"""
Shared test helpers: an in-memory stand-in for MessageStore and raw message builders.

Tests mock ALL external calls. No Supabase or SES requests are made.
"""

import time
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from email import policy

from maildeck.errors import UpstreamServiceError
from maildeck.services.message_store import StoredObject

BASE_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeMessageStore:
    """
    Dict-backed MessageStore with the same method surface.

    ``fail_on`` maps a method name to a set of keys whose calls raise
    UpstreamServiceError; ``unconfirmed`` lists keys delete_many silently
    leaves in place (the store "forgot" to delete them).
    """

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.modified: dict[str, datetime] = {}
        self.fail_on: dict[str, set] = {}
        self.unconfirmed: set = set()
        self.list_error: Exception | None = None
        self.calls: list[tuple] = []

    def add(self, key: str, data: bytes, minutes_ago: int = 0) -> None:
        self.objects[key] = data
        self.modified[key] = BASE_TIME - timedelta(minutes=minutes_ago)

    def _check(self, method: str, key: str) -> None:
        self.calls.append((method, key))
        if key in self.fail_on.get(method, set()):
            raise UpstreamServiceError(f"{method} failed for {key}")

    def list_objects(self, prefix: str) -> list[StoredObject]:
        self.calls.append(("list_objects", prefix))
        if self.list_error:
            raise self.list_error
        out = []
        for key, data in self.objects.items():
            if not key.startswith(prefix):
                continue
            # One level only, like Supabase Storage
            if "/" in key[len(prefix):]:
                continue
            out.append(StoredObject(key=key, size=len(data), last_modified=self.modified[key]))
        return out

    def get(self, key: str) -> bytes:
        self._check("get", key)
        if key not in self.objects:
            raise UpstreamServiceError(f"Object not found: {key}")
        return self.objects[key]

    def put(self, key: str, data: bytes, content_type: str = "message/rfc822") -> str:
        self._check("put", key)
        self.add(key, data)
        return key

    def copy(self, source_key: str, target_key: str) -> None:
        self._check("copy", source_key)
        if source_key not in self.objects:
            raise UpstreamServiceError(f"Object not found: {source_key}")
        self.objects[target_key] = self.objects[source_key]
        self.modified[target_key] = BASE_TIME

    def delete(self, key: str) -> None:
        self._check("delete", key)
        if key not in self.delete_many([key]):
            raise UpstreamServiceError(f"Store did not confirm deletion of {key!r}")

    def delete_many(self, keys) -> set:
        keys = list(keys)
        self.calls.append(("delete_many", tuple(keys)))
        confirmed = set()
        for key in keys:
            if key in self.objects and key not in self.unconfirmed:
                del self.objects[key]
                self.modified.pop(key, None)
                confirmed.add(key)
        return confirmed

    def check_bucket(self) -> bool:
        return True


def make_raw_email(
    subject: str | None = "Hello",
    from_addr: str = "Alice <alice@example.com>",
    to_addr: str = "bob@example.com",
    text: str | None = "Plain body text",
    html: str | None = None,
    attachments: list[tuple[str, str, bytes]] | None = None,
    headers: dict[str, str] | None = None,
    date: str | None = "Sat, 01 Mar 2025 10:00:00 +0000",
) -> bytes:
    """
    Build raw RFC 5322 bytes.

    attachments: list of (filename, content_type, data) tuples, attached in order.
    """
    msg = EmailMessage()
    msg["From"] = from_addr
    msg["To"] = to_addr
    if subject is not None:
        msg["Subject"] = subject
    if date is not None:
        msg["Date"] = date
    for name, value in (headers or {}).items():
        msg[name] = value

    if text is not None:
        msg.set_content(text)
        if html is not None:
            msg.add_alternative(html, subtype="html")
    elif html is not None:
        msg.set_content(html, subtype="html")

    for filename, content_type, data in attachments or []:
        maintype, subtype = content_type.split("/", 1)
        msg.add_attachment(data, maintype=maintype, subtype=subtype, filename=filename)

    return msg.as_bytes(policy=policy.SMTP)


def make_token(subject: str = "operator", secret: str = "test-jwt-secret", expires_in: int = 3600) -> str:
    """Build an HS256 JWT the way /login would."""
    import jwt as pyjwt

    now = int(time.time())
    return pyjwt.encode({"sub": subject, "iat": now, "exp": now + expires_in}, secret, algorithm="HS256")
