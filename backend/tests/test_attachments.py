"""
Tests for attachment retrieval by message key and index.
"""

from unittest.mock import patch

import pytest

from helpers import FakeMessageStore, make_raw_email

from maildeck.errors import NotFoundError, UpstreamServiceError
from maildeck.services.attachments import get_attachment


@pytest.fixture
def store():
    s = FakeMessageStore()
    s.add(
        "with-files",
        make_raw_email(
            attachments=[
                ("invoice.pdf", "application/pdf", b"%PDF-invoice"),
                ("photo.jpg", "image/jpeg", b"\xff\xd8\xff\xe0jpeg"),
            ]
        ),
    )
    s.add("plain", make_raw_email())
    return s


@pytest.mark.asyncio
async def test_returns_attachment_at_index(store):
    attachment = await get_attachment(store, "with-files", 1)

    assert attachment.filename == "photo.jpg"
    assert attachment.content_type == "image/jpeg"
    assert attachment.content == b"\xff\xd8\xff\xe0jpeg"


@pytest.mark.asyncio
async def test_message_is_refetched_each_time(store):
    await get_attachment(store, "with-files", 0)
    await get_attachment(store, "with-files", 0)

    assert store.calls.count(("get", "with-files")) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("key,index", [("with-files", 2), ("with-files", -1), ("plain", 0)])
async def test_missing_index_is_not_found(store, key, index):
    with pytest.raises(NotFoundError) as exc_info:
        await get_attachment(store, key, index)
    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_fetch_failure_propagates(store):
    with pytest.raises(UpstreamServiceError):
        await get_attachment(store, "no-such-key", 0)


@pytest.mark.asyncio
async def test_parse_failure_becomes_upstream_error(store):
    with patch("maildeck.services.attachments.extract_attachment", side_effect=ValueError("broken MIME tree")):
        with pytest.raises(UpstreamServiceError) as exc_info:
            await get_attachment(store, "with-files", 0)

    assert "broken MIME tree" in exc_info.value.detail
