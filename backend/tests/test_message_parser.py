"""
Unit tests for the raw message parser.
Covers header extraction, sender resolution, snippets, and attachment indexing.
"""

from datetime import datetime, timezone

import pytest

from helpers import make_raw_email

from maildeck.services.message_parser import (
    NO_SUBJECT,
    SNIPPET_LENGTH,
    extract_attachment,
    html_to_text,
    parse_message,
    text_to_html,
)


class TestHtmlToText:
    def test_strips_style_and_decodes_entities(self):
        assert html_to_text("<style>.x{}</style><p>Hello&nbsp;World</p>") == "Hello World"

    def test_strips_multiline_script_case_insensitive(self):
        markup = "<SCRIPT type='text/javascript'>\nvar a = '<p>no</p>';\n</SCRIPT><div>Visible</div>"
        assert html_to_text(markup) == "Visible"

    def test_collapses_whitespace_between_tags(self):
        markup = "<p>One</p>\n\n   <p>Two</p><br><b>Three</b>"
        assert html_to_text(markup) == "One Two Three"

    def test_escaped_markup_is_not_stripped(self):
        assert html_to_text("<p>a &lt;b&gt; c</p>") == "a <b> c"


class TestTextToHtml:
    def test_escapes_and_splits_paragraphs(self):
        result = text_to_html("line one\nline <two>\n\nsecond para")
        assert result == "<p>line one<br/>line &lt;two&gt;</p><p>second para</p>"


class TestParseMessage:
    def test_basic_fields(self):
        raw = make_raw_email(subject="Quarterly numbers", text="See the numbers below.")
        parsed = parse_message("abc123", raw)

        assert parsed.id == "abc123"
        assert "alice@example.com" in parsed.from_
        assert parsed.to == "bob@example.com"
        assert parsed.subject == "Quarterly numbers"
        assert parsed.snippet.startswith("See the numbers below.")
        assert parsed.has_attachments is False
        assert parsed.attachments == []
        assert parsed.error is None

    def test_missing_subject_uses_placeholder(self):
        parsed = parse_message("k", make_raw_email(subject=None))
        assert parsed.subject == NO_SUBJECT

    def test_custom_sender_header_wins_over_from(self):
        raw = make_raw_email(
            from_addr="ses-bounce@aws",
            headers={"X-MailDeck-Sender": "a@x.com"},
        )
        parsed = parse_message("k", raw)
        assert parsed.sender == "a@x.com"
        assert parsed.from_ == "ses-bounce@aws"

    def test_sender_header_name_is_case_insensitive(self):
        raw = make_raw_email(headers={"x-maildeck-sender": "a@x.com"})
        assert parse_message("k", raw).sender == "a@x.com"

    def test_sender_falls_back_to_from(self):
        parsed = parse_message("k", make_raw_email(from_addr="carol@example.com"))
        assert parsed.sender == "carol@example.com"

    def test_snippet_from_html_when_no_text_part(self):
        raw = make_raw_email(text=None, html="<style>.x{}</style><p>Hello&nbsp;World</p>")
        parsed = parse_message("k", raw)
        assert parsed.snippet == "Hello World"
        assert "<p>Hello" in parsed.html_body

    def test_snippet_is_hard_cut_at_limit(self):
        raw = make_raw_email(text=None, html="<p>" + "word " * 100 + "</p>")
        parsed = parse_message("k", raw)
        assert len(parsed.snippet) == SNIPPET_LENGTH
        assert parsed.snippet == ("word " * 100).strip()[:SNIPPET_LENGTH]

    def test_text_only_message_gets_html_body(self):
        raw = make_raw_email(text="Hi <there>\n\nBye", html=None)
        parsed = parse_message("k", raw)
        assert parsed.html_body.startswith("<p>Hi &lt;there&gt;</p>")

    def test_alternative_prefers_text_for_snippet_and_keeps_html_body(self):
        raw = make_raw_email(text="Plain version", html="<p>HTML version</p>")
        parsed = parse_message("k", raw)
        assert parsed.snippet.startswith("Plain version")
        assert "HTML version" in parsed.html_body

    def test_date_header_is_iso_formatted(self):
        parsed = parse_message("k", make_raw_email(date="Sat, 01 Mar 2025 10:00:00 +0000"))
        assert parsed.date == "2025-03-01T10:00:00+00:00"

    def test_missing_date_falls_back_to_last_modified(self):
        stamp = datetime(2024, 12, 24, 8, 30, tzinfo=timezone.utc)
        parsed = parse_message("k", make_raw_email(date=None), last_modified=stamp)
        assert parsed.date == stamp.isoformat()

    def test_unknown_charset_does_not_raise(self):
        raw = (
            b"From: a@example.com\r\n"
            b"Subject: odd\r\n"
            b"Content-Type: text/plain; charset=x-unknown-charset\r\n"
            b"\r\n"
            b"caf\xe9\r\n"
        )
        parsed = parse_message("k", raw)
        assert parsed.snippet.startswith("caf")

    def test_garbage_bytes_still_produce_a_message(self):
        parsed = parse_message("k", b"\x00\x01 not an email at all")
        assert parsed.id == "k"


class TestAttachments:
    ATTACHMENTS = [
        ("zeta.pdf", "application/pdf", b"%PDF-1.4 zeta"),
        ("alpha.csv", "text/csv", b"a,b\n1,2\n"),
        ("middle.png", "image/png", b"\x89PNG" + b"\x00" * 60),
    ]

    def test_attachments_indexed_in_encoding_order(self):
        parsed = parse_message("k", make_raw_email(attachments=self.ATTACHMENTS))

        assert parsed.has_attachments is True
        assert [a.filename for a in parsed.attachments] == ["zeta.pdf", "alpha.csv", "middle.png"]
        assert [a.index for a in parsed.attachments] == [0, 1, 2]
        assert [a.size for a in parsed.attachments] == [len(d) for _, _, d in self.ATTACHMENTS]

    def test_reparsing_same_bytes_is_deterministic(self):
        raw = make_raw_email(attachments=self.ATTACHMENTS)
        first = parse_message("k", raw)
        second = parse_message("k", raw)
        assert first.attachments == second.attachments

    def test_extract_attachment_matches_listing_index(self):
        raw = make_raw_email(attachments=self.ATTACHMENTS)
        for filename, content_type, data in self.ATTACHMENTS:
            index = [a.filename for a in parse_message("k", raw).attachments].index(filename)
            extracted = extract_attachment(raw, index)
            assert extracted.filename == filename
            assert extracted.content_type == content_type
            assert extracted.content == data

    @pytest.mark.parametrize("index", [3, 99, -1])
    def test_extract_out_of_range_returns_none(self, index):
        raw = make_raw_email(attachments=self.ATTACHMENTS)
        assert extract_attachment(raw, index) is None

    def test_text_attachment_is_not_used_as_body(self):
        raw = make_raw_email(
            text="The real body",
            attachments=[("notes.txt", "text/plain", b"attached notes")],
        )
        parsed = parse_message("k", raw)
        assert parsed.snippet.startswith("The real body")
        assert [a.filename for a in parsed.attachments] == ["notes.txt"]

    def test_attachment_without_filename_gets_default_name(self):
        raw = (
            b"From: a@example.com\r\n"
            b"MIME-Version: 1.0\r\n"
            b'Content-Type: multipart/mixed; boundary="b"\r\n'
            b"\r\n"
            b"--b\r\n"
            b"Content-Type: text/plain\r\n"
            b"\r\n"
            b"body\r\n"
            b"--b\r\n"
            b"Content-Type: application/octet-stream\r\n"
            b"Content-Transfer-Encoding: base64\r\n"
            b"\r\n"
            b"AAEC\r\n"
            b"--b--\r\n"
        )
        parsed = parse_message("k", raw)
        assert parsed.attachments[0].filename == "attachment.bin"
        assert parsed.attachments[0].size == 3
