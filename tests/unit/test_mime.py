"""
Unit tests for outgoing mail validation and MIME composition.

Composed messages are parsed back with the standard library's email
package to check they are well-formed.
"""

import base64
import email
from email import policy

import pytest

from leedz_bridge.core.mime import (
    FileAttachment,
    MailValidationError,
    OutgoingMail,
    build_mime_message,
    encode_base64url,
    generate_boundary,
)

PDF_BYTES = b"%PDF-1.4 fake invoice" * 20
PDF_B64 = base64.b64encode(PDF_BYTES).decode("ascii")


def _args(**overrides):
    args = {"to": "a@b.com", "subject": "Hi", "body": "Hello"}
    args.update(overrides)
    return args


def _parse(raw: bytes):
    return email.message_from_bytes(raw, policy=policy.default)


class TestValidation:
    """Tests for OutgoingMail.from_arguments."""

    def test_minimal(self):
        mail = OutgoingMail.from_arguments(_args())
        assert mail.to == "a@b.com"
        assert mail.draft is False
        assert mail.attachments == []

    def test_missing_fields_listed(self):
        with pytest.raises(MailValidationError) as excinfo:
            OutgoingMail.from_arguments({"to": "a@b.com"})
        assert "subject" in str(excinfo.value)
        assert "body" in str(excinfo.value)

    def test_empty_strings_count_as_missing(self):
        with pytest.raises(MailValidationError):
            OutgoingMail.from_arguments(_args(subject="   "))

    def test_header_injection_rejected(self):
        with pytest.raises(MailValidationError):
            OutgoingMail.from_arguments(_args(subject="Hi\r\nBcc: evil@x.com"))

    def test_bad_cc_rejected(self):
        with pytest.raises(MailValidationError):
            OutgoingMail.from_arguments(_args(cc="c@d.com, not-an-address"))

    def test_cc_list_normalized(self):
        mail = OutgoingMail.from_arguments(_args(cc=" c@d.com ,e@f.com,"))
        assert mail.cc == "c@d.com, e@f.com"

    def test_draft_must_be_bool(self):
        with pytest.raises(MailValidationError):
            OutgoingMail.from_arguments(_args(draft="yes"))

    def test_attachments_must_be_list(self):
        with pytest.raises(MailValidationError):
            OutgoingMail.from_arguments(_args(attachments={"filename": "x"}))

    def test_attachment_bad_base64(self):
        bad = {"filename": "x.pdf", "content": "!!!not base64!!!", "contentType": "application/pdf"}
        with pytest.raises(MailValidationError) as excinfo:
            OutgoingMail.from_arguments(_args(attachments=[bad]))
        assert "attachments[0]" in str(excinfo.value)

    def test_attachment_bad_content_type(self):
        bad = {"filename": "x.pdf", "content": PDF_B64, "contentType": "pdf"}
        with pytest.raises(MailValidationError):
            OutgoingMail.from_arguments(_args(attachments=[bad]))

    def test_attachment_content_whitespace_removed(self):
        wrapped = "\n".join(PDF_B64[i:i + 60] for i in range(0, len(PDF_B64), 60))
        attachment = FileAttachment.from_dict(
            {"filename": "inv.pdf", "content": wrapped, "contentType": "application/pdf"}, 0
        )
        assert attachment.content == PDF_B64
        assert attachment.decoded() == PDF_BYTES


class TestPlainMessage:
    """Messages without attachments."""

    def test_header_order_and_crlf(self):
        mail = OutgoingMail.from_arguments(_args(cc="c@d.com", bcc="e@f.com"))
        raw = build_mime_message(mail).decode("utf-8")

        assert raw == (
            "To: a@b.com\r\n"
            "Subject: Hi\r\n"
            "Cc: c@d.com\r\n"
            "Bcc: e@f.com\r\n"
            "MIME-Version: 1.0\r\n"
            "Content-Type: text/plain; charset=utf-8\r\n"
            "\r\n"
            "Hello"
        )

    def test_body_newlines_normalized(self):
        mail = OutgoingMail.from_arguments(_args(body="line1\nline2\rline3\r\nline4"))
        raw = build_mime_message(mail)

        assert b"line1\r\nline2\r\nline3\r\nline4" in raw
        assert b"\n" not in raw.replace(b"\r\n", b"")

    def test_non_ascii_subject_is_encoded(self):
        mail = OutgoingMail.from_arguments(_args(subject="Facture n°42 ✅", body="Merci 🎉"))
        raw = build_mime_message(mail)

        assert b"=?utf-8?" in raw
        parsed = _parse(raw)
        assert parsed["Subject"] == "Facture n°42 ✅"
        assert parsed.get_content().strip() == "Merci 🎉"


class TestMultipartMessage:
    """Messages with attachments."""

    def _mail(self, count=1):
        attachments = [
            {"filename": f"invoice-{i}.pdf", "content": PDF_B64, "contentType": "application/pdf"}
            for i in range(count)
        ]
        return OutgoingMail.from_arguments(_args(attachments=attachments))

    def test_part_count_is_attachments_plus_one(self):
        parsed = _parse(build_mime_message(self._mail(count=2)))

        assert parsed.get_content_type() == "multipart/mixed"
        parts = list(parsed.iter_parts())
        assert len(parts) == 3
        assert parts[0].get_content_type() == "text/plain"

    def test_attachment_roundtrips(self):
        parsed = _parse(build_mime_message(self._mail()))
        attachment = list(parsed.iter_attachments())[0]

        assert attachment.get_filename() == "invoice-0.pdf"
        assert attachment.get_content_type() == "application/pdf"
        assert attachment.get_content() == PDF_BYTES

    def test_base64_lines_wrapped_at_76(self):
        raw = build_mime_message(self._mail(), boundary="b1").decode("ascii")
        payload = raw.split("Content-Transfer-Encoding: base64\r\n\r\n", 1)[1].split("\r\n\r\n--b1--")[0]

        lines = payload.split("\r\n")
        assert all(len(line) <= 76 for line in lines)
        assert "".join(lines) == PDF_B64

    def test_explicit_boundary_structure(self):
        raw = build_mime_message(self._mail(), boundary="b1").decode("ascii")

        assert 'Content-Type: multipart/mixed; boundary="b1"' in raw
        assert raw.count("--b1\r\n") == 2
        assert raw.endswith("--b1--")

    def test_fresh_boundary_each_time(self):
        first, second = generate_boundary(), generate_boundary()
        assert first != second
        assert first.startswith("boundary_")


class TestBase64Url:
    def test_url_safe_without_padding(self):
        encoded = encode_base64url(b"\xfb\xff\xfe")
        assert encoded == "-__-"

    def test_padding_stripped(self):
        assert encode_base64url(b"a") == "YQ"
        assert "=" not in encode_base64url(build_mime_message(OutgoingMail.from_arguments(_args())))
