"""
RFC 2822 message composition for the Gmail API.

The Gmail `raw` field wants the whole message, headers included, as
base64url without padding. Messages are assembled line by line so the
header order and CRLF framing are exactly what the provider receives.
"""

import base64
import binascii
import re
import secrets
import time
from dataclasses import dataclass, field
from email.header import Header
from email.utils import getaddresses
from typing import Any, Dict, List, Optional

CRLF = "\r\n"

_MIME_TYPE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*/[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*$")
_NEWLINES = re.compile(r"\r\n|\r|\n")


class MailValidationError(ValueError):
    """Tool arguments do not describe a sendable message."""


@dataclass
class FileAttachment:
    filename: str
    content: str
    content_type: str

    @classmethod
    def from_dict(cls, data: Any, index: int) -> "FileAttachment":
        if not isinstance(data, dict):
            raise MailValidationError(f"attachments[{index}] must be an object")
        filename = data.get("filename")
        content = data.get("content")
        content_type = data.get("contentType")

        if not isinstance(filename, str) or not filename.strip():
            raise MailValidationError(f"attachments[{index}].filename is required")
        _reject_line_breaks(f"attachments[{index}].filename", filename)
        if not isinstance(content, str) or not content.strip():
            raise MailValidationError(f"attachments[{index}].content is required")
        if not isinstance(content_type, str) or not _MIME_TYPE.match(content_type.strip()):
            raise MailValidationError(
                f"attachments[{index}].contentType must be a MIME type like application/pdf"
            )

        compact = "".join(content.split())
        try:
            base64.b64decode(compact, validate=True)
        except (binascii.Error, ValueError):
            raise MailValidationError(f"attachments[{index}].content is not valid base64") from None

        return cls(filename=filename.strip(), content=compact, content_type=content_type.strip())

    def decoded(self) -> bytes:
        return base64.b64decode(self.content)


@dataclass
class OutgoingMail:
    to: str
    subject: str
    body: str
    cc: Optional[str] = None
    bcc: Optional[str] = None
    draft: bool = False
    attachments: List[FileAttachment] = field(default_factory=list)

    @classmethod
    def from_arguments(cls, args: Dict[str, Any]) -> "OutgoingMail":
        """
        Validate gmail_send tool arguments.

        Raises:
            MailValidationError: describing the first problem found
        """
        missing = [
            key for key in ("to", "subject", "body")
            if not isinstance(args.get(key), str) or not args.get(key).strip()
        ]
        if missing:
            raise MailValidationError(f"Missing required parameters: {', '.join(missing)}")

        to = args["to"].strip()
        subject = args["subject"]
        _reject_line_breaks("to", to)
        _reject_line_breaks("subject", subject)

        cc = _address_list("cc", args.get("cc"))
        bcc = _address_list("bcc", args.get("bcc"))

        draft = args.get("draft", False)
        if draft is None:
            draft = False
        if not isinstance(draft, bool):
            raise MailValidationError("draft must be a boolean")

        raw_attachments = args.get("attachments") or []
        if not isinstance(raw_attachments, list):
            raise MailValidationError("attachments must be an array")
        attachments = [FileAttachment.from_dict(a, i) for i, a in enumerate(raw_attachments)]

        return cls(
            to=to,
            subject=subject,
            body=args["body"],
            cc=cc,
            bcc=bcc,
            draft=draft,
            attachments=attachments,
        )


def _reject_line_breaks(name: str, value: str) -> None:
    if "\r" in value or "\n" in value:
        raise MailValidationError(f"{name} must not contain line breaks")


def _address_list(name: str, value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise MailValidationError(f"{name} must be a comma-separated string of addresses")
    _reject_line_breaks(name, value)
    entries = [part.strip() for part in value.split(",") if part.strip()]
    if not entries:
        return None
    for _, address in getaddresses(entries):
        if "@" not in address:
            raise MailValidationError(f"{name} contains an invalid address: '{address}'")
    return ", ".join(entries)


def generate_boundary() -> str:
    return f"boundary_{int(time.time() * 1000)}_{secrets.token_hex(8)}"


def _encode_subject(subject: str) -> str:
    try:
        subject.encode("ascii")
        return subject
    except UnicodeEncodeError:
        return Header(subject, "utf-8").encode(linesep=CRLF)


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def _wrap_base64(content: str) -> List[str]:
    return [content[i:i + 76] for i in range(0, len(content), 76)]


def build_mime_message(mail: OutgoingMail, boundary: Optional[str] = None) -> bytes:
    """
    Render an OutgoingMail as RFC 2822 bytes with CRLF separators.

    Without attachments the message is a single text/plain part; otherwise
    it is multipart/mixed with the body first and one base64 part per file.
    """
    body = _NEWLINES.sub(CRLF, mail.body)

    lines = [f"To: {mail.to}", f"Subject: {_encode_subject(mail.subject)}"]
    if mail.cc:
        lines.append(f"Cc: {mail.cc}")
    if mail.bcc:
        lines.append(f"Bcc: {mail.bcc}")
    lines.append("MIME-Version: 1.0")

    if not mail.attachments:
        lines.append("Content-Type: text/plain; charset=utf-8")
        lines.append("")
        lines.append(body)
        return CRLF.join(lines).encode("utf-8")

    boundary = boundary or generate_boundary()
    lines.append(f'Content-Type: multipart/mixed; boundary="{boundary}"')
    lines.append("")

    lines.append(f"--{boundary}")
    lines.append("Content-Type: text/plain; charset=utf-8")
    lines.append("")
    lines.append(body)
    lines.append("")

    for attachment in mail.attachments:
        filename = _quote(attachment.filename)
        lines.append(f"--{boundary}")
        lines.append(f'Content-Type: {attachment.content_type}; name="{filename}"')
        lines.append(f'Content-Disposition: attachment; filename="{filename}"')
        lines.append("Content-Transfer-Encoding: base64")
        lines.append("")
        lines.extend(_wrap_base64(attachment.content))
        lines.append("")

    lines.append(f"--{boundary}--")
    return CRLF.join(lines).encode("utf-8")


def encode_base64url(data: bytes) -> str:
    """Base64url without padding, as the Gmail API expects for `raw`."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")
