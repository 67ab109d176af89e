# message_parser.py
# Raw RFC822 bytes -> ParsedMessage (headers, body text, attachments).

import logging
from dataclasses import dataclass, field
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from typing import List, Optional

from .errors import MessageParseError

log = logging.getLogger(__name__)


@dataclass
class Attachment:
    filename: Optional[str]
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class ParsedMessage:
    from_address: str
    to_address: str
    subject: str
    body: str
    message_id: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)


def _header(msg: EmailMessage, name: str) -> str:
    value = msg.get(name)
    return str(value).strip() if value is not None else ""


def _part_text(part) -> str:
    try:
        return part.get_content()
    except (LookupError, UnicodeError, AttributeError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def _body(msg: EmailMessage) -> str:
    best = msg.get_body(preferencelist=("plain", "html"))
    if best is None:
        return ""
    return _part_text(best)


def _attachments(msg: EmailMessage) -> List[Attachment]:
    out = []
    for part in msg.iter_attachments():
        if part.is_multipart():
            continue
        content = part.get_payload(decode=True) or b""
        out.append(Attachment(
            filename=part.get_filename(),
            content_type=part.get_content_type(),
            content=content,
        ))
    return out


def parse_message(raw: bytes) -> ParsedMessage:
    if not isinstance(raw, (bytes, bytearray)) or not raw.strip():
        raise MessageParseError("Empty or non-bytes message")
    try:
        msg = BytesParser(policy=policy.default).parsebytes(bytes(raw))
    except (TypeError, ValueError, IndexError) as e:
        raise MessageParseError(f"Unparseable message: {e}") from e

    try:
        return ParsedMessage(
            from_address=_header(msg, "From") or "unknown",
            to_address=_header(msg, "To"),
            subject=_header(msg, "Subject") or "No Subject",
            body=_body(msg),
            message_id=_header(msg, "Message-ID") or None,
            attachments=_attachments(msg),
        )
    except (TypeError, ValueError, IndexError, LookupError) as e:
        raise MessageParseError(f"Malformed message structure: {e}") from e
