# attachments.py
# Attachment -> plain text. PDFs go through pypdf, text/* is decoded, everything else is skipped.

import io
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional

from pypdf import PdfReader

from .message_parser import Attachment

log = logging.getLogger(__name__)


class AttachmentKind(Enum):
    PDF = "pdf"
    TEXT = "text"
    UNSUPPORTED = "unsupported"


def classify(content_type: Optional[str]) -> AttachmentKind:
    ctype = (content_type or "").lower()
    if ctype == "application/pdf":
        return AttachmentKind.PDF
    if "text" in ctype:
        return AttachmentKind.TEXT
    return AttachmentKind.UNSUPPORTED


def pdf_text(content: bytes) -> str:
    reader = PdfReader(io.BytesIO(content))
    pages = []
    for page in reader.pages:
        text = page.extract_text() or ""
        if text.strip():
            pages.append(text)
    return "\n".join(pages)


def plain_text(content: bytes) -> str:
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        return content.decode("latin-1")


EXTRACTORS: Dict[AttachmentKind, Callable[[bytes], str]] = {
    AttachmentKind.PDF: pdf_text,
    AttachmentKind.TEXT: plain_text,
}


def extract_text(attachment: Attachment) -> Optional[str]:
    """Text for one attachment, or None when its type is not supported."""
    extractor = EXTRACTORS.get(classify(attachment.content_type))
    if extractor is None:
        log.debug("Skipping unsupported attachment %s (%s)", attachment.filename, attachment.content_type)
        return None
    return extractor(attachment.content)


def extract_attachment_texts(attachments: List[Attachment]) -> List[str]:
    texts = []
    for attachment in attachments:
        try:
            text = extract_text(attachment)
        except Exception as e:
            # pypdf raises a wide range of errors on corrupt files
            log.warning("Error parsing attachment %s: %s", attachment.filename, e)
            continue
        if text is not None:
            texts.append(text)
    return texts
