# ingestion.py
# One inbound message: parse -> filter -> attachment text -> correlate -> store -> derive proposal.

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .attachments import extract_attachment_texts
from .errors import ExtractionError
from .message_parser import ParsedMessage, parse_message
from .proposals import derive_proposal
from .storage import JsonStore

log = logging.getLogger(__name__)


class Outcome(Enum):
    SKIPPED = "skipped"
    UNKNOWN_VENDOR = "unknown_vendor"
    NO_RFP = "no_rfp"
    EXTRACTION_FAILED = "extraction_failed"
    PROPOSAL_CREATED = "proposal_created"


@dataclass
class Correlation:
    vendor: Optional[Dict[str, Any]] = None
    rfp_id: Optional[str] = None

    @property
    def vendor_id(self) -> Optional[str]:
        return self.vendor["id"] if self.vendor else None


def is_candidate(subject: Optional[str]) -> bool:
    s = (subject or "").lower()
    return "rfp" in s or s.startswith("re:")


def correlate(store: JsonStore, message: ParsedMessage) -> Correlation:
    """Match the sender to a vendor, then to the last RFP sent to that vendor.

    The sender is compared verbatim with vendor emails, so a header like
    ``"Acme Sales" <sales@acme.example>`` does not match ``sales@acme.example``.
    """
    vendor = store.vendor_by_email(message.from_address)
    if vendor is None:
        return Correlation()
    sent = store.latest_outbound_rfp_email(vendor["id"])
    return Correlation(vendor=vendor, rfp_id=sent["rfp_id"] if sent else None)


def _save_inbound(store: JsonStore, message: ParsedMessage, vendor_id: Optional[str]) -> Dict[str, Any]:
    attachments = [
        {"filename": a.filename, "content_type": a.content_type, "size": a.size}
        for a in message.attachments
    ]
    return store.insert("emails", {
        "message_id": message.message_id,
        "from_address": message.from_address,
        "to_address": message.to_address,
        "subject": message.subject,
        "body": message.body,
        "attachments": attachments or None,
        "direction": "inbound",
        "status": "pending",
        "rfp_id": None,
        "vendor_id": vendor_id,
    })


def ingest_message(store: JsonStore, raw: bytes) -> Outcome:
    """Process one raw message. Raises MessageParseError for unparseable input."""
    message = parse_message(raw)

    if not is_candidate(message.subject):
        log.debug("Skipping non-RFP email: %s", message.subject)
        return Outcome.SKIPPED

    attachment_texts = extract_attachment_texts(message.attachments)
    match = correlate(store, message)
    if match.vendor is None:
        log.warning("Vendor not found for email: %s", message.from_address)

    email = _save_inbound(store, message, match.vendor_id)
    log.info("Saved email %s from %s", email["id"], message.from_address,
             extra={"email_id": email["id"], "vendor_id": match.vendor_id})

    if match.vendor is None:
        return Outcome.UNKNOWN_VENDOR
    if match.rfp_id is None:
        log.info("No RFP has been sent to vendor %s; email %s left for review", match.vendor_id, email["id"],
                 extra={"email_id": email["id"], "vendor_id": match.vendor_id})
        return Outcome.NO_RFP

    try:
        proposal = derive_proposal(store, email["id"], match.rfp_id, match.vendor_id,
                                   message.body, attachment_texts)
    except ExtractionError as e:
        log.error("Error processing proposal for email %s: %s", email["id"], e.message,
                  extra={"email_id": email["id"], "rfp_id": match.rfp_id, "vendor_id": match.vendor_id})
        return Outcome.EXTRACTION_FAILED
    return Outcome.PROPOSAL_CREATED if proposal else Outcome.NO_RFP
