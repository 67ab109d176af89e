# dispatch.py
# Send an RFP to vendors by email and record each outbound message.

import html
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .errors import AppError, NotFoundError, ValidationError
from .models import DispatchResult, VendorSendResult
from .storage import JsonStore

log = logging.getLogger(__name__)


def format_budget(budget) -> str:
    return f"${float(budget):,.2f}"


def format_deadline(deadline) -> str:
    if isinstance(deadline, datetime):
        return deadline.date().isoformat()
    try:
        return datetime.fromisoformat(str(deadline)).date().isoformat()
    except ValueError:
        return str(deadline)


def format_requirements(requirements: List[Dict[str, Any]]) -> str:
    lines = []
    for idx, req in enumerate(requirements, start=1):
        line = f"{idx}. {req.get('item')}"
        if req.get("quantity"):
            line += f" (Quantity: {req['quantity']})"
        if req.get("specifications"):
            line += f" - {req['specifications']}"
        lines.append(line)
    return "\n".join(lines)


def render_rfp_email(rfp: Dict[str, Any], vendor_name: str) -> Tuple[str, str, str]:
    """Returns (subject, text body, html body)."""
    parts = [
        f"Dear {vendor_name},",
        "We are requesting a proposal for the following procurement:",
        f"RFP Title: {rfp['title']}",
    ]
    if rfp.get("description"):
        parts.append(f"Description:\n{rfp['description']}")
    parts.append("Requirements:\n" + (format_requirements(rfp.get("requirements") or []) or "(none listed)"))

    details = []
    if rfp.get("budget"):
        details.append(f"Budget: {format_budget(rfp['budget'])}")
    if rfp.get("deadline"):
        details.append(f"Deadline: {format_deadline(rfp['deadline'])}")
    if rfp.get("payment_terms"):
        details.append(f"Payment Terms: {rfp['payment_terms']}")
    if rfp.get("warranty"):
        details.append(f"Warranty Required: {rfp['warranty']}")
    if rfp.get("delivery_terms"):
        details.append(f"Delivery Terms: {rfp['delivery_terms']}")
    if details:
        parts.append("\n".join(details))

    parts.append(
        "Please provide your proposal including:\n"
        "- Detailed pricing (itemized if possible)\n"
        "- Payment terms\n"
        "- Warranty information\n"
        "- Delivery timeline\n"
        "- Any additional terms or conditions"
    )
    parts.append("Please reply to this email with your proposal.")
    parts.append("Thank you,\nProcurement Team")

    text = "\n\n".join(parts)
    body_html = html.escape(text).replace("\n", "<br>")
    return f"RFP: {rfp['title']}", text, body_html


def send_rfp_to_vendors(store: JsonStore, rfp_id: str, vendor_ids: List[str], transport,
                        from_address: Optional[str] = None) -> DispatchResult:
    if not vendor_ids:
        raise ValidationError("vendor_ids must not be empty")
    rfp = store.get("rfps", rfp_id)
    if rfp is None:
        raise NotFoundError("RFP not found")

    vendors = []
    for vid in dict.fromkeys(vendor_ids):
        vendor = store.get("vendors", vid)
        if vendor is None:
            raise NotFoundError(f"Vendor not found: {vid}")
        vendors.append(vendor)

    sender = from_address if from_address is not None else transport.sender
    results = []
    for vendor in vendors:
        subject, text, body_html = render_rfp_email(rfp, vendor["name"])
        try:
            message_id = transport.send(sender, vendor["email"], subject, text, body_html)
        except AppError as e:
            log.error("Error sending RFP %s to %s: %s", rfp_id, vendor["email"], e.message)
            results.append(VendorSendResult(vendor_id=vendor["id"], vendor_name=vendor["name"],
                                            success=False, error=e.message))
            continue

        email = store.insert("emails", {
            "message_id": message_id or None,
            "from_address": sender,
            "to_address": vendor["email"],
            "subject": subject,
            "body": f"RFP sent to {vendor['name']}",
            "attachments": None,
            "direction": "outbound",
            "status": "processed",
            "rfp_id": rfp_id,
            "vendor_id": vendor["id"],
        })
        results.append(VendorSendResult(vendor_id=vendor["id"], vendor_name=vendor["name"],
                                        success=True, email_id=email["id"]))

    store.update("rfps", rfp_id, {"status": "sent"})
    sent = sum(1 for r in results if r.success)
    log.info("RFP %s dispatched: %d/%d sent", rfp_id, sent, len(results))
    return DispatchResult(rfp_id=rfp_id, results=results)
