# proposals.py
# Proposal derivation (inline from ingestion or on demand) and the AI comparison run.

import logging
from typing import Any, Dict, List, Optional

from . import ai_helpers
from .errors import NotFoundError, ValidationError
from .models import ExtractedData
from .scoring import compliance_score
from .storage import JsonStore, utcnow

log = logging.getLogger(__name__)

TEXT_SEPARATOR = "\n\n---\n\n"
COMPARABLE_STATUSES = ("parsed", "evaluated")


def combine_text(body: str, attachment_texts: Optional[List[str]] = None) -> str:
    return TEXT_SEPARATOR.join([body or ""] + list(attachment_texts or []))


def _extract(rfp: Dict[str, Any], body: str, attachment_texts: Optional[List[str]]):
    requirements = rfp.get("requirements") or []
    data: ExtractedData = ai_helpers.extract_proposal(combine_text(body, attachment_texts), requirements)
    return data, compliance_score(data, requirements)


def derive_proposal(store: JsonStore, email_id: str, rfp_id: str, vendor_id: str,
                    body: str, attachment_texts: List[str]) -> Optional[Dict[str, Any]]:
    """Parse an inbound reply into a proposal and mark its email processed.

    Raises ExtractionError when the extraction service fails; nothing is
    written in that case.
    """
    rfp = store.get("rfps", rfp_id)
    if rfp is None:
        log.warning("RFP not found: %s", rfp_id)
        return None

    data, score = _extract(rfp, body, attachment_texts)

    proposal = store.insert("proposals", {
        "rfp_id": rfp_id,
        "vendor_id": vendor_id,
        "status": "parsed",
        "raw_content": body,
        "attachments_texts": attachment_texts or None,
        "extracted_data": data.model_dump(),
        "compliance_score": score,
        "ai_score": None,
        "ai_summary": None,
        "parsed_at": utcnow(),
    })
    store.update("emails", email_id, {"status": "processed", "rfp_id": rfp_id})
    log.info("Created proposal %s for RFP %s (compliance %s)", proposal["id"], rfp_id, score,
             extra={"proposal_id": proposal["id"], "rfp_id": rfp_id, "email_id": email_id})
    return proposal


def create_proposal(store: JsonStore, rfp_id: str, vendor_id: str, raw_content: str,
                    attachments_texts: Optional[List[str]] = None) -> Dict[str, Any]:
    """Store an unparsed proposal; parse_proposal() fills it in later."""
    if store.get("rfps", rfp_id) is None:
        raise NotFoundError("RFP not found")
    if store.get("vendors", vendor_id) is None:
        raise NotFoundError("Vendor not found")
    return store.insert("proposals", {
        "rfp_id": rfp_id,
        "vendor_id": vendor_id,
        "status": "pending",
        "raw_content": raw_content,
        "attachments_texts": attachments_texts or None,
        "extracted_data": None,
        "compliance_score": None,
        "ai_score": None,
        "ai_summary": None,
        "parsed_at": None,
    })


def parse_proposal(store: JsonStore, proposal_id: str) -> Dict[str, Any]:
    proposal = store.get("proposals", proposal_id)
    if proposal is None:
        raise NotFoundError("Proposal not found")
    if not proposal.get("raw_content"):
        raise ValidationError("No raw content to parse")
    rfp = store.get("rfps", proposal["rfp_id"])
    if rfp is None:
        raise NotFoundError("RFP not found")

    data, score = _extract(rfp, proposal["raw_content"], proposal.get("attachments_texts"))
    updated = store.update("proposals", proposal_id, {
        "extracted_data": data.model_dump(),
        "compliance_score": score,
        "status": "parsed",
        "parsed_at": utcnow(),
    })
    log.info("Parsed proposal %s (compliance %s)", proposal_id, score, extra={"proposal_id": proposal_id})
    return updated


def compare_rfp_proposals(store: JsonStore, rfp_id: str) -> Dict[str, Any]:
    rfp = store.get("rfps", rfp_id)
    if rfp is None:
        raise NotFoundError("RFP not found")
    proposals = store.list("proposals", rfp_id=rfp_id, status=list(COMPARABLE_STATUSES))
    if not proposals:
        raise NotFoundError("No proposals found for this RFP")

    payload = []
    for p in proposals:
        vendor = store.get("vendors", p["vendor_id"]) or {}
        payload.append({
            "vendorId": p["vendor_id"],
            "vendorName": vendor.get("name", p["vendor_id"]),
            "proposalData": p.get("extracted_data"),
        })

    requirements = rfp.get("requirements") or []
    comparison = ai_helpers.compare_proposals(requirements, payload)

    for result in comparison.proposals:
        updated = store.update_where(
            "proposals",
            {"ai_score": result.score, "ai_summary": result.summary, "status": "evaluated"},
            rfp_id=rfp_id, vendor_id=result.vendor_id,
        )
        if not updated:
            log.warning("Comparison returned unknown vendor %s for RFP %s", result.vendor_id, rfp_id)

    return {
        "rfp": {"id": rfp["id"], "title": rfp.get("title"), "requirements": requirements},
        "comparison": comparison.model_dump(),
    }
