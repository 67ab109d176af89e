# ai_helpers.py
# Extraction service: OpenAI JSON-mode calls for RFP extraction, proposal parsing and comparison.
# Responses are free-form JSON, so everything is normalised here before it reaches the models.

import json
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import openai

from .config import OpenAIConfig
from .errors import ExtractionError
from .models import (
    Compliance,
    ComparisonResult,
    ExtractedData,
    Pricing,
    PricingItem,
    Requirement,
    Terms,
)

log = logging.getLogger(__name__)

RFP_PROMPT = """You are an expert at extracting procurement requirements from natural language.

Extract structured RFP information from the following user input. Return ONLY valid JSON matching this schema:
{{
  "title": "string (concise title)",
  "description": "string (optional detailed description)",
  "requirements": [
    {{"item": "string", "quantity": "number (optional)", "specifications": "string (optional)"}}
  ],
  "budget": "number (optional, in USD)",
  "deadline": "string (optional, ISO date)",
  "paymentTerms": "string (optional, e.g. 'net 30')",
  "warranty": "string (optional)",
  "deliveryTerms": "string (optional)"
}}

User input: "{text}"
"""

PROPOSAL_PROMPT = """You are an expert at extracting structured proposal data from vendor responses.

Extract proposal information from the following vendor response. Return ONLY valid JSON matching this schema:
{{
  "pricing": {{
    "total": "number (total price in USD, optional)",
    "items": [{{"item": "string", "quantity": "number", "unitPrice": "number", "total": "number"}}]
  }},
  "terms": {{
    "payment": "string (payment terms)",
    "warranty": "string (warranty terms)",
    "delivery": "string (delivery terms)"
  }},
  "compliance": {{
    "meetsRequirements": "boolean",
    "missingItems": "array of strings (items not addressed)",
    "additionalOffers": "array of strings (extra items/services offered)"
  }},
  "notes": "string (optional additional notes)"
}}

Vendor response:
{text}
{requirements}"""

COMPARE_PROMPT = """You are an expert procurement analyst. Compare multiple vendor proposals and provide a recommendation.

RFP Requirements:
{requirements}

Proposals:
{proposals}

Analyze each proposal and return ONLY valid JSON matching this schema:
{{
  "proposals": [
    {{
      "vendorId": "string (copy from input)",
      "vendorName": "string",
      "score": "number (0-100, overall score)",
      "strengths": ["array of strengths"],
      "weaknesses": ["array of weaknesses"],
      "summary": "string (brief summary)"
    }}
  ],
  "recommendation": {{"vendorId": "string", "vendorName": "string", "reasoning": "string"}}
}}

Consider: pricing competitiveness, compliance with requirements, terms (payment, warranty, delivery), and overall value."""


def call_openai_json(system: str, prompt: str, temperature: float = 0.3,
                     settings: Optional[OpenAIConfig] = None) -> Dict[str, Any]:
    settings = settings or OpenAIConfig.from_env()
    if not settings.api_key:
        raise ExtractionError("OpenAI key not set")
    try:
        client = openai.OpenAI(api_key=settings.api_key, timeout=settings.timeout, max_retries=0)
        resp = client.chat.completions.create(
            model=settings.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=temperature,
            response_format={"type": "json_object"},
        )
    except openai.OpenAIError as e:
        raise ExtractionError(f"Extraction service call failed: {e}") from e

    content = resp.choices[0].message.content if resp.choices else None
    if not content:
        raise ExtractionError("No response from extraction service")
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Extraction service returned invalid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ExtractionError("Extraction service returned a non-object payload")
    return parsed


# --- coercion helpers ---

_NUMBER_NOISE = re.compile(r"[\s,$€£¥₹]|USD|EUR|GBP")


def _pick(payload: Dict[str, Any], *keys):
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _to_float(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = _NUMBER_NOISE.sub("", value)
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def _to_int(value) -> Optional[int]:
    number = _to_float(value)
    return int(number) if number is not None else None


def _to_str(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def _to_str_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [s for s in (_to_str(v) for v in value) if s]


def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return bool(value)


def _to_deadline(value) -> Optional[str]:
    text = _to_str(value)
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).isoformat()
    except ValueError:
        pass
    try:
        return datetime.combine(date.fromisoformat(text), datetime.min.time()).isoformat()
    except ValueError:
        log.debug("Ignoring non-ISO deadline from extraction: %r", text)
        return None


# --- RFP extraction ---

def _normalize_requirements(value) -> List[Requirement]:
    if not isinstance(value, list):
        return []
    out = []
    for entry in value:
        if isinstance(entry, str) and entry.strip():
            out.append(Requirement(item=entry.strip()))
        elif isinstance(entry, dict):
            item = _to_str(_pick(entry, "item", "name"))
            if not item:
                continue
            out.append(Requirement(
                item=item,
                quantity=_to_int(_pick(entry, "quantity", "qty")),
                specifications=_to_str(_pick(entry, "specifications", "specs")),
            ))
    return out


def extract_rfp(text: str) -> Dict[str, Any]:
    """Turn a free-text procurement ask into RFPCreate fields."""
    payload = call_openai_json(
        "You are a procurement expert. Extract structured data and return ONLY valid JSON.",
        RFP_PROMPT.format(text=text),
    )
    return {
        "title": _to_str(payload.get("title")) or "Untitled RFP",
        "description": _to_str(payload.get("description")),
        "requirements": [r.model_dump() for r in _normalize_requirements(payload.get("requirements"))],
        "budget": _to_float(payload.get("budget")),
        "deadline": _to_deadline(payload.get("deadline")),
        "payment_terms": _to_str(_pick(payload, "paymentTerms", "payment_terms")),
        "warranty": _to_str(payload.get("warranty")),
        "delivery_terms": _to_str(_pick(payload, "deliveryTerms", "delivery_terms")),
    }


# --- proposal extraction ---

def normalize_proposal_payload(payload: Dict[str, Any]) -> ExtractedData:
    """Convert a raw extraction payload to ExtractedData. Missing or malformed fields become absent."""
    pricing_raw = payload.get("pricing") if isinstance(payload.get("pricing"), dict) else {}
    items = []
    items_raw = pricing_raw.get("items")
    for entry in items_raw if isinstance(items_raw, list) else []:
        if not isinstance(entry, dict):
            continue
        items.append(PricingItem(
            item=_to_str(_pick(entry, "item", "name")),
            quantity=_to_float(entry.get("quantity")),
            unit_price=_to_float(_pick(entry, "unitPrice", "unit_price")),
            total=_to_float(entry.get("total")),
        ))
    pricing = Pricing(total=_to_float(pricing_raw.get("total")), items=items)

    terms = None
    terms_raw = payload.get("terms")
    if isinstance(terms_raw, dict):
        terms = Terms(
            payment=_to_str(terms_raw.get("payment")),
            warranty=_to_str(terms_raw.get("warranty")),
            delivery=_to_str(terms_raw.get("delivery")),
        )

    compliance_raw = payload.get("compliance") if isinstance(payload.get("compliance"), dict) else {}
    compliance = Compliance(
        meets_requirements=_to_bool(_pick(compliance_raw, "meetsRequirements", "meets_requirements")),
        missing_items=_to_str_list(_pick(compliance_raw, "missingItems", "missing_items")),
        additional_offers=_to_str_list(_pick(compliance_raw, "additionalOffers", "additional_offers")),
    )
    return ExtractedData(pricing=pricing, terms=terms, compliance=compliance,
                         notes=_to_str(payload.get("notes")))


def extract_proposal(combined_text: str, rfp_requirements: Optional[List[Dict[str, Any]]] = None) -> ExtractedData:
    requirements = ""
    if rfp_requirements:
        requirements = "\nOriginal RFP Requirements:\n" + json.dumps(rfp_requirements, indent=2)
    payload = call_openai_json(
        "You are a procurement analyst. Extract structured proposal data and return ONLY valid JSON.",
        PROPOSAL_PROMPT.format(text=combined_text, requirements=requirements),
    )
    return normalize_proposal_payload(payload)


# --- comparison ---

def compare_proposals(rfp_requirements: List[Dict[str, Any]], proposals: List[Dict[str, Any]]) -> ComparisonResult:
    """``proposals`` entries are {vendorId, vendorName, proposalData}."""
    payload = call_openai_json(
        "You are a procurement expert. Provide detailed comparison and recommendation. Return ONLY valid JSON.",
        COMPARE_PROMPT.format(
            requirements=json.dumps(rfp_requirements, indent=2),
            proposals=json.dumps(proposals, indent=2, default=str),
        ),
        temperature=0.5,
    )
    assessments = []
    entries = payload.get("proposals")
    for entry in entries if isinstance(entries, list) else []:
        if not isinstance(entry, dict) or not _to_str(entry.get("vendorId")):
            continue
        score = _to_float(entry.get("score")) or 0.0
        assessments.append({
            "vendorId": _to_str(entry.get("vendorId")),
            "vendorName": _to_str(entry.get("vendorName")),
            "score": max(0.0, min(100.0, score)),
            "strengths": _to_str_list(entry.get("strengths")),
            "weaknesses": _to_str_list(entry.get("weaknesses")),
            "summary": _to_str(entry.get("summary")),
        })
    recommendation = payload.get("recommendation") if isinstance(payload.get("recommendation"), dict) else None
    if recommendation is not None:
        recommendation = {
            "vendorId": _to_str(recommendation.get("vendorId")),
            "vendorName": _to_str(recommendation.get("vendorName")),
            "reasoning": _to_str(recommendation.get("reasoning")),
        }
    return ComparisonResult.model_validate({"proposals": assessments, "recommendation": recommendation})
