# scoring.py
# Compliance score: how completely a proposal covers pricing, terms and compliance.
# Shared by inbox ingestion and the on-demand parse endpoint.

import math
from typing import Any, List, Optional

from .models import ExtractedData

PRICING_POINTS = 30
TERM_POINTS = 15
COMPLIANCE_POINTS = 25
POINTS_PER_FACTOR = 25


def _js_round(value: float) -> int:
    # half-up, same as Math.round for non-negative values
    return int(math.floor(value + 0.5))


def compliance_score(data: ExtractedData, requirements: Optional[List[Any]] = None) -> int:
    """Return a 0-100 score for ``data``.

    Pricing and compliance always count as one factor each. The three term
    fields count as three more factors only when a terms object exists, so a
    proposal with no terms at all is scored out of two factors.
    ``requirements`` is accepted for call-site symmetry and does not affect
    the result.
    """
    score = 0
    factors = 0

    pricing = data.pricing
    if pricing.total or len(pricing.items) > 0:
        score += PRICING_POINTS
    factors += 1

    if data.terms is not None:
        for value in (data.terms.payment, data.terms.warranty, data.terms.delivery):
            if value:
                score += TERM_POINTS
        factors += 3

    if data.compliance.meets_requirements:
        score += COMPLIANCE_POINTS
    factors += 1

    result = _js_round((score / (factors * POINTS_PER_FACTOR)) * 100)
    return max(0, min(100, result))
