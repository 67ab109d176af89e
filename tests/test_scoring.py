import pytest

from rfpdesk.ai_helpers import normalize_proposal_payload
from rfpdesk.scoring import compliance_score


def _data(**payload):
    return normalize_proposal_payload(payload)


def test_partial_terms_scores_68():
    data = _data(
        pricing={"total": 1000},
        terms={"payment": "Net 30", "delivery": "14 days"},
        compliance={"meetsRequirements": True},
    )
    assert compliance_score(data) == 68


def test_missing_terms_object_drops_three_factors():
    with_empty_terms = _data(pricing={"total": 1000}, terms={}, compliance={"meetsRequirements": False})
    without_terms = _data(pricing={"total": 1000}, compliance={"meetsRequirements": False})

    # 30 / 125 vs 30 / 50
    assert compliance_score(with_empty_terms) == 24
    assert compliance_score(without_terms) == 60


def test_items_count_as_pricing():
    data = _data(pricing={"items": [{"item": "Laptop", "total": 900}]}, terms=None)
    assert compliance_score(data) == 60


def test_zero_total_is_not_pricing():
    assert compliance_score(_data(pricing={"total": 0}, terms={})) == 0


def test_full_marks_with_terms():
    data = _data(
        pricing={"total": 5},
        terms={"payment": "Net 30", "warranty": "1 year", "delivery": "2 weeks"},
        compliance={"meetsRequirements": True},
    )
    assert compliance_score(data) == 80


def test_score_is_clamped_without_terms():
    data = _data(pricing={"total": 5}, compliance={"meetsRequirements": True})
    assert compliance_score(data) == 100


def test_single_term():
    # 70 / 125
    data = _data(pricing={"total": 1}, terms={"payment": "x"}, compliance={"meetsRequirements": True})
    assert compliance_score(data) == 56


@pytest.mark.parametrize("payload", [
    {},
    {"pricing": None, "terms": None, "compliance": None},
    {"pricing": {"total": "n/a"}, "terms": {"payment": ""}, "compliance": {"meetsRequirements": "no"}},
    {"pricing": {"total": 12.5, "items": []}, "terms": {"warranty": "3y"}},
])
def test_score_in_range_and_repeatable(payload):
    data = _data(**payload)
    first = compliance_score(data)
    assert 0 <= first <= 100
    assert compliance_score(data) == first


def test_requirements_do_not_change_score():
    data = _data(pricing={"total": 1000}, terms={"payment": "Net 30"})
    assert compliance_score(data, None) == compliance_score(data, [{"item": "Laptop", "quantity": 3}])
