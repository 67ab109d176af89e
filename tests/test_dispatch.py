import pytest

from conftest import make_rfp, make_vendor
from rfpdesk.dispatch import render_rfp_email, send_rfp_to_vendors
from rfpdesk.errors import NotFoundError, TransportError, ValidationError


class FakeTransport:
    sender = "buyer@procurement.example"

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent = []

    def send(self, from_addr, to, subject, text, html):
        if to in self.fail_for:
            raise TransportError("Failed to send email: connection refused")
        self.sent.append({"from": from_addr, "to": to, "subject": subject, "text": text, "html": html})
        return f"<msg-{len(self.sent)}@procurement.example>"


def test_render_email():
    rfp = {
        "title": "Office Equipment",
        "description": "Refresh for the Berlin office",
        "requirements": [
            {"item": "Laptop", "quantity": 20, "specifications": "16GB RAM"},
            {"item": "Docking station"},
        ],
        "budget": 50000,
        "deadline": "2026-12-01T00:00:00",
        "payment_terms": "Net 30",
        "warranty": "12 months",
    }
    subject, text, html = render_rfp_email(rfp, "Acme Supplies")
    assert subject == "RFP: Office Equipment"
    assert text.startswith("Dear Acme Supplies,")
    assert "1. Laptop (Quantity: 20) - 16GB RAM" in text
    assert "2. Docking station" in text
    assert "Budget: $50,000.00" in text
    assert "Deadline: 2026-12-01" in text
    assert "Warranty Required: 12 months" in text
    assert "Delivery Terms" not in text
    assert "<br>" in html and "\n" not in html


def test_missing_vendor_rejects_whole_dispatch(store):
    rfp = make_rfp(store)
    vendor = make_vendor(store)
    transport = FakeTransport()

    with pytest.raises(NotFoundError, match="Vendor not found"):
        send_rfp_to_vendors(store, rfp["id"], [vendor["id"], "missing-vendor"], transport)

    assert transport.sent == []
    assert store.read_json("emails") == []
    assert store.get("rfps", rfp["id"])["status"] == "draft"


def test_missing_rfp(store):
    vendor = make_vendor(store)
    with pytest.raises(NotFoundError, match="RFP not found"):
        send_rfp_to_vendors(store, "nope", [vendor["id"]], FakeTransport())


def test_empty_vendor_list(store):
    rfp = make_rfp(store)
    with pytest.raises(ValidationError):
        send_rfp_to_vendors(store, rfp["id"], [], FakeTransport())


def test_partial_transport_failure(store):
    rfp = make_rfp(store)
    a = make_vendor(store, name="A Corp", email="a@vendor.example")
    b = make_vendor(store, name="B Corp", email="b@vendor.example")
    transport = FakeTransport(fail_for={"b@vendor.example"})

    result = send_rfp_to_vendors(store, rfp["id"], [a["id"], b["id"]], transport)

    assert store.get("rfps", rfp["id"])["status"] == "sent"
    by_vendor = {r.vendor_id: r for r in result.results}
    assert by_vendor[a["id"]].success is True
    assert by_vendor[b["id"]].success is False
    assert "connection refused" in by_vendor[b["id"]].error

    emails = store.read_json("emails")
    assert len(emails) == 1
    email = emails[0]
    assert email["id"] == by_vendor[a["id"]].email_id
    assert email["direction"] == "outbound"
    assert email["status"] == "processed"
    assert email["rfp_id"] == rfp["id"]
    assert email["vendor_id"] == a["id"]
    assert email["message_id"] == "<msg-1@procurement.example>"
    assert email["from_address"] == "buyer@procurement.example"


def test_all_sends_fail_still_marks_sent(store):
    rfp = make_rfp(store)
    a = make_vendor(store, email="a@vendor.example")
    result = send_rfp_to_vendors(store, rfp["id"], [a["id"]], FakeTransport(fail_for={"a@vendor.example"}))
    assert [r.success for r in result.results] == [False]
    assert store.get("rfps", rfp["id"])["status"] == "sent"
    assert store.read_json("emails") == []
