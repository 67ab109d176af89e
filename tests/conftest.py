from contextlib import contextmanager
from email.message import EmailMessage

import pytest

from rfpdesk import ai_helpers
from rfpdesk.storage import JsonStore


@pytest.fixture(autouse=True)
def reset_env(monkeypatch):
    for key in ["IMAP_HOST", "IMAP_USER", "IMAP_PASSWORD", "ENABLE_EMAIL_POLLING",
                "OPENAI_API_KEY", "SMTP_HOST", "RFPDESK_DATA_DIR"]:
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture
def store(tmp_path):
    return JsonStore(tmp_path / "data")


@pytest.fixture
def extraction(monkeypatch):
    """Replace the OpenAI call with a canned payload; records every prompt it sees."""

    class _Fake:
        def __init__(self):
            self.payload = {}
            self.error = None
            self.prompts = []

        def __call__(self, system, prompt, temperature=0.3, settings=None):
            self.prompts.append(prompt)
            if self.error is not None:
                raise self.error
            return self.payload

    fake = _Fake()
    monkeypatch.setattr(ai_helpers, "call_openai_json", fake)
    return fake


def make_vendor(store, name="Acme Supplies", email="sales@acme.example"):
    return store.insert("vendors", {"name": name, "email": email})


def make_rfp(store, title="Office Equipment", **extra):
    record = {
        "title": title,
        "description": None,
        "requirements": [
            {"item": "Laptop", "quantity": 20, "specifications": "16GB RAM"},
            {"item": "Monitor", "quantity": 15, "specifications": "27-inch"},
        ],
        "budget": 50000,
        "deadline": None,
        "payment_terms": "Net 30",
        "warranty": None,
        "delivery_terms": None,
        "status": "draft",
    }
    record.update(extra)
    return store.insert("rfps", record)


def record_outbound(store, rfp_id, vendor):
    return store.insert("emails", {
        "message_id": "<out-1@procurement.example>",
        "from_address": "buyer@procurement.example",
        "to_address": vendor["email"],
        "subject": "RFP: Office Equipment",
        "body": f"RFP sent to {vendor['name']}",
        "attachments": None,
        "direction": "outbound",
        "status": "processed",
        "rfp_id": rfp_id,
        "vendor_id": vendor["id"],
    })


def build_email(subject="RE: RFP: Office Equipment", sender="sales@acme.example",
                body="We can supply everything for $1000.", attachments=()):
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = "buyer@procurement.example"
    msg["Subject"] = subject
    msg["Message-ID"] = "<reply-1@acme.example>"
    msg.set_content(body)
    for filename, maintype, subtype, content in attachments:
        msg.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)
    return msg.as_bytes()


class FakeSession:
    def __init__(self, messages=None, search_error=None):
        self.messages = dict(messages or {})
        self.search_error = search_error
        self.closed = False
        self.fetched = []

    def list_unseen(self):
        if self.search_error is not None:
            raise self.search_error
        return list(self.messages)

    def fetch(self, seqno):
        self.fetched.append(seqno)
        value = self.messages[seqno]
        if isinstance(value, Exception):
            raise value
        return value

    def close(self):
        self.closed = True

    def abort(self):
        self.closed = True


def session_factory(session):
    @contextmanager
    def _open(cfg):
        try:
            yield session
        finally:
            session.close()
    return _open
