# main.py
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime, timezone
from typing import List, Literal, Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import ai_helpers, models, poller, proposals
from .config import PollerConfig, ServerConfig
from .dispatch import send_rfp_to_vendors
from .errors import AppError, ConflictError, NotFoundError, ValidationError
from .logging_config import setup_logging
from .mailer import SmtpTransport
from .storage import JsonStore, get_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if PollerConfig.from_env().enabled:
        poller.start_email_polling()
    yield
    poller.stop_email_polling()


app = FastAPI(title="RFP Desk API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # for local dev only
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def get_transport() -> SmtpTransport:
    return SmtpTransport()


def _require(store: JsonStore, collection: str, record_id: str, label: str):
    record = store.get(collection, record_id)
    if record is None:
        raise NotFoundError(f"{label} not found")
    return record


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


# --- RFP endpoints ---

@app.post("/api/rfps/from-text", response_model=models.RFP, status_code=201)
def create_rfp_from_text(body: models.RFPCreateRequest, store: JsonStore = Depends(get_store)):
    parsed = models.RFPCreate.model_validate(ai_helpers.extract_rfp(body.text))
    return store.insert("rfps", {**parsed.model_dump(mode="json"), "status": "draft"})


@app.post("/api/rfps", response_model=models.RFP, status_code=201)
def create_rfp(body: models.RFPCreate, store: JsonStore = Depends(get_store)):
    return store.insert("rfps", {**body.model_dump(mode="json"), "status": "draft"})


@app.get("/api/rfps", response_model=List[models.RFP])
def list_rfps(store: JsonStore = Depends(get_store)):
    return store.list("rfps", newest_first=True)


@app.get("/api/rfps/{rfp_id}")
def get_rfp(rfp_id: str, store: JsonStore = Depends(get_store)):
    rfp = _require(store, "rfps", rfp_id, "RFP")
    return {
        **models.RFP.model_validate(rfp).model_dump(mode="json"),
        "proposals": store.list("proposals", newest_first=True, rfp_id=rfp_id),
        "emails": store.list("emails", newest_first=True, rfp_id=rfp_id, direction="outbound"),
    }


@app.put("/api/rfps/{rfp_id}", response_model=models.RFP)
def update_rfp(rfp_id: str, body: models.RFPUpdate, store: JsonStore = Depends(get_store)):
    rfp = _require(store, "rfps", rfp_id, "RFP")
    changes = body.model_dump(mode="json", exclude_unset=True)
    if rfp.get("status") == "closed" and set(changes) - {"status"}:
        raise ValidationError("RFP is closed")
    return store.update("rfps", rfp_id, changes)


@app.delete("/api/rfps/{rfp_id}")
def delete_rfp(rfp_id: str, store: JsonStore = Depends(get_store)):
    if not store.delete_rfp(rfp_id):
        raise NotFoundError("RFP not found")
    return {"message": "RFP deleted successfully"}


@app.post("/api/rfps/{rfp_id}/send", response_model=models.DispatchResult)
def send_rfp(rfp_id: str, body: models.SendRFPRequest, store: JsonStore = Depends(get_store),
             transport: SmtpTransport = Depends(get_transport)):
    return send_rfp_to_vendors(store, rfp_id, body.vendor_ids, transport)


@app.post("/api/rfps/{rfp_id}/compare")
def compare_proposals(rfp_id: str, store: JsonStore = Depends(get_store)):
    return proposals.compare_rfp_proposals(store, rfp_id)


# --- Vendor endpoints ---

@app.post("/api/vendors", response_model=models.Vendor, status_code=201)
def create_vendor(vendor: models.VendorCreate, store: JsonStore = Depends(get_store)):
    if store.vendor_by_email(vendor.email):
        raise ConflictError("A vendor with this email already exists")
    return store.insert("vendors", vendor.model_dump(mode="json"))


@app.get("/api/vendors", response_model=List[models.Vendor])
def list_vendors(store: JsonStore = Depends(get_store)):
    return sorted(store.list("vendors"), key=lambda v: v.get("name", "").lower())


@app.get("/api/vendors/{vendor_id}", response_model=models.Vendor)
def get_vendor(vendor_id: str, store: JsonStore = Depends(get_store)):
    return _require(store, "vendors", vendor_id, "Vendor")


@app.put("/api/vendors/{vendor_id}", response_model=models.Vendor)
def update_vendor(vendor_id: str, body: models.VendorUpdate, store: JsonStore = Depends(get_store)):
    _require(store, "vendors", vendor_id, "Vendor")
    changes = body.model_dump(mode="json", exclude_unset=True)
    if "email" in changes:
        other = store.vendor_by_email(changes["email"])
        if other and other["id"] != vendor_id:
            raise ConflictError("A vendor with this email already exists")
    return store.update("vendors", vendor_id, changes)


@app.delete("/api/vendors/{vendor_id}")
def delete_vendor(vendor_id: str, store: JsonStore = Depends(get_store)):
    if not store.delete_vendor(vendor_id):
        raise NotFoundError("Vendor not found")
    return {"message": "Vendor deleted successfully"}


# --- Proposals ---

@app.get("/api/proposals", response_model=List[models.Proposal])
def list_proposals(store: JsonStore = Depends(get_store)):
    return store.list("proposals", newest_first=True)


@app.get("/api/proposals/rfp/{rfp_id}", response_model=List[models.Proposal])
def list_proposals_for_rfp(rfp_id: str, store: JsonStore = Depends(get_store)):
    return store.list("proposals", newest_first=True, rfp_id=rfp_id)


@app.get("/api/proposals/{proposal_id}", response_model=models.Proposal)
def get_proposal(proposal_id: str, store: JsonStore = Depends(get_store)):
    return _require(store, "proposals", proposal_id, "Proposal")


@app.post("/api/proposals", response_model=models.Proposal, status_code=201)
def create_proposal(body: models.ProposalCreate, store: JsonStore = Depends(get_store)):
    return proposals.create_proposal(store, body.rfp_id, body.vendor_id, body.raw_content,
                                     body.attachments_texts)


@app.post("/api/proposals/{proposal_id}/parse", response_model=models.Proposal)
def parse_proposal(proposal_id: str, store: JsonStore = Depends(get_store)):
    return proposals.parse_proposal(store, proposal_id)


# --- Emails ---

@app.get("/api/emails", response_model=List[models.EmailRecord])
def list_emails(direction: Optional[Literal["inbound", "outbound"]] = None,
                rfp_id: Optional[str] = None, vendor_id: Optional[str] = None,
                store: JsonStore = Depends(get_store)):
    filters = {k: v for k, v in (("direction", direction), ("rfp_id", rfp_id), ("vendor_id", vendor_id)) if v}
    return store.list("emails", newest_first=True, **filters)


@app.get("/api/emails/test-connection")
def test_connection(transport: SmtpTransport = Depends(get_transport)):
    ok = transport.verify()
    return {"success": ok, "message": "Email connection successful" if ok else "Email connection failed"}


@app.post("/api/emails/poll")
def poll_inbox():
    email_poller = poller.get_poller()
    if not email_poller.mailbox_config.is_configured:
        raise ValidationError("IMAP is not configured")
    summary = email_poller.poll_once(blocking=False)
    if summary is None:
        raise ConflictError("A poll cycle is already running")
    return asdict(summary)


@app.get("/api/emails/{email_id}", response_model=models.EmailRecord)
def get_email(email_id: str, store: JsonStore = Depends(get_store)):
    return _require(store, "emails", email_id, "Email")


def run():
    server = ServerConfig.from_env()
    uvicorn.run("rfpdesk.main:app", host=server.host, port=server.port)


if __name__ == "__main__":
    run()
