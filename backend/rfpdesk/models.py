# models.py
# Pydantic models for RFPs, vendors, email records and proposals + request/response bodies

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

RFPStatus = Literal["draft", "sent", "closed"]
EmailDirection = Literal["inbound", "outbound"]
EmailStatus = Literal["pending", "processed"]
ProposalStatus = Literal["pending", "parsed", "evaluated"]


class Requirement(BaseModel):
    item: str
    quantity: Optional[int] = None
    specifications: Optional[str] = None


# --- RFPs ---

class RFPCreateRequest(BaseModel):
    text: str = Field(min_length=10)


class RFPCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    requirements: List[Requirement] = Field(default_factory=list)
    budget: Optional[float] = None
    deadline: Optional[datetime] = None
    payment_terms: Optional[str] = None
    warranty: Optional[str] = None
    delivery_terms: Optional[str] = None


class RFPUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    requirements: Optional[List[Requirement]] = None
    budget: Optional[float] = None
    deadline: Optional[datetime] = None
    payment_terms: Optional[str] = None
    warranty: Optional[str] = None
    delivery_terms: Optional[str] = None
    status: Optional[RFPStatus] = None


class RFP(RFPCreate):
    id: str
    status: RFPStatus = "draft"
    created_at: datetime
    updated_at: Optional[datetime] = None


# --- Vendors ---

class VendorCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    category: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    notes: Optional[str] = None


class VendorUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    category: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    notes: Optional[str] = None


class Vendor(VendorCreate):
    id: str
    created_at: datetime
    updated_at: Optional[datetime] = None


# --- Email records ---

class AttachmentMeta(BaseModel):
    filename: Optional[str] = None
    content_type: str
    size: int = 0


class EmailRecord(BaseModel):
    id: str
    message_id: Optional[str] = None
    from_address: str
    to_address: str = ""
    subject: str
    body: str = ""
    attachments: Optional[List[AttachmentMeta]] = None
    direction: EmailDirection
    status: EmailStatus = "pending"
    rfp_id: Optional[str] = None
    vendor_id: Optional[str] = None
    created_at: datetime


# --- Extracted proposal data ---

class PricingItem(BaseModel):
    item: Optional[str] = None
    quantity: Optional[float] = None
    unit_price: Optional[float] = None
    total: Optional[float] = None


class Pricing(BaseModel):
    total: Optional[float] = None
    items: List[PricingItem] = Field(default_factory=list)


class Terms(BaseModel):
    payment: Optional[str] = None
    warranty: Optional[str] = None
    delivery: Optional[str] = None


class Compliance(BaseModel):
    meets_requirements: bool = False
    missing_items: List[str] = Field(default_factory=list)
    additional_offers: List[str] = Field(default_factory=list)


class ExtractedData(BaseModel):
    pricing: Pricing = Field(default_factory=Pricing)
    # None means the service returned no terms object at all
    terms: Optional[Terms] = None
    compliance: Compliance = Field(default_factory=Compliance)
    notes: Optional[str] = None


# --- Proposals ---

class ProposalCreate(BaseModel):
    rfp_id: str
    vendor_id: str
    raw_content: str = Field(min_length=1)
    attachments_texts: Optional[List[str]] = None


class Proposal(BaseModel):
    id: str
    rfp_id: str
    vendor_id: str
    status: ProposalStatus = "pending"
    raw_content: Optional[str] = None
    attachments_texts: Optional[List[str]] = None
    extracted_data: Optional[ExtractedData] = None
    compliance_score: Optional[int] = Field(default=None, ge=0, le=100)
    ai_score: Optional[float] = None
    ai_summary: Optional[str] = None
    created_at: datetime
    parsed_at: Optional[datetime] = None


# --- Comparison ---

class VendorAssessment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vendor_id: str = Field(alias="vendorId")
    vendor_name: Optional[str] = Field(default=None, alias="vendorName")
    score: float = Field(default=0, ge=0, le=100)
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    summary: Optional[str] = None


class Recommendation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    vendor_id: Optional[str] = Field(default=None, alias="vendorId")
    vendor_name: Optional[str] = Field(default=None, alias="vendorName")
    reasoning: Optional[str] = None


class ComparisonResult(BaseModel):
    proposals: List[VendorAssessment] = Field(default_factory=list)
    recommendation: Optional[Recommendation] = None


# --- Dispatch ---

class SendRFPRequest(BaseModel):
    vendor_ids: List[str] = Field(min_length=1)


class VendorSendResult(BaseModel):
    vendor_id: str
    vendor_name: str
    success: bool
    email_id: Optional[str] = None
    error: Optional[str] = None


class DispatchResult(BaseModel):
    rfp_id: str
    results: List[VendorSendResult]
