"""Marketplace module schemas: Listings and investor Submissions."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from atlas.models.enums import InvestmentType, SiteType
from atlas.modules.investor_score.schemas import InvestorScore, NdviSample, Site


# ── Listing ───────────────────────────────────────────────────────────────────


class Listing(BaseModel):
    id: uuid.UUID
    site_id: int
    # Site descriptors captured at publish time
    site_name: str
    site_type: SiteType
    area_hectares: float | None = None
    crop_type: str | None = None
    forest_type: str | None = None
    investor_score: InvestorScore
    co2_credits_available: float | None = Field(default=None, ge=0)
    co2_price_per_ton: float | None = Field(default=None, ge=0)
    is_active: bool = True
    published_at: datetime


class ListingPublishRequest(BaseModel):
    site: Site
    ndvi_history: list[NdviSample] | None = None
    co2_credits_available: float | None = Field(default=None, ge=0)
    co2_price_per_ton: float | None = Field(default=None, ge=0)


class ListingListResponse(BaseModel):
    items: list[Listing]
    total: int


# ── Submission ───────────────────────────────────────────────────────────────


class SubmissionFields(BaseModel):
    """Investor-supplied content of a submission, accepted as-is by the store."""

    listing_id: uuid.UUID
    site_id: int
    site_name: str
    investor_name: str
    investor_email: str
    investor_phone: str | None = None
    investment_type: InvestmentType
    proposed_amount_dh: float | None = Field(default=None, ge=0)
    message: str | None = None


class SubmissionCreateRequest(SubmissionFields):
    """Form-entry payload: name and email are required and checked here."""

    investor_email: EmailStr

    @field_validator("investor_name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("investor_name is required")
        return v


class Submission(SubmissionFields):
    id: uuid.UUID
    is_read: bool = False
    is_contacted: bool = False
    submitted_at: datetime


class SubmissionListResponse(BaseModel):
    items: list[Submission]
    total: int
    unread: int


class UnreadCountResponse(BaseModel):
    count: int
