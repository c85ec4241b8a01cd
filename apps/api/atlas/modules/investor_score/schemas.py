"""Investor Attractiveness Score schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from atlas.models.enums import SiteType

NdviSample = Annotated[float, Field(ge=0.0, le=1.0)]


class Site(BaseModel):
    """Site record as supplied by the site provider. Read-only to this service."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""
    site_type: SiteType
    area_hectares: float | None = Field(default=None, ge=0)
    # Field-specific
    crop_type: str | None = None
    # Forest-specific
    forest_type: str | None = None
    fire_risk_level: str | None = None  # LOW | MODERATE | MEDIUM | HIGH | CRITICAL, any case
    # Latest analysis
    latest_ndvi: NdviSample | None = None
    health_score: float | None = Field(default=None, ge=0, le=100)


class InvestorScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    yield_stability: int = Field(ge=0, le=30)
    crop_diversification: int = Field(ge=0, le=20)
    farm_surface_area: int = Field(ge=0, le=15)
    climate_resilience: int = Field(ge=0, le=25)
    historical_performance: int = Field(ge=0, le=10)

    @property
    def total(self) -> int:
        return (
            self.yield_stability
            + self.crop_diversification
            + self.farm_surface_area
            + self.climate_resilience
            + self.historical_performance
        )


class InvestorScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    site_id: int
    total_score: int = Field(ge=0, le=100)
    breakdown: InvestorScoreBreakdown
    investment_potential_dh: int = Field(ge=0, le=200_000)
    estimated_roi_min: int
    estimated_roi_max: int = Field(ge=12, le=25)
    calculated_at: datetime


class ScoreCalculateRequest(BaseModel):
    site: Site
    ndvi_history: list[NdviSample] | None = None
