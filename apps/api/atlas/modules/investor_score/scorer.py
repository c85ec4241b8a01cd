"""Investor Attractiveness Score: deterministic 5-factor scorer.

Converts a site's telemetry into a 0-100 composite score, an investment
potential in dirhams and an ROI range. Pure functions: no I/O and no
randomness.

Factors and caps:
    yield_stability         30   NDVI dispersion over time (latest NDVI proxy caps at 25)
    crop_diversification    20   crop declared / natural ecosystem
    farm_surface_area       15   area step function
    climate_resilience      25   fire risk (forest) or health proxy (field)
    historical_performance  10   health proxy
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from atlas.models.enums import FireRiskLevel, SiteType
from atlas.modules.investor_score.schemas import (
    InvestorScore,
    InvestorScoreBreakdown,
    Site,
)

FACTOR_MAX_POINTS: dict[str, int] = {
    "yield_stability": 30,
    "crop_diversification": 20,
    "farm_surface_area": 15,
    "climate_resilience": 25,
    "historical_performance": 10,
}

MAX_INVESTMENT_DH = 200_000
ROI_MIN_PERCENT = 12
ROI_SPREAD_PERCENT = 13  # roi_max tops out at 12 + 13 = 25

MIN_HISTORY_SAMPLES = 3
VARIANCE_PENALTY = 10
LATEST_NDVI_PROXY_POINTS = 25
DEFAULT_HEALTH = 50.0

# (minimum hectares, points), checked top-down; anything smaller scores 3
AREA_BRACKETS: tuple[tuple[float, int], ...] = (
    (100, 15),
    (50, 12),
    (20, 9),
    (10, 6),
)
AREA_FLOOR_POINTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def round_half_up(value: float) -> int:
    """Round .5 upwards, unlike the built-in banker's rounding."""
    return math.floor(value + 0.5)


def _health_proxy(site: Site) -> float:
    if site.health_score is not None:
        return site.health_score
    if site.latest_ndvi is not None:
        return site.latest_ndvi * 100
    return DEFAULT_HEALTH


def _score_yield_stability(site: Site, ndvi_history: Sequence[float] | None) -> int:
    """
    Full history: 30 * max(0, 1 - 10 * population variance).
    Latest NDVI only: 25 * ndvi. The proxy path tops out at 25, not 30.
    """
    if ndvi_history and len(ndvi_history) >= MIN_HISTORY_SAMPLES:
        mean = sum(ndvi_history) / len(ndvi_history)
        variance = sum((v - mean) ** 2 for v in ndvi_history) / len(ndvi_history)
        stability = max(0.0, 1 - variance * VARIANCE_PENALTY)
        return round_half_up(stability * FACTOR_MAX_POINTS["yield_stability"])
    if site.latest_ndvi is not None:
        return round_half_up(site.latest_ndvi * LATEST_NDVI_PROXY_POINTS)
    return 0


def _score_crop_diversification(site: Site) -> int:
    if site.site_type == SiteType.FOREST:
        # Natural ecosystems count as fully diversified
        return FACTOR_MAX_POINTS["crop_diversification"]
    return 15 if site.crop_type else 10


def _score_farm_surface_area(site: Site) -> int:
    area = site.area_hectares or 0
    for min_hectares, points in AREA_BRACKETS:
        if area >= min_hectares:
            return points
    return AREA_FLOOR_POINTS


def _score_climate_resilience(site: Site) -> int:
    if site.site_type == SiteType.FOREST:
        level = (site.fire_risk_level or "").upper()
        if level == FireRiskLevel.LOW:
            return 25
        if level in (FireRiskLevel.MODERATE, FireRiskLevel.MEDIUM):
            return 15
        return 5
    return round_half_up(_health_proxy(site) / 100 * FACTOR_MAX_POINTS["climate_resilience"])


def _score_historical_performance(site: Site) -> int:
    return round_half_up(_health_proxy(site) / 100 * FACTOR_MAX_POINTS["historical_performance"])


def estimate_investment_potential(total_score: int) -> int:
    """Investment potential in DH, linear in score up to 200,000."""
    return round_half_up(total_score / 100 * MAX_INVESTMENT_DH)


def estimate_roi_range(total_score: int) -> tuple[int, int]:
    """Estimated ROI percentage range: fixed 12% floor, ceiling 12-25%."""
    return ROI_MIN_PERCENT, round_half_up(ROI_MIN_PERCENT + total_score / 100 * ROI_SPREAD_PERCENT)


def score_breakdown(
    site: Site, ndvi_history: Sequence[float] | None = None
) -> InvestorScoreBreakdown:
    """Compute the five factor scores for a site."""
    return InvestorScoreBreakdown(
        yield_stability=_score_yield_stability(site, ndvi_history),
        crop_diversification=_score_crop_diversification(site),
        farm_surface_area=_score_farm_surface_area(site),
        climate_resilience=_score_climate_resilience(site),
        historical_performance=_score_historical_performance(site),
    )


def compute_score(
    site: Site,
    ndvi_history: Sequence[float] | None = None,
    *,
    clock: Callable[[], datetime] = _utcnow,
) -> InvestorScore:
    """
    Score a site for investors.

    Args:
        site: site record; only ``site_type`` is required, every other
            attribute has a fallback.
        ndvi_history: optional NDVI samples in temporal order (conventionally
            twelve monthly readings). Fewer than three samples fall back to
            ``site.latest_ndvi``.
        clock: time source for ``calculated_at``.

    The same inputs always yield the same breakdown and total; only
    ``calculated_at`` depends on when the call is made.
    """
    breakdown = score_breakdown(site, ndvi_history)
    total_score = breakdown.total
    roi_min, roi_max = estimate_roi_range(total_score)

    return InvestorScore(
        site_id=site.id,
        total_score=total_score,
        breakdown=breakdown,
        investment_potential_dh=estimate_investment_potential(total_score),
        estimated_roi_min=roi_min,
        estimated_roi_max=roi_max,
        calculated_at=clock(),
    )
