"""Investor Attractiveness Score API router."""

import structlog
from fastapi import APIRouter

from atlas.modules.investor_score.schemas import InvestorScore, ScoreCalculateRequest
from atlas.modules.investor_score.scorer import compute_score

logger = structlog.get_logger()

router = APIRouter(prefix="/investor-score", tags=["investor-score"])


@router.post("/calculate", response_model=InvestorScore)
async def calculate_investor_score(body: ScoreCalculateRequest):
    """Score a site without publishing it. Stateless and side-effect free."""
    return compute_score(body.site, body.ndvi_history)
