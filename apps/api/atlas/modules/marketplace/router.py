"""Marketplace API router."""

import uuid

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from atlas.models.enums import ListingSort, SiteType, SubmissionFilter
from atlas.modules.marketplace.dependencies import get_marketplace_store
from atlas.modules.marketplace.schemas import (
    Listing,
    ListingListResponse,
    ListingPublishRequest,
    Submission,
    SubmissionCreateRequest,
    SubmissionListResponse,
    UnreadCountResponse,
)
from atlas.modules.marketplace.service import (
    MarketplaceStore,
    filter_submissions,
    sort_listings,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/marketplace", tags=["marketplace"])


# ── Listings ──────────────────────────────────────────────────────────────────


@router.get("/listings", response_model=ListingListResponse)
async def browse_listings(
    site_type: SiteType | None = Query(None),
    sort_by: ListingSort = Query(ListingSort.SCORE),
    store: MarketplaceStore = Depends(get_marketplace_store),
):
    """Browse active listings, best score first by default."""
    items = sort_listings(await store.list_active(), sort_by, site_type)
    return ListingListResponse(items=items, total=len(items))


@router.post("/listings", response_model=Listing, status_code=status.HTTP_201_CREATED)
async def publish_listing(
    body: ListingPublishRequest,
    response: Response,
    store: MarketplaceStore = Depends(get_marketplace_store),
):
    """Publish a site, or refresh its existing listing (200) keeping the same id."""
    listing, created = await store.upsert_listing(
        body.site,
        body.co2_credits_available,
        body.co2_price_per_ton,
        ndvi_history=body.ndvi_history,
    )
    if not created:
        response.status_code = status.HTTP_200_OK
    return listing


@router.get("/listings/{site_id}", response_model=Listing)
async def get_listing(
    site_id: int,
    store: MarketplaceStore = Depends(get_marketplace_store),
):
    listing = await store.find_by_site(site_id)
    if listing is None:
        raise HTTPException(status_code=404, detail=f"No listing for site {site_id}")
    return listing


@router.delete("/listings/{site_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unpublish_listing(
    site_id: int,
    store: MarketplaceStore = Depends(get_marketplace_store),
):
    """Withdraw a site from the marketplace. Idempotent."""
    await store.unpublish(site_id)


# ── Submissions ───────────────────────────────────────────────────────────────


@router.post(
    "/submissions",
    response_model=Submission,
    status_code=status.HTTP_201_CREATED,
)
async def submit_interest(
    body: SubmissionCreateRequest,
    store: MarketplaceStore = Depends(get_marketplace_store),
):
    """Investor expresses interest in a listing."""
    return await store.submit_interest(body)


@router.get("/submissions", response_model=SubmissionListResponse)
async def list_submissions(
    site_id: int | None = Query(None),
    status_filter: SubmissionFilter = Query(SubmissionFilter.ALL, alias="status"),
    store: MarketplaceStore = Depends(get_marketplace_store),
):
    """Owner inbox. Without site_id, most recent first."""
    submissions = await store.list_submissions(site_id)
    items = filter_submissions(submissions, status_filter)
    return SubmissionListResponse(
        items=items,
        total=len(items),
        unread=sum(1 for s in submissions if not s.is_read),
    )


@router.get("/submissions/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    store: MarketplaceStore = Depends(get_marketplace_store),
):
    return UnreadCountResponse(count=await store.count_unread())


@router.post("/submissions/{submission_id}/read", response_model=Submission)
async def mark_submission_read(
    submission_id: uuid.UUID,
    store: MarketplaceStore = Depends(get_marketplace_store),
):
    submission = await store.mark_read(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail=f"Submission {submission_id} not found")
    return submission


@router.post("/submissions/{submission_id}/contacted", response_model=Submission)
async def mark_submission_contacted(
    submission_id: uuid.UUID,
    store: MarketplaceStore = Depends(get_marketplace_store),
):
    """Mark the investor as contacted (also marks the submission read)."""
    submission = await store.mark_contacted(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail=f"Submission {submission_id} not found")
    return submission
