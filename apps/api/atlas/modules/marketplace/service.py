"""Marketplace service: listing publication and investor submissions."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from typing import TypeVar

import structlog

from atlas.core.config import settings
from atlas.models.enums import ListingSort, SiteType, SubmissionFilter
from atlas.modules.investor_score.schemas import InvestorScore, Site
from atlas.modules.investor_score.scorer import compute_score
from atlas.modules.marketplace.repository import CollectionRepository, Record
from atlas.modules.marketplace.schemas import Listing, Submission, SubmissionFields

logger = structlog.get_logger()

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Caller-side views ─────────────────────────────────────────────────────────


def sort_listings(
    listings: Iterable[Listing],
    sort_by: ListingSort = ListingSort.SCORE,
    site_type: SiteType | None = None,
) -> list[Listing]:
    """Browse view: optional site-type filter, then best/largest/newest first."""
    items = [lst for lst in listings if site_type is None or lst.site_type == site_type]
    if sort_by == ListingSort.SCORE:
        items.sort(key=lambda lst: lst.investor_score.total_score, reverse=True)
    elif sort_by == ListingSort.AREA:
        items.sort(key=lambda lst: lst.area_hectares or 0, reverse=True)
    else:
        items.sort(key=lambda lst: lst.published_at, reverse=True)
    return items


def filter_submissions(
    submissions: Iterable[Submission],
    status: SubmissionFilter = SubmissionFilter.ALL,
) -> list[Submission]:
    if status == SubmissionFilter.UNREAD:
        return [s for s in submissions if not s.is_read]
    if status == SubmissionFilter.CONTACTED:
        return [s for s in submissions if s.is_contacted]
    return list(submissions)


# ── Store ─────────────────────────────────────────────────────────────────────


class MarketplaceStore:
    """Owns the Listing and Submission collections.

    Every mutating call runs as one repository ``update``: the collection
    is loaded, changed and persisted in a single unit while its lock is
    held, so a storage fault fails the call without committing anything.
    Listings and submissions are independent and never share a lock.
    """

    def __init__(
        self,
        repository: CollectionRepository,
        *,
        listings_key: str = settings.MARKETPLACE_LISTINGS_KEY,
        submissions_key: str = settings.MARKETPLACE_SUBMISSIONS_KEY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._listings_key = listings_key
        self._submissions_key = submissions_key
        self._clock = clock
        self._listings_lock = asyncio.Lock()
        self._submissions_lock = asyncio.Lock()

    # ── Persistence helpers ──────────────────────────────────────────────────

    async def _load_listings(self) -> list[Listing]:
        records = await self._repository.get(self._listings_key)
        return [Listing.model_validate(r) for r in records]

    async def _load_submissions(self) -> list[Submission]:
        records = await self._repository.get(self._submissions_key)
        return [Submission.model_validate(r) for r in records]

    async def _update_listings(
        self, change: Callable[[list[Listing]], tuple[list[Listing] | None, T]]
    ) -> T:
        def mutate(records: list[Record]) -> tuple[list[Record] | None, T]:
            listings, result = change([Listing.model_validate(r) for r in records])
            if listings is None:
                return None, result
            return [lst.model_dump(mode="json") for lst in listings], result

        async with self._listings_lock:
            return await self._repository.update(self._listings_key, mutate)

    async def _update_submissions(
        self, change: Callable[[list[Submission]], tuple[list[Submission] | None, T]]
    ) -> T:
        def mutate(records: list[Record]) -> tuple[list[Record] | None, T]:
            submissions, result = change([Submission.model_validate(r) for r in records])
            if submissions is None:
                return None, result
            return [s.model_dump(mode="json") for s in submissions], result

        async with self._submissions_lock:
            return await self._repository.update(self._submissions_key, mutate)

    # ── Listings ─────────────────────────────────────────────────────────────

    async def upsert_listing(
        self,
        site: Site,
        co2_credits: float | None = None,
        co2_price: float | None = None,
        *,
        ndvi_history: Sequence[float] | None = None,
        score: InvestorScore | None = None,
    ) -> tuple[Listing, bool]:
        """Insert or overwrite the listing for ``site.id``.

        Returns the listing and ``True`` when it was newly created. An
        existing listing keeps its ``id``; everything else is replaced.
        """
        if score is None:
            score = compute_score(site, ndvi_history, clock=self._clock)
        elif score.site_id != site.id:
            raise ValueError(f"Score for site {score.site_id} cannot be published for site {site.id}")
        published_at = self._clock()

        def upsert(listings: list[Listing]) -> tuple[list[Listing], tuple[Listing, bool]]:
            index = next(
                (i for i, lst in enumerate(listings) if lst.site_id == site.id), None
            )
            created = index is None
            listing = Listing(
                id=uuid.uuid4() if created else listings[index].id,
                site_id=site.id,
                site_name=site.name,
                site_type=site.site_type,
                area_hectares=site.area_hectares,
                crop_type=site.crop_type,
                forest_type=site.forest_type,
                investor_score=score,
                co2_credits_available=co2_credits,
                co2_price_per_ton=co2_price,
                is_active=True,
                published_at=published_at,
            )
            if created:
                listings.append(listing)
            else:
                listings[index] = listing
            return listings, (listing, created)

        listing, created = await self._update_listings(upsert)

        logger.info(
            "listing_published",
            listing_id=str(listing.id),
            site_id=site.id,
            total_score=score.total_score,
            created=created,
        )
        return listing, created

    async def publish(
        self,
        site: Site,
        co2_credits: float | None = None,
        co2_price: float | None = None,
        *,
        ndvi_history: Sequence[float] | None = None,
        score: InvestorScore | None = None,
    ) -> Listing:
        listing, _ = await self.upsert_listing(
            site, co2_credits, co2_price, ndvi_history=ndvi_history, score=score
        )
        return listing

    async def unpublish(self, site_id: int) -> None:
        """Remove the site's listing. Unlisted sites are a no-op."""

        def remove(listings: list[Listing]) -> tuple[list[Listing] | None, bool]:
            remaining = [lst for lst in listings if lst.site_id != site_id]
            if len(remaining) == len(listings):
                return None, False
            return remaining, True

        if await self._update_listings(remove):
            logger.info("listing_unpublished", site_id=site_id)

    async def list_active(self) -> list[Listing]:
        """Active listings in persisted (publication) order."""
        return [lst for lst in await self._load_listings() if lst.is_active]

    async def find_by_site(self, site_id: int) -> Listing | None:
        return next(
            (lst for lst in await self._load_listings() if lst.site_id == site_id), None
        )

    # ── Submissions ──────────────────────────────────────────────────────────

    async def submit_interest(self, fields: SubmissionFields) -> Submission:
        """Record an investor's interest. Never deduplicated."""
        submission = Submission(
            **fields.model_dump(),
            id=uuid.uuid4(),
            is_read=False,
            is_contacted=False,
            submitted_at=self._clock(),
        )
        await self._update_submissions(lambda submissions: ([*submissions, submission], None))

        logger.info(
            "submission_received",
            submission_id=str(submission.id),
            listing_id=str(submission.listing_id),
            site_id=submission.site_id,
            investment_type=submission.investment_type.value,
        )
        return submission

    async def list_submissions(self, site_id: int | None = None) -> list[Submission]:
        """
        With ``site_id``: that site's submissions in persisted order.
        Without: every submission, most recent first.
        """
        submissions = await self._load_submissions()
        if site_id is not None:
            return [s for s in submissions if s.site_id == site_id]
        return sorted(submissions, key=lambda s: s.submitted_at, reverse=True)

    async def _set_flags(
        self, submission_id: uuid.UUID, *, contacted: bool
    ) -> Submission | None:
        updates = {"is_read": True}
        if contacted:
            updates["is_contacted"] = True

        def flag(
            submissions: list[Submission],
        ) -> tuple[list[Submission] | None, Submission | None]:
            index = next(
                (i for i, s in enumerate(submissions) if s.id == submission_id), None
            )
            if index is None:
                return None, None
            current = submissions[index]
            updated = current.model_copy(update=updates)
            if updated == current:
                return None, current
            submissions[index] = updated
            return submissions, updated

        return await self._update_submissions(flag)

    async def mark_read(self, submission_id: uuid.UUID) -> Submission | None:
        submission = await self._set_flags(submission_id, contacted=False)
        if submission is not None:
            logger.info("submission_marked_read", submission_id=str(submission_id))
        return submission

    async def mark_contacted(self, submission_id: uuid.UUID) -> Submission | None:
        """Contacting implies having read: both flags flip in one write."""
        submission = await self._set_flags(submission_id, contacted=True)
        if submission is not None:
            logger.info("submission_marked_contacted", submission_id=str(submission_id))
        return submission

    async def count_unread(self) -> int:
        return sum(1 for s in await self._load_submissions() if not s.is_read)
