"""SQLAlchemy models package: import all models so Base.metadata is populated."""

from atlas.models.enums import (
    FireRiskLevel,
    InvestmentType,
    ListingSort,
    SiteType,
    SubmissionFilter,
)
from atlas.models.storage import StorageSlot

__all__ = [
    "FireRiskLevel",
    "InvestmentType",
    "ListingSort",
    "SiteType",
    "StorageSlot",
    "SubmissionFilter",
]
