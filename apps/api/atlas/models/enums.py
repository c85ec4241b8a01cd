"""Domain enums shared by the scoring engine and the marketplace."""

import enum


# ── Sites ────────────────────────────────────────────────────────────────────


class SiteType(str, enum.Enum):
    FIELD = "FIELD"
    FOREST = "FOREST"


class FireRiskLevel(str, enum.Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    MEDIUM = "MEDIUM"  # synonym of MODERATE, both spellings arrive from the site provider
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


# ── Marketplace ──────────────────────────────────────────────────────────────


class InvestmentType(str, enum.Enum):
    CO2_CREDITS = "CO2_CREDITS"
    SITE_INVESTMENT = "SITE_INVESTMENT"
    BOTH = "BOTH"


class ListingSort(str, enum.Enum):
    SCORE = "score"
    AREA = "area"
    RECENT = "recent"


class SubmissionFilter(str, enum.Enum):
    ALL = "all"
    UNREAD = "unread"
    CONTACTED = "contacted"
