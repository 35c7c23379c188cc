"""
Lead models - the persisted lead row and its typed payloads.

Status values mirror the `lead_status` and `verify_email_status` enums in the
database. `scrap_info` arrives from the scraping side as free-form JSON, so it
is parsed into a known shape where possible and kept opaque otherwise.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class LeadStatus(str, Enum):
    PENDING = "pending"
    SCRAPED = "scraped"
    ENRICHING = "enriching"
    ENRICHED = "enriched"
    FAILED = "failed"
    SCRAP_FAILED = "scrap_failed"


class VerifyEmailStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"
    # Written by older pipeline versions; read but never written here.
    INVALID = "invalid"


class LeadSource(str, Enum):
    SHOPIFY = "shopify"
    ETSY = "etsy"
    G2 = "g2"
    WOOCOMMERCE = "woocommerce"


# Transitions this pipeline is allowed to perform. pending -> scraped and
# scrap_failed belong to the scraper.
LEAD_TRANSITIONS: Dict[LeadStatus, frozenset] = {
    LeadStatus.SCRAPED: frozenset({LeadStatus.ENRICHING}),
    LeadStatus.ENRICHING: frozenset({LeadStatus.ENRICHED, LeadStatus.SCRAPED, LeadStatus.FAILED}),
}


def can_transition(current: LeadStatus, target: LeadStatus) -> bool:
    """Whether the pipeline may move a lead from `current` to `target`."""
    return target in LEAD_TRANSITIONS.get(current, frozenset())


# Keys the scraping collaborators write for every supported source.
KNOWN_SCRAP_KEYS = frozenset({"title", "desc", "description", "emails", "phone", "address"})


class WebsiteScrapInfo(BaseModel):
    """Payload written by the page scrapers (shopify, etsy, g2, woocommerce)."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    desc: str = ""
    emails: List[str] = Field(default_factory=list)
    phone: Optional[str] = None
    address: Optional[str] = None
    error: Optional[str] = None

    @field_validator("emails", mode="before")
    @classmethod
    def _coerce_emails(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        return [str(item).strip() for item in value if item and str(item).strip()]

    def as_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class OpaqueScrapInfo(BaseModel):
    """Payload from a scraper shape this service does not recognise."""

    raw: Dict[str, Any] = Field(default_factory=dict)

    @property
    def emails(self) -> List[str]:
        value = self.raw.get("emails")
        if isinstance(value, list):
            return [item for item in value if isinstance(item, str) and item.strip()]
        return []

    def as_payload(self) -> Dict[str, Any]:
        return dict(self.raw)


ScrapInfo = Union[WebsiteScrapInfo, OpaqueScrapInfo]


def parse_scrap_info(raw: Any) -> Optional[ScrapInfo]:
    """
    Parse a raw `scrap_info` column value.

    Returns None when the scraper left no payload at all.
    """
    if raw is None:
        return None
    if not isinstance(raw, dict):
        return OpaqueScrapInfo(raw={"value": raw})
    if "description" in raw and "desc" not in raw:
        raw = {**raw, "desc": raw["description"]}
    if KNOWN_SCRAP_KEYS & raw.keys():
        try:
            return WebsiteScrapInfo.model_validate(raw)
        except ValueError:
            return OpaqueScrapInfo(raw=raw)
    return OpaqueScrapInfo(raw=raw)


class EnrichInfo(BaseModel):
    """Structured enrichment result stored in `enrich_info`."""

    model_config = ConfigDict(extra="forbid")

    summary: StrictStr
    title_guess: StrictStr


class Lead(BaseModel):
    """A row of the `leads` table."""

    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    url: str = ""
    source: Optional[LeadSource] = None
    status: LeadStatus = LeadStatus.PENDING
    verify_email_status: VerifyEmailStatus = VerifyEmailStatus.PENDING
    scrap_info: Optional[Dict[str, Any]] = None
    enrich_info: Optional[Dict[str, Any]] = None
    verify_email_info: Optional[Any] = None
    flagged: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def parsed_scrap_info(self) -> Optional[ScrapInfo]:
        return parse_scrap_info(self.scrap_info)

    @property
    def first_email(self) -> Optional[str]:
        info = self.parsed_scrap_info
        if info is None or not info.emails:
            return None
        return info.emails[0]
