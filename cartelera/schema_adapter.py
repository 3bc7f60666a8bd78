"""
Data models shared by the crawl-and-extract pipeline.

``EventRecord`` is the canonical document handed to the persistence gateway;
everything else is intermediate state that lives for at most one run.
"""
from datetime import date as calendar_date, datetime
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

# source -> external ids already stored with a future start date
DedupIndex = Dict[str, Set[str]]


class CrawlTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    external_id: str
    source: str


class ImageCandidate(BaseModel):
    url: str
    alt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    priority: int = Field(99, description="Provenance rank, lower is more authoritative.")
    srcset: Optional[str] = None

    @property
    def area(self) -> int:
        return (self.width or 0) * (self.height or 0)


class RawExtraction(BaseModel):
    """Strings scraped straight off a detail page, before any normalization."""
    title: Optional[str] = None
    description: Optional[str] = None
    long_description: Optional[str] = None
    venue: Optional[str] = None
    address: Optional[str] = None
    date_text: Optional[str] = None
    time_text: Optional[str] = None
    price_text: Optional[str] = None
    category: Optional[str] = None
    images: List[ImageCandidate] = Field(default_factory=list)
    ticket_url: Optional[str] = None
    source_url: Optional[str] = None


class Occurrence(BaseModel):
    date: calendar_date
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class ParsedDateInfo(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    occurrences: List[Occurrence] = Field(default_factory=list)


class ParsedPrice(BaseModel):
    text: Optional[str] = None
    min: Optional[int] = None
    max: Optional[int] = None
    currency: str = "CLP"


class EventRecord(BaseModel):
    """Canonical event document. ``(external_id, source)`` is the natural key."""
    model_config = ConfigDict(frozen=True)

    external_id: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1)
    source_url: str

    title: Optional[str] = None
    description: Optional[str] = None
    long_description: Optional[str] = None

    start_date: Optional[str] = Field(None, description="UTC ISO-8601 instant.")
    end_date: Optional[str] = Field(None, description="UTC ISO-8601 instant.")
    event_occurrences: Optional[List[Occurrence]] = None

    venue: Optional[str] = None
    address: Optional[str] = None
    comuna: Optional[str] = None
    location: Optional[str] = None

    image_url: Optional[str] = None
    images: Optional[List[ImageCandidate]] = None

    category_original: Optional[str] = None
    category_english: Optional[str] = None

    price: Optional[str] = None
    price_min: Optional[int] = None
    price_max: Optional[int] = None
    currency: str = "CLP"

    homepage_url: Optional[str] = None
    ticket_url: Optional[str] = None

    validation_status: str = "pending"
    scrape_version: str
    raw_data: RawExtraction

    @field_validator('external_id', 'source')
    @classmethod
    def strip_key_fields(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("natural key fields must be non-empty")
        return v

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class RunResult(BaseModel):
    scraped: int = 0
    skipped: int = 0
    errors: int = 0
    events: List[EventRecord] = Field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.errors > 0 else 0
