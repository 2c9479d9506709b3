"""
Pure helpers that turn a submission row into newswire form values.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from worker.selectors import REQUIRED_FIELDS

SUMMARY_MAX_CHARS = 160
DEFAULT_COUNTRY = "United States"
DEFAULT_INDUSTRY = "Technology"


@dataclass(frozen=True)
class Location:
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


def parse_location(raw: Optional[str]) -> Location:
    """
    Split a free-text "City, State, Country" location.

    One token is a city, two are city and country, three or more are city,
    state and country (extra tokens are ignored).
    """
    parts = [p.strip() for p in (raw or "").split(",") if p.strip()]
    if not parts:
        return Location()
    if len(parts) == 1:
        return Location(city=parts[0])
    if len(parts) == 2:
        return Location(city=parts[0], country=parts[1])
    return Location(city=parts[0], state=parts[1], country=parts[2])


@dataclass(frozen=True)
class ReleaseTiming:
    date: str
    time: str
    timezone: str


def release_timing(scheduled_at: Optional[datetime], tz_name: str) -> Optional[ReleaseTiming]:
    """Format a scheduled release as mm/dd/yyyy and HH:MM in the release timezone; None means immediate."""
    if scheduled_at is None:
        return None
    if scheduled_at.tzinfo is None:
        scheduled_at = scheduled_at.replace(tzinfo=timezone.utc)
    local = scheduled_at.astimezone(ZoneInfo(tz_name))
    return ReleaseTiming(date=local.strftime("%m/%d/%Y"), time=local.strftime("%H:%M"), timezone=tz_name)


def trim_summary(summary: Optional[str], limit: int = SUMMARY_MAX_CHARS) -> Optional[str]:
    if not summary:
        return None
    return summary[:limit]


def missing_required_fields(snapshot: Mapping[str, str], required: Sequence[str] = REQUIRED_FIELDS) -> List[str]:
    """Names of required fields whose re-read value is empty."""
    return [name for name in required if not (snapshot.get(name) or "").strip()]


@dataclass(frozen=True)
class PressRelease:
    title: str
    content: str
    summary: Optional[str] = None
    company_name: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website_url: Optional[str] = None
    industry: Optional[str] = None
    location: Optional[str] = None
    scheduled_release_at: Optional[datetime] = None

    @classmethod
    def from_submission(cls, row: Dict) -> "PressRelease":
        return cls(
            title=row.get("title") or "",
            content=row.get("content") or "",
            summary=row.get("summary"),
            company_name=row.get("company_name"),
            contact_name=row.get("contact_name"),
            contact_email=row.get("contact_email"),
            contact_phone=row.get("contact_phone"),
            website_url=row.get("website_url"),
            industry=row.get("industry"),
            location=row.get("location"),
            scheduled_release_at=row.get("scheduled_release_at"),
        )

    @property
    def short_summary(self) -> Optional[str]:
        return trim_summary(self.summary)

    @property
    def parsed_location(self) -> Location:
        return parse_location(self.location)

    @property
    def distribution_industry(self) -> str:
        return (self.industry or "").strip() or DEFAULT_INDUSTRY

    @property
    def distribution_country(self) -> str:
        return self.parsed_location.country or DEFAULT_COUNTRY


__all__ = [
    "SUMMARY_MAX_CHARS",
    "DEFAULT_COUNTRY",
    "DEFAULT_INDUSTRY",
    "Location",
    "parse_location",
    "ReleaseTiming",
    "release_timing",
    "trim_summary",
    "missing_required_fields",
    "PressRelease",
]
