from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class LifecycleState(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"
    INDETERMINATE = "indeterminate"


class ContentCategory(str, Enum):
    FOOTBALL = "football"
    NON_FOOTBALL = "non_football"


@dataclass(frozen=True)
class RawFixture:
    """
    Record grezzo (non affidabile) come arriva da /todays-matches.
    I campi numerici sono già passati da _as_int, quindi possono essere None.
    """

    fixture_id: Optional[int]
    home_id: Optional[int]
    away_id: Optional[int]
    home_name: Optional[str]
    away_name: Optional[str]
    status: Optional[str]
    kickoff_unix: Optional[int]
    home_goals: Optional[int] = None
    away_goals: Optional[int] = None
    home_image: Optional[str] = None
    away_image: Optional[str] = None
    stadium_name: Optional[str] = None
    stadium_location: Optional[str] = None
    competition_id: Optional[int] = None
    competition_name: Optional[str] = None
    country_name: Optional[str] = None


@dataclass(frozen=True)
class CanonicalFixture:
    fixture_id: int
    home_id: int
    away_id: int
    home_name: str
    away_name: str
    home_image: Optional[str]
    away_image: Optional[str]
    home_goals: int
    away_goals: int
    state: LifecycleState
    kickoff_unix: Optional[int]
    stadium_name: Optional[str]
    stadium_location: Optional[str]
    competition_id: Optional[int]
    competition_name: Optional[str]
    country_name: Optional[str] = None

    @property
    def kickoff_utc(self) -> Optional[datetime]:
        if self.kickoff_unix is None:
            return None
        return datetime.fromtimestamp(self.kickoff_unix, tz=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fixture_id": self.fixture_id,
            "home": {"id": self.home_id, "name": self.home_name, "image": self.home_image},
            "away": {"id": self.away_id, "name": self.away_name, "image": self.away_image},
            "home_goals": self.home_goals,
            "away_goals": self.away_goals,
            "state": self.state.value,
            "kickoff_unix": self.kickoff_unix,
            "kickoff_utc": self.kickoff_utc.isoformat() if self.kickoff_utc else None,
            "venue": {"name": self.stadium_name, "location": self.stadium_location},
            "competition": {"id": self.competition_id, "name": self.competition_name},
            "country_name": self.country_name,
        }


@dataclass(frozen=True)
class Diagnostic:
    """Traccia di una classificazione non conclusiva (o di uno scarto)."""

    fixture_id: Optional[int]
    reason: str
    status: Optional[str]
    delta_seconds: Optional[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fixture_id": self.fixture_id,
            "reason": self.reason,
            "status": self.status,
            "delta_seconds": self.delta_seconds,
        }


@dataclass(frozen=True)
class ClassificationResult:
    category: ContentCategory
    state: Optional[LifecycleState]
    fixture: Optional[CanonicalFixture]
    diagnostics: Tuple[Diagnostic, ...] = ()


@dataclass(frozen=True)
class LiveSnapshot:
    fixtures: Tuple[CanonicalFixture, ...]
    captured_at: datetime
    next_eligible_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return now < self.next_eligible_at


@dataclass(frozen=True)
class QuotaInfo:
    request_remaining: Optional[int] = None
    request_limit: Optional[int] = None
    low: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_remaining": self.request_remaining,
            "request_limit": self.request_limit,
            "low": self.low,
        }


@dataclass(frozen=True)
class LiveFixturesResult:
    success: bool
    fixtures: Tuple[CanonicalFixture, ...]
    captured_at: datetime
    next_eligible_at: datetime
    error: Optional[str] = None
    quota: QuotaInfo = field(default_factory=QuotaInfo)
    dates: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": self.success,
            "fixtures": [f.to_dict() for f in self.fixtures],
            "count": len(self.fixtures),
            "captured_at": self.captured_at.isoformat(),
            "next_eligible_at": self.next_eligible_at.isoformat(),
            "quota": self.quota.to_dict(),
            "dates": list(self.dates),
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


__all__ = [
    "LifecycleState",
    "ContentCategory",
    "RawFixture",
    "CanonicalFixture",
    "Diagnostic",
    "ClassificationResult",
    "LiveSnapshot",
    "QuotaInfo",
    "LiveFixturesResult",
]
