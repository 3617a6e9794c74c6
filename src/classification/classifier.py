from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from core.config import (
    DEFAULT_FINISHED_STATUS_KEYWORDS,
    DEFAULT_LIVE_STATUS_KEYWORDS,
    DEFAULT_NON_FOOTBALL_ALLOWLIST,
    DEFAULT_NON_FOOTBALL_KEYWORDS,
    Settings,
)
from core.models import (
    CanonicalFixture,
    ClassificationResult,
    ContentCategory,
    Diagnostic,
    LifecycleState,
    RawFixture,
)

# Un solo token tra parentesi: "(ProGamer99)", "(xXSniperXx)"
_PAREN_TOKEN_RE = re.compile(r"\(\s*([^()\s]{3,24})\s*\)")
# Qualificatori reali delle squadre (giovanili, riserve, femminili)
_TEAM_QUALIFIER_RE = re.compile(
    r"^(u-?\d{2}|sub-?\d{2}|ii|iii|iv|res\.?|reserves?|women|youth|am|amateur)$",
    re.IGNORECASE,
)

REASON_NON_FOOTBALL = "non_football"
REASON_MISSING_ID = "missing_id"
REASON_MISSING_KICKOFF = "missing_kickoff"
REASON_LIVE_OUTSIDE_WINDOW = "live_status_outside_window"
REASON_UNRECOGNIZED = "unrecognized_status"


@lru_cache(maxsize=64)
def _phrase_pattern(phrases: Tuple[str, ...]) -> Optional[Pattern[str]]:
    # Match su parola intera: "complete" non deve trovare "incomplete"
    clean = [p.strip().lower() for p in phrases if p and p.strip()]
    if not clean:
        return None
    alternatives = sorted((r"\s+".join(re.escape(w) for w in p.split()) for p in clean), key=len, reverse=True)
    return re.compile(r"(?<![a-z0-9])(?:" + "|".join(alternatives) + r")(?![a-z0-9])")


def _matches(text: str, phrases: Tuple[str, ...]) -> bool:
    pattern = _phrase_pattern(phrases)
    return bool(pattern and text and pattern.search(text))


@dataclass(frozen=True)
class ClassificationRules:
    live_keywords: Tuple[str, ...] = tuple(DEFAULT_LIVE_STATUS_KEYWORDS)
    finished_keywords: Tuple[str, ...] = tuple(DEFAULT_FINISHED_STATUS_KEYWORDS)
    non_football_keywords: Tuple[str, ...] = tuple(DEFAULT_NON_FOOTBALL_KEYWORDS)
    non_football_allowlist: Tuple[str, ...] = tuple(DEFAULT_NON_FOOTBALL_ALLOWLIST)
    live_past_seconds: int = 14400
    live_future_seconds: int = 1800

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClassificationRules":
        return cls(
            live_keywords=tuple(settings.live_status_keywords),
            finished_keywords=tuple(settings.finished_status_keywords),
            non_football_keywords=tuple(settings.non_football_keywords),
            non_football_allowlist=tuple(settings.non_football_allowlist),
            live_past_seconds=settings.live_past_seconds,
            live_future_seconds=settings.live_future_seconds,
        )

    def is_time_plausible_live(self, delta_seconds: int) -> bool:
        return -self.live_future_seconds <= delta_seconds <= self.live_past_seconds


DEFAULT_RULES = ClassificationRules()


def _is_gamer_tag(token: str) -> bool:
    if _TEAM_QUALIFIER_RE.match(token):
        return False
    if any(ch.isdigit() for ch in token) or "_" in token:
        return True
    # maiuscola interna su token misto (es. xXSniperXx, ProGamer)
    return any(ch.isupper() for ch in token[1:]) and any(ch.islower() for ch in token)


def has_gamer_tag(name: Optional[str]) -> bool:
    if not name:
        return False
    return any(_is_gamer_tag(m.group(1)) for m in _PAREN_TOKEN_RE.finditer(name))


def _strip_allowlisted(text: str, allowlist: Tuple[str, ...]) -> str:
    pattern = _phrase_pattern(allowlist)
    return pattern.sub(" ", text) if pattern else text


def content_category(raw: RawFixture, rules: ClassificationRules = DEFAULT_RULES) -> ContentCategory:
    """Esports / virtual / simulazioni -> NON_FOOTBALL. Deterministica."""
    if has_gamer_tag(raw.home_name) or has_gamer_tag(raw.away_name):
        return ContentCategory.NON_FOOTBALL

    texts = [(raw.home_name or "").lower(), (raw.away_name or "").lower()]
    if raw.competition_name:
        texts.append(_strip_allowlisted(raw.competition_name.lower(), rules.non_football_allowlist))
    for text in texts:
        if _matches(text, rules.non_football_keywords):
            return ContentCategory.NON_FOOTBALL
    return ContentCategory.FOOTBALL


def _to_canonical(raw: RawFixture, state: LifecycleState) -> CanonicalFixture:
    return CanonicalFixture(
        fixture_id=int(raw.fixture_id or 0),
        home_id=raw.home_id or 0,
        away_id=raw.away_id or 0,
        home_name=raw.home_name or "Unknown",
        away_name=raw.away_name or "Unknown",
        home_image=raw.home_image,
        away_image=raw.away_image,
        home_goals=max(raw.home_goals or 0, 0),
        away_goals=max(raw.away_goals or 0, 0),
        state=state,
        kickoff_unix=raw.kickoff_unix,
        stadium_name=raw.stadium_name,
        stadium_location=raw.stadium_location,
        competition_id=raw.competition_id,
        competition_name=raw.competition_name,
        country_name=raw.country_name,
    )


def _epoch(now: datetime) -> int:
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return int(now.timestamp())


def classify_fixture(
    raw: RawFixture,
    now: datetime,
    rules: ClassificationRules = DEFAULT_RULES,
) -> ClassificationResult:
    """
    Classifica una fixture grezza all'istante `now`.

    Precedenza:
      1. status testuale finito/annullato -> FINISHED (il tempo non conta)
      2. status live e d = now - kickoff in [-live_future, live_past] -> LIVE
      3. kickoff nel futuro e fuori dalla finestra live -> SCHEDULED
      4. altrimenti INDETERMINATE, sempre con un Diagnostic (status + delta)

    Nessun side effect: le diagnostiche tornano come valori.
    """
    now_ts = _epoch(now)
    delta = now_ts - raw.kickoff_unix if raw.kickoff_unix is not None else None

    if content_category(raw, rules) is ContentCategory.NON_FOOTBALL:
        return ClassificationResult(
            category=ContentCategory.NON_FOOTBALL,
            state=None,
            fixture=None,
            diagnostics=(Diagnostic(raw.fixture_id, REASON_NON_FOOTBALL, raw.status, delta),),
        )

    if raw.fixture_id is None:
        return ClassificationResult(
            category=ContentCategory.FOOTBALL,
            state=LifecycleState.INDETERMINATE,
            fixture=None,
            diagnostics=(Diagnostic(None, REASON_MISSING_ID, raw.status, delta),),
        )

    status = (raw.status or "").strip().lower()
    diagnostics: Tuple[Diagnostic, ...] = ()
    live_text = _matches(status, rules.live_keywords)

    if _matches(status, rules.finished_keywords):
        state = LifecycleState.FINISHED
    elif delta is None:
        state = LifecycleState.INDETERMINATE
        diagnostics = (Diagnostic(raw.fixture_id, REASON_MISSING_KICKOFF, raw.status, None),)
    elif live_text and rules.is_time_plausible_live(delta):
        state = LifecycleState.LIVE
    elif delta < -rules.live_future_seconds:
        state = LifecycleState.SCHEDULED
    else:
        state = LifecycleState.INDETERMINATE
        reason = REASON_LIVE_OUTSIDE_WINDOW if live_text else REASON_UNRECOGNIZED
        diagnostics = (Diagnostic(raw.fixture_id, reason, raw.status, delta),)

    return ClassificationResult(
        category=ContentCategory.FOOTBALL,
        state=state,
        fixture=_to_canonical(raw, state),
        diagnostics=diagnostics,
    )


@dataclass
class ClassificationBatch:
    by_state: Dict[LifecycleState, List[CanonicalFixture]] = field(
        default_factory=lambda: {s: [] for s in LifecycleState}
    )
    diagnostics: List[Diagnostic] = field(default_factory=list)
    non_football: int = 0

    def fixtures(self, state: LifecycleState) -> List[CanonicalFixture]:
        return self.by_state[state]

    def counts(self) -> Dict[str, int]:
        return {s.value: len(items) for s, items in self.by_state.items()}

    @property
    def indeterminate_diagnostics(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.reason != REASON_NON_FOOTBALL]


def sort_by_kickoff(fixtures: Iterable[CanonicalFixture]) -> List[CanonicalFixture]:
    return sorted(fixtures, key=lambda f: (f.kickoff_unix or 0, f.fixture_id))


def classify_many(
    raws: Iterable[RawFixture],
    now: datetime,
    rules: ClassificationRules = DEFAULT_RULES,
) -> ClassificationBatch:
    """Classifica un lotto; deduplica per fixture_id e ordina per kickoff crescente."""
    batch = ClassificationBatch()
    seen: set[int] = set()
    for raw in raws:
        result = classify_fixture(raw, now, rules)
        batch.diagnostics.extend(result.diagnostics)
        if result.category is ContentCategory.NON_FOOTBALL:
            batch.non_football += 1
            continue
        if result.fixture is None or result.state is None:
            continue
        if result.fixture.fixture_id in seen:
            continue
        seen.add(result.fixture.fixture_id)
        batch.by_state[result.state].append(result.fixture)
    for state in LifecycleState:
        batch.by_state[state] = sort_by_kickoff(batch.by_state[state])
    return batch


__all__ = [
    "ClassificationRules",
    "ClassificationBatch",
    "DEFAULT_RULES",
    "classify_fixture",
    "classify_many",
    "content_category",
    "has_gamer_tag",
    "sort_by_kickoff",
]
