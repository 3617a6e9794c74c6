from __future__ import annotations

from typing import Any, Dict, Optional

from core.logging import get_logger
from core.models import RawFixture

logger = get_logger("core.normalization")

_warned_missing_kickoff = False  # run-level (non thread-safe, sufficiente qui)


def _as_int(v: Any) -> Optional[int]:
    try:
        return int(v) if v is not None and v != "" else None
    except (ValueError, TypeError):
        try:
            return int(float(v))
        except (ValueError, TypeError):
            return None


def _as_text(v: Any) -> Optional[str]:
    if v is None:
        return None
    text = str(v).strip()
    return text or None


def _first_int(item: Dict[str, Any], *keys: str) -> Optional[int]:
    # Il provider usa nomi diversi per i gol a seconda dell'endpoint
    for key in keys:
        value = _as_int(item.get(key))
        if value is not None:
            return value
    return None


def normalize_footystats_fixture(item: Dict[str, Any]) -> RawFixture:
    """
    Normalizza un record grezzo di /todays-matches in RawFixture.
    Nessuna validazione semantica: valori non convertibili diventano None.
    """
    global _warned_missing_kickoff

    kickoff = _as_int(item.get("date_unix"))
    if kickoff is not None and kickoff <= 0:
        kickoff = None
    if kickoff is None and not _warned_missing_kickoff:
        logger.warning("Rilevato date_unix mancante o non valido (prima occorrenza): id=%s", item.get("id"))
        _warned_missing_kickoff = True

    return RawFixture(
        fixture_id=_as_int(item.get("id")),
        home_id=_first_int(item, "homeID", "home_team_id"),
        away_id=_first_int(item, "awayID", "away_team_id"),
        home_name=_as_text(item.get("home_name")),
        away_name=_as_text(item.get("away_name")),
        status=_as_text(item.get("status")),
        kickoff_unix=kickoff,
        home_goals=_first_int(item, "homeGoalCount", "home_score", "score_home"),
        away_goals=_first_int(item, "awayGoalCount", "away_score", "score_away"),
        home_image=_as_text(item.get("home_image")),
        away_image=_as_text(item.get("away_image")),
        stadium_name=_as_text(item.get("stadium_name")),
        stadium_location=_as_text(item.get("stadium_location")),
        competition_id=_as_int(item.get("competition_id")),
        competition_name=_as_text(item.get("competition_name") or item.get("league_name")),
        country_name=_as_text(item.get("country_name") or item.get("country")),
    )


__all__ = ["normalize_footystats_fixture"]
