from __future__ import annotations

from typing import Mapping

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)
from core.config import get_settings
from core.logging import get_logger

logger = get_logger("monitoring.prometheus_exporter")

# Registry dedicato (semplice): i test leggono da qui senza toccare il default globale.
_REGISTRY = CollectorRegistry()

PAGE_FETCH_TOTAL = Counter(
    "footy_page_fetch_total", "Pagine richieste al provider per esito", ["outcome"], registry=_REGISTRY
)
QUOTA_REMAINING = Gauge("footy_quota_remaining", "Ultimo request_remaining annunciato", registry=_REGISTRY)
LIVE_FIXTURES = Gauge("footy_live_fixtures", "Fixtures live nell'ultima snapshot", registry=_REGISTRY)
LIVE_RECOMPUTE_TOTAL = Counter(
    "footy_live_recompute_total", "Ricalcoli della cache live per esito", ["outcome"], registry=_REGISTRY
)
CLASSIFICATION_TOTAL = Counter(
    "footy_classification_total", "Fixtures classificate per stato", ["state"], registry=_REGISTRY
)
INDETERMINATE_TOTAL = Counter(
    "footy_indeterminate_total", "Fixtures classificate indeterminate", registry=_REGISTRY
)
NON_FOOTBALL_TOTAL = Counter(
    "footy_non_football_total", "Fixtures scartate come non-calcio (esports/virtual)", registry=_REGISTRY
)


def _enabled() -> bool:
    try:
        settings = get_settings()
    except ValueError:
        logger.debug("Config non disponibile, skip metrics update")
        return False
    return settings.enable_prometheus_exporter


def record_page_fetch(outcome: str) -> None:
    if _enabled():
        PAGE_FETCH_TOTAL.labels(outcome=outcome).inc()


def record_quota(remaining: int) -> None:
    if _enabled():
        QUOTA_REMAINING.set(remaining)


def record_recompute(success: bool, live_count: int) -> None:
    if not _enabled():
        return
    LIVE_RECOMPUTE_TOTAL.labels(outcome="ok" if success else "failed").inc()
    LIVE_FIXTURES.set(live_count)


def record_classification(state_counts: Mapping[str, int], non_football: int) -> None:
    if not _enabled():
        return
    for state, count in state_counts.items():
        if count:
            CLASSIFICATION_TOTAL.labels(state=state).inc(count)
    indeterminate = state_counts.get("indeterminate", 0)
    if indeterminate:
        INDETERMINATE_TOTAL.inc(indeterminate)
    if non_football:
        NON_FOOTBALL_TOTAL.inc(non_football)


def generate_prometheus_text() -> bytes:
    return generate_latest(_REGISTRY)


__all__ = [
    "record_page_fetch",
    "record_quota",
    "record_recompute",
    "record_classification",
    "generate_prometheus_text",
    "_REGISTRY",
]
