from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable, List, Optional

from classification.classifier import DEFAULT_RULES, ClassificationRules, classify_many
from core.logging import get_logger
from core.models import Diagnostic, LifecycleState, LiveFixturesResult, LiveSnapshot, QuotaInfo
from core.normalization import normalize_footystats_fixture
from ingestion.date_window import expand_date_window, iso_dates
from ingestion.page_collector import PageCollector
from monitoring.prometheus_exporter import record_classification, record_recompute

logger = get_logger("live.cache")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def log_indeterminate(log: logging.Logger, diagnostics: Iterable[Diagnostic], where: str) -> None:
    """Una riga WARNING per ogni fixture indeterminata, con il Diagnostic come extra."""
    for diag in diagnostics:
        log.warning(
            "%s: fixture indeterminata id=%s status=%r delta=%ss (%s)",
            where,
            diag.fixture_id,
            diag.status,
            diag.delta_seconds,
            diag.reason,
            extra={"diagnostic": diag.to_dict()},
        )


class CacheState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    READY = "ready"


class LiveResultCache:
    """
    Ultima snapshot delle fixtures live con TTL di freschezza.

    - get(False) restituisce la snapshot finché è fresca;
    - get(True) / refresh() avviano (o si agganciano a) un ricalcolo;
    - al massimo un ricalcolo in volo: le richieste concorrenti attendono lo
      stesso task;
    - se la raccolta fallisce per tutta la finestra si risponde success=False
      senza servire la snapshot precedente.
    """

    def __init__(
        self,
        collector: PageCollector,
        *,
        ttl_seconds: float = 30.0,
        rules: ClassificationRules = DEFAULT_RULES,
        pad_days: int = 2,
        lookback_days: int = 1,
        clock: Clock = utc_now,
    ) -> None:
        self._collector = collector
        self._ttl = timedelta(seconds=ttl_seconds)
        self._rules = rules
        self._pad_days = pad_days
        self._lookback_days = lookback_days
        self._clock = clock

        self._snapshot: Optional[LiveSnapshot] = None
        self._last_result: Optional[LiveFixturesResult] = None
        self._inflight: Optional[asyncio.Task[LiveFixturesResult]] = None
        self._last_diagnostics: List[Diagnostic] = []
        self._recomputes = 0

    @property
    def state(self) -> CacheState:
        if self._inflight is not None and not self._inflight.done():
            return CacheState.FETCHING
        if self._snapshot is not None:
            return CacheState.READY
        return CacheState.IDLE

    @property
    def snapshot(self) -> Optional[LiveSnapshot]:
        return self._snapshot

    @property
    def last_diagnostics(self) -> List[Diagnostic]:
        return list(self._last_diagnostics)

    @property
    def recompute_count(self) -> int:
        return self._recomputes

    @property
    def horizon_hours(self) -> float:
        # La finestra live guarda avanti solo del buffer pre-kickoff
        return self._rules.live_future_seconds / 3600

    async def get(self, force_refresh: bool = False) -> LiveFixturesResult:
        if not force_refresh and self._last_result is not None:
            if self._clock() < self._last_result.next_eligible_at:
                logger.debug("Cache live valida, nessuna chiamata upstream")
                return self._last_result
        return await self.refresh()

    async def refresh(self) -> LiveFixturesResult:
        task = self._inflight
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._recompute())
            self._inflight = task
        else:
            logger.debug("Ricalcolo live già in corso, richiesta accodata")
        # shield: un chiamante cancellato non interrompe il ricalcolo condiviso
        return await asyncio.shield(task)

    async def wait_idle(self) -> None:
        task = self._inflight
        if task is not None and not task.done():
            await asyncio.wait({task})

    def _failure(self, now: datetime, message: str, quota: QuotaInfo, dates: List[str]) -> LiveFixturesResult:
        self._snapshot = None
        return LiveFixturesResult(
            success=False,
            fixtures=(),
            captured_at=now,
            next_eligible_at=now + self._ttl,
            error=message,
            quota=quota,
            dates=tuple(dates),
        )

    async def _recompute(self) -> LiveFixturesResult:
        self._recomputes += 1
        started = self._clock()
        dates = iso_dates(
            expand_date_window(
                self.horizon_hours,
                started.date(),
                pad_days=self._pad_days,
                lookback_days=self._lookback_days,
            )
        )
        quota = QuotaInfo()
        try:
            window = await self._collector.collect_window(dates)
            quota = QuotaInfo(
                request_remaining=window.request_remaining,
                request_limit=window.request_limit,
                low=window.quota_low,
            )
            now = self._clock()
            if window.failed:
                detail = "; ".join(f"{d}: {e}" for d, e in window.errors.items())
                logger.error("Ricalcolo live fallito, nessuna fixture raccolta: %s", detail)
                result = self._failure(now, f"Upstream non disponibile per tutte le date ({detail})", quota, dates)
                record_recompute(False, 0)
                self._last_result = result
                return result

            batch = classify_many(
                (normalize_footystats_fixture(item) for item in window.fixtures), now, self._rules
            )
        except Exception as exc:
            logger.error("Errore inatteso nel ricalcolo live: %s", exc, exc_info=True)
            result = self._failure(self._clock(), f"Errore interno: {exc}", quota, dates)
            record_recompute(False, 0)
            self._last_result = result
            return result

        self._last_diagnostics = batch.indeterminate_diagnostics
        log_indeterminate(logger, self._last_diagnostics, "Live")
        record_classification(batch.counts(), batch.non_football)

        live = tuple(batch.fixtures(LifecycleState.LIVE))
        self._snapshot = LiveSnapshot(fixtures=live, captured_at=now, next_eligible_at=now + self._ttl)
        result = LiveFixturesResult(
            success=True,
            fixtures=live,
            captured_at=now,
            next_eligible_at=self._snapshot.next_eligible_at,
            quota=quota,
            dates=tuple(dates),
        )
        self._last_result = result
        record_recompute(True, len(live))
        logger.info(
            "Live ricalcolate: %s live su %s raccolte (scartate non-calcio=%s, indeterminate=%s)",
            len(live),
            window.total_collected,
            batch.non_football,
            len(self._last_diagnostics),
        )
        return result


__all__ = ["LiveResultCache", "CacheState", "utc_now", "log_indeterminate"]
