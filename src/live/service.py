from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from classification.classifier import ClassificationRules, classify_many
from core.config import Settings, get_settings
from core.logging import get_logger
from core.models import CanonicalFixture, LifecycleState, LiveFixturesResult
from core.normalization import normalize_footystats_fixture
from ingestion.date_window import expand_date_window, iso_dates
from ingestion.page_collector import PageCollector
from live.cache import Clock, LiveResultCache, log_indeterminate, utc_now
from live.poller import LivePoller
from providers.footystats.base import FixturePageSource
from providers.footystats.exceptions import UpstreamError
from providers.footystats.http_client import FootyStatsHttpClient

logger = get_logger("live.service")


class FixtureService:
    """
    Facciata verso i consumer (route HTTP, dashboard).

    Possiede client, collector, cache live e poller con un ciclo di vita
    esplicito: start() / stop() / aclose(). Nessuno stato globale: più
    istanze indipendenti possono convivere (es. nei test).
    """

    def __init__(
        self,
        client: FixturePageSource,
        settings: Settings,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._client = client
        self._clock = clock
        self._rules = ClassificationRules.from_settings(settings)
        self.collector = PageCollector.from_settings(client, settings)
        self.cache = LiveResultCache(
            self.collector,
            ttl_seconds=settings.live_cache_ttl_seconds,
            rules=self._rules,
            pad_days=settings.date_window_pad_days,
            clock=clock,
        )
        self.poller = LivePoller(self.cache, interval_seconds=settings.live_poll_interval_seconds)

    @property
    def settings(self) -> Settings:
        return self._settings

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "FixtureService":
        settings = settings or get_settings()
        return cls(FootyStatsHttpClient(settings), settings)

    def start(self) -> None:
        if self._settings.enable_live_poller:
            self.poller.start()
        else:
            logger.info("Polling live disabilitato (ENABLE_LIVE_POLLER=0)")

    def stop(self) -> None:
        self.poller.stop()

    async def aclose(self) -> None:
        self.stop()
        await self.cache.wait_idle()
        aclose = getattr(self._client, "aclose", None)
        if aclose is not None:
            await aclose()

    async def get_live_fixtures(self, force_refresh: bool = False) -> LiveFixturesResult:
        return await self.cache.get(force_refresh)

    async def get_upcoming_fixtures(self, horizon_hours: int, limit: Optional[int] = None) -> List[CanonicalFixture]:
        """Fixtures SCHEDULED con kickoff in (now, now + horizon], ordinate per kickoff."""
        hours = max(1, min(int(horizon_hours), self._settings.upcoming_max_hours))
        now = self._clock()
        dates = iso_dates(expand_date_window(hours, now.date(), pad_days=self._settings.date_window_pad_days))
        window = await self.collector.collect_window(dates)
        if window.failed:
            logger.error("Upcoming: nessuna fixture raccolta, errori=%s", window.errors)
            return []

        batch = classify_many((normalize_footystats_fixture(item) for item in window.fixtures), now, self._rules)
        log_indeterminate(logger, batch.indeterminate_diagnostics, "Upcoming")
        now_ts = int(now.timestamp())
        until_ts = int((now + timedelta(hours=hours)).timestamp())
        upcoming = [
            f
            for f in batch.fixtures(LifecycleState.SCHEDULED)
            if f.kickoff_unix is not None and now_ts < f.kickoff_unix <= until_ts
        ]
        if limit is not None and limit >= 0:
            upcoming = upcoming[:limit]
        logger.info("Upcoming entro %sh: %s fixtures (date=%s)", hours, len(upcoming), dates)
        return upcoming

    async def get_fixture_count(self, day: str) -> int:
        """Totale annunciato dalla prima pagina della data (nessuna paginazione completa)."""
        date.fromisoformat(day)
        try:
            return await self.collector.fetch_total(day)
        except UpstreamError as exc:
            logger.warning("Conteggio fixtures %s non disponibile: %s", day, exc)
            return 0

    async def get_match_counts(self) -> Dict[str, Any]:
        """Statistiche sintetiche per la dashboard."""
        today = self._clock().date().isoformat()
        live = await self.get_live_fixtures()
        upcoming = await self.get_upcoming_fixtures(24)
        total_today = await self.get_fixture_count(today)
        return {
            "total_today": total_today,
            "live_now": len(live.fixtures),
            "upcoming_24h": len(upcoming),
            "live_success": live.success,
        }


__all__ = ["FixtureService"]
