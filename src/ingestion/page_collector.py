from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from core.config import Settings
from core.logging import get_logger
from monitoring.prometheus_exporter import record_page_fetch, record_quota
from providers.footystats.base import FixturePageSource
from providers.footystats.exceptions import QuotaExhausted, UpstreamError

log = get_logger(__name__)


@dataclass
class DateCollection:
    """Esito della paginazione per una singola data (anche parziale)."""

    date: str
    fixtures: List[Dict[str, Any]] = field(default_factory=list)
    pages_fetched: int = 0
    current_page: Optional[int] = None
    max_page: Optional[int] = None
    total_results: Optional[int] = None
    request_remaining: Optional[int] = None
    request_limit: Optional[int] = None
    quota_low: bool = False
    error: Optional[str] = None

    @property
    def collected(self) -> int:
        return len(self.fixtures)

    @property
    def complete(self) -> bool:
        return self.error is None

    def summary(self) -> Dict[str, Any]:
        return {
            "date": self.date,
            "collected": self.collected,
            "pages_fetched": self.pages_fetched,
            "current_page": self.current_page,
            "max_page": self.max_page,
            "total_results": self.total_results,
            "request_remaining": self.request_remaining,
            "quota_low": self.quota_low,
            "error": self.error,
        }


@dataclass
class WindowCollection:
    dates: List[DateCollection]

    @property
    def fixtures(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for d in self.dates:
            out.extend(d.fixtures)
        return out

    @property
    def total_collected(self) -> int:
        return sum(d.collected for d in self.dates)

    @property
    def errors(self) -> Dict[str, str]:
        return {d.date: d.error for d in self.dates if d.error is not None}

    @property
    def failed(self) -> bool:
        # Nessuna fixture in nessuna data e almeno un errore: giornata vuota != upstream giù
        return self.total_collected == 0 and bool(self.errors)

    @property
    def quota_low(self) -> bool:
        return any(d.quota_low for d in self.dates)

    @property
    def request_remaining(self) -> Optional[int]:
        values = [d.request_remaining for d in self.dates if d.request_remaining is not None]
        return min(values) if values else None

    @property
    def request_limit(self) -> Optional[int]:
        values = [d.request_limit for d in self.dates if d.request_limit is not None]
        return max(values) if values else None


class PageCollector:
    """
    Paginazione limitata di /todays-matches, condivisa da tutti i chiamanti.

    Si ferma quando il provider non annuncia altre pagine, quando si
    raggiunge max_items o dopo max_pages richieste. Un errore di pagina
    abbandona solo quella data: il risultato parziale viene restituito.
    """

    def __init__(
        self,
        client: FixturePageSource,
        *,
        max_pages: int = 10,
        max_items: int = 500,
        quota_low_water: int = 50,
    ) -> None:
        if max_pages < 1:
            raise ValueError("max_pages deve essere >= 1")
        if max_items < 1:
            raise ValueError("max_items deve essere >= 1")
        self._client = client
        self._max_pages = max_pages
        self._max_items = max_items
        self._quota_low_water = quota_low_water

    @classmethod
    def from_settings(cls, client: FixturePageSource, settings: Settings) -> "PageCollector":
        return cls(
            client,
            max_pages=settings.collector_max_pages,
            max_items=settings.collector_max_items,
            quota_low_water=settings.quota_low_water,
        )

    def _check_quota(self, result: DateCollection) -> None:
        remaining = result.request_remaining
        if remaining is None or result.quota_low:
            return
        if remaining <= self._quota_low_water:
            result.quota_low = True
            log.error(
                "Quota FootyStats sotto soglia: remaining=%s limit=%s soglia=%s",
                remaining,
                result.request_limit,
                self._quota_low_water,
                extra={"quota": {"remaining": remaining, "limit": result.request_limit}},
            )

    async def collect(self, date: str) -> DateCollection:
        result = DateCollection(date=date)
        page = 1
        while page <= self._max_pages:
            try:
                fetched = await self._client.fetch_fixtures_for_date(date, page)
            except QuotaExhausted as exc:
                result.error = f"quota_exhausted: {exc}"
                result.quota_low = True
                record_page_fetch("quota_exhausted")
                log.error(
                    "Quota esaurita su %s pagina %s: raccolte %s fixtures",
                    date,
                    page,
                    result.collected,
                    extra={"collection": result.summary()},
                )
                break
            except UpstreamError as exc:
                result.error = f"{exc.__class__.__name__}: {exc}"
                record_page_fetch("error")
                log.warning(
                    "Pagina %s di %s fallita, data abbandonata con %s fixtures: %s",
                    page,
                    date,
                    result.collected,
                    exc,
                    extra={"collection": result.summary()},
                )
                break
            except Exception as exc:
                # Errore fuori tassonomia: resta confinato a questa data
                result.error = f"unexpected {exc.__class__.__name__}: {exc}"
                record_page_fetch("error")
                log.error(
                    "Errore inatteso su %s pagina %s, data abbandonata con %s fixtures: %s",
                    page,
                    date,
                    result.collected,
                    exc,
                    exc_info=True,
                    extra={"collection": result.summary()},
                )
                break

            record_page_fetch("ok")
            result.pages_fetched += 1
            result.current_page = fetched.current_page
            result.max_page = fetched.max_page
            if page == 1 or fetched.total_results is not None:
                result.total_results = fetched.total_results
            if fetched.request_remaining is not None:
                result.request_remaining = fetched.request_remaining
                record_quota(fetched.request_remaining)
            if fetched.request_limit is not None:
                result.request_limit = fetched.request_limit
            self._check_quota(result)

            room = self._max_items - result.collected
            result.fixtures.extend(fetched.fixtures[:room])
            log.debug("%s pagina %s: %s fixtures (totale %s)", date, page, len(fetched.fixtures), result.collected)

            if result.collected >= self._max_items:
                log.info("%s: raggiunto max_items=%s", date, self._max_items)
                break
            if fetched.current_page >= fetched.max_page:
                break
            page += 1
        else:
            log.info("%s: raggiunto max_pages=%s (max_page annunciato=%s)", date, self._max_pages, result.max_page)

        log.info("%s: totale %s fixtures in %s pagine", date, result.collected, result.pages_fetched)
        return result

    async def collect_window(self, dates: Iterable[str]) -> WindowCollection:
        """Raccoglie tutte le date in parallelo e attende che siano tutte concluse."""
        results = await asyncio.gather(*(self.collect(d) for d in dates))
        window = WindowCollection(dates=list(results))
        log.info(
            "Finestra %s: %s fixtures, errori=%s",
            [d.date for d in window.dates],
            window.total_collected,
            len(window.errors),
            extra={"collection": [d.summary() for d in window.dates]},
        )
        return window

    async def fetch_total(self, date: str) -> int:
        """Totale annunciato dalla prima pagina, senza paginare."""
        fetched = await self._client.fetch_fixtures_for_date(date, 1)
        record_page_fetch("ok")
        if fetched.request_remaining is not None:
            record_quota(fetched.request_remaining)
        if fetched.total_results is not None:
            return fetched.total_results
        return len(fetched.fixtures)


__all__ = ["PageCollector", "DateCollection", "WindowCollection"]
