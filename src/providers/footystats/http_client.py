from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from core.config import Settings, get_settings
from core.logging import get_logger
from .base import FixturePageSource
from .exceptions import QuotaExhausted, UpstreamMalformed, UpstreamUnavailable

log = get_logger(__name__)

_FIXTURES_PATH = "/todays-matches"


@dataclass(frozen=True)
class FixturePage:
    fixtures: List[Dict[str, Any]]
    current_page: int
    max_page: int
    total_results: Optional[int]
    request_remaining: Optional[int] = None
    request_limit: Optional[int] = None


def _opt_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def parse_fixture_page(payload: Any, requested_page: int) -> FixturePage:
    """
    Valida la forma di una pagina /todays-matches.
    'data' deve essere una lista; 'pager' è opzionale solo se c'è una sola pagina.
    """
    if not isinstance(payload, dict):
        raise UpstreamMalformed(f"Pagina {requested_page}: payload non è un oggetto JSON")
    if payload.get("success") is False:
        message = payload.get("message") or payload.get("error") or "success=false"
        raise UpstreamUnavailable(f"Provider ha rifiutato la richiesta: {message}")

    data = payload.get("data")
    if not isinstance(data, list):
        raise UpstreamMalformed(f"Pagina {requested_page}: 'data' non è una lista")

    pager = payload.get("pager")
    if pager is None:
        current_page, max_page, total = requested_page, requested_page, len(data)
    elif isinstance(pager, dict):
        current_page = _opt_int(pager.get("current_page")) or requested_page
        max_page = _opt_int(pager.get("max_page")) or 1
        total = _opt_int(pager.get("total_results"))
    else:
        raise UpstreamMalformed(f"Pagina {requested_page}: 'pager' non valido")

    metadata = payload.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}

    return FixturePage(
        fixtures=[item for item in data if isinstance(item, dict)],
        current_page=current_page,
        max_page=max_page,
        total_results=total,
        request_remaining=_opt_int(metadata.get("request_remaining")),
        request_limit=_opt_int(metadata.get("request_limit")),
    )


class FootyStatsHttpClient(FixturePageSource):
    """
    Client HTTP asincrono con retry e backoff per FootyStats (versione httpx).
    Gestisce rate limit (429), errori transitori (5xx, rete, timeout) e ritorna JSON.

    Telemetria dell'ultima chiamata:
      - _last_attempts: numero di tentativi effettuati
      - _last_retries: retries (attempts - 1)
      - _last_latency_ms: durata totale in millisecondi (successo o errore finale)
      - _last_status: ultimo HTTP status code ricevuto (se nessuna risposta -> None)
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = httpx.AsyncClient(
            base_url=self._settings.footystats_base_url,
            headers={"Accept": "application/json"},
            timeout=self._settings.footystats_timeout,
            transport=transport,
        )
        self._max_attempts = self._settings.footystats_max_attempts
        self._base = self._settings.footystats_backoff_base
        self._factor = self._settings.footystats_backoff_factor
        self._jitter = self._settings.footystats_backoff_jitter

        self._last_attempts: int = 0
        self._last_retries: int = 0
        self._last_latency_ms: float = 0.0
        self._last_status: Optional[int] = None

    def _compute_delay(self, attempt: int) -> float:
        # attempt parte da 1
        delay = self._base * (self._factor ** (attempt - 1))
        if self._jitter > 0:
            mult = random.uniform(1 - self._jitter, 1 + self._jitter)
            delay *= mult
        return delay

    def _finish(self, attempt: int, start: float) -> None:
        self._last_attempts = attempt
        self._last_retries = attempt - 1
        self._last_latency_ms = (time.perf_counter() - start) * 1000

    async def api_get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        query: Dict[str, Any] = {"key": self._settings.footystats_api_key}
        query.update(params or {})
        # La chiave non deve finire nei log
        log.info("footystats GET %s params=%s", path, params)

        last_status: Optional[int] = None
        last_reason: Optional[str] = None
        start = time.perf_counter()

        self._last_attempts = 0
        self._last_retries = 0
        self._last_latency_ms = 0.0
        self._last_status = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                resp = await self._client.get(path, params=query)
            except httpx.DecodingError as e:
                # Corpo compresso corrotto: nessun retry
                self._finish(attempt, start)
                self._last_status = None
                raise UpstreamMalformed(f"Risposta non decodificabile: {e}") from e
            except httpx.RequestError as e:
                last_reason = f"network:{e.__class__.__name__}"
                if attempt == self._max_attempts:
                    self._finish(attempt, start)
                    self._last_status = None
                    raise UpstreamUnavailable(
                        f"Errore di rete persistente dopo {attempt} tentativi: {e.__class__.__name__}"
                    ) from e
                wait = self._compute_delay(attempt)
                log.warning("retry attempt=%s wait=%.2fs reason=%s", attempt, wait, last_reason)
                await asyncio.sleep(wait)
                continue

            last_status = resp.status_code
            self._last_status = last_status

            if 200 <= resp.status_code < 300:
                self._finish(attempt, start)
                try:
                    return resp.json()
                except ValueError as e:
                    raise UpstreamMalformed(
                        f"Risposta non valida (non JSON) status={resp.status_code}"
                    ) from e

            if resp.status_code == 429:
                last_reason = "rate_limit"
                if attempt == self._max_attempts:
                    self._finish(attempt, start)
                    raise QuotaExhausted(f"Rate limit dopo {attempt} tentativi (429).")
                computed = self._compute_delay(attempt)
                retry_after_header = resp.headers.get("Retry-After")
                if retry_after_header:
                    try:
                        wait = max(computed, float(retry_after_header))
                    except ValueError:
                        wait = computed
                else:
                    wait = computed
                log.warning("retry attempt=%s wait=%.2fs reason=rate_limit", attempt, wait)
                await asyncio.sleep(wait)
                continue

            if resp.status_code in (500, 502, 503, 504):
                last_reason = f"http_{resp.status_code}"
                if attempt == self._max_attempts:
                    self._finish(attempt, start)
                    raise UpstreamUnavailable(
                        f"Status {resp.status_code} persistente dopo {attempt} tentativi."
                    )
                wait = self._compute_delay(attempt)
                log.warning("retry attempt=%s wait=%.2fs reason=http_%s", attempt, wait, resp.status_code)
                await asyncio.sleep(wait)
                continue

            # 4xx e altri codici: non recuperabili
            self._finish(attempt, start)
            raise UpstreamUnavailable(
                f"Richiesta API fallita (status={resp.status_code}) non retriable: {resp.text[:300]}"
            )

        self._finish(self._max_attempts, start)
        raise UpstreamUnavailable(
            f"Fallimento imprevisto path={path} last_status={last_status} reason={last_reason}"
        )

    async def fetch_fixtures_for_date(self, date: str, page: int = 1) -> FixturePage:
        """Una pagina di fixtures per la data (YYYY-MM-DD)."""
        if page < 1:
            raise ValueError(f"page deve essere >= 1 (valore: {page})")
        params: Dict[str, Any] = {"date": date, "page": page}
        if self._settings.footystats_timezone:
            params["timezone"] = self._settings.footystats_timezone
        payload = await self.api_get(_FIXTURES_PATH, params=params)
        return parse_fixture_page(payload, page)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "attempts": self._last_attempts,
            "retries": self._last_retries,
            "latency_ms": round(self._last_latency_ms, 2),
            "last_status": self._last_status,
        }

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["FootyStatsHttpClient", "FixturePage", "parse_fixture_page"]
