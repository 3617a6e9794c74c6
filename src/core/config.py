import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, List


DEFAULT_LIVE_STATUS_KEYWORDS = [
    "incomplete",
    "live",
    "inplay",
    "in play",
    "in progress",
    "inprogress",
    "1st half",
    "2nd half",
    "half time",
    "halftime",
    "ht",
    "extra time",
    "penalty",
    "penalty shootout",
]

DEFAULT_FINISHED_STATUS_KEYWORDS = [
    "full-time",
    "full time",
    "fulltime",
    "finished",
    "complete",
    "completed",
    "ended",
    "aet",
    "after extra time",
    "postponed",
    "abandoned",
    "cancelled",
    "canceled",
    "suspended",
    "void",
    "awarded",
]

DEFAULT_NON_FOOTBALL_KEYWORDS = [
    "esports",
    "e-sports",
    "esoccer",
    "efootball",
    "virtual",
    "fifa",
    "pes",
    "simulation",
    "simulated",
    "cyber",
    "ebattle",
]

# Competizioni reali che contengono una keyword (es. "fifa")
DEFAULT_NON_FOOTBALL_ALLOWLIST = [
    "fifa world cup",
    "fifa club world cup",
    "fifa women's world cup",
]


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    v = value.strip().lower()
    if v in {"0", "false", "no"}:
        return False
    return True


def _parse_list(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    parts = [p.strip() for p in value.split(",")]
    clean = [p for p in parts if p]
    return clean or None


@dataclass
class Settings:
    footystats_api_key: str
    footystats_base_url: str
    footystats_timezone: Optional[str]

    footystats_max_attempts: int
    footystats_backoff_base: float
    footystats_backoff_factor: float
    footystats_backoff_jitter: float
    footystats_timeout: float

    collector_max_pages: int
    collector_max_items: int
    quota_low_water: int

    live_past_seconds: int
    live_future_seconds: int
    live_cache_ttl_seconds: float
    live_poll_interval_seconds: float
    enable_live_poller: bool

    date_window_pad_days: int
    upcoming_default_hours: int
    upcoming_max_hours: int

    live_status_keywords: List[str]
    finished_status_keywords: List[str]
    non_football_keywords: List[str]
    non_football_allowlist: List[str]

    enable_prometheus_exporter: bool

    @classmethod
    def from_env(cls) -> "Settings":
        key = os.getenv("FOOTYSTATS_API_KEY")
        if not key:
            raise ValueError("FOOTYSTATS_API_KEY non impostata. Aggiungi a .env: FOOTYSTATS_API_KEY=LA_TUA_CHIAVE")

        def _int(name: str, default: int) -> int:
            raw = os.getenv(name)
            if not raw:
                return default
            try:
                return int(raw)
            except ValueError as e:
                raise ValueError(f"Variabile {name} deve essere un intero (valore: {raw!r})") from e

        def _float(name: str, default: float) -> float:
            raw = os.getenv(name)
            if not raw:
                return default
            try:
                return float(raw)
            except ValueError as e:
                raise ValueError(f"Variabile {name} deve essere un numero (valore: {raw!r})") from e

        base_url = os.getenv("FOOTYSTATS_BASE_URL", "https://api.football-data-api.com").rstrip("/")
        timezone_name = os.getenv("FOOTYSTATS_TIMEZONE") or None

        max_attempts = _int("FOOTYSTATS_MAX_ATTEMPTS", 3)
        if max_attempts < 1:
            max_attempts = 1
        backoff_base = _float("FOOTYSTATS_BACKOFF_BASE", 0.5)
        backoff_factor = _float("FOOTYSTATS_BACKOFF_FACTOR", 2.0)
        backoff_jitter = _float("FOOTYSTATS_BACKOFF_JITTER", 0.2)
        backoff_jitter = max(0.0, min(backoff_jitter, 1.0))
        timeout = _float("FOOTYSTATS_TIMEOUT", 10.0)

        max_pages = _int("COLLECTOR_MAX_PAGES", 10)
        if max_pages < 1:
            max_pages = 10
        max_items = _int("COLLECTOR_MAX_ITEMS", 500)
        if max_items < 1:
            max_items = 500
        quota_low_water = _int("QUOTA_LOW_WATER", 50)

        live_past = _int("LIVE_PAST_SECONDS", 14400)
        live_future = _int("LIVE_FUTURE_SECONDS", 1800)
        if live_past < 0 or live_future < 0:
            raise ValueError("LIVE_PAST_SECONDS e LIVE_FUTURE_SECONDS devono essere >= 0")

        cache_ttl = _float("LIVE_CACHE_TTL_SECONDS", 30.0)
        poll_interval = _float("LIVE_POLL_INTERVAL_SECONDS", 30.0)
        if poll_interval <= 0:
            poll_interval = 30.0
        enable_live_poller = _parse_bool(os.getenv("ENABLE_LIVE_POLLER"), True)

        pad_days = _int("DATE_WINDOW_PAD_DAYS", 2)
        if pad_days < 0:
            pad_days = 2
        upcoming_max = _int("UPCOMING_MAX_HOURS", 168)
        if upcoming_max < 1:
            upcoming_max = 168
        upcoming_default = _int("UPCOMING_DEFAULT_HOURS", 24)
        upcoming_default = max(1, min(upcoming_default, upcoming_max))

        live_keywords = _parse_list(os.getenv("LIVE_STATUS_KEYWORDS")) or list(DEFAULT_LIVE_STATUS_KEYWORDS)
        finished_keywords = _parse_list(os.getenv("FINISHED_STATUS_KEYWORDS")) or list(
            DEFAULT_FINISHED_STATUS_KEYWORDS
        )
        nf_keywords = _parse_list(os.getenv("NON_FOOTBALL_KEYWORDS")) or list(DEFAULT_NON_FOOTBALL_KEYWORDS)
        nf_allowlist = _parse_list(os.getenv("NON_FOOTBALL_ALLOWLIST")) or list(DEFAULT_NON_FOOTBALL_ALLOWLIST)

        enable_prometheus_exporter = _parse_bool(os.getenv("ENABLE_PROMETHEUS_EXPORTER"), True)

        return cls(
            footystats_api_key=key,
            footystats_base_url=base_url,
            footystats_timezone=timezone_name,
            footystats_max_attempts=max_attempts,
            footystats_backoff_base=backoff_base,
            footystats_backoff_factor=backoff_factor,
            footystats_backoff_jitter=backoff_jitter,
            footystats_timeout=timeout,
            collector_max_pages=max_pages,
            collector_max_items=max_items,
            quota_low_water=quota_low_water,
            live_past_seconds=live_past,
            live_future_seconds=live_future,
            live_cache_ttl_seconds=cache_ttl,
            live_poll_interval_seconds=poll_interval,
            enable_live_poller=enable_live_poller,
            date_window_pad_days=pad_days,
            upcoming_default_hours=upcoming_default,
            upcoming_max_hours=upcoming_max,
            live_status_keywords=[k.lower() for k in live_keywords],
            finished_status_keywords=[k.lower() for k in finished_keywords],
            non_football_keywords=[k.lower() for k in nf_keywords],
            non_football_allowlist=[k.lower() for k in nf_allowlist],
            enable_prometheus_exporter=enable_prometheus_exporter,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def _reset_settings_cache_for_tests() -> None:
    get_settings.cache_clear()


__all__ = [
    "Settings",
    "get_settings",
    "_reset_settings_cache_for_tests",
    "DEFAULT_LIVE_STATUS_KEYWORDS",
    "DEFAULT_FINISHED_STATUS_KEYWORDS",
    "DEFAULT_NON_FOOTBALL_KEYWORDS",
    "DEFAULT_NON_FOOTBALL_ALLOWLIST",
]
