#!/usr/bin/env python
from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any

from core.config import get_settings
from core.logging import get_logger
from live.service import FixtureService

log = get_logger("scripts.live_snapshot")


async def _run(args: argparse.Namespace) -> Any:
    service = FixtureService.from_settings()
    try:
        if args.command == "live":
            result = await service.get_live_fixtures(force_refresh=True)
            return result.to_dict()
        if args.command == "upcoming":
            items = await service.get_upcoming_fixtures(args.hours, limit=args.limit)
            return {"count": len(items), "items": [f.to_dict() for f in items]}
        if args.command == "count":
            return {"date": args.date, "total": await service.get_fixture_count(args.date)}
        return await service.get_match_counts()
    finally:
        await service.aclose()


def main() -> None:
    """
    Esegue una singola raccolta (senza poller) e stampa il risultato JSON.
    """
    ap = argparse.ArgumentParser(description="Snapshot fixtures live / upcoming da FootyStats")
    sub = ap.add_subparsers(dest="command", required=True)
    sub.add_parser("live", help="fixtures live ora")
    up = sub.add_parser("upcoming", help="fixtures in programma")
    up.add_argument("--hours", default=24, type=int)
    up.add_argument("--limit", default=None, type=int)
    cnt = sub.add_parser("count", help="totale annunciato per una data")
    cnt.add_argument("date", type=str, help="YYYY-MM-DD")
    sub.add_parser("counts", help="statistiche dashboard")
    args = ap.parse_args()

    try:
        get_settings()
    except ValueError as e:
        log.error("Config non valida: %s", e)
        raise SystemExit(2)

    try:
        payload = asyncio.run(_run(args))
    except ValueError as e:
        log.error("Parametri non validi: %s", e)
        raise SystemExit(2)
    print(json.dumps(payload, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
