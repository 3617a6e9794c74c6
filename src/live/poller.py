from __future__ import annotations

import asyncio
from typing import Optional

from core.logging import get_logger
from live.cache import LiveResultCache

logger = get_logger("live.poller")


class LivePoller:
    """Ricalcolo periodico della cache live, anche senza richieste dei consumer."""

    def __init__(self, cache: LiveResultCache, interval_seconds: float = 30.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds deve essere > 0")
        self._cache = cache
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.debug("Polling live già attivo")
            return
        logger.info("Avvio polling live (intervallo %ss)", self._interval)
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        # Cancella solo il timer: un ricalcolo in volo arriva comunque in fondo
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("Polling live fermato")

    async def _run(self) -> None:
        while True:
            try:
                result = await self._cache.refresh()
                if not result.success:
                    logger.warning("Polling live: ricalcolo fallito (%s)", result.error)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # pragma: no cover
                logger.error("Polling live: errore inatteso %s", exc, exc_info=True)
            await asyncio.sleep(self._interval)


__all__ = ["LivePoller"]
