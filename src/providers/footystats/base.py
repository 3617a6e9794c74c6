from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .http_client import FixturePage


class FixturePageSource(ABC):
    """
    Interfaccia astratta per una sorgente paginata di fixtures.

    Le implementazioni concrete restituiscono una pagina per data, con i
    metadati di paginazione e quota del provider.
    """

    @abstractmethod
    async def fetch_fixtures_for_date(self, date: str, page: int = 1) -> "FixturePage":
        """
        Recupera una pagina di fixtures.

        Parametri:
            date: data in formato YYYY-MM-DD.
            page: numero di pagina (>= 1).

        Ritorna:
            FixturePage.

        Solleva:
            UpstreamError (o sottoclassi) in caso di errore di rete o formato.
        """
        raise NotImplementedError
