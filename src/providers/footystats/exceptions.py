class UpstreamError(Exception):
    """Base per tutti gli errori del provider FootyStats."""


class UpstreamUnavailable(UpstreamError):
    """Sollevata per errori di rete, timeout, 5xx persistenti o richieste rifiutate dal provider."""


class UpstreamMalformed(UpstreamError):
    """Sollevata quando la pagina ricevuta non ha la forma attesa (JSON non valido, 'data' o 'pager' mancanti)."""


class QuotaExhausted(UpstreamUnavailable):
    """Sollevata quando il rate limit (HTTP 429) persiste dopo tutti i tentativi di retry."""
