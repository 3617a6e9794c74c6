import asyncio

import httpx
import pytest

from core.config import get_settings
from ingestion.page_collector import PageCollector
from providers.footystats.base import FixturePageSource
from providers.footystats.exceptions import QuotaExhausted, UpstreamMalformed, UpstreamUnavailable
from providers.footystats.http_client import FixturePage, FootyStatsHttpClient


class FakeSource(FixturePageSource):
    """Pagine pre-costruite per data; un'eccezione nella lista viene sollevata."""

    def __init__(self, pages_by_date):
        self.pages_by_date = pages_by_date
        self.calls = []

    async def fetch_fixtures_for_date(self, date, page=1):
        self.calls.append((date, page))
        item = self.pages_by_date[date][page - 1]
        if isinstance(item, Exception):
            raise item
        return item


def make_pages(count, per_page=3, max_page=None, remaining=1000):
    max_page = max_page or count
    pages = []
    next_id = 1
    for n in range(1, count + 1):
        items = [{"id": next_id + i} for i in range(per_page)]
        next_id += per_page
        pages.append(
            FixturePage(
                fixtures=items,
                current_page=n,
                max_page=max_page,
                total_results=per_page * max_page,
                request_remaining=remaining,
                request_limit=1800,
            )
        )
    return pages


def test_collect_tutte_le_pagine_annunciate():
    source = FakeSource({"2024-03-10": make_pages(3)})
    result = asyncio.run(PageCollector(source).collect("2024-03-10"))
    assert result.collected == 9
    assert result.pages_fetched == 3
    assert result.complete
    assert source.calls == [("2024-03-10", 1), ("2024-03-10", 2), ("2024-03-10", 3)]


def test_collect_si_ferma_a_max_pages():
    source = FakeSource({"d": make_pages(15, max_page=15)})
    result = asyncio.run(PageCollector(source, max_pages=10).collect("d"))
    assert len(source.calls) == 10
    assert result.pages_fetched == 10
    assert result.max_page == 15
    assert result.collected == 30


def test_collect_tronca_a_max_items():
    source = FakeSource({"d": make_pages(5, per_page=4)})
    result = asyncio.run(PageCollector(source, max_items=10).collect("d"))
    assert result.collected == 10
    assert len(source.calls) == 3


def test_errore_pagina_mantiene_parziale():
    pages = make_pages(3)
    pages[1] = UpstreamMalformed("'data' non è una lista")
    source = FakeSource({"d": pages})
    result = asyncio.run(PageCollector(source).collect("d"))
    assert result.collected == 3
    assert not result.complete
    assert "UpstreamMalformed" in result.error
    assert len(source.calls) == 2


def test_quota_esaurita_interrompe_data():
    source = FakeSource({"d": [QuotaExhausted("429")]})
    result = asyncio.run(PageCollector(source).collect("d"))
    assert result.quota_low
    assert result.error.startswith("quota_exhausted")


def test_quota_sotto_soglia_segnalata():
    source = FakeSource({"d": make_pages(1, remaining=20)})
    result = asyncio.run(PageCollector(source, quota_low_water=50).collect("d"))
    assert result.quota_low
    assert result.request_remaining == 20
    assert result.complete


def test_window_isola_errori_per_data():
    source = FakeSource({
        "a": make_pages(2),
        "b": [UpstreamUnavailable("giù")],
        "c": make_pages(1, per_page=1, remaining=300),
    })
    window = asyncio.run(PageCollector(source).collect_window(["a", "b", "c"]))
    assert [d.date for d in window.dates] == ["a", "b", "c"]
    assert window.total_collected == 7
    assert set(window.errors) == {"b"}
    assert not window.failed
    assert window.request_remaining == 300


def test_window_fallita_solo_se_nessuna_fixture():
    source = FakeSource({"a": [UpstreamUnavailable("x")], "b": [UpstreamUnavailable("y")]})
    window = asyncio.run(PageCollector(source).collect_window(["a", "b"]))
    assert window.failed
    assert window.fixtures == []


def test_window_vuota_senza_errori_non_fallita():
    empty = FixturePage(fixtures=[], current_page=1, max_page=1, total_results=0)
    source = FakeSource({"a": [empty]})
    window = asyncio.run(PageCollector(source).collect_window(["a"]))
    assert not window.failed
    assert window.total_collected == 0


def test_fetch_total_una_sola_chiamata():
    source = FakeSource({"d": make_pages(4, per_page=50)})
    total = asyncio.run(PageCollector(source).fetch_total("d"))
    assert total == 200
    assert source.calls == [("d", 1)]


def test_parametri_non_validi():
    with pytest.raises(ValueError):
        PageCollector(FakeSource({}), max_pages=0)
    with pytest.raises(ValueError):
        PageCollector(FakeSource({}), max_items=0)


def test_errore_inatteso_confinato_alla_data():
    source = FakeSource({"a": make_pages(1, per_page=2), "b": [RuntimeError("bug del provider")]})
    window = asyncio.run(PageCollector(source).collect_window(["a", "b"]))
    assert window.total_collected == 2
    assert set(window.errors) == {"b"}
    assert "RuntimeError" in window.errors["b"]
    assert not window.failed


def test_window_con_client_http_e_body_corrotto(monkeypatch):
    monkeypatch.setenv("FOOTYSTATS_API_KEY", "DUMMY")

    def handler(request):
        if request.url.params["date"] == "2024-03-11":
            return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not-gzip")
        return httpx.Response(
            200,
            json={"success": True, "data": [{"id": 1}], "pager": {"current_page": 1, "max_page": 1}},
        )

    async def scenario():
        client = FootyStatsHttpClient(get_settings(), transport=httpx.MockTransport(handler))
        try:
            return await PageCollector(client).collect_window(["2024-03-10", "2024-03-11"])
        finally:
            await client.aclose()

    window = asyncio.run(scenario())
    assert window.total_collected == 1
    assert set(window.errors) == {"2024-03-11"}
    assert "UpstreamMalformed" in window.errors["2024-03-11"]
    assert not window.failed
