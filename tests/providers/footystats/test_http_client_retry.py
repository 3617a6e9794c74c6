import asyncio
import json

import httpx
import pytest

from core.config import get_settings
from providers.footystats.exceptions import QuotaExhausted, UpstreamMalformed, UpstreamUnavailable
from providers.footystats.http_client import FootyStatsHttpClient, parse_fixture_page


def _page(items, current=1, max_page=1, total=None, remaining=1800):
    return {
        "success": True,
        "data": items,
        "pager": {"current_page": current, "max_page": max_page, "results_per_page": 50,
                  "total_results": total if total is not None else len(items)},
        "metadata": {"request_limit": 1800, "request_remaining": remaining},
    }


def build_transport(responses, seen=None):
    it = iter(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        item = next(it)
        if isinstance(item, Exception):
            raise item
        return item

    return httpx.MockTransport(handler)


@pytest.fixture(autouse=True)
def env(monkeypatch):
    monkeypatch.setenv("FOOTYSTATS_API_KEY", "DUMMY")
    monkeypatch.setenv("FOOTYSTATS_MAX_ATTEMPTS", "3")
    monkeypatch.setenv("FOOTYSTATS_BACKOFF_BASE", "0.5")
    monkeypatch.setenv("FOOTYSTATS_BACKOFF_FACTOR", "2.0")
    monkeypatch.setenv("FOOTYSTATS_BACKOFF_JITTER", "0.2")


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []

    async def fake_sleep(seconds):
        recorded.append(seconds)

    monkeypatch.setattr("providers.footystats.http_client.asyncio.sleep", fake_sleep)
    return recorded


@pytest.fixture
def fixed_jitter(monkeypatch):
    # Moltiplicatore costante 1.0
    monkeypatch.setattr("providers.footystats.http_client.random.uniform", lambda a, b: 1.0)


def _run(client, coro):
    async def _inner():
        try:
            return await coro
        finally:
            await client.aclose()

    return asyncio.run(_inner())


def test_fetch_page_success_e_parametri(sleeps):
    seen = []
    client = FootyStatsHttpClient(get_settings(), transport=build_transport(
        [httpx.Response(200, json=_page([{"id": 1}, {"id": 2}], total=2))], seen
    ))
    page = _run(client, client.fetch_fixtures_for_date("2024-03-10", 1))
    assert [f["id"] for f in page.fixtures] == [1, 2]
    assert page.current_page == 1 and page.max_page == 1
    assert page.request_remaining == 1800
    req = seen[0]
    assert req.url.path == "/todays-matches"
    assert req.url.params["date"] == "2024-03-10"
    assert req.url.params["page"] == "1"
    assert req.url.params["key"] == "DUMMY"
    assert client.get_stats()["attempts"] == 1
    assert sleeps == []


def test_retry_su_500_poi_successo(sleeps, fixed_jitter):
    client = FootyStatsHttpClient(get_settings(), transport=build_transport([
        httpx.Response(500, json={"error": "temp"}),
        httpx.Response(200, json=_page([{"id": 7}])),
    ]))
    page = _run(client, client.fetch_fixtures_for_date("2024-03-10"))
    assert len(page.fixtures) == 1
    stats = client.get_stats()
    assert stats["attempts"] == 2
    assert stats["retries"] == 1
    assert stats["last_status"] == 200
    assert sleeps == [pytest.approx(0.5)]


def test_backoff_esponenziale_poi_unavailable(sleeps, fixed_jitter):
    client = FootyStatsHttpClient(get_settings(), transport=build_transport([
        httpx.Response(503), httpx.Response(502), httpx.Response(504),
    ]))
    with pytest.raises(UpstreamUnavailable):
        _run(client, client.fetch_fixtures_for_date("2024-03-10"))
    assert sleeps == [pytest.approx(0.5), pytest.approx(1.0)]
    assert client.get_stats()["attempts"] == 3


def test_rate_limit_rispetta_retry_after(sleeps, fixed_jitter):
    client = FootyStatsHttpClient(get_settings(), transport=build_transport([
        httpx.Response(429, headers={"Retry-After": "4"}),
        httpx.Response(200, json=_page([])),
    ]))
    page = _run(client, client.fetch_fixtures_for_date("2024-03-10"))
    assert page.fixtures == []
    assert sleeps == [pytest.approx(4.0)]


def test_rate_limit_persistente_quota_exhausted(sleeps, fixed_jitter):
    client = FootyStatsHttpClient(get_settings(), transport=build_transport([httpx.Response(429) for _ in range(3)]))
    with pytest.raises(QuotaExhausted):
        _run(client, client.fetch_fixtures_for_date("2024-03-10"))
    assert len(sleeps) == 2


def test_errore_rete_poi_successo(sleeps, fixed_jitter):
    client = FootyStatsHttpClient(get_settings(), transport=build_transport([
        httpx.ConnectError("boom"),
        httpx.ReadTimeout("lento"),
        httpx.Response(200, json=_page([{"id": 1}])),
    ]))
    page = _run(client, client.fetch_fixtures_for_date("2024-03-10"))
    assert len(page.fixtures) == 1
    assert client.get_stats()["retries"] == 2


def test_errore_rete_persistente(sleeps, fixed_jitter):
    client = FootyStatsHttpClient(get_settings(), transport=build_transport([httpx.ConnectError("x") for _ in range(3)]))
    with pytest.raises(UpstreamUnavailable):
        _run(client, client.fetch_fixtures_for_date("2024-03-10"))
    assert client.get_stats()["last_status"] is None


def test_4xx_non_retriable(sleeps):
    client = FootyStatsHttpClient(get_settings(), transport=build_transport([httpx.Response(401, text="bad key")]))
    with pytest.raises(UpstreamUnavailable):
        _run(client, client.fetch_fixtures_for_date("2024-03-10"))
    assert sleeps == []
    assert client.get_stats()["attempts"] == 1


def test_body_non_json_malformed(sleeps):
    client = FootyStatsHttpClient(get_settings(), transport=build_transport([httpx.Response(200, text="<html>")]))
    with pytest.raises(UpstreamMalformed):
        _run(client, client.fetch_fixtures_for_date("2024-03-10"))


def test_pagina_non_valida_rifiutata(sleeps):
    client = FootyStatsHttpClient(get_settings(), transport=build_transport([]))
    with pytest.raises(ValueError):
        _run(client, client.fetch_fixtures_for_date("2024-03-10", 0))


def test_timezone_opzionale_inoltrata(monkeypatch, sleeps):
    monkeypatch.setenv("FOOTYSTATS_TIMEZONE", "Europe/Rome")
    seen = []
    client = FootyStatsHttpClient(get_settings(), transport=build_transport(
        [httpx.Response(200, json=_page([]))], seen
    ))
    _run(client, client.fetch_fixtures_for_date("2024-03-10"))
    assert seen[0].url.params["timezone"] == "Europe/Rome"


def test_parse_page_senza_pager_pagina_unica():
    page = parse_fixture_page({"data": [{"id": 1}, "spazzatura"]}, 1)
    assert page.max_page == 1
    assert page.fixtures == [{"id": 1}]
    assert page.total_results == 2


def test_parse_page_forme_invalide():
    with pytest.raises(UpstreamMalformed):
        parse_fixture_page([], 1)
    with pytest.raises(UpstreamMalformed):
        parse_fixture_page({"data": {"id": 1}}, 1)
    with pytest.raises(UpstreamMalformed):
        parse_fixture_page({"data": [], "pager": "x"}, 1)
    with pytest.raises(UpstreamUnavailable):
        parse_fixture_page({"success": False, "message": "Invalid key"}, 1)


def test_parse_page_json_da_stringa():
    payload = json.loads(json.dumps(_page([{"id": 3}], current=2, max_page=4, total=160, remaining=12)))
    page = parse_fixture_page(payload, 2)
    assert (page.current_page, page.max_page, page.total_results) == (2, 4, 160)
    assert page.request_remaining == 12


def test_corpo_gzip_corrotto_malformed(sleeps):
    def handler(request):
        return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not-gzip")

    client = FootyStatsHttpClient(get_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(UpstreamMalformed):
        _run(client, client.fetch_fixtures_for_date("2024-03-10"))
    assert sleeps == []


def test_request_error_non_transport_ritentato(sleeps, fixed_jitter):
    client = FootyStatsHttpClient(get_settings(), transport=build_transport(
        [httpx.TooManyRedirects("loop") for _ in range(3)]
    ))
    with pytest.raises(UpstreamUnavailable):
        _run(client, client.fetch_fixtures_for_date("2024-03-10"))
    assert len(sleeps) == 2
