import asyncio

import pytest

from fakes import FakeClock, ScriptedSource
from ingestion.page_collector import PageCollector
from live.cache import LiveResultCache
from live.poller import LivePoller


def build(source):
    cache = LiveResultCache(PageCollector(source), ttl_seconds=30, clock=FakeClock())
    return cache, LivePoller(cache, interval_seconds=3600)


def test_start_stop_idempotenti():
    cache, poller = build(ScriptedSource())

    async def scenario():
        poller.start()
        task = poller._task
        poller.start()
        assert poller._task is task
        assert poller.running
        await asyncio.sleep(0)
        await cache.wait_idle()
        poller.stop()
        poller.stop()
        await asyncio.gather(task, return_exceptions=True)
        return task

    task = asyncio.run(scenario())
    assert not poller.running
    assert task.cancelled()
    assert cache.recompute_count == 1


def test_stop_non_interrompe_ricalcolo_in_volo():
    source = ScriptedSource()
    cache, poller = build(source)

    async def scenario():
        source.block()
        poller.start()
        await source.started.wait()
        poller.stop()
        source.gate.set()
        await cache.wait_idle()

    asyncio.run(scenario())
    assert not poller.running
    assert cache.snapshot is not None
    assert cache.recompute_count == 1


def test_ricalcolo_periodico():
    source = ScriptedSource()
    cache = LiveResultCache(PageCollector(source), ttl_seconds=30, clock=FakeClock())
    poller = LivePoller(cache, interval_seconds=0.01)

    async def scenario():
        poller.start()
        for _ in range(100):
            if cache.recompute_count >= 3:
                break
            await asyncio.sleep(0.01)
        poller.stop()
        await cache.wait_idle()

    asyncio.run(scenario())
    assert cache.recompute_count >= 3


def test_intervallo_non_valido():
    cache, _ = build(ScriptedSource())
    with pytest.raises(ValueError):
        LivePoller(cache, interval_seconds=0)
