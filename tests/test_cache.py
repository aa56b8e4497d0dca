import asyncio

import pytest

from twspace_dl.storage.cache import METADATA, ResolutionCache


def test_get_returns_none_for_unresolved_key() -> None:
    cache = ResolutionCache()

    assert cache.get(METADATA) is None
    assert METADATA not in cache


def test_put_if_absent_first_write_wins() -> None:
    cache = ResolutionCache()

    assert cache.put_if_absent("guest_token", "first") is True
    assert cache.put_if_absent("guest_token", "second") is False
    assert cache.get("guest_token") == "first"
    assert len(cache) == 1


def test_concurrent_resolution_runs_once_and_shares_value() -> None:
    cache = ResolutionCache()
    calls = []

    async def resolve():
        calls.append(1)
        await asyncio.sleep(0)
        return f"value-{len(calls)}"

    async def run():
        return await asyncio.gather(
            *(cache.get_or_resolve("dyn_url", resolve) for _ in range(10))
        )

    results = asyncio.run(run())

    assert calls == [1]
    assert set(results) == {"value-1"}
    assert cache.get("dyn_url") == "value-1"


def test_failed_resolution_is_not_cached() -> None:
    cache = ResolutionCache()

    async def fail():
        raise RuntimeError("boom")

    async def succeed():
        return "ok"

    async def run():
        with pytest.raises(RuntimeError):
            await cache.get_or_resolve("metadata", fail)
        assert "metadata" not in cache
        return await cache.get_or_resolve("metadata", succeed)

    assert asyncio.run(run()) == "ok"


def test_value_set_by_other_writer_is_returned() -> None:
    cache = ResolutionCache()

    async def resolve():
        cache.put_if_absent("filename", "winner")
        return "loser"

    assert asyncio.run(cache.get_or_resolve("filename", resolve)) == "winner"
    assert cache.get("filename") == "winner"
