import asyncio
import inspect

import pytest

from deriv import deriv_combinators as d
from deriv.deriv_cache import cache
from deriv.deriv_datatypes import IllegalSpecError


def test_cache_evaluates_value_spec_using_key():
    assert cache(1, lambda key: key)() == 1

def test_cache_is_reexported_by_combinators():
    assert d.cache is cache

def test_cache_evaluates_same_key_only_once():
    calls = []

    def produce():
        calls.append(1)
        return len(calls)

    spec = cache(1, lambda key: d.call(produce))
    assert spec() == 1
    assert spec() == 1
    assert len(calls) == 1

def test_cache_evaluates_once_per_distinct_key():
    calls = []

    def produce(key):
        calls.append(key)
        return key * 100

    compiled = d.input(lambda given: cache(given, lambda key: d.call(produce, key)))
    assert compiled(1) == 100
    assert compiled(2) == 200
    assert compiled(1) == 100
    assert compiled(2) == 200
    assert calls == [1, 2]

def test_cache_key_uses_value_equality_for_primitives():
    calls = []
    compiled = d.input(lambda given: cache(given, lambda key: d.call(lambda k: calls.append(k) or k, key)))
    compiled((1, "a"))
    compiled((1, "a"))
    compiled("x")
    compiled("x")
    assert calls == [(1, "a"), "x"]

def test_cache_returns_stored_object():
    compiled = d.input(lambda given: cache(given, lambda key: d.call(lambda: {"fresh": True})))
    assert compiled("k") is compiled("k")

def test_cache_tables_are_per_instance():
    calls = []
    make = lambda: cache("k", lambda key: d.call(lambda: calls.append(1) or len(calls)))
    first, second = make(), make()
    assert first() == 1
    assert second() == 2
    assert first() == 1

def test_cache_unhashable_key_raises_type_error():
    spec = cache(d.constant([1]), lambda key: key)
    with pytest.raises(TypeError):
        spec()

def test_cache_sync_failure_is_not_stored():
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise ValueError("first attempt")
        return "ok"

    spec = cache("k", lambda key: d.call(flaky))
    with pytest.raises(ValueError):
        spec()
    assert spec() == "ok"
    assert len(attempts) == 2

def test_cache_accepts_only_function():
    with pytest.raises(IllegalSpecError):
        cache(1, "not-a-function")

def test_cache_sees_enclosing_bindings():
    compiled = d.input(lambda given: d.map(given, lambda item: cache(item, lambda key: d.call(str, key))))
    assert compiled([1, 2, 1]) == ["1", "2", "1"]

@pytest.mark.asyncio
async def test_cache_with_deferred_key():
    spec = cache(d.resolve("k"), lambda key: key)
    assert spec.may_defer is True
    assert await spec() == "k"

@pytest.mark.asyncio
async def test_cache_deferred_value_evaluates_once():
    calls = []

    async def fetch(key):
        calls.append(key)
        await asyncio.sleep(0)
        return key.upper()

    compiled = d.input(lambda given: cache(given, lambda key: d.resolve(d.call(fetch, key))))
    assert compiled.may_defer is True
    assert await compiled("a") == "A"
    assert await compiled("a") == "A"
    assert await compiled("b") == "B"
    assert calls == ["a", "b"]

@pytest.mark.asyncio
async def test_concurrent_callers_share_in_flight_result():
    calls = []
    release = asyncio.Event()

    async def fetch(key):
        calls.append(key)
        await release.wait()
        return f"value-{key}"

    compiled = d.input(lambda given: cache(given, lambda key: d.resolve(d.call(fetch, key))))
    first = asyncio.ensure_future(compiled("k"))
    second = asyncio.ensure_future(compiled("k"))
    await asyncio.sleep(0.01)
    assert not first.done() and not second.done()
    release.set()
    assert await asyncio.gather(first, second) == ["value-k", "value-k"]
    assert calls == ["k"]

@pytest.mark.asyncio
async def test_cache_deferred_failure_is_shared():
    calls = []

    async def fail(key):
        calls.append(key)
        raise RuntimeError(key)

    compiled = d.input(lambda given: cache(given, lambda key: d.resolve(d.call(fail, key))))
    for _ in range(2):
        result = compiled("k")
        assert inspect.isawaitable(result)
        with pytest.raises(RuntimeError):
            await result
    assert calls == ["k"]

@pytest.mark.asyncio
async def test_cache_shares_awaitable_from_immediate_value_spec():
    calls = []

    async def fetch(key):
        calls.append(key)
        await asyncio.sleep(0)
        return key * 2

    compiled = d.input(lambda given: cache(given, lambda key: d.call(fetch, key)))
    assert compiled.may_defer is False
    first = compiled(1)
    second = compiled(1)
    assert first is second
    assert await first == 2
    assert await second == 2
    assert await compiled(1) == 2
    assert calls == [1]

def test_cache_outside_event_loop_stores_awaitable_as_produced():
    async def fetch(key):
        return key

    compiled = d.input(lambda given: cache(given, lambda key: d.call(fetch, key)))
    result = compiled(1)
    assert inspect.iscoroutine(result)
    assert compiled(1) is result
    result.close()
