"""
Memoization for spec trees.

Each `cache(...)` call owns one memo table for the life of the spec it
returns. Entries are stored before a deferred computation settles, so
concurrent evaluations for the same key await the same task.
"""
import asyncio
import inspect
from typing import Any, Callable, Dict

from deriv.deriv_autospec import ensure_spec
from deriv.deriv_datatypes import Token
from deriv.deriv_runtime import Spec, _dbg, make_spec, reference, require_function


def _share(awaitable):
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # Outside an event loop the awaitable is stored as produced.
        return awaitable
    return asyncio.ensure_future(awaitable, loop=loop)


def cache(key_spec: Any, value_spec_fn: Callable[[Spec], Any]) -> Spec:
    """Evaluate `value_spec_fn(key)` at most once per distinct evaluated key.

    Keys follow dict semantics (hash and equality), so unhashable keys raise
    TypeError. A deferred failure is memoized like a success.
    """
    key_spec = ensure_spec(key_spec)
    require_function(value_spec_fn, "cache value function")
    token = Token("cache.key")
    value_spec = ensure_spec(value_spec_fn(reference(token)))
    table: Dict[Any, Any] = {}

    def lookup(ctx, key):
        if key in table:
            _dbg("cache hit", token, repr(key))
            return table[key]
        _dbg("cache miss", token, repr(key))
        result = value_spec.evaluate(ctx.extend(token, key))
        if inspect.isawaitable(result) and not asyncio.isfuture(result):
            # A coroutine can only be awaited once; a task can be shared.
            result = _share(result)
        table[key] = result
        return result

    return make_spec(lookup, key_spec, may_defer=value_spec.may_defer, name="cache",
                     meta={"token": token, "body": value_spec})
