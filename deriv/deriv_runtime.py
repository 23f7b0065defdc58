"""
The deriv spec runtime: the two spec variants and the composition primitive.

A spec is a function of an evaluation Context. Whether it answers with a
plain value or with an awaitable is decided once, when the spec is built,
and is encoded by its class: ImmediateSpec or DeferredSpec.
"""
import asyncio
import inspect
import os
import sys
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from deriv.deriv_datatypes import Context, IllegalSpecError, Token


def _dbg(*parts):
    if os.environ.get("DERIV_DEBUG"):
        try:
            print("[DBG]", *parts, file=sys.stderr)
        except Exception:
            pass


def require_function(fn: Any, role: str = "argument"):
    if not callable(fn):
        raise IllegalSpecError(f"{role} must be a function, not {type(fn).__name__}", fn)


def _default_evaluate(context: Context, children: Sequence['Spec']) -> List[Any]:
    results = []
    try:
        for child in children:
            results.append(child.evaluate(context))
    except BaseException:
        # Earlier deferred siblings were created but never started.
        for r in results:
            if inspect.iscoroutine(r):
                r.close()
        raise
    return results


async def gather_in_order(results: Sequence[Any]) -> List[Any]:
    """Await every awaitable in results as one batch; plain values pass through.

    The returned list keeps the original positions regardless of the order in
    which the awaitables complete. The first failure propagates; the other
    awaitables are left to run (there is no cancellation).
    """
    pending = [r for r in results if inspect.isawaitable(r)]
    if not pending:
        return list(results)
    settled = iter(await asyncio.gather(*pending))
    return [next(settled) if inspect.isawaitable(r) else r for r in results]


# =================================================================
# Spec variants
# =================================================================

class Spec(ABC):
    """Abstract base for all specs.

    `fn` receives the context and the evaluated children. `name`, `children`
    and `meta` describe the spec for printing and serialization; they play no
    part in evaluation.
    """
    may_defer: bool = False

    def __init__(self, fn: Callable[..., Any], children: Tuple['Spec', ...] = (),
                 evaluate: Optional[Callable[[Context, Sequence['Spec']], List[Any]]] = None,
                 name: str = "spec", meta: Optional[Dict[str, Any]] = None):
        self.fn = fn
        self.children = tuple(children)
        self._evaluate_children = evaluate or _default_evaluate
        self.name = name
        self.meta: Dict[str, Any] = dict(meta or {})

    @abstractmethod
    def evaluate(self, context: Context) -> Any:
        raise NotImplementedError

    def __call__(self, context: Optional[Context] = None) -> Any:
        return self.evaluate(context if context is not None else Context())

    def __repr__(self) -> str:
        from deriv.deriv_printer import SpecPrinter
        return SpecPrinter().pformat(self)


class ImmediateSpec(Spec):
    """A spec whose evaluation never produces an awaitable of its own making."""
    may_defer = False

    def evaluate(self, context: Context) -> Any:
        return self.fn(context, *self._evaluate_children(context, self.children))


class DeferredSpec(Spec):
    """A spec whose evaluation is a coroutine.

    All children are evaluated first, in order, then awaited together. If the
    body itself answers with an awaitable, that is awaited too.
    """
    may_defer = True

    async def evaluate(self, context: Context) -> Any:
        args = await gather_in_order(self._evaluate_children(context, self.children))
        result = self.fn(context, *args)
        if inspect.isawaitable(result):
            result = await result
        return result


def is_spec(obj: Any) -> bool:
    return isinstance(obj, Spec)


def make_spec(fn: Callable[..., Any], *children: Spec, may_defer: bool = False,
              evaluate: Optional[Callable[[Context, Sequence[Spec]], List[Any]]] = None,
              name: str = "spec", meta: Optional[Dict[str, Any]] = None) -> Spec:
    """Compose a new spec from child specs.

    The result defers when `may_defer` is set or when any child defers. This
    is the only place the color of a spec is decided.
    """
    require_function(fn, "spec body")
    for child in children:
        if not is_spec(child):
            raise IllegalSpecError(f"child of {name} is not a spec: {child!r}", child)
    if may_defer or any(child.may_defer for child in children):
        return DeferredSpec(fn, children, evaluate, name, meta)
    return ImmediateSpec(fn, children, evaluate, name, meta)


def reference(token: Token, name: str = "ref") -> Spec:
    """An immediate spec that reads `token` from the evaluation context."""
    return make_spec(lambda ctx: ctx[token], name=name, meta={"token": token})
