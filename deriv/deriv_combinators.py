"""
The public combinator vocabulary.

Every spec-like argument is lifted with ensure_spec, so plain literals work
wherever a constant is meant. Functions that build nested specs (`fn` for
bind, map, object and input) are called exactly once, at construction, with
reference specs for the values they will see at evaluation time.

`map`, `object` and `input` deliberately share their names with builtins;
import the module rather than the names:

    from deriv import deriv_combinators as d
    spec = d.map([1, 2], lambda item: d.call(str, item))
"""
import collections.abc
import inspect
from typing import Any, Callable, Mapping

from deriv.deriv_autospec import constant, ensure_spec
from deriv.deriv_cache import cache
from deriv.deriv_datatypes import Context, IllegalSpecError, MissingProperty, Token
from deriv.deriv_runtime import Spec, _dbg, gather_in_order, make_spec, reference, require_function

__all__ = [
    "constant", "bind", "map", "call", "resolve", "union", "cases",
    "conditional", "object", "input", "cache", "CompiledSpec",
]


def _is_sequence(value: Any) -> bool:
    return isinstance(value, collections.abc.Sequence) and not isinstance(value, (str, bytes, bytearray))


def bind(value_spec: Any, spec_fn: Callable[[Spec], Any]) -> Spec:
    """Evaluate `value_spec` once and make its result available to `spec_fn(ref)`."""
    value_spec = ensure_spec(value_spec)
    require_function(spec_fn, "bind body")
    token = Token("bind.value")
    body = ensure_spec(spec_fn(reference(token)))
    return make_spec(
        lambda ctx, value: body.evaluate(ctx.extend(token, value)),
        value_spec,
        may_defer=body.may_defer,
        name="bind",
        meta={"token": token, "body": body},
    )


def map(array_spec: Any, item_spec_fn: Callable[[Spec], Any]) -> Spec:
    """Evaluate `item_spec_fn(item)` once per element of the evaluated sequence.

    Raises TypeError at evaluation time if `array_spec` is not a sequence.
    When the item spec defers, every item is launched before any is awaited.
    """
    array_spec = ensure_spec(array_spec)
    require_function(item_spec_fn, "map item function")
    token = Token("map.item")
    item_spec = ensure_spec(item_spec_fn(reference(token)))

    def each(ctx, items):
        if not _is_sequence(items):
            raise TypeError(f"Argument did not evaluate to a sequence: {type(items).__name__}")
        results = [item_spec.evaluate(ctx.extend(token, item)) for item in items]
        if item_spec.may_defer:
            return gather_in_order(results)
        return results

    return make_spec(each, array_spec, may_defer=item_spec.may_defer, name="map",
                     meta={"token": token, "body": item_spec})


def call(fn: Callable[..., Any], *argument_specs: Any) -> Spec:
    require_function(fn, "call target")
    specs = [ensure_spec(a) for a in argument_specs]
    return make_spec(lambda ctx, *args: fn(*args), *specs, name="call", meta={"fn": fn})


def resolve(promise_spec: Any) -> Spec:
    """Defer unconditionally, awaiting whatever the child evaluates to."""
    promise_spec = ensure_spec(promise_spec)
    return make_spec(lambda ctx, value: value, promise_spec, may_defer=True, name="resolve")


def union(*specs: Any) -> Spec:
    """Shallow-merge the evaluated mappings left to right; later keys win."""
    specs = [ensure_spec(s) for s in specs]

    def merge(ctx, *objs):
        out = {}
        for obj in objs:
            if obj is None:
                continue
            if not isinstance(obj, collections.abc.Mapping):
                raise TypeError(f"union expects mappings, got {type(obj).__name__}")
            out.update(obj)
        return out

    return make_spec(merge, *specs, name="union")


def cases(spec: Any, case_specs: Mapping[Any, Any]) -> Spec:
    """Dispatch on the evaluated selector. No matching case evaluates to None."""
    spec = ensure_spec(spec)
    if not isinstance(case_specs, collections.abc.Mapping):
        raise IllegalSpecError(f"cases expects a mapping of cases, not {type(case_specs).__name__}", case_specs)
    lifted = {key: ensure_spec(case) for key, case in case_specs.items()}
    any_defer = any(case.may_defer for case in lifted.values())

    def pick(ctx, case_value):
        case_spec = lifted.get(case_value)
        if case_spec is None:
            return None
        return case_spec.evaluate(ctx)

    return make_spec(pick, spec, may_defer=any_defer, name="cases", meta={"cases": lifted})


def conditional(value_spec: Any, true_spec: Any, false_spec: Any) -> Spec:
    """Evaluate only the branch selected by the truthiness of `value_spec`."""
    value_spec = ensure_spec(value_spec)
    true_spec = ensure_spec(true_spec)
    false_spec = ensure_spec(false_spec)

    def choose(ctx, value):
        if value:
            return true_spec.evaluate(ctx)
        return false_spec.evaluate(ctx)

    return make_spec(choose, value_spec, may_defer=true_spec.may_defer or false_spec.may_defer,
                     name="conditional", meta={"if_true": true_spec, "if_false": false_spec})


def _read_property(obj: Any, name: Any, required: bool) -> Any:
    if isinstance(obj, collections.abc.Mapping):
        if name in obj:
            return obj[name]
    elif _is_sequence(obj) and isinstance(name, int):
        if -len(obj) <= name < len(obj):
            return obj[name]
    elif isinstance(name, str) and hasattr(obj, name):
        return getattr(obj, name)
    if required:
        raise MissingProperty(name)
    return None


def object(object_spec: Any, result_spec_fn: Callable[[Callable[..., Spec]], Any]) -> Spec:
    """Project properties off the evaluated object.

    `result_spec_fn` receives `prop(name_spec, required=False)`, which builds
    a spec reading the named property from the current object. An object
    spec that evaluates to None short-circuits to None.
    """
    object_spec = ensure_spec(object_spec)
    require_function(result_spec_fn, "object result function")
    token = Token("object.current")

    def prop(property_spec: Any, required: bool = False) -> Spec:
        property_spec = ensure_spec(property_spec)
        return make_spec(lambda ctx, name: _read_property(ctx[token], name, required),
                         property_spec, name="prop", meta={"token": token, "required": required})

    result_spec = ensure_spec(result_spec_fn(prop))

    def project(ctx, obj):
        if obj is None:
            return None
        return result_spec.evaluate(ctx.extend(token, obj))

    return make_spec(project, object_spec, may_defer=result_spec.may_defer, name="object",
                     meta={"token": token, "body": result_spec})


class CompiledSpec:
    """The runnable artifact returned by `input`.

    Calling it evaluates the spec against a fresh context holding only the
    given input. The result is a plain value, or an awaitable when
    `may_defer` is true.
    """
    def __init__(self, spec: Spec, token: Token):
        self.spec = spec
        self.token = token

    @property
    def may_defer(self) -> bool:
        return self.spec.may_defer

    def __call__(self, value: Any = None) -> Any:
        _dbg("CompiledSpec call", self.spec.name, "may_defer", self.may_defer, "input", type(value).__name__)
        return self.spec.evaluate(Context().extend(self.token, value))

    async def run(self, value: Any = None) -> Any:
        """Evaluate and always settle the result, whatever the spec's color."""
        result = self(value)
        if inspect.isawaitable(result):
            return await result
        return result

    def __repr__(self) -> str:
        from deriv.deriv_printer import SpecPrinter
        return f"input {self.token!r} -> {SpecPrinter().pformat(self.spec)}"


def input(spec_fn: Callable[[Spec], Any]) -> CompiledSpec:
    require_function(spec_fn, "input function")
    token = Token("input.given")
    spec = ensure_spec(spec_fn(reference(token, name="input")))
    compiled = CompiledSpec(spec, token)
    _dbg("input compiled", "may_defer", spec.may_defer)
    _dbg(compiled)
    return compiled
