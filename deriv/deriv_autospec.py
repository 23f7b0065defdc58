"""
Autospec lifting: turning plain literals into spec trees.

Lists, tuples and mappings are lifted element by element, so literals and
hand-built specs can be mixed freely at any depth.
"""
import collections.abc
from typing import Any

from deriv.deriv_runtime import Spec, is_spec, make_spec


def constant(value: Any) -> Spec:
    """Always evaluates to `value`. Never defers, even when `value` is awaitable."""
    return make_spec(lambda ctx: value, name="constant", meta={"value": value})


def _lift_sequence(items) -> Spec:
    specs = [ensure_spec(item) for item in items]
    if isinstance(items, tuple):
        return make_spec(lambda ctx, *values: values, *specs, name="tuple")
    return make_spec(lambda ctx, *values: list(values), *specs, name="list")


def _lift_mapping(record: collections.abc.Mapping) -> Spec:
    names = list(record.keys())
    specs = [ensure_spec(record[k]) for k in names]

    def build(ctx, *values):
        # Keys whose value is absent are left out entirely.
        return {k: v for k, v in zip(names, values) if v is not None}

    return make_spec(build, *specs, name="record", meta={"keys": names})


def ensure_spec(obj: Any) -> Spec:
    if is_spec(obj):
        return obj
    if isinstance(obj, (list, tuple)):
        return _lift_sequence(obj)
    if isinstance(obj, collections.abc.Mapping):
        return _lift_mapping(obj)
    return constant(obj)
