from __future__ import annotations

import json
from typing import Any, Optional
import collections.abc

import yaml

from deriv.deriv_datatypes import Token
from deriv.deriv_runtime import Spec


# --------------------------
# Helpers
# --------------------------

_SCALARS = (str, int, float, bool, type(None))


def _to_builtin(obj: Any, _active: Optional[set] = None) -> Any:
    # Literal payloads become plain containers; anything exotic becomes its repr
    if isinstance(obj, Spec):
        return describe(obj)
    if isinstance(obj, Token):
        return repr(obj)
    if isinstance(obj, (list, tuple, collections.abc.Mapping)):
        active = _active if _active is not None else set()
        if id(obj) in active:
            return "{...}" if isinstance(obj, collections.abc.Mapping) else "[...]"
        active.add(id(obj))
        try:
            if isinstance(obj, collections.abc.Mapping):
                return {str(k): _to_builtin(v, active) for k, v in obj.items()}
            return [_to_builtin(x, active) for x in obj]
        finally:
            active.discard(id(obj))
    if isinstance(obj, _SCALARS):
        return obj
    return repr(obj)


# --------------------------
# Public API
# --------------------------

def describe(spec: Spec) -> dict:
    """
    Returns the structure of a spec tree as nested plain dicts:
    'spec' (combinator name), 'may_defer', 'args' (child specs), plus
    'value' for constants, 'scope'/'body' for scoping combinators,
    'cases' for case dispatch and 'branches' for conditionals.
    """
    out: dict = {"spec": spec.name, "may_defer": spec.may_defer}
    meta = spec.meta
    if spec.name == "constant":
        out["value"] = _to_builtin(meta["value"])
    if spec.children:
        out["args"] = [describe(child) for child in spec.children]
    if "keys" in meta:
        out["keys"] = _to_builtin(meta["keys"])
    if "fn" in meta:
        fn = meta["fn"]
        out["fn"] = getattr(fn, "__qualname__", None) or repr(fn)
    if "token" in meta:
        out["scope"] = repr(meta["token"])
    if "required" in meta:
        out["required"] = bool(meta["required"])
    if "body" in meta:
        out["body"] = describe(meta["body"])
    if "cases" in meta:
        out["cases"] = {str(k): describe(v) for k, v in meta["cases"].items()}
    if "if_true" in meta:
        out["branches"] = [describe(meta["if_true"]), describe(meta["if_false"])]
    return out


def serialize(spec: Spec, *, fmt: str = "yaml", pretty: bool = True) -> str:
    """
    Dump the structure of a spec tree as text.
    - fmt: 'json' | 'yaml'
    """
    f = (fmt or '').lower()
    built = describe(spec)
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "describe",
    "serialize",
]
