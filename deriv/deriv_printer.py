"""
A pretty-printer for deriv spec trees.
"""
import collections.abc

from deriv.deriv_datatypes import Token
from deriv.deriv_runtime import Spec


class SpecPrinter:
    """Formats specs as nested combinator calls, literals as Python literals."""

    def __init__(self, indent_width=2, width=72):
        self._indent_char = " " * indent_width
        self._width = width
        self._active = set()
        self._handlers = self._create_handlers()

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        if isinstance(obj, Spec):
            return self._handlers.get(obj.name, self._pformat_generic)
        if isinstance(obj, Token):
            return self._pformat_token
        if isinstance(obj, collections.abc.Mapping):
            return self._pformat_dict
        if isinstance(obj, list):
            return self._pformat_list
        if isinstance(obj, tuple):
            return self._pformat_tuple
        # Default to Python's repr for unknown types
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            "constant": self._pformat_constant,
            "list": self._pformat_list_spec,
            "tuple": self._pformat_tuple_spec,
            "record": self._pformat_record_spec,
            "ref": self._pformat_ref,
            "input": self._pformat_ref,
            "prop": self._pformat_prop,
            "call": self._pformat_call_spec,
            "bind": self._pformat_scoped,
            "map": self._pformat_scoped,
            "object": self._pformat_scoped,
            "cache": self._pformat_scoped,
            "cases": self._pformat_cases,
            "conditional": self._pformat_conditional,
        }

    # -----------------------------------------------------------------
    # Layout
    # -----------------------------------------------------------------

    def _indent(self, text):
        return "\n".join(self._indent_char + line for line in text.splitlines())

    def _pformat_sequence(self, head, parts, open_char, close_char):
        """Lays parts out on one line when they fit, else one per indented line."""
        if not parts:
            return f"{head}{open_char}{close_char}"
        inline = f"{head}{open_char}{', '.join(parts)}{close_char}"
        if len(inline) <= self._width and "\n" not in inline:
            return inline
        body = ",\n".join(self._indent(p) for p in parts)
        return f"{head}{open_char}\n{body}\n{close_char}"

    # -----------------------------------------------------------------
    # Plain values
    # -----------------------------------------------------------------

    def _pformat_token(self, obj, level):
        return repr(obj)

    def _pformat_container(self, obj, level, open_char, close_char, render):
        """Guards against self-referential containers the way reprlib does."""
        if id(obj) in self._active:
            return f"{open_char}...{close_char}"
        self._active.add(id(obj))
        try:
            return render(obj, level)
        finally:
            self._active.discard(id(obj))

    def _pformat_dict(self, obj, level):
        def render(o, l):
            parts = [f"{self.pformat(k, l + 1)}: {self.pformat(v, l + 1)}" for k, v in o.items()]
            return self._pformat_sequence("", parts, "{", "}")
        return self._pformat_container(obj, level, "{", "}", render)

    def _pformat_list(self, obj, level):
        def render(o, l):
            return self._pformat_sequence("", [self.pformat(x, l + 1) for x in o], "[", "]")
        return self._pformat_container(obj, level, "[", "]", render)

    def _pformat_tuple(self, obj, level):
        def render(o, l):
            if len(o) == 1:
                return f"({self.pformat(o[0], l + 1)},)"
            return self._pformat_sequence("", [self.pformat(x, l + 1) for x in o], "(", ")")
        return self._pformat_container(obj, level, "(", ")", render)

    # -----------------------------------------------------------------
    # Specs
    # -----------------------------------------------------------------

    def _children(self, spec, level):
        return [self.pformat(child, level + 1) for child in spec.children]

    def _pformat_generic(self, spec, level):
        return self._pformat_sequence(spec.name, self._children(spec, level), "(", ")")

    def _pformat_constant(self, spec, level):
        return self.pformat(spec.meta["value"], level)

    def _pformat_list_spec(self, spec, level):
        return self._pformat_sequence("", self._children(spec, level), "[", "]")

    def _pformat_tuple_spec(self, spec, level):
        parts = self._children(spec, level)
        if len(parts) == 1:
            return f"({parts[0]},)"
        return self._pformat_sequence("", parts, "(", ")")

    def _pformat_record_spec(self, spec, level):
        parts = [
            f"{self.pformat(key, level + 1)}: {value}"
            for key, value in zip(spec.meta["keys"], self._children(spec, level))
        ]
        return self._pformat_sequence("", parts, "{", "}")

    def _pformat_ref(self, spec, level):
        return repr(spec.meta["token"])

    def _pformat_prop(self, spec, level):
        parts = self._children(spec, level)
        if spec.meta.get("required"):
            parts.append("required=True")
        return self._pformat_sequence("prop", parts, "(", ")")

    def _pformat_call_spec(self, spec, level):
        fn = spec.meta["fn"]
        fn_name = getattr(fn, "__qualname__", None) or repr(fn)
        return self._pformat_sequence("call", [fn_name] + self._children(spec, level), "(", ")")

    def _pformat_scoped(self, spec, level):
        """bind, map, object and cache: children, then `<token> -> body`."""
        body = self.pformat(spec.meta["body"], level + 1)
        parts = self._children(spec, level) + [f"{spec.meta['token']!r} -> {body}"]
        return self._pformat_sequence(spec.name, parts, "(", ")")

    def _pformat_cases(self, spec, level):
        table = self._pformat_sequence("", [
            f"{self.pformat(key, level + 1)}: {self.pformat(case, level + 1)}"
            for key, case in spec.meta["cases"].items()
        ], "{", "}")
        return self._pformat_sequence("cases", self._children(spec, level) + [table], "(", ")")

    def _pformat_conditional(self, spec, level):
        parts = self._children(spec, level) + [
            self.pformat(spec.meta["if_true"], level + 1),
            self.pformat(spec.meta["if_false"], level + 1),
        ]
        return self._pformat_sequence("conditional", parts, "(", ")")
