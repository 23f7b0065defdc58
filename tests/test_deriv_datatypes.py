import pytest
from deriv.deriv_datatypes import (
    Context, Token, IllegalSpecError, MissingProperty, UnboundReference
)

# --- Token Tests ---

def test_tokens_are_unique_per_construction():
    a = Token("bind.value")
    b = Token("bind.value")
    assert a is not b
    assert a != b
    assert b.id > a.id
    assert len({a, b}) == 2

def test_token_repr_uses_label_and_id():
    t = Token("map.item")
    assert repr(t) == f"<map.item#{t.id}>"

# --- Context Tests ---

def test_empty_context():
    ctx = Context()
    assert ctx.parent is None
    assert list(ctx.bindings()) == []
    with pytest.raises(UnboundReference):
        _ = ctx[Token("missing")]

def test_extend_is_non_destructive():
    t = Token("t")
    root = Context()
    child = root.extend(t, 1)
    assert child[t] == 1
    assert child.find_owner(t) is child
    assert root.find_owner(t) is None
    assert child.parent is root

def test_extend_chain_lookup():
    a, b = Token("a"), Token("b")
    ctx = Context().extend(a, 1).extend(b, 2)
    assert ctx[a] == 1
    assert ctx[b] == 2
    assert len(list(ctx.bindings())) == 2

def test_rebinding_same_token_shadows_outer_binding():
    t = Token("t")
    outer = Context().extend(t, "outer")
    inner = outer.extend(t, "inner")
    assert inner[t] == "inner"
    assert outer[t] == "outer"

def test_sibling_contexts_are_isolated():
    a, b = Token("a"), Token("b")
    base = Context().extend(a, 0)
    left = base.extend(b, "left")
    right = base.extend(b, "right")
    assert left[b] == "left"
    assert right[b] == "right"
    assert base.find_owner(b) is None

def test_bindings_yields_innermost_first():
    a, b = Token("a"), Token("b")
    ctx = Context().extend(a, 1).extend(b, 2)
    assert list(ctx.bindings()) == [(b, 2), (a, 1)]

def test_context_repr_lists_tokens():
    t = Token("input.given")
    assert repr(Context().extend(t, 5)) == f"<Context bindings=[{t!r}]>"

def test_context_binding_none_is_still_bound():
    t = Token("t")
    ctx = Context().extend(t, None)
    assert ctx.find_owner(t) is ctx
    assert ctx[t] is None

# --- Exception Tests ---

def test_unbound_reference_carries_token():
    t = Token("t")
    with pytest.raises(UnboundReference) as exc:
        _ = Context()[t]
    assert exc.value.token is t
    assert isinstance(exc.value, LookupError)

def test_missing_property_carries_name():
    err = MissingProperty("a")
    assert err.name == "a"
    assert "a" in str(err)
    assert isinstance(err, LookupError)

def test_illegal_spec_error_carries_value():
    err = IllegalSpecError("argument must be function", 3)
    assert err.value == 3
    assert str(err) == "argument must be function"
