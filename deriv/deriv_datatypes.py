"""
Defines the core data types for the deriv evaluation engine.

Binding tokens, the evaluation context that threads them through a spec
tree, and the exceptions raised for misuse.
"""

import itertools
from typing import Any, Iterator, Optional, Tuple

# =================================================================
# Exceptions
# =================================================================

class IllegalSpecError(Exception):
    """Raised at construction time when a combinator receives an argument it cannot use."""
    def __init__(self, message: str, value: Any = None):
        super().__init__(message)
        self.value = value


class MissingProperty(LookupError):
    def __init__(self, name: Any):
        super().__init__(f"Required property missing: {name!r}")
        self.name = name


class UnboundReference(LookupError):
    """A reference spec was evaluated outside the scope that binds its token."""
    def __init__(self, token: 'Token'):
        super().__init__(f"Token is not bound in this context: {token!r}")
        self.token = token


# =================================================================
# Binding tokens
# =================================================================

class Token:
    """An opaque binding key, minted once per scoping combinator.

    Tokens compare and hash by identity. The numeric id only exists to make
    printed spec trees readable.
    """
    __slots__ = ("id", "label")
    _ids = itertools.count(1)

    def __init__(self, label: str):
        self.id = next(Token._ids)
        self.label = label

    def __repr__(self) -> str:
        return f"<{self.label}#{self.id}>"


# =================================================================
# Evaluation context
# =================================================================

class Context:
    """Immutable binding environment threaded through one evaluation.

    Each context holds at most one binding and a link to the context it
    extends, so extending never copies or mutates the parent and siblings
    cannot observe each other's bindings.
    """
    __slots__ = ("parent", "token", "value")

    def __init__(self, parent: Optional['Context'] = None, token: Optional[Token] = None, value: Any = None):
        self.parent = parent
        self.token = token
        self.value = value

    def extend(self, token: Token, value: Any) -> 'Context':
        return Context(self, token, value)

    def find_owner(self, token: Token) -> Optional['Context']:
        """Walks the chain (self → parent) for the context that binds token."""
        cur = self
        while cur is not None:
            if cur.token is token:
                return cur
            cur = cur.parent
        return None

    def __getitem__(self, token: Token) -> Any:
        owner = self.find_owner(token)
        if owner is None:
            raise UnboundReference(token)
        return owner.value

    def bindings(self) -> Iterator[Tuple[Token, Any]]:
        """Yields (token, value) pairs, innermost first."""
        cur = self
        while cur is not None:
            if cur.token is not None:
                yield cur.token, cur.value
            cur = cur.parent

    def __repr__(self) -> str:
        tokens = ', '.join(repr(t) for t, _ in self.bindings())
        return f"<Context bindings=[{tokens}]>"
