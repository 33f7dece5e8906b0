"""Configuration tree value objects.

Purpose
-------
Anchor the immutable :class:`Object` node that every decoder produces, the
merge engine folds, and the compiler exposes. Each node carries its
provenance (:class:`Origin`) and a secrecy flag used for redaction.

Contents
--------
* :class:`Origin` – where a node came from (source, line, column).
* :class:`Kind` – the three mutually exclusive node kinds.
* :class:`Object` – recursive node with lookup, conversion, redaction, and
  key-renaming transforms.
* :func:`mark_secret` – engine-internal helper returning a copy with a
  different secrecy flag.
* :data:`REDACTED_TEXT` – literal substituted for secret subtrees.

System Role
-----------
Pure domain code without I/O. Every transform returns a new tree; callers
discard the previous one.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable

from .errors import ArrayOutOfBounds, InvalidPath, NotFound

REDACTED_TEXT = "REDACTED"


@dataclass(frozen=True, slots=True)
class Origin:
    """Describe where a configuration node originated.

    Attributes
    ----------
    source:
        File name or logical record name. Empty when unknown.
    line / column:
        1-based position; ``0`` means the decoder could not tell.

    Examples
    --------
    >>> str(Origin("app.yml", 3, 7))
    'app.yml:3[7]'
    >>> str(Origin())
    'unknown:???[???]'
    """

    source: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        source = self.source or "unknown"
        line = str(self.line) if self.line > 0 else "???"
        column = str(self.column) if self.column > 0 else "???"
        return f"{source}:{line}[{column}]"


class Kind(Enum):
    """Node kinds, resolved by inspection priority Array, Map, then Value."""

    ARRAY = "array"
    MAP = "map"
    VALUE = "value"


@dataclass(frozen=True)
class Object:
    """A node in the configuration tree.

    Why
    ----
    Decoders, the merge engine, and the encoders need a single representation
    that keeps provenance and secrecy next to the data.

    What
    ----
    Holds an array payload, a map payload, or a scalar value. Only the payload
    selected by :attr:`kind` is meaningful. Map keys are stored in lexical
    order so iteration and output are reproducible.

    Examples
    --------
    >>> tree = Object.from_raw({"db": {"hosts": ["a", "b"]}})
    >>> tree.kind.value
    'map'
    >>> tree.fetch(["db", "hosts", "1"]).value
    'b'
    """

    origins: tuple[Origin, ...] = ()
    array: tuple[Object, ...] = ()
    map: Mapping[str, Object] = field(default_factory=dict)
    value: Any = None
    _secret: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "origins", tuple(self.origins))
        object.__setattr__(self, "array", tuple(self.array))
        ordered = {key: self.map[key] for key in sorted(self.map)}
        object.__setattr__(self, "map", MappingProxyType(ordered))

    @property
    def secret(self) -> bool:
        """``True`` when this subtree is redacted on output."""

        return self._secret

    @property
    def kind(self) -> Kind:
        """Return the node kind using the Array > Map > Value priority.

        Examples
        --------
        >>> Object(array=(Object(value=1),), map={"a": Object(value=2)}).kind.value
        'array'
        >>> Object().kind.value
        'value'
        """

        if self.array:
            return Kind.ARRAY
        if self.map:
            return Kind.MAP
        return Kind.VALUE

    def origin_string(self) -> str:
        """Join all origins as ``source:line[col]`` separated by ``", "``.

        Examples
        --------
        >>> Object(origins=(Origin("a.json", 1, 2), Origin("b.json"))).origin_string()
        'a.json:1[2], b.json:???[???]'
        """

        return ", ".join(str(origin) for origin in self.origins)

    def fetch(self, path: Sequence[str], separator: str = ".") -> Object:
        """Walk *path* (map keys or array indices) and return the node found.

        Parameters
        ----------
        path:
            Sequence of segments. An empty sequence returns ``self``.
        separator:
            Only used to join the walked path into error messages.

        Raises
        ------
        NotFound
            A map key is missing or the walk descends into a scalar.
        InvalidPath
            A segment used against an array is not an integer.
        ArrayOutOfBounds
            An index is outside ``[0, len)``.

        Examples
        --------
        >>> Object.from_raw({"a": [1]}).fetch(["a", "3"])
        Traceback (most recent call last):
        ...
        lib_config_tree.domain.errors.ArrayOutOfBounds: with array len of 1 and 'a.3' array index is out of bounds
        """

        node = self
        for depth, segment in enumerate(path):
            walked = separator.join(path[: depth + 1])
            kind = node.kind
            if kind is Kind.MAP:
                if segment not in node.map:
                    raise NotFound(f"with '{walked}' not found")
                node = node.map[segment]
            elif kind is Kind.ARRAY:
                try:
                    index = int(segment)
                except ValueError as exc:
                    raise InvalidPath(f"with '{walked}' '{segment}' is not an array index") from exc
                if not 0 <= index < len(node.array):
                    raise ArrayOutOfBounds(
                        f"with array len of {len(node.array)} and '{walked}' array index is out of bounds"
                    )
                node = node.array[index]
            else:
                raise NotFound(f"with '{walked}' not found")
        return node

    def to_raw(self) -> Any:
        """Strip origins and secrecy, returning plain dicts, lists, and scalars.

        Examples
        --------
        >>> Object.from_raw({"a": [1, {"b": None}]}).to_raw()
        {'a': [1, {'b': None}]}
        """

        kind = self.kind
        if kind is Kind.ARRAY:
            return [item.to_raw() for item in self.array]
        if kind is Kind.MAP:
            return {key: child.to_raw() for key, child in self.map.items()}
        return self.value

    @classmethod
    def from_raw(cls, raw: Any, origin: Origin | None = None) -> Object:
        """Build a tree from native structures.

        Mappings become maps (keys are stringified), lists and tuples become
        arrays, anything else becomes a Value leaf. Each node receives an empty
        origins tuple, or ``(origin,)`` when *origin* is supplied.
        """

        origins = (origin,) if origin is not None else ()
        if isinstance(raw, Mapping):
            return cls(origins=origins, map={str(key): cls.from_raw(val, origin) for key, val in raw.items()})
        if isinstance(raw, (list, tuple)):
            return cls(origins=origins, array=tuple(cls.from_raw(item, origin) for item in raw))
        return cls(origins=origins, value=raw)

    def to_redacted(self) -> Object:
        """Return a copy where every secret subtree is a ``"REDACTED"`` leaf.

        Examples
        --------
        >>> leaf = mark_secret(Object(value="hunter2"), True)
        >>> Object(map={"user": Object(value="alice"), "pass": leaf}).to_redacted().to_raw()
        {'pass': 'REDACTED', 'user': 'alice'}
        """

        if self._secret:
            return mark_secret(Object(value=REDACTED_TEXT), True)
        kind = self.kind
        if kind is Kind.ARRAY:
            return _rebuild(self, array=tuple(item.to_redacted() for item in self.array))
        if kind is Kind.MAP:
            return _rebuild(self, map={key: child.to_redacted() for key, child in self.map.items()})
        return self

    def alter_key_case(self, transform: Callable[[str], str] | None) -> Object:
        """Return a copy with every map key renamed through *transform*.

        ``None`` is treated as the identity transform.

        Examples
        --------
        >>> Object.from_raw({"Db": {"HOST": "x"}}).alter_key_case(str.lower).to_raw()
        {'db': {'host': 'x'}}
        """

        if transform is None:
            return self
        kind = self.kind
        if kind is Kind.ARRAY:
            return _rebuild(self, array=tuple(item.alter_key_case(transform) for item in self.array))
        if kind is Kind.MAP:
            return _rebuild(
                self,
                map={transform(key): child.alter_key_case(transform) for key, child in self.map.items()},
            )
        return self

    def resolve_commands(self, secret: bool = False) -> Object:
        """Strip directive suffixes from every map key and apply ``secret`` markers.

        Examples
        --------
        >>> Object.from_raw({"pass((secret))": "x"}).resolve_commands().map["pass"].secret
        True
        """

        from .commands import resolve_commands

        return resolve_commands(self, secret)


def mark_secret(node: Object, secret: bool) -> Object:
    """Return a copy of *node* carrying the given secrecy flag.

    Reserved for the command resolver, the merge engine, and the expansion
    engine; consumers never flag nodes directly.
    """

    if node.secret == secret:
        return node
    clone = replace(node)
    object.__setattr__(clone, "_secret", secret)
    return clone


def _rebuild(node: Object, **changes: Any) -> Object:
    """Apply *changes* to *node* while keeping its secrecy flag."""

    return mark_secret(replace(node, **changes), node.secret)


EMPTY_TREE = Object()
"""Canonical empty tree (Kind Value, nothing set)."""
