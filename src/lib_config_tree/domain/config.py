"""Read-only mapping view over a compiled configuration tree.

Purpose
-------
Give application code a dictionary-shaped handle on the compiled tree: plain
values for the everyday ``cfg["db"]`` / ``cfg.get("db.port")`` access, with
origins and redaction one method call away.

Contents
--------
* :class:`Config` – ``Mapping`` implementation over an :class:`Object` tree.
* :data:`EMPTY_CONFIG` – canonical empty instance.

System Role
-----------
Returned by :meth:`lib_config_tree.core.Compiler.config`. The view holds the
immutable tree of one compile pass; recompiling produces a new view and never
changes an existing one.
"""

from __future__ import annotations

import json
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass
from typing import Any, Iterator, TypeVar, overload

from .errors import ArrayOutOfBounds, NotFound
from .tree import EMPTY_TREE, Kind, Object, Origin

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Config(MappingABC[str, Any]):
    """Immutable mapping returned to library consumers.

    Why
    ----
    Callers want a read-only structure that behaves like a dictionary yet
    can still explain where each value came from.

    What
    ----
    Wraps a compiled :class:`Object`. Item access returns plain values
    (dictionaries, lists, scalars) built fresh on every call, so mutating a
    returned value never affects the view.

    Parameters
    ----------
    tree:
        Compiled tree (commands resolved, expansions applied).
    key_delimiter:
        Separator used by :meth:`get` and :meth:`origin` to split dotted keys.

    Examples
    --------
    >>> cfg = Config(Object.from_raw({"service": {"timeout": 30}}, Origin("app.yml", 2, 3)))
    >>> cfg.get("service.timeout")
    30
    >>> [str(o) for o in cfg.origin("service.timeout")]
    ['app.yml:2[3]']
    """

    tree: Object = EMPTY_TREE
    key_delimiter: str = "."

    def __getitem__(self, key: str) -> Any:
        """Return the plain value stored under the top-level *key*.

        Examples
        --------
        >>> Config(Object.from_raw({"feature": True}))["feature"]
        True
        """

        if self.tree.kind is not Kind.MAP or key not in self.tree.map:
            raise KeyError(key)
        return self.tree.map[key].to_raw()

    def __iter__(self) -> Iterator[str]:
        """Iterate over top-level keys in lexical order.

        Examples
        --------
        >>> list(Config(Object.from_raw({"service": {}, "logging": 1})))
        ['logging', 'service']
        """

        if self.tree.kind is not Kind.MAP:
            return iter(())
        return iter(self.tree.map)

    def __len__(self) -> int:
        return len(self.tree.map) if self.tree.kind is Kind.MAP else 0

    def as_dict(self) -> dict[str, Any]:
        """Return a mutable deep copy of the configuration.

        Examples
        --------
        >>> cfg = Config(Object.from_raw({"service": {"timeout": 5}}))
        >>> clone = cfg.as_dict()
        >>> clone["service"]["timeout"] = 10
        >>> cfg.get("service.timeout")
        5
        """

        raw = self.tree.to_raw()
        return raw if isinstance(raw, dict) else {}

    def to_json(self, *, indent: int | None = None, redact: bool = False) -> str:
        """Serialise the configuration to JSON using :meth:`as_dict` under the hood.

        Parameters
        ----------
        indent:
            Optional indentation size passed to :func:`json.dumps`.
        redact:
            Replace secret subtrees with ``"REDACTED"`` first.

        Examples
        --------
        >>> Config(Object.from_raw({"service": {"timeout": 5}})).to_json()
        '{"service":{"timeout":5}}'
        """

        source = self.redacted() if redact else self
        return json.dumps(source.as_dict(), indent=indent, separators=(",", ":"), ensure_ascii=False, default=str)

    def redacted(self) -> Config:
        """Return a view whose secret subtrees read as ``"REDACTED"``."""

        return Config(self.tree.to_redacted(), self.key_delimiter)

    @overload
    def get(self, key: str, default: T) -> Any | T: ...

    @overload
    def get(self, key: str, default: None = ...) -> Any | None: ...

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value at the dotted *key* or *default* when it is missing.

        Numeric segments index into arrays (``"hosts.0"``).

        Examples
        --------
        >>> cfg = Config(Object.from_raw({"service": {"hosts": ["a", "b"]}}))
        >>> cfg.get("service.hosts.1")
        'b'
        >>> cfg.get("missing.path", "fallback")
        'fallback'
        """

        node = self._node(key)
        return default if node is None else node.to_raw()

    def origin(self, key: str) -> tuple[Origin, ...] | None:
        """Return the origins recorded for *key*, or ``None`` when it is missing."""

        node = self._node(key)
        return None if node is None else node.origins

    def is_secret(self, key: str) -> bool:
        """Return ``True`` when the value at *key* is flagged secret."""

        node = self._node(key)
        return node is not None and node.secret

    def _node(self, key: str) -> Object | None:
        path = key.split(self.key_delimiter) if key else []
        try:
            return self.tree.fetch(path, self.key_delimiter)
        except (NotFound, ArrayOutOfBounds):
            return None


EMPTY_CONFIG = Config()
"""Canonical empty configuration."""
