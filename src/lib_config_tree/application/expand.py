"""Variable expansion over configuration trees.

Purpose
-------
Substitute ``${name}``-style tokens inside string leaves using a pluggable
lookup source: the process environment, any caller mapping, or the tree
itself.

Contents
    - ``Expansion``: one configured pass (delimiters, bound, lookup source).
    - ``expand_tree``: apply a pass to every string leaf of a tree.
    - ``env_mapper`` / ``tree_mapper``: ready-made lookup sources.

System Role
-----------
The compiler runs every registered pass, in declaration order, over the whole
merged tree after each record and once more at the end of a compile.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any, Mapping

from ..domain.errors import ArrayOutOfBounds, ExpansionDepthExceeded, InvalidInput, NotFound
from ..domain.tree import Kind, Object, Origin, mark_secret
from .ports import Mapper

DEFAULT_MAXIMUM = 10_000


@dataclass(frozen=True)
class Expansion:
    """Configuration for one expansion pass.

    Attributes
    ----------
    name:
        Label shown by :meth:`Compiler.explain <lib_config_tree.core.Compiler.explain>`.
    start / end:
        Token delimiters, ``${`` and ``}`` by default.
    maximum:
        Number of substitution rounds a single leaf may take before
        :class:`ExpansionDepthExceeded` is raised.
    mapper:
        Lookup ``(token) -> (value, found)``. Unfound tokens stay in place;
        a mapper that wants missing names to be fatal raises instead.
    from_tree:
        Look tokens up as paths in the tree being expanded instead of using
        *mapper*.
    origin:
        When set, appended as an :class:`Origin` to every leaf the pass changed.
    """

    name: str = "expansion"
    start: str = "${"
    end: str = "}"
    maximum: int = DEFAULT_MAXIMUM
    mapper: Mapper | None = None
    from_tree: bool = False
    origin: str = ""

    def __post_init__(self) -> None:
        if not self.start or not self.end:
            raise InvalidInput(f"expansion '{self.name}' needs non-empty start and end delimiters")
        if self.maximum < 1:
            raise InvalidInput(f"expansion '{self.name}' needs a positive maximum")
        if self.mapper is None and not self.from_tree:
            raise InvalidInput(f"expansion '{self.name}' needs a mapper or from_tree=True")

    def describe(self) -> str:
        """Return a one-line human description for explain output."""

        source = "tree" if self.from_tree else "mapper"
        return f"{self.name}: '{self.start}' ... '{self.end}' from {source}, maximum {self.maximum}"


def expand_tree(tree: Object, expansion: Expansion, delimiter: str = ".") -> Object:
    """Return a copy of *tree* with every string leaf expanded.

    Why
    ----
    Values often reference other values or environment variables; resolving
    them once after merging keeps the decoders format-agnostic.

    Parameters
    ----------
    tree:
        Snapshot to expand. With ``from_tree`` this snapshot also serves as
        the lookup source.
    expansion:
        Pass configuration.
    delimiter:
        Key delimiter used to split tokens into paths for ``from_tree``.

    Raises
    ------
    ExpansionDepthExceeded
        A leaf kept producing new tokens beyond ``expansion.maximum`` rounds.

    Examples
    --------
    >>> tree = Object.from_raw({"host": "db", "url": "pg://${host}/app"})
    >>> expand_tree(tree, Expansion(from_tree=True)).to_raw()["url"]
    'pg://db/app'
    >>> env = Expansion(mapper=env_mapper({"USER": "alice"}))
    >>> expand_tree(Object.from_raw({"who": "${USER}-${MISSING}"}), env).to_raw()
    {'who': 'alice-${MISSING}'}
    """

    pattern = _token_pattern(expansion.start, expansion.end)
    lookup: Mapper = tree_mapper(tree, delimiter) if expansion.from_tree else expansion.mapper  # type: ignore[assignment]
    return _expand_node(tree, expansion, pattern, lookup)


def env_mapper(environ: Mapping[str, str] | None = None) -> Mapper:
    """Return a mapper resolving tokens from *environ* (``os.environ`` by default).

    Examples
    --------
    >>> env_mapper({"HOME": "/home/demo"})("HOME")
    ('/home/demo', True)
    >>> env_mapper({})("HOME")
    (None, False)
    """

    source = os.environ if environ is None else environ

    def _lookup(token: str) -> tuple[Any, bool]:
        if token in source:
            return source[token], True
        return None, False

    return _lookup


def tree_mapper(tree: Object, delimiter: str = ".") -> Mapper:
    """Return a mapper resolving tokens as *delimiter*-separated paths in *tree*.

    Only scalar leaves resolve; containers and missing paths are unfound. The
    leaf node itself is returned so its secrecy carries into the expanded
    value.
    """

    def _lookup(token: str) -> tuple[Any, bool]:
        try:
            node = tree.fetch(token.split(delimiter), delimiter)
        except (NotFound, ArrayOutOfBounds):
            return None, False
        if node.kind is not Kind.VALUE or node.value is None:
            return None, False
        return node, True

    return _lookup


def _token_pattern(start: str, end: str) -> re.Pattern[str]:
    """Match the innermost ``start ... end`` token (no nested *start* inside)."""

    open_, close = re.escape(start), re.escape(end)
    return re.compile(f"{open_}((?:(?!{open_}).)*?){close}", re.DOTALL)


def _expand_node(node: Object, expansion: Expansion, pattern: re.Pattern[str], lookup: Mapper) -> Object:
    kind = node.kind
    if kind is Kind.ARRAY:
        array = tuple(_expand_node(item, expansion, pattern, lookup) for item in node.array)
        return mark_secret(Object(origins=node.origins, array=array), node.secret)
    if kind is Kind.MAP:
        children = {key: _expand_node(child, expansion, pattern, lookup) for key, child in node.map.items()}
        return mark_secret(Object(origins=node.origins, map=children), node.secret)
    if not isinstance(node.value, str):
        return node
    return _expand_leaf(node, expansion, pattern, lookup)


def _expand_leaf(node: Object, expansion: Expansion, pattern: re.Pattern[str], lookup: Mapper) -> Object:
    """Substitute tokens round by round until a round resolves nothing."""

    text: str = node.value
    secret = node.secret
    changed = False
    for _ in range(expansion.maximum + 1):
        resolved_any = False
        tainted = False

        def _substitute(match: re.Match[str]) -> str:
            nonlocal resolved_any, tainted
            value, found = lookup(match.group(1))
            if not found:
                return match.group(0)
            resolved_any = True
            if isinstance(value, Object):
                tainted = tainted or value.secret
                value = value.value
            return _render(value)

        candidate = pattern.sub(_substitute, text)
        if not resolved_any:
            break
        text = candidate
        secret = secret or tainted
        changed = True
    else:
        raise ExpansionDepthExceeded(
            f"expansion '{expansion.name}' of value at {node.origin_string() or 'unknown'} "
            f"exceeded {expansion.maximum} rounds"
        )

    if not changed:
        return node
    origins = node.origins + ((Origin(expansion.origin),) if expansion.origin else ())
    return mark_secret(Object(origins=origins, value=text), secret)


def _render(value: Any) -> str:
    """Render a looked-up value the way it should appear inside text."""

    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)

