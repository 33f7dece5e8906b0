"""Environment variable adapter.

Purpose
-------
Turn a snapshot of process environment variables into a configuration tree
that the compiler merges like any other record.

Key behaviours
--------------
* Only variables starting with the requested prefix are captured
  (:func:`default_env_prefix` derives one from an application slug).
* ``__`` nests keys: ``DEMO_DB__HOST`` becomes ``{"db": {"host": ...}}``.
  The same rule applies to dotenv files, which reuse :func:`nest`.
* Keys fold to lowercase; names that differ only in case share a slot.
* Scalars are coerced (booleans, ``null``/``none``, ints, floats).
* Each leaf's origin names its variable (``env:DEMO_DB__HOST``).
"""

from __future__ import annotations

import os
from typing import Any, Iterable, Mapping

from ...domain.errors import ConfigError, InvalidInput
from ...domain.tree import Object, Origin
from ...observability import log_debug

ENV_SOURCE = "env"
NESTING_DELIMITER = "__"

_LITERALS: dict[str, Any] = {"true": True, "false": False, "null": None, "none": None}


def default_env_prefix(slug: str) -> str:
    """Return the canonical environment prefix for *slug*.

    Examples
    --------
    >>> default_env_prefix('config-tree-demo')
    'CONFIG_TREE_DEMO'
    """

    return slug.replace("-", "_").upper()


class DefaultEnvLoader:
    """Read the variables of one namespace from an environment mapping.

    Parameters
    ----------
    environ:
        Mapping to read from; :data:`os.environ` when omitted. The mapping is
        consulted on every :meth:`load`, so later changes are picked up.
    """

    def __init__(self, *, environ: Mapping[str, str] | None = None) -> None:
        self._environ = os.environ if environ is None else environ

    def load(self, prefix: str) -> Object:
        """Return the tree for every variable named ``<prefix>_...``.

        An empty *prefix* captures the whole environment. A trailing ``_`` is
        added when missing; a variable named exactly like the prefix is skipped.

        Raises
        ------
        InvalidInput
            Two variables disagree on whether a key is a scalar or a mapping
            (``DEMO_A=1`` next to ``DEMO_A__B=2``).

        Examples
        --------
        >>> env = {'DEMO_SERVICE__ENABLED': 'true', 'DEMO_SERVICE__RETRIES': '3', 'HOME': '/root'}
        >>> tree = DefaultEnvLoader(environ=env).load('DEMO')
        >>> tree.to_raw()
        {'service': {'enabled': True, 'retries': 3}}
        >>> tree.fetch(['service', 'enabled']).origin_string()
        'env:DEMO_SERVICE__ENABLED:???[???]'
        """

        if prefix and not prefix.endswith("_"):
            prefix += "_"
        entries = []
        for name in sorted(self._environ):
            if not name.startswith(prefix) or name == prefix:
                continue
            leaf = Object(origins=(Origin(f"{ENV_SOURCE}:{name}"),), value=coerce_scalar(self._environ[name]))
            entries.append((name[len(prefix) :], leaf))
        log_debug("env_variables_loaded", source=ENV_SOURCE, prefix=prefix, variables=len(entries))
        return nest(entries, Origin(ENV_SOURCE))


def nest(
    entries: Iterable[tuple[str, Object]],
    origin: Origin,
    *,
    error: type[ConfigError] = InvalidInput,
) -> Object:
    """Build a map tree from ``(NAME__PATH, leaf)`` pairs.

    Later pairs overwrite earlier ones at the same key. Intermediate maps get
    *origin*; *error* is raised when a scalar and a mapping collide.

    Examples
    --------
    >>> tree = nest([("DB__HOST", Object(value="pg")), ("db__port", Object(value=5432))], Origin("demo"))
    >>> tree.to_raw()
    {'db': {'host': 'pg', 'port': 5432}}
    """

    root: dict[str, Any] = {}
    for name, leaf in entries:
        assign_nested(root, name, leaf, error=error)
    return _to_tree(root, origin)


def assign_nested(
    target: dict[str, Any],
    key: str,
    value: Any,
    *,
    error: type[ConfigError] = InvalidInput,
) -> None:
    """Store *value* inside *target* along the ``__``-separated *key*.

    Examples
    --------
    >>> data: dict[str, Any] = {}
    >>> assign_nested(data, 'SERVICE__TIMEOUT', 5)
    >>> data
    {'service': {'timeout': 5}}
    """

    *parents, last = key.split(NESTING_DELIMITER)
    cursor = target
    for part in parents:
        child = cursor.setdefault(_slot(cursor, part), {})
        if not isinstance(child, dict):
            raise error(f"Cannot overwrite scalar with mapping for key {key}")
        cursor = child
    slot = _slot(cursor, last)
    if isinstance(cursor.get(slot), dict):
        raise error(f"Cannot overwrite mapping with scalar for key {key}")
    cursor[slot] = value


def coerce_scalar(text: str) -> Any:
    """Interpret *text* as a boolean, null, int, or float when it reads like one.

    Examples
    --------
    >>> coerce_scalar('true'), coerce_scalar('10'), coerce_scalar('3.5'), coerce_scalar('hello')
    (True, 10, 3.5, 'hello')
    >>> coerce_scalar('NONE') is None
    True
    """

    lowered = text.lower()
    if lowered in _LITERALS:
        return _LITERALS[lowered]
    for convert in (int, float):
        try:
            return convert(text)
        except ValueError:
            continue
    return text


def _slot(mapping: dict[str, Any], key: str) -> str:
    """Return the existing key equal to *key* ignoring case, else *key* lowercased."""

    lowered = key.lower()
    return next((existing for existing in mapping if existing.lower() == lowered), lowered)


def _to_tree(nested: dict[str, Any], origin: Origin) -> Object:
    children = {
        key: _to_tree(value, origin) if isinstance(value, dict) else _as_leaf(value)
        for key, value in nested.items()
    }
    return Object(origins=(origin,), map=children)


def _as_leaf(value: Any) -> Object:
    return value if isinstance(value, Object) else Object(value=value)
