"""Structured configuration encoders.

Purpose
-------
Serialise compiled trees back into JSON or YAML, either as plain data or as
an origin-annotated form that shows where every node came from.

Contents
--------
* :func:`annotated` – the origin-annotated plain structure of a tree.
* :class:`JSONEncoder` – ``.json`` output.
* :class:`YAMLEncoder` – ``.yaml``/``.yml`` output.

System Role
-----------
Registered in :func:`lib_config_tree.core.default_registry`; used by
:meth:`lib_config_tree.core.Compiler.marshal` and the ``compile`` CLI command.
Redaction happens before encoding, so encoders never see secret values unless
the caller asked for them.
"""

from __future__ import annotations

import json
from typing import Any

import yaml

from ...domain.tree import Kind, Object


def annotated(tree: Object) -> dict[str, Any]:
    """Return *tree* as ``{"origins", "array", "map", "value"}`` dictionaries.

    Only the payload matching the node's kind is filled; the other two are
    ``None``.

    Examples
    --------
    >>> from lib_config_tree.domain.tree import Origin
    >>> annotated(Object(origins=(Origin("a.yml", 2, 3),), value=1))
    {'origins': [{'source': 'a.yml', 'line': 2, 'column': 3}], 'array': None, 'map': None, 'value': 1}
    """

    kind = tree.kind
    return {
        "origins": [{"source": o.source, "line": o.line, "column": o.column} for o in tree.origins],
        "array": [annotated(item) for item in tree.array] if kind is Kind.ARRAY else None,
        "map": {key: annotated(child) for key, child in tree.map.items()} if kind is Kind.MAP else None,
        "value": tree.value if kind is Kind.VALUE else None,
    }


def _payload(tree: Object, include_origins: bool) -> Any:
    return annotated(tree) if include_origins else tree.to_raw()


class JSONEncoder:
    """Encode trees as indented JSON with sorted keys."""

    extensions = ("json",)

    def __init__(self, *, indent: int | None = 2) -> None:
        self._indent = indent

    def encode(self, tree: Object, include_origins: bool = False) -> bytes:
        """Return UTF-8 JSON for *tree*.

        Values JSON cannot express (dates, timestamps) are rendered with
        ``str``.

        Examples
        --------
        >>> JSONEncoder(indent=None).encode(Object.from_raw({"b": 1, "a": [True]}))
        b'{"a": [true], "b": 1}'
        """

        text = json.dumps(
            _payload(tree, include_origins),
            indent=self._indent,
            sort_keys=True,
            ensure_ascii=False,
            default=str,
        )
        return text.encode("utf-8")


class YAMLEncoder:
    """Encode trees as block-style YAML."""

    extensions = ("yaml", "yml")

    def encode(self, tree: Object, include_origins: bool = False) -> bytes:
        """Return UTF-8 YAML for *tree*.

        Examples
        --------
        >>> YAMLEncoder().encode(Object.from_raw({"server": {"port": 80}}))
        b'server:\\n  port: 80\\n'
        """

        text = yaml.safe_dump(
            _payload(tree, include_origins),
            default_flow_style=False,
            sort_keys=True,
            allow_unicode=True,
        )
        return text.encode("utf-8")
