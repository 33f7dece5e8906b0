"""Structured configuration decoders.

Purpose
-------
Convert raw JSON, TOML, and YAML bytes into :class:`Object` trees whose nodes
name the file they came from. Each decoder is a small wrapper around
``json``/``tomllib``/``yaml`` so error handling, observability, and the
top-level mapping rule live in one place.

Contents
--------
* :class:`BaseDecoder` – shared helpers for validating parser output.
* :class:`JSONDecoder` – ``.json`` documents.
* :class:`TOMLDecoder` – ``.toml`` documents.
* :class:`YAMLDecoder` – ``.yaml``/``.yml`` documents with line and column
  origins taken from the parser's node marks.

System Role
-----------
Registered in :func:`lib_config_tree.core.default_registry` and invoked by
:class:`lib_config_tree.adapters.filegroups.default.FileGroup` for every file
whose extension they claim.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

try:  # Python >= 3.11
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore[assignment]

import yaml

from ...domain.errors import InvalidFormat
from ...domain.tree import Object, Origin
from ...observability import log_debug, log_error


class BaseDecoder:
    """Common utilities shared by the structured decoders."""

    extensions: tuple[str, ...] = ()
    format_name: str = ""

    @staticmethod
    def _ensure_mapping(data: object, *, source: str) -> Mapping[str, object]:
        """Ensure *data* behaves like a mapping, otherwise raise ``InvalidFormat``.

        Why
        ----
        The merge engine folds trees whose top level is a map; a bare list or
        scalar document indicates a malformed configuration file.

        Examples
        --------
        >>> BaseDecoder._ensure_mapping({"key": 1}, source="demo")
        {'key': 1}
        >>> BaseDecoder._ensure_mapping(42, source="demo")
        Traceback (most recent call last):
        ...
        lib_config_tree.domain.errors.InvalidFormat: File demo did not produce a mapping
        """

        if not isinstance(data, Mapping):
            raise InvalidFormat(f"File {source} did not produce a mapping")
        return data

    def _tree(self, source: str, data: object) -> Object:
        """Validate *data* and convert it into a tree tagged with *source*."""

        mapping = self._ensure_mapping(data, source=source)
        tree = Object.from_raw(mapping, Origin(source=source))
        log_debug("config_decoded", source=source, format=self.format_name, keys=len(mapping))
        return tree

    def _invalid(self, source: str, exc: Exception) -> InvalidFormat:
        log_error("config_invalid", source=source, format=self.format_name, error=str(exc))
        return InvalidFormat(f"Invalid {self.format_name.upper()} in {source}: {exc}")


class JSONDecoder(BaseDecoder):
    """Decode JSON documents.

    JSON carries no position information, so every node's origin is the file
    name alone.
    """

    extensions = ("json",)
    format_name = "json"

    def decode(self, source: str, data: bytes, key_delimiter: str = ".") -> Object:
        """Return the tree for the JSON document *data*.

        An empty or whitespace-only document is the empty tree.

        Examples
        --------
        >>> JSONDecoder().decode("app.json", b'{"db": {"port": 5432}}').fetch(["db", "port"]).value
        5432
        >>> JSONDecoder().decode("app.json", b"  ").kind.value
        'value'
        """

        if not data.strip():
            return Object()
        try:
            parsed = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise self._invalid(source, exc) from exc
        return self._tree(source, parsed)


class TOMLDecoder(BaseDecoder):
    """Decode TOML documents using the standard library parser."""

    extensions = ("toml",)
    format_name = "toml"

    def decode(self, source: str, data: bytes, key_delimiter: str = ".") -> Object:
        """Return the tree for the TOML document *data*.

        Examples
        --------
        >>> tree = TOMLDecoder().decode("app.toml", b'[server]\\nport = 8080')
        >>> tree.fetch(["server", "port"]).origin_string()
        'app.toml:???[???]'
        """

        try:
            parsed = tomllib.loads(data.decode("utf-8"))
        except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:  # type: ignore[attr-defined]
            raise self._invalid(source, exc) from exc
        return self._tree(source, parsed)


class YAMLDecoder(BaseDecoder):
    """Decode YAML documents, keeping the line and column of every node.

    Why
    ----
    YAML is the format people hand-edit most; pointing at ``app.yml:12[5]``
    when a merge conflict happens saves a search.

    What
    ----
    Composes the document into PyYAML's node graph with ``SafeLoader`` and
    converts nodes directly, so each :class:`Object` receives an
    :class:`Origin` with 1-based line and column. Anchors, aliases, and ``<<``
    merge keys are honoured. Scalars are constructed with the safe
    constructors (ints, floats, booleans, timestamps, ``null``).
    """

    extensions = ("yaml", "yml")
    format_name = "yaml"

    def decode(self, source: str, data: bytes, key_delimiter: str = ".") -> Object:
        """Return the tree for the YAML document *data*.

        Examples
        --------
        >>> tree = YAMLDecoder().decode("app.yml", b"server:\\n  port: 8080\\n")
        >>> tree.fetch(["server", "port"]).origin_string()
        'app.yml:2[9]'
        """

        try:
            loader = yaml.SafeLoader(data)
            try:
                root = loader.get_single_node()
                if root is None:
                    return Object()
                if not isinstance(root, yaml.MappingNode):
                    raise InvalidFormat(f"File {source} did not produce a mapping")
                tree = self._convert(loader, source, root, set())
            finally:
                loader.dispose()
        except yaml.YAMLError as exc:
            raise self._invalid(source, exc) from exc
        except RecursionError as exc:
            raise self._recursive(source) from exc
        log_debug("config_decoded", source=source, format=self.format_name, keys=len(tree.map))
        return tree

    def _convert(self, loader: yaml.SafeLoader, source: str, node: yaml.Node, active: set[int]) -> Object:
        """Convert *node*; *active* holds the ids of the collections being converted above it."""

        mark = node.start_mark
        origin = Origin(source=source, line=mark.line + 1, column=mark.column + 1)
        if isinstance(node, yaml.ScalarNode):
            return Object(origins=(origin,), value=loader.construct_object(node, deep=True))
        if id(node) in active:
            raise self._recursive(source)
        active.add(id(node))
        try:
            if isinstance(node, yaml.SequenceNode):
                items = tuple(self._convert(loader, source, item, active) for item in node.value)
                return Object(origins=(origin,), array=items)
            loader.flatten_mapping(node)
            children: dict[str, Object] = {}
            for key_node, value_node in node.value:
                key = _key_text(loader.construct_object(key_node, deep=True))
                children[key] = self._convert(loader, source, value_node, active)
            return Object(origins=(origin,), map=children)
        finally:
            active.discard(id(node))

    def _recursive(self, source: str) -> InvalidFormat:
        log_error("config_invalid", source=source, format=self.format_name, error="recursive alias")
        return InvalidFormat(f"File {source} contains a recursive alias")


def _key_text(key: Any) -> str:
    """Render a YAML mapping key the way it reads in the file (``true`` not ``True``)."""

    if isinstance(key, bool):
        return "true" if key else "false"
    if key is None:
        return "null"
    return str(key)
