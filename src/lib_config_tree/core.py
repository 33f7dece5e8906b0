"""Composition root for ``lib_config_tree``.

Purpose
-------
Provide the single entry point that gathers records from file groups, values,
callbacks, and the environment, folds them through the merge engine, and
applies expansions. The module wires the adapters into the application layer
and exports only stable, consumer-ready APIs.

Contents
--------
* :func:`default_registry` – registry holding the built-in codecs.
* :class:`Compiler` – configuration builder and holder of the compiled tree.

System Role
-----------
This module connects adapters (filesystem, decoders, encoders, environment)
with the domain tree while emitting structured observability signals. It is
the canonical location for adjusting the compile order or wiring new
adapters.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, TypeVar

from .adapters.decoders.dotenv import DotEnvDecoder
from .adapters.decoders.structured import JSONDecoder, TOMLDecoder, YAMLDecoder
from .adapters.encoders.structured import JSONEncoder, YAMLEncoder
from .adapters.env.default import DefaultEnvLoader
from .adapters.filegroups.default import FileGroup, file_extension, std_layout
from .application.expand import Expansion, expand_tree
from .application.merge import merge
from .application.ports import SortKey
from .application.records import Record, ValueFn, natural_sort_key, sort_records, value_tree
from .application.registry import CodecRegistry
from .application.unmarshal import UnmarshalOptions, unmarshal
from .domain.config import Config
from .domain.errors import InvalidInput, NotCompiled
from .domain.tree import EMPTY_TREE, Object, Origin
from .observability import log_debug, log_error, log_info, make_event

T = TypeVar("T")


def default_registry(*, json_indent: int | None = 2) -> CodecRegistry:
    """Return a registry with the JSON, YAML, TOML, and dotenv codecs.

    *json_indent* is passed to the JSON encoder (``None`` for compact output).

    Examples
    --------
    >>> default_registry().extensions()
    ['env', 'json', 'toml', 'yaml', 'yml']
    >>> default_registry().encoder_extensions()
    ['json', 'yaml', 'yml']
    """

    registry = CodecRegistry()
    for decoder in (JSONDecoder(), YAMLDecoder(), TOMLDecoder(), DotEnvDecoder()):
        registry.register_decoder(decoder)
    for encoder in (JSONEncoder(indent=json_indent), YAMLEncoder()):
        registry.register_encoder(encoder)
    return registry


class Compiler:
    """Collect configuration sources and compile them into one tree.

    Why
    ----
    Applications read configuration from several places; the order in which
    those places override each other must be explicit and reproducible.

    What
    ----
    Registration methods record file groups, values, value callbacks,
    environment snapshots, and expansion passes. :meth:`compile` walks the
    groups, orders every record by name (defaults first, in registration
    order), folds them with :func:`~lib_config_tree.application.merge.merge`,
    and runs the expansions. A failed compile leaves the previously compiled
    state untouched. Every public method holds one lock.

    Parameters
    ----------
    registry:
        Codecs available to file groups and :meth:`marshal`. Defaults to
        :func:`default_registry`.
    key_delimiter:
        Separator for dotted keys in lookups, value keys, and tree expansions.
    key_case:
        Transform applied to every incoming key before merging (``str.lower``
        for case-insensitive configuration).
    sorter:
        Key function ordering records by name. Defaults to natural order.
    auto_compile:
        Recompile after every registration call.
    unmarshal_options:
        Defaults for :meth:`unmarshal`; individual calls may override them.

    Examples
    --------
    >>> compiler = Compiler()
    >>> compiler.add_value("defaults", {"db": {"host": "localhost", "port": 5432}}, as_default=True)
    >>> compiler.add_value("override", {"db": {"host": "db.internal"}})
    >>> compiler.compile()
    >>> compiler.fetch("db")
    {'host': 'db.internal', 'port': 5432}
    >>> compiler.show_order()
    ['defaults', 'override']
    """

    def __init__(
        self,
        registry: CodecRegistry | None = None,
        *,
        key_delimiter: str = ".",
        key_case: Callable[[str], str] | None = None,
        sorter: SortKey | None = None,
        auto_compile: bool = False,
        unmarshal_options: UnmarshalOptions | None = None,
    ) -> None:
        if not key_delimiter:
            raise InvalidInput("key_delimiter must not be empty")
        self._lock = threading.Lock()
        self._registry = registry or default_registry()
        self._key_delimiter = key_delimiter
        self._key_case = key_case
        self._sort_key: SortKey = sorter or natural_sort_key
        self._auto_compile = auto_compile
        self._unmarshal_options = unmarshal_options or UnmarshalOptions()

        self._groups: list[FileGroup] = []
        self._values: list[Record] = []
        self._defaults: list[Record] = []
        self._expansions: list[Expansion] = []
        self._options: list[str] = []

        self._tree: Object | None = None
        self._order: list[str] = []
        self._narrative: list[str] = []

    # Registration -----------------------------------------------------------------

    def add_file_group(self, group: FileGroup) -> None:
        """Walk *group* on every compile."""

        with self._lock:
            self._groups.append(group)
            self._note(f"add_file_group({group.describe()})")

    def add_files(
        self,
        root: str | os.PathLike[str],
        *paths: str,
        recurse: bool = False,
        halt: bool = False,
        optional: bool = False,
    ) -> None:
        """Shorthand for :meth:`add_file_group` with a new :class:`FileGroup`."""

        self.add_file_group(FileGroup(root, paths or (".",), recurse=recurse, halt=halt, optional=optional))

    def add_std_layout(
        self,
        app_name: str,
        *,
        files: Iterable[str] = (),
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Register the halting groups of :func:`~lib_config_tree.adapters.filegroups.default.std_layout`."""

        groups = std_layout(app_name, files=files, cwd=cwd, env=env)
        with self._lock:
            self._groups.extend(groups)
            self._note(f"add_std_layout({app_name!r}, {len(groups)} groups)")

    def add_value(self, name: str, value: Any, *, key: str = "", as_default: bool = False) -> None:
        """Merge *value* (native structure, dataclass, or pydantic model) as record *name*.

        *value* is converted immediately; later mutation of the caller's object
        has no effect.
        """

        tree = value_tree(name, value, key=key, key_delimiter=self._key_delimiter)
        self._add_record(Record(name=name, tree=tree, as_default=as_default), "add_value")

    def add_value_fn(self, name: str, fn: ValueFn, *, key: str = "", as_default: bool = False) -> None:
        """Merge the result of ``fn(name, unmarshal)`` evaluated during each compile.

        ``unmarshal(key, target, **overrides)`` decodes from the configuration
        merged so far, with expansions applied.
        """

        self._add_record(Record(name=name, fn=fn, key=key, as_default=as_default), "add_value_fn")

    def add_tree(self, name: str, tree: Object, *, as_default: bool = False) -> None:
        """Merge a pre-built tree, directives included."""

        self._add_record(Record(name=name, tree=tree, as_default=as_default), "add_tree")

    def add_environment(
        self,
        prefix: str = "",
        *,
        name: str = "~environment",
        environ: Mapping[str, str] | None = None,
        as_default: bool = False,
    ) -> None:
        """Merge the variables starting with *prefix*, read at compile time.

        ``PREFIX_DB__HOST`` becomes ``db.host``; see
        :class:`~lib_config_tree.adapters.env.default.DefaultEnvLoader`.
        The record sorts by *name* like any other; the default ``~environment``
        orders after names made of letters and digits, so the environment
        overrides files.
        """

        loader = DefaultEnvLoader(environ=environ)

        def _snapshot(_name: str, _unmarshal: Callable[..., Any]) -> Object:
            return loader.load(prefix)

        self._add_record(Record(name=name, fn=_snapshot, as_default=as_default), f"add_environment({prefix!r})")

    def add_expansion(self, expansion: Expansion) -> None:
        """Run *expansion* after every record and once more at the end of a compile."""

        with self._lock:
            self._expansions.append(expansion)
            self._note(f"add_expansion({expansion.describe()})")

    def set_key_case(self, transform: Callable[[str], str] | None) -> None:
        """Apply *transform* to incoming keys (``None`` keeps keys as written)."""

        with self._lock:
            self._key_case = transform
            self._note(f"set_key_case({_callable_name(transform)})")

    def set_sorter(self, sort_key: SortKey) -> None:
        """Order records with the key function *sort_key*."""

        with self._lock:
            self._sort_key = sort_key
            self._note(f"set_sorter({_callable_name(sort_key)})")

    # Compilation ------------------------------------------------------------------

    def compile(self) -> None:
        """Build the configuration tree from every registered source.

        Raises
        ------
        ConfigError
            Any decoder, merge, expansion, or callback failure. The previous
            compiled tree stays in place.
        """

        with self._lock:
            self._compile()

    def _compile(self) -> None:
        narrative = ["Start of compilation.", ""]
        try:
            records = self._walk_groups() + list(self._values)
            ordered = list(self._defaults) + sort_records(records, self._sort_key)

            merged = EMPTY_TREE
            names: list[str] = []
            narrative.append("Records processed in order.")
            for position, record in enumerate(ordered, start=1):
                narrative.append(f"  {position}. {record.name}")
                incremental = self._expand(merged)
                subtree = record.fetch(self._bound_unmarshal(incremental), self._key_delimiter)
                merged = merge(merged, subtree.alter_key_case(self._key_case))
                names.append(record.name)
                log_debug("record_merged", **make_event(record.name, None, {"position": position}))
            if not ordered:
                narrative.append("  none")

            narrative.extend(["", "Variable expansions processed in order."])
            for position, expansion in enumerate(self._expansions, start=1):
                narrative.append(f"  {position}. {expansion.describe()}")
            if not self._expansions:
                narrative.append("  none")
            merged = self._expand(merged)
        except Exception as exc:
            log_error("compile_failed", error=str(exc), error_type=type(exc).__name__)
            raise

        self._tree = merged
        self._order = names
        self._narrative = narrative
        log_info("configuration_compiled", records=len(names), expansions=len(self._expansions))

    def _walk_groups(self) -> list[Record]:
        collected: list[Record] = []
        for group in self._groups:
            records = group.walk(self._registry, self._key_delimiter)
            collected.extend(records)
            if group.halt and records:
                log_debug("file_group_halted", source=str(group.root), records=len(records))
                break
        return collected

    def _expand(self, tree: Object) -> Object:
        for expansion in self._expansions:
            tree = expand_tree(tree, expansion, self._key_delimiter)
        return tree

    def _bound_unmarshal(self, tree: Object) -> Callable[..., Any]:
        def _unmarshal(key: str, target: type[T], **overrides: Any) -> T:
            return self._decode(tree, key, target, overrides)

        return _unmarshal

    def _decode(self, tree: Object, key: str, target: type[T], overrides: Mapping[str, Any]) -> T:
        options = self._unmarshal_options.merged(**overrides) if overrides else self._unmarshal_options
        return unmarshal(tree.fetch(self._split(key), self._key_delimiter), target, options)

    # Lookups ----------------------------------------------------------------------

    def fetch(self, key: str = "") -> Any:
        """Return the plain value at the dotted *key* (``""`` for the whole tree)."""

        return self.fetch_tree(key).to_raw()

    def fetch_tree(self, key: str = "") -> Object:
        """Return the node at the dotted *key*, origins and secrecy included."""

        with self._lock:
            return self._compiled().fetch(self._split(key), self._key_delimiter)

    def origin(self, key: str = "") -> tuple[Origin, ...]:
        """Return the origins of the node at the dotted *key*."""

        return self.fetch_tree(key).origins

    def config(self) -> Config:
        """Return a read-only mapping view of the compiled tree."""

        with self._lock:
            return Config(self._compiled(), self._key_delimiter)

    def unmarshal(self, key: str, target: type[T], **overrides: Any) -> T:
        """Decode the subtree at *key* into *target*.

        *overrides* replace fields of the compiler's :class:`UnmarshalOptions`
        for this call only (for example ``error_unused=True``).
        """

        with self._lock:
            tree = self._compiled()
        return self._decode(tree, key, target, overrides)

    def marshal(
        self,
        fmt: str = "json",
        *,
        key: str = "",
        redact_secrets: bool = False,
        include_origins: bool = False,
    ) -> bytes:
        """Encode the compiled tree (or the subtree at *key*) with the encoder for *fmt*.

        Raises
        ------
        NotFound
            No encoder is registered for *fmt*, or *key* is missing.
        """

        tree = self.fetch_tree(key)
        if redact_secrets:
            tree = tree.to_redacted()
        return self._registry.find_encoder(fmt).encode(tree, include_origins)

    # Introspection ----------------------------------------------------------------

    def show_order(self) -> list[str]:
        """Return the record names of the last compile in merge order."""

        with self._lock:
            self._compiled()
            return list(self._order)

    def order_list(self, names: Iterable[str]) -> list[str]:
        """Sort *names* the way records are ordered, keeping decodable files only.

        Examples
        --------
        >>> Compiler().order_list(["10.json", "2.yml", "notes.txt", "1.toml"])
        ['1.toml', '2.yml', '10.json']
        """

        with self._lock:
            decodable = set(self._registry.extensions())
            kept = [Record(name=name) for name in names if file_extension(name) in decodable]
            return [record.name for record in sort_records(kept, self._sort_key)]

    def extensions(self) -> list[str]:
        """Return the file extensions the registry can decode."""

        return self._registry.extensions()

    def explain(self) -> str:
        """Describe the applied options and the last compile in plain text."""

        with self._lock:
            lines = ["Options in order applied:"]
            lines.extend(f"  {position}. {option}" for position, option in enumerate(self._options, start=1))
            if not self._options:
                lines.append("  none")
            lines.extend(
                [
                    "",
                    f"Key delimiter: '{self._key_delimiter}'",
                    f"Key case: {_callable_name(self._key_case)}",
                    f"Sorter: {_callable_name(self._sort_key)}",
                    f"Decoders: {', '.join(self._registry.extensions()) or 'none'}",
                    "",
                ]
            )
            lines.extend(self._narrative or ["Not compiled."])
            return "\n".join(lines) + "\n"

    # Internals --------------------------------------------------------------------

    def _add_record(self, record: Record, label: str) -> None:
        with self._lock:
            (self._defaults if record.as_default else self._values).append(record)
            kind = "default" if record.as_default else "value"
            self._note(f"{label} {kind} {record.name!r}")

    def _note(self, option: str) -> None:
        """Record *option* for :meth:`explain`; recompile when auto-compiling."""

        self._options.append(option)
        if self._auto_compile:
            self._compile()

    def _compiled(self) -> Object:
        if self._tree is None:
            raise NotCompiled("the configuration has not been compiled")
        return self._tree

    def _split(self, key: str) -> list[str]:
        return key.split(self._key_delimiter) if key else []


def _callable_name(fn: Callable[..., Any] | None) -> str:
    if fn is None:
        return "none"
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or repr(fn)


__all__ = [
    "Compiler",
    "default_registry",
]
