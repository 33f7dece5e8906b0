"""File groups: filesystem discovery of configuration records.

Purpose
-------
Turn "this directory, these paths" declarations into decoded
:class:`~lib_config_tree.application.records.Record` values. The adapter is
the only component that touches the filesystem during a compile.

Contents
--------
* :class:`FileGroup` – a root directory plus relative paths (files,
  directories, or glob patterns) to decode.
* :func:`std_layout` – the conventional search order for an application's
  configuration on POSIX systems.
* :func:`file_extension` – the extension a file is decoded by (``.env`` counts
  as ``env``).

System Role
-----------
The compiler walks every registered group at the start of a compile pass.
Halting groups stop the search as soon as one of them yields a record, which
is how :func:`std_layout` picks the first location that exists.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Mapping

from ...application.records import Record
from ...application.registry import CodecRegistry
from ...domain.errors import InvalidInput, NotFound
from ...observability import log_debug

CONF_DIR_NAME = "conf.d"
_GLOB_CHARS = frozenset("*?[")


@dataclass(frozen=True)
class FileGroup:
    """A directory plus the paths inside it that hold configuration.

    Attributes
    ----------
    root:
        Directory every path is relative to.
    paths:
        Relative file names, directory names, or glob patterns. Absolute
        paths and paths ending in a separator are rejected.
    recurse:
        Descend into sub-directories of listed directories.
    halt:
        Stop walking further groups once this one produced a record.
    optional:
        Treat missing paths as empty instead of raising ``NotFound``.

    Examples
    --------
    >>> from tempfile import TemporaryDirectory
    >>> from lib_config_tree.core import default_registry
    >>> tmp = TemporaryDirectory()
    >>> _ = (Path(tmp.name) / "10.json").write_text('{"a": 1}', encoding="utf-8")
    >>> _ = (Path(tmp.name) / "notes.txt").write_text("skip", encoding="utf-8")
    >>> [record.name for record in FileGroup(tmp.name).walk(default_registry())]
    ['10.json']
    >>> tmp.cleanup()
    """

    root: str | os.PathLike[str]
    paths: tuple[str, ...] = (".",)
    recurse: bool = False
    halt: bool = False
    optional: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "paths", tuple(self.paths))
        for path in self.paths:
            _validate_relative(path)

    def describe(self) -> str:
        """Return a one-line human description for explain output."""

        flags = [name for name in ("recurse", "halt", "optional") if getattr(self, name)]
        suffix = f" ({', '.join(flags)})" if flags else ""
        return f"{self.root}: {', '.join(self.paths)}{suffix}"

    def walk(self, registry: CodecRegistry, key_delimiter: str = ".") -> list[Record]:
        """Decode every matching file into a record, ordered by relative path.

        Raises
        ------
        NotFound
            A listed path does not exist (unless *optional*), or a listed file
            has an extension no decoder handles.
        InvalidFormat
            A decoder rejected a file's content.
        """

        root = Path(self.root)
        files: dict[str, Path] = {}
        for entry in self.paths:
            for relative, path in self._expand(root, entry, registry):
                files.setdefault(relative, path)

        records = []
        for relative in sorted(files):
            path = files[relative]
            decoder = registry.find_decoder(file_extension(path))
            tree = decoder.decode(relative, _read(path), key_delimiter)
            records.append(Record(name=path.name, tree=tree))
        log_debug("file_group_walked", source=str(root), records=len(records), halt=self.halt)
        return records

    def _expand(self, root: Path, entry: str, registry: CodecRegistry) -> Iterable[tuple[str, Path]]:
        if _GLOB_CHARS.intersection(entry):
            for match in sorted(root.glob(entry)):
                if match.is_dir():
                    yield from self._listing(root, match, registry)
                elif _decodable(match, registry):
                    yield _relative(root, match), match
            return

        target = root / entry
        if target.is_dir():
            yield from self._listing(root, target, registry)
        elif target.is_file():
            registry.find_decoder(file_extension(target))
            yield _relative(root, target), target
        elif not self.optional:
            raise NotFound(f"Configuration path not found: {target}")

    def _listing(self, root: Path, directory: Path, registry: CodecRegistry) -> Iterable[tuple[str, Path]]:
        candidates = directory.rglob("*") if self.recurse else directory.iterdir()
        for path in sorted(candidates):
            if path.is_file() and _decodable(path, registry):
                yield _relative(root, path), path


def std_layout(
    app_name: str,
    *,
    files: Iterable[str] = (),
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> list[FileGroup]:
    """Return the halting groups of the conventional configuration locations.

    Why
    ----
    Most command line tools look in the same places; the first location that
    holds configuration wins and the rest are ignored.

    What
    ----
    In order: ``./<app>.*``, ``./conf.d``, ``~/.<app>/<app>.*``,
    ``~/.<app>/conf.d``, ``/etc/<app>/<app>.*``, ``/etc/<app>/conf.d``.
    The home entries are skipped when ``HOME`` is unset.
    ``LIB_CONFIG_TREE_ETC`` in *env* overrides the ``/etc`` root (useful for
    tests and relocated installs). When *files* is given those files form a
    single halting group instead.

    Examples
    --------
    >>> [group.describe() for group in std_layout("demo", cwd=Path("/srv"), env={"HOME": "/home/u"})][:2]
    ['/srv: demo.* (halt, optional)', '/srv: conf.d (recurse, halt, optional)']
    """

    if not app_name:
        raise InvalidInput("std_layout needs a non-empty application name")
    environ = os.environ if env is None else env
    base = cwd or Path.cwd()

    explicit = [str(base / name) if not os.path.isabs(name) else name for name in files]
    if explicit:
        root = Path(base.anchor or "/")
        relative = tuple(os.path.relpath(path, root) for path in explicit)
        return [FileGroup(root, relative, halt=True)]

    single = f"{app_name}.*"
    locations = [base]
    home = environ.get("HOME")
    if home:
        locations.append(Path(home) / f".{app_name}")
    locations.append(Path(environ.get("LIB_CONFIG_TREE_ETC", "/etc")) / app_name)

    groups: list[FileGroup] = []
    for location in locations:
        groups.append(FileGroup(location, (single,), halt=True, optional=True))
        groups.append(FileGroup(location, (CONF_DIR_NAME,), recurse=True, halt=True, optional=True))
    return groups


def _validate_relative(path: str) -> None:
    """Reject absolute paths and trailing separators.

    Examples
    --------
    >>> _validate_relative("/etc/app")
    Traceback (most recent call last):
    ...
    lib_config_tree.domain.errors.InvalidInput: path '/etc/app' must be relative to the group root
    """

    if not path or os.path.isabs(path) or PurePosixPath(path).is_absolute():
        raise InvalidInput(f"path '{path}' must be relative to the group root")
    if path != "." and path.endswith(("/", os.sep)):
        raise InvalidInput(f"path '{path}' must not end with a separator")


def file_extension(path: str | os.PathLike[str]) -> str:
    """Return the lower-case extension of *path*; a bare dotfile names its own.

    Examples
    --------
    >>> file_extension("conf.d/10-Base.YML"), file_extension(".env"), file_extension("README")
    ('yml', 'env', '')
    """

    name = Path(path).name
    suffix = Path(name).suffix or (name if name.startswith(".") else "")
    return suffix.lstrip(".").lower()


def _decodable(path: Path, registry: CodecRegistry) -> bool:
    extension = file_extension(path)
    return bool(extension) and extension in registry.extensions()


def _relative(root: Path, path: Path) -> str:
    return path.relative_to(root).as_posix()


def _read(path: Path) -> bytes:
    """Read *path* as bytes, emitting ``config_file_read`` debug events."""

    payload = path.read_bytes()
    log_debug("config_file_read", source=str(path), size=len(payload))
    return payload
