"""Domain-level exception hierarchy.

Purpose
-------
Expose the error taxonomy shared by the tree primitives, the merge and
expansion engines, the adapters, and the compiler. The hierarchy lives in the
domain layer so every outer layer can raise and catch the same types.

Contents
--------
* :class:`ConfigError` – umbrella base class for all library failures.
* :class:`NotFound` / :class:`InvalidPath` / :class:`ArrayOutOfBounds` – path
  lookup misses.
* :class:`InvalidCommand` – unparseable or kind-inapplicable key directives.
* :class:`Conflict` – an explicit ``fail`` directive was triggered.
* :class:`ExpansionDepthExceeded` – variable expansion did not settle.
* :class:`InvalidFormat` – decoders could not parse an artifact.
* :class:`InvalidInput` – an option or argument was rejected.
* :class:`NotCompiled` – a lookup happened before the first compile.
* :class:`ValidationError` – structured decoding failed.

System Role
-----------
All errors are terminal for the operation that raised them. The compiler
treats any of them as fatal to the current compile pass and keeps the previous
tree as the last-known-good state.
"""

from __future__ import annotations


class ConfigError(Exception):
    """Base type for all exceptions emitted by ``lib_config_tree``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling.
    """


class NotFound(ConfigError):
    """Raised when a path, file, or codec cannot be located.

    Typical Sources
    ---------------
    :meth:`Object.fetch <lib_config_tree.domain.tree.Object.fetch>` misses,
    missing files in a file group, and registry lookups for unknown formats.
    """


class InvalidPath(NotFound):
    """Raised when a path segment used against an array is not an integer."""


class ArrayOutOfBounds(ConfigError):
    """Raised when an array index falls outside ``[0, len)``."""


class InvalidCommand(ConfigError):
    """Raised for an unknown directive token or a directive that does not fit the node kind.

    Why
    ----
    Directives are embedded in key text, so a typo must surface loudly rather
    than silently producing a literal key.
    """


class Conflict(ConfigError):
    """Raised when a ``fail`` directive meets an existing value during a merge."""


class ExpansionDepthExceeded(ConfigError):
    """Raised when a value keeps expanding beyond the configured maximum.

    Why
    ----
    Self-referencing expansions (``a: ${a}``) would loop forever; exceeding the
    bound is treated as a hard failure instead of a silent truncation.
    """


class InvalidFormat(ConfigError):
    """Raised when an input artifact cannot be parsed into a tree.

    Typical Sources
    ---------------
    The JSON, YAML, TOML, and dotenv decoders.
    """


class InvalidInput(ConfigError):
    """Raised when a caller supplied option or argument is unusable."""


class NotCompiled(ConfigError):
    """Raised when the compiled tree is requested before :meth:`Compiler.compile` ran."""


class ValidationError(ConfigError):
    """Signifies that the compiled tree could not be decoded into the requested record.

    Current Usage
    -------------
    Raised by :func:`lib_config_tree.application.unmarshal.unmarshal` for
    unused keys, unset fields, and pydantic validation failures.
    """
