"""Application-layer ports describing adapter responsibilities.

Purpose
-------
Define the structural contracts that adapters must satisfy so the compiler can
orchestrate decoding, encoding, and expansion without depending on concrete
implementations.

Contents
--------
* :class:`Decoder` – turns raw bytes into an :class:`Object` tree with origins.
* :class:`Encoder` – turns an :class:`Object` tree into bytes.
* :data:`Mapper` – expansion lookup ``(token) -> (value, found)``.
* :data:`SortKey` – key function used to order records by name.

System Role
-----------
These protocols enforce Dependency Inversion. Each adapter implements one
protocol so the application layer can request behaviour via abstraction.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, Tuple, runtime_checkable

from ..domain.tree import Object

Mapper = Callable[[str], Tuple[Any, bool]]
"""Expansion lookup returning ``(value, found)`` for a token."""

SortKey = Callable[[str], Any]
"""Key function applied to record names when ordering records."""


@runtime_checkable
class Decoder(Protocol):
    """Parse a configuration artifact into a tree.

    Why
    ----
    Segregate parsing concerns (JSON/YAML/TOML/dotenv) from orchestration
    logic. Every node a decoder returns carries at least one :class:`Origin`
    naming *source*.
    """

    extensions: tuple[str, ...]

    def decode(self, source: str, data: bytes, key_delimiter: str = ".") -> Object:
        """Decode *data* read from *source* or raise ``InvalidFormat``."""


@runtime_checkable
class Encoder(Protocol):
    """Serialise a tree into a target format.

    Why
    ----
    Let callers export the compiled configuration, optionally redacted and
    optionally annotated with origins.
    """

    extensions: tuple[str, ...]

    def encode(self, tree: Object, include_origins: bool = False) -> bytes:
        """Return the encoded bytes for *tree*."""
