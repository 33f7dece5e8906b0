"""Codec registry.

Purpose
-------
Hold the decoders and encoders a :class:`~lib_config_tree.core.Compiler`
may use, keyed by file extension. The registry is an explicit object built by
the caller (or by :func:`lib_config_tree.core.default_registry`), never a process-wide list that
plugins mutate on import.

Contents
--------
* :class:`CodecRegistry` – registration and case-insensitive lookup.
"""

from __future__ import annotations

from typing import Generic, TypeVar

from ..domain.errors import InvalidInput, NotFound
from .ports import Decoder, Encoder

C = TypeVar("C", Decoder, Encoder)


class _Codecs(Generic[C]):
    """Extension-keyed store shared by decoders and encoders."""

    def __init__(self, role: str) -> None:
        self._role = role
        self._by_extension: dict[str, C] = {}

    def register(self, codec: C) -> None:
        extensions = [_normalise(ext) for ext in codec.extensions]
        if not extensions:
            raise InvalidInput(f"{self._role} {type(codec).__name__} declares no extensions")
        for ext in extensions:
            if ext in self._by_extension:
                raise InvalidInput(f"a {self._role} for extension '{ext}' is already registered")
        for ext in extensions:
            self._by_extension[ext] = codec

    def find(self, extension: str) -> C:
        try:
            return self._by_extension[_normalise(extension)]
        except KeyError as exc:
            raise NotFound(f"no {self._role} registered for extension '{extension}'") from exc

    def extensions(self) -> list[str]:
        return sorted(self._by_extension)


class CodecRegistry:
    """Decoders and encoders available to a compiler.

    Examples
    --------
    >>> from lib_config_tree.adapters.encoders.structured import JSONEncoder
    >>> registry = CodecRegistry()
    >>> registry.register_encoder(JSONEncoder())
    >>> registry.find_encoder(".JSON").extensions
    ('json',)
    """

    def __init__(self) -> None:
        self._decoders: _Codecs[Decoder] = _Codecs("decoder")
        self._encoders: _Codecs[Encoder] = _Codecs("encoder")

    def register_decoder(self, decoder: Decoder) -> None:
        """Add *decoder* for each of its extensions; duplicates raise ``InvalidInput``."""

        self._decoders.register(decoder)

    def register_encoder(self, encoder: Encoder) -> None:
        """Add *encoder* for each of its extensions; duplicates raise ``InvalidInput``."""

        self._encoders.register(encoder)

    def find_decoder(self, extension: str) -> Decoder:
        """Return the decoder for *extension* or raise ``NotFound``."""

        return self._decoders.find(extension)

    def find_encoder(self, extension: str) -> Encoder:
        """Return the encoder for *extension* or raise ``NotFound``."""

        return self._encoders.find(extension)

    def extensions(self) -> list[str]:
        """Return the decodable extensions in sorted order."""

        return self._decoders.extensions()

    def encoder_extensions(self) -> list[str]:
        """Return the encodable extensions in sorted order."""

        return self._encoders.extensions()


def _normalise(extension: str) -> str:
    return extension.lower().lstrip(".")
