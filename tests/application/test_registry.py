from __future__ import annotations

import pytest

from lib_config_tree.application.ports import Decoder, Encoder
from lib_config_tree.application.registry import CodecRegistry
from lib_config_tree.domain.errors import InvalidInput, NotFound
from lib_config_tree.domain.tree import Object


class IniDecoder:
    extensions = ("ini", "cfg")

    def decode(self, source: str, data: bytes, key_delimiter: str = ".") -> Object:
        return Object.from_raw({"source": source})


class NoExtensionDecoder:
    extensions: tuple[str, ...] = ()

    def decode(self, source: str, data: bytes, key_delimiter: str = ".") -> Object:
        return Object()


class TextEncoder:
    extensions = ("txt",)

    def encode(self, tree: Object, include_origins: bool = False) -> bytes:
        return repr(tree.to_raw()).encode()


def test_fakes_satisfy_the_codec_protocols() -> None:
    assert isinstance(IniDecoder(), Decoder)
    assert isinstance(TextEncoder(), Encoder)


def test_decoder_lookup_is_case_insensitive_and_ignores_leading_dot() -> None:
    registry = CodecRegistry()
    decoder = IniDecoder()
    registry.register_decoder(decoder)
    assert registry.find_decoder("INI") is decoder
    assert registry.find_decoder(".cfg") is decoder
    assert registry.extensions() == ["cfg", "ini"]


def test_duplicate_extension_is_rejected_without_partial_registration() -> None:
    registry = CodecRegistry()
    registry.register_decoder(IniDecoder())

    class CfgOnly(IniDecoder):
        extensions = ("toml", "cfg")

    with pytest.raises(InvalidInput, match="'cfg' is already registered"):
        registry.register_decoder(CfgOnly())
    with pytest.raises(NotFound):
        registry.find_decoder("toml")


def test_decoder_without_extensions_is_rejected() -> None:
    with pytest.raises(InvalidInput, match="declares no extensions"):
        CodecRegistry().register_decoder(NoExtensionDecoder())


def test_unknown_extension_raises_not_found() -> None:
    registry = CodecRegistry()
    with pytest.raises(NotFound, match="no decoder registered for extension 'xml'"):
        registry.find_decoder("xml")
    with pytest.raises(NotFound, match="no encoder"):
        registry.find_encoder("xml")


def test_encoders_are_kept_apart_from_decoders() -> None:
    registry = CodecRegistry()
    registry.register_encoder(TextEncoder())
    registry.register_decoder(IniDecoder())
    assert registry.encoder_extensions() == ["txt"]
    assert registry.find_encoder("txt").encode(Object.from_raw({"a": 1})) == b"{'a': 1}"
    with pytest.raises(NotFound):
        registry.find_decoder("txt")
