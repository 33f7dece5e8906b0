"""`.env` decoder.

Purpose
-------
Implement the :class:`lib_config_tree.application.ports.Decoder` protocol for
dotenv files so ``KEY=VALUE`` fragments take part in a compile like any other
record.

Contents
--------
* :class:`DotEnvDecoder` – parses ``.env`` bytes into a tree with one origin
  per line.
* :func:`_parse_line` / :func:`_unquote` – line-level syntax.

System Role
-----------
Nesting and case folding come from
:func:`lib_config_tree.adapters.env.default.nest`, so ``SERVICE__TOKEN`` in a
file and in the process environment land on the same key.
"""

from __future__ import annotations

from ...domain.errors import InvalidFormat
from ...domain.tree import Object, Origin
from ...observability import log_debug, log_error
from ..env.default import nest

_QUOTES = frozenset("\"'")


class DotEnvDecoder:
    """Decode dotenv content into a nested tree.

    Why
    ----
    `.env` files supply secrets and developer overrides. They need identical
    nesting semantics to environment variables and line-level provenance.

    Values stay strings; typing them is left to :meth:`Compiler.unmarshal
    <lib_config_tree.core.Compiler.unmarshal>`.
    """

    extensions = ("env",)

    def decode(self, source: str, data: bytes, key_delimiter: str = ".") -> Object:
        """Return the tree described by the dotenv *data*.

        Raises
        ------
        InvalidFormat
            The bytes are not UTF-8, a non-comment line lacks ``KEY=``, or a
            key both holds a value and nests further keys.

        Examples
        --------
        >>> body = b"# demo\\nexport SERVICE__TOKEN='abc'\\nFEATURE=on # inline\\n"
        >>> tree = DotEnvDecoder().decode("app.env", body)
        >>> tree.to_raw()
        {'feature': 'on', 'service': {'token': 'abc'}}
        >>> tree.fetch(["service", "token"]).origin_string()
        'app.env:2[1]'
        """

        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            log_error("config_invalid", source=source, format="dotenv", error=str(exc))
            raise InvalidFormat(f"Invalid DOTENV in {source}: {exc}") from exc

        entries: list[tuple[str, Object]] = []
        for number, raw_line in enumerate(text.splitlines(), start=1):
            body = raw_line.strip()
            if not body or body.startswith("#"):
                continue
            parsed = _parse_line(body)
            if parsed is None:
                log_error("dotenv_invalid_line", source=source, line=number)
                raise InvalidFormat(f"Malformed line {number} in {source}")
            column = len(raw_line) - len(raw_line.lstrip()) + 1
            entries.append((parsed[0], Object(origins=(Origin(source, number, column),), value=parsed[1])))

        try:
            tree = nest(entries, Origin(source), error=InvalidFormat)
        except InvalidFormat as exc:
            log_error("config_invalid", source=source, format="dotenv", error=str(exc))
            raise InvalidFormat(f"{exc} in {source}") from exc
        log_debug("config_decoded", source=source, format="dotenv", keys=len(tree.map))
        return tree


def _parse_line(body: str) -> tuple[str, str] | None:
    """Split a stripped, non-comment line into ``(key, value)``; ``None`` when malformed.

    Examples
    --------
    >>> _parse_line("export DEMO=1")
    ('DEMO', '1')
    >>> _parse_line("nonsense") is None
    True
    """

    if body.startswith("export "):
        body = body[len("export ") :].lstrip()
    key, sep, value = body.partition("=")
    key = key.strip()
    if not sep or not key:
        return None
    return key, _unquote(value.strip())


def _unquote(value: str) -> str:
    """Drop surrounding quotes or a trailing `` # comment`` from *value*.

    Examples
    --------
    >>> _unquote('"token"')
    'token'
    >>> _unquote("value # comment")
    'value'
    >>> _unquote("'quoted # kept' # dropped")
    'quoted # kept'
    """

    if value[:1] in _QUOTES:
        closing = value.find(value[0], 1)
        if closing != -1:
            return value[1:closing]
    if value.startswith("#"):
        return ""
    return value.split(" #", 1)[0].rstrip()
