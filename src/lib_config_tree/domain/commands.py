"""Merge directives embedded in map keys.

Purpose
-------
Turn key text such as ``"password((secret))"`` or ``"hosts((prepend))"`` into
an explicit :class:`Command` value and resolve those commands across a freshly
decoded tree, so the rest of the system only ever sees plain keys.

Grammar
-------
A key may end with a command suffix ``((tokens))``: the text between the last
``((`` and the trailing ``))``. Tokens are separated by commas or whitespace
and are case-insensitive. A suffix holds at most one directive plus an
optional ``secret`` marker. The empty suffix ``(())`` carries nothing and
escapes a real key that itself ends in parentheses: ``name((x))(())`` resolves
to the key ``name((x))``.

Contents
--------
* :class:`Directive` – the merge behaviours a key can request.
* :class:`Command` – parsed ``(final_key, directive, secret)`` triple.
* :data:`LEGAL_DIRECTIVES` – directive/kind compatibility table.
* :func:`get_command` / :func:`get_valid_command` – parsers.
* :func:`resolve_commands` – recursive key resolution for a whole tree.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Final

from .errors import InvalidCommand
from .tree import Kind, Object, mark_secret

SECRET_TOKEN: Final[str] = "secret"
_SUFFIX_OPEN: Final[str] = "(("
_SUFFIX_CLOSE: Final[str] = "))"
_TOKEN_SPLIT = re.compile(r"[\s,]+")


class Directive(str, Enum):
    """Merge behaviours selectable through a key suffix."""

    NONE = ""
    REPLACE = "replace"
    KEEP = "keep"
    FAIL = "fail"
    APPEND = "append"
    PREPEND = "prepend"
    SPLICE = "splice"
    CLEAR = "clear"


LEGAL_DIRECTIVES: Final[dict[Kind, frozenset[Directive]]] = {
    Kind.MAP: frozenset({Directive.NONE, Directive.FAIL, Directive.KEEP, Directive.REPLACE, Directive.SPLICE}),
    Kind.ARRAY: frozenset(
        {Directive.NONE, Directive.FAIL, Directive.KEEP, Directive.REPLACE, Directive.APPEND, Directive.PREPEND}
    ),
    Kind.VALUE: frozenset({Directive.NONE, Directive.FAIL, Directive.KEEP, Directive.REPLACE}),
}


@dataclass(frozen=True, slots=True)
class Command:
    """Parsed form of a map key.

    Attributes
    ----------
    final_key:
        Key with the command suffix removed.
    directive:
        Requested merge behaviour (:attr:`Directive.NONE` when absent).
    secret:
        ``True`` when the key carried the ``secret`` marker.
    """

    final_key: str
    directive: Directive = Directive.NONE
    secret: bool = False


NO_COMMAND = Command(final_key="")
"""Command context used for the root of a merge."""


def get_command(key: str) -> Command:
    """Parse *key* into a :class:`Command`.

    Raises
    ------
    InvalidCommand
        Unknown token, more than one directive, or an empty final key.

    Examples
    --------
    >>> get_command("db((secret, replace))")
    Command(final_key='db', directive=<Directive.REPLACE: 'replace'>, secret=True)
    >>> get_command("plain").directive is Directive.NONE
    True
    >>> get_command("name((x))(())").final_key
    'name((x))'
    """

    if not key.endswith(_SUFFIX_CLOSE):
        return Command(final_key=key)
    start = key.rfind(_SUFFIX_OPEN, 0, len(key) - len(_SUFFIX_CLOSE) + 1)
    if start == -1:
        return Command(final_key=key)

    final_key = key[:start]
    body = key[start + len(_SUFFIX_OPEN) : -len(_SUFFIX_CLOSE)]
    if not final_key:
        raise InvalidCommand(f"key '{key}' has no name before its command suffix")

    directive = Directive.NONE
    secret = False
    for token in filter(None, _TOKEN_SPLIT.split(body.strip())):
        lowered = token.lower()
        if lowered == SECRET_TOKEN:
            secret = True
            continue
        try:
            parsed = Directive(lowered)
        except ValueError as exc:
            raise InvalidCommand(f"key '{key}' uses unknown command '{token}'") from exc
        if directive is not Directive.NONE:
            raise InvalidCommand(f"key '{key}' names more than one command")
        directive = parsed
    return Command(final_key=final_key, directive=directive, secret=secret)


def get_valid_command(key: str, kind: Kind) -> Command:
    """Parse *key* and confirm its directive is legal for a node of *kind*.

    Examples
    --------
    >>> get_valid_command("items((append))", Kind.ARRAY).directive.value
    'append'
    >>> get_valid_command("name((append))", Kind.VALUE)
    Traceback (most recent call last):
    ...
    lib_config_tree.domain.errors.InvalidCommand: command 'append' in key 'name((append))' is not valid for a value
    """

    command = get_command(key)
    if command.directive not in LEGAL_DIRECTIVES[kind]:
        raise InvalidCommand(
            f"command '{command.directive.value}' in key '{key}' is not valid for a {kind.value}"
        )
    return command


def resolve_commands(tree: Object, secret: bool = False) -> Object:
    """Return a copy of *tree* with every key directive resolved.

    Why
    ----
    Incoming trees keep their directives until the merge engine consumes them;
    whatever ends up in the accumulated tree must carry plain keys only.

    What
    ----
    Replaces each map key by its final key, marks the node a key names as
    secret when the marker is present (siblings are unaffected), and rejects
    directives that do not fit the node they are attached to, as well as two
    keys naming the same final key. *secret* flags the root of *tree* itself.

    Examples
    --------
    >>> resolved = resolve_commands(Object.from_raw({"user": "alice", "pass((secret))": "xyz"}))
    >>> sorted(resolved.map), resolved.map["pass"].secret, resolved.map["user"].secret
    (['pass', 'user'], True, False)
    """

    node = mark_secret(tree, True) if secret else tree
    kind = node.kind
    if kind is Kind.ARRAY:
        array = tuple(resolve_commands(item) for item in node.array)
        return mark_secret(replace(node, array=array), node.secret)
    if kind is Kind.MAP:
        resolved: dict[str, Object] = {}
        sources: dict[str, str] = {}
        for key, child in node.map.items():
            command = get_valid_command(key, child.kind)
            if command.final_key in sources:
                raise InvalidCommand(
                    f"keys '{sources[command.final_key]}' and '{key}' both name '{command.final_key}'"
                )
            sources[command.final_key] = key
            resolved[command.final_key] = resolve_commands(child, command.secret)
        return mark_secret(replace(node, map=resolved), node.secret)
    return node

