"""Application-layer merge policy.

Purpose
-------
Fold an incoming configuration tree into an accumulated tree, honouring the
directives embedded in the incoming keys. The module is free of I/O so it can
be reused outside the compiler.

Contents
    - ``merge``: public entry point; handles the absolute ``clear`` directive.
    - ``merge_trees``: left fold over an ordered sequence of trees.
    - ``_merge`` and the ``_merge_value`` / ``_merge_array`` / ``_merge_map``
      stanzas: recursive dispatch on the accumulated node kind.
    - ``_merge_mismatch``: the policy for keys whose kinds differ.

System Role
-----------
Called by :class:`lib_config_tree.core.Compiler` once per record, in record
order. The accumulated tree only ever holds resolved keys; incoming subtrees
have their commands resolved as they are consumed.
"""

from __future__ import annotations

from typing import Iterable

from ..domain.commands import NO_COMMAND, Command, Directive, get_command, get_valid_command, resolve_commands
from ..domain.errors import Conflict, InvalidCommand
from ..domain.tree import EMPTY_TREE, Kind, Object, mark_secret


def merge(base: Object, incoming: Object) -> Object:
    """Merge *incoming* onto *base* and return the resulting tree.

    Why
    ----
    Each record may steer how its values combine with what came before
    (replace, keep, fail, append, prepend, splice, clear). Centralising the
    rules keeps precedence deterministic.

    What
    ----
    Scans the direct keys of *incoming* for ``clear``; when present the result
    is an empty tree. An empty *incoming* tree leaves *base* untouched.
    Otherwise delegates to the recursive merge with no command context.

    Raises
    ------
    Conflict
        A ``fail`` directive met an existing value.
    InvalidCommand
        A key carried an unknown or inapplicable directive.

    Examples
    --------
    >>> base = Object.from_raw({"a": {"b": 1}})
    >>> merge(base, Object.from_raw({"a((replace))": {"c": 2}})).to_raw()
    {'a': {'c': 2}}
    >>> merge(base, Object.from_raw({"x((clear))": None})).to_raw() is None
    True
    """

    for key in incoming.map:
        if get_command(key).directive is Directive.CLEAR:
            return EMPTY_TREE
    if incoming.kind is Kind.VALUE and incoming.value is None:
        return base
    return _merge(base, NO_COMMAND, incoming)


def merge_trees(trees: Iterable[Object], base: Object = EMPTY_TREE) -> Object:
    """Fold *trees* onto *base* from first to last.

    Examples
    --------
    >>> merged = merge_trees([Object.from_raw({"a": [1]}), Object.from_raw({"a": [2]})])
    >>> merged.to_raw()
    {'a': [1, 2]}
    """

    result = base
    for tree in trees:
        result = merge(result, tree)
    return result


def _merge(base: Object, command: Command, incoming: Object) -> Object:
    """Dispatch on the kind of *base*."""

    kind = base.kind
    if kind is Kind.VALUE:
        return _merge_value(base, command, incoming)
    if kind is Kind.ARRAY:
        return _merge_array(base, command, incoming)
    return _merge_map(base, command, incoming)


def _merge_value(base: Object, command: Command, incoming: Object) -> Object:
    """Scalars: replace by default, keep on request, fail on request."""

    directive = command.directive
    if directive in (Directive.NONE, Directive.REPLACE):
        return mark_secret(resolve_commands(incoming), command.secret)
    if directive is Directive.KEEP:
        return mark_secret(base, base.secret or command.secret)
    if directive is Directive.FAIL:
        raise Conflict(f"value at {base.origin_string() or 'root'} may not be overwritten")
    raise InvalidCommand(f"command '{directive.value}' is not valid for a value")


def _merge_array(base: Object, command: Command, incoming: Object) -> Object:
    """Arrays: append by default, prepend/replace/keep/fail on request."""

    resolved = resolve_commands(incoming, base.secret)
    directive = command.directive
    secret = base.secret or resolved.secret or command.secret
    if directive in (Directive.NONE, Directive.APPEND):
        combined = Object(origins=base.origins + resolved.origins, array=base.array + resolved.array)
        return mark_secret(combined, secret)
    if directive is Directive.PREPEND:
        combined = Object(origins=resolved.origins + base.origins, array=resolved.array + base.array)
        return mark_secret(combined, secret)
    if directive is Directive.REPLACE:
        return mark_secret(resolved, resolved.secret or command.secret)
    if directive is Directive.KEEP:
        return mark_secret(base, base.secret or command.secret)
    if directive is Directive.FAIL:
        raise Conflict(f"array at {base.origin_string() or 'root'} may not be overwritten")
    raise InvalidCommand(f"command '{directive.value}' is not valid for an array")


def _merge_map(base: Object, command: Command, incoming: Object) -> Object:
    """Maps: splice key by key by default, replace/keep/fail on request."""

    directive = command.directive
    if directive is Directive.REPLACE:
        return mark_secret(resolve_commands(incoming), command.secret)
    if directive is Directive.KEEP:
        return mark_secret(base, base.secret or command.secret)
    if directive is Directive.FAIL:
        raise Conflict(f"map at {base.origin_string() or 'root'} may not be overwritten")
    if directive not in (Directive.NONE, Directive.SPLICE):
        raise InvalidCommand(f"command '{directive.value}' is not valid for a map")

    merged = dict(base.map)
    sources: dict[str, str] = {}
    for key, value in incoming.map.items():
        key_command = get_valid_command(key, value.kind)
        if key_command.final_key in sources:
            raise InvalidCommand(
                f"keys '{sources[key_command.final_key]}' and '{key}' both name '{key_command.final_key}'"
            )
        sources[key_command.final_key] = key
        existing = merged.get(key_command.final_key)
        if existing is None:
            merged[key_command.final_key] = resolve_commands(value, key_command.secret)
        elif existing.kind is value.kind:
            merged[key_command.final_key] = _merge(existing, key_command, value)
        else:
            merged[key_command.final_key] = _merge_mismatch(existing, key_command, key, value)

    spliced = Object(origins=base.origins, map=merged)
    return mark_secret(spliced, base.secret or command.secret)


def _merge_mismatch(existing: Object, command: Command, key: str, incoming: Object) -> Object:
    """Resolve a key whose accumulated and incoming kinds differ.

    ``replace`` takes the incoming subtree, ``keep`` retains the existing one
    and ``fail`` raises. Without a directive a scalar on either side is simply
    overridden, while a map meeting an array (or the reverse) must be settled
    explicitly.
    """

    directive = command.directive
    if directive is Directive.REPLACE:
        return resolve_commands(incoming, command.secret)
    if directive is Directive.KEEP:
        return mark_secret(existing, existing.secret or command.secret)
    if directive is Directive.FAIL:
        raise Conflict(f"key '{command.final_key}' at {existing.origin_string() or 'root'} may not be overwritten")
    if directive is Directive.NONE and Kind.VALUE in (existing.kind, incoming.kind):
        return resolve_commands(incoming, command.secret)
    raise InvalidCommand(
        f"key '{key}' turns a {existing.kind.value} into a {incoming.kind.value}; "
        "use replace, keep, or fail to settle it"
    )
