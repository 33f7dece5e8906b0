"""Structured decoding of compiled trees into caller-defined records.

Purpose
-------
Map the plain structure behind a (sub)tree onto dataclasses, pydantic models,
or any type pydantic can validate, with a small set of behaviour flags that
tighten or loosen the decoding.

Contents
    - ``UnmarshalOptions``: behaviour flags, combinable per call.
    - ``unmarshal``: decode a tree into an instance of the requested type.

System Role
-----------
Called by :meth:`lib_config_tree.core.Compiler.unmarshal` and by value
callbacks that read the configuration merged so far. Validation is delegated
to :class:`pydantic.TypeAdapter`; failures surface as the library's own
:class:`~lib_config_tree.domain.errors.ValidationError`.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Callable, TypeVar, get_args, get_origin, get_type_hints

import pydantic
from pydantic import BaseModel, TypeAdapter

from ..domain.errors import ValidationError
from ..domain.tree import Object

T = TypeVar("T")


@dataclass(frozen=True)
class UnmarshalOptions:
    """Flags controlling :func:`unmarshal`.

    Attributes
    ----------
    weakly_typed_input:
        Allow lax conversions (``"5"`` to ``5``, ``"true"`` to ``True``).
        When ``False`` pydantic runs in strict mode.
    error_unused:
        Reject keys in the tree that no field consumes.
    error_unset:
        Reject fields that the tree does not provide, even when they have a
        default.
    decode_hook:
        Applied to the plain structure before anything else.
    key_transform:
        Applied to every map key before matching keys to fields.
    by_alias:
        Match keys against field aliases (pydantic's ``alias``).
    """

    weakly_typed_input: bool = True
    error_unused: bool = False
    error_unset: bool = False
    decode_hook: Callable[[Any], Any] | None = None
    key_transform: Callable[[str], str] | None = None
    by_alias: bool = True

    def merged(self, **overrides: Any) -> UnmarshalOptions:
        """Return a copy with *overrides* applied."""

        return replace(self, **overrides)


def unmarshal(tree: Object, target: type[T], options: UnmarshalOptions | None = None) -> T:
    """Decode *tree* into an instance of *target*.

    Raises
    ------
    ValidationError
        Unused keys or unset fields (when requested) or any pydantic
        validation failure.

    Examples
    --------
    >>> from dataclasses import dataclass
    >>> @dataclass
    ... class Server:
    ...     host: str
    ...     port: int
    >>> unmarshal(Object.from_raw({"host": "db", "port": "5432"}), Server)
    Server(host='db', port=5432)
    """

    opts = options or UnmarshalOptions()
    data = tree.alter_key_case(opts.key_transform).to_raw()
    if opts.decode_hook is not None:
        data = opts.decode_hook(data)

    problems: list[str] = []
    _check_fields(target, data, opts, "", problems)
    if problems:
        raise ValidationError("; ".join(problems))

    try:
        return TypeAdapter(target).validate_python(data, strict=not opts.weakly_typed_input)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"cannot decode into {_type_name(target)}: {exc}") from exc


def _check_fields(target: Any, data: Any, opts: UnmarshalOptions, prefix: str, problems: list[str]) -> None:
    """Collect unused-key and unset-field problems for record-like *target* types."""

    if not (opts.error_unused or opts.error_unset):
        return
    fields = _field_types(target, opts.by_alias)
    if fields is None:
        _check_generic(target, data, opts, prefix, problems)
        return
    if not isinstance(data, Mapping):
        return
    if opts.error_unused:
        for key in data:
            if key not in fields:
                problems.append(f"'{prefix}{key}' is not used by {_type_name(target)}")
    for name, annotation in fields.items():
        if name not in data:
            if opts.error_unset:
                problems.append(f"'{prefix}{name}' is not set for {_type_name(target)}")
            continue
        _check_fields(annotation, data[name], opts, f"{prefix}{name}.", problems)


def _check_generic(target: Any, data: Any, opts: UnmarshalOptions, prefix: str, problems: list[str]) -> None:
    """Descend through generics such as ``list[Model]``, ``dict[str, Model]`` or ``Model | None``."""

    origin = get_origin(target)
    if origin is None:
        return
    args = [arg for arg in get_args(target) if arg is not Ellipsis]
    if isinstance(data, list):
        for index, item in enumerate(data):
            for inner in args:
                _check_fields(inner, item, opts, f"{prefix}{index}.", problems)
    elif isinstance(data, Mapping):
        if origin in (dict, Mapping):
            value_type = args[-1] if args else Any
            for key, item in data.items():
                _check_fields(value_type, item, opts, f"{prefix}{key}.", problems)
        else:
            for inner in args:
                _check_fields(inner, data, opts, prefix, problems)


def _field_types(target: Any, by_alias: bool) -> dict[str, Any] | None:
    """Return ``{key: annotation}`` for dataclasses and pydantic models, else ``None``."""

    if isinstance(target, type) and issubclass(target, BaseModel):
        result: dict[str, Any] = {}
        for name, info in target.model_fields.items():
            key = info.alias if by_alias and info.alias else name
            result[key] = info.annotation
        return result
    if isinstance(target, type) and dataclasses.is_dataclass(target):
        hints = get_type_hints(target)
        return {field.name: hints.get(field.name, Any) for field in dataclasses.fields(target) if field.init}
    return None


def _type_name(target: Any) -> str:
    return getattr(target, "__name__", repr(target))
