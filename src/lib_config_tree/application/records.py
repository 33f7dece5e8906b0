"""Records: the named fragments a compile pass folds together.

Purpose
-------
Give every incoming fragment (decoded file, in-memory value, value callback,
environment snapshot) a uniform shape with a name, so the compiler can order
the fragments and fetch their trees at merge time.

Contents
    - ``Record``: a named fragment holding a tree or a value callback.
    - ``value_tree``: convert a native value (or dataclass/pydantic model) into
      a tree nested under a key.
    - ``natural_sort_key`` / ``lexical_sort_key``: record name orderings.
    - ``sort_records``: stable ordering helper.
"""

from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from pydantic import BaseModel, TypeAdapter

from ..domain.tree import Object, Origin
from .ports import SortKey

Unmarshal = Callable[..., Any]
"""``unmarshal(key, target, **options)`` bound to the tree merged so far."""

ValueFn = Callable[[str, Unmarshal], Any]
"""Callback producing a record's value from its name and an unmarshal helper."""

_DIGITS = re.compile(r"(\d+)")


@dataclass(frozen=True)
class Record:
    """A named configuration fragment.

    Attributes
    ----------
    name:
        Used for ordering and for the :class:`Origin` of value records.
    tree:
        Pre-built (unresolved) tree, e.g. from a decoder.
    fn:
        Callback evaluated at merge time when *tree* is ``None``.
    key:
        Delimited path under which a callback value is nested.
    as_default:
        Defaults are merged first, in registration order, and never sorted.
    """

    name: str
    tree: Object | None = None
    fn: ValueFn | None = None
    key: str = ""
    as_default: bool = False

    def fetch(self, unmarshal: Unmarshal, key_delimiter: str = ".") -> Object:
        """Return the record's tree, invoking the callback when needed."""

        if self.tree is not None:
            return self.tree
        if self.fn is None:
            return Object()
        value = self.fn(self.name, unmarshal)
        return value_tree(self.name, value, key=self.key, key_delimiter=key_delimiter)


def value_tree(name: str, value: Any, *, key: str = "", key_delimiter: str = ".") -> Object:
    """Convert *value* into a tree nested under *key*, each node tagged with *name*.

    Dataclass instances and pydantic models are dumped to plain structures
    first so their fields become map keys. An :class:`Object` is nested as is,
    keeping its own origins.

    Examples
    --------
    >>> value_tree("defaults", {"port": 80}, key="http.server").to_raw()
    {'http': {'server': {'port': 80}}}
    >>> value_tree("defaults", 5).fetch([]).origin_string()
    'defaults:???[???]'
    """

    origin = Origin(source=name)
    tree = value if isinstance(value, Object) else Object.from_raw(_to_native(value), origin)
    for segment in reversed([part for part in key.split(key_delimiter) if part] if key else []):
        tree = Object(origins=(origin,), map={segment: tree})
    return tree


def natural_sort_key(name: str) -> list[Any]:
    """Order names so digit runs compare numerically (``2.json`` before ``10.json``).

    Examples
    --------
    >>> sorted(["10.json", "2.json", "B.yml", "a.yml"], key=natural_sort_key)
    ['2.json', '10.json', 'a.yml', 'B.yml']
    """

    return [int(part) if part.isdigit() else part.lower() for part in _DIGITS.split(name)]


def lexical_sort_key(name: str) -> str:
    """Order names by plain string comparison.

    Examples
    --------
    >>> sorted(["10.json", "2.json"], key=lexical_sort_key)
    ['10.json', '2.json']
    """

    return name


def sort_records(records: Iterable[Record], sort_key: SortKey = natural_sort_key) -> list[Record]:
    """Return *records* ordered by name with a stable sort."""

    return sorted(records, key=lambda record: sort_key(record.name))


def _to_native(value: Any) -> Any:
    """Dump dataclass instances and pydantic models to plain structures."""

    if isinstance(value, BaseModel):
        return value.model_dump(mode="python")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return TypeAdapter(type(value)).dump_python(value, mode="python")
    return value
