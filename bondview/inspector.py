"""Read-only inspection of tables: names, indexes, entry fields and queries."""

from __future__ import annotations

import dataclasses
import time
import typing
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

__all__ = [
    "PRIMARY_INDEX_ID",
    "PRIMARY_INDEX_NAME",
    "IndexInfo",
    "Inspect",
    "InspectError",
    "TableInfo",
]

PRIMARY_INDEX_ID = 0
PRIMARY_INDEX_NAME = "primary"

Row = dict[str, Any]
QueryRunner = Callable[
    ["IndexInfo", Optional[Any], Optional[Callable[[Any], bool]], int, Optional[Any]],
    Iterable[Any],
]


class InspectError(Exception):
    """Raised when an inspection request cannot be served."""


@dataclass(frozen=True)
class IndexInfo:
    """Identity of an index on a table."""

    id: int
    name: str


@dataclass(frozen=True)
class TableInfo:
    """A table as seen by the inspector.

    ``entry_type`` is the dataclass stored in the table. ``run_query`` is called as
    ``run_query(index, selector, predicate, limit, after)`` and yields entries; the
    selector is ``None`` for the primary index, ``limit`` 0 means no limit.
    """

    name: str
    entry_type: type
    indexes: Sequence[IndexInfo]
    run_query: QueryRunner = field(compare=False)


class _NotConvertible(Exception):
    pass


_KIND_BY_TYPE: dict[type, str] = {
    bool: "bool",
    int: "int",
    float: "float64",
    complex: "complex128",
    str: "string",
    bytes: "slice",
    bytearray: "slice",
    list: "slice",
    tuple: "slice",
    dict: "map",
}

_ZERO_BY_TYPE: dict[type, Callable[[], Any]] = {
    bool: lambda: False,
    int: lambda: 0,
    float: lambda: 0.0,
    complex: lambda: 0j,
    str: lambda: "",
    bytes: lambda: b"",
    bytearray: bytearray,
    list: list,
    tuple: tuple,
    dict: dict,
}

_BUILTIN_TYPES: dict[str, type] = {
    tp.__name__: tp
    for tp in (
        bool,
        int,
        float,
        complex,
        str,
        bytes,
        bytearray,
        memoryview,
        list,
        tuple,
        dict,
        set,
        frozenset,
        range,
        slice,
        type,
        object,
    )
}

_SCALAR_NUMBERS = (bool, int, float)


def _kind_of_type(tp: Any) -> str:
    origin = typing.get_origin(tp) or tp
    if not isinstance(origin, type):
        return "interface"
    if dataclasses.is_dataclass(origin):
        return "map"
    for base in origin.__mro__:
        if base in _KIND_BY_TYPE:
            return _KIND_BY_TYPE[base]
    return origin.__name__.lower()


def _kind_of_value(value: Any) -> str:
    if value is None:
        return "invalid"
    return _kind_of_type(type(value))


def _resolve_annotation(annotation: Any) -> Any:
    """Resolve a field annotation; string annotations resolve to builtin types only."""
    if not isinstance(annotation, str):
        return annotation
    name = annotation.strip().split("[", 1)[0].strip()
    return _BUILTIN_TYPES.get(name)


def _entry_hints(entry_type: type) -> dict[str, Any]:
    if not (isinstance(entry_type, type) and dataclasses.is_dataclass(entry_type)):
        raise InspectError(f"entry type {entry_type!r} is not a dataclass")
    return {f.name: _resolve_annotation(f.type) for f in dataclasses.fields(entry_type)}


def _field_kind(f: dataclasses.Field, hint: Any) -> str:
    return f.metadata.get("kind") or _kind_of_type(hint)


def _zero_value(tp: Any) -> Any:
    origin = typing.get_origin(tp) or tp
    if not isinstance(origin, type):
        return None
    if dataclasses.is_dataclass(origin):
        return _make_entry(origin, None)
    for base in origin.__mro__:
        if base in _ZERO_BY_TYPE:
            return _ZERO_BY_TYPE[base]()
    return None


def _convert(value: Any, target: Any) -> Any:
    """Convert ``value`` to ``target`` the way a typed field would accept it."""
    origin = typing.get_origin(target) or target
    if not isinstance(origin, type):
        return value
    if origin in _SCALAR_NUMBERS:
        if isinstance(value, bool) or origin is bool:
            if isinstance(value, bool) and origin is bool:
                return value
            raise _NotConvertible
        if isinstance(value, (int, float)):
            try:
                return origin(value)
            except (OverflowError, ValueError) as exc:
                raise _NotConvertible from exc
        raise _NotConvertible
    if isinstance(value, origin):
        return value
    raise _NotConvertible


def _make_entry(entry_type: type, values: Optional[Mapping[str, Any]]) -> Any:
    """Build an entry with zero values, then set the given fields on it."""
    hints = _entry_hints(entry_type)
    init_fields = {f.name: f for f in dataclasses.fields(entry_type) if f.init}

    kwargs: dict[str, Any] = {}
    for name, f in init_fields.items():
        has_default = (
            f.default is not dataclasses.MISSING
            or f.default_factory is not dataclasses.MISSING
        )
        if not has_default:
            kwargs[name] = _zero_value(hints.get(name))

    for name, value in (values or {}).items():
        f = init_fields.get(name)
        if f is None:
            raise InspectError(f"field '{name}' not found")
        target = hints.get(name)
        try:
            kwargs[name] = _convert(value, target)
        except _NotConvertible:
            raise InspectError(
                f"field type mismatch {_kind_of_value(value)} != {_field_kind(f, target)}"
            ) from None

    return entry_type(**kwargs)


def _entry_to_row(entry: Any) -> Row:
    if not dataclasses.is_dataclass(entry) or isinstance(entry, type):
        raise InspectError(f"entry {entry!r} is not a dataclass instance")
    return dataclasses.asdict(entry)


def _make_predicate(conditions: Mapping[str, Any]) -> Callable[[Any], bool]:
    def predicate(entry: Any) -> bool:
        row = _entry_to_row(entry)
        for name, wanted in conditions.items():
            if name not in row:
                return False
            actual = row[name]
            if actual is not None:
                try:
                    wanted = _convert(wanted, type(actual))
                except _NotConvertible:
                    return False
            if wanted != actual:
                return False
        return True

    return predicate


class Inspect:
    """Answers inspection requests over a fixed set of tables."""

    def __init__(self, tables: Iterable[TableInfo]) -> None:
        self._tables = list(tables)

    def _find_table(self, table: str) -> TableInfo:
        for info in self._tables:
            if info.name == table:
                return info
        raise InspectError("table not found")

    def tables(self) -> list[str]:
        """Return the table names in registration order."""
        return [info.name for info in self._tables]

    def indexes(self, table: str) -> list[str]:
        """Return the index names of a table."""
        return [index.name for index in self._find_table(table).indexes]

    def entry_fields(self, table: str) -> dict[str, str]:
        """Return each entry field of a table with the kind of its value."""
        info = self._find_table(table)
        hints = _entry_hints(info.entry_type)
        return {
            f.name: _field_kind(f, hints.get(f.name))
            for f in dataclasses.fields(info.entry_type)
        }

    def query(
        self,
        table: str,
        index: str = "",
        index_selector: Optional[Mapping[str, Any]] = None,
        filter: Optional[Mapping[str, Any]] = None,
        limit: int = 0,
        after: Optional[Mapping[str, Any]] = None,
        deadline: Optional[float] = None,
    ) -> list[Row]:
        """Run a query and return the matching entries as field dictionaries.

        ``deadline`` is a ``time.monotonic()`` value after which the query fails.
        """
        if not table:
            raise InspectError("table can not be empty")

        info = self._find_table(table)
        index_name = index or PRIMARY_INDEX_NAME
        index_info = next((i for i in info.indexes if i.name == index_name), None)
        if index_info is None:
            raise InspectError("index not found")

        selector = None
        if index_info.name != PRIMARY_INDEX_NAME:
            selector = _make_entry(info.entry_type, index_selector)

        predicate = _make_predicate(filter) if filter is not None else None
        after_entry = _make_entry(info.entry_type, after) if after is not None else None

        def check_deadline() -> None:
            if deadline is not None and time.monotonic() >= deadline:
                raise InspectError("context done: deadline exceeded")

        check_deadline()
        rows: list[Row] = []
        for entry in info.run_query(index_info, selector, predicate, max(limit, 0), after_entry):
            check_deadline()
            rows.append(_entry_to_row(entry))
        return rows