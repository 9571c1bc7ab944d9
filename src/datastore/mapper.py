"""
Row mapping from an open cursor into caller-supplied destinations.

Destinations:
- a list, or `Records(record_type)`: every row is appended as one record
- any other record (dataclass instance, dict, attrdict): at most one row is
  copied into it; no rows leaves it untouched

Dataclass records have their values coerced to the declared field types.
"""
import dataclasses
import logging
from collections.abc import MutableMapping
from typing import Any

from datastore.exceptions import ShapeMismatch
from datastore.types import coerce, schema_from

from libb import attrdict

logger = logging.getLogger(__name__)

__all__ = ['Records', 'scan', 'column_names']


class Records(list):
    """List destination that builds each row as `record_type`.

    `record_type` is a dataclass or a mapping type (default `attrdict`).
    """

    def __init__(self, record_type: type = attrdict, *args: Any) -> None:
        super().__init__(*args)
        self.record_type = record_type


def column_names(cursor: Any) -> list[str]:
    """Column names from a DB-API cursor description."""
    if cursor.description is None:
        return []
    return [desc[0] for desc in cursor.description]


class _Plan:
    """How columns of one result set land in one record type."""

    def __init__(self, record_type: type, columns: list[str], strict: bool) -> None:
        self.record_type = record_type
        self.columns = columns
        self.is_dataclass = dataclasses.is_dataclass(record_type)
        self.schema = schema_from(record_type) if self.is_dataclass else {}
        if self.is_dataclass:
            names = {f.name for f in dataclasses.fields(record_type)}
            unmapped = [c for c in columns if c not in names]
            if unmapped and strict:
                raise ShapeMismatch(f'Columns {unmapped} have no field on {record_type.__name__}')
            if unmapped:
                logger.debug(f'Ignoring columns {unmapped} not on {record_type.__name__}')
            self.columns = [c for c in columns if c in names]
            self.indexes = [columns.index(c) for c in self.columns]
        else:
            self.indexes = list(range(len(columns)))

    def values(self, row: Any) -> dict[str, Any]:
        """Column values of a row keyed by destination field, coerced."""
        values = {}
        for name, idx in zip(self.columns, self.indexes):
            value = row[idx]
            ftype = self.schema.get(name)
            if ftype is not None:
                try:
                    value = coerce(value, ftype)
                except (TypeError, ValueError) as exc:
                    raise ShapeMismatch(f'Column {name}: {exc}') from exc
            values[name] = value
        return values

    def build(self, row: Any) -> Any:
        try:
            return self.record_type(**self.values(row))
        except TypeError as exc:
            raise ShapeMismatch(f'Cannot build {self.record_type.__name__}: {exc}') from exc

    def fill(self, record: Any, row: Any) -> None:
        values = self.values(row)
        if isinstance(record, MutableMapping):
            record.update(values)
        else:
            for name, value in values.items():
                setattr(record, name, value)


def scan(dest: Any, cursor: Any, strict: bool = False) -> int:
    """Copy rows from `cursor` into `dest` and return the number of rows consumed.

    Args:
        dest: list/Records for all rows, or a single record for the first row
        cursor: Open DB-API cursor positioned on a result set
        strict: Raise ShapeMismatch for columns without a destination field

    Returns
        Number of rows consumed
    """
    columns = column_names(cursor)

    if isinstance(dest, list):
        record_type = getattr(dest, 'record_type', attrdict)
        plan = _Plan(record_type, columns, strict)
        count = 0
        for row in cursor.fetchall():
            dest.append(plan.build(row))
            count += 1
        logger.debug(f'Scanned {count} rows into {record_type.__name__} records')
        return count

    if isinstance(dest, type):
        raise ShapeMismatch(f'Destination must be a record instance, got type {dest.__name__}')

    plan = _Plan(type(dest), columns, strict)
    row = cursor.fetchone()
    if row is None:
        return 0
    plan.fill(dest, row)
    return 1
