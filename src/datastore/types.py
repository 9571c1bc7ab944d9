"""
Field types and value conversion.

This module provides:
- FieldType: the declared semantic type of a column/field
- Kind: the runtime variant of a value (integer, float, text, ...)
- is_convertible: the conversion-compatibility table used by changesets
- coerce: decode-side conversion used by the row mapper
- schema_from: derive field types from a dataclass record
- TypeConverter: convert NumPy/Pandas values to driver-compatible Python values
"""
import dataclasses
import datetime
import decimal
import enum
import logging
import math
import sqlite3
import typing
from types import UnionType
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

NUMPY_FLOAT_TYPES = (np.floating,)
NUMPY_INT_TYPES = (np.integer, np.unsignedinteger)


class FieldType(enum.Enum):
    """Declared semantic type of a field.
    """
    INTEGER = 'integer'
    FLOAT = 'float'
    TEXT = 'text'
    BOOLEAN = 'boolean'
    TIMESTAMP = 'timestamp'
    DATE = 'date'


class Kind(enum.Enum):
    """Runtime variant of a column value.
    """
    INTEGER = 'integer'
    FLOAT = 'float'
    DECIMAL = 'decimal'
    TEXT = 'text'
    BOOLEAN = 'boolean'
    TIMESTAMP = 'timestamp'
    DATE = 'date'
    NULL = 'null'
    OTHER = 'other'


# value kind -> field types it may be stored under
_CONVERTIBLE: dict[Kind, frozenset[FieldType]] = {
    Kind.INTEGER: frozenset({FieldType.INTEGER, FieldType.FLOAT}),
    Kind.FLOAT: frozenset({FieldType.FLOAT}),
    Kind.DECIMAL: frozenset({FieldType.FLOAT}),
    Kind.TEXT: frozenset({FieldType.TEXT}),
    Kind.BOOLEAN: frozenset({FieldType.BOOLEAN}),
    Kind.TIMESTAMP: frozenset({FieldType.TIMESTAMP}),
    Kind.DATE: frozenset({FieldType.DATE}),
    Kind.NULL: frozenset(FieldType),
    Kind.OTHER: frozenset(),
}

_PYTHON_TYPES: dict[type, FieldType] = {
    int: FieldType.INTEGER,
    float: FieldType.FLOAT,
    decimal.Decimal: FieldType.FLOAT,
    str: FieldType.TEXT,
    bool: FieldType.BOOLEAN,
    datetime.datetime: FieldType.TIMESTAMP,
    datetime.date: FieldType.DATE,
}


def kind_of(value: Any) -> Kind:
    """Classify a runtime value into its variant.

    bool is checked before int and datetime before date since each is a
    subclass of the latter.
    """
    if value is None or value is pd.NaT:
        return Kind.NULL
    if isinstance(value, (bool, np.bool_)):
        return Kind.BOOLEAN
    if isinstance(value, (int, *NUMPY_INT_TYPES)):
        return Kind.INTEGER
    if isinstance(value, (float, *NUMPY_FLOAT_TYPES)):
        return Kind.NULL if math.isnan(value) else Kind.FLOAT
    if isinstance(value, decimal.Decimal):
        return Kind.DECIMAL
    if isinstance(value, str):
        return Kind.TEXT
    if isinstance(value, (datetime.datetime, np.datetime64)):
        return Kind.TIMESTAMP
    if isinstance(value, datetime.date):
        return Kind.DATE
    return Kind.OTHER


def is_convertible(value: Any, field_type: FieldType) -> bool:
    """Return True if `value` may be stored under a field of `field_type`.
    """
    return field_type in _CONVERTIBLE[kind_of(value)]


def field_type_of(annotation: Any) -> FieldType | None:
    """Map a Python annotation (optionally `X | None`) to a FieldType.
    """
    if isinstance(annotation, FieldType):
        return annotation
    if typing.get_origin(annotation) in {typing.Union, UnionType}:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            annotation = args[0]
    return _PYTHON_TYPES.get(annotation)


def schema_from(record_type: type) -> dict[str, FieldType]:
    """Derive a field -> FieldType mapping from a dataclass.

    Fields whose annotation has no FieldType counterpart are left out.
    """
    if not dataclasses.is_dataclass(record_type):
        raise TypeError(f'{record_type!r} is not a dataclass')
    hints = typing.get_type_hints(record_type)
    schema = {}
    for field in dataclasses.fields(record_type):
        ftype = field_type_of(hints.get(field.name))
        if ftype is not None:
            schema[field.name] = ftype
    return schema


def convert_date(val: bytes) -> datetime.date:
    """Convert ISO 8601 date string to date object."""
    return dateutil.parser.isoparse(val.decode()).date()


def convert_datetime(val: bytes) -> datetime.datetime:
    """Convert ISO 8601 datetime string to datetime object."""
    return dateutil.parser.isoparse(val.decode())


def coerce(value: Any, field_type: FieldType) -> Any:
    """Convert a driver value to the field's semantic type.

    Raises ValueError or TypeError when the value cannot be represented.
    """
    if value is None:
        return None
    if field_type is FieldType.TEXT:
        if isinstance(value, bytes):
            return value.decode()
        if isinstance(value, (datetime.date, datetime.datetime)):
            return value.isoformat()
        return str(value)
    if field_type is FieldType.INTEGER:
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f'cannot represent {value!r} as integer')
        return int(value)
    if field_type is FieldType.FLOAT:
        return float(value)
    if field_type is FieldType.BOOLEAN:
        if isinstance(value, str):
            return value.strip().lower() in {'1', 't', 'true', 'y', 'yes'}
        return bool(value)
    if field_type is FieldType.TIMESTAMP:
        if isinstance(value, datetime.datetime):
            return value
        if isinstance(value, datetime.date):
            return datetime.datetime.combine(value, datetime.time())
        if isinstance(value, (int, float)):
            return datetime.datetime.fromtimestamp(value, tz=datetime.timezone.utc)
        if isinstance(value, bytes):
            return convert_datetime(value)
        return dateutil.parser.isoparse(value)
    if field_type is FieldType.DATE:
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        if isinstance(value, bytes):
            return convert_date(value)
        return dateutil.parser.isoparse(value).date()
    raise TypeError(f'Unsupported field type: {field_type}')


def _convert_numpy_value(val: Any) -> float | int | datetime.datetime | None:
    """Convert NumPy value to Python type."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64) and np.isnat(val):
        return None

    if isinstance(val, (np.floating, np.integer | np.unsignedinteger, np.bool_)):
        return val.item()

    if isinstance(val, np.datetime64):
        return pd.Timestamp(val).to_pydatetime()

    return val


class TypeConverter:
    """Conversion of parameters to values the drivers accept.

    Handles NumPy and Pandas scalars.
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        """Convert a single value to a database-compatible format."""
        if value is None:
            return None

        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return None

        if value is pd.NaT:
            return None

        if isinstance(value, (*NUMPY_FLOAT_TYPES, *NUMPY_INT_TYPES, np.bool_, np.datetime64)):
            return _convert_numpy_value(value)

        if isinstance(value, pd.Timestamp):
            return value.to_pydatetime()

        return value

    @staticmethod
    def convert_params(params: Any) -> Any:
        """Convert a collection of parameters for database operations."""
        if params is None:
            return None

        if isinstance(params, dict):
            return {k: TypeConverter.convert_value(v) for k, v in params.items()}

        if isinstance(params, list | tuple):
            return type(params)(TypeConverter.convert_value(v) for v in params)

        return TypeConverter.convert_value(params)


def register_sqlite_converters() -> None:
    """Register SQLite converters for declared date/datetime columns."""
    sqlite3.register_converter('date', convert_date)
    sqlite3.register_converter('datetime', convert_datetime)
    sqlite3.register_converter('timestamp', convert_datetime)
