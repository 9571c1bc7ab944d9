"""
Changeset validators.

Each validator reads the changeset's staged value for a field, records an
error through `reject` when the value fails the check (which also drops the
value from `changes`), and never stops later validators from running. A
field without a staged value is skipped by every validator except
`validate_required`. Values of the wrong kind for a check are reported as
errors, never raised.
"""
import logging
import re
from collections.abc import Container, Sized
from typing import TYPE_CHECKING, Any

from datastore.changeset import Changeset, format_message, reject
from datastore.query import Query, eq, ne
from datastore.types import Kind, kind_of

from libb import attrdict

if TYPE_CHECKING:
    from datastore.adapter import Adapter

logger = logging.getLogger(__name__)

__all__ = [
    'validate_required',
    'validate_length',
    'validate_format',
    'validate_inclusion',
    'validate_number',
    'validate_unique',
]

REQUIRED_MESSAGE = '{field} is required'
LENGTH_MIN_MESSAGE = '{field} must be at least {min} characters'
LENGTH_MAX_MESSAGE = '{field} must be at most {max} characters'
LENGTH_KIND_MESSAGE = '{field} has no length'
FORMAT_MESSAGE = '{field} has invalid format'
INCLUSION_MESSAGE = '{field} must be one of the allowed values'
NUMBER_MIN_MESSAGE = '{field} must be greater than or equal to {min}'
NUMBER_MAX_MESSAGE = '{field} must be less than or equal to {max}'
NUMBER_KIND_MESSAGE = '{field} must be a number'
UNIQUE_MESSAGE = '{field} has already been taken'

NUMERIC_KINDS = frozenset({Kind.INTEGER, Kind.FLOAT, Kind.DECIMAL})

_MISSING = object()


def _staged(ch: Changeset, field: str) -> Any:
    return ch.changes.get(field, _MISSING)


def validate_required(ch: Changeset, *fields: str, message: str = REQUIRED_MESSAGE) -> None:
    """Each field must end up non-blank, from changes or from existing data.
    """
    for field in fields:
        value = ch.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            reject(ch, field, format_message(message, field), code='required')


def validate_length(ch: Changeset, field: str, min: int | None = None,
                    max: int | None = None, min_message: str = LENGTH_MIN_MESSAGE,
                    max_message: str = LENGTH_MAX_MESSAGE,
                    kind_message: str = LENGTH_KIND_MESSAGE) -> None:
    """Staged text or sequence length must be within [min, max].
    """
    value = _staged(ch, field)
    if value is _MISSING or value is None:
        return
    if not isinstance(value, Sized):
        reject(ch, field, format_message(kind_message, field), code='length')
        return
    length = len(value)
    if min is not None and length < min:
        reject(ch, field, format_message(min_message, field, min=min, count=length), code='length')
    if max is not None and length > max:
        reject(ch, field, format_message(max_message, field, max=max, count=length), code='length')


def validate_format(ch: Changeset, field: str, pattern: str | re.Pattern,
                    message: str = FORMAT_MESSAGE) -> None:
    """Staged text must match `pattern` (searched, not anchored).
    """
    value = _staged(ch, field)
    if value is _MISSING or value is None:
        return
    if not isinstance(value, str) or not re.search(pattern, value):
        reject(ch, field, format_message(message, field), code='format')


def validate_inclusion(ch: Changeset, field: str, allowed: Container,
                       message: str = INCLUSION_MESSAGE) -> None:
    """Staged value must be in `allowed`.
    """
    value = _staged(ch, field)
    if value is _MISSING:
        return
    try:
        included = value in allowed
    except TypeError:
        included = False
    if not included:
        reject(ch, field, format_message(message, field), code='inclusion')


def validate_number(ch: Changeset, field: str, min: float | None = None,
                    max: float | None = None, min_message: str = NUMBER_MIN_MESSAGE,
                    max_message: str = NUMBER_MAX_MESSAGE,
                    kind_message: str = NUMBER_KIND_MESSAGE) -> None:
    """Staged number must be within [min, max].
    """
    value = _staged(ch, field)
    if value is _MISSING or value is None:
        return
    if kind_of(value) not in NUMERIC_KINDS:
        reject(ch, field, format_message(kind_message, field), code='number')
        return
    if min is not None and value < min:
        reject(ch, field, format_message(min_message, field, min=min), code='number')
    if max is not None and value > max:
        reject(ch, field, format_message(max_message, field, max=max), code='number')


def validate_unique(ch: Changeset, field: str, adapter: 'Adapter', collection: str,
                    exclude: tuple[str, Any] | None = None,
                    message: str = UNIQUE_MESSAGE) -> None:
    """No row of `collection` may already hold the staged value.

    Args:
        exclude: `(column, value)` identifying the record being changed, so
            it does not conflict with itself
    """
    value = _staged(ch, field)
    if value is _MISSING or value is None:
        return
    query = Query(collection).where(eq(field, value)).slice(1)
    if exclude is not None:
        query = query.where(ne(*exclude))
    found = attrdict()
    if adapter.one(query, found):
        logger.debug(f'Value for {field} already present in {collection}')
        reject(ch, field, format_message(message, field), code='unique')
