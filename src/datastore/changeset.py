"""
Changesets: staged, validated field mutations.

A Changeset is passive data. Validators (`put_change` and the functions in
`datastore.validators`) read its `changes`/`data`, append to its `errors`
through `reject`, and may write `changes[field]`. A field that fails is
removed from `changes` for good. Nothing is persisted: the caller inspects
`errors` and hands `changes` to an adapter write.

Examples
    ch = Changeset(types={'name': FieldType.TEXT, 'age': FieldType.INTEGER})
    put_change(ch, 'name', 'Ada')
    put_change(ch, 'age', 'thirty-six')
    ch.errors   # [FieldError(field='age', message='age is invalid')]
    ch.changes  # {'name': 'Ada'}
"""
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from datastore.exceptions import ValidationError
from datastore.types import FieldType, is_convertible, schema_from

logger = logging.getLogger(__name__)

__all__ = [
    'Changeset',
    'FieldError',
    'PUT_CHANGE_MESSAGE',
    'put_change',
    'add_error',
    'reject',
    'format_message',
    'apply',
]

PUT_CHANGE_MESSAGE = '{field} is invalid'


@dataclass(frozen=True)
class FieldError:
    """Validation error attached to one field."""
    field: str
    message: str
    code: str | None = None

    def __str__(self) -> str:
        return self.message


class Changeset:
    """Proposed mutation of one record.

    Args:
        data: Current values of the record, read-only for validators
        types: Declared type of each field that may change
    """

    def __init__(self, data: Mapping[str, Any] | None = None,
                 types: Mapping[str, FieldType] | None = None) -> None:
        self._errors: list[FieldError] = []
        self._changes: dict[str, Any] = {}
        self._data = dict(data or {})
        self._types = dict(types or {})

    @classmethod
    def for_record(cls, record_type: type, data: Mapping[str, Any] | None = None) -> 'Changeset':
        """Changeset whose field types come from a dataclass's annotations."""
        return cls(data=data, types=schema_from(record_type))

    def __repr__(self) -> str:
        return f'Changeset(changes={self._changes!r}, errors={self._errors!r})'

    @property
    def errors(self) -> list[FieldError]:
        return self._errors

    @property
    def error(self) -> FieldError | None:
        """First error, or None."""
        return self._errors[0] if self._errors else None

    @property
    def changes(self) -> dict[str, Any]:
        return self._changes

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    @property
    def types(self) -> dict[str, FieldType]:
        return self._types

    @property
    def valid(self) -> bool:
        return not self._errors

    def get(self, field: str, default: Any = None) -> Any:
        """Proposed value of `field`, falling back to its current value."""
        if field in self._changes:
            return self._changes[field]
        return self._data.get(field, default)

    def errors_for(self, field: str) -> list[FieldError]:
        return [e for e in self._errors if e.field == field]


def format_message(template: str, field: str, **params: Any) -> str:
    """Substitute `{field}` and any `{name}` in `params` into `template`.

    Unknown placeholders are left as written.
    """
    message = template.replace('{field}', field)
    for name, value in params.items():
        message = message.replace('{' + name + '}', str(value))
    return message


def add_error(ch: Changeset, field: str, message: str, code: str | None = None) -> None:
    """Append an error for `field`."""
    ch.errors.append(FieldError(field, message, code))
    logger.debug(f'Changeset error on {field}: {message}')


def reject(ch: Changeset, field: str, message: str, code: str | None = None) -> None:
    """Record an error for `field` and discard any value staged for it.

    Every failed validation goes through here, so `changes` never holds a
    field that failed during the changeset's lifetime.
    """
    add_error(ch, field, message, code)
    ch.changes.pop(field, None)


def put_change(ch: Changeset, field: str, value: Any,
               message: str = PUT_CHANGE_MESSAGE) -> None:
    """Stage `value` for `field` if it is convertible to the declared type.

    Otherwise append an error built from `message` and discard the value,
    along with any value staged earlier. A field with no declared type is
    always rejected. Once a field has failed, later values for it are not
    staged either.
    """
    ftype = ch.types.get(field)
    if ftype is None or not is_convertible(value, ftype):
        reject(ch, field, format_message(message, field), code='invalid')
        return
    if ch.errors_for(field):
        logger.debug(f'Not staging {field}: it already failed validation')
        return
    ch.changes[field] = value


def apply(ch: Changeset) -> dict[str, Any]:
    """Return the staged changes, refusing an invalid changeset.

    Raises
        ValidationError: If the changeset holds errors
    """
    if ch.errors:
        raise ValidationError(ch.errors)
    return dict(ch.changes)
