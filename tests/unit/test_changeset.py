import dataclasses
import datetime

import pytest
from datastore.changeset import Changeset, FieldError, add_error, apply
from datastore.changeset import format_message, put_change, reject
from datastore.exceptions import ValidationError
from datastore.types import FieldType


@dataclasses.dataclass
class User:
    name: str
    age: int | None = None
    score: float = 0.0
    joined: datetime.date | None = None


@pytest.fixture
def ch():
    return Changeset.for_record(User)


def test_types_from_record(ch):
    assert ch.types == {
        'name': FieldType.TEXT,
        'age': FieldType.INTEGER,
        'score': FieldType.FLOAT,
        'joined': FieldType.DATE,
    }
    assert ch.valid
    assert ch.error is None


def test_convertible_value_staged(ch):
    put_change(ch, 'age', 30)
    assert ch.changes == {'age': 30}
    assert ch.errors == []


def test_unconvertible_value_rejected(ch):
    put_change(ch, 'age', 'invalid')
    assert 'age' not in ch.changes
    assert ch.errors == [FieldError('age', 'age is invalid', 'invalid')]
    assert str(ch.error) == 'age is invalid'
    assert not ch.valid


def test_custom_message(ch):
    put_change(ch, 'joined', 'yesterday', message='{field} must be a date')
    assert ch.error.message == 'joined must be a date'


def test_integer_accepted_for_float(ch):
    put_change(ch, 'score', 7)
    assert ch.changes['score'] == 7


def test_none_accepted_for_any_type(ch):
    put_change(ch, 'age', None)
    assert ch.changes == {'age': None}


def test_undeclared_field_rejected(ch):
    put_change(ch, 'nickname', 'Ada')
    assert ch.changes == {}
    assert ch.error.field == 'nickname'


def test_errors_accumulate(ch):
    put_change(ch, 'age', 'x')
    put_change(ch, 'name', 5)
    put_change(ch, 'score', 1.5)
    assert [e.field for e in ch.errors] == ['age', 'name']
    assert ch.changes == {'score': 1.5}


def test_add_error(ch):
    add_error(ch, 'name', 'name is reserved', code='reserved')
    assert ch.errors_for('name') == [FieldError('name', 'name is reserved', 'reserved')]


def test_get_prefers_changes():
    ch = Changeset(data={'name': 'Ada', 'age': 36}, types={'age': FieldType.INTEGER})
    put_change(ch, 'age', 37)
    assert ch.get('age') == 37
    assert ch.get('name') == 'Ada'
    assert ch.data == {'name': 'Ada', 'age': 36}


def test_apply_valid(ch):
    put_change(ch, 'name', 'Ada')
    assert apply(ch) == {'name': 'Ada'}


def test_apply_invalid(ch):
    put_change(ch, 'age', 'x')
    put_change(ch, 'name', 5)
    with pytest.raises(ValidationError) as exc_info:
        apply(ch)
    assert str(exc_info.value) == 'age is invalid; name is invalid'
    assert len(exc_info.value.errors) == 2


def test_format_message():
    assert format_message('{field} needs {min}..{max}', 'age', min=1, max=9) == 'age needs 1..9'
    assert format_message('{field} {unknown}', 'age') == 'age {unknown}'


def test_failed_value_discards_earlier_staged_value(ch):
    put_change(ch, 'age', 30)
    put_change(ch, 'age', 'not-a-number')
    assert 'age' not in ch.changes
    assert ch.get('age') is None


def test_failed_field_stays_unstaged(ch):
    put_change(ch, 'age', 'x')
    put_change(ch, 'age', 31)
    assert 'age' not in ch.changes
    assert len(ch.errors_for('age')) == 1
    with pytest.raises(ValidationError):
        apply(ch)


def test_reject_drops_staged_value(ch):
    put_change(ch, 'name', 'Ada')
    reject(ch, 'name', 'name is reserved', code='reserved')
    assert ch.changes == {}
    assert ch.error == FieldError('name', 'name is reserved', 'reserved')
