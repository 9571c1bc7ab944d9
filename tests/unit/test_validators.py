import pytest
from datastore.changeset import Changeset, put_change
from datastore.types import FieldType
from datastore.validators import validate_format, validate_inclusion
from datastore.validators import validate_length, validate_number
from datastore.validators import validate_required

TYPES = {
    'name': FieldType.TEXT,
    'email': FieldType.TEXT,
    'role': FieldType.TEXT,
    'age': FieldType.INTEGER,
}


@pytest.fixture
def ch():
    return Changeset(types=TYPES)


def stage(ch, **changes):
    for field, value in changes.items():
        put_change(ch, field, value)
    return ch


class TestRequired:

    def test_missing_and_blank(self, ch):
        stage(ch, name='   ')
        validate_required(ch, 'name', 'email')
        assert [e.field for e in ch.errors] == ['name', 'email']
        assert ch.error.message == 'name is required'

    def test_satisfied_by_existing_data(self):
        ch = Changeset(data={'name': 'Ada'}, types=TYPES)
        validate_required(ch, 'name')
        assert ch.valid


class TestLength:

    def test_bounds(self, ch):
        stage(ch, name='Al')
        validate_length(ch, 'name', min=3, max=10)
        assert ch.error.message == 'name must be at least 3 characters'

    def test_max_with_count(self, ch):
        stage(ch, name='Alexandria')
        validate_length(ch, 'name', max=4, max_message='{field} is {count} long, max {max}')
        assert ch.error.message == 'name is 10 long, max 4'

    def test_unstaged_field_skipped(self, ch):
        validate_length(ch, 'name', min=3)
        assert ch.valid

    def test_value_without_length(self, ch):
        stage(ch, age=30)
        validate_length(ch, 'age', max=5)
        assert ch.errors_for('age')[0].message == 'age has no length'
        assert ch.error.code == 'length'
        assert 'age' not in ch.changes

    def test_failure_unstages_value(self, ch):
        stage(ch, name='Al', email='ada@example.com')
        validate_length(ch, 'name', min=3)
        assert ch.changes == {'email': 'ada@example.com'}


def test_format(ch):
    stage(ch, email='not-an-email')
    validate_format(ch, 'email', r'^[^@\s]+@[^@\s]+$')
    assert ch.error.message == 'email has invalid format'


def test_inclusion(ch):
    stage(ch, role='root')
    validate_inclusion(ch, 'role', {'admin', 'user'})
    assert ch.error.code == 'inclusion'


class TestNumber:

    def test_within_bounds(self, ch):
        stage(ch, age=30)
        validate_number(ch, 'age', min=0, max=150)
        assert ch.valid

    def test_below_min(self, ch):
        stage(ch, age=-1)
        validate_number(ch, 'age', min=0)
        assert ch.error.message == 'age must be greater than or equal to 0'
        assert 'age' not in ch.changes

    def test_non_numeric_value(self, ch):
        stage(ch, name='Ada')
        validate_number(ch, 'name', min=0)
        assert ch.error.message == 'name must be a number'
        assert ch.error.code == 'number'
        assert 'name' not in ch.changes


def test_validators_do_not_short_circuit(ch):
    stage(ch, name='A', email='bad', age=200)
    validate_required(ch, 'name', 'role')
    validate_length(ch, 'name', min=2)
    validate_format(ch, 'email', r'@')
    validate_number(ch, 'age', max=150)
    assert [e.field for e in ch.errors] == ['role', 'name', 'email', 'age']
    assert ch.changes == {}


def test_later_valid_put_does_not_restage_failed_field(ch):
    stage(ch, name='A')
    validate_length(ch, 'name', min=2)
    put_change(ch, 'name', 'Ada')
    assert 'name' not in ch.changes
    assert not ch.valid
