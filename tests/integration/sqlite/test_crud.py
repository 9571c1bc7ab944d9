import datetime

import datastore as ds
import pytest
from datastore import Query, Records
from datastore.strategy import SQLiteStrategy


def names(adapter, query):
    rows = []
    adapter.all(query, rows)
    return [row.name for row in rows]


def test_insert_returns_generated_id(sqlite_conn):
    user_id = sqlite_conn.insert(Query('users'), {'name': 'Dora', 'age': 50})
    assert user_id == 4

    found = ds.Records()
    sqlite_conn.all(Query('users').where(ds.eq('id', user_id)), found)
    assert found[0].name == 'Dora'


def test_insert_all_returns_ids_in_order(sqlite_conn):
    ids = sqlite_conn.insert_all(Query('users'), ['name', 'age'],
                                 [{'name': 'Dora', 'age': 50}, {'name': 'Evan'}])
    assert ids == [4, 5]

    evan = ds.Records()
    sqlite_conn.all(Query('users').where(ds.eq('name', 'Evan')), evan)
    assert evan[0].age is None


def test_insert_all_with_explicit_ids(sqlite_conn):
    ids = sqlite_conn.insert_all(Query('users'), ['id', 'name'],
                                 [{'id': 100, 'name': 'Dora'}, {'id': 50, 'name': 'Evan'}])
    assert ids == [100, 50]


def test_insert_all_explicit_ids_without_returning(sqlite_conn, mocker):
    mocker.patch.object(SQLiteStrategy, 'supports_returning', False)
    with pytest.raises(ds.UnexpectedState):
        sqlite_conn.insert_all(Query('users'), ['id', 'name'],
                               [{'id': 100, 'name': 'Dora'}])
    assert names(sqlite_conn, Query('users').where(ds.eq('name', 'Dora'))) == []


def test_insert_all_without_returning(sqlite_conn, mocker):
    mocker.patch.object(SQLiteStrategy, 'supports_returning', False)
    ids = sqlite_conn.insert_all(Query('users'), ['name'], [{'name': 'Dora'}, {'name': 'Evan'}])
    assert ids == [4, 5]
    assert sqlite_conn.insert(Query('users'), {'name': 'Fay'}) == 6


def test_insert_all_empty(sqlite_conn):
    assert sqlite_conn.insert_all(Query('users'), ['name'], []) == []


def test_all_with_condition_and_order(sqlite_conn):
    query = Query('users').where(ds.gte('age', 25)).sort('-age')
    assert names(sqlite_conn, query) == ['Charlie', 'Alice']


def test_all_paging(sqlite_conn):
    query = Query('users').sort('id').slice(1, offset=1)
    assert names(sqlite_conn, query) == ['Bob']


def test_all_into_dataclass(sqlite_conn, user_type):
    users = Records(user_type)
    count = sqlite_conn.all(Query('users').sort('id'), users)
    assert count == 3
    assert users[0] == user_type(1, 'Alice', 30, 'alice@example.com', None)


def test_one(sqlite_conn, user_type):
    user = user_type()
    assert sqlite_conn.one(Query('users').where(ds.eq('name', 'Bob')), user) == 1
    assert user.age == 20

    missing = user_type(name='unchanged')
    assert sqlite_conn.one(Query('users').where(ds.eq('name', 'Nobody')), missing) == 0
    assert missing.name == 'unchanged'


def test_timestamp_column_decoded(sqlite_conn, user_type):
    sqlite_conn.update(Query('users', ds.eq('name', 'Alice')),
                       {'created_at': '2024-01-02T03:04:05'})
    user = user_type()
    sqlite_conn.one(Query('users').where(ds.eq('name', 'Alice')), user)
    assert user.created_at == datetime.datetime(2024, 1, 2, 3, 4, 5)


def test_in_and_null_conditions(sqlite_conn):
    assert names(sqlite_conn, Query('users', ds.in_('name', ['Bob', 'Zed']))) == ['Bob']
    assert names(sqlite_conn, Query('users', ds.in_('name', []))) == []
    assert len(names(sqlite_conn, Query('users', ds.not_in('name', [])))) == 3
    assert names(sqlite_conn, Query('users', ds.is_null('email'))) == ['Charlie']


def test_like_with_percent(sqlite_conn):
    assert names(sqlite_conn, Query('users', ds.like('email', 'a%'))) == ['Alice']


def test_update(sqlite_conn):
    result = sqlite_conn.update(Query('users', ds.eq('name', 'Bob')), {'age': 21})
    assert result is None
    assert names(sqlite_conn, Query('users', ds.eq('age', 21))) == ['Bob']


def test_update_without_condition_affects_all(sqlite_conn):
    sqlite_conn.update(Query('users'), {'age': 99})
    assert len(names(sqlite_conn, Query('users', ds.eq('age', 99)))) == 3


def test_delete(sqlite_conn):
    sqlite_conn.delete(Query('users', ds.lt('age', 25)))
    assert names(sqlite_conn, Query('users').sort('name')) == ['Alice', 'Charlie']


def test_duplicate_key(sqlite_conn):
    with pytest.raises(ds.DuplicateKey) as exc_info:
        sqlite_conn.insert(Query('users'), {'name': 'Alice'})
    assert exc_info.value.field == 'name'


def test_statistics_tracked(sqlite_conn):
    calls = sqlite_conn.calls
    names(sqlite_conn, Query('users'))
    assert sqlite_conn.calls == calls + 1


def test_open_from_url(sqlite_path):
    with ds.open(f'sqlite:///{sqlite_path}') as adapter:
        assert adapter.dialect == 'sqlite'
        assert adapter.state == 'standalone'
    assert adapter.state == 'closed'
