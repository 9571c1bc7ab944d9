import datastore as ds
from datastore import Changeset, Query, put_change, validate_unique


def test_changeset_feeds_insert(sqlite_conn, user_type):
    ch = Changeset.for_record(user_type)
    put_change(ch, 'name', 'Dora')
    put_change(ch, 'age', 'forty')
    ds.validate_required(ch, 'name')
    assert [e.message for e in ch.errors] == ['age is invalid']

    ch = Changeset.for_record(user_type)
    put_change(ch, 'name', 'Dora')
    put_change(ch, 'age', 40)
    user_id = sqlite_conn.insert(Query('users'), ds.apply(ch))

    user = user_type()
    sqlite_conn.one(Query('users', ds.eq('id', user_id)), user)
    assert (user.name, user.age) == ('Dora', 40)


def test_validate_unique(sqlite_conn, user_type):
    ch = Changeset.for_record(user_type)
    put_change(ch, 'name', 'Alice')
    validate_unique(ch, 'name', sqlite_conn, 'users')
    assert ch.error.message == 'name has already been taken'
    assert 'name' not in ch.changes

    ch = Changeset.for_record(user_type)
    put_change(ch, 'name', 'Zed')
    validate_unique(ch, 'name', sqlite_conn, 'users')
    assert ch.valid


def test_validate_unique_excludes_own_record(sqlite_conn, user_type):
    ch = Changeset.for_record(user_type, data={'id': 1, 'name': 'Alice'})
    put_change(ch, 'name', 'Alice')
    validate_unique(ch, 'name', sqlite_conn, 'users', exclude=('id', 1))
    assert ch.valid
