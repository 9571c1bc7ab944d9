import pytest
from datastore.options import DatastoreOptions


def test_init_defaults():
    """Test default initialization"""
    options = DatastoreOptions(
        hostname='testhost',
        username='testuser',
        password='testpass',
        database='testdb',
        port=1234,
        timeout=30
    )

    assert options.drivername == 'postgresql'
    assert options.appname is not None
    assert options.strict is False
    assert options.statement_timeout == 0

    assert options.use_pool is False
    assert options.pool_max_connections == 5
    assert options.pool_max_idle_time == 300
    assert options.pool_wait_timeout == 30


def test_pooling_options():
    """Test connection pooling options"""
    options = DatastoreOptions(
        drivername='postgresql',
        hostname='testhost',
        username='testuser',
        password='testpass',
        database='testdb',
        port=1234,
        use_pool=True,
        pool_max_connections=10,
        pool_max_idle_time=600,
        pool_wait_timeout=60
    )

    assert options.use_pool is True
    assert options.pool_max_connections == 10
    assert options.pool_max_idle_time == 600
    assert options.pool_wait_timeout == 60


def test_validation():
    """Test validation rules"""
    with pytest.raises(ValueError):
        DatastoreOptions(
            drivername='invalid',
            hostname='testhost',
            username='testuser',
            password='testpass',
            database='testdb',
            port=1234,
        )

    with pytest.raises(ValueError):
        DatastoreOptions(drivername='postgresql', hostname='testhost')


def test_sqlite_options():
    """Test SQLite options validation"""
    options = DatastoreOptions(
        drivername='sqlite',
        database='test.db'
    )
    assert options.drivername == 'sqlite'
    assert options.database == 'test.db'

    with pytest.raises(ValueError):
        DatastoreOptions(drivername='sqlite')
