import os
import pathlib
import tempfile

import datastore as ds
import pytest
from datastore.builder import Statement

CREATE_USERS = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    age INTEGER,
    email TEXT,
    created_at TIMESTAMP
)
"""

SEED_USERS = [
    {'name': 'Alice', 'age': 30, 'email': 'alice@example.com'},
    {'name': 'Bob', 'age': 20, 'email': 'bob@example.com'},
    {'name': 'Charlie', 'age': 40, 'email': None},
]


@pytest.fixture
def sqlite_path():
    """Temporary database file, removed after the test.

    Transactions check out a second connection, so an in-memory database
    would not be shared between the adapter and its transactions.
    """
    fd, path = tempfile.mkstemp(suffix='.db')
    os.close(fd)
    yield path
    ds.dispose_all_engines()
    if pathlib.Path(path).exists():
        pathlib.Path(path).unlink()


@pytest.fixture
def sqlite_conn(sqlite_path):
    """Standalone SQLite adapter with a seeded users table"""
    adapter = ds.connect({'drivername': 'sqlite', 'database': sqlite_path})
    adapter.exec(Statement(CREATE_USERS, ()))
    adapter.insert_all(ds.Query('users'), ['name', 'age', 'email'], SEED_USERS)

    yield adapter
    adapter.close()
