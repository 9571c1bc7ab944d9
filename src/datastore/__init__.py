"""
Backend-neutral data access with support for PostgreSQL and SQLite.

Queries are built as data (`Query` plus conditions), rendered into
parameterized SQL by a per-backend strategy, and executed by an `Adapter`
that owns one connection or one transaction:

    import datastore as ds

    with ds.open('sqlite:///app.db') as adapter:
        with adapter.begin() as tx:
            tx.insert(ds.Query('users'), {'name': 'Ada', 'age': 36})
        users = []
        adapter.all(ds.Query('users').where(ds.gte('age', 18)), users)

Changesets stage and validate field mutations before they are written.
"""
__version__ = '0.1.0'

from datastore.adapter import Adapter
from datastore.builder import Statement, StatementBuilder
from datastore.changeset import Changeset, FieldError, add_error, apply
from datastore.changeset import put_change, reject
from datastore.connection import connect, dispose_all_engines, open
from datastore.exceptions import DatastoreError, DuplicateKey, NotInTransaction
from datastore.exceptions import ShapeMismatch, UnexpectedState, ValidationError
from datastore.mapper import Records, scan
from datastore.options import DatastoreOptions
from datastore.query import Condition, Query, and_, eq, gt, gte, in_, is_null
from datastore.query import like, lt, lte, ne, not_, not_in, not_null, or_
from datastore.types import FieldType, is_convertible, schema_from
from datastore.validators import validate_format, validate_inclusion
from datastore.validators import validate_length, validate_number
from datastore.validators import validate_required, validate_unique

__all__ = [
    'Adapter',
    'Changeset',
    'Condition',
    'DatastoreError',
    'DatastoreOptions',
    'DuplicateKey',
    'FieldError',
    'FieldType',
    'NotInTransaction',
    'Query',
    'Records',
    'ShapeMismatch',
    'Statement',
    'StatementBuilder',
    'UnexpectedState',
    'ValidationError',
    'add_error',
    'and_',
    'apply',
    'connect',
    'dispose_all_engines',
    'eq',
    'gt',
    'gte',
    'in_',
    'is_convertible',
    'is_null',
    'like',
    'lt',
    'lte',
    'ne',
    'not_',
    'not_in',
    'not_null',
    'open',
    'or_',
    'put_change',
    'reject',
    'scan',
    'schema_from',
    'validate_format',
    'validate_inclusion',
    'validate_length',
    'validate_number',
    'validate_required',
    'validate_unique',
]
