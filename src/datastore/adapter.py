"""
Adapter: CRUD and transaction lifecycle over one connection.

An adapter owns exactly one connection for its lifetime and is in one of two
shapes:

- standalone: opened by `connect()`/`open()`, runs in autocommit mode,
  released by `close()`
- transactional: created by `begin()` on a standalone adapter, owns its own
  connection with autocommit disabled, finalized by exactly one of
  `commit()` or `rollback()`

Every operation builds a Statement through the strategy's builder, runs it
through `query()` or `exec()`, and routes driver errors through `error()`,
the single place backend errors are normalized.

Examples
    with datastore.connect(options) as adapter:
        with adapter.begin() as tx:
            user_id = tx.insert(Query('users'), {'name': 'Ada', 'age': 36})
        users = []
        adapter.all(Query('users').where(eq('id', user_id)), users)
"""
import logging
from collections.abc import Mapping, Sequence
from typing import Any, NoReturn, Self

import sqlalchemy as sa
from datastore.builder import Statement
from datastore.connection import checkout
from datastore.cursor import Cursor
from datastore.exceptions import BackendError, NotInTransaction, UnexpectedState
from datastore.mapper import Records, scan
from datastore.options import DatastoreOptions
from datastore.query import Query
from datastore.strategy import DatabaseStrategy
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

__all__ = ['Adapter']


class Adapter:
    """Data access over one connection or one transaction.

    Not safe for concurrent use; the underlying connection decides what
    interleaving, if any, is possible.
    """

    def __init__(self, engine: Engine, strategy: DatabaseStrategy,
                 options: DatastoreOptions, sa_connection: sa.Connection,
                 transactional: bool = False) -> None:
        self.engine = engine
        self.strategy = strategy
        self.options = options
        self.sa_connection = sa_connection
        self.dbapi_connection = sa_connection.connection.driver_connection
        self.transactional = transactional
        self.closed = False
        self.calls = 0
        self.time = 0

    def __repr__(self) -> str:
        return f'Adapter(dialect={self.dialect!r}, state={self.state!r})'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        """Standalone: close. Transactional: commit, or roll back on error.
        """
        if not self.transactional:
            self.close()
            return
        if self.closed:
            return
        if exc_type is not None:
            logger.warning('Rolling back the current transaction')
            self.rollback()
        else:
            self.commit()

    @property
    def dialect(self) -> str:
        return self.strategy.dialect_name

    @property
    def state(self) -> str:
        if self.closed:
            return 'closed'
        return 'transactional' if self.transactional else 'standalone'

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    def cursor(self) -> Cursor:
        """Wrapped cursor on this adapter's connection."""
        self._check_open()
        return Cursor(self.dbapi_connection.cursor(), self, self.strategy)

    def error(self, exc: BaseException) -> BaseException:
        """Translate a backend error into the datastore taxonomy.

        Unrecognized errors are returned unchanged.
        """
        return self.strategy.normalize_error(exc)

    def _raise(self, exc: BaseException) -> NoReturn:
        normalized = self.error(exc)
        if normalized is exc:
            raise exc
        raise normalized from exc

    def _check_open(self) -> None:
        if self.closed:
            raise UnexpectedState(f'adapter is {self.state}')

    def query(self, dest: Any, statement: Statement, strict: bool | None = None) -> int:
        """Run a statement returning rows and decode them into `dest`.

        Returns
            Number of rows consumed
        """
        strict = self.options.strict if strict is None else strict
        try:
            with self.cursor() as cursor:
                cursor.execute(statement.sql, statement.args)
                return scan(dest, cursor, strict=strict)
        except BackendError as exc:
            self._raise(exc)

    def exec(self, statement: Statement, generated_id: bool = False) -> tuple[Any, int]:
        """Run a statement that returns no rows.

        Args:
            statement: Statement to run
            generated_id: Read back the last generated id with the strategy's
                follow-up query

        Returns
            Tuple of (last generated id or None, affected row count)
        """
        try:
            with self.cursor() as cursor:
                rowcount = cursor.execute(statement.sql, statement.args)
                last_id = None
                follow_up = self.strategy.last_insert_id_sql() if generated_id else None
                if follow_up:
                    cursor.execute(follow_up)
                    last_id = cursor.fetchone()[0]
                return last_id, rowcount
        except BackendError as exc:
            self._raise(exc)

    def all(self, query: Query, dest: list, strict: bool | None = None) -> int:
        """Append every record matching `query` to `dest`.

        Returns
            Number of records appended
        """
        statement = self.strategy.builder().find(query)
        count = self.query(dest, statement, strict=strict)
        logger.debug(f'Found {count} rows in {query.collection}')
        return count

    def one(self, query: Query, dest: Any, strict: bool | None = None) -> int:
        """Copy the first record matching `query` into `dest`.

        Returns
            1 when a row was found, otherwise 0 and `dest` is untouched
        """
        statement = self.strategy.builder().find(query)
        return self.query(dest, statement, strict=strict)

    def _key_column(self, collection: str) -> str:
        try:
            return self.strategy.primary_key_column(self, collection)
        except BackendError as exc:
            self._raise(exc)

    def _id_column(self, collection: str) -> str | None:
        if not self.strategy.supports_returning:
            return None
        return self._key_column(collection)

    def insert(self, query: Query, changes: Mapping[str, Any]) -> Any:
        """Insert one record and return its generated id.
        """
        id_column = self._id_column(query.collection)
        statement = self.strategy.builder(returning=id_column).insert(query.collection, changes)

        if id_column:
            result = Records()
            self.query(result, statement, strict=False)
            return result[0][id_column] if result else None

        last_id, _ = self.exec(statement, generated_id=True)
        return last_id

    def insert_all(self, query: Query, fields: Sequence[str],
                   all_changes: Sequence[Mapping[str, Any]]) -> list[Any]:
        """Insert records in one statement and return their generated ids.

        Column order is fixed by `fields`; a field missing from a record is
        inserted as NULL and keys not in `fields` are dropped.

        Without RETURNING the ids are the contiguous range ending at the last
        generated id, which only holds when the backend assigns every id.

        Raises
            UnexpectedState: If the backend lacks RETURNING and `fields`
                includes the id column
        """
        if not all_changes:
            return []

        id_column = self._id_column(query.collection)
        if not id_column:
            key_column = self._key_column(query.collection)
            if key_column in fields:
                raise UnexpectedState(
                    f'cannot report ids for {query.collection}: {key_column} is'
                    ' supplied explicitly and the backend lacks RETURNING')
        statement = self.strategy.builder(returning=id_column).insert_all(
            query.collection, fields, all_changes)

        if id_column:
            result = Records()
            self.query(result, statement, strict=False)
            return [row[id_column] for row in result]

        last_id, rowcount = self.exec(statement, generated_id=True)
        if last_id is None:
            return []
        return list(range(last_id - rowcount + 1, last_id + 1))

    def update(self, query: Query, changes: Mapping[str, Any]) -> None:
        """Update records matching the query's condition.

        An empty condition updates every row of the collection.
        """
        statement = self.strategy.builder().update(query.collection, changes, query.condition)
        _, rowcount = self.exec(statement)
        logger.debug(f'Updated {rowcount} rows in {query.collection}')

    def delete(self, query: Query) -> None:
        """Delete records matching the query's condition.

        An empty condition deletes every row of the collection.
        """
        statement = self.strategy.builder().delete(query.collection, query.condition)
        _, rowcount = self.exec(statement)
        logger.debug(f'Deleted {rowcount} rows from {query.collection}')

    def begin(self) -> 'Adapter':
        """Start a transaction on a new connection and return its adapter.

        Raises
            UnexpectedState: If this adapter is already transactional
        """
        if self.transactional:
            raise UnexpectedState('nested transactions are not supported')
        self._check_open()

        try:
            sa_connection = checkout(self.engine, self.strategy)
            self.strategy.disable_autocommit(sa_connection.connection.driver_connection)
        except BackendError as exc:
            self._raise(exc)

        tx = Adapter(self.engine, self.strategy, self.options, sa_connection, transactional=True)
        logger.debug(f'Started transaction for adapter {id(tx)}')
        return tx

    def commit(self) -> None:
        """Commit the transaction and release its connection.

        Raises
            NotInTransaction: If this adapter is standalone
        """
        if not self.transactional:
            raise NotInTransaction()
        self._check_open()

        try:
            self.dbapi_connection.commit()
            logger.debug(f'Committed transaction for adapter {id(self)}')
        except BackendError as exc:
            self._raise(exc)
        finally:
            self._release()

    def rollback(self) -> None:
        """Roll back the transaction and release its connection.

        Raises
            NotInTransaction: If this adapter is standalone
        """
        if not self.transactional:
            raise NotInTransaction()
        self._check_open()

        try:
            self.dbapi_connection.rollback()
            logger.debug(f'Rolled back transaction for adapter {id(self)}')
        except BackendError as exc:
            self._raise(exc)
        finally:
            self._release()

    def close(self) -> None:
        """Release the connection.

        An unfinished transaction is rolled back first.
        """
        if self.closed:
            return
        if self.transactional:
            logger.warning('Closing unfinished transaction, rolling back')
            self.rollback()
            return
        self._release()
        logger.debug(f'Connection closed: {self.calls} queries in {self.time:.2f}s (avg: {self.time/max(1,self.calls):.3f}s per query)')

    def _release(self) -> None:
        self.closed = True
        if not self.sa_connection.closed:
            self.sa_connection.close()
