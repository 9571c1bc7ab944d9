"""
SQLite-specific strategy implementation.

- unnumbered `?` markers, used by sqlite3 as-is
- RETURNING from SQLite 3.35 on; older libraries read generated ids back
  with a follow-up `last_insert_rowid()`
- tables without a single primary key report `rowid`
- UNIQUE/PRIMARY KEY constraint failures normalized to DuplicateKey
- primary key discovery through PRAGMA table_info
"""
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from datastore.exceptions import DuplicateKey
from datastore.strategy.base import DatabaseStrategy, register_strategy
from datastore.types import register_sqlite_converters

if TYPE_CHECKING:
    from datastore.adapter import Adapter
    from datastore.options import DatastoreOptions

logger = logging.getLogger(__name__)

UNIQUE_ERRORNAMES = {'SQLITE_CONSTRAINT_UNIQUE', 'SQLITE_CONSTRAINT_PRIMARYKEY'}
UNIQUE_MESSAGE = 'UNIQUE constraint failed'
RETURNING_VERSION = (3, 35)
ROWID_COLUMN = 'rowid'


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    marker = '?'
    supports_returning = sqlite3.sqlite_version_info >= RETURNING_VERSION

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    def normalize_error(self, exc: BaseException) -> BaseException:
        """Map UNIQUE constraint failures to DuplicateKey.

        The message names the columns as `table.column`; the first column is
        reported as the field.
        """
        if not isinstance(exc, sqlite3.IntegrityError):
            return exc
        message = str(exc)
        if getattr(exc, 'sqlite_errorname', None) not in UNIQUE_ERRORNAMES and not message.startswith(UNIQUE_MESSAGE):
            return exc
        field = None
        if ':' in message:
            first = message.split(':', 1)[1].split(',')[0].strip()
            field = first.rsplit('.', 1)[-1] or None
        logger.debug(f'Unique violation on {field}: {message}')
        return DuplicateKey(message, field=field)

    def last_insert_id_sql(self) -> str:
        return 'SELECT last_insert_rowid()'

    def build_connection_url(self, options: 'DatastoreOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for SQLite."""
        return sa.URL.create(drivername='sqlite', database=options.database)

    def get_engine_kwargs(self, options: 'DatastoreOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite.

        `timeout` is how long sqlite3 waits on a locked database.
        """
        connect_args: dict[str, Any] = {
            'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        }
        if options.timeout:
            connect_args['timeout'] = options.timeout
        return {'connect_args': connect_args}

    def configure_connection(self, raw_conn: Any) -> None:
        """Configure connection settings for SQLite.
        """
        register_sqlite_converters()
        raw_conn.execute('PRAGMA foreign_keys = ON')
        self.enable_autocommit(raw_conn)

    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode for SQLite.
        """
        raw_conn.isolation_level = None

    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode for SQLite.
        """
        raw_conn.isolation_level = 'DEFERRED'

    def _query_primary_keys(self, cn: 'Adapter', table: str) -> list[str]:
        """Get primary key columns for a table, in key order.
        """
        sql = """
select l.name from pragma_table_info(?) as l where l.pk <> 0 order by l.pk
"""
        return self._select_column_raw(cn, sql, (table,))

    def primary_key_column(self, cn: 'Adapter', table: str,
                           bypass_cache: bool = False) -> str:
        """Single primary key column of `table`, otherwise `rowid`.
        """
        primary_keys = self.get_primary_keys(cn, table, bypass_cache=bypass_cache)
        if len(primary_keys) == 1:
            return primary_keys[0]
        return ROWID_COLUMN

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for SQLite connections."""
        return ['database']
