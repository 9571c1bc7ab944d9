"""
PostgreSQL-specific strategy implementation.

- numbered `$n` markers, translated to psycopg's `%s` before execution
- INSERT ... RETURNING for generated ids
- SQLSTATE 23505 (unique_violation) normalized to DuplicateKey
- primary key discovery through pg_index
"""
import logging
from typing import TYPE_CHECKING, Any

import psycopg
import sqlalchemy as sa
from datastore.exceptions import DuplicateKey
from datastore.sql import quote_identifier, standardize_placeholders
from datastore.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from datastore.adapter import Adapter
    from datastore.options import DatastoreOptions

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = '23505'


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations.
    """

    marker = '$'
    supports_returning = True

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    def standardize_sql(self, sql: str) -> str:
        """Convert numbered markers to psycopg's `%s`.
        """
        return standardize_placeholders(sql, '%s')

    def normalize_error(self, exc: BaseException) -> BaseException:
        """Map unique violations to DuplicateKey.
        """
        if isinstance(exc, psycopg.errors.UniqueViolation) or getattr(exc, 'sqlstate', None) == UNIQUE_VIOLATION:
            diag = getattr(exc, 'diag', None)
            message = (diag and diag.message_primary) or str(exc)
            field = diag.constraint_name if diag else None
            logger.debug(f'Unique violation on {field}: {message}')
            return DuplicateKey(message, field=field)
        return exc

    def build_connection_url(self, options: 'DatastoreOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for PostgreSQL."""
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)

        return sa.URL.create(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query=query,
        )

    def get_engine_kwargs(self, options: 'DatastoreOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for PostgreSQL.

        The statement deadline is sent as a libpq startup option so it holds
        for every statement on the session.
        """
        connect_args: dict[str, Any] = {'application_name': options.appname}
        if options.statement_timeout:
            connect_args['options'] = f'-c statement_timeout={int(options.statement_timeout * 1000)}'
        return {'connect_args': connect_args}

    def configure_connection(self, raw_conn: Any) -> None:
        """Configure connection settings for PostgreSQL.
        """
        self.enable_autocommit(raw_conn)

    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode for PostgreSQL.
        """
        raw_conn.autocommit = True

    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode for PostgreSQL.
        """
        raw_conn.autocommit = False

    def _query_primary_keys(self, cn: 'Adapter', table: str) -> list[str]:
        """Get primary key columns for a table.

        The name is quoted before the regclass cast so mixed-case tables resolve.
        """
        sql = """
select a.attname as column
from pg_index i
join pg_attribute a on a.attrelid = i.indrelid and a.attnum = any(i.indkey)
where i.indrelid = %s::regclass and i.indisprimary
"""
        return self._select_column_raw(cn, sql, (quote_identifier(table),))

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']
