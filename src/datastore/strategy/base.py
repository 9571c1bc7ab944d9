"""
Base strategy interface for backend-specific behavior.

A strategy is the only place a backend differs from another: the statement
builder configuration (marker style, RETURNING support), translation of
driver errors into the generic taxonomy, and connection setup. Adding a
backend means adding one strategy class.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from datastore.builder import StatementBuilder
from datastore.cache import cacheable_strategy

if TYPE_CHECKING:
    from datastore.adapter import Adapter
    from datastore.options import DatastoreOptions

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}

DEFAULT_ID_COLUMN = 'id'


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class DatabaseStrategy(ABC):
    """Base class for backend-specific operations.
    """

    marker: str = '?'
    supports_returning: bool = False

    @contextmanager
    def _cursor(self, cn: 'Adapter', sql: str, params: tuple | None = None):
        """Context manager for cursor lifecycle with SQL standardization.
        """
        sql = self.standardize_sql(sql)
        cursor = cn.dbapi_connection.cursor()
        try:
            cursor.execute(sql, params or ())
            yield cursor
        finally:
            cursor.close()

    def _select_column_raw(self, cn: 'Adapter', sql: str,
                           params: tuple | None = None) -> list:
        """Execute SQL and return first column as list.

        Used internally by strategy methods for metadata lookups.
        """
        with self._cursor(cn, sql, params) as cursor:
            return [row[0] for row in cursor.fetchall()]

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier (e.g., 'postgresql', 'sqlite')."""

    def builder(self, returning: str | None = None) -> StatementBuilder:
        """Statement builder configured for this backend.

        Args:
            returning: Column inserts should report back; ignored when the
                backend has no RETURNING support
        """
        if returning and self.supports_returning:
            return StatementBuilder(self.marker, returning)
        return StatementBuilder(self.marker)

    def standardize_sql(self, sql: str) -> str:
        """Convert builder markers to the driver's paramstyle.

        Default implementation is a no-op.
        """
        return sql

    @abstractmethod
    def normalize_error(self, exc: BaseException) -> BaseException:
        """Map a driver error into the datastore taxonomy.

        Args:
            exc: Exception raised by the driver

        Returns
            DuplicateKey for uniqueness violations, otherwise `exc` unchanged
        """

    def last_insert_id_sql(self) -> str | None:
        """Follow-up query returning the last generated id, when the backend
        has no RETURNING support.
        """
        return None

    @abstractmethod
    def build_connection_url(self, options: 'DatastoreOptions') -> sa.URL:
        """Build the SQLAlchemy connection URL for this dialect.
        """

    @abstractmethod
    def get_engine_kwargs(self, options: 'DatastoreOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for this dialect.
        """

    @abstractmethod
    def configure_connection(self, raw_conn: Any) -> None:
        """Configure a freshly checked out DBAPI connection.
        """

    @abstractmethod
    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode on a raw database connection.
        """

    @abstractmethod
    def disable_autocommit(self, raw_conn: Any) -> None:
        """Disable auto-commit mode on a raw database connection.
        """

    @cacheable_strategy('primary_keys', ttl=300, maxsize=50)
    def get_primary_keys(self, cn: 'Adapter', table: str,
                         bypass_cache: bool = False) -> list[str]:
        """Get primary key columns for a table.

        Args:
            cn: Adapter owning the connection to query
            table: Table name to get primary keys for
            bypass_cache: If True, bypass cache and query database directly

        Returns
            list: Primary key column names
        """
        return self._query_primary_keys(cn, table)

    @abstractmethod
    def _query_primary_keys(self, cn: 'Adapter', table: str) -> list[str]:
        """Look up primary key columns from the system catalog."""

    def primary_key_column(self, cn: 'Adapter', table: str,
                           bypass_cache: bool = False) -> str:
        """Column holding generated ids for `table`.

        The single primary key column when there is exactly one, otherwise `id`.
        """
        primary_keys = self.get_primary_keys(cn, table, bypass_cache=bypass_cache)
        if len(primary_keys) == 1:
            return primary_keys[0]
        return DEFAULT_ID_COLUMN

    @classmethod
    @abstractmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.
        """

    @classmethod
    def validate_options(cls, options: 'DatastoreOptions') -> None:
        """Validate options for this dialect.

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')
