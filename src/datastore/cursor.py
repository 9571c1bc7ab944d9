"""
Cursor wrapper adding SQL logging, timing and paramstyle translation.
"""
import logging
import time
from functools import wraps
from typing import Any

from datastore.types import TypeConverter

logger = logging.getLogger(__name__)


def dumpsql(func):
    """Decorator for logging SQL statements and parameters."""
    @wraps(func)
    def wrapper(self, operation: str, args: tuple = (), *a: Any, **kw: Any):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nargs: {args}')
        try:
            return func(self, operation, args, *a, **kw)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nargs: {args}')
            raise
        finally:
            elapsed = time.time() - start
            self.owner.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class Cursor:
    """DB-API cursor wrapper bound to the adapter that opened it.

    Statements are written with the builder's markers; `execute` translates
    them to the driver's paramstyle and converts NumPy/Pandas arguments.
    """

    def __init__(self, cursor: Any, owner: Any, strategy: Any) -> None:
        self.dbapi_cursor = cursor
        self.owner = owner
        self.strategy = strategy

    def __enter__(self) -> 'Cursor':
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __getattr__(self, name: str) -> Any:
        """Delegate members to underlying cursor."""
        return getattr(self.dbapi_cursor, name)

    @property
    def description(self) -> list[tuple] | None:
        """Column descriptions for last query."""
        return self.dbapi_cursor.description

    @property
    def rowcount(self) -> int:
        """Number of rows produced/affected by last operation."""
        return self.dbapi_cursor.rowcount

    def close(self) -> None:
        """Close cursor."""
        self.dbapi_cursor.close()

    def fetchone(self) -> tuple | None:
        """Fetch next row."""
        return self.dbapi_cursor.fetchone()

    def fetchall(self) -> list[tuple]:
        """Fetch all remaining rows."""
        return self.dbapi_cursor.fetchall()

    @dumpsql
    def execute(self, operation: str, args: tuple = ()) -> int:
        """Execute a statement and return the driver's rowcount."""
        sql = self.strategy.standardize_sql(operation)
        params = TypeConverter.convert_params(tuple(args))
        self.dbapi_cursor.execute(sql, params)
        return self.dbapi_cursor.rowcount
