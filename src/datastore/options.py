from dataclasses import dataclass

from datastore.strategy import get_available_dialects, get_strategy_class
from datastore.strategy import is_supported_dialect

from libb import ConfigOptions, scriptname

__all__ = ['DatastoreOptions']


@dataclass
class DatastoreOptions(ConfigOptions):
    """Options

    supported driver names: `postgresql`, `sqlite`

    Timeouts (seconds):
    - timeout: connect timeout (PostgreSQL) or lock wait (SQLite)
    - statement_timeout: per-statement deadline, 0 disables (PostgreSQL)

    Connection pooling options:
    - use_pool: Whether to use connection pooling (default: False)
    - pool_max_connections: Maximum connections in pool (default: 5)
    - pool_max_idle_time: Maximum seconds a connection can be idle (default: 300)
    - pool_wait_timeout: Maximum seconds to wait for a connection (default: 30)

    Row mapping:
    - strict: reject result columns without a destination field (default: False)
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    statement_timeout: float = 0
    appname: str = None
    strict: bool = False
    # Connection pooling parameters
    use_pool: bool = False
    pool_max_connections: int = 5
    pool_max_idle_time: int = 300
    pool_wait_timeout: int = 30

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        self.appname = self.appname or scriptname() or 'python_console'
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
