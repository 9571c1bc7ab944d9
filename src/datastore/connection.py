"""
Engine management and connection checkout with SQLAlchemy.

This module provides:
1. `connect()` / `open()` for creating standalone adapters
2. Engine creation and caching through a thread-safe registry
3. `checkout()` for taking a configured DBAPI connection from an engine
"""
import atexit
import logging
import threading
from collections.abc import Callable
from dataclasses import fields
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from datastore.options import DatastoreOptions
from datastore.strategy import DatabaseStrategy, get_strategy
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from libb import load_options

if TYPE_CHECKING:
    from datastore.adapter import Adapter

__all__ = [
    'connect',
    'open',
    'checkout',
    'options_from_url',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def create_url_from_options(options: DatastoreOptions) -> sa.URL:
    """Convert DatastoreOptions to SQLAlchemy URL.
    """
    return get_strategy(options.drivername).build_connection_url(options)


def options_from_url(dsn: str | sa.URL, **kw: Any) -> DatastoreOptions:
    """Build DatastoreOptions from a SQLAlchemy URL such as
    `postgresql://user:pw@host:5432/db` or `sqlite:///path.db`.
    """
    url = sa.make_url(dsn)
    values: dict[str, Any] = {
        'drivername': url.get_backend_name(),
        'hostname': url.host,
        'username': url.username,
        'password': url.password,
        'database': url.database,
        'port': url.port or 0,
    }
    if 'connect_timeout' in url.query:
        values['timeout'] = int(url.query['connect_timeout'])
    values.update(kw)
    return DatastoreOptions(**values)


def get_engine_for_options(options: DatastoreOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    key = str(options)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        strategy = get_strategy(options.drivername)
        url = create_url_from_options(options)

        engine_kwargs: dict[str, Any] = {'echo': False}
        engine_kwargs.update(strategy.get_engine_kwargs(options))

        if not options.use_pool:
            engine_kwargs['poolclass'] = NullPool
        else:
            engine_kwargs['pool_size'] = options.pool_max_connections
            engine_kwargs['pool_recycle'] = options.pool_max_idle_time
            engine_kwargs['pool_timeout'] = options.pool_wait_timeout
            engine_kwargs['max_overflow'] = 10
            engine_kwargs['pool_pre_ping'] = True
            engine_kwargs['pool_reset_on_return'] = 'rollback'

        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in list(_engine_registry.values()):
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


def checkout(engine: Engine, strategy: DatabaseStrategy) -> sa.Connection:
    """Take a connection from the engine and apply backend settings.

    The raw DBAPI connection comes back in autocommit mode.
    """
    sa_connection = engine.connect()
    strategy.configure_connection(sa_connection.connection.driver_connection)
    return sa_connection


@load_options(cls=DatastoreOptions)
def connect(options: DatastoreOptions | dict[str, Any] | str,
            config: Any | None = None, **kw: Any) -> 'Adapter':
    """Open a standalone adapter.

    Args:
        options: Can be:
                - DatastoreOptions object
                - String naming a section of `config`
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        **kw: Additional keyword arguments to override options

    Returns
        Standalone Adapter owning one connection
    """
    from datastore.adapter import Adapter

    if isinstance(options, DatastoreOptions):
        for field in fields(options):
            kw.pop(field.name, None)
    else:
        options_func = load_options(cls=DatastoreOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    strategy = get_strategy(options.drivername)
    engine = get_engine_for_options(options)
    sa_connection = checkout(engine, strategy)
    logger.debug(f'Opened {options.drivername} connection to {options.database}')

    return Adapter(engine, strategy, options, sa_connection)


def open(dsn: str | sa.URL, **kw: Any) -> 'Adapter':
    """Open a standalone adapter from a SQLAlchemy URL.

    Keyword arguments set additional DatastoreOptions fields.
    """
    return connect(options_from_url(dsn, **kw))
