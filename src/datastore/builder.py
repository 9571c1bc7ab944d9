"""
Statement generation.

`StatementBuilder` turns a `Query` (and, for writes, a changes mapping) into
a `Statement`: parameterized SQL text plus the ordered argument list. Text
and arguments are produced together by `_Buffer`, so the Nth marker in the
text always corresponds to the Nth argument.

The builder is pure. Its only configuration is the backend's marker style
and the column reported back by inserts (`RETURNING`), when supported.
"""
import logging
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple

from datastore.query import And, Compare, Condition, In, Not, Null, Or, Query
from datastore.sql import MARKER_STYLES, make_marker, quote_identifier
from datastore.sql import validate_identifier

logger = logging.getLogger(__name__)

__all__ = ['Statement', 'StatementBuilder']


class Statement(NamedTuple):
    """Parameterized SQL text and its positional arguments."""
    sql: str
    args: tuple


class _Buffer:
    """Accumulates SQL text and arguments in one pass."""

    def __init__(self, marker: str) -> None:
        self.marker = marker
        self.parts: list[str] = []
        self.args: list[Any] = []

    def write(self, text: str) -> '_Buffer':
        self.parts.append(text)
        return self

    def bind(self, value: Any) -> '_Buffer':
        """Append a marker and its argument together."""
        self.args.append(value)
        self.parts.append(make_marker(self.marker, len(self.args)))
        return self

    def bind_all(self, values: Sequence[Any], sep: str = ', ') -> '_Buffer':
        for i, value in enumerate(values):
            if i:
                self.write(sep)
            self.bind(value)
        return self

    def statement(self) -> Statement:
        return Statement(''.join(self.parts), tuple(self.args))


class StatementBuilder:
    """Build SELECT/INSERT/UPDATE/DELETE statements for one backend.

    Args:
        marker: '?' for unnumbered markers, '$' for numbered ($1, $2, ...),
            '%s' for the pyformat positional style
        returning: Column appended as `RETURNING <column>` to inserts, or None
            when the backend cannot report generated values
    """

    def __init__(self, marker: str = '?', returning: str | None = None) -> None:
        if marker not in MARKER_STYLES:
            raise ValueError(f'marker must be one of: {list(MARKER_STYLES)}')
        if returning is not None:
            validate_identifier(returning)
        self.marker = marker
        self.returning_column = returning

    def __repr__(self) -> str:
        return f'StatementBuilder(marker={self.marker!r}, returning={self.returning_column!r})'

    def returning(self, column: str) -> 'StatementBuilder':
        """Return a copy that reports `column` back from inserts."""
        return StatementBuilder(self.marker, column)

    def find(self, query: Query) -> Statement:
        """SELECT all columns of the query's collection.
        """
        buf = _Buffer(self.marker)
        buf.write(f'SELECT * FROM {quote_identifier(query.collection)}')
        self._where(buf, query.condition)

        if query.order_by:
            terms = ', '.join(f'{quote_identifier(name)} {direction}'
                              for name, direction in query.order_by)
            buf.write(f' ORDER BY {terms}')

        if query.limit is not None:
            buf.write(' LIMIT ').bind(query.limit)

        if query.offset is not None:
            buf.write(' OFFSET ').bind(query.offset)

        return buf.statement()

    def insert(self, collection: str, changes: Mapping[str, Any]) -> Statement:
        """Single-row INSERT; columns follow the insertion order of `changes`.
        """
        buf = _Buffer(self.marker)
        buf.write(f'INSERT INTO {self._table(collection)}')

        if changes:
            columns = ', '.join(self._column(field) for field in changes)
            buf.write(f' ({columns}) VALUES (').bind_all(list(changes.values())).write(')')
        else:
            buf.write(' DEFAULT VALUES')

        self._returning(buf)
        return buf.statement()

    def insert_all(self, collection: str, fields: Sequence[str],
                   all_changes: Sequence[Mapping[str, Any]]) -> Statement:
        """Multi-row INSERT with column order fixed by `fields`.

        A field missing from a row is bound as NULL. Keys not listed in
        `fields` are dropped.
        """
        if not fields:
            raise ValueError('insert_all requires at least one field')
        if not all_changes:
            raise ValueError('insert_all requires at least one row')

        known = set(fields)
        buf = _Buffer(self.marker)
        columns = ', '.join(self._column(field) for field in fields)
        buf.write(f'INSERT INTO {self._table(collection)} ({columns}) VALUES ')

        for i, changes in enumerate(all_changes):
            dropped = [key for key in changes if key not in known]
            if dropped:
                logger.debug(f'Row {i} dropped fields not in column list: {dropped}')
            if i:
                buf.write(', ')
            buf.write('(').bind_all([changes.get(field) for field in fields]).write(')')

        self._returning(buf)
        return buf.statement()

    def update(self, collection: str, changes: Mapping[str, Any],
               condition: Condition | None = None) -> Statement:
        """UPDATE with SET clauses from `changes`.

        An empty condition produces no WHERE clause and affects all rows.
        """
        if not changes:
            raise ValueError('update requires at least one change')

        buf = _Buffer(self.marker)
        buf.write(f'UPDATE {self._table(collection)} SET ')
        for i, (field, value) in enumerate(changes.items()):
            if i:
                buf.write(', ')
            buf.write(f'{self._column(field)} = ').bind(value)

        self._where(buf, condition)
        return buf.statement()

    def delete(self, collection: str, condition: Condition | None = None) -> Statement:
        """DELETE; an empty condition affects all rows.
        """
        buf = _Buffer(self.marker)
        buf.write(f'DELETE FROM {self._table(collection)}')
        self._where(buf, condition)
        return buf.statement()

    def condition(self, condition: Condition) -> Statement:
        """Render a condition on its own, as it would follow WHERE."""
        buf = _Buffer(self.marker)
        self._expression(buf, condition)
        return buf.statement()

    @staticmethod
    def _table(collection: str) -> str:
        return quote_identifier(validate_identifier(collection, dotted=True))

    @staticmethod
    def _column(field: str) -> str:
        return quote_identifier(validate_identifier(field))

    def _returning(self, buf: _Buffer) -> None:
        if self.returning_column:
            buf.write(f' RETURNING {quote_identifier(self.returning_column)}')

    def _where(self, buf: _Buffer, condition: Condition | None) -> None:
        if condition is None or condition.empty:
            return
        buf.write(' WHERE ')
        self._expression(buf, condition)

    def _expression(self, buf: _Buffer, cond: Condition) -> None:
        """Render one condition node, depth first, left to right."""
        if isinstance(cond, Compare):
            buf.write(f'{self._column(cond.field)} {cond.op} ').bind(cond.value)

        elif isinstance(cond, In):
            if not cond.values:
                buf.write('1=1' if cond.negate else '1=0')
                return
            op = 'NOT IN' if cond.negate else 'IN'
            buf.write(f'{self._column(cond.field)} {op} (').bind_all(cond.values).write(')')

        elif isinstance(cond, Null):
            op = 'IS NOT NULL' if cond.negate else 'IS NULL'
            buf.write(f'{self._column(cond.field)} {op}')

        elif isinstance(cond, (And, Or)):
            parts = [c for c in cond.conditions if not c.empty]
            if not parts:
                buf.write('1=1')
                return
            joiner = ' AND ' if isinstance(cond, And) else ' OR '
            buf.write('(')
            for i, part in enumerate(parts):
                if i:
                    buf.write(joiner)
                self._expression(buf, part)
            buf.write(')')

        elif isinstance(cond, Not):
            buf.write('NOT (')
            self._expression(buf, cond.condition)
            buf.write(')')

        else:
            raise TypeError(f'Unsupported condition: {cond!r}')
