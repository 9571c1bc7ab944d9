"""
Query descriptions and condition trees.

A `Query` names the target collection (table), an optional condition, and
optional ordering and paging. It is a plain value: building or combining
queries never touches a connection.

Examples
    from datastore.query import Query, eq, gt, in_

    q = Query('users').where(eq('active', True), gt('age', 18))
    q = q.sort('-created_at', 'id').slice(10, offset=20)
    q = Query('users', in_('id', [1, 2, 3]) | eq('admin', True))
"""
import dataclasses
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from datastore.sql import validate_identifier

from libb import isiterable

__all__ = [
    'Query',
    'Condition',
    'Compare',
    'In',
    'Null',
    'And',
    'Or',
    'Not',
    'eq',
    'ne',
    'lt',
    'lte',
    'gt',
    'gte',
    'like',
    'in_',
    'not_in',
    'is_null',
    'not_null',
    'and_',
    'or_',
    'not_',
]

COMPARISON_OPERATORS = ('=', '<>', '<', '<=', '>', '>=', 'LIKE')
OPERATOR_ALIASES = {'!=': '<>'}


class Condition:
    """Base class for condition tree nodes.

    Conditions combine with `&` (and), `|` (or) and `~` (not).
    """

    @property
    def empty(self) -> bool:
        return False

    def __and__(self, other: 'Condition') -> 'Condition':
        return and_(self, other)

    def __or__(self, other: 'Condition') -> 'Condition':
        return or_(self, other)

    def __invert__(self) -> 'Condition':
        return not_(self)


@dataclass(frozen=True)
class Compare(Condition):
    """`field <op> value`; `!=` is stored as `<>`."""
    op: str
    field: str
    value: Any

    def __post_init__(self):
        if self.op in OPERATOR_ALIASES:
            object.__setattr__(self, 'op', OPERATOR_ALIASES[self.op])
        if self.op not in COMPARISON_OPERATORS:
            raise ValueError(f'Unsupported operator: {self.op}')
        validate_identifier(self.field)


@dataclass(frozen=True)
class In(Condition):
    """`field IN (values...)`, or NOT IN when negated."""
    field: str
    values: tuple
    negate: bool = False

    def __post_init__(self):
        validate_identifier(self.field)
        object.__setattr__(self, 'values', tuple(self.values))


@dataclass(frozen=True)
class Null(Condition):
    """`field IS NULL`, or IS NOT NULL when negated."""
    field: str
    negate: bool = False

    def __post_init__(self):
        validate_identifier(self.field)


@dataclass(frozen=True)
class And(Condition):
    conditions: tuple = ()

    @property
    def empty(self) -> bool:
        return not self.conditions


@dataclass(frozen=True)
class Or(Condition):
    conditions: tuple = ()

    @property
    def empty(self) -> bool:
        return not self.conditions


@dataclass(frozen=True)
class Not(Condition):
    condition: Condition

    @property
    def empty(self) -> bool:
        return self.condition.empty


def eq(field: str, value: Any) -> Compare:
    return Compare('=', field, value)


def ne(field: str, value: Any) -> Compare:
    return Compare('<>', field, value)


def lt(field: str, value: Any) -> Compare:
    return Compare('<', field, value)


def lte(field: str, value: Any) -> Compare:
    return Compare('<=', field, value)


def gt(field: str, value: Any) -> Compare:
    return Compare('>', field, value)


def gte(field: str, value: Any) -> Compare:
    return Compare('>=', field, value)


def like(field: str, pattern: str) -> Compare:
    return Compare('LIKE', field, pattern)


def in_(field: str, values: Iterable[Any]) -> In:
    if isinstance(values, str) or not isiterable(values):
        raise TypeError(f'IN values for {field} must be iterable')
    return In(field, tuple(values))


def not_in(field: str, values: Iterable[Any]) -> In:
    if isinstance(values, str) or not isiterable(values):
        raise TypeError(f'NOT IN values for {field} must be iterable')
    return In(field, tuple(values), negate=True)


def is_null(field: str) -> Null:
    return Null(field)


def not_null(field: str) -> Null:
    return Null(field, negate=True)


def _combine(cls: type, conditions: tuple) -> Condition:
    """Flatten nested nodes of the same kind and drop empty conditions."""
    flat = []
    for cond in conditions:
        if cond is None or cond.empty:
            continue
        if isinstance(cond, cls):
            flat.extend(cond.conditions)
        else:
            flat.append(cond)
    if len(flat) == 1:
        return flat[0]
    return cls(tuple(flat))


def and_(*conditions: Condition) -> Condition:
    """Conjunction; empty when no non-empty conditions are given."""
    return _combine(And, conditions)


def or_(*conditions: Condition) -> Condition:
    """Disjunction; empty when no non-empty conditions are given."""
    return _combine(Or, conditions)


def not_(condition: Condition) -> Condition:
    """Negation; negating an empty condition stays empty."""
    if condition.empty:
        return condition
    if isinstance(condition, Not):
        return condition.condition
    return Not(condition)


def _order_term(term: str | tuple[str, str]) -> tuple[str, str]:
    """Normalize `'-name'`, `'name'` or `('name', 'desc')` to `(name, DIR)`."""
    if isinstance(term, str):
        if term.startswith('-'):
            return validate_identifier(term[1:]), 'DESC'
        return validate_identifier(term), 'ASC'
    name, direction = term
    direction = direction.upper()
    if direction not in {'ASC', 'DESC'}:
        raise ValueError(f'Invalid sort direction: {direction}')
    return validate_identifier(name), direction


@dataclass(frozen=True)
class Query:
    """Description of a read or write against one collection.
    """
    collection: str
    condition: Condition | None = None
    order_by: tuple = ()
    limit: int | None = None
    offset: int | None = None

    def __post_init__(self):
        validate_identifier(self.collection, dotted=True)
        object.__setattr__(self, 'order_by', tuple(_order_term(t) for t in self.order_by))
        for name in ('limit', 'offset'):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 0):
                raise ValueError(f'{name} must be a non-negative integer, got {value!r}')

    def where(self, *conditions: Condition) -> 'Query':
        """Return a copy with `conditions` and-ed onto the current condition."""
        return dataclasses.replace(self, condition=and_(self.condition, *conditions))

    def sort(self, *terms: str | tuple[str, str]) -> 'Query':
        """Return a copy with ordering terms appended."""
        return dataclasses.replace(self, order_by=self.order_by + tuple(terms))

    def slice(self, limit: int | None, offset: int | None = None) -> 'Query':
        """Return a copy with the given limit and offset."""
        return dataclasses.replace(self, limit=limit, offset=offset)
