"""Unit tests for SQL text helpers.
"""
import pytest
from datastore.sql import count_placeholders, make_marker, quote_identifier
from datastore.sql import standardize_placeholders, validate_identifier


@pytest.mark.parametrize(('name', 'dotted', 'valid'), [
    ('users', False, True),
    ('_private9', False, True),
    ('public.users', True, True),
    ('public.users', False, False),
    ('9users', False, False),
    ('users"', False, False),
    ('', False, False),
    ('a..b', True, False),
])
def test_validate_identifier(name, dotted, valid):
    if valid:
        assert validate_identifier(name, dotted=dotted) == name
    else:
        with pytest.raises(ValueError):
            validate_identifier(name, dotted=dotted)


def test_quote_identifier():
    assert quote_identifier('users') == '"users"'
    assert quote_identifier('public.users') == '"public"."users"'


def test_make_marker():
    assert make_marker('?', 3) == '?'
    assert make_marker('$', 3) == '$3'
    assert make_marker('%s', 3) == '%s'
    with pytest.raises(ValueError):
        make_marker('@', 1)


class TestStandardizePlaceholders:

    def test_numbered_to_percent(self):
        sql = 'SELECT * FROM t WHERE a = $1 AND b = $2'
        assert standardize_placeholders(sql, '%s') == 'SELECT * FROM t WHERE a = %s AND b = %s'

    def test_qmark_to_numbered(self):
        assert standardize_placeholders('a = ? AND b = ?', '$') == 'a = $1 AND b = $2'

    def test_quoted_sections_untouched(self):
        sql = "SELECT '?', \"$1\" FROM t WHERE a = ?"
        assert standardize_placeholders(sql, '$') == "SELECT '?', \"$1\" FROM t WHERE a = $1"

    def test_percent_doubled_for_pyformat(self):
        sql = "SELECT * FROM t WHERE name LIKE 'A%' AND pct > 5 % 2 AND a = $1"
        assert standardize_placeholders(sql, '%s') == (
            "SELECT * FROM t WHERE name LIKE 'A%%' AND pct > 5 %% 2 AND a = %s"
        )

    def test_out_of_order_numbered(self):
        with pytest.raises(ValueError):
            standardize_placeholders('a = $2 AND b = $1', '%s')


def test_count_placeholders():
    assert count_placeholders("a = ? AND b = '?' AND c = $1 AND d = %s") == 3
