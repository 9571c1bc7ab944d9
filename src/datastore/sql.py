"""
SQL text helpers shared by the statement builder and the strategies.

- `validate_identifier()` / `quote_identifier()` - table and column names
- `make_marker()` - placeholder text for a marker style and position
- `standardize_placeholders()` - translate builder markers to a driver paramstyle
- `count_placeholders()` - count markers outside quoted sections
"""
import re

MARKER_STYLES = ('?', '$', '%s')

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

# Quoted sections are matched first so markers inside them are left alone
_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*')
    |(?P<ident>"(?:[^"]|"")*")
    |(?P<numbered>\$\d+)
    |(?P<percent_s>%s)
    |(?P<qmark>\?)
    |(?P<percent>%)
""", re.VERBOSE)


def validate_identifier(name: str, dotted: bool = False) -> str:
    """Check that `name` is a plain SQL identifier.

    Parameters
        name: Table or column name
        dotted: Allow a `schema.table` qualified name

    Raises
        ValueError: If the name is not a valid identifier
    """
    if not isinstance(name, str):
        raise ValueError(f'Invalid identifier: {name!r}')
    parts = name.split('.') if dotted else [name]
    if not parts or not all(_IDENTIFIER.match(p) for p in parts):
        raise ValueError(f'Invalid identifier: {name!r}')
    return name


def quote_identifier(identifier: str) -> str:
    """Quote a table or column name, quoting each part of a dotted name.

    Parameters
        identifier: Table or column name

    Returns
        Quoted identifier
    """
    return '.'.join('"' + part.replace('"', '""') + '"' for part in identifier.split('.'))


def make_marker(style: str, position: int) -> str:
    """Render the marker for the 1-based `position` in the given style.
    """
    if style == '$':
        return f'${position}'
    if style in {'?', '%s'}:
        return style
    raise ValueError(f'Unknown marker style: {style!r}. Available: {list(MARKER_STYLES)}')


def standardize_placeholders(sql: str, style: str = '%s') -> str:
    """Convert `?`, `%s` or `$n` markers to the target style.

    Numbered markers must appear in ascending order starting at `$1`, which
    is how the statement builder emits them; otherwise positional drivers
    would bind the wrong values.

    Parameters
        sql: SQL text with markers
        style: Target marker style

    Returns
        SQL text with markers in the target style. Bare percent signs are
        doubled when targeting `%s` so the driver does not read them as markers.
    """
    result = []
    position = 0
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        result.append(sql[last_end:start])
        last_end = end
        text = match.group(0)

        if match.group('string') or match.group('ident'):
            if style == '%s':
                text = text.replace('%', '%%')
            result.append(text)
        elif match.group('percent'):
            result.append('%%' if style == '%s' else '%')
        else:
            position += 1
            if match.group('numbered') and int(text[1:]) != position:
                raise ValueError(f'Out of order marker {text} at position {position}')
            result.append(make_marker(style, position))

    result.append(sql[last_end:])
    return ''.join(result)


def count_placeholders(sql: str) -> int:
    """Count markers outside quoted sections."""
    return sum(
        1 for m in _TOKENIZE.finditer(sql)
        if m.group('numbered') or m.group('percent_s') or m.group('qmark')
    )
