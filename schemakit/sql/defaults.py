import re

from schemakit.models.column_types import ColumnType, type_of

SAFE_FUNCTIONS = frozenset({"now()", "current_date", "gen_random_uuid()"})

_QUOTED_DEFAULT = re.compile(r"^'((?:[^']|'')*)'::[\w\s\"]+(?:\[\])?$", re.DOTALL)
_CAST_DEFAULT = re.compile(r"^(.+?)::[\w\s\"]+(?:\[\])?$", re.DOTALL)


def dollar_quote(value: str) -> str:
    """Wrap a value in a dollar-quoted literal whose tag cannot close early.

    The trailing "$" covers values ending in "$<tag>", which would otherwise
    merge with the closing delimiter.
    """
    tag = "val"
    while f"${tag}$" in f"{value}$":
        tag += "_"
    return f"${tag}${value}${tag}$"


def encode_default(raw: str | None, column_type: ColumnType, is_nullable: bool) -> str | None:
    """Resolve a column default into a SQL expression, or None for no default."""
    value = raw.strip() if raw is not None else ""
    if not value:
        if is_nullable:
            return None
        value = type_of(column_type).default_value or ""
        if not value:
            return None

    if value.lower() in SAFE_FUNCTIONS:
        return value.lower()
    return dollar_quote(value)


def format_default(raw: str | None, column_type: ColumnType, is_nullable: bool) -> str:
    encoded = encode_default(raw, column_type, is_nullable)
    return f"DEFAULT {encoded}" if encoded is not None else ""


def parse_default(default_text: str | None) -> str | None:
    """Turn a stored column default back into the value a user would type."""
    if default_text is None:
        return None
    quoted = _QUOTED_DEFAULT.match(default_text)
    if quoted:
        return quoted.group(1).replace("''", "'")
    cast = _CAST_DEFAULT.match(default_text)
    if cast:
        return cast.group(1)
    return default_text
