import re

from schemakit.core.errors import InvalidInputError

MAX_IDENTIFIER_LENGTH = 63
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# PostgreSQL keywords listed as "reserved" (not usable as bare identifiers).
RESERVED_KEYWORDS = frozenset(
    {
        "all", "analyse", "analyze", "and", "any", "array", "as", "asc", "asymmetric",
        "authorization", "binary", "both", "case", "cast", "check", "collate", "collation",
        "column", "concurrently", "constraint", "create", "cross", "current_catalog",
        "current_date", "current_role", "current_schema", "current_time",
        "current_timestamp", "current_user", "default", "deferrable", "desc", "distinct",
        "do", "else", "end", "except", "false", "fetch", "for", "foreign", "freeze", "from",
        "full", "grant", "group", "having", "ilike", "in", "initially", "inner", "intersect",
        "into", "is", "isnull", "join", "lateral", "leading", "left", "like", "limit",
        "localtime", "localtimestamp", "natural", "not", "notnull", "null", "offset", "on",
        "only", "or", "order", "outer", "overlaps", "placing", "primary", "references",
        "returning", "right", "select", "session_user", "similar", "some", "symmetric",
        "system_user", "table", "tablesample", "then", "to", "trailing", "true", "union",
        "unique", "user", "using", "variadic", "verbose", "when", "where", "window", "with",
    }
)


def validate_identifier(name: str | None, kind: str = "identifier") -> str:
    """Check a table or column name against the safe identifier grammar.

    Names end up inside generated DDL, so anything outside
    ``[A-Za-z_][A-Za-z0-9_]*`` (63 characters at most, no reserved keyword)
    is rejected before it gets near a statement.
    """
    if name is None or not name.strip():
        raise InvalidInputError(f"Invalid {kind} name: cannot be empty.", details={"kind": kind})
    if len(name) > MAX_IDENTIFIER_LENGTH:
        raise InvalidInputError(
            f"Invalid {kind} name: must be at most {MAX_IDENTIFIER_LENGTH} characters.",
            details={"kind": kind, "name": name},
        )
    if not IDENTIFIER_PATTERN.match(name):
        raise InvalidInputError(
            f"Invalid {kind} name: use letters, digits and underscores, not starting with a digit.",
            details={"kind": kind, "name": name},
            next_actions="Rename it to something like 'my_table' or 'order_items'.",
        )
    if name.lower() in RESERVED_KEYWORDS:
        raise InvalidInputError(
            f"Invalid {kind} name: '{name}' is a reserved SQL keyword.",
            details={"kind": kind, "name": name},
        )
    return name


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'
