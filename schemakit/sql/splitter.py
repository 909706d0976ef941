from sqlglot import tokenize
from sqlglot.errors import TokenError
from sqlglot.tokens import TokenType

from schemakit.core.errors import SqlImportError


def split_statements(sql_text: str) -> list[str]:
    """Split a SQL script into statements using the postgres tokenizer.

    Semicolons inside string literals, quoted identifiers, dollar-quoted
    bodies and comments do not end a statement. Segments made only of
    comments are dropped.
    """
    if not sql_text or not sql_text.strip():
        raise SqlImportError("SQL content is empty.")

    try:
        tokens = tokenize(sql_text, read="postgres")
    except TokenError as exc:
        raise SqlImportError(f"Failed to parse SQL file: {exc}") from exc

    statements: list[str] = []
    start: int | None = None
    end = 0
    for token in tokens:
        if token.token_type == TokenType.SEMICOLON:
            if start is not None:
                statements.append(sql_text[start : end + 1].strip())
            start = None
            continue
        if start is None:
            start = token.start
        end = token.end

    if start is not None:
        statements.append(sql_text[start : end + 1].strip())
    return statements
