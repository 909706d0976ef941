import json
import math
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

JSON_TYPES = frozenset({"json", "jsonb"})


def quote_literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def _array_element(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, list):
        return "{" + ",".join(_array_element(item) for item in value) + "}"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date, time)):
        text = value.isoformat()
    elif isinstance(value, (dict, list)):
        text = json.dumps(value)
    else:
        text = str(value)
    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_sql_literal(value: Any, data_type: str | None = None) -> str:
    """Render a fetched column value as a SQL literal for an INSERT statement."""
    if value is None:
        return "NULL"
    if (data_type or "").lower() in JSON_TYPES:
        # scalars too: a bare string or number is not a json literal
        return quote_literal(json.dumps(value, default=str))
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return quote_literal(str(value).replace("inf", "Infinity").replace("nan", "NaN"))
        return repr(value)
    if isinstance(value, Decimal):
        return str(value) if value.is_finite() else quote_literal(str(value))
    if isinstance(value, (datetime, date, time)):
        return quote_literal(value.isoformat())
    if isinstance(value, timedelta):
        return quote_literal(f"{value.total_seconds()} seconds")
    if isinstance(value, UUID):
        return quote_literal(str(value))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return quote_literal("\\x" + bytes(value).hex())
    if isinstance(value, list) and (data_type or "").upper() == "ARRAY":
        return quote_literal("{" + ",".join(_array_element(item) for item in value) + "}")
    if isinstance(value, (dict, list)):
        return quote_literal(json.dumps(value))
    return quote_literal(str(value))
