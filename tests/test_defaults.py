import pytest
from schemakit.models.column_types import ColumnType
from schemakit.sql.defaults import dollar_quote, encode_default, format_default, parse_default


def test_encode_default_passes_through_safe_functions() -> None:
    assert encode_default("NOW()", ColumnType.DATETIME, True) == "now()"
    assert encode_default("gen_random_uuid()", ColumnType.UUID, True) == "gen_random_uuid()"
    assert encode_default(" current_date ", ColumnType.DATE, True) == "current_date"


def test_encode_default_dollar_quotes_everything_else() -> None:
    assert encode_default("hello", ColumnType.STRING, True) == "$val$hello$val$"
    assert encode_default("42", ColumnType.INTEGER, True) == "$val$42$val$"


@pytest.mark.parametrize(
    "raw",
    [
        "'); DROP TABLE users; --",
        "O'Brien",
        "$$ nested $$",
        "$val$ breakout $val$",
        "price in $val",
        "ends with $val_",
        "pg_sleep(10)",
    ],
)
def test_encode_default_keeps_hostile_values_inside_one_literal(raw: str) -> None:
    encoded = encode_default(raw, ColumnType.STRING, True)
    assert encoded is not None
    tag = encoded[: encoded.index("$", 1) + 1]
    assert encoded.startswith(tag)
    assert encoded.endswith(tag)
    assert encoded[len(tag) : -len(tag)] == raw
    assert tag not in raw
    # the first closing delimiter after the opener is the final one
    assert encoded.index(tag, len(tag)) == len(encoded) - len(tag)


def test_dollar_quote_extends_tag_until_it_does_not_collide() -> None:
    assert dollar_quote("a $val$ b") == "$val_$a $val$ b$val_$"
    assert dollar_quote("$val$ and $val_$") == "$val__$$val$ and $val_$$val__$"
    assert dollar_quote("price in $val") == "$val_$price in $val$val_$"


def test_empty_default_on_nullable_column_means_no_default() -> None:
    assert encode_default(None, ColumnType.BOOLEAN, True) is None
    assert encode_default("   ", ColumnType.STRING, True) is None
    assert format_default("", ColumnType.STRING, True) == ""


def test_empty_default_on_required_column_uses_type_default() -> None:
    assert encode_default(None, ColumnType.UUID, False) == "gen_random_uuid()"
    assert encode_default(None, ColumnType.DATETIME, False) == "now()"
    assert encode_default("", ColumnType.BOOLEAN, False) == "$val$false$val$"
    assert encode_default(None, ColumnType.STRING, False) is None


def test_format_default_prefixes_keyword() -> None:
    assert format_default("now()", ColumnType.DATETIME, True) == "DEFAULT now()"


@pytest.mark.parametrize(
    ("stored", "expected"),
    [
        ("'hello'::text", "hello"),
        ("'O''Brien'::text", "O'Brien"),
        ("'2024-01-01'::date", "2024-01-01"),
        ("'{}'::jsonb", "{}"),
        ("'it''s $val$ 5'::text", "it's $val$ 5"),
        ("'price in $val'::text", "price in $val"),
        ("'a'::character varying", "a"),
        ("now()", "now()"),
        ("gen_random_uuid()", "gen_random_uuid()"),
        ("42", "42"),
        (None, None),
    ],
)
def test_parse_default_recovers_user_value(stored: str | None, expected: str | None) -> None:
    assert parse_default(stored) == expected
