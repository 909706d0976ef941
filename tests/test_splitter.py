import pytest
from schemakit.core.errors import SqlImportError
from schemakit.sql.splitter import split_statements


def test_splits_on_top_level_semicolons() -> None:
    script = "CREATE TABLE a (id int);\nINSERT INTO a VALUES (1);\nSELECT * FROM a"
    assert split_statements(script) == [
        "CREATE TABLE a (id int)",
        "INSERT INTO a VALUES (1)",
        "SELECT * FROM a",
    ]


def test_semicolons_inside_literals_do_not_split() -> None:
    script = (
        "INSERT INTO notes (body) VALUES ('one; two');\n"
        'INSERT INTO "odd;name" (body) VALUES (\'it\'\'s; fine\');'
    )
    statements = split_statements(script)
    assert len(statements) == 2
    assert statements[0] == "INSERT INTO notes (body) VALUES ('one; two')"
    assert statements[1].startswith('INSERT INTO "odd;name"')


def test_dollar_quoted_function_body_stays_whole() -> None:
    script = (
        "CREATE OR REPLACE FUNCTION touch() RETURNS trigger AS $$\n"
        "BEGIN\n"
        "  NEW.updated_at = now();\n"
        "  RETURN NEW;\n"
        "END;\n"
        "$$ LANGUAGE plpgsql;\n"
        "SELECT 1;"
    )
    statements = split_statements(script)
    assert len(statements) == 2
    assert statements[0].endswith("$$ LANGUAGE plpgsql")
    assert "RETURN NEW;" in statements[0]
    assert statements[1] == "SELECT 1"


def test_comments_are_not_statements() -> None:
    script = "-- header; with a semicolon\n/* block; comment */\nSELECT 1;\n-- trailing"
    assert split_statements(script) == ["SELECT 1"]


def test_comment_only_script_yields_nothing() -> None:
    assert split_statements("-- nothing to run here;\n") == []


@pytest.mark.parametrize("script", ["", "   \n\t"])
def test_empty_script_is_rejected(script: str) -> None:
    with pytest.raises(SqlImportError) as exc:
        split_statements(script)
    assert exc.value.code == "IMPORT_ERROR"
