"""Turns uploaded CSV or JSON files into row records for bulk upsert."""

import csv
import io
import json
from pathlib import PurePath
from typing import Any

from psycopg.types.json import Jsonb

from schemakit.core.errors import InvalidInputError

SUPPORTED_EXTENSIONS = frozenset({".csv", ".json"})


def parse_records(content: bytes, filename: str) -> list[dict[str, Any]]:
    extension = PurePath(filename).suffix.lower()
    if extension not in SUPPORTED_EXTENSIONS:
        raise InvalidInputError(
            "Only .csv and .json files are supported for bulk upsert.",
            details={"filename": filename},
        )
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise InvalidInputError(
            "Upload must be UTF-8 encoded text.",
            details={"filename": filename},
        ) from exc
    if not text.strip():
        raise InvalidInputError("Uploaded file is empty.", details={"filename": filename})

    if extension == ".csv":
        records = _parse_csv(text, filename)
    else:
        records = _parse_json(text, filename)

    if not records:
        raise InvalidInputError("No records found in the uploaded file.", details={"filename": filename})
    if not records[0]:
        raise InvalidInputError("No columns found in the uploaded records.", details={"filename": filename})
    return [{key: normalize_value(value) for key, value in record.items()} for record in records]


def normalize_value(value: Any) -> Any:
    if isinstance(value, str) and value == "":
        return None
    if isinstance(value, (dict, list)):
        return Jsonb(value)
    return value


def _parse_csv(text: str, filename: str) -> list[dict[str, Any]]:
    reader = csv.DictReader(io.StringIO(text, newline=""))
    try:
        header = reader.fieldnames
        if not header or any(not (name or "").strip() for name in header):
            raise InvalidInputError(
                "CSV file must start with a header row naming every column.",
                details={"filename": filename},
            )
        records: list[dict[str, Any]] = []
        for line_number, row in enumerate(reader, start=2):
            # DictReader files surplus cells under the None key
            if None in row:
                raise InvalidInputError(
                    f"CSV row {line_number} has more values than the header.",
                    details={"filename": filename, "line": line_number},
                )
            records.append({name.strip(): value for name, value in row.items()})
    except csv.Error as exc:
        raise InvalidInputError(
            f"Could not parse CSV file: {exc}",
            details={"filename": filename},
        ) from exc
    return records


def _parse_json(text: str, filename: str) -> list[dict[str, Any]]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidInputError(
            f"Could not parse JSON file: {exc.msg}",
            details={"filename": filename, "line": exc.lineno},
        ) from exc

    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise InvalidInputError(
            "JSON file must contain an object or an array of objects.",
            details={"filename": filename},
        )
    return payload
