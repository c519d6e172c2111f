"""Validate a catalog index against its JSON Schema."""

import json
from pathlib import Path

import jsonschema

INDEX_SCHEMA_PATH = Path(__file__).parent.parent / "schemas" / "catalog-index.schema.json"
INDEX_SCHEMA = json.loads(INDEX_SCHEMA_PATH.read_text(encoding="utf-8"))

_VALIDATOR = jsonschema.Draft7Validator(INDEX_SCHEMA)


def validate_index(index: dict) -> list[str]:
    """Validate an index.yaml document.

    Returns one message per violation, ordered by location; an empty list
    means the index can be handed to the signing step.
    """
    errors = sorted(_VALIDATOR.iter_errors(index), key=lambda e: [str(p) for p in e.absolute_path])
    return [_describe(error) for error in errors]


def _describe(error: jsonschema.ValidationError) -> str:
    location = " -> ".join(str(p) for p in error.absolute_path) or "root"
    return f"{location}: {error.message}"
