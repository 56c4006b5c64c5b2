"""JSON Schema validation for proofs and keys.

Provides:
- A registry of the package schemas so ``$ref`` into ``common.schema.json``
  resolves without network access
- Cached validators per schema
- Error messages carrying the JSON path of each failure
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List

from jsonschema import Draft202012Validator
from referencing import Registry, Resource
from referencing.jsonschema import DRAFT202012

SCHEMAS_DIR = Path(__file__).resolve().parent / "schemas"
SCHEMA_BASE_URI = "https://schemas.momentum.inc/zkpsbt/"


def schema_path(name: str) -> Path:
    """Path of ``<name>.schema.json`` inside the package."""
    return SCHEMAS_DIR / f"{name}.schema.json"


@lru_cache(maxsize=None)
def load_schema(name: str) -> Dict[str, Any]:
    with open(schema_path(name), encoding="utf-8") as f:
        return json.load(f)


@lru_cache(maxsize=1)
def _schema_registry() -> Registry:
    """Registry of every package schema, keyed by ``$id``.

    Schemas without an ``$id`` are registered under a URI derived from
    their file name.
    """
    resources = []
    for path in sorted(SCHEMAS_DIR.glob("*.schema.json")):
        schema = load_schema(path.name[: -len(".schema.json")])
        schema_id = schema.get("$id") or f"{SCHEMA_BASE_URI}{path.name}"
        resource = Resource.from_contents(schema, default_specification=DRAFT202012)
        resources.append((schema_id, resource))
    return Registry().with_resources(resources)


@lru_cache(maxsize=None)
def schema_validator(name: str) -> Draft202012Validator:
    """Create a validator for a package schema.

    Args:
        name: Schema name without the ``.schema.json`` suffix

    Returns:
        A configured Draft202012Validator
    """
    return Draft202012Validator(load_schema(name), registry=_schema_registry())


def validate_against_schema(obj: Any, name: str) -> List[str]:
    """Validate an object against a package schema.

    Returns:
        List of validation error messages (empty if valid)
    """
    return [
        f"{error.json_path}: {error.message}"
        for error in schema_validator(name).iter_errors(obj)
    ]
