"""
Loading and validation of mapping database documents.
"""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validate

from flow_translate.exceptions import MappingDatabaseError
from flow_translate.mapping.table import MappingTable
from flow_translate.util.files import load_structured

logger = logging.getLogger(__name__)

PACKAGE_ROOT = Path(__file__).parent.parent
DEFAULT_MAPPINGS_FILE = Path(__file__).parent / "default_mappings.yaml"
SCHEMA_FILE = PACKAGE_ROOT / "schema/mapping-database.schema.json"


def validate_mapping_document(document: Any, file_path: str | None = None) -> None:
    """
    Validate a mapping database document against the bundled schema.

    Raises:
        MappingDatabaseError: If the document does not match the schema
    """
    if not isinstance(document, dict):
        raise MappingDatabaseError(f"expected a mapping, got {type(document).__name__}", file_path)

    schema = json.loads(SCHEMA_FILE.read_text())
    try:
        validate(instance=document, schema=schema)
    except ValidationError as e:
        location = ".".join(str(p) for p in e.path) or "<root>"
        raise MappingDatabaseError(f"{e.message} (at {location})", file_path) from e


def load_mapping_table(path: str | Path | None = None) -> MappingTable:
    """
    Load a mapping database from JSON or YAML.

    Args:
        path: Mapping file; the bundled default table when omitted

    Returns:
        Immutable MappingTable

    Raises:
        MappingDatabaseError: If the file cannot be read or is invalid
    """
    mapping_file = Path(path) if path is not None else DEFAULT_MAPPINGS_FILE
    try:
        document = load_structured(mapping_file)
    except FileNotFoundError as e:
        raise MappingDatabaseError("file not found", str(mapping_file)) from e
    except (ValueError, yaml.YAMLError, OSError) as e:
        raise MappingDatabaseError(str(e), str(mapping_file)) from e

    validate_mapping_document(document, str(mapping_file))
    table = MappingTable.from_document(document)
    logger.info(f"Loaded {len(table)} mappings (version {table.version}) from {mapping_file}")
    return table


@lru_cache(maxsize=1)
def default_mapping_table() -> MappingTable:
    """The bundled mapping table, loaded once per process."""
    return load_mapping_table(DEFAULT_MAPPINGS_FILE)
