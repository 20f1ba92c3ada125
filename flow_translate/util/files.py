"""
File utility functions.
"""

import json
from pathlib import Path
from typing import Any

import yaml


def read_text(path: str | Path) -> str:
    """Read text file content."""
    return Path(path).read_text(encoding="utf-8")


def write_text(path: str | Path, content: str) -> None:
    """Write text to file, creating parent directories if needed."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(content, encoding="utf-8")


def read_json(path: str | Path) -> Any:
    """Parse a JSON file."""
    return json.loads(read_text(path))


def write_json(path: str | Path, data: Any) -> None:
    """Write data as indented JSON, creating parent directories if needed."""
    write_text(path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")


def load_structured(path: str | Path) -> Any:
    """
    Load a JSON or YAML document, chosen by file extension.

    Args:
        path: File ending in .json, .yaml or .yml

    Returns:
        Parsed document
    """
    p = Path(path)
    if p.suffix.lower() == ".json":
        return read_json(p)
    return yaml.safe_load(read_text(p))
