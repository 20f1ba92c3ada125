"""
Dotted-path access into nested parameter dictionaries.
"""

from typing import Any

_MISSING = object()


def split_path(path: str) -> list[str]:
    return [part for part in path.split(".") if part]


def get_path(data: dict[str, Any], path: str) -> tuple[bool, Any]:
    """
    Look up ``a.b.c`` in nested dicts.

    Returns:
        (found, value)
    """
    current: Any = data
    for part in split_path(path):
        if not isinstance(current, dict):
            return False, None
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return False, None
    return True, current


def set_path(data: dict[str, Any], path: str, value: Any) -> None:
    """Set ``a.b.c``, creating intermediate dicts (replacing non-dict values)."""
    parts = split_path(path)
    current = data
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


def pop_path(data: dict[str, Any], path: str) -> None:
    """Remove ``a.b.c`` and any parents left empty by the removal."""
    parts = split_path(path)
    trail = []
    current: Any = data
    for part in parts[:-1]:
        if not isinstance(current, dict) or part not in current:
            return
        trail.append((current, part))
        current = current[part]
    if isinstance(current, dict):
        current.pop(parts[-1], None)
    for parent, key in reversed(trail):
        if parent[key] == {}:
            del parent[key]
        else:
            break


def join_path(parent: str, key: Any) -> str:
    """Extend a report path: ``a.b`` for dict keys, ``a[0]`` for list indexes."""
    if isinstance(key, int):
        return f"{parent}[{key}]"
    return f"{parent}.{key}" if parent else str(key)
