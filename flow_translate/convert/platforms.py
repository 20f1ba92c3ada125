"""
Platform detection, validation and reading of source documents.

n8n workflows keep nodes in a flat ``nodes`` list and edges in a
``connections`` object keyed by node name. Make scenarios keep modules in a
nested ``flow`` list where order is the edge relation and router modules
branch into ``routes``. Both are read into the same Node/Connection graph.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator

from flow_translate.exceptions import InvalidPlatformError
from flow_translate.models.workflow import Connection, Node, Platform

logger = logging.getLogger(__name__)

PACKAGE_ROOT = Path(__file__).parent.parent

SCHEMA_FILES = {
    Platform.N8N: PACKAGE_ROOT / "schema/n8n-workflow.schema.json",
    Platform.MAKE: PACKAGE_ROOT / "schema/make-workflow.schema.json",
}

AUTO = "auto"
CREDENTIAL_PREFIX = "__IMTCONN__"
NODE_SPACING = 200

DEFAULT_NAMES = {
    Platform.N8N: "Converted from Make",
    Platform.MAKE: "Converted from n8n",
}


@dataclass
class SourceGraph:
    """Normalized source workflow."""

    name: str | None
    nodes: list[Node] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)


def parse_platform(value: str | Platform) -> Platform:
    """
    Turn a platform name into a Platform.

    Raises:
        InvalidPlatformError: If the name is not a supported platform
    """
    if isinstance(value, Platform):
        return value
    try:
        return Platform(str(value).strip().lower())
    except ValueError:
        raise InvalidPlatformError(str(value)) from None


def detect_platform(document: Any) -> Platform | None:
    """
    Guess the platform of a workflow document from its shape.

    Returns:
        Platform.MAKE for documents with a ``flow`` list (or the legacy
        ``blueprint``/``modules`` pair), Platform.N8N for documents with a
        ``nodes`` list and ``connections`` object, otherwise None
    """
    if not isinstance(document, dict):
        return None
    if isinstance(document.get("flow"), list):
        return Platform.MAKE
    if "blueprint" in document and isinstance(document.get("modules"), list):
        return Platform.MAKE
    if isinstance(document.get("nodes"), list) and isinstance(document.get("connections"), dict):
        return Platform.N8N
    return None


def resolve_platforms(
    document: Any, source: str | Platform, target: str | Platform
) -> tuple[Platform, Platform]:
    """
    Resolve the conversion direction.

    ``source="auto"`` detects the platform; when detection fails the
    opposite of the target is assumed and validation reports the problem.

    Raises:
        InvalidPlatformError: Unknown platform names or identical platforms
    """
    target_platform = parse_platform(target)
    if isinstance(source, str) and source.strip().lower() == AUTO:
        source_platform = detect_platform(document)
        if source_platform is None:
            source_platform = Platform.N8N if target_platform is Platform.MAKE else Platform.MAKE
            logger.debug(f"Could not detect platform, assuming {source_platform}")
    else:
        source_platform = parse_platform(source)

    if source_platform is target_platform:
        raise InvalidPlatformError(
            source_platform.value,
            f"Source and target platform are both {source_platform.value}",
        )
    return source_platform, target_platform


def normalize_legacy_make(document: dict[str, Any]) -> dict[str, Any]:
    """Rewrite the legacy ``{blueprint, modules}`` layout as ``{name, flow}``."""
    if "flow" in document or "modules" not in document or "blueprint" not in document:
        return document
    blueprint = document.get("blueprint") or {}
    name = blueprint.get("name") if isinstance(blueprint, dict) else None
    return {"name": name or "Legacy Workflow", "flow": document["modules"]}


def validate_document(document: Any, platform: Platform) -> list[str]:
    """
    Check a document against the platform's JSON schema.

    Returns:
        Human readable errors, empty when the document is valid
    """
    if not isinstance(document, dict):
        return [f"expected a JSON object, got {type(document).__name__}"]

    schema = json.loads(SCHEMA_FILES[platform].read_text())
    validator = Draft202012Validator(schema)
    errors = []
    for error in sorted(validator.iter_errors(document), key=lambda e: list(e.path)):
        location = ".".join(str(p) for p in error.path) or "<root>"
        errors.append(f"{error.message} (at {location})")
    return errors


def empty_workflow(platform: Platform, name: str | None = None) -> dict[str, Any]:
    """Skeleton document of the target platform with no nodes."""
    name = name or DEFAULT_NAMES[platform]
    if platform is Platform.N8N:
        return {
            "name": name,
            "nodes": [],
            "connections": {},
            "active": False,
            "settings": {"executionOrder": "v1"},
        }
    return {
        "name": name,
        "flow": [],
        "metadata": {
            "instant": False,
            "version": 1,
            "scenario": {
                "roundtrips": 1,
                "maxErrors": 3,
                "autoCommit": True,
                "autoCommitTriggerLast": True,
                "sequential": False,
                "confidential": False,
                "dataloss": False,
                "dlq": False,
            },
            "designer": {"orphans": []},
        },
    }


class _IdSource:
    """Generated ids for nodes that lack one."""

    def __init__(self):
        self.counter = 0
        self.used: set[str] = set()

    def take(self, raw: Any) -> str:
        if raw is not None and raw != "" and str(raw) not in self.used:
            node_id = str(raw)
        else:
            node_id = self.generate()
        self.used.add(node_id)
        return node_id

    def generate(self) -> str:
        while True:
            self.counter += 1
            candidate = f"node-{self.counter}"
            if candidate not in self.used:
                return candidate


def _as_dict(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, dict):
        return dict(value)
    return {"value": value}


def read_n8n(document: dict[str, Any]) -> SourceGraph:
    """Normalize an n8n workflow into nodes and canonical connections."""
    ids = _IdSource()
    nodes: list[Node] = []
    name_to_id: dict[str, str] = {}

    for index, raw in enumerate(document.get("nodes") or []):
        node_id = ids.take(raw.get("id"))
        name = raw.get("name") or f"Node {index + 1}"
        position = raw.get("position") or []
        if len(position) < 2:
            position = [index * NODE_SPACING, 0]
        extra = {key: raw[key] for key in ("typeVersion", "disabled", "notes") if key in raw}
        node = Node(
            id=node_id,
            name=name,
            type=raw.get("type") or "",
            parameters=_as_dict(raw.get("parameters")),
            position=(position[0], position[1]),
            credentials=_as_dict(raw.get("credentials")),
            extra=extra,
        )
        nodes.append(node)
        name_to_id.setdefault(name, node_id)

    connections: list[Connection] = []
    for source_name, outputs in (document.get("connections") or {}).items():
        from_id = name_to_id.get(source_name, source_name)
        for kind, ports in (outputs or {}).items():
            for port, targets in enumerate(ports or []):
                for target in targets or []:
                    to_id = name_to_id.get(target["node"], target["node"])
                    connections.append(
                        Connection(
                            from_node_id=from_id,
                            from_port=port,
                            to_node_id=to_id,
                            to_port=target.get("index", 0),
                            kind=kind,
                        )
                    )

    return SourceGraph(name=document.get("name"), nodes=nodes, connections=connections)


def _read_module(raw: dict[str, Any], index: int, ids: _IdSource) -> Node:
    node_id = ids.take(raw.get("id"))
    parameters = _as_dict(raw.get("parameters"))
    credentials = {
        key[len(CREDENTIAL_PREFIX) :]: parameters.pop(key)
        for key in list(parameters)
        if key.startswith(CREDENTIAL_PREFIX)
    }
    # mapper holds the per-run values; parameters the static module settings
    parameters.update(_as_dict(raw.get("mapper")))

    metadata = raw.get("metadata")
    designer = metadata.get("designer") if isinstance(metadata, dict) else None
    if not isinstance(designer, dict):
        designer = {}
    position = (designer.get("x", index * NODE_SPACING), designer.get("y", 0))
    module_type = raw.get("module") or ""
    extra = {"version": raw["version"]} if "version" in raw else {}

    return Node(
        id=node_id,
        name=raw.get("label") or raw.get("name") or f"{module_type or 'Module'} {node_id}",
        type=module_type,
        parameters=parameters,
        position=position,
        credentials=credentials,
        extra=extra,
    )


def read_make(document: dict[str, Any]) -> SourceGraph:
    """
    Normalize a Make scenario into nodes and canonical connections.

    Consecutive modules in a flow are connected on port 0; the modules of a
    router's n-th route hang off the router's port n.
    """
    ids = _IdSource()
    nodes: list[Node] = []
    connections: list[Connection] = []

    # Depth-first in document order; routes can nest arbitrarily deep
    stack = [(iter(document.get("flow") or []), None, 0)]
    while stack:
        modules, previous_id, port = stack[-1]
        raw = next(modules, None)
        if raw is None:
            stack.pop()
            continue

        node = _read_module(raw, len(nodes), ids)
        nodes.append(node)
        if previous_id is not None:
            connections.append(Connection(previous_id, port, node.id, 0))
        stack[-1] = (modules, node.id, 0)

        routes = raw.get("routes") or []
        for route_index in reversed(range(len(routes))):
            route_flow = (routes[route_index] or {}).get("flow") or []
            stack.append((iter(route_flow), node.id, route_index))

    return SourceGraph(name=document.get("name"), nodes=nodes, connections=connections)


def read_source(document: dict[str, Any], platform: Platform) -> SourceGraph:
    if platform is Platform.N8N:
        return read_n8n(document)
    return read_make(document)
