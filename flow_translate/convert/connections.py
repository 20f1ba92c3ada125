"""
Connection remapping and target-side edge layout.

n8n stores edges explicitly, keyed by node name and output port. Make has
no edge list: a module's successor is the next module of its flow, and only
router modules fan out, one route per output port. Edges that this layout
cannot express are returned so the caller can report them.
"""

import logging
from collections import Counter, defaultdict, deque
from collections.abc import Iterable, Mapping
from typing import Any

from flow_translate.exceptions import ConnectionResolutionError
from flow_translate.models.workflow import Connection

logger = logging.getLogger(__name__)

ROUTER_TYPE = "builtin:BasicRouter"


def predecessors(connections: Iterable[Connection]) -> dict[str, list[str]]:
    """Upstream node ids per node id, in declaration order."""
    result: dict[str, list[str]] = {}
    for connection in connections:
        upstream = result.setdefault(connection.to_node_id, [])
        if connection.from_node_id not in upstream:
            upstream.append(connection.from_node_id)
    return result


def _resolve(reference: str, id_map: Mapping[str, Any]) -> Any:
    if reference not in id_map:
        raise ConnectionResolutionError(reference)
    return id_map[reference]


def remap_connections(
    connections: Iterable[Connection], id_map: Mapping[str, Any], log=None
) -> tuple[list[Connection], list[dict[str, Any]]]:
    """
    Translate connection endpoints from source ids to target references.

    Args:
        connections: Source-side connections
        id_map: Source node id -> target reference (n8n node name or Make module id)
        log: ConversionLogger receiving a warning per dangling connection

    Returns:
        (remapped connections, dangling connections as dicts). An endpoint
        missing from ``id_map`` keeps its original reference.
    """
    remapped = []
    dangling = []
    for connection in connections:
        endpoints = []
        unresolved = []
        for reference in (connection.from_node_id, connection.to_node_id):
            try:
                endpoints.append(_resolve(reference, id_map))
            except ConnectionResolutionError as e:
                endpoints.append(reference)
                unresolved.append(e.reference)

        if unresolved:
            message = (
                f"Connection {connection.from_node_id} -> {connection.to_node_id} references "
                f"unknown node '{unresolved[0]}'; original reference kept"
            )
            if log is not None:
                log.warning(message)
            else:
                logger.warning(message)
            dangling.append(connection.to_dict())

        remapped.append(
            Connection(
                from_node_id=endpoints[0],
                from_port=connection.from_port,
                to_node_id=endpoints[1],
                to_port=connection.to_port,
                kind=connection.kind,
            )
        )
    return remapped, dangling


def build_n8n_connections(connections: Iterable[Connection]) -> dict[str, Any]:
    """
    Build the n8n ``connections`` object.

    Example:
        >>> build_n8n_connections([Connection("A", 0, "B", 0)])
        {'A': {'main': [[{'node': 'B', 'type': 'main', 'index': 0}]]}}
    """
    result: dict[str, Any] = {}
    for connection in connections:
        outputs = result.setdefault(str(connection.from_node_id), {})
        ports = outputs.setdefault(connection.kind, [])
        while len(ports) <= connection.from_port:
            ports.append([])
        ports[connection.from_port].append(
            {
                "node": str(connection.to_node_id),
                "type": connection.kind,
                "index": connection.to_port,
            }
        )
    return result


def build_make_flow(
    modules: list[dict[str, Any]],
    connections: Iterable[Connection],
    router_type: str = ROUTER_TYPE,
) -> tuple[list[dict[str, Any]], list[Connection]]:
    """
    Lay modules out as a Make flow.

    A module is chained after its upstream module when it has exactly one
    incoming edge and that edge leaves port 0 of a non-router module. Router
    modules get one route per output port. Modules that cannot be chained
    start a new sequence in the top-level flow.

    Args:
        modules: Target modules (dicts with an ``id``), in node order
        connections: Edges between module ids
        router_type: Module type that fans out into routes

    Returns:
        (flow, edges the layout does not express)
    """
    by_id = {module["id"]: module for module in modules}
    edges = [c for c in connections if c.from_node_id in by_id and c.to_node_id in by_id]

    outgoing: dict[Any, list[int]] = defaultdict(list)
    indegree: Counter = Counter()
    for index, edge in enumerate(edges):
        outgoing[edge.from_node_id].append(index)
        indegree[edge.to_node_id] += 1

    claimed: set[Any] = set()
    represented: set[int] = set()
    work: deque = deque()

    def attachable(edge: Connection) -> bool:
        return (
            edge.to_port == 0
            and indegree[edge.to_node_id] == 1
            and edge.to_node_id not in claimed
        )

    def place(start: Any, container: list) -> None:
        current = start
        while current is not None:
            module = by_id[current]
            container.append(module)
            out = outgoing[current]

            if module.get("module") == router_type:
                if out:
                    ports = max(edges[i].from_port for i in out) + 1
                    routes = [{"flow": []} for _ in range(ports)]
                    taken = set()
                    for i in out:
                        edge = edges[i]
                        if edge.from_port not in taken and attachable(edge):
                            taken.add(edge.from_port)
                            represented.add(i)
                            claimed.add(edge.to_node_id)
                            work.append((edge.to_node_id, routes[edge.from_port]["flow"]))
                    module["routes"] = routes
                return

            successor = None
            for i in out:
                edge = edges[i]
                if edge.from_port == 0 and attachable(edge):
                    represented.add(i)
                    claimed.add(edge.to_node_id)
                    successor = edge.to_node_id
                    break
            current = successor

    def drain() -> None:
        while work:
            start, container = work.popleft()
            place(start, container)

    flow: list[dict[str, Any]] = []
    for only_roots in (True, False):
        for module in modules:
            module_id = module["id"]
            if module_id in claimed or (only_roots and indegree[module_id] > 0):
                continue
            claimed.add(module_id)
            work.append((module_id, flow))
            drain()

    unrepresented = [edge for index, edge in enumerate(edges) if index not in represented]
    return flow, unrepresented
