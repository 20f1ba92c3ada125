"""
Workflow conversion between n8n and Make.

A conversion runs through fixed states: VALIDATE -> MAP_NODES ->
CONVERT_CONNECTIONS -> ASSEMBLE -> FINALIZE. Problems with the content of
a workflow never raise; they end up in the result's logs, review entries
and unmapped node list. Only programmer errors (unknown platforms, missing
mapping table) raise.
"""

import copy
import logging
import uuid
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Any

from flow_translate.config import ConversionOptions
from flow_translate.convert.connections import (
    build_make_flow,
    build_n8n_connections,
    predecessors,
    remap_connections,
)
from flow_translate.convert.platforms import (
    CREDENTIAL_PREFIX,
    DEFAULT_NAMES,
    SourceGraph,
    empty_workflow,
    normalize_legacy_make,
    read_source,
    resolve_platforms,
    validate_document,
)
from flow_translate.convert.review import ReviewFlagger
from flow_translate.convert.tracker import ConversionLogger
from flow_translate.convert.walker import ParameterTreeWalker, WalkContext, WalkMode
from flow_translate.exceptions import (
    InputValidationError,
    MappingTableError,
    ParameterDepthError,
    UnmappedTypeError,
)
from flow_translate.expression.evaluator import Evaluator
from flow_translate.expression.functions import BUILTINS, FunctionTable
from flow_translate.expression.issues import IssueKind, TranslationIssue
from flow_translate.expression.translator import DialectTranslator, NodeRef, TranslationContext
from flow_translate.mapping.loader import default_mapping_table
from flow_translate.mapping.stubs import (
    STUB_INFO_KEY,
    build_placeholder,
    find_fallback,
    provenance,
    recover_original,
)
from flow_translate.mapping.table import MappingResolver, MappingTable
from flow_translate.models.workflow import (
    Connection,
    ConversionResult,
    Node,
    Platform,
)

logger = logging.getLogger(__name__)

# Namespace for deterministic n8n node ids
NODE_ID_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://flow-translate/nodes")


class ConversionState(Enum):
    """Stages of a conversion, in execution order."""

    VALIDATE = "validate"
    MAP_NODES = "map_nodes"
    CONVERT_CONNECTIONS = "convert_connections"
    ASSEMBLE = "assemble"
    FINALIZE = "finalize"


class NodeOutcome(Enum):
    """How a source node became a target node."""

    MAPPED = "mapped"
    FALLBACK = "fallback"
    STUB = "stub"
    RECOVERED = "recovered"


@dataclass
class MappedNode:
    """A converted node together with its source."""

    source: Node
    target_id: Any
    target_name: str
    target_type: str
    parameters: dict[str, Any]
    outcome: NodeOutcome


class WorkflowConverter:
    """
    Converts workflow documents using an immutable mapping table.

    Example:
        >>> converter = WorkflowConverter(load_mapping_table())
        >>> result = converter.convert(workflow, "n8n", "make")
        >>> result.converted_workflow["flow"][0]["module"]
        'http:ActionSendRequest'
    """

    def __init__(
        self,
        mapping_table: MappingTable,
        options: ConversionOptions | None = None,
        functions: FunctionTable = BUILTINS,
    ):
        if mapping_table is None:
            raise MappingTableError()
        self.mapping_table = mapping_table
        self.options = options or ConversionOptions()
        self.functions = functions

    def convert(
        self,
        document: Any,
        source_platform: str | Platform = "auto",
        target_platform: str | Platform = Platform.MAKE,
    ) -> ConversionResult:
        """
        Convert one workflow document.

        Args:
            document: Parsed workflow JSON
            source_platform: "n8n", "make" or "auto" to detect
            target_platform: "n8n" or "make"

        Returns:
            ConversionResult

        Raises:
            InvalidPlatformError: Unknown platform name or identical platforms
        """
        source, target = resolve_platforms(document, source_platform, target_platform)
        return _ConversionRun(self, document, source, target).execute()


class _ConversionRun:
    """State of a single conversion call."""

    def __init__(
        self, converter: WorkflowConverter, document: Any, source: Platform, target: Platform
    ):
        self.document = document
        self.source = source
        self.target = target
        self.options = converter.options
        self.state = ConversionState.VALIDATE

        self.log = ConversionLogger(debug=self.options.debug)
        self.flagger = ReviewFlagger()
        self.resolver = MappingResolver(converter.mapping_table)
        self.unmapped_nodes: list[str] = []
        self.outcomes: Counter = Counter()

        translator = DialectTranslator(source.dialect, target.dialect, converter.functions)
        evaluator = None
        if self.options.mode is WalkMode.EVALUATE:
            evaluator = Evaluator(
                source.dialect,
                converter.functions,
                step_budget=self.options.evaluation_step_budget,
                depth_budget=self.options.evaluation_depth_budget,
            )
        self.walker = ParameterTreeWalker(
            translator, evaluator, max_depth=self.options.max_parameter_depth, log=self.log
        )

    def execute(self) -> ConversionResult:
        self.log.info(
            f"Converting {self.source.display_name} workflow to {self.target.display_name}"
        )

        graph = self._validate()
        if graph is None:
            self.state = ConversionState.FINALIZE
            skeleton = empty_workflow(self.target, self.options.workflow_name)
            return self._finalize(skeleton, [], [], [], [])

        self.state = ConversionState.MAP_NODES
        mapped = self._map_nodes(graph)

        self.state = ConversionState.CONVERT_CONNECTIONS
        connections, dangling = self._convert_connections(graph, mapped)

        self.state = ConversionState.ASSEMBLE
        workflow, unrepresented = self._assemble(graph, mapped, connections)

        self.state = ConversionState.FINALIZE
        return self._finalize(workflow, mapped, connections, dangling, unrepresented)

    # VALIDATE

    def _validate(self) -> SourceGraph | None:
        document = self.document
        if self.source is Platform.MAKE and isinstance(document, dict):
            normalized = normalize_legacy_make(document)
            if normalized is not document:
                self.log.info("Converting legacy Make workflow format")
            document = normalized

        try:
            self._check_input(document)
        except InputValidationError as e:
            self.log.error(e.message)
            return None

        graph = read_source(document, self.source)
        self.log.info(
            f"Read {len(graph.nodes)} nodes and {len(graph.connections)} connections"
        )
        return graph

    def _check_input(self, document: Any) -> None:
        errors = validate_document(document, self.source)
        if errors:
            raise InputValidationError(self.source.value, errors)

    # MAP_NODES

    def _map_nodes(self, graph: SourceGraph) -> list[MappedNode]:
        identities = self._assign_identities(graph.nodes)

        refs = []
        for node, (target_id, target_name) in zip(graph.nodes, identities):
            if self.source is Platform.N8N:
                refs.append(NodeRef(key=node.id, name=node.name, position=str(target_id)))
            else:
                refs.append(NodeRef(key=node.id, name=target_name, position=node.id))
        context = TranslationContext(refs, predecessors(graph.connections))

        mapped = []
        for node, (target_id, target_name) in zip(graph.nodes, identities):
            mapped_node = self._map_node(node, target_id, target_name, context)
            self.outcomes[mapped_node.outcome] += 1
            self.log.track_node(
                node.id, node.type, target_id, mapped_node.target_type, mapped_node.outcome.value
            )
            mapped.append(mapped_node)
        return mapped

    def _assign_identities(self, nodes: list[Node]) -> list[tuple[Any, str]]:
        """Target (id, name) per node, in node order."""
        if self.target is Platform.MAKE:
            return list(zip(self._module_ids(nodes), [node.name for node in nodes]))

        names = _unique([node.name for node in nodes])
        if self.options.preserve_ids:
            ids = _unique([node.id for node in nodes])
        else:
            ids = [
                str(uuid.uuid5(NODE_ID_NAMESPACE, f"{index}:{node.id}"))
                for index, node in enumerate(nodes)
            ]
        return list(zip(ids, names))

    def _module_ids(self, nodes: list[Node]) -> list[int]:
        reserved: set[int] = set()
        preferred: list[int | None] = []
        for node in nodes:
            candidate = None
            if self.options.preserve_ids and node.id.isdigit() and int(node.id) > 0:
                if int(node.id) not in reserved:
                    candidate = int(node.id)
                    reserved.add(candidate)
            preferred.append(candidate)

        ids = []
        next_id = 1
        for candidate in preferred:
            if candidate is None:
                while next_id in reserved:
                    next_id += 1
                candidate = next_id
                reserved.add(candidate)
            ids.append(candidate)
        return ids

    def _map_node(
        self, node: Node, target_id: Any, target_name: str, context: TranslationContext
    ) -> MappedNode:
        recovered = recover_original(node, self.target)
        if recovered is not None:
            target_type, parameters = recovered
            # Fallback parameters were translated on the way out; stub parameters were not
            if node.parameters[STUB_INFO_KEY].get("fallbackCategory"):
                parameters = self._walk(node, parameters, context, frozenset())
            self.log.info(f"Restored node '{node.name}' to its original type {target_type}")
            return MappedNode(
                node, target_id, target_name, target_type, parameters, NodeOutcome.RECOVERED
            )

        try:
            entry = self.resolver.require(node.type)
        except UnmappedTypeError as e:
            return self._map_unmapped(node, target_id, target_name, context, e)

        parameters = entry.apply(node.parameters, self.options.copy_unmapped_parameters)
        parameters = self._walk(node, parameters, context, frozenset(entry.target_code_parameters))
        return MappedNode(
            node, target_id, target_name, entry.target_type, parameters, NodeOutcome.MAPPED
        )

    def _map_unmapped(
        self,
        node: Node,
        target_id: Any,
        target_name: str,
        context: TranslationContext,
        error: UnmappedTypeError,
    ) -> MappedNode:
        fallback = find_fallback(node.type)
        if fallback is not None:
            target_type = fallback.target_type(self.target)
            parameters = self._walk(node, node.parameters, context, frozenset())
            parameters[STUB_INFO_KEY] = provenance(node, self.source, fallback.category)
            self.log.warning(
                f"{error.message}; node '{node.name}' converted with the "
                f"{fallback.category} template {target_type}"
            )
            return MappedNode(
                node, target_id, target_name, target_type, parameters, NodeOutcome.FALLBACK
            )

        target_type, parameters = build_placeholder(node, self.source, self.target)
        if node.id not in self.unmapped_nodes:
            self.unmapped_nodes.append(node.id)
        self.log.warning(f"{error.message}; node '{node.name}' replaced by {target_type} stub")
        return MappedNode(node, target_id, target_name, target_type, parameters, NodeOutcome.STUB)

    def _walk(
        self,
        node: Node,
        parameters: dict[str, Any],
        context: TranslationContext,
        code_paths: frozenset[str],
    ) -> dict[str, Any]:
        variables = None
        if self.options.mode is WalkMode.EVALUATE:
            variables = self.options.variables_for(node.id)
        walk_context = WalkContext(
            translation=context.for_node(node.id), variables=variables, code_paths=code_paths
        )

        try:
            result = self.walker.walk(parameters, self.options.mode, walk_context)
        except ParameterDepthError as e:
            self.log.error(f"Node '{node.name}': {e.message}; parameters copied verbatim")
            self.flagger.flag(node.id, e.path, TranslationIssue(IssueKind.DEPTH_LIMIT))
            return copy.deepcopy(parameters)

        self.flagger.add_records(node.id, result.records)
        return result.value

    # CONVERT_CONNECTIONS

    def _convert_connections(
        self, graph: SourceGraph, mapped: list[MappedNode]
    ) -> tuple[list[Connection], list[dict[str, Any]]]:
        if self.target is Platform.N8N:
            id_map = {m.source.id: m.target_name for m in mapped}
        else:
            id_map = {m.source.id: m.target_id for m in mapped}
        return remap_connections(graph.connections, id_map, self.log)

    # ASSEMBLE

    def _assemble(
        self, graph: SourceGraph, mapped: list[MappedNode], connections: list[Connection]
    ) -> tuple[dict[str, Any], list[Connection]]:
        name = self.options.workflow_name or graph.name or DEFAULT_NAMES[self.target]
        workflow = empty_workflow(self.target, name)

        if self.target is Platform.N8N:
            workflow["nodes"] = [self._n8n_node(m) for m in mapped]
            workflow["connections"] = build_n8n_connections(connections)
            return workflow, []

        modules = [self._make_module(m) for m in mapped]
        flow, unrepresented = build_make_flow(modules, connections)
        for edge in unrepresented:
            self.log.warning(
                f"Connection {edge.from_node_id}:{edge.from_port} -> {edge.to_node_id} "
                "cannot be expressed in a Make flow"
            )
        workflow["flow"] = flow
        return workflow, unrepresented

    def _n8n_node(self, mapped: MappedNode) -> dict[str, Any]:
        source = mapped.source
        node = {
            "id": mapped.target_id,
            "name": mapped.target_name,
            "type": mapped.target_type,
            "typeVersion": source.extra.get("typeVersion", 1),
            "position": [source.position[0], source.position[1]],
            "parameters": mapped.parameters,
        }
        if source.credentials:
            node["credentials"] = copy.deepcopy(source.credentials)
        for key in ("disabled", "notes"):
            if key in source.extra:
                node[key] = source.extra[key]
        return node

    def _make_module(self, mapped: MappedNode) -> dict[str, Any]:
        source = mapped.source
        credentials = {
            f"{CREDENTIAL_PREFIX}{name}": copy.deepcopy(value)
            for name, value in source.credentials.items()
        }
        return {
            "id": mapped.target_id,
            "module": mapped.target_type,
            "version": source.extra.get("version", 1),
            "label": mapped.target_name,
            "parameters": credentials,
            "mapper": mapped.parameters,
            "metadata": {"designer": {"x": source.position[0], "y": source.position[1]}},
        }

    # FINALIZE

    def _finalize(
        self,
        workflow: dict[str, Any],
        mapped: list[MappedNode],
        connections: list[Connection],
        dangling: list[dict[str, Any]],
        unrepresented: list[Connection],
    ) -> ConversionResult:
        reviews = self.flagger.reviews()
        debug = {
            "sourcePlatform": self.source.value,
            "targetPlatform": self.target.value,
            "nodeCount": len(mapped),
            "mappedCount": self.outcomes[NodeOutcome.MAPPED],
            "fallbackCount": self.outcomes[NodeOutcome.FALLBACK],
            "stubCount": self.outcomes[NodeOutcome.STUB],
            "recoveredCount": self.outcomes[NodeOutcome.RECOVERED],
            "connectionCount": len(connections),
            "reviewCount": len(reviews),
            "danglingConnections": dangling,
            "unrepresentedConnections": [edge.to_dict() for edge in unrepresented],
        }
        if self.options.debug:
            debug["nodes"] = self.log.node_details
            debug["options"] = self.options.to_dict()

        if mapped:
            self.log.info(
                f"Converted {len(mapped)} nodes: {debug['mappedCount']} mapped, "
                f"{debug['fallbackCount']} fallback, {debug['stubCount']} stubs, "
                f"{debug['recoveredCount']} restored"
            )

        return ConversionResult(
            converted_workflow=workflow,
            parameters_needing_review=reviews,
            unmapped_nodes=list(self.unmapped_nodes),
            logs=list(self.log.logs),
            debug=debug,
        )


def _unique(values: list[str]) -> list[str]:
    """De-duplicate names by appending a counter: "Set", "Set 1", "Set 2"."""
    seen: set[str] = set()
    result = []
    for value in values:
        candidate = value
        counter = 0
        while candidate in seen:
            counter += 1
            candidate = f"{value} {counter}"
        seen.add(candidate)
        result.append(candidate)
    return result


def convert(
    document: Any,
    source_platform: str | Platform,
    target_platform: str | Platform,
    options: ConversionOptions | dict[str, Any] | None = None,
    mapping_table: MappingTable | None = None,
) -> ConversionResult:
    """
    Convert a workflow document between n8n and Make.

    Args:
        document: Parsed workflow JSON
        source_platform: "n8n", "make" or "auto"
        target_platform: "n8n" or "make"
        options: ConversionOptions, or a config mapping
        mapping_table: Mapping table; the bundled default table when omitted

    Returns:
        ConversionResult

    Raises:
        InvalidPlatformError: Unknown platform name or identical platforms
        InvalidConfigError: If ``options`` is a mapping that fails validation

    Example:
        >>> result = convert(workflow, "n8n", "make")
        >>> result.unmapped_nodes
        []
    """
    if isinstance(options, dict):
        options = ConversionOptions.from_dict(options)
    table = mapping_table if mapping_table is not None else default_mapping_table()
    return WorkflowConverter(table, options).convert(document, source_platform, target_platform)
