"""
Rewriting of expression trees between the node-graph and flow-graph dialects.

The node-graph dialect addresses data by name (``$json`` for the item of the
upstream node, ``$node["Name"].json`` for any node). The flow-graph dialect
addresses it by module position (``1.field``). A TranslationContext carries
the node directory and the upstream relation needed to move between the
two, so the translator itself keeps no state between calls.
"""

import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from flow_translate.expression.ast import (
    Concatenation,
    Field,
    FunctionCall,
    Index,
    Literal,
    PropertyAccess,
    Unparsed,
    VariableRoot,
)
from flow_translate.expression.dialects import (
    DIALECTS,
    JSON_ROOT,
    NODE_DATA_FIELD,
    NODE_GRAPH,
    NODE_ROOT,
    REVERSE_ROOT_ALIASES,
    ROOT_ALIASES,
)
from flow_translate.expression.functions import BUILTINS, FunctionTable
from flow_translate.expression.issues import IssueKind, TranslationIssue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeRef:
    """
    One node as both dialects address it.

    Attributes:
        key: Source-side node id
        name: Display name used by ``$node["..."]`` references
        position: Module number used by positional references
    """

    key: str
    name: str
    position: str


class TranslationContext:
    """
    Node directory and upstream relation for one workflow.

    Use ``for_node`` to get a view bound to the node whose parameters are
    being translated; ``$json`` and positional references resolve relative
    to that node's upstream connections.
    """

    def __init__(
        self,
        nodes: Iterable[NodeRef] = (),
        predecessors: Mapping[str, Iterable[str]] | None = None,
        node_id: str | None = None,
    ):
        self._nodes = tuple(nodes)
        self._by_key = {}
        self._by_name = {}
        self._by_position = {}
        for ref in self._nodes:
            self._by_key.setdefault(ref.key, ref)
            self._by_name.setdefault(ref.name, ref)
            self._by_position.setdefault(ref.position, ref)
        self._predecessors = {key: tuple(keys) for key, keys in (predecessors or {}).items()}
        self.node_id = node_id

    @property
    def nodes(self) -> tuple[NodeRef, ...]:
        return self._nodes

    def for_node(self, node_id: str) -> "TranslationContext":
        view = copy.copy(self)
        view.node_id = node_id
        return view

    def by_key(self, key: str) -> NodeRef | None:
        return self._by_key.get(key)

    def by_name(self, name: str) -> NodeRef | None:
        return self._by_name.get(name)

    def by_position(self, position: str) -> NodeRef | None:
        return self._by_position.get(str(position))

    def predecessors_of(self, node_id: str | None = None) -> list[NodeRef]:
        """Upstream nodes in connection declaration order."""
        key = self.node_id if node_id is None else node_id
        refs = []
        for predecessor in self._predecessors.get(key, ()):
            ref = self._by_key.get(predecessor)
            if ref is not None and ref not in refs:
                refs.append(ref)
        return refs

    def predecessor_of(self, node_id: str | None = None) -> NodeRef | None:
        """First declared upstream node, or None for entry nodes."""
        refs = self.predecessors_of(node_id)
        return refs[0] if refs else None


class DialectTranslator:
    """
    Translate expression trees between a source and a target dialect.

    Example:
        >>> translator = DialectTranslator("node-graph", "flow-graph")
        >>> ast, issues = translator.to_target(parse_expression("$str.upper($json.text)"), ctx)
    """

    def __init__(
        self, source_dialect: str, target_dialect: str, functions: FunctionTable = BUILTINS
    ):
        if source_dialect not in DIALECTS or target_dialect not in DIALECTS:
            raise ValueError(f"Unknown dialect pair: {source_dialect} -> {target_dialect}")
        if source_dialect == target_dialect:
            raise ValueError(f"Source and target dialect are both {source_dialect}")
        self.source = source_dialect
        self.target = target_dialect
        self.functions = functions

    def to_target(self, expression, context: TranslationContext):
        """
        Rewrite a source-dialect tree into the target dialect.

        Returns:
            (translated tree, list of TranslationIssue)
        """
        issues: list[TranslationIssue] = []
        return self._rewrite(expression, self.source, self.target, context, issues), issues

    def to_source(self, expression, context: TranslationContext):
        """Rewrite a target-dialect tree back into the source dialect."""
        issues: list[TranslationIssue] = []
        return self._rewrite(expression, self.target, self.source, context, issues), issues

    def _rewrite(self, expression, source, target, ctx, issues):
        if isinstance(expression, Literal):
            return expression

        if isinstance(expression, Unparsed):
            issues.append(TranslationIssue(IssueKind.PARSE_FAILURE, expression.raw.strip()))
            return expression

        if isinstance(expression, FunctionCall):
            name = self.functions.translate_name(expression.name, source, target)
            if name is None:
                issues.append(TranslationIssue(IssueKind.UNKNOWN_FUNCTION, expression.name))
                name = expression.name
            args = tuple(self._rewrite(arg, source, target, ctx, issues) for arg in expression.args)
            return FunctionCall(name, args)

        if isinstance(expression, Concatenation):
            return Concatenation(
                tuple(self._rewrite(op, source, target, ctx, issues) for op in expression.operands)
            )

        if isinstance(expression, VariableRoot):
            return self._rename_root(expression, source, issues)

        if isinstance(expression, PropertyAccess):
            path = tuple(
                self._rewrite_accessor(accessor, source, target, ctx, issues)
                for accessor in expression.path
            )
            if source == NODE_GRAPH:
                rewritten = self._named_access(expression.base, path, ctx, issues)
            else:
                rewritten = self._positional_access(expression.base, path, ctx, issues)
            if rewritten is not None:
                return rewritten
            base = self._rewrite(expression.base, source, target, ctx, issues)
            return PropertyAccess(base, path)

        raise TypeError(f"Not an expression node: {expression!r}")

    def _rewrite_accessor(self, accessor, source, target, ctx, issues):
        if isinstance(accessor, Index):
            return Index(self._rewrite(accessor.key, source, target, ctx, issues))
        return accessor

    def _rename_root(self, root: VariableRoot, source: str, issues) -> VariableRoot:
        aliases = ROOT_ALIASES if source == NODE_GRAPH else REVERSE_ROOT_ALIASES
        if not root.positional and root.name in aliases:
            return VariableRoot(aliases[root.name])
        issues.append(TranslationIssue(IssueKind.UNRESOLVED_REFERENCE, root.name))
        return root

    def _upstream(self, ctx: TranslationContext, issues) -> NodeRef | None:
        refs = ctx.predecessors_of()
        if not refs:
            return None
        if len(refs) > 1:
            issues.append(TranslationIssue(IssueKind.MULTI_PREDECESSOR, refs[0].name))
        return refs[0]

    def _named_access(self, base, path, ctx, issues):
        """$json.x / $node["Name"].json.x -> N.x; None when base is not a node reference."""
        if isinstance(base, VariableRoot) and base.name == JSON_ROOT and not base.positional:
            ref = self._upstream(ctx, issues)
            if ref is None:
                issues.append(TranslationIssue(IssueKind.UNRESOLVED_REFERENCE, JSON_ROOT))
                return PropertyAccess(base, path)
            return PropertyAccess(VariableRoot(ref.position, positional=True), path)

        node_name, rest = _named_node_reference(base, path)
        if node_name is None:
            return None
        ref = ctx.by_name(node_name)
        if ref is None or not rest:
            issues.append(TranslationIssue(IssueKind.UNRESOLVED_REFERENCE, node_name))
            return PropertyAccess(base, path)
        return PropertyAccess(VariableRoot(ref.position, positional=True), rest)

    def _positional_access(self, base, path, ctx, issues):
        """N.x -> $json.x or $node["Name"].json.x; None when base is not positional."""
        if not (isinstance(base, VariableRoot) and base.positional):
            return None

        ref = ctx.by_position(base.name)
        if ref is None:
            issues.append(TranslationIssue(IssueKind.UNRESOLVED_REFERENCE, base.name))
            return PropertyAccess(base, path)

        upstream = ctx.predecessors_of()
        if upstream and upstream[0].key == ref.key:
            if len(upstream) > 1:
                issues.append(TranslationIssue(IssueKind.MULTI_PREDECESSOR, ref.name))
            return PropertyAccess(VariableRoot(JSON_ROOT), path)

        prefix = (Index(Literal(ref.name)), Field(NODE_DATA_FIELD))
        return PropertyAccess(VariableRoot(NODE_ROOT), prefix + path)


def _named_node_reference(base, path):
    """
    Recognize ``$node["Name"].json`` and ``$("Name").item.json`` prefixes.

    Returns:
        (node name, remaining accessors), or (None, None)
    """
    if isinstance(base, VariableRoot) and base.name == NODE_ROOT and len(path) >= 2:
        first, second = path[0], path[1]
        name = None
        if isinstance(first, Field):
            name = first.name
        elif isinstance(first, Index) and isinstance(first.key, Literal):
            if isinstance(first.key.value, str):
                name = first.key.value
        if name is not None and second == Field(NODE_DATA_FIELD):
            return name, path[2:]

    if (
        isinstance(base, FunctionCall)
        and base.name == "$"
        and len(base.args) == 1
        and isinstance(base.args[0], Literal)
        and isinstance(base.args[0].value, str)
        and path[:2] == (Field("item"), Field(NODE_DATA_FIELD))
    ):
        return base.args[0].value, path[2:]

    return None, None
