"""
Expression syntax tree and template segments.

Both workflow dialects share one tree shape; only variable roots and
function names differ between them. Nodes are frozen dataclasses so that
translated trees can share unchanged subtrees with their source.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Literal:
    """String, number, boolean or null constant."""

    value: Any


@dataclass(frozen=True)
class VariableRoot:
    """
    Named root of a variable lookup.

    Examples: ``$json``, ``$env``, ``scenario``, or a positional module
    reference such as ``1`` (``positional=True``).
    """

    name: str
    positional: bool = False


@dataclass(frozen=True)
class Field:
    """``.name`` accessor."""

    name: str


@dataclass(frozen=True)
class Index:
    """``[expr]`` accessor."""

    key: "Expression"


@dataclass(frozen=True)
class PropertyAccess:
    """Chain of field/index accessors applied to a base expression."""

    base: "Expression"
    path: tuple[Field | Index, ...]


@dataclass(frozen=True)
class FunctionCall:
    """Call of a (possibly dotted) function name with ordered arguments."""

    name: str
    args: tuple["Expression", ...] = ()


@dataclass(frozen=True)
class Concatenation:
    """Operands joined with ``+`` and coerced to strings."""

    operands: tuple["Expression", ...]


@dataclass(frozen=True)
class Unparsed:
    """Marker for an expression body the parser could not understand."""

    raw: str
    error: str = ""


Expression = Literal | VariableRoot | PropertyAccess | FunctionCall | Concatenation | Unparsed


@dataclass(frozen=True)
class LiteralSegment:
    """Plain text between expression blocks, kept byte-for-byte."""

    text: str


@dataclass(frozen=True)
class ExpressionSegment:
    """One ``{{ ... }}`` block: the raw body and its parsed tree."""

    raw: str
    ast: Expression


Segment = LiteralSegment | ExpressionSegment


@dataclass
class Template:
    """
    A parameter string split into literal and expression segments.

    Attributes:
        dialect: Name of the dialect the string was written in
        segments: Ordered segments; concatenating them re-creates the string
        prefixed: True when the node-graph ``=`` sentinel introduces the whole
            string (``=text {{ expr }}``) rather than each block (``={{ }}``)
    """

    dialect: str
    segments: list[Segment] = field(default_factory=list)
    prefixed: bool = False

    @property
    def expressions(self) -> list[ExpressionSegment]:
        return [s for s in self.segments if isinstance(s, ExpressionSegment)]

    @property
    def has_expressions(self) -> bool:
        return any(isinstance(s, ExpressionSegment) for s in self.segments)

    @property
    def is_single_expression(self) -> bool:
        """True when the string is exactly one expression with no literal text."""
        return len(self.segments) == 1 and isinstance(self.segments[0], ExpressionSegment)


def iter_nodes(expression: Expression):
    """Yield every node of an expression tree, depth first, parents first."""
    yield expression
    if isinstance(expression, PropertyAccess):
        yield from iter_nodes(expression.base)
        for accessor in expression.path:
            if isinstance(accessor, Index):
                yield from iter_nodes(accessor.key)
    elif isinstance(expression, FunctionCall):
        for arg in expression.args:
            yield from iter_nodes(arg)
    elif isinstance(expression, Concatenation):
        for operand in expression.operands:
            yield from iter_nodes(operand)
