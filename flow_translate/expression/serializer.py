"""
Rendering of expression trees and templates back into dialect text.
"""

import json
import re
from decimal import Decimal

from flow_translate.expression.ast import (
    Concatenation,
    ExpressionSegment,
    Field,
    FunctionCall,
    Index,
    Literal,
    LiteralSegment,
    PropertyAccess,
    Template,
    Unparsed,
    VariableRoot,
)
from flow_translate.expression.dialects import FLOW_GRAPH, NODE_GRAPH

_IDENTIFIER = re.compile(r"^(?:[A-Za-z_$][A-Za-z0-9_$]*|[0-9]+)$")


def serialize_literal(value) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    text = repr(value)
    if isinstance(value, float) and "e" in text:
        # Number tokens have no exponent part
        text = format(Decimal(text), "f")
        if "." not in text:
            text += ".0"
    return text


def serialize_expression(expression) -> str:
    """Render an expression tree in the shared expression syntax."""
    if isinstance(expression, Literal):
        return serialize_literal(expression.value)

    if isinstance(expression, VariableRoot):
        return expression.name

    if isinstance(expression, PropertyAccess):
        text = _operand(expression.base)
        for accessor in expression.path:
            if isinstance(accessor, Field):
                if _IDENTIFIER.match(accessor.name):
                    text += f".{accessor.name}"
                else:
                    text += f"[{serialize_literal(accessor.name)}]"
            elif isinstance(accessor, Index):
                text += f"[{serialize_expression(accessor.key)}]"
        return text

    if isinstance(expression, FunctionCall):
        args = ", ".join(serialize_expression(arg) for arg in expression.args)
        return f"{expression.name}({args})"

    if isinstance(expression, Concatenation):
        return " + ".join(_operand(operand) for operand in expression.operands)

    if isinstance(expression, Unparsed):
        return expression.raw.strip()

    raise TypeError(f"Not an expression node: {expression!r}")


def _operand(expression) -> str:
    text = serialize_expression(expression)
    if isinstance(expression, Concatenation):
        return f"({text})"
    return text


def serialize_template(template: Template, dialect: str) -> str:
    """
    Render a template with the block markers of ``dialect``.

    node-graph output always uses the ``=`` sentinel form, so a single
    expression renders as ``={{ expr }}`` and mixed text as
    ``=Hello {{ expr }}``. flow-graph output wraps each expression in
    ``{{expr}}``.
    """
    parts = []
    for segment in template.segments:
        if isinstance(segment, LiteralSegment):
            parts.append(segment.text)
        elif isinstance(segment, ExpressionSegment):
            body = serialize_expression(segment.ast)
            if dialect == NODE_GRAPH:
                parts.append(f"{{{{ {body} }}}}")
            elif dialect == FLOW_GRAPH:
                parts.append(f"{{{{{body}}}}}")
            else:
                raise ValueError(f"Unknown dialect: {dialect}")

    text = "".join(parts)
    if dialect == NODE_GRAPH:
        return f"={text}"
    return text
