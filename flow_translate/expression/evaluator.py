"""
Evaluation of expression trees against a variable context.

Evaluation is bounded: every node visited costs one step and nesting is
capped, so adversarial input cannot hang a conversion.
"""

import logging
from collections.abc import Mapping
from typing import Any

from flow_translate.exceptions import (
    EvaluationBudgetExceeded,
    EvaluationError,
    UnknownFunctionError,
)
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
from flow_translate.expression.functions import BUILTINS, FunctionTable, to_text

logger = logging.getLogger(__name__)

DEFAULT_STEP_BUDGET = 10_000
DEFAULT_DEPTH_BUDGET = 64


class _Budget:
    """Step counter for a single evaluate call."""

    def __init__(self, steps: int, depth: int):
        self.steps_left = steps
        self.step_budget = steps
        self.depth_budget = depth

    def charge(self, depth: int):
        self.steps_left -= 1
        if self.steps_left < 0:
            raise EvaluationBudgetExceeded(self.step_budget, "step")
        if depth > self.depth_budget:
            raise EvaluationBudgetExceeded(self.depth_budget, "depth")


class Evaluator:
    """
    Reduce expression trees of one dialect to values.

    The context maps variable roots to values: ``{"$json": {...}}`` for the
    node-graph dialect, ``{"1": {...}}`` for the flow-graph dialect. Missing
    paths evaluate to None rather than failing.
    """

    def __init__(
        self,
        dialect: str,
        functions: FunctionTable = BUILTINS,
        step_budget: int = DEFAULT_STEP_BUDGET,
        depth_budget: int = DEFAULT_DEPTH_BUDGET,
    ):
        self.dialect = dialect
        self.functions = functions
        self.step_budget = step_budget
        self.depth_budget = depth_budget

    def evaluate(self, expression, context: Mapping[str, Any]) -> Any:
        """
        Evaluate one expression tree.

        Raises:
            EvaluationError: Unknown function, unparsed input or a failing builtin
            EvaluationBudgetExceeded: Step or depth budget exhausted
        """
        budget = _Budget(self.step_budget, self.depth_budget)
        return self._eval(expression, context, budget, 0)

    def evaluate_template(self, template: Template, context: Mapping[str, Any]) -> Any:
        """
        Evaluate every expression of a template.

        A template that is exactly one expression returns the native value;
        otherwise values are coerced to strings and spliced between the
        literal segments.
        """
        if template.is_single_expression:
            return self.evaluate(template.segments[0].ast, context)

        parts = []
        for segment in template.segments:
            if isinstance(segment, LiteralSegment):
                parts.append(segment.text)
            elif isinstance(segment, ExpressionSegment):
                parts.append(to_text(self.evaluate(segment.ast, context)))
        return "".join(parts)

    def _eval(self, expression, context, budget: _Budget, depth: int) -> Any:
        budget.charge(depth)

        if isinstance(expression, Literal):
            return expression.value

        if isinstance(expression, VariableRoot):
            return _lookup_root(context, expression)

        if isinstance(expression, PropertyAccess):
            value = self._eval(expression.base, context, budget, depth + 1)
            for accessor in expression.path:
                if isinstance(accessor, Field):
                    key = accessor.name
                elif isinstance(accessor, Index):
                    key = self._eval(accessor.key, context, budget, depth + 1)
                else:
                    raise EvaluationError(f"Unsupported accessor: {accessor!r}")
                value = _get(value, key)
                if value is None:
                    return None
            return value

        if isinstance(expression, FunctionCall):
            return self._call(expression, context, budget, depth)

        if isinstance(expression, Concatenation):
            return "".join(
                to_text(self._eval(operand, context, budget, depth + 1))
                for operand in expression.operands
            )

        if isinstance(expression, Unparsed):
            raise EvaluationError(f"Cannot evaluate unparsed expression: {expression.raw.strip()}")

        raise EvaluationError(f"Not an expression node: {expression!r}")

    def _call(self, call: FunctionCall, context, budget: _Budget, depth: int) -> Any:
        function = self.functions.lookup(call.name, self.dialect)
        if function is None:
            raise UnknownFunctionError(call.name)

        if not function.min_args <= len(call.args) <= function.max_args:
            raise EvaluationError(
                f"{call.name} takes {function.min_args}-{function.max_args} arguments, "
                f"got {len(call.args)}"
            )

        args = [self._eval(arg, context, budget, depth + 1) for arg in call.args]
        try:
            return function.impl(*args)
        except (TypeError, ValueError, ArithmeticError, AttributeError) as e:
            raise EvaluationError(f"{call.name} failed: {e}") from e


def _lookup_root(context: Mapping[str, Any], root: VariableRoot) -> Any:
    if root.name in context:
        return context[root.name]
    if root.positional and int(root.name) in context:
        return context[int(root.name)]
    return None


def _get(value: Any, key: Any) -> Any:
    """Read one step of a path; None when it does not exist."""
    if isinstance(key, (dict, list)):
        return None

    if isinstance(value, Mapping):
        if key in value:
            return value[key]
        if not isinstance(key, str):
            return value.get(to_text(key))
        return None

    if isinstance(value, (list, tuple)):
        if isinstance(key, bool):
            return None
        if isinstance(key, str) and key.isdigit():
            key = int(key)
        if isinstance(key, int) and -len(value) <= key < len(value):
            return value[key]
        if key == "length":
            return len(value)
        return None

    if isinstance(value, str) and key == "length":
        return len(value)

    return None
