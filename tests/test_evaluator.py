"""
Tests for expression evaluation and builtin functions.
"""

import pytest

from flow_translate.exceptions import (
    EvaluationBudgetExceeded,
    EvaluationError,
    UnknownFunctionError,
)
from flow_translate.expression.dialects import FLOW_GRAPH, NODE_GRAPH
from flow_translate.expression.evaluator import Evaluator
from flow_translate.expression.functions import BUILTINS, to_text
from flow_translate.expression.parser import parse_expression, parse_template


@pytest.fixture
def evaluator():
    return Evaluator(NODE_GRAPH)


def evaluate(evaluator, source, context=None):
    return evaluator.evaluate(parse_expression(source), context or {})


class TestEvaluator:
    """Tests for Evaluator.evaluate."""

    def test_evaluation_scenario(self, evaluator):
        """Test URL concatenation against $json."""
        result = evaluate(
            evaluator, '"https://example.com/api/" + $json.id', {"$json": {"id": "12345"}}
        )
        assert result == "https://example.com/api/12345"

    def test_missing_path_is_none(self, evaluator):
        """Test that missing fields evaluate to None instead of failing."""
        assert evaluate(evaluator, "$json.user.name", {"$json": {}}) is None
        assert evaluate(evaluator, "$json.a", {}) is None

    def test_index_and_length(self, evaluator):
        """Test list indexing and the length pseudo-field."""
        context = {"$json": {"items": ["x", "y", "z"]}}
        assert evaluate(evaluator, "$json.items[1]", context) == "y"
        assert evaluate(evaluator, "$json.items.length", context) == 3

    def test_flow_graph_positional_context(self):
        """Test module references with string or integer context keys."""
        evaluator = Evaluator(FLOW_GRAPH)
        assert evaluate(evaluator, "upper(1.name)", {"1": {"name": "ada"}}) == "ADA"
        assert evaluate(evaluator, "1.name", {1: {"name": "ada"}}) == "ada"

    def test_unknown_function_raises(self, evaluator):
        """Test that functions outside the builtin table are not evaluated."""
        with pytest.raises(UnknownFunctionError) as exc_info:
            evaluate(evaluator, "$customFn(1)")
        assert exc_info.value.name == "$customFn"

    def test_unparsed_raises(self, evaluator):
        """Test that unparsed input cannot be evaluated."""
        with pytest.raises(EvaluationError):
            evaluate(evaluator, "$json.a ? 1 : 2")

    def test_wrong_argument_count(self, evaluator):
        """Test arity checking."""
        with pytest.raises(EvaluationError):
            evaluate(evaluator, "$str.upper()")

    def test_failing_builtin_is_wrapped(self, evaluator):
        """Test that builtin errors become EvaluationError."""
        with pytest.raises(EvaluationError):
            evaluate(evaluator, '$math.round("abc")')

    def test_round_digits_are_bounded(self, evaluator):
        """Test that an oversized digit count fails fast instead of building a huge power."""
        with pytest.raises(EvaluationError) as exc_info:
            evaluate(evaluator, "$math.round(1, 20000000)")
        assert "digits" in str(exc_info.value)
        assert evaluate(evaluator, "$math.round(1.5, 15)") == 1.5

    def test_step_budget(self):
        """Test that the step budget bounds evaluation."""
        evaluator = Evaluator(NODE_GRAPH, step_budget=5)
        with pytest.raises(EvaluationBudgetExceeded) as exc_info:
            evaluate(evaluator, '"a" + "b" + "c" + "d" + "e" + "f"')
        assert exc_info.value.kind == "step"

    def test_depth_budget(self):
        """Test that the depth budget bounds nesting."""
        evaluator = Evaluator(NODE_GRAPH, depth_budget=2)
        with pytest.raises(EvaluationBudgetExceeded):
            evaluate(evaluator, '$str.upper($str.upper($str.upper("x")))')

    def test_budget_is_per_call(self):
        """Test that each evaluate call starts with a fresh budget."""
        evaluator = Evaluator(NODE_GRAPH, step_budget=3)
        for _ in range(5):
            assert evaluate(evaluator, '"a" + "b"') == "ab"


class TestEvaluateTemplate:
    """Tests for Evaluator.evaluate_template."""

    def test_single_expression_keeps_native_type(self, evaluator):
        """Test that '={{ expr }}' yields the raw value."""
        template = parse_template("={{ $json.count }}", NODE_GRAPH)
        assert evaluator.evaluate_template(template, {"$json": {"count": 3}}) == 3

    def test_mixed_template_is_text(self, evaluator):
        """Test that text around expressions produces a string."""
        template = parse_template("=Total: {{ $json.count }} items", NODE_GRAPH)
        assert evaluator.evaluate_template(template, {"$json": {"count": 3}}) == "Total: 3 items"

    def test_missing_value_renders_empty(self, evaluator):
        """Test None inside text."""
        template = parse_template("=Hi {{ $json.name }}", NODE_GRAPH)
        assert evaluator.evaluate_template(template, {"$json": {}}) == "Hi "


class TestBuiltins:
    """Tests for the shared builtin implementations."""

    @pytest.mark.parametrize(
        "source,expected",
        [
            ('$str.lower("ABC")', "abc"),
            ('$str.capitalize("hello")', "Hello"),
            ('$str.trim("  x  ")', "x"),
            ('$str.replace("a-b-c", "-", "+")', "a+b+c"),
            ('$str.substring("hello", 1, 3)', "el"),
            ('$str.split("a,b")', ["a", "b"]),
            ('$str.contains("hello", "ell")', True),
            ('$str.length("hello")', 5),
            ("$math.round(2.5)", 3),
            ("$math.round(-2.5)", -3),
            ("$math.round(1.25, 1)", 1.3),
            ("$math.floor(2.7)", 2),
            ("$math.ceil(2.1)", 3),
            ('$if(true, "yes", "no")', "yes"),
            ('$if(false, "yes")', None),
            ('$ifEmpty("", "fallback")', "fallback"),
            ('$ifEmpty("x", "fallback")', "x"),
            ('$date.format("2026-01-05T10:00:00Z", "YYYY-MM-DD")', "2026-01-05"),
            ('$date.addDays("2026-01-05T00:00:00+00:00", 2)', "2026-01-07T00:00:00+00:00"),
        ],
    )
    def test_builtin(self, evaluator, source, expected):
        """Test one builtin call."""
        assert evaluate(evaluator, source) == expected

    def test_array_functions(self, evaluator):
        """Test first/last/join/keys."""
        context = {"$json": {"tags": ["a", "b"], "obj": {"k": 1, "j": 2}}}
        assert evaluate(evaluator, "$array.first($json.tags)", context) == "a"
        assert evaluate(evaluator, "$array.last($json.tags)", context) == "b"
        assert evaluate(evaluator, '$array.join($json.tags, "-")', context) == "a-b"
        assert evaluate(evaluator, "$obj.keys($json.obj)", context) == ["k", "j"]

    def test_same_implementation_in_both_dialects(self):
        """Test that translated names evaluate identically."""
        node = Evaluator(NODE_GRAPH)
        flow = Evaluator(FLOW_GRAPH)
        assert evaluate(node, '$ifEmpty(null, "x")') == evaluate(flow, 'ifempty(null, "x")')

    def test_function_table_lookup(self):
        """Test lookups by dialect-specific name."""
        assert BUILTINS.lookup("$str.upper", NODE_GRAPH).name == "upper"
        assert BUILTINS.lookup("$str.upper", FLOW_GRAPH) is None
        assert BUILTINS.translate_name("ifThenElse", FLOW_GRAPH, NODE_GRAPH) == "$if"
        assert BUILTINS.translate_name("nope", FLOW_GRAPH, NODE_GRAPH) is None

    @pytest.mark.parametrize(
        "value,expected",
        [(None, ""), (True, "true"), (3.0, "3"), (2.5, "2.5"), ({"a": 1}, '{"a": 1}')],
    )
    def test_to_text(self, value, expected):
        """Test concatenation coercion."""
        assert to_text(value) == expected
