"""
Workflow expression language: parsing, dialect translation and evaluation.
"""

from flow_translate.expression.dialects import FLOW_GRAPH, NODE_GRAPH
from flow_translate.expression.evaluator import Evaluator
from flow_translate.expression.functions import BUILTINS, BuiltinFunction, FunctionTable
from flow_translate.expression.issues import IssueKind, TranslationIssue
from flow_translate.expression.parser import parse_expression, parse_template
from flow_translate.expression.serializer import serialize_expression, serialize_template
from flow_translate.expression.translator import DialectTranslator, NodeRef, TranslationContext

__all__ = [
    "BUILTINS",
    "BuiltinFunction",
    "DialectTranslator",
    "Evaluator",
    "FLOW_GRAPH",
    "FunctionTable",
    "IssueKind",
    "NODE_GRAPH",
    "NodeRef",
    "TranslationContext",
    "TranslationIssue",
    "parse_expression",
    "parse_template",
    "serialize_expression",
    "serialize_template",
]
