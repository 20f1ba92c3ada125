"""
Recursive walk over a node's parameter tree.

Every string that carries expression markers is translated into the target
dialect (or, in evaluate mode, replaced by its value). Dict key order and
list order are preserved, and every expression met is recorded for review.
"""

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from flow_translate.convert.review import ExpressionRecord
from flow_translate.exceptions import ExpressionError, ParameterDepthError
from flow_translate.expression.ast import ExpressionSegment, Template
from flow_translate.expression.evaluator import Evaluator
from flow_translate.expression.functions import to_text
from flow_translate.expression.issues import IssueKind, TranslationIssue
from flow_translate.expression.parser import parse_template
from flow_translate.expression.serializer import serialize_template
from flow_translate.expression.translator import DialectTranslator, TranslationContext
from flow_translate.util.paths import join_path

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 64


class WalkMode(Enum):
    """What to do with expressions found in parameters."""

    TRANSLATE = "translate"
    EVALUATE = "evaluate"

    def __str__(self) -> str:
        return self.value


@dataclass
class WalkContext:
    """
    Per-node inputs for a walk.

    Attributes:
        translation: Node directory bound to the node being walked
        variables: Evaluation context (source-dialect roots); evaluate mode only
        code_paths: Target-side paths holding embedded code
    """

    translation: TranslationContext
    variables: Mapping[str, Any] | None = None
    code_paths: frozenset[str] = frozenset()


@dataclass
class WalkResult:
    value: Any
    records: list[ExpressionRecord] = field(default_factory=list)


class ParameterTreeWalker:
    """
    Translate or evaluate every expression in a parameter tree.

    Example:
        >>> walker = ParameterTreeWalker(DialectTranslator("node-graph", "flow-graph"))
        >>> result = walker.walk({"text": "={{ $json.a }}"}, WalkMode.TRANSLATE, ctx)
        >>> result.value
        {'text': '{{1.a}}'}
    """

    def __init__(
        self,
        translator: DialectTranslator,
        evaluator: Evaluator | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        log=None,
    ):
        self.translator = translator
        self.evaluator = evaluator
        self.max_depth = max_depth
        self.log = log

    def walk(self, value: Any, mode: WalkMode, ctx: WalkContext) -> WalkResult:
        """
        Walk a parameter tree.

        Args:
            value: Parameter tree (not modified)
            mode: TRANSLATE or EVALUATE
            ctx: Per-node walk inputs

        Returns:
            WalkResult with the new tree and one record per expression string

        Raises:
            ParameterDepthError: If the tree nests deeper than max_depth
        """
        records: list[ExpressionRecord] = []
        result = self._walk(value, "", 0, mode, ctx, records)
        return WalkResult(result, records)

    def _walk(self, value, path, depth, mode, ctx, records):
        if depth > self.max_depth:
            raise ParameterDepthError(path, self.max_depth)

        if path and path in ctx.code_paths:
            if value not in (None, ""):
                issue = TranslationIssue(IssueKind.EMBEDDED_CODE)
                records.append(ExpressionRecord(path, to_text(value), [issue]))
            return copy.deepcopy(value)

        if isinstance(value, dict):
            return {
                key: self._walk(item, join_path(path, key), depth + 1, mode, ctx, records)
                for key, item in value.items()
            }

        if isinstance(value, list):
            return [
                self._walk(item, join_path(path, index), depth + 1, mode, ctx, records)
                for index, item in enumerate(value)
            ]

        if isinstance(value, str):
            return self._walk_string(value, path, mode, ctx, records)

        return value

    def _walk_string(self, text, path, mode, ctx, records):
        source = self.translator.source
        target = self.translator.target

        template = parse_template(text, source)
        if not template.has_expressions:
            return text

        issues: list[TranslationIssue] = []
        segments = []
        for segment in template.segments:
            if isinstance(segment, ExpressionSegment):
                ast, found = self.translator.to_target(segment.ast, ctx.translation)
                issues.extend(found)
                segments.append(ExpressionSegment(segment.raw, ast))
            else:
                segments.append(segment)

        issues = list(dict.fromkeys(issues))
        for issue in issues:
            if issue.kind is IssueKind.PARSE_FAILURE:
                self._warn(f"Could not parse expression in parameter '{path}': {issue.detail}")
        if any(issue.kind.keeps_original for issue in issues):
            translated = text
        else:
            translated = serialize_template(Template(target, segments), target)

        record = ExpressionRecord(path, text, issues)
        records.append(record)

        if mode is WalkMode.EVALUATE and self.evaluator is not None and ctx.variables is not None:
            try:
                value = self.evaluator.evaluate_template(template, ctx.variables)
            except ExpressionError as e:
                self._warn(
                    f"Could not evaluate parameter '{path}': {e.message}; "
                    "keeping translated expression"
                )
            else:
                record.evaluated = True
                return value

        return translated

    def _warn(self, message: str) -> None:
        if self.log is not None:
            self.log.warning(message)
        else:
            logger.warning(message)
