"""
Review flagging of converted parameters.

Each expression found while walking a node's parameters is classified as
SAFE (translated with confidence) or NEEDS_REVIEW. Flags are grouped per
node so the report lists each node once.
"""

from dataclasses import dataclass, field
from enum import Enum

from flow_translate.expression.issues import TranslationIssue
from flow_translate.models.workflow import ParameterReview


class ReviewStatus(Enum):
    """Confidence in a converted parameter."""

    SAFE = "SAFE"
    NEEDS_REVIEW = "NEEDS_REVIEW"

    def __str__(self) -> str:
        return self.value

    @property
    def emoji(self) -> str:
        return "✅" if self is ReviewStatus.SAFE else "⚠️"


@dataclass
class ExpressionRecord:
    """
    One expression-bearing (or code) parameter met by the walker.

    Attributes:
        path: Target-side parameter path (``options.headers[0].value``)
        raw: Original source text
        issues: Problems found while translating it
        evaluated: True when the value was replaced by its evaluation
    """

    path: str
    raw: str
    issues: list[TranslationIssue] = field(default_factory=list)
    evaluated: bool = False

    @property
    def status(self) -> ReviewStatus:
        return classify_record(self)


def classify_record(record: ExpressionRecord) -> ReviewStatus:
    """
    Decide whether a parameter needs a human to look at it.

    An evaluated value is concrete data and is SAFE; otherwise any
    translation issue makes the parameter NEEDS_REVIEW.
    """
    if record.evaluated:
        return ReviewStatus.SAFE
    return ReviewStatus.NEEDS_REVIEW if record.issues else ReviewStatus.SAFE


class ReviewFlagger:
    """
    Accumulates review flags for a conversion.

    Produces one ParameterReview per node id, in the order nodes were first
    flagged, listing every flagged path and the distinct reasons joined by
    ``; ``.
    """

    def __init__(self):
        # node id -> (ordered paths, ordered reasons)
        self._flags: dict[str, tuple[list[str], list[str]]] = {}

    def flag(self, node_id: str, path: str, issue: TranslationIssue) -> None:
        paths, reasons = self._flags.setdefault(node_id, ([], []))
        if path not in paths:
            paths.append(path)
        if issue.reason not in reasons:
            reasons.append(issue.reason)

    def add_records(self, node_id: str, records: list[ExpressionRecord]) -> None:
        for record in records:
            if classify_record(record) is ReviewStatus.SAFE:
                continue
            for issue in record.issues:
                self.flag(node_id, record.path, issue)

    def reviews(self) -> list[ParameterReview]:
        return [
            ParameterReview(node_id=node_id, parameter_paths=list(paths), reason="; ".join(reasons))
            for node_id, (paths, reasons) in self._flags.items()
        ]
