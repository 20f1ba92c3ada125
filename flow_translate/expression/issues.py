"""
Problems found while translating parameters that need a human to look at.
"""

from enum import Enum
from typing import NamedTuple


class IssueKind(Enum):
    """Why a parameter could not be converted with confidence."""

    PARSE_FAILURE = "parse_failure"
    UNKNOWN_FUNCTION = "unknown_function"
    UNRESOLVED_REFERENCE = "unresolved_reference"
    MULTI_PREDECESSOR = "multi_predecessor"
    EMBEDDED_CODE = "embedded_code"
    DEPTH_LIMIT = "depth_limit"

    @property
    def description(self) -> str:
        descriptions = {
            IssueKind.PARSE_FAILURE: "unparsable expression",
            IssueKind.UNKNOWN_FUNCTION: "unrecognized function",
            IssueKind.UNRESOLVED_REFERENCE: "unresolved variable reference",
            IssueKind.MULTI_PREDECESSOR: "ambiguous upstream node, bound to first connection",
            IssueKind.EMBEDDED_CODE: "embedded code requires manual review",
            IssueKind.DEPTH_LIMIT: "parameter tree too deep, copied verbatim",
        }
        return descriptions[self]

    @property
    def keeps_original(self) -> bool:
        """True when the whole original string must be kept instead of a rewrite."""
        return self in (IssueKind.PARSE_FAILURE, IssueKind.UNKNOWN_FUNCTION)


class TranslationIssue(NamedTuple):
    """One problem with its subject (function name, reference, ...)."""

    kind: IssueKind
    detail: str = ""

    @property
    def reason(self) -> str:
        if self.detail:
            return f"{self.kind.description} '{self.detail}'"
        return self.kind.description
