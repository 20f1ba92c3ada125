"""
Workflow data models shared by both platforms.

Source documents are normalized into Node and Connection records before
mapping, and every conversion call returns a ConversionResult.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from flow_translate.expression.dialects import FLOW_GRAPH, NODE_GRAPH


class Platform(Enum):
    """Supported workflow platforms."""

    N8N = "n8n"
    MAKE = "make"

    def __str__(self) -> str:
        return self.value

    @property
    def dialect(self) -> str:
        """Expression dialect used inside parameter strings."""
        return NODE_GRAPH if self is Platform.N8N else FLOW_GRAPH

    @property
    def display_name(self) -> str:
        return "n8n" if self is Platform.N8N else "Make"


class LogLevel(Enum):
    """Severity of a conversion log entry."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value

    @property
    def logging_level(self) -> int:
        return {
            LogLevel.INFO: logging.INFO,
            LogLevel.WARNING: logging.WARNING,
            LogLevel.ERROR: logging.ERROR,
        }[self]

    @property
    def style(self) -> str:
        """Rich markup style for CLI output."""
        return {LogLevel.INFO: "dim", LogLevel.WARNING: "yellow", LogLevel.ERROR: "red"}[self]


@dataclass
class Node:
    """
    A platform-neutral view of an n8n node or Make module.

    ``parameters`` holds every configurable value; for Make modules the
    ``mapper`` and ``parameters`` sections are merged, with credential
    references split out into ``credentials``.
    """

    id: str
    name: str
    type: str
    parameters: dict[str, Any] = field(default_factory=dict)
    position: tuple[float, float] = (0, 0)
    credentials: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Connection:
    """A directed edge from an output port to an input port."""

    from_node_id: str
    from_port: int
    to_node_id: str
    to_port: int = 0
    kind: str = "main"

    def to_dict(self) -> dict[str, Any]:
        return {
            "fromNodeId": self.from_node_id,
            "fromPort": self.from_port,
            "toNodeId": self.to_node_id,
            "toPort": self.to_port,
            "kind": self.kind,
        }


@dataclass
class ParameterReview:
    """Parameters of one node that need a human to check them."""

    node_id: str
    parameter_paths: list[str]
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodeId": self.node_id,
            "parameterPaths": list(self.parameter_paths),
            "reason": self.reason,
        }


@dataclass
class ConversionLog:
    """One entry of the conversion log."""

    level: LogLevel
    message: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level.value, "message": self.message, "timestamp": self.timestamp}


@dataclass
class ConversionResult:
    """
    Everything produced by one conversion call.

    Attributes:
        converted_workflow: Target-platform document
        parameters_needing_review: Review entries in node order
        unmapped_nodes: Source ids of nodes replaced by stubs
        logs: Ordered conversion log
        debug: Counts and diagnostics for the run
    """

    converted_workflow: dict[str, Any]
    parameters_needing_review: list[ParameterReview] = field(default_factory=list)
    unmapped_nodes: list[str] = field(default_factory=list)
    logs: list[ConversionLog] = field(default_factory=list)
    debug: dict[str, Any] = field(default_factory=dict)

    @property
    def has_errors(self) -> bool:
        return any(log.level is LogLevel.ERROR for log in self.logs)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys of the JSON result format."""
        return {
            "convertedWorkflow": self.converted_workflow,
            "parametersNeedingReview": [
                review.to_dict() for review in self.parameters_needing_review
            ],
            "unmappedNodes": list(self.unmapped_nodes),
            "logs": [log.to_dict() for log in self.logs],
            "debug": self.debug,
        }
