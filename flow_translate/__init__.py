"""
flow-translate: workflow converter between n8n and Make.

Converts node-graph (n8n) workflows to flow-graph (Make) scenarios and
back, translating the expression language embedded in node parameters and
flagging everything that needs a human to look at it.

Main features:
- Expression parsing, dialect translation and sandboxed evaluation
- Bidirectional node type mapping from a validated mapping database
- Fallback templates and placeholder stubs for unmapped node types
- Review list of parameters that could not be translated with confidence
- Markdown review reports
"""

import logging

from flow_translate.convert.orchestrator import WorkflowConverter, convert

__version__ = "0.3.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = ["WorkflowConverter", "convert", "__version__"]
