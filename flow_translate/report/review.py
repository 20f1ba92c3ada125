"""
Markdown review report for a conversion result.

Lists the parameters needing review, the nodes replaced by stubs and every
warning or error of the conversion log, so a reviewer can go through the
converted workflow before activating it.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from flow_translate.models.workflow import ConversionResult, LogLevel
from flow_translate.util.files import write_text

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
TEMPLATE_NAME = "review.md.j2"


def build_report_context(result: ConversionResult, workflow_name: str | None = None) -> dict:
    """
    Build data context for the report template.

    Args:
        result: Conversion result
        workflow_name: Name shown in the title (converted workflow name by default)

    Returns:
        Template context dict
    """
    debug = result.debug or {}
    name = workflow_name or result.converted_workflow.get("name") or "Untitled workflow"

    problems = [log for log in result.logs if log.level is not LogLevel.INFO]
    if result.has_errors:
        status, status_emoji = "Failed", "❌"
    elif result.parameters_needing_review or result.unmapped_nodes:
        status, status_emoji = "Needs review", "⚠️"
    else:
        status, status_emoji = "Ready", "✅"

    return {
        "workflow_name": name,
        "generated_at": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        "source_platform": debug.get("sourcePlatform", "?"),
        "target_platform": debug.get("targetPlatform", "?"),
        "status": status,
        "status_emoji": status_emoji,
        "counts": {
            "nodes": debug.get("nodeCount", 0),
            "mapped": debug.get("mappedCount", 0),
            "fallback": debug.get("fallbackCount", 0),
            "stub": debug.get("stubCount", 0),
            "recovered": debug.get("recoveredCount", 0),
            "connections": debug.get("connectionCount", 0),
        },
        "reviews": result.parameters_needing_review,
        "unmapped_nodes": result.unmapped_nodes,
        "problems": [{"level": log.level.value, "message": log.message} for log in problems],
        "unrepresented": debug.get("unrepresentedConnections", []),
    }


def render_review_report(result: ConversionResult, workflow_name: str | None = None) -> str:
    """
    Render the Markdown review report.

    Example:
        >>> report = render_review_report(convert(workflow, "n8n", "make"))
        >>> report.splitlines()[0]
        '# Conversion Review: My workflow'
    """
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    template = env.get_template(TEMPLATE_NAME)
    context: dict[str, Any] = build_report_context(result, workflow_name)
    return template.render(**context)


def write_review_report(
    result: ConversionResult, path: str | Path, workflow_name: str | None = None
) -> Path:
    """
    Render the review report and write it to ``path``.

    Returns:
        Path of the written report
    """
    report_file = Path(path)
    write_text(report_file, render_review_report(result, workflow_name))
    logger.info(f"Wrote review report to {report_file}")
    return report_file
