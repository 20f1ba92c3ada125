"""
Fallback templates and placeholder stubs for types without a mapping.

A node whose type has no mapping entry is either converted with a generic
category template (HTTP calls, webhooks) or replaced by a placeholder of the
target platform's no-op type. Both carry ``__stubInfo`` provenance so that a
later conversion back to the original platform restores the node.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Any

from flow_translate.models.workflow import Node, Platform

logger = logging.getLogger(__name__)

STUB_INFO_KEY = "__stubInfo"

PLACEHOLDER_TYPES = {
    Platform.N8N: "n8n-nodes-base.noOp",
    Platform.MAKE: "helper:Note",
}


@dataclass(frozen=True)
class FallbackTemplate:
    """Generic target type for a family of source types, matched by keyword."""

    category: str
    keywords: tuple[str, ...]
    n8n_type: str
    make_type: str

    def matches(self, source_type: str) -> bool:
        lowered = source_type.lower()
        return any(keyword in lowered for keyword in self.keywords)

    def target_type(self, platform: Platform) -> str:
        return self.n8n_type if platform is Platform.N8N else self.make_type


# Checked in order; the first matching template wins
FALLBACK_TEMPLATES = (
    FallbackTemplate(
        category="webhook",
        keywords=("webhook",),
        n8n_type="n8n-nodes-base.webhook",
        make_type="gateway:CustomWebHook",
    ),
    FallbackTemplate(
        category="http",
        keywords=("http", "request"),
        n8n_type="n8n-nodes-base.httpRequest",
        make_type="http:ActionSendRequest",
    ),
)


def find_fallback(source_type: str, templates=FALLBACK_TEMPLATES) -> FallbackTemplate | None:
    """Return the first category template matching a source type."""
    for template in templates:
        if template.matches(source_type):
            return template
    return None


def provenance(
    node: Node, source_platform: Platform, category: str | None = None
) -> dict[str, Any]:
    """Provenance block recorded on fallback and placeholder nodes."""
    info = {
        "originalType": node.type,
        "originalId": node.id,
        "originalName": node.name,
        "originalPlatform": source_platform.value,
    }
    if category:
        info["fallbackCategory"] = category
    return info


def build_placeholder(
    node: Node, source_platform: Platform, target_platform: Platform
) -> tuple[str, dict]:
    """
    Build a placeholder for a node that cannot be converted.

    Returns:
        (target type, parameters): the original parameters verbatim plus
        ``__stubInfo`` provenance
    """
    parameters = copy.deepcopy(node.parameters)
    parameters[STUB_INFO_KEY] = provenance(node, source_platform)
    return PLACEHOLDER_TYPES[target_platform], parameters


def recover_original(node: Node, target_platform: Platform) -> tuple[str, dict] | None:
    """
    Restore a node that an earlier conversion turned into a stub.

    Returns:
        (original type, original parameters), or None when the node carries
        no provenance for ``target_platform``
    """
    info = node.parameters.get(STUB_INFO_KEY)
    if not isinstance(info, dict):
        return None
    if info.get("originalPlatform") != target_platform.value or not info.get("originalType"):
        return None

    parameters = copy.deepcopy(node.parameters)
    del parameters[STUB_INFO_KEY]
    logger.debug(f"Recovered {info['originalType']} from stub {node.id}")
    return info["originalType"], parameters
