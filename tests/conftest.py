"""
Pytest configuration and shared fixtures.
"""

import pytest

from flow_translate.expression.translator import NodeRef, TranslationContext
from flow_translate.mapping.table import MappingEntry, MappingTable


@pytest.fixture
def mapping_table():
    """Small mapping table independent of the bundled database."""
    return MappingTable(
        [
            MappingEntry(
                source_type="n8n-nodes-base.httpRequest",
                target_type="http:ActionSendRequest",
                parameter_path_map={"url": "url", "method": "method", "options.timeout": "timeout"},
                value_substitutions={"method": {"GET": "get", "POST": "post"}},
            ),
            MappingEntry(
                source_type="n8n-nodes-base.set",
                target_type="util:SetVariables",
                parameter_path_map={"values": "variables"},
            ),
            MappingEntry(
                source_type="n8n-nodes-base.function",
                target_type="tools:ActionRunJavascript",
                parameter_path_map={"functionCode": "code"},
                code_parameters=("functionCode",),
            ),
            MappingEntry(
                source_type="n8n-nodes-base.switch",
                target_type="builtin:BasicRouter",
            ),
            MappingEntry(
                source_type="n8n-nodes-base.manualTrigger",
                target_type="builtin:Trigger",
            ),
        ],
        version="test",
    )


@pytest.fixture
def chain_context():
    """Trigger (1) -> Fetch (2) -> Format (3)."""
    nodes = [
        NodeRef(key="a", name="Trigger", position="1"),
        NodeRef(key="b", name="Fetch", position="2"),
        NodeRef(key="c", name="Format", position="3"),
    ]
    return TranslationContext(nodes, {"b": ["a"], "c": ["b"]})


@pytest.fixture
def n8n_workflow():
    """Trigger -> HTTP request -> Set, with expressions referencing upstream nodes."""
    return {
        "name": "Fetch user",
        "nodes": [
            {
                "id": "a1",
                "name": "Start",
                "type": "n8n-nodes-base.manualTrigger",
                "typeVersion": 1,
                "position": [0, 0],
                "parameters": {},
            },
            {
                "id": "b2",
                "name": "Get User",
                "type": "n8n-nodes-base.httpRequest",
                "typeVersion": 4,
                "position": [200, 0],
                "parameters": {
                    "url": '={{ "https://example.com/api/" + $json.id }}',
                    "method": "GET",
                    "options": {"timeout": 5000},
                },
                "credentials": {"httpHeaderAuth": {"id": "7", "name": "API key"}},
            },
            {
                "id": "c3",
                "name": "Shape",
                "type": "n8n-nodes-base.set",
                "typeVersion": 1,
                "position": [400, 0],
                "parameters": {
                    "values": {
                        "string": [
                            {"name": "greeting", "value": "=Hello {{ $json.name }}!"},
                            {"name": "source", "value": '={{ $node["Start"].json.origin }}'},
                            {"name": "static", "value": "plain text"},
                        ]
                    }
                },
            },
        ],
        "connections": {
            "Start": {"main": [[{"node": "Get User", "type": "main", "index": 0}]]},
            "Get User": {"main": [[{"node": "Shape", "type": "main", "index": 0}]]},
        },
    }


@pytest.fixture
def make_workflow():
    """Make scenario with a router splitting into two routes."""
    return {
        "name": "Routed",
        "flow": [
            {
                "id": 1,
                "module": "builtin:Trigger",
                "label": "Trigger",
                "version": 1,
                "mapper": {},
                "metadata": {"designer": {"x": 0, "y": 0}},
            },
            {
                "id": 2,
                "module": "builtin:BasicRouter",
                "label": "Router",
                "version": 1,
                "mapper": {},
                "metadata": {"designer": {"x": 300, "y": 0}},
                "routes": [
                    {
                        "flow": [
                            {
                                "id": 3,
                                "module": "http:ActionSendRequest",
                                "label": "Send",
                                "version": 3,
                                "parameters": {"__IMTCONN__": 42},
                                "mapper": {"url": "{{1.url}}", "method": "post"},
                                "metadata": {"designer": {"x": 600, "y": -150}},
                            }
                        ]
                    },
                    {
                        "flow": [
                            {
                                "id": 4,
                                "module": "util:SetVariables",
                                "label": "Remember",
                                "version": 1,
                                "mapper": {"variables": {"note": "Hi {{upper(1.name)}}"}},
                                "metadata": {"designer": {"x": 600, "y": 150}},
                            }
                        ]
                    },
                ],
            },
        ],
    }
