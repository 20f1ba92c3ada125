"""
End-to-end tests for workflow conversion.
"""

import copy

import pytest

from flow_translate import WorkflowConverter, convert
from flow_translate.config import ConversionOptions
from flow_translate.convert.walker import WalkMode
from flow_translate.exceptions import InvalidConfigError, MappingTableError
from flow_translate.mapping.stubs import PLACEHOLDER_TYPES, STUB_INFO_KEY
from flow_translate.models.workflow import LogLevel, Platform


def n8n_node(node_id, name, node_type, parameters=None, x=0):
    return {
        "id": node_id,
        "name": name,
        "type": node_type,
        "typeVersion": 1,
        "position": [x, 0],
        "parameters": parameters or {},
    }


def link(*names):
    """n8n connections for a linear chain of node names."""
    return {
        source: {"main": [[{"node": target, "type": "main", "index": 0}]]}
        for source, target in zip(names, names[1:])
    }


def errors(result):
    return [log for log in result.logs if log.level is LogLevel.ERROR]


def warnings(result):
    return [log for log in result.logs if log.level is LogLevel.WARNING]


class TestN8nToMake:
    """Tests for n8n -> Make conversion."""

    def test_converts_nodes_and_expressions(self, n8n_workflow, mapping_table):
        """Test a trigger -> HTTP -> Set chain."""
        result = convert(n8n_workflow, "n8n", "make", mapping_table=mapping_table)
        flow = result.converted_workflow["flow"]

        assert [m["id"] for m in flow] == [1, 2, 3]
        assert [m["module"] for m in flow] == [
            "builtin:Trigger",
            "http:ActionSendRequest",
            "util:SetVariables",
        ]
        assert flow[1]["mapper"] == {
            "url": '{{"https://example.com/api/" + 1.id}}',
            "method": "get",
            "timeout": 5000,
        }
        assert flow[1]["parameters"] == {
            "__IMTCONN__httpHeaderAuth": {"id": "7", "name": "API key"}
        }
        values = flow[2]["mapper"]["variables"]["string"]
        assert values[0]["value"] == "Hello {{2.name}}!"
        assert values[1]["value"] == "{{1.origin}}"
        assert values[2]["value"] == "plain text"

        assert result.parameters_needing_review == []
        assert result.unmapped_nodes == []
        assert errors(result) == []

    def test_module_layout_fields(self, n8n_workflow, mapping_table):
        """Test labels and designer positions."""
        result = convert(n8n_workflow, "n8n", "make", mapping_table=mapping_table)
        module = result.converted_workflow["flow"][1]
        assert module["label"] == "Get User"
        assert module["metadata"] == {"designer": {"x": 200, "y": 0}}
        assert result.converted_workflow["name"] == "Fetch user"

    def test_function_translation_scenario(self, mapping_table):
        """Test ={{ $str.upper($json.text) }} with $json bound to module 1."""
        document = {
            "nodes": [
                n8n_node("a", "Start", "n8n-nodes-base.manualTrigger"),
                n8n_node(
                    "b", "Shout", "n8n-nodes-base.set", {"v": "={{ $str.upper($json.text) }}"}
                ),
            ],
            "connections": link("Start", "Shout"),
        }
        result = convert(document, "n8n", "make", mapping_table=mapping_table)
        assert result.converted_workflow["flow"][1]["mapper"]["v"] == "{{upper(1.text)}}"

    def test_review_flag_scenario(self, mapping_table):
        """Test that unknown functions are kept verbatim and reported."""
        document = {
            "nodes": [
                n8n_node("a", "Start", "n8n-nodes-base.manualTrigger"),
                n8n_node("b", "Custom", "n8n-nodes-base.set", {"v": "={{ $customFn($json.a) }}"}),
            ],
            "connections": link("Start", "Custom"),
        }
        result = convert(document, "n8n", "make", mapping_table=mapping_table)

        assert result.converted_workflow["flow"][1]["mapper"]["v"] == "={{ $customFn($json.a) }}"
        assert len(result.parameters_needing_review) == 1
        review = result.parameters_needing_review[0]
        assert review.node_id == "b"
        assert review.parameter_paths == ["v"]
        assert "unrecognized function" in review.reason

    def test_unparsable_expression_is_logged(self, mapping_table):
        """Test that an expression copied verbatim after a parse failure gets a warning."""
        text = "={{ $json.a > 3 ? 1 : 2 }}"
        document = {
            "nodes": [
                n8n_node("a", "Start", "n8n-nodes-base.manualTrigger"),
                n8n_node("b", "Pick", "n8n-nodes-base.set", {"v": text}),
            ],
            "connections": link("Start", "Pick"),
        }
        result = convert(document, "n8n", "make", mapping_table=mapping_table)

        assert result.converted_workflow["flow"][1]["mapper"]["v"] == text
        assert any("Could not parse expression" in log.message for log in warnings(result))
        assert "unparsable expression" in result.parameters_needing_review[0].reason

    def test_unmapped_scenario(self, mapping_table):
        """Test that an unknown type becomes a placeholder stub."""
        document = {
            "nodes": [
                n8n_node("a", "Start", "n8n-nodes-base.manualTrigger"),
                n8n_node("crm-1", "CRM", "vendor.crm", {"account": "={{ $json.id }}"}),
            ],
            "connections": link("Start", "CRM"),
        }
        result = convert(document, "n8n", "make", mapping_table=mapping_table)

        assert result.unmapped_nodes == ["crm-1"]
        stub = result.converted_workflow["flow"][1]
        assert stub["module"] == PLACEHOLDER_TYPES[Platform.MAKE]
        assert stub["mapper"]["account"] == "={{ $json.id }}"
        assert stub["mapper"][STUB_INFO_KEY]["originalType"] == "vendor.crm"
        assert any("vendor.crm" in log.message for log in warnings(result))
        assert result.debug["stubCount"] == 1

    def test_fallback_template(self, mapping_table):
        """Test that unmapped HTTP-like types use the HTTP template."""
        document = {
            "nodes": [
                n8n_node("a", "Start", "n8n-nodes-base.manualTrigger"),
                n8n_node("h", "Call", "vendor.httpCaller", {"endpoint": "={{ $json.url }}"}),
            ],
            "connections": link("Start", "Call"),
        }
        result = convert(document, "n8n", "make", mapping_table=mapping_table)

        module = result.converted_workflow["flow"][1]
        assert module["module"] == "http:ActionSendRequest"
        assert module["mapper"]["endpoint"] == "{{1.url}}"
        assert module["mapper"][STUB_INFO_KEY]["fallbackCategory"] == "http"
        assert result.unmapped_nodes == []
        assert result.debug["fallbackCount"] == 1

    def test_code_parameters_flagged(self, mapping_table):
        """Test that embedded code is copied and flagged."""
        code = "return items.map(i => i);"
        document = {
            "nodes": [n8n_node("f", "Fn", "n8n-nodes-base.function", {"functionCode": code})],
            "connections": {},
        }
        result = convert(document, "n8n", "make", mapping_table=mapping_table)

        assert result.converted_workflow["flow"][0]["mapper"] == {"code": code}
        review = result.parameters_needing_review[0]
        assert review.parameter_paths == ["code"]
        assert review.reason == "embedded code requires manual review"

    def test_merge_node(self, mapping_table):
        """Test a node with two upstream nodes."""
        document = {
            "nodes": [
                n8n_node("a", "Left", "n8n-nodes-base.manualTrigger"),
                n8n_node("b", "Right", "n8n-nodes-base.manualTrigger"),
                n8n_node("c", "Merge", "n8n-nodes-base.set", {"v": "={{ $json.x }}"}),
            ],
            "connections": {
                "Left": {"main": [[{"node": "Merge", "type": "main", "index": 0}]]},
                "Right": {"main": [[{"node": "Merge", "type": "main", "index": 1}]]},
            },
        }
        result = convert(document, "n8n", "make", mapping_table=mapping_table)

        flow = result.converted_workflow["flow"]
        assert [m["id"] for m in flow] == [1, 2, 3]
        assert flow[2]["mapper"]["v"] == "{{1.x}}"
        assert "ambiguous upstream node" in result.parameters_needing_review[0].reason
        assert len(result.debug["unrepresentedConnections"]) == 2
        assert len(warnings(result)) == 2

    def test_preserve_ids(self, mapping_table):
        """Test that numeric source ids are kept as module ids."""
        document = {
            "nodes": [
                n8n_node("7", "A", "n8n-nodes-base.manualTrigger"),
                n8n_node("x", "B", "n8n-nodes-base.set"),
                n8n_node("2", "C", "n8n-nodes-base.set"),
            ],
            "connections": link("A", "B", "C"),
        }
        options = ConversionOptions(preserve_ids=True)
        result = convert(document, "n8n", "make", options, mapping_table)
        assert [m["id"] for m in result.converted_workflow["flow"]] == [7, 1, 2]

    def test_evaluate_mode(self, n8n_workflow, mapping_table):
        """Test that evaluate mode inlines values from the node context."""
        options = {
            "mode": "evaluate",
            "node_contexts": {"b2": {"$json": {"id": "12345"}}},
        }
        result = convert(n8n_workflow, "n8n", "make", options, mapping_table)
        module = result.converted_workflow["flow"][1]
        assert module["mapper"]["url"] == "https://example.com/api/12345"

    def test_depth_limit(self, mapping_table):
        """Test that overly deep parameters are copied and reported."""
        deep = {"a": {"b": {"c": {"d": "={{ $json.x }}"}}}}
        document = {
            "nodes": [n8n_node("s", "Deep", "n8n-nodes-base.set", deep)],
            "connections": {},
        }
        options = ConversionOptions(max_parameter_depth=2)
        result = convert(document, "n8n", "make", options, mapping_table)

        assert result.converted_workflow["flow"][0]["mapper"] == deep
        assert len(errors(result)) == 1
        assert result.parameters_needing_review[0].reason == (
            "parameter tree too deep, copied verbatim"
        )

    def test_dangling_connection(self, mapping_table):
        """Test that connections to unknown nodes are logged, not fatal."""
        document = {
            "nodes": [n8n_node("a", "Start", "n8n-nodes-base.manualTrigger")],
            "connections": link("Start", "Ghost"),
        }
        result = convert(document, "n8n", "make", mapping_table=mapping_table)
        assert len(result.converted_workflow["flow"]) == 1
        assert len(result.debug["danglingConnections"]) == 1
        assert errors(result) == []


class TestMakeToN8n:
    """Tests for Make -> n8n conversion."""

    def test_converts_router_scenario(self, make_workflow, mapping_table):
        """Test routes, inverse mappings and positional references."""
        result = convert(make_workflow, "make", "n8n", mapping_table=mapping_table)
        workflow = result.converted_workflow
        nodes = {node["name"]: node for node in workflow["nodes"]}

        assert list(nodes) == ["Trigger", "Router", "Send", "Remember"]
        assert nodes["Router"]["type"] == "n8n-nodes-base.switch"
        assert nodes["Send"]["type"] == "n8n-nodes-base.httpRequest"
        assert nodes["Send"]["parameters"] == {
            "url": '={{ $node["Trigger"].json.url }}',
            "method": "POST",
        }
        assert nodes["Send"]["credentials"] == {"": 42}
        assert nodes["Send"]["position"] == [600, -150]
        assert nodes["Remember"]["parameters"] == {
            "values": {"note": '=Hi {{ $str.upper($node["Trigger"].json.name) }}'}
        }
        assert workflow["connections"] == {
            "Trigger": {"main": [[{"node": "Router", "type": "main", "index": 0}]]},
            "Router": {
                "main": [
                    [{"node": "Send", "type": "main", "index": 0}],
                    [{"node": "Remember", "type": "main", "index": 0}],
                ]
            },
        }
        assert workflow["active"] is False
        assert errors(result) == []

    def test_node_ids_are_deterministic(self, make_workflow, mapping_table):
        """Test that converting twice gives the same node ids."""
        first = convert(make_workflow, "make", "n8n", mapping_table=mapping_table)
        second = convert(make_workflow, "make", "n8n", mapping_table=mapping_table)
        ids = [node["id"] for node in first.converted_workflow["nodes"]]
        assert ids == [node["id"] for node in second.converted_workflow["nodes"]]
        assert len(set(ids)) == 4

    def test_duplicate_labels_get_unique_names(self, mapping_table):
        """Test that n8n node names are unique."""
        document = {
            "flow": [
                {"id": 1, "module": "util:SetVariables", "label": "Set"},
                {"id": 2, "module": "util:SetVariables", "label": "Set"},
            ]
        }
        result = convert(document, "make", "n8n", mapping_table=mapping_table)
        names = [node["name"] for node in result.converted_workflow["nodes"]]
        assert names == ["Set", "Set 1"]
        assert result.converted_workflow["connections"] == {
            "Set": {"main": [[{"node": "Set 1", "type": "main", "index": 0}]]}
        }

    def test_legacy_layout(self, mapping_table):
        """Test the {blueprint, modules} Make layout."""
        document = {
            "blueprint": {"name": "Old"},
            "modules": [{"id": 1, "module": "util:SetVariables", "label": "Only"}],
        }
        result = convert(document, "auto", "n8n", mapping_table=mapping_table)
        assert result.converted_workflow["name"] == "Old"
        assert len(result.converted_workflow["nodes"]) == 1
        assert any("legacy" in log.message.lower() for log in result.logs)

    def test_query_string_url_is_translated(self, mapping_table):
        """Test that an '=' inside a URL does not hide the expression block."""
        document = {
            "flow": [
                {"id": 1, "module": "builtin:Trigger", "label": "Start"},
                {
                    "id": 2,
                    "module": "http:ActionSendRequest",
                    "label": "Fetch",
                    "mapper": {"url": "https://api.example.com/items?id={{1.id}}"},
                },
            ]
        }
        result = convert(document, "make", "n8n", mapping_table=mapping_table)

        fetch = result.converted_workflow["nodes"][1]
        assert fetch["parameters"]["url"] == "=https://api.example.com/items?id={{ $json.id }}"
        assert result.parameters_needing_review == []

    def test_non_mapping_designer_metadata(self, mapping_table):
        """Test that a designer value that is not a mapping falls back to the default layout."""
        document = {
            "flow": [
                {"id": 1, "module": "builtin:Trigger", "label": "Start"},
                {
                    "id": 2,
                    "module": "util:SetVariables",
                    "label": "Set",
                    "metadata": {"designer": "legacy"},
                },
            ]
        }
        result = convert(document, "make", "n8n", mapping_table=mapping_table)

        assert errors(result) == []
        assert result.converted_workflow["nodes"][1]["position"] == [200, 0]


class TestRoundTrip:
    """Tests for converting there and back."""

    def test_make_round_trip(self, make_workflow, mapping_table):
        """Test Make -> n8n -> Make restores modules, routes and expressions."""
        n8n = convert(make_workflow, "make", "n8n", mapping_table=mapping_table)
        back = convert(n8n.converted_workflow, "n8n", "make", mapping_table=mapping_table)

        flow = back.converted_workflow["flow"]
        assert [m["id"] for m in flow] == [1, 2]
        routes = flow[1]["routes"]
        send = routes[0]["flow"][0]
        remember = routes[1]["flow"][0]
        assert send["mapper"] == {"url": "{{1.url}}", "method": "post"}
        assert send["parameters"] == {"__IMTCONN__": 42}
        assert remember["mapper"] == {"variables": {"note": "Hi {{upper(1.name)}}"}}

    def test_stub_round_trip(self, mapping_table):
        """Test that a stub restores the original node type and parameters."""
        document = {
            "nodes": [
                n8n_node("a", "Start", "n8n-nodes-base.manualTrigger"),
                n8n_node("c", "CRM", "vendor.crm", {"account": "={{ $json.id }}", "n": 1}),
            ],
            "connections": link("Start", "CRM"),
        }
        make = convert(document, "n8n", "make", mapping_table=mapping_table)
        back = convert(make.converted_workflow, "make", "n8n", mapping_table=mapping_table)

        crm = back.converted_workflow["nodes"][1]
        assert crm["type"] == "vendor.crm"
        assert crm["parameters"] == {"account": "={{ $json.id }}", "n": 1}
        assert back.unmapped_nodes == []
        assert back.debug["recoveredCount"] == 1

    def test_fallback_round_trip(self, mapping_table):
        """Test that a fallback node comes back with translated expressions."""
        document = {
            "nodes": [
                n8n_node("a", "Start", "n8n-nodes-base.manualTrigger"),
                n8n_node("h", "Call", "vendor.httpCaller", {"endpoint": "={{ $json.url }}"}),
            ],
            "connections": link("Start", "Call"),
        }
        make = convert(document, "n8n", "make", mapping_table=mapping_table)
        back = convert(make.converted_workflow, "make", "n8n", mapping_table=mapping_table)

        call = back.converted_workflow["nodes"][1]
        assert call["type"] == "vendor.httpCaller"
        assert call["parameters"] == {"endpoint": "={{ $json.url }}"}


class TestEdgeCases:
    """Tests for degenerate input."""

    def test_empty_workflow_scenario(self, mapping_table):
        """Test that zero nodes give an empty target document without errors."""
        empty = {"nodes": [], "connections": {}}
        result = convert(empty, "n8n", "make", mapping_table=mapping_table)
        assert result.converted_workflow["flow"] == []
        assert errors(result) == []

        result = convert({"flow": []}, "make", "n8n", mapping_table=mapping_table)
        assert result.converted_workflow["nodes"] == []
        assert result.converted_workflow["connections"] == {}
        assert errors(result) == []

    def test_invalid_input_is_logged(self, mapping_table):
        """Test that schema violations produce an error log and an empty skeleton."""
        result = convert({"nodes": "oops"}, "n8n", "make", mapping_table=mapping_table)
        assert result.converted_workflow["flow"] == []
        assert result.has_errors
        assert "Invalid n8n workflow" in errors(result)[0].message

    def test_no_silent_drops(self, mapping_table):
        """Test that every source node appears in the output."""
        document = {
            "nodes": [
                n8n_node("1", "A", "n8n-nodes-base.manualTrigger"),
                n8n_node("2", "B", "vendor.unknown"),
                n8n_node("3", "C", "vendor.webhookThing"),
                n8n_node("4", "D", "n8n-nodes-base.set"),
                n8n_node("5", "E", "n8n-nodes-base.switch"),
            ],
            "connections": link("A", "B", "C", "D", "E"),
        }
        result = convert(document, "n8n", "make", mapping_table=mapping_table)
        assert result.debug["nodeCount"] == 5
        assert len(result.converted_workflow["flow"]) == 5

        back = convert(result.converted_workflow, "make", "n8n", mapping_table=mapping_table)
        assert len(back.converted_workflow["nodes"]) == 5

    def test_source_is_not_mutated(self, n8n_workflow, mapping_table):
        """Test that conversion leaves the input document alone."""
        before = copy.deepcopy(n8n_workflow)
        convert(n8n_workflow, "n8n", "make", mapping_table=mapping_table)
        assert n8n_workflow == before

    def test_missing_mapping_table(self):
        """Test that a converter needs a table."""
        with pytest.raises(MappingTableError):
            WorkflowConverter(None)

    def test_invalid_options(self, n8n_workflow, mapping_table):
        """Test that unknown option keys are rejected."""
        with pytest.raises(InvalidConfigError):
            convert(n8n_workflow, "n8n", "make", {"unknown_option": 1}, mapping_table)

    def test_default_mapping_table(self, n8n_workflow):
        """Test conversion with the bundled mapping database."""
        result = convert(n8n_workflow, "n8n", "make")
        modules = [m["module"] for m in result.converted_workflow["flow"]]
        assert modules[1] == "http:ActionSendRequest"
        assert modules[2] == "util:SetVariables"

    def test_debug_details(self, n8n_workflow, mapping_table):
        """Test per-node details in debug mode."""
        options = ConversionOptions(debug=True, mode=WalkMode.TRANSLATE)
        result = convert(n8n_workflow, "n8n", "make", options, mapping_table)
        assert [d["outcome"] for d in result.debug["nodes"]] == ["mapped"] * 3
        assert result.debug["options"]["mode"] == "translate"

    def test_result_to_dict(self, n8n_workflow, mapping_table):
        """Test the camelCase result format."""
        data = convert(n8n_workflow, "n8n", "make", mapping_table=mapping_table).to_dict()
        assert set(data) == {
            "convertedWorkflow",
            "parametersNeedingReview",
            "unmappedNodes",
            "logs",
            "debug",
        }
        assert data["logs"][0]["level"] == "info"
