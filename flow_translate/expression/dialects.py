"""
Expression dialect names and the variable roots each dialect understands.

node-graph dialect (n8n):  ={{ $json.field }}, =Hello {{ $json.name }}
flow-graph dialect (make): {{1.field}}, Hello {{1.name}}
"""

NODE_GRAPH = "node-graph"
FLOW_GRAPH = "flow-graph"

DIALECTS = (NODE_GRAPH, FLOW_GRAPH)

# Item of the upstream node that feeds the current one
JSON_ROOT = "$json"
# $node["Name"].json addresses any node by name
NODE_ROOT = "$node"
NODE_DATA_FIELD = "json"

# node-graph root -> flow-graph root
ROOT_ALIASES = {
    "$env": "env",
    "$workflow": "scenario",
    "$binary": "binary",
    "$parameter": "parameters",
    "$now": "now",
    "$execution": "execution",
}

REVERSE_ROOT_ALIASES = {target: source for source, target in ROOT_ALIASES.items()}

