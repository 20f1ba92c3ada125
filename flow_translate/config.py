"""
Conversion options and the flow-translate.yaml configuration file.
"""

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validate

from flow_translate.convert.walker import DEFAULT_MAX_DEPTH, WalkMode
from flow_translate.exceptions import InvalidConfigError
from flow_translate.expression.evaluator import DEFAULT_DEPTH_BUDGET, DEFAULT_STEP_BUDGET

PACKAGE_ROOT = Path(__file__).parent
SCHEMA_FILE = PACKAGE_ROOT / "schema/config.schema.json"
CONFIG_FILENAME = "flow-translate.yaml"

DEFAULT_CONFIG = {
    "mode": "translate",
    "preserve_ids": False,
    "copy_unmapped_parameters": True,
    "max_parameter_depth": DEFAULT_MAX_DEPTH,
    "evaluation_step_budget": DEFAULT_STEP_BUDGET,
    "evaluation_depth_budget": DEFAULT_DEPTH_BUDGET,
    "expression_context": {},
    "node_contexts": {},
    "debug": False,
    "workflow_name": None,
}


@dataclass
class ConversionOptions:
    """
    Options for one conversion call.

    Attributes:
        mode: Translate expressions, or evaluate them against a context
        preserve_ids: Reuse source node ids where the target platform allows it
        copy_unmapped_parameters: Keep parameters without a path mapping
        max_parameter_depth: Deepest parameter nesting walked before giving up
        evaluation_step_budget: Steps allowed per evaluated expression
        evaluation_depth_budget: Nesting allowed per evaluated expression
        expression_context: Variables for evaluate mode, keyed by source root
        node_contexts: Per-node variables merged over expression_context
        debug: Include per-node details in the result
        workflow_name: Name of the converted workflow (source name by default)
    """

    mode: WalkMode = WalkMode.TRANSLATE
    preserve_ids: bool = False
    copy_unmapped_parameters: bool = True
    max_parameter_depth: int = DEFAULT_MAX_DEPTH
    evaluation_step_budget: int = DEFAULT_STEP_BUDGET
    evaluation_depth_budget: int = DEFAULT_DEPTH_BUDGET
    expression_context: dict[str, Any] = field(default_factory=dict)
    node_contexts: dict[str, dict[str, Any]] = field(default_factory=dict)
    debug: bool = False
    workflow_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ConversionOptions":
        """
        Build options from a config mapping, filling in defaults.

        Raises:
            InvalidConfigError: If the mapping fails schema validation
        """
        config = copy.deepcopy(DEFAULT_CONFIG)
        config.update(data or {})
        validate_config(config)
        config["mode"] = WalkMode(config["mode"])
        return cls(**config)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "preserve_ids": self.preserve_ids,
            "copy_unmapped_parameters": self.copy_unmapped_parameters,
            "max_parameter_depth": self.max_parameter_depth,
            "evaluation_step_budget": self.evaluation_step_budget,
            "evaluation_depth_budget": self.evaluation_depth_budget,
            "expression_context": self.expression_context,
            "node_contexts": self.node_contexts,
            "debug": self.debug,
            "workflow_name": self.workflow_name,
        }

    def variables_for(self, node_id: str) -> dict[str, Any]:
        """Evaluation context for one node."""
        variables = dict(self.expression_context)
        variables.update(self.node_contexts.get(node_id, {}))
        return variables


def validate_config(config: Any) -> None:
    """
    Validate a config mapping against the bundled JSON schema.

    Raises:
        InvalidConfigError: If validation fails
    """
    if not isinstance(config, dict):
        raise InvalidConfigError(f"expected a mapping, got {type(config).__name__}")

    schema = json.loads(SCHEMA_FILE.read_text())
    try:
        validate(instance=config, schema=schema)
    except ValidationError as e:
        raise InvalidConfigError(
            f"{e.message}\n  Path: {'.'.join(str(p) for p in e.path) or '<root>'}"
        ) from e


def load_config(path: str | Path) -> ConversionOptions:
    """
    Load conversion options from a YAML file.

    Args:
        path: Path to a flow-translate.yaml file

    Returns:
        ConversionOptions with defaults for missing keys

    Raises:
        FileNotFoundError: If the file does not exist
        InvalidConfigError: If the file is empty, malformed or invalid
    """
    config_file = Path(path)
    if not config_file.exists():
        raise FileNotFoundError(f"Config file not found: {config_file}")

    try:
        with open(config_file) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfigError(f"cannot parse {config_file}: {e}") from e

    if config is None:
        raise InvalidConfigError(f"config file is empty: {config_file}")

    return ConversionOptions.from_dict(config)


def write_default_config(path: str | Path) -> Path:
    """Write a flow-translate.yaml with every option at its default."""
    config_file = Path(path)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        yaml.dump(DEFAULT_CONFIG, f, default_flow_style=False, sort_keys=False)
    return config_file
