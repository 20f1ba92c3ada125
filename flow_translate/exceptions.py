"""
Custom exceptions for flow-translate with helpful error messages.
"""


class FlowTranslateError(Exception):
    """Base exception for flow-translate errors."""

    def __init__(self, message: str, suggestion: str = None):
        self.message = message
        self.suggestion = suggestion
        super().__init__(self.message)

    def __str__(self):
        if self.suggestion:
            return f"{self.message}\n\nSuggestion: {self.suggestion}"
        return self.message


class InvalidPlatformError(FlowTranslateError):
    """Unknown platform name, or source and target are the same platform."""

    def __init__(self, platform: str, reason: str = None):
        message = reason or f"Invalid platform: {platform}"
        suggestion = (
            "Platform must be one of:\n"
            "  - n8n (node-graph workflows)\n"
            "  - make (flow-graph scenarios)\n\n"
            "Source and target must differ. Example:\n"
            "  flow-translate convert workflow.json --from n8n --to make"
        )
        super().__init__(message, suggestion)


class WorkflowFileError(FlowTranslateError):
    """Workflow input file missing or not valid JSON."""

    def __init__(self, file_path: str, details: str = None):
        message = f"Cannot read workflow file: {file_path}"
        if details:
            message += f" ({details})"
        suggestion = (
            "Check that the file exists and contains a JSON workflow export:\n"
            f"  python -m json.tool {file_path}"
        )
        super().__init__(message, suggestion)


class MappingError(FlowTranslateError):
    """Errors related to the mapping database."""

    pass


class MappingTableError(MappingError):
    """No mapping table was supplied to the converter."""

    def __init__(self):
        message = "A MappingTable is required to convert workflows."
        suggestion = (
            "Load one with:\n"
            "  from flow_translate.mapping import load_mapping_table\n"
            "  table = load_mapping_table()\n\n"
            "and pass it to WorkflowConverter(table) or convert(..., mapping_table=table)."
        )
        super().__init__(message, suggestion)


class MappingDatabaseError(MappingError):
    """Mapping database document is unreadable or fails schema validation."""

    def __init__(self, error_details: str, file_path: str = None):
        message = f"Invalid mapping database: {error_details}"
        if file_path:
            message = f"Invalid mapping database {file_path}: {error_details}"
        suggestion = (
            "A mapping database needs the top-level keys version, lastUpdated and mappings.\n"
            "Each mapping needs at least targetType and parameterPathMap:\n"
            "  mappings:\n"
            "    n8n-nodes-base.httpRequest:\n"
            "      targetType: http:ActionSendRequest\n"
            "      parameterPathMap: {url: url}"
        )
        super().__init__(message, suggestion)


class ConfigurationError(FlowTranslateError):
    """Configuration file errors."""

    pass


class InvalidConfigError(ConfigurationError):
    """Configuration file is invalid."""

    def __init__(self, error_details: str):
        message = f"Invalid configuration file: {error_details}"
        suggestion = (
            "Fix the flow-translate.yaml file. Supported keys:\n"
            "  mode, preserve_ids, copy_unmapped_parameters, max_parameter_depth,\n"
            "  evaluation_step_budget, evaluation_depth_budget, expression_context,\n"
            "  node_contexts, debug, workflow_name"
        )
        super().__init__(message, suggestion)


class ConversionError(FlowTranslateError):
    """Recoverable failures raised and handled inside a conversion call."""

    pass


class InputValidationError(ConversionError):
    """Source document lacks the platform's required top-level shape."""

    def __init__(self, platform: str, errors: list[str]):
        error_list = "\n  - ".join(errors)
        message = f"Invalid {platform} workflow:\n  - {error_list}"
        super().__init__(message)
        self.errors = errors


class UnmappedTypeError(ConversionError):
    """No mapping entry exists for a node or module type."""

    def __init__(self, node_type: str):
        super().__init__(f"No mapping found for type: {node_type}")
        self.node_type = node_type


class ConnectionResolutionError(ConversionError):
    """A connection references a node that is absent from the id translation."""

    def __init__(self, reference: str):
        super().__init__(f"Connection references unknown node: {reference}")
        self.reference = reference


class ExpressionError(FlowTranslateError):
    """Errors while parsing or evaluating an embedded expression."""

    pass


class ExpressionParseError(ExpressionError):
    """Malformed expression body."""

    def __init__(self, message: str, position: int = None):
        if position is not None:
            message = f"{message} (at offset {position})"
        super().__init__(message)
        self.position = position


class EvaluationError(ExpressionError):
    """Expression could not be reduced to a value."""

    pass


class UnknownFunctionError(EvaluationError):
    """Function name is not in the builtin table."""

    def __init__(self, name: str):
        super().__init__(f"Unknown function: {name}")
        self.name = name


class EvaluationBudgetExceeded(EvaluationError):
    """Step or recursion budget exhausted during evaluation."""

    def __init__(self, budget: int, kind: str = "step"):
        super().__init__(f"Evaluation {kind} budget of {budget} exceeded")
        self.budget = budget
        self.kind = kind


class ParameterDepthError(FlowTranslateError):
    """Parameter tree nests deeper than the configured limit."""

    def __init__(self, path: str, limit: int):
        super().__init__(f"Parameter tree exceeds maximum depth {limit} at '{path or '<root>'}'")
        self.path = path
        self.limit = limit


def format_error_for_cli(error: Exception) -> str:
    """
    Format an exception for CLI display with helpful information.

    Args:
        error: The exception to format

    Returns:
        Formatted error message string
    """
    if isinstance(error, FlowTranslateError):
        output = f"[red]Error:[/red] {error.message}"
        if error.suggestion:
            output += f"\n\n[yellow]{error.suggestion}[/yellow]"
        return output
    else:
        return f"[red]Error:[/red] {str(error)}"
