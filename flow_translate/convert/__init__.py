"""
Workflow conversion pipeline.

Modules:
- platforms: Platform detection, schema validation, source document reading
- walker: Parameter tree walk (translate or evaluate expressions)
- review: SAFE / NEEDS_REVIEW classification and per-node review entries
- connections: Edge remapping and target-side layout
- tracker: Conversion log collection
- orchestrator: WorkflowConverter and the convert() entry point
"""
