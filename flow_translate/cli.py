"""
CLI entry point for flow-translate.
"""

import json
import logging
from functools import wraps
from pathlib import Path

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from flow_translate import __version__
from flow_translate.config import (
    CONFIG_FILENAME,
    ConversionOptions,
    load_config,
    write_default_config,
)
from flow_translate.convert.orchestrator import WorkflowConverter
from flow_translate.convert.platforms import detect_platform
from flow_translate.convert.walker import WalkMode
from flow_translate.exceptions import (
    FlowTranslateError,
    InvalidConfigError,
    WorkflowFileError,
    format_error_for_cli,
)
from flow_translate.mapping.loader import load_mapping_table
from flow_translate.models.workflow import ConversionResult, LogLevel
from flow_translate.report.review import write_review_report
from flow_translate.util.files import load_structured, read_json, write_json

app = typer.Typer(
    name="flow-translate",
    help="Convert workflows between n8n and Make",
    add_completion=False,
)
console = Console()
# Summary output when the converted document goes to stdout
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


def handle_errors(func):
    """Decorator to handle exceptions in CLI commands with nice formatting."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except FlowTranslateError as e:
            err_console.print(format_error_for_cli(e))
            raise typer.Exit(1)
        except (typer.Exit, typer.Abort):
            raise
        except Exception as e:
            err_console.print(f"[red]Unexpected error:[/red] {str(e)}")
            err_console.print("\n[yellow]This may be a bug. Please report it with the input")
            err_console.print("workflow and the command line you used.[/yellow]")
            raise typer.Exit(1)

    return wrapper


def _read_workflow(path: Path):
    try:
        return read_json(path)
    except FileNotFoundError:
        raise WorkflowFileError(str(path), "file not found") from None
    except json.JSONDecodeError as e:
        raise WorkflowFileError(str(path), f"invalid JSON: {e}") from e
    except OSError as e:
        raise WorkflowFileError(str(path), str(e)) from e


def _build_options(
    config: Path | None,
    evaluate: bool,
    context: Path | None,
    preserve_ids: bool,
    debug: bool,
) -> ConversionOptions:
    try:
        options = load_config(config) if config else ConversionOptions()
    except FileNotFoundError as e:
        raise InvalidConfigError(str(e)) from None
    if evaluate:
        options.mode = WalkMode.EVALUATE
    if preserve_ids:
        options.preserve_ids = True
    if debug:
        options.debug = True
    if context:
        try:
            variables = load_structured(context)
        except FileNotFoundError:
            raise InvalidConfigError(f"context file not found: {context}") from None
        except (ValueError, yaml.YAMLError) as e:
            raise InvalidConfigError(f"cannot parse context file {context}: {e}") from e
        if not isinstance(variables, dict):
            raise InvalidConfigError(f"context file must hold a mapping: {context}")
        options.expression_context = variables
        if options.mode is not WalkMode.EVALUATE:
            logger.debug("Expression context given without --evaluate; switching to evaluate mode")
            options.mode = WalkMode.EVALUATE
    return options


def _print_summary(result: ConversionResult, out: Console) -> None:
    debug = result.debug
    out.print(
        f"\n[bold]Converted {debug.get('nodeCount', 0)} nodes[/bold] "
        f"({debug.get('sourcePlatform')} → {debug.get('targetPlatform')})\n"
    )

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Outcome", style="dim")
    table.add_column("Count", justify="right")
    table.add_row("✅ Mapped", f"[green]{debug.get('mappedCount', 0)}[/green]")
    table.add_row("🔁 Fallback", f"[yellow]{debug.get('fallbackCount', 0)}[/yellow]")
    table.add_row("🧩 Stub", f"[red]{debug.get('stubCount', 0)}[/red]")
    table.add_row("↩️ Restored", f"[green]{debug.get('recoveredCount', 0)}[/green]")
    review_count = len(result.parameters_needing_review)
    table.add_row("⚠️ Needs review", f"[yellow]{review_count}[/yellow]")
    out.print(table)

    if result.parameters_needing_review:
        reviews = Table(show_header=True, header_style="bold yellow", title="Needs review")
        reviews.add_column("Node")
        reviews.add_column("Parameters")
        reviews.add_column("Reason")
        for review in result.parameters_needing_review:
            reviews.add_row(review.node_id, ", ".join(review.parameter_paths), review.reason)
        out.print(reviews)

    if result.unmapped_nodes:
        out.print(f"[yellow]Unmapped nodes:[/yellow] {', '.join(result.unmapped_nodes)}")

    for log in result.logs:
        if log.level is LogLevel.INFO:
            continue
        marker = "✗" if log.level is LogLevel.ERROR else "⚠"
        out.print(f"[{log.level.style}]{marker} {log.message}[/{log.level.style}]")


@app.command()
@handle_errors
def convert(
    input_file: Path = typer.Argument(..., help="Workflow JSON file to convert"),
    to: str = typer.Option("make", "--to", help="Target platform (n8n|make)"),
    source: str = typer.Option("auto", "--from", help="Source platform (n8n|make|auto)"),
    out: Path | None = typer.Option(None, "--out", help="Output file (stdout if omitted)"),
    mappings: Path | None = typer.Option(None, "--mappings", help="Mapping database file"),
    config: Path | None = typer.Option(None, "--config", help="flow-translate.yaml options"),
    evaluate: bool = typer.Option(
        False, "--evaluate", help="Replace expressions by their value in the given context"
    ),
    context: Path | None = typer.Option(
        None, "--context", help="JSON/YAML file with evaluation variables"
    ),
    report: Path | None = typer.Option(None, "--report", help="Write a Markdown review report"),
    preserve_ids: bool = typer.Option(
        False, "--preserve-ids", help="Reuse source node ids where possible"
    ),
    debug: bool = typer.Option(False, "--debug", help="Include per-node details and debug logs"),
):
    """Convert an n8n workflow to Make, or a Make scenario to n8n."""
    summary = console if out else err_console
    if debug:
        logging.basicConfig(
            level=logging.DEBUG, format="%(message)s", handlers=[RichHandler(console=err_console)]
        )

    document = _read_workflow(input_file)
    options = _build_options(config, evaluate, context, preserve_ids, debug)
    table = load_mapping_table(mappings)

    result = WorkflowConverter(table, options).convert(document, source, to)

    if out:
        write_json(out, result.converted_workflow)
        summary.print(f"[green]✓ Wrote converted workflow to {out}[/green]")
    else:
        typer.echo(json.dumps(result.converted_workflow, indent=2, ensure_ascii=False))

    if debug:
        summary.print_json(data=result.debug)

    if report:
        write_review_report(result, report)
        summary.print(f"[green]✓ Wrote review report to {report}[/green]")

    _print_summary(result, summary)

    if result.has_errors:
        raise typer.Exit(1)


@app.command()
@handle_errors
def init(
    path: Path = typer.Argument(Path(CONFIG_FILENAME), help="Config file to write"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
):
    """Write a flow-translate.yaml with every option at its default."""
    if path.exists() and not force:
        console.print(f"[red]Error:[/red] config file already exists: {path}")
        console.print("[dim]Use --force to overwrite it[/dim]")
        raise typer.Exit(1)

    written = write_default_config(path)
    console.print(f"[green]✓ Wrote default options to {written}[/green]")


@app.command()
@handle_errors
def detect(input_file: Path = typer.Argument(..., help="Workflow JSON file")):
    """Print the platform a workflow file belongs to."""
    platform = detect_platform(_read_workflow(input_file))
    if platform is None:
        console.print("[yellow]Could not detect the workflow platform[/yellow]")
        raise typer.Exit(1)
    console.print(platform.value)


@app.command(name="mappings")
@handle_errors
def list_mappings(
    mappings: Path | None = typer.Option(None, "--mappings", help="Mapping database file"),
):
    """List the node type mappings."""
    table = load_mapping_table(mappings)
    console.print(
        f"[bold]Mapping database[/bold] version {table.version}"
        + (f", updated {table.last_updated}" if table.last_updated else "")
    )

    rows = Table(show_header=True, header_style="bold cyan")
    rows.add_column("Source type")
    rows.add_column("Target type")
    rows.add_column("Parameters", justify="right")
    rows.add_column("Code", justify="right")
    for entry in table:
        rows.add_row(
            entry.source_type,
            entry.target_type,
            str(len(entry.parameter_path_map)),
            str(len(entry.code_parameters)),
        )
    console.print(rows)
    console.print(f"\n{len(table)} mappings")


@app.command()
def version():
    """Show the flow-translate version."""
    console.print(f"flow-translate {__version__}")


if __name__ == "__main__":
    app()
