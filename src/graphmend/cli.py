# src/graphmend/cli.py
"""graphmend Command Line Interface.

Entry point for the graphmend CLI tool. Documents and JSON reports go to
stdout; logs, change logs and error panels go to stderr.
"""

from __future__ import annotations

import json
from enum import StrEnum
from pathlib import Path
from typing import Any

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from graphmend import __version__
from graphmend.contracts import CatalogError, MalformedGraphError, NodeRole, ValidationReport
from graphmend.core.config import GraphmendSettings, load_settings
from graphmend.core.graph import extract_document, format_schema_version
from graphmend.engine import Engine

__all__ = [
    "app",
]

app = typer.Typer(
    name="graphmend",
    help="graphmend: validate and repair automation-workflow graphs.",
    no_args_is_help=True,
)


class OutputFormat(StrEnum):
    CONSOLE = "console"
    JSON = "json"


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"graphmend version {__version__}")
        raise typer.Exit()


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]❌ {title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)


def _load_settings_or_exit(settings_path: Path) -> GraphmendSettings:
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings_path}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        details = [f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()]
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None


def _engine_or_exit(ctx: typer.Context) -> Engine:
    settings: GraphmendSettings = ctx.obj["settings"] if ctx.obj else GraphmendSettings()
    try:
        return Engine(settings=settings)
    except CatalogError as e:
        _format_validation_error(
            title="Catalog Error",
            message=str(e),
            hint="Fix the catalog file named by catalog_path, or unset it to use the packaged catalog.",
        )
        raise typer.Exit(1) from None


def _read_document(path: Path, *, extract: bool) -> str:
    """Raw document text; unwrapped from surrounding text when ``extract``.

    Raises:
        MalformedGraphError: If the file is not UTF-8, or ``extract`` finds no JSON object
    """
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise MalformedGraphError(f"Invalid JSON encoding: {e}") from e
    return extract_document(text) if extract else text


def _report_malformed(path: Path, error: MalformedGraphError) -> None:
    suggestions: list[str] = getattr(error, "suggestions", [])
    _format_validation_error(
        title="Malformed Graph",
        message=f"{path.name}: {error}",
        details=[f"did you mean '{name}'?" for name in suggestions] or None,
        hint="Fix the document structure; semantic checks only run on well-formed graphs.",
    )


def _echo_report(path: Path, report: ValidationReport) -> None:
    if report.is_clean:
        typer.secho(f"✅ {path.name}: no issues", fg=typer.colors.GREEN)
        return
    if report.is_executable:
        typer.secho(f"⚠️  {path.name}: {len(report.issues)} warning(s), usable as-is", fg=typer.colors.YELLOW)
    else:
        typer.secho(f"❌ {path.name}: {len(report.issues)} issue(s), not executable", fg=typer.colors.RED)
    for issue in report:
        typer.echo(f"  {issue}")


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
    settings: Path | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """graphmend: validate and repair automation-workflow graphs."""
    # Configure logging at entry point (before any subcommands run)
    from graphmend.core.logging import configure_logging

    # Only warnings by default: stdout carries documents and reports
    log_level = "DEBUG" if verbose else "WARNING"
    configure_logging(json_output=json_logs, level=log_level)

    loaded = _load_settings_or_exit(settings.expanduser()) if settings is not None else GraphmendSettings()
    ctx.obj = {"settings": loaded}


@app.command()
def validate(
    ctx: typer.Context,
    files: list[Path] = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Graph documents (JSON) to validate.",
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.CONSOLE,
        "--format",
        "-f",
        help="Report format.",
    ),
    extract: bool = typer.Option(
        False,
        "--extract",
        help="Unwrap the JSON object from surrounding text (markdown fences, prose).",
    ),
) -> None:
    """Validate graph documents. Exits 1 unless every graph is executable."""
    engine = _engine_or_exit(ctx)

    documents: list[str | MalformedGraphError] = []
    for path in files:
        try:
            documents.append(_read_document(path, extract=extract))
        except MalformedGraphError as e:
            documents.append(e)

    pending = [document for document in documents if isinstance(document, str)]
    reports = iter(engine.validate_batch(pending))
    results = [document if isinstance(document, MalformedGraphError) else next(reports) for document in documents]

    failed = False
    entries: list[dict[str, Any]] = []
    for path, result in zip(files, results, strict=True):
        if isinstance(result, MalformedGraphError):
            failed = True
            entries.append({"file": str(path), "error": str(result)})
            if output_format == OutputFormat.CONSOLE:
                _report_malformed(path, result)
            continue
        failed = failed or not result.is_executable
        entries.append({"file": str(path), **result.to_dict()})
        if output_format == OutputFormat.CONSOLE:
            _echo_report(path, result)

    if output_format == OutputFormat.JSON:
        typer.echo(json.dumps({"results": entries}, indent=2))
    if failed:
        raise typer.Exit(1)


@app.command()
def repair(
    ctx: typer.Context,
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="Graph document (JSON) to repair.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the repaired document here instead of stdout.",
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.CONSOLE,
        "--format",
        "-f",
        help="console: document on stdout, change log on stderr. json: one summary object on stdout.",
    ),
    extract: bool = typer.Option(
        False,
        "--extract",
        help="Unwrap the JSON object from surrounding text (markdown fences, prose).",
    ),
) -> None:
    """Validate a graph, apply the repair policy and emit the repaired document.

    Exits 1 when the repaired graph is still not executable (e.g. it has no
    source node, which repair never invents).
    """
    engine = _engine_or_exit(ctx)
    try:
        result = engine.validate_and_repair(_read_document(file, extract=extract))
    except MalformedGraphError as e:
        _report_malformed(file, e)
        raise typer.Exit(1) from None

    after = engine.validate(result.graph)
    document = json.dumps(result.graph.to_document(), indent=2)
    if output is not None:
        output.write_text(document + "\n", encoding="utf-8")

    if output_format == OutputFormat.JSON:
        summary: dict[str, Any] = {
            "file": str(file),
            "change_log": list(result.change_log),
            "before": result.report.to_dict(),
            "after": after.to_dict(),
        }
        if output is None:
            summary["document"] = result.graph.to_document()
        typer.echo(json.dumps(summary, indent=2))
    else:
        if output is None:
            typer.echo(document)
        if result.change_log:
            typer.echo(f"Applied {len(result.change_log)} edit(s) to {file.name}:", err=True)
            for entry in result.change_log:
                typer.echo(f"  - {entry}", err=True)
        else:
            typer.echo(f"No repairs needed for {file.name}", err=True)
        for issue in after:
            typer.echo(f"  remaining: {issue}", err=True)

    if not after.is_executable:
        raise typer.Exit(1)


@app.command()
def catalog(
    ctx: typer.Context,
    role: NodeRole | None = typer.Option(
        None,
        "--role",
        "-r",
        help="Only list kinds with this role.",
    ),
) -> None:
    """List node kinds known to the catalog."""
    engine = _engine_or_exit(ctx)
    roles = [role] if role is not None else list(NodeRole)

    for current in roles:
        kinds = engine.catalog.kinds_with_role(current)
        if not kinds:
            continue
        typer.echo(f"\n{current.upper()}:")
        for kind in kinds:
            versions = ", ".join(format_schema_version(v) for v in kind.versions()) or "-"
            typer.echo(f"  {kind.type_tag:36} v{versions:10} {kind.description}")
