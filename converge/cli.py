"""
converge CLI entry point.
"""
import os
import re
import sys
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from converge import __version__, engine
from converge.engine.report import RunReport
from converge.errors import BuildError
from converge.models.outcome import Outcome
from converge.models.resource import ResourceId
from converge.parsers.declaration import parse_file
from converge.providers.host import Host
from converge.reporters import json_reporter, markdown

EXIT_FAILURE = 1
EXIT_MALFORMED = 2

_OUTCOME_COLORS = {
    "Unchanged": "dim",
    "Changed": "green",
    "Failed": "bold red",
    "Skipped": "yellow",
}

# split "File[/a],User[b]" on the commas between references only
_ONLY_SPLIT_RE = re.compile(r"(?<=\])\s*,\s*")


def _parse_only(values: Tuple[str, ...]) -> Optional[List[ResourceId]]:
    if not values:
        return None
    ids: List[ResourceId] = []
    for value in values:
        for ref in _ONLY_SPLIT_RE.split(value.strip()):
            if not ref:
                continue
            try:
                ids.append(ResourceId.parse(ref))
            except ValueError as exc:
                raise BuildError(f"--only: {exc}") from exc
    if not ids:
        raise BuildError("--only: no resource ids given")
    return ids


def _print_summary_table(report: RunReport, no_color: bool) -> None:
    """Print a rich summary table to stderr."""
    tbl = Table(title="Convergence Summary", show_header=True, header_style="bold")
    tbl.add_column("#", style="dim", width=4)
    tbl.add_column("Resource", width=40)
    tbl.add_column("Outcome", width=10)
    tbl.add_column("Refreshed", width=9)
    tbl.add_column("Detail")

    for i, r in enumerate(report.ordered_results(), 1):
        color = _OUTCOME_COLORS.get(r.outcome.value, "") if not no_color else ""
        outcome = r.outcome.value + (" (noop)" if r.noop else "")
        reason = r.reason or ""
        tbl.add_row(
            str(i),
            escape(str(r.resource_id)),
            f"[{color}]{outcome}[/{color}]" if color else outcome,
            "yes" if r.refreshed else "",
            escape(reason[:80] + "…" if len(reason) > 80 else reason),
        )

    Console(stderr=True, no_color=no_color).print(tbl)


@click.command(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(__version__)
@click.option(
    "--input", "-i", "input_path",
    type=click.Path(dir_okay=False),
    required=True,
    help="Declaration file (YAML or JSON).",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Probe every resource and report what would change, without changing anything.",
)
@click.option(
    "--only",
    multiple=True,
    metavar="RESOURCE_ID,...",
    help="Converge only these resources (e.g. 'Service[app]') and what they depend on.",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["markdown", "json"], case_sensitive=False),
    default="markdown",
    show_default=True,
    help="Report format.",
)
@click.option(
    "--output", "-o",
    type=click.Path(),
    default=None,
    help="Write report to this file (default: stdout).",
)
@click.option(
    "--summary",
    is_flag=True,
    default=False,
    help="Print terminal summary table only, do not write a full report.",
)
@click.option(
    "--ascii",
    is_flag=True,
    default=False,
    help="Use ASCII-only outcome markers in the report (no emojis).",
)
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable rich terminal color output.",
)
@click.pass_context
def cli(
    ctx,
    input_path: str,
    dry_run: bool,
    only: Tuple[str, ...],
    output_format: str,
    output: Optional[str],
    summary: bool,
    ascii: bool,
    no_color: bool,
) -> None:
    """
    converge: bring this host to the state described in a declaration file.

    Exit codes: 0 every resource converged, 1 a resource failed or was
    skipped, 2 the declaration is malformed (nothing was executed).
    """
    stderr = Console(stderr=True, no_color=no_color)
    stderr.print(f"[bold]converge[/bold] [dim]v{__version__}[/dim]" + ("  [cyan](dry run)[/cyan]" if dry_run else ""))

    # 1. Load and validate
    try:
        declaration = parse_file(input_path)
        selected = _parse_only(only)
    except BuildError as exc:
        stderr.print(f"[red]Invalid declaration:[/red] {escape(str(exc))}")
        sys.exit(EXIT_MALFORMED)

    stderr.print(f"Loaded [bold]{len(declaration.resources)}[/bold] resources from {escape(input_path)}.")

    obj = ctx.obj or {}
    host = obj.get("host") or Host.local(
        declaration.settings, template_dir=os.path.dirname(os.path.abspath(input_path))
    )

    # 2. Converge
    try:
        report = engine.run(declaration, host, dry_run=dry_run, only=selected, console=stderr)
    except BuildError as exc:
        stderr.print(f"[red]Invalid declaration:[/red] {escape(str(exc))}")
        sys.exit(EXIT_MALFORMED)

    counts = report.counts
    stderr.print(
        f"Run [bold]{report.status.value}[/bold]: "
        + "  ".join(
            f"[{_OUTCOME_COLORS[o.value]}]{o.value}: {counts[o.value]}[/{_OUTCOME_COLORS[o.value]}]"
            for o in Outcome
            if counts[o.value] > 0
        )
    )

    # 3. Terminal summary table when writing to file, or when --summary is requested
    if summary or output:
        _print_summary_table(report, no_color)

    # 4. Report
    if not summary:
        if output_format.lower() == "json":
            report_content = json_reporter.build_report(report, input_path)
        else:
            report_content = markdown.build_report(report, input_path, ascii_mode=ascii)

        if output:
            try:
                with open(output, "w", encoding="utf-8", newline="\n") as fh:
                    fh.write(report_content)
            except OSError as exc:
                stderr.print(f"[red]Cannot write report:[/red] {escape(str(exc))}")
                sys.exit(EXIT_FAILURE)
            stderr.print(f"Report written to [bold]{escape(output)}[/bold]")
        else:
            click.echo(report_content)

    sys.exit(report.exit_code)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
