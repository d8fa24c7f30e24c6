#!/usr/bin/env python3
"""gc-digest command line: parse a JVM GC log and print an aggregate report."""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from gc_digest import __version__
from gc_digest.analysis import run_analysis
from gc_digest.errors import GcDigestError, LogReadError
from gc_digest.events import GCEvent
from gc_digest.log import configure_logging
from gc_digest.pipeline import Pipeline
from gc_digest.settings import AnalysisSettings, DiagnosticThresholds
from gc_digest.store import SWAP_NOT_REPORTED, JvmStore

# ============================================================
# RICH RENDERING
# ============================================================

GC_DIGEST_THEME = Theme(
    {
        "critical": "bold red",
        "warning": "bold yellow",
        "success": "bold green",
        "info": "cyan",
        "metric": "white",
        "label": "dim white",
        "header": "bold magenta",
    }
)

console = Console(theme=GC_DIGEST_THEME)


def create_key_value_table(title: str, rows: list[tuple[str, str]]) -> Table:
    """Two-column key/value table."""
    table = Table(title=title, show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="label")
    table.add_column("Value", style="metric")
    for label, value in rows:
        table.add_row(label, value)
    return table


def format_kb(kilobytes: int) -> str:
    if kilobytes >= 1024 * 1024:
        return f"{kilobytes / (1024 * 1024):.2f} GB"
    if kilobytes >= 1024:
        return f"{kilobytes / 1024:.1f} MB"
    return f"{kilobytes} KB"


def format_millis(millis: int) -> str:
    if millis >= 1000:
        return f"{millis / 1000:.3f}s"
    return f"{millis}ms"


def describe_event(event: GCEvent | None) -> str:
    if event is None:
        return "-"
    return f"{event.kind.value} @ {format_millis(event.timestamp)}"


def build_summary_rows(store: JvmStore) -> list[tuple[str, str]]:
    families = ", ".join(family.value for family in store.collector_families) or "unknown"
    rows = [
        ("Collector", families),
        ("Blocking events", str(store.blocking_event_count)),
        ("First event", describe_event(store.first_gc_event)),
        ("Last event", describe_event(store.last_gc_event)),
        ("Unidentified lines", str(len(store.unidentified_log_lines))),
    ]
    if store.version:
        rows.insert(0, ("JVM version", store.version))
    return rows


def build_pause_rows(store: JvmStore) -> list[tuple[str, str]]:
    return [
        ("Max GC pause", format_millis(store.max_gc_pause)),
        ("Total GC pause", format_millis(store.total_gc_pause)),
    ]


def build_heap_rows(store: JvmStore) -> list[tuple[str, str]]:
    return [
        ("Max heap occupancy", format_kb(store.max_heap_occupancy)),
        ("Max heap space", format_kb(store.max_heap_space)),
        ("Max heap after GC", format_kb(store.max_heap_after_gc)),
        ("Max young space", format_kb(store.max_young_space)),
        ("Max old space", format_kb(store.max_old_space)),
        ("Max perm/metaspace occupancy", format_kb(store.max_perm_occupancy)),
        ("Max perm/metaspace space", format_kb(store.max_perm_space)),
        ("Max perm/metaspace after GC", format_kb(store.max_perm_after_gc)),
        ("Max heap occupancy (concurrent)", format_kb(store.max_heap_occupancy_non_blocking)),
        ("Max heap space (concurrent)", format_kb(store.max_heap_space_non_blocking)),
    ]


def build_stop_rows(store: JvmStore) -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    for label, stats in (("Safepoints", store.safepoints), ("Stopped time", store.stopped_time)):
        if stats.count == 0:
            continue
        rows += [
            (f"{label} count", str(stats.count)),
            (f"{label} max", format_millis(stats.max)),
            (f"{label} total", format_millis(stats.total)),
        ]
    return rows


def build_parallelism_rows(store: JvmStore) -> list[tuple[str, str]]:
    rows = [
        ("Parallel events", str(store.parallel_count)),
        ("Inverted parallelism", str(store.inverted_parallelism_count)),
    ]
    if (worst := store.worst_inverted_parallelism_event) is not None:
        rows.append(("Worst parallelism", f"{worst.parallelism}% ({describe_event(worst)})"))
    return rows


def build_environment_rows(store: JvmStore) -> list[tuple[str, str]]:
    rows: list[tuple[str, str]] = []
    if store.memory:
        rows.append(("Memory", store.memory))
    if store.physical_memory:
        rows.append(("Physical memory", format_kb(store.physical_memory // 1024)))
        rows.append(("Physical memory free", format_kb(store.physical_memory_free // 1024)))
    if store.swap != SWAP_NOT_REPORTED:
        rows.append(("Swap", format_kb(store.swap // 1024)))
        rows.append(("Swap free", format_kb(store.swap_free // 1024)))
    if store.options:
        rows.append(("Options", store.options))
    return rows


def render_analysis_panel(keys: list[str]) -> Panel:
    if not keys:
        return Panel(Text(" No findings", style="success"), title="Analysis", border_style="green")
    findings = Text()
    for index, key in enumerate(keys):
        line_ending = "\n" if index < len(keys) - 1 else ""
        findings.append(" " + key + line_ending, style="warning")
    return Panel(findings, title="[warning]Analysis[/warning]", border_style="yellow", expand=True)


def render_report(store: JvmStore, analysis: list[str], unidentified_sample: int) -> None:
    console.print()
    console.rule("[header]GC Digest[/header]")
    console.print(create_key_value_table("Summary", build_summary_rows(store)))
    console.print(create_key_value_table("Pauses", build_pause_rows(store)))
    console.print(create_key_value_table("Heap", build_heap_rows(store)))
    if stop_rows := build_stop_rows(store):
        console.print(create_key_value_table("Safepoints and stopped time", stop_rows))
    if store.parallel_count:
        console.print(create_key_value_table("Parallelism", build_parallelism_rows(store)))
    if environment_rows := build_environment_rows(store):
        console.print(create_key_value_table("Environment", environment_rows))
    console.print(render_analysis_panel(analysis))

    if unidentified_sample and store.unidentified_log_lines:
        sample = store.unidentified_log_lines[:unidentified_sample]
        console.print(
            Panel(
                Text("\n".join(sample), style="label"),
                title=f"Unidentified lines ({len(sample)} of {len(store.unidentified_log_lines)})",
                border_style="yellow",
            )
        )


def read_log(log_file: Path) -> list[str]:
    try:
        with log_file.open(encoding="utf-8", errors="replace") as f:
            return f.readlines()
    except OSError as e:
        raise LogReadError(f"Cannot read {log_file}: {e}") from e


# ============================================================
# TYPER CLI INTERFACE
# ============================================================

app = typer.Typer(
    name="gc-digest",
    help="Parse JVM GC logs (JDK8 legacy and JDK9+ unified) into an aggregate report",
    add_completion=False,
    rich_markup_mode="rich",
)


@app.command()
def analyze(
    log_file: Annotated[
        Path,
        typer.Argument(
            help="Path to GC log file to analyze",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
        ),
    ],
    jvm_start: Annotated[
        datetime | None,
        typer.Option(
            "--jvm-start",
            help="JVM start time, used to convert datestamp-only lines to uptime",
            formats=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%S.%f", "%Y-%m-%d %H:%M:%S"],
        ),
    ] = None,
    low_parallelism: Annotated[
        int,
        typer.Option(
            "--low-parallelism",
            help="Parallelism percentage below which a parallel collection is inverted",
            min=0,
        ),
    ] = 100,
    physical_memory: Annotated[
        int | None,
        typer.Option("--physical-memory", help="Physical memory in bytes", min=0),
    ] = None,
    swap: Annotated[
        int | None,
        typer.Option("--swap", help="Swap size in bytes", min=0),
    ] = None,
    options: Annotated[
        str | None,
        typer.Option("--options", help="JVM command line options when not logged"),
    ] = None,
    first_timestamp_threshold: Annotated[
        int,
        typer.Option(
            "--first-timestamp-threshold",
            help="Milliseconds after JVM start beyond which the log is considered partial",
            min=0,
        ),
    ] = 60 * 60 * 1000,
    show_unidentified: Annotated[
        int,
        typer.Option(
            "--show-unidentified",
            help="Number of unidentified lines to print",
            min=0,
        ),
    ] = 0,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output with detailed parsing information",
        ),
    ] = False,
) -> None:
    """Analyze a JVM GC log file.

    Exit codes: 0 = report printed, 1 = error.
    """
    configure_logging(console, verbose)

    try:
        lines = read_log(log_file)
        if verbose:
            console.print(f"[info]Read {len(lines)} lines from {log_file}[/info]")

        settings = AnalysisSettings(
            low_parallelism_threshold=low_parallelism,
            jvm_start_time=jvm_start,
            physical_memory=physical_memory,
            swap=swap,
            options=options,
            thresholds=DiagnosticThresholds(
                first_timestamp_threshold_ms=first_timestamp_threshold
            ),
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            parse_task = progress.add_task("[cyan]Parsing GC events...", total=None)
            store = Pipeline(JvmStore(), settings).feed_all(lines)
            progress.update(parse_task, completed=100)

        analysis = run_analysis(store, settings)
        render_report(store, analysis, show_unidentified)

    except (GcDigestError, ValueError) as e:
        console.print(f"[critical]ERROR: {e}[/critical]")
        sys.exit(1)


@app.command()
def version() -> None:
    """Display version."""
    console.print(f"gc-digest {__version__}")


if __name__ == "__main__":
    app()
