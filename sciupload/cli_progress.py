"""Console rendering and progress helpers for sciupload CLI."""
from __future__ import annotations

from typing import Any, Dict, Optional
import time

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .models import FileTask, Report, UploadOutcome
from .orchestrator.report import UploadProgress
from .utils.events import EventEmitter, FILE_COMPLETE, FILE_FAIL, FILE_SKIP, PROGRESS


console = Console()


def _human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any], out: Optional[Console] = None) -> None:
    """Render startup configuration summary."""
    out = out or console
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(escape(key), escape(rendered))

    panel = Panel(
        table,
        title="[bold green]sciupload[/bold green]",
        subtitle="[dim]fileservice uploader[/dim]",
        border_style="blue",
    )
    out.print(panel)


class UploadProgressDisplay:
    """Event-based console display for an upload run."""

    def __init__(self, total: int, out: Optional[Console] = None, live: bool = True):
        self._console = out or console
        self._total = total
        self._use_live = live and self._console.is_terminal
        self._live: Optional[Live] = None
        self._task_id = None
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=36),
            TextColumn("{task.completed}/{task.total}"),
            TimeElapsedColumn(),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=self._console,
        )

    def attach(self, events: EventEmitter) -> "UploadProgressDisplay":
        events.on(FILE_COMPLETE, self.on_file_complete)
        events.on(FILE_SKIP, self.on_file_skip)
        events.on(FILE_FAIL, self.on_file_fail)
        events.on(PROGRESS, self.on_progress)
        return self

    def start(self) -> None:
        if not self._use_live or self._live is not None:
            return
        self._task_id = self._progress.add_task(
            "overall",
            label="Uploading",
            total=max(self._total, 1),
            completed=0,
            detail="",
        )
        self._live = Live(
            self._progress,
            console=self._console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _emit_timeline(
        self,
        status: str,
        name: str,
        size_bytes: Optional[int] = None,
        error: Optional[str] = None,
        elapsed: float = 0.0,
    ) -> None:
        stamp = time.strftime("%H:%M:%S")
        size_label = f" {_human_size(size_bytes)}" if size_bytes and size_bytes > 0 else ""
        if elapsed > 0:
            size_label += f" in {elapsed:.2f}s"
        error_label = f" cause={error}" if error else ""
        palette = {
            "DONE": "green",
            "SKIP": "yellow",
            "FAIL": "red",
        }
        color = palette.get(status, "white")
        self._console.print(
            f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] "
            f"{escape(name)}{size_label}{escape(error_label)}",
            highlight=False,
        )

    def on_file_complete(self, task: FileTask, outcome: UploadOutcome) -> None:
        self._emit_timeline("DONE", task.remote_path, size_bytes=task.size, elapsed=task.elapsed)

    def on_file_skip(self, task: FileTask, outcome: UploadOutcome) -> None:
        self._emit_timeline("SKIP", task.remote_path, error=outcome.reason)

    def on_file_fail(self, task: FileTask, outcome: UploadOutcome) -> None:
        self._emit_timeline("FAIL", task.remote_path, error=outcome.reason)

    def on_progress(self, progress: UploadProgress) -> None:
        if self._live is None or self._task_id is None:
            return
        self._progress.update(
            self._task_id,
            completed=progress.done,
            detail=f"ok={progress.success} skipped={progress.skipped} failed={progress.error}",
        )


def render_report(report: Report, out: Optional[Console] = None) -> None:
    """Print the final summary with skipped and failed files."""
    out = out or console
    if report.skipped:
        table = Table(title="Skipped", title_style="bold yellow", show_lines=False)
        table.add_column("File", style="white")
        table.add_column("Remote path", style="cyan")
        table.add_column("Reason", style="yellow")
        for task, outcome in report.skipped:
            table.add_row(
                escape(str(task.local_path)),
                escape(task.remote_path),
                escape(outcome.reason or "-"),
            )
        out.print(table)

    if report.failures:
        table = Table(title="Failed", title_style="bold red", show_lines=False)
        table.add_column("File", style="white")
        table.add_column("Remote path", style="cyan")
        table.add_column("Error", style="red")
        table.add_column("Attempts", justify="right")
        table.add_column("Time", justify="right")
        table.add_column("Cause", style="dim")
        for failure in report.failures:
            table.add_row(
                escape(str(failure.local_path)),
                escape(failure.remote_path),
                failure.kind.value,
                str(failure.attempts),
                f"{failure.elapsed:.2f}s",
                escape(failure.message),
            )
        out.print(table)

    color = "green" if report.success else "red"
    out.print(f"[bold {color}]{report.summary_line()}[/bold {color}]", highlight=False)
