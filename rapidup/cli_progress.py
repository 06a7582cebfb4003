"""Console rendering and progress helpers for the rapidup CLI."""
from __future__ import annotations

import time
from typing import Any, Dict, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .models import FileDescriptor, UploadResult, UploadStats
from .utils.events import FileProgress
from .utils.formatting import human_size

console = Console()


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]rapidup[/bold green]",
        subtitle="[dim]file upload client[/dim]",
        border_style="blue",
    )
    console.print(panel)


class JobProgressDisplay:
    """
    Live console display for one upload job.

    Implements INotifier; also listens to the scheduler's file_start,
    job_progress and retry events.
    """

    def __init__(self, out: Optional[Console] = None):
        self._console = out or console
        self._overall = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=28),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("[dim]{task.fields[detail]}", justify="left"),
            expand=False,
            console=self._console,
        )
        self._file = Progress(
            SpinnerColumn(),
            TextColumn("[bold green]{task.fields[label]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=self._console,
        )
        self._live: Optional[Live] = None
        self._overall_task_id: Optional[TaskID] = None
        self._file_task_id: Optional[TaskID] = None
        self._file_sizes: Dict[str, int] = {}
        self._uploaded = 0
        self._failed = 0
        self._total_files = 0

    def _echo(self, message: str) -> None:
        self._console.print(message)

    def _timeline(self, status: str, name: str, size_bytes: Optional[int] = None, error: Optional[str] = None) -> None:
        stamp = time.strftime("%H:%M:%S")
        size_label = f" {human_size(size_bytes)}" if size_bytes and size_bytes > 0 else ""
        error_label = f" cause={error}" if error else ""
        palette = {"DONE": "green", "FAIL": "red", "WAIT": "yellow", "STOP": "magenta"}
        color = palette.get(status, "white")
        self._echo(
            f"[dim]{stamp}[/dim] [{color}]{status:<4}[/{color}] file: {name}{size_label}{error_label}"
        )

    def _start_live(self) -> None:
        if self._live is not None:
            return
        self._live = Live(
            Group(self._overall, self._file),
            console=self._console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        self._overall_task_id = self._overall.add_task(
            "overall", label="Overall", total=100, completed=0, detail="uploaded=0 failed=0"
        )

    def _stop_live(self) -> None:
        if self._live is None:
            return
        self._live.stop()
        self._live = None

    def _drop_file_task(self) -> None:
        if self._file_task_id is not None:
            self._file.remove_task(self._file_task_id)
            self._file_task_id = None

    def on_file_start(self, file_index: int, total_files: int, descriptor: FileDescriptor) -> None:
        self._start_live()
        self._total_files = total_files
        self._file_sizes[descriptor.name] = descriptor.size
        self._drop_file_task()
        self._file_task_id = self._file.add_task(
            "upload",
            label=f"{file_index}/{total_files} {descriptor.name[:50]}",
            total=max(descriptor.size, 1),
        )

    def on_progress(
        self,
        file_index: int,
        total_files: int,
        percent: float,
        bytes_loaded: int,
        bytes_total: int,
    ) -> None:
        if self._file_task_id is None or bytes_total <= 0:
            return
        self._file.update(self._file_task_id, completed=bytes_loaded, total=bytes_total)

    def on_job_progress(self, progress: FileProgress) -> None:
        if self._overall_task_id is None:
            return
        self._overall.update(
            self._overall_task_id,
            completed=progress.overall_percent,
            detail=f"uploaded={self._uploaded} failed={self._failed} of {progress.total_files}",
        )

    def on_retry(self, file_index: int, retry_number: int, delay: float, error: str) -> None:
        self._timeline("WAIT", f"#{file_index} retry {retry_number} in {delay:g}s", error=error)

    def on_file_settled(self, result: UploadResult) -> None:
        self._drop_file_task()
        size_bytes = self._file_sizes.pop(result.filename, None)
        if result.success:
            self._uploaded += 1
            self._timeline("DONE", result.filename, size_bytes=size_bytes)
            if result.integrity is not None and not result.integrity.verified:
                self._echo(f"[yellow]  integrity check failed:[/yellow] {result.integrity.detail}")
        elif result.cancelled:
            self._timeline("STOP", result.filename, size_bytes=size_bytes)
        else:
            self._failed += 1
            self._timeline("FAIL", result.filename, size_bytes=size_bytes, error=result.error)

        if self._overall_task_id is not None and self._total_files:
            self._overall.update(
                self._overall_task_id,
                completed=(self._uploaded + self._failed) / self._total_files * 100,
                detail=f"uploaded={self._uploaded} failed={self._failed} of {self._total_files}",
            )

    def on_job_settled(self, stats: UploadStats, has_errors: bool, message: str) -> None:
        self._stop_live()
        color = "yellow" if has_errors else "green"
        self._echo(f"[bold {color}]{message}[/bold {color}]")

    def on_cancelled(self) -> None:
        self._stop_live()
        self._echo("[magenta]Uploads cancelled[/magenta]")
