from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table


def _format_service_counts(counts: Dict[str, int], *, max_services: int = 4) -> str:
    if not counts:
        return ""
    items = list(counts.items())
    shown = items[:max_services]
    tail = len(items) - len(shown)
    rendered = ", ".join([f"{name}={count}" for name, count in shown])
    if tail > 0:
        rendered = f"{rendered} (+{tail} more)"
    return rendered


class CollectionProgress:
    """
    Transient progress bar over collector tasks for interactive runs.
    Disabled progress is a no-op so callers need no branching.
    """

    def __init__(self, *, enabled: bool, console: Optional[Console] = None) -> None:
        self._enabled = bool(enabled)
        self._console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._task: Optional[int] = None
        self._service_counts: Dict[str, int] = {}
        self._started = False
        if self._enabled:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TextColumn("{task.fields[services]}", justify="left"),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )

    def __enter__(self) -> CollectionProgress:
        if self._enabled and self._progress and not self._started:
            self._progress.start()
            self._task = self._progress.add_task("Collecting", total=None, services="")
            self._started = True
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        if self._enabled and self._progress and self._started:
            self._progress.stop()
            self._started = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def advance(self, result: Any) -> None:
        """on_result hook: count one finished collector."""
        if not self._enabled or not self._progress or self._task is None:
            return
        service = getattr(result, "service", "")
        if service:
            self._service_counts[service] = self._service_counts.get(service, 0) + 1
        self._progress.update(
            self._task,
            advance=1,
            services=_format_service_counts(self._service_counts),
        )


def render_collection_summary_table(
    *,
    enabled: bool,
    status: str,
    results: Sequence[Any],
    window_label: str,
    console: Optional[Console] = None,
) -> None:
    if not enabled:
        return
    table = Table(title=f"Cycle Summary ({status})", show_header=True, header_style="bold")
    table.add_column("Service", style="cyan")
    table.add_column("Resource", style="white")
    table.add_column("Status")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Error", style="red")
    for result in results:
        ok = bool(getattr(result, "ok", False))
        table.add_row(
            str(getattr(result, "service", "")),
            str(getattr(result, "resource", "")),
            "[green]OK[/green]" if ok else "[red]FAILED[/red]",
            str(getattr(result, "duration_ms", 0)),
            "" if ok else str(getattr(result, "error", "") or ""),
        )
    table.caption = window_label
    (console or Console()).print(table)
