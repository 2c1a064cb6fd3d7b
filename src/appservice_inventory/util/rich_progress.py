from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

STATUS_STYLES = {
    "ok": "green",
    "empty": "dim",
    "not_run": "dim",
    "partial": "yellow",
    "no_data": "yellow",
    "denied": "red",
    "error": "red",
}


def _format_table_counts(counts: Dict[str, int], *, max_tables: int = 3) -> str:
    if not counts:
        return ""
    items = list(counts.items())
    shown = items[-max_tables:]
    head = len(items) - len(shown)
    rendered = ", ".join([f"{name}={count}" for name, count in shown])
    if head > 0:
        rendered = f"(+{head} done) {rendered}"
    return rendered


class RunProgress:
    def __init__(self, *, enabled: bool, console: Optional[Console] = None) -> None:
        self._enabled = bool(enabled)
        self._console = console or Console(stderr=True)
        self._progress: Optional[Progress] = None
        self._task: Optional[int] = None
        self._table_counts: Dict[str, int] = {}
        self._started = False
        if self._enabled:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                TaskProgressColumn(),
                TextColumn("{task.fields[tables]}", justify="left"),
                TimeElapsedColumn(),
                console=self._console,
                transient=True,
            )

    def __enter__(self) -> RunProgress:
        if self._enabled and self._progress and not self._started:
            self._progress.start()
            self._started = True
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        if self._enabled and self._progress and self._started:
            self._progress.stop()
            self._started = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start_collection(self, names: Sequence[str]) -> None:
        if not self._enabled or not self._progress:
            return
        self._table_counts = {}
        self._task = self._progress.add_task("Collection", total=len(names), tables="")

    def advance(self, name: str, *, count: int = 0) -> None:
        if not self._enabled or not self._progress or self._task is None:
            return
        self._table_counts[name] = count
        self._progress.update(self._task, advance=1, tables=_format_table_counts(self._table_counts))


def render_run_summary_table(
    *,
    enabled: bool,
    status: str,
    tables: Sequence[Dict[str, Any]],
    output: Optional[str],
    console: Optional[Console] = None,
) -> None:
    if not enabled:
        return
    table = Table(title=f"Run Summary ({status})", show_header=True, header_style="bold")
    table.add_column("Table", style="cyan")
    table.add_column("Status")
    table.add_column("Rows", justify="right")
    table.add_column("Pages", justify="right")
    for entry in tables:
        state = str(entry.get("status") or "")
        style = STATUS_STYLES.get(state, "white")
        table.add_row(
            str(entry.get("name")),
            f"[{style}]{state}[/{style}]",
            str(entry.get("count", 0)),
            str(entry.get("pages", 0)),
        )
    out = console or Console(stderr=True)
    out.print(table)
    out.print(f"Workbook: {output or 'not written (no data)'}")
