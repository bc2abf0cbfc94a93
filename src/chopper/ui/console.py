from __future__ import annotations

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table

from chopper.loadgen.runner import RunResult


class WorkerProgress:
    """One progress bar per worker, filled by elapsed time against the run duration."""

    def __init__(self, concurrency: int, duration_sec: float, console: Console | None = None) -> None:
        self.duration_sec = duration_sec
        self.completed = [0] * concurrency
        self._progress = Progress(
            TextColumn("worker {task.fields[worker]:>3}"),
            TimeElapsedColumn(),
            BarColumn(),
            TextColumn("{task.fields[done]:>7} done"),
            console=console,
            transient=False,
        )
        self._tasks: list[TaskID] = [
            self._progress.add_task("", total=duration_sec, worker=i, done=0)
            for i in range(concurrency)
        ]

    async def on_progress(self, worker_id: int, elapsed_sec: float) -> None:
        self.completed[worker_id] += 1
        self._progress.update(
            self._tasks[worker_id],
            completed=min(elapsed_sec, self.duration_sec),
            done=self.completed[worker_id],
        )

    def __enter__(self) -> WorkerProgress:
        self._progress.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        for task in self._tasks:
            self._progress.update(task, completed=self.duration_sec)
        self._progress.stop()


def _fmt_ms(value: float) -> str:
    if value >= 1000:
        return f"{value / 1000:.3f}s"
    return f"{value:.3f}ms"


def render_report(console: Console, result: RunResult) -> None:
    agg = result.aggregate
    if agg is None:
        console.print("[yellow]No requests completed; no statistics to report.[/yellow]")
        return
    table = Table(title="Benchmark results", show_header=False)
    table.add_column("metric", style="bold")
    table.add_column("value", justify="right")
    table.add_row("Total requests completed", str(agg.total_requests))
    table.add_row("Requests per second", f"{agg.rounded_rps:.2f}")
    table.add_row("Fastest Request Time", _fmt_ms(agg.fastest_ms))
    table.add_row("Slowest Request Time", _fmt_ms(agg.slowest_ms))
    table.add_row("Average Request Time", _fmt_ms(agg.average_ms))
    console.print(table)

    codes = Table(title="Status codes")
    codes.add_column("status", justify="right")
    codes.add_column("count", justify="right")
    for status, count in agg.status_counts.items():
        codes.add_row(str(status), str(count))
    console.print(codes)
