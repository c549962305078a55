"""
Rich-based terminal dashboard for speedtest results.

All formatting helpers live in ``client.stats`` -- this module only does
presentation via the ``rich`` library.
"""
from __future__ import annotations

from typing import List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from client.stats import format_latency, format_speed

console = Console()


# ---------------------------------------------------------------------------
# Sparkline helper
# ---------------------------------------------------------------------------

_BARS = "▁▂▃▄▅▆▇█"


def create_sparkline(values: Sequence[float]) -> str:
    """Return a single-line Unicode bar-chart."""
    if not values:
        return "No data"

    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    return "".join(
        _BARS[min(int((v - lo) / span * (len(_BARS) - 1)), len(_BARS) - 1)]
        for v in values
    )


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------

def print_header(server_url: str, cycles: int) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Speedtest CLI[/bold cyan]\n"
            f"[dim]{server_url} -- {cycles} cycle(s)[/dim]",
            border_style="cyan",
        )
    )
    console.print()


def _series_table(points: Sequence, total: int) -> Table:  # noqa: ANN001 (CycleResult)
    table = Table(title=f"Measurements {len(points)}/{total}", box=box.ROUNDED)
    table.add_column("#", style="dim", width=4)
    table.add_column("Download", justify="right", style="green")
    table.add_column("Upload", justify="right", style="blue")
    table.add_column("Ping", justify="right", style="yellow")

    for p in points:
        if p.skipped:
            table.add_row(str(p.index + 1), "—", "—", "—", style="dim red")
            continue
        table.add_row(
            str(p.index + 1),
            format_speed(p.download) if p.download > 0 else "—",
            format_speed(p.upload) if p.upload > 0 else "—",
            format_latency(p.ping) if p.ping > 0 else "—",
        )
    return table


def print_cycle_breakdown(results) -> None:  # noqa: ANN001 (SpeedResults)
    """Per-size detail of one cycle's throughput aggregates."""
    table = Table(title="Last Cycle Detail", box=box.SIMPLE)
    table.add_column("Metric", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Samples", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Value", justify="right")

    for label, metric in (("Download", results.download), ("Upload", results.upload)):
        for bucket in metric.buckets:
            table.add_row(
                label,
                f"{bucket.size_mb:g} MB",
                str(len(bucket.samples)),
                str(bucket.failures + bucket.zero_samples),
                format_speed(bucket.value),
            )
    table.add_row(
        "Ping", "", str(len(results.ping.samples)),
        str(results.ping.failures + results.ping.zero_samples),
        format_latency(results.ping.latency_ms),
    )
    console.print(table)


def print_final_results(series) -> None:  # noqa: ANN001 (MeasurementSeries)
    summary = series.summary()
    lines = [
        f"[bold white]   Download:[/bold white]  [bold green]{format_speed(summary['download'])}[/bold green]"
        f"  [green]{create_sparkline(series.download_values)}[/green]",
        f"[bold white]   Upload:[/bold white]    [bold blue]{format_speed(summary['upload'])}[/bold blue]"
        f"  [blue]{create_sparkline(series.upload_values)}[/blue]",
        f"[bold white]   Ping:[/bold white]      [bold yellow]{format_latency(summary['ping'])}[/bold yellow]"
        f"  [yellow]{create_sparkline(series.ping_values)}[/yellow]",
    ]
    if summary["skipped_cycles"]:
        skipped = ", ".join(str(i + 1) for i in summary["skipped_cycles"])
        lines.append(f"\n[dim red]Skipped cycles (all zero): {skipped}[/dim red]")

    console.print()
    console.print(
        Panel.fit(
            "\n".join(lines),
            title=f"[bold]Results ({summary['cycles']} cycles)[/bold]",
            border_style="cyan",
        )
    )
    console.print()


# ---------------------------------------------------------------------------
# Live display
# ---------------------------------------------------------------------------

class SeriesDisplay:
    """Live-updating table of cycle points while a series runs."""

    def __init__(self, total: int) -> None:
        self.total = total
        self._points: List = []
        self._live: Optional[Live] = None

    def start(self) -> None:
        self._points = []
        self._live = Live(_series_table(self._points, self.total), console=console, refresh_per_second=4)
        self._live.start()

    def update(self, point, series) -> None:  # noqa: ANN001
        self._points.append(point)
        if self._live is not None:
            self._live.update(_series_table(self._points, self.total))

    def stop(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None
