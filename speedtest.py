#!/usr/bin/env python3
"""
Speedtest CLI -- HTTP download / upload / ping measurement from the terminal.

Usage::

    python speedtest.py                          # live dashboard, 10 cycles
    python speedtest.py --url http://host:8080   # measure against another server
    python speedtest.py --simple                 # plain text
    python speedtest.py --json                   # JSON to stdout
    python speedtest.py -o result.json           # save to file
    python speedtest.py --cycles 3 --sizes 1,2   # shorter session
    python speedtest.py --sequential             # one metric at a time
    python speedtest.py --debug                  # verbose measurement log
    python speedtest.py --log-file events.json   # export the event log
    python speedtest.py --cycles 5 --save-defaults
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import List, Optional, Sequence

from client.api import SpeedtestAPI
from client.config import config_path, load_config, save_config
from client.constants import (
    MAX_CYCLES,
    MAX_PING_ATTEMPTS,
    MAX_SIZE_MB,
    MAX_TIMEOUT,
    MAX_TRIALS,
    MIN_CYCLES,
    MIN_PING_ATTEMPTS,
    MIN_SIZE_MB,
    MIN_TIMEOUT,
    MIN_TRIALS,
)
from client.download import DownloadTester
from client.events import EventLog, LoggingObserver, debug_enabled, setup_logging
from client.latency import LatencyTester
from client.runner import SpeedtestRunner
from client.upload import UploadTester
from ui.dashboard import (
    SeriesDisplay,
    console,
    print_cycle_breakdown,
    print_final_results,
    print_header,
)
from ui.output import (
    create_result_json,
    format_cycle_line,
    format_text_result,
    save_event_log,
    save_json,
)


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _parse_sizes(raw: str) -> List[float]:
    """``"2,5"`` -> ``[2.0, 5.0]``; raises ``ValueError`` on bad input."""
    try:
        sizes = [float(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise ValueError(f"Invalid size list: {raw!r}") from None
    if not sizes:
        raise ValueError("At least one payload size is required")
    return sizes


def _validate(
    cycles: int,
    sizes_mb: Sequence[float],
    trials: int,
    ping_attempts: int,
    timeout: float,
) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if not MIN_CYCLES <= cycles <= MAX_CYCLES:
        raise ValueError(f"Cycles must be between {MIN_CYCLES} and {MAX_CYCLES}")
    for size in sizes_mb:
        if not MIN_SIZE_MB <= size <= MAX_SIZE_MB:
            raise ValueError(f"Payload sizes must be between {MIN_SIZE_MB} and {MAX_SIZE_MB} MB")
    if not MIN_TRIALS <= trials <= MAX_TRIALS:
        raise ValueError(f"Trials per size must be between {MIN_TRIALS} and {MAX_TRIALS}")
    if not MIN_PING_ATTEMPTS <= ping_attempts <= MAX_PING_ATTEMPTS:
        raise ValueError(f"Ping attempts must be between {MIN_PING_ATTEMPTS} and {MAX_PING_ATTEMPTS}")
    if not MIN_TIMEOUT <= timeout <= MAX_TIMEOUT:
        raise ValueError(f"Trial timeout must be between {MIN_TIMEOUT} and {MAX_TIMEOUT} s")


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_speedtest(
    *,
    server_url: str,
    cycles: int,
    sizes_mb: Sequence[float],
    trials: int,
    ping_attempts: int,
    timeout: float,
    sequential: bool = False,
    json_output: bool = False,
    output_file: Optional[str] = None,
    simple: bool = False,
    log_file: Optional[str] = None,
) -> Optional[dict]:
    """Execute a full measurement series and return a JSON-serialisable dict.

    Every measurement event is kept in an in-memory ring buffer; with
    *log_file* set it is exported there once the session ends, whether or
    not it succeeded.
    """
    observer = EventLog(forward=LoggingObserver())
    try:
        return await _run_session(
            observer,
            server_url=server_url,
            cycles=cycles,
            sizes_mb=sizes_mb,
            trials=trials,
            ping_attempts=ping_attempts,
            timeout=timeout,
            sequential=sequential,
            json_output=json_output,
            output_file=output_file,
            simple=simple,
        )
    finally:
        if log_file:
            count = save_event_log(observer, log_file)
            if not json_output:
                console.print(f"[green]Event log ({count} entries) saved to:[/green] {log_file}")


async def _run_session(
    observer: EventLog,
    *,
    server_url: str,
    cycles: int,
    sizes_mb: Sequence[float],
    trials: int,
    ping_attempts: int,
    timeout: float,
    sequential: bool,
    json_output: bool,
    output_file: Optional[str],
    simple: bool,
) -> Optional[dict]:
    show_ui = not json_output and not simple

    if show_ui:
        print_header(server_url, cycles)

    async with SpeedtestAPI(server_url) as api:
        server = api.select_server()

        if show_ui:
            console.print("[dim]Checking server...[/dim]")
        if not await api.check_health(server):
            observer.on_event("error", "series", "server health check failed", {"url": server_url})
            console.print(f"[red]Error: {server_url} did not answer /ping[/red]")
            return None

        common = dict(trial_timeout=timeout, observer=observer)
        runner = SpeedtestRunner(
            api.session,
            server,
            download=DownloadTester(sizes_mb=sizes_mb, measurements_per_size=trials,
                                    concurrent=not sequential, **common),
            upload=UploadTester(sizes_mb=sizes_mb, measurements_per_size=trials,
                                concurrent=not sequential, **common),
            latency=LatencyTester(attempts=ping_attempts, **common),
            concurrent=not sequential,
            observer=observer,
        )

        # -- Series ---------------------------------------------------------
        display = SeriesDisplay(cycles) if show_ui else None

        def _on_point(point, series) -> None:  # noqa: ANN001
            if display:
                display.update(point, series)
            elif simple:
                print(format_cycle_line(point))

        if display:
            display.start()
        try:
            series = await runner.run_series(cycles=cycles, on_point=_on_point)
        finally:
            if display:
                display.stop()

        summary = series.summary()

        # -- Summary --------------------------------------------------------
        if show_ui:
            if runner.last_results is not None:
                print_cycle_breakdown(runner.last_results)
            print_final_results(series)
        elif simple:
            print(format_text_result(
                download_mbps=summary["download"],
                upload_mbps=summary["upload"],
                ping_ms=summary["ping"],
                server_name=server.name,
                cycles=summary["cycles"],
                skipped=len(summary["skipped_cycles"]),
            ))

        # -- JSON result ----------------------------------------------------
        result_json = create_result_json(
            series,
            server_info=server.to_dict(),
            last_cycle=runner.last_results.details() if runner.last_results else None,
        )

        if json_output:
            print(json.dumps(result_json, indent=2))

        if output_file:
            save_json(result_json, output_file)
            if not json_output:
                console.print(f"\n[green]Results saved to:[/green] {output_file}")

        return result_json


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def main() -> None:
    config = load_config()

    parser = argparse.ArgumentParser(
        description="Speedtest CLI -- HTTP download / upload / ping measurement",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save results to JSON file")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--debug", action="store_true", help="Log every trial (or set SPEEDTEST_DEBUG=true)")
    parser.add_argument("--log-file", type=str, metavar="FILE", help="Export the measurement event log as JSON")
    parser.add_argument("--save-defaults", action="store_true",
                        help=f"Store the given test parameters in {config_path()} and exit")

    # Server
    parser.add_argument("--url", type=str, default=config["server_url"], metavar="URL",
                        help=f"Server base URL (default: {config['server_url']})")

    # Test parameters
    parser.add_argument("--cycles", type=int, default=config["cycles"], metavar="N",
                        help="Measurement cycles (default: 10)")
    parser.add_argument("--sizes", type=str, default=",".join(f"{s:g}" for s in config["sizes_mb"]),
                        metavar="MB[,MB]", help="Payload sizes in MB (default: 2,5)")
    parser.add_argument("--trials", type=int, default=config["measurements_per_size"], metavar="N",
                        help="Trials per payload size (default: 2)")
    parser.add_argument("--ping-attempts", type=int, default=config["ping_attempts"], metavar="N",
                        help="Ping attempts per cycle (default: 8)")
    parser.add_argument("--timeout", type=float, default=config["trial_timeout"], metavar="SECS",
                        help="Per-trial timeout in seconds (default: 30)")
    parser.add_argument("--sequential", action="store_true", default=config["sequential"],
                        help="Run download, upload and ping one after another")

    args = parser.parse_args()

    setup_logging(debug_enabled(args.debug))

    # Validate
    try:
        sizes_mb = _parse_sizes(args.sizes)
        _validate(
            cycles=args.cycles,
            sizes_mb=sizes_mb,
            trials=args.trials,
            ping_attempts=args.ping_attempts,
            timeout=args.timeout,
        )
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    if args.save_defaults:
        path = save_config({
            "server_url": args.url,
            "cycles": args.cycles,
            "sizes_mb": sizes_mb,
            "measurements_per_size": args.trials,
            "ping_attempts": args.ping_attempts,
            "trial_timeout": args.timeout,
            "sequential": args.sequential,
        })
        console.print(f"[green]Defaults saved to:[/green] {path}")
        return

    try:
        asyncio.run(
            run_speedtest(
                server_url=args.url,
                cycles=args.cycles,
                sizes_mb=sizes_mb,
                trials=args.trials,
                ping_attempts=args.ping_attempts,
                timeout=args.timeout,
                sequential=args.sequential,
                json_output=args.json,
                output_file=args.output,
                simple=args.simple,
                log_file=args.log_file,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except Exception as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
