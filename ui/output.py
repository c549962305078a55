"""
Output formatting -- JSON export and plain text.
"""
from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def create_result_json(
    series,  # noqa: ANN001 (MeasurementSeries)
    server_info: Dict[str, Any],
    last_cycle: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the JSON result document for one measurement session."""
    summary = series.summary()

    result: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "server": server_info,
        "download": {"speed_mbps": summary["download"], "series": series.download_values},
        "upload": {"speed_mbps": summary["upload"], "series": series.upload_values},
        "ping": {"latency_ms": summary["ping"], "series": series.ping_values},
        "cycles": [p.to_dict() for p in series.points],
        "skipped_cycles": summary["skipped_cycles"],
    }

    if last_cycle:
        result["lastCycle"] = last_cycle

    return result


def _write_atomic(filepath: str, text: str) -> None:
    """Write *text* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to write {filepath}: {exc}") from exc


def save_json(result: Dict[str, Any], filepath: str) -> None:
    _write_atomic(filepath, json.dumps(result, indent=2, ensure_ascii=False))


def save_event_log(event_log, filepath: str) -> int:  # noqa: ANN001 (EventLog)
    """Export the buffered measurement events; returns the entry count."""
    _write_atomic(filepath, event_log.export_json())
    return len(event_log)


# ---------------------------------------------------------------------------
# Plain text
# ---------------------------------------------------------------------------

def format_text_result(
    download_mbps: float,
    upload_mbps: float,
    ping_ms: float,
    server_name: str,
    cycles: int,
    skipped: int = 0,
) -> str:
    sep = "=" * 50
    mid = "-" * 50
    lines = [
        sep,
        "Speedtest Results",
        sep,
        f"Server: {server_name}",
        f"Cycles: {cycles}" + (f" ({skipped} skipped)" if skipped else ""),
        mid,
        f"Ping: {ping_ms:.1f} ms",
        f"Download: {download_mbps:.2f} Mbps",
        f"Upload: {upload_mbps:.2f} Mbps",
        sep,
    ]
    return "\n".join(lines)


def format_cycle_line(point) -> str:  # noqa: ANN001 (CycleResult)
    """One line per cycle for ``--simple`` mode."""
    if point.skipped:
        return f"[{point.index + 1}] skipped (no data)"
    return (
        f"[{point.index + 1}] Download: {point.download} Mbps  "
        f"Upload: {point.upload} Mbps  Ping: {point.ping:.1f} ms"
    )
