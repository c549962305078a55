"""UI layer -- Rich dashboard and output formatters."""

from .dashboard import (
    SeriesDisplay,
    console,
    create_sparkline,
    print_cycle_breakdown,
    print_final_results,
    print_header,
)
from .output import (
    create_result_json,
    format_cycle_line,
    format_text_result,
    save_event_log,
    save_json,
)

__all__ = [
    "SeriesDisplay",
    "console",
    "create_result_json",
    "create_sparkline",
    "format_cycle_line",
    "format_text_result",
    "print_cycle_breakdown",
    "print_final_results",
    "print_header",
    "save_event_log",
    "save_json",
]
