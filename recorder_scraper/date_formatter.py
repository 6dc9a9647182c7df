"""Search window computation and per-site date formatting."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict

from .errors import ConfigError
from .models import MAX_DAYS_BACK

# Output shapes a site may require, mapped to strftime patterns
DATE_FORMATS = {
    "MM/DD/YYYY": "%m/%d/%Y",
    "YYYY-MM-DD": "%Y-%m-%d",
}


@dataclass(frozen=True)
class DateWindow:
    start: date
    end: date


def window_for(days_back: int, today: date) -> DateWindow:
    """
    Compute the inclusive search window ending today

    Args:
        days_back: Number of days to look back, 1..365
        today: The reference day, injected by the caller

    Returns:
        DateWindow from ``today - days_back`` through ``today``
    """
    if isinstance(days_back, bool) or not isinstance(days_back, int):
        raise ConfigError(f"days_back must be an integer, got {days_back!r}")
    if not 1 <= days_back <= MAX_DAYS_BACK:
        raise ConfigError(f"days_back must be between 1 and {MAX_DAYS_BACK}, got {days_back}")
    return DateWindow(start=today - timedelta(days=days_back), end=today)


class DateFormatter:
    """Formats search windows in the shape a target site expects"""

    def __init__(self, output_format: str = "MM/DD/YYYY"):
        if output_format not in DATE_FORMATS:
            raise ConfigError(
                f"Unsupported date format {output_format!r}; expected one of {', '.join(DATE_FORMATS)}"
            )
        self.output_format = output_format
        self._pattern = DATE_FORMATS[output_format]

    def format(self, value: date) -> str:
        return value.strftime(self._pattern)

    def window(self, days_back: int, today: date) -> Dict[str, str]:
        window = window_for(days_back, today)
        return {"start_date": self.format(window.start), "end_date": self.format(window.end)}

    def variables(self, days_back: int, record_type: str, today: date) -> Dict[str, str]:
        """Placeholder values substituted into workflow steps; record_type passes through verbatim"""
        values = self.window(days_back, today)
        values["record_type"] = record_type
        return values
