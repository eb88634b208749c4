"""Output formatting utilities for dashboard tables and exports.

Provides reusable functions for:
- Formatting percentages
- Storage utilization display
- Rendering numbers and booleans as export cells
"""

from typing import Optional


def format_percent(value: Optional[float], precision: int = 1) -> str:
    """Format a percentage for display.

    Args:
        value: Percentage value (0.0 to 100.0)
        precision: Decimal places (default: 1)

    Returns:
        Formatted string like "42.5%"

    Examples:
        format_percent(42.5) -> "42.5%"
        format_percent(0) -> "0.0%"
        format_percent(None) -> "-"
    """
    if value is None:
        return "-"
    return f"{value:.{precision}f}%"


def utilization(current_stock: float, capacity: float) -> float:
    """Stock as a percentage of capacity, rounded to one decimal.

    A zero capacity yields 0.0 rather than a division error.
    """
    if not capacity:
        return 0.0
    return round(current_stock / capacity * 100, 1)


def format_utilization(current_stock: float, capacity: float) -> str:
    """Display form of :func:`utilization`.

    Examples:
        format_utilization(50, 200) -> "25.0%"
        format_utilization(5, 0) -> "0%"
    """
    if not capacity:
        return "0%"
    return format_percent(utilization(current_stock, capacity))


def format_number(value: Optional[float]) -> str:
    """Render a numeric cell without a spurious ``.0`` on whole values.

    Examples:
        format_number(200.0) -> "200"
        format_number(12.5) -> "12.5"
        format_number(None) -> "0"
    """
    if value is None:
        return "0"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def yes_no(flag: bool) -> str:
    """Render a boolean as ``"Yes"``/``"No"``."""
    return "Yes" if flag else "No"
