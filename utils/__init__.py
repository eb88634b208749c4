"""Shared utilities for the livestock dashboard.

Value coercion, date handling, display formatting, configuration, caching
and upload validation helpers used by the pipeline and API packages.
"""

# String utilities
from utils.strings import safe_int, safe_float, as_text, fold

# Date utilities
from utils.dates import (
    parse_date,
    format_date,
    is_date_in_range,
    current_week_range,
    current_month_range,
)

# Formatting utilities
from utils.formatting import (
    format_percent,
    format_number,
    utilization,
    format_utilization,
    yes_no,
)

# Configuration utilities
from utils.config import Config, KnownValues, AppConfig

# Caching
from utils.cache import TTLCache

# Validation utilities
from utils.validation import (
    ValidationIssue,
    ValidationResult,
    ValidationRegistry,
    is_valid_email,
    is_valid_phone,
)

__all__ = [
    # Strings
    "safe_int",
    "safe_float",
    "as_text",
    "fold",
    # Dates
    "parse_date",
    "format_date",
    "is_date_in_range",
    "current_week_range",
    "current_month_range",
    # Formatting
    "format_percent",
    "format_number",
    "utilization",
    "format_utilization",
    "yes_no",
    # Config
    "Config",
    "KnownValues",
    "AppConfig",
    # Cache
    "TTLCache",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    "ValidationRegistry",
    "is_valid_email",
    "is_valid_phone",
]
