"""
Custom error classes for the Signup Analytics Hub.
Structured error handling with error codes across all modules.

Hierarchy:
    HubError
    ├── SheetError
    │   ├── SheetRateLimitError
    │   ├── MissingHeaderError
    │   ├── SheetNotFoundError
    │   └── SheetAuthError
    ├── DataError
    │   ├── ConfigError
    │   ├── PeriodValidationError
    │   └── RowMappingError
    └── PipelineError
        └── AggregationTimeoutError
"""


class HubError(Exception):
    """Base exception for all Signup Analytics Hub errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


# --- Sheet Errors ---

class SheetError(HubError):
    """Base class for spreadsheet source errors."""

    def __init__(self, message: str, code: str = "SHEET_ERROR",
                 title: str = None, **kwargs):
        self.title = title
        details = {"title": title, **kwargs}
        super().__init__(message, code=code, details=details)


class SheetRateLimitError(SheetError):
    """Spreadsheet API quota exceeded (HTTP 429)."""

    status_code = 429

    def __init__(self, title: str = None, attempts: int = None):
        msg = f"Rate limit exceeded while reading sheet '{title}'"
        if attempts:
            msg += f" after {attempts} attempts"
        super().__init__(
            msg, code="API_RATE_LIMIT", title=title, attempts=attempts,
        )


class MissingHeaderError(SheetError):
    """Sheet's first row has no values, so rows cannot be keyed."""

    def __init__(self, title: str = None):
        super().__init__(
            f"No values in the header row of sheet '{title}'",
            code="SHEET_MISSING_HEADER", title=title,
        )


class SheetNotFoundError(SheetError):
    """Requested sheet title does not exist in the spreadsheet."""

    def __init__(self, title: str = None):
        super().__init__(
            f"Sheet not found: '{title}'",
            code="SHEET_NOT_FOUND", title=title,
        )


class SheetAuthError(SheetError):
    """Service-account credentials missing or rejected."""

    def __init__(self, message: str = "Google Sheets authentication failed"):
        super().__init__(message, code="SHEET_AUTH_FAILED")


# --- Data Errors ---

class DataError(HubError):
    """Base class for data processing errors."""
    pass


class ConfigError(DataError):
    """Configuration error."""

    def __init__(self, message: str, setting: str = None):
        super().__init__(
            message, code="CONFIG_ERROR",
            details={"setting": setting},
        )


class PeriodValidationError(DataError):
    """Period specifier is missing or malformed."""

    def __init__(self, message: str, value: str = None):
        super().__init__(
            message, code="PERIOD_INVALID", details={"value": value},
        )


class RowMappingError(DataError):
    """Raw row could not be read as a field-value record."""

    def __init__(self, message: str, row_index: int = None):
        super().__init__(
            message, code="ROW_UNREADABLE", details={"row_index": row_index},
        )


# --- Pipeline Errors ---

class PipelineError(HubError):
    """Aggregation pipeline error."""
    pass


class AggregationTimeoutError(PipelineError):
    """Aggregation exceeded its wall-clock budget."""

    def __init__(self, timeout: float):
        super().__init__(
            f"Aggregation timed out after {timeout:g}s",
            code="AGGREGATION_TIMEOUT", details={"timeout": timeout},
        )
