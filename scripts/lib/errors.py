"""
Custom error classes for CRM Analytics Hub.
Structured error handling with error codes across all modules.

Bad *data* never raises: the analytics core degrades to zeros and empty
buckets. Only caller mistakes and collaborator failures surface here.

Hierarchy:
    AnalyticsError
    ├── ContractViolationError
    │   ├── InvalidWindowError
    │   └── UnsupportedFormatError
    └── DataError
        ├── ConfigError
        └── DataFetchError
"""


class AnalyticsError(Exception):
    """Base exception for all CRM Analytics Hub errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


# --- Contract violations (programmer errors) ---

class ContractViolationError(AnalyticsError):
    """A caller passed parameters outside the documented contract."""

    def __init__(self, message: str, code: str = "CONTRACT_VIOLATION", **kwargs):
        super().__init__(message, code=code, details=kwargs)


class InvalidWindowError(ContractViolationError):
    """Trailing window is not a positive integer or not an allowed option."""

    def __init__(self, days, allowed: tuple = None):
        msg = f"Invalid window: {days!r} days"
        if allowed:
            msg += f" (allowed: {', '.join(str(a) for a in allowed)})"
        super().__init__(
            msg, code="INVALID_WINDOW", days=days,
            allowed=list(allowed) if allowed else None,
        )


class UnsupportedFormatError(ContractViolationError):
    """Requested export format is not supported."""

    def __init__(self, fmt: str, supported: tuple = ("json", "csv")):
        super().__init__(
            f"Unsupported export format '{fmt}' (expected one of: {', '.join(supported)})",
            code="UNSUPPORTED_FORMAT", format=fmt,
        )


# --- Data Errors ---

class DataError(AnalyticsError):
    """Base class for configuration and data-access errors."""
    pass


class ConfigError(DataError):
    """Configuration file error."""

    def __init__(self, message: str, config_path: str = None):
        super().__init__(
            message, code="CONFIG_ERROR",
            details={"config_path": config_path},
        )


class DataFetchError(DataError):
    """Failed to fetch or load records from storage."""

    def __init__(self, message: str, source: str = None):
        super().__init__(
            message, code="DATA_FETCH_FAILED", details={"source": source},
        )
