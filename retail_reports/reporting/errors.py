"""
Reporting Errors

Error taxonomy for the reporting engine. An empty result set is never an
error; reports built from no data are valid zero-valued reports.
"""

from typing import Any, Dict, Optional


class ReportingError(Exception):
    """Base class for reporting engine failures"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class InvalidFilterError(ReportingError):
    """Malformed or out-of-range report filter (dates, limit, period)"""


class InvalidDateError(InvalidFilterError):
    """A date string did not parse as YYYY-MM-DD"""

    def __init__(self, field: str, value: Any):
        super().__init__(
            f"Invalid {field} format. Use YYYY-MM-DD",
            details={"field": field, "value": value},
        )
        self.field = field
        self.value = value


class QueryExecutionError(ReportingError):
    """
    The storage collaborator failed to execute a query.

    The underlying exception is chained as ``__cause__`` and is also
    available as ``cause``.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.cause = cause
