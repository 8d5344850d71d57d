"""
Exception hierarchy for the tender ingestion pipeline
"""
from typing import Optional


class TenderTrackerError(Exception):
    """Base class for all tender tracker errors."""
    pass


class UpstreamError(TenderTrackerError):
    """The GosPlan API could not be used for a search."""
    def __init__(self, message: str, keyword: Optional[str] = None,
                 regime: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.keyword = keyword
        self.regime = regime
        self.status_code = status_code


class TransportError(UpstreamError):
    """Connection failure, timeout or non-2xx response."""
    pass


class MalformedResponseError(UpstreamError):
    """The response body could not be decoded into tender records."""
    pass


class StoreError(TenderTrackerError):
    """Database failure while reading or writing tenders or queries."""
    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class ValidationError(TenderTrackerError):
    """Rejected input, e.g. a blank search keyword."""
    pass


class ShutdownRequested(TenderTrackerError):
    """A wait was interrupted because the owning loop is stopping."""
    pass
