"""Exceptions raised by the QC metrics engine and its collaborators."""


class QCMetricsError(Exception):
    """Base class for every recoverable engine error."""


class InvalidFilterError(QCMetricsError, ValueError):
    """A group filter, date range, granularity or report type is malformed."""


class InvalidRecordError(QCMetricsError, TypeError):
    """The engine was handed input that is not a validated domain object."""


class InsufficientHistoryError(QCMetricsError):
    """No usable (non-empty) snapshot was available to forecast from."""


class UpstreamFailureError(QCMetricsError):
    """The record store failed to deliver data.

    Attributes:
        retryable: Whether the caller may retry the same request.
    """

    def __init__(self, message: str, *, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable
