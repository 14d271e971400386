"""
TraceGate error taxonomy.

Every error aborts the current phase; nothing is retried. A regression
detected by the gate is a failed verdict, not an exception.
"""


class TraceGateError(Exception):
    """Base class for all TraceGate errors."""


class ConfigurationError(TraceGateError):
    """An event source spec is invalid (unknown kind, negative threshold)."""


class SessionConflictError(ConfigurationError):
    """Another capture session already holds the event channel."""


class SourceUnavailableError(TraceGateError):
    """The event sink cannot complete a flush; buffered counts are untrustworthy."""


class FlushTimeoutError(SourceUnavailableError):
    """The flush barrier was not reached within the configured wait."""


class WorkloadFailure(TraceGateError):
    """A unit of work returned an unexpected status; the service under test is broken."""

    def __init__(self, message: str, status_code=None, url=None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class UnknownKindError(TraceGateError):
    """No extraction rule is registered for an event kind (programming error)."""

    def __init__(self, kind: str):
        super().__init__(f"No metric extraction rule for event kind '{kind}'")
        self.kind = kind


class PhaseError(TraceGateError):
    """A gate phase was entered out of order (programming error)."""
