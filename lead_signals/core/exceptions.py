from typing import Optional
from uuid import UUID


class LeadSignalsError(Exception):
    """Base class for all lead-signal domain exceptions.

    Every custom exception in this module inherits from here so that a
    single ``except LeadSignalsError`` clause can catch any domain
    error.
    """

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(detail)


class SourceUnavailableError(LeadSignalsError):
    """Raised when one event source failed or missed its deadline.

    Callers degrade the signal from ``source_name`` to absent and carry
    on with the remaining sources; the error is surfaced as a warning.
    """

    def __init__(self, source_name: str, detail: Optional[str] = None):
        self.source_name = source_name
        super().__init__(detail or f"Source '{source_name}' is unavailable")


class InvariantViolationError(LeadSignalsError):
    """Raised when a computed score or bucket leaves its defined range.

    This is a programming error: the affected lead's computation fails
    loudly and no score is written.
    """

    def __init__(self, detail: str = "Score invariant violated"):
        super().__init__(detail)


class OrphanReferenceError(LeadSignalsError):
    """Raised when an event references a lead id with no matching lead."""

    def __init__(self, lead_id: UUID, detail: Optional[str] = None):
        self.lead_id = lead_id
        super().__init__(detail or f"Event references unknown lead {lead_id}")


class LeadNotFoundError(LeadSignalsError):
    """Raised when a requested lead does not exist."""

    def __init__(self, detail: str = "Lead not found"):
        super().__init__(detail)


class ScoreNotFoundError(LeadSignalsError):
    """Raised when a lead has never been scored."""

    def __init__(self, detail: str = "Lead has not been scored"):
        super().__init__(detail)
