"""Custom exception hierarchy for sprint-rollover.

All application-specific exceptions inherit from SprintRolloverError,
which carries an error code the UI layer maps to a user-visible message.
"""

from __future__ import annotations


class SprintRolloverError(Exception):
    """Base exception for all sprint-rollover errors."""

    def __init__(self, message: str, *, code: str = "INTERNAL_ERROR") -> None:
        super().__init__(message)
        self.code = code


class CycleError(SprintRolloverError):
    """Errors in the cycle state machine."""

    def __init__(self, message: str, *, code: str = "CYCLE_ERROR") -> None:
        super().__init__(message, code=code)


class PreconditionError(CycleError):
    """Step invoked while its flag precondition does not hold."""

    def __init__(self, message: str, *, step: str = "") -> None:
        super().__init__(message, code="STEP_PRECONDITION_FAILED")
        self.step = step


class StepBusyError(CycleError):
    """Step invoked again while a previous invocation is still in flight."""

    def __init__(self, message: str = "Step is already running", *, step: str = "") -> None:
        super().__init__(message, code="STEP_IN_FLIGHT")
        self.step = step


class MissingDataError(CycleError):
    """Required board data is absent or does not have the expected shape."""

    def __init__(self, message: str, *, code: str = "MISSING_DATA") -> None:
        super().__init__(message, code=code)


class CollaboratorError(SprintRolloverError):
    """A network collaborator (milestones, bulk actions, snapshots) failed."""

    def __init__(self, message: str, *, code: str = "COLLABORATOR_FAILED") -> None:
        super().__init__(message, code=code)


class PersistenceError(SprintRolloverError):
    """Record store read or write failed."""

    def __init__(self, message: str, *, code: str = "PERSISTENCE_FAILED") -> None:
        super().__init__(message, code=code)


class ImportFormatError(SprintRolloverError):
    """Imported snapshot could not be decoded or lacks required keys."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="INVALID_IMPORT")
