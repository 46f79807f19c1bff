"""
Error taxonomy for the propagation engine.

Primary-path failures (AuthRequired, NotFound, TransactionAborted, ...) are
raised to the caller. PartialFanout is only ever logged: secondary ledger and
notification writes must not abort the action that triggered them.
"""

from typing import Optional, Sequence


class PropagationError(Exception):
    """Base exception for engine errors."""
    pass


class AuthRequired(PropagationError):
    """Raised when no usable session record exists for the caller."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class RoleNotPermitted(PropagationError):
    """Raised when the actor's role cannot perform the requested action."""

    def __init__(self, role: str, required_role: str):
        self.role = role
        self.required_role = required_role
        super().__init__(f"Role {role!r} cannot act as {required_role!r}")


class EmployerBlocked(PropagationError):
    """Raised at login when the employer account has been rejected."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "No specific reason provided."
        super().__init__(f"Employer account has been blocked. Reason: {self.reason}")


class NotFound(PropagationError):
    """Raised when a referenced document does not exist."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} not found")


class TransactionAborted(PropagationError):
    """Raised when an atomic unit failed; none of its writes are visible."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Transaction aborted during {operation}{detail}")


class PartialFanout(PropagationError):
    """Describes a fan-out that stopped after some secondary writes succeeded."""

    def __init__(
        self,
        event_type: str,
        completed: Sequence[str],
        failed: str,
        cause: Optional[BaseException] = None,
    ):
        self.event_type = event_type
        self.completed = list(completed)
        self.failed = failed
        self.cause = cause
        super().__init__(
            f"Fan-out for {event_type!r} failed at {failed!r} "
            f"after {self.completed or 'no'} writes: {cause}"
        )
