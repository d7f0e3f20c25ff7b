"""Promotion engine exception hierarchy.

All exceptions inherit from FreightlineError so callers can catch every
engine failure with one except clause. Each class carries the RPC status code
it maps to and the CLI exit code used by ``freightline``.

Exception Hierarchy:
    FreightlineError (base)
    ├── ValidationError         # Missing/invalid request field
    ├── NotFoundError           # Stage, Freight, Warehouse or topology absent
    ├── IneligibleFreightError  # Freight not admissible to the target Stage
    ├── PermissionDeniedError   # Default authorizer refused the action
    ├── VerificationStateError  # Stage has nothing to reverify/abort
    ├── StoreError              # Backing store read/write failed
    ├── AlreadyExistsError      # Create of an existing object
    ├── ConflictError           # Stale resource_version on update
    └── FanOutError             # Every fan-out target failed

Exit Codes:
    0 - Success
    1 - General error (FreightlineError, AlreadyExistsError, ConflictError)
    2 - Invalid request (ValidationError)
    3 - Not found (NotFoundError)
    4 - Freight not eligible (IneligibleFreightError)
    5 - Permission denied (PermissionDeniedError)
    6 - Verification precondition failed (VerificationStateError)
    7 - Store failure (StoreError)
    8 - Fan-out failed for every target (FanOutError)

Example:
    >>> from freightline.promotion.errors import IneligibleFreightError
    >>> raise IneligibleFreightError("abc123", "prod")
    Traceback (most recent call last):
        ...
    IneligibleFreightError: Freight "abc123" is not available to Stage "prod"
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from freightline.promotion.fanout import FanOutFailure


class StatusCode(str, Enum):
    """RPC status codes the service boundary reports."""

    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    PERMISSION_DENIED = "permission_denied"
    FAILED_PRECONDITION = "failed_precondition"
    ABORTED = "aborted"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


class FreightlineError(Exception):
    """Base exception for all promotion engine errors.

    Attributes:
        exit_code: CLI exit code for this error type (default: 1).
        code: RPC status code for this error type.
    """

    exit_code: int = 1
    code: StatusCode = StatusCode.UNKNOWN


class ValidationError(FreightlineError):
    """Raised when a request is missing a field or violates exactly-one-of.

    Raised before any I/O and never retried.
    """

    exit_code: int = 2
    code: StatusCode = StatusCode.INVALID_ARGUMENT

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


class NotFoundError(FreightlineError):
    """Raised when a Stage, Freight, Warehouse or topology result is absent.

    Attributes:
        kind: Kind of the missing object ("Stage", "Freight", ...).
        name: Name of the missing object.
        namespace: Project that was searched.
    """

    exit_code: int = 3
    code: StatusCode = StatusCode.NOT_FOUND

    def __init__(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
        message: str | None = None,
    ) -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        if message is None:
            message = f'{kind} "{name}" not found'
            if namespace:
                message = f'{kind} "{name}" in namespace "{namespace}" not found'
        super().__init__(message)


class IneligibleFreightError(FreightlineError):
    """Raised when Freight exists but may not be promoted into a Stage."""

    exit_code: int = 4
    code: StatusCode = StatusCode.INVALID_ARGUMENT

    def __init__(self, freight: str, stage: str) -> None:
        self.freight = freight
        self.stage = stage
        super().__init__(f'Freight "{freight}" is not available to Stage "{stage}"')


class PermissionDeniedError(FreightlineError):
    """Raised by the default authorizer when an actor may not act on a Stage.

    Attributes:
        actor: Identity that attempted the action.
        verb: Action attempted ("promote").
        stage: Target Stage.
        reason: Why the action was refused.
    """

    exit_code: int = 5
    code: StatusCode = StatusCode.PERMISSION_DENIED

    def __init__(self, actor: str, verb: str, stage: str, reason: str) -> None:
        self.actor = actor
        self.verb = verb
        self.stage = stage
        self.reason = reason
        super().__init__(f'"{actor}" may not {verb} Stage "{stage}": {reason}')


class VerificationStateError(FreightlineError):
    """Raised when a Stage has no verification a signal could address."""

    exit_code: int = 6
    code: StatusCode = StatusCode.FAILED_PRECONDITION

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class StoreError(FreightlineError):
    """Raised when the backing store fails; wraps the operation and cause."""

    exit_code: int = 7
    code: StatusCode = StatusCode.INTERNAL

    def __init__(self, operation: str, cause: BaseException | str) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"{operation}: {cause}")


class AlreadyExistsError(FreightlineError):
    """Raised by a store when creating an object whose name is taken."""

    code: StatusCode = StatusCode.ALREADY_EXISTS

    def __init__(self, kind: str, name: str, namespace: str) -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        super().__init__(f'{kind} "{name}" already exists in namespace "{namespace}"')


class ConflictError(FreightlineError):
    """Raised by a store when an update carries a stale resource_version.

    The caller must re-read, re-decide and re-write.
    """

    code: StatusCode = StatusCode.ABORTED

    def __init__(self, kind: str, name: str, namespace: str) -> None:
        self.kind = kind
        self.name = name
        self.namespace = namespace
        super().__init__(
            f'{kind} "{name}" in namespace "{namespace}" was modified concurrently'
        )


class FanOutError(FreightlineError):
    """Joined error enumerating every fan-out target that failed.

    Attributes:
        failures: One entry per failed target Stage, in discovery order.
    """

    exit_code: int = 8
    code: StatusCode = StatusCode.INTERNAL

    def __init__(self, failures: Sequence[FanOutFailure]) -> None:
        self.failures = list(failures)
        super().__init__("\n".join(str(f) for f in self.failures))

    @property
    def stages(self) -> list[str]:
        return [f.stage for f in self.failures]


__all__ = [
    "AlreadyExistsError",
    "ConflictError",
    "FanOutError",
    "FreightlineError",
    "IneligibleFreightError",
    "NotFoundError",
    "PermissionDeniedError",
    "StatusCode",
    "StoreError",
    "ValidationError",
    "VerificationStateError",
]
