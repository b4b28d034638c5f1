"""threadfork error hierarchy.

All project exceptions inherit from ThreadforkError, enabling:
- ``except ThreadforkError`` at top-level boundaries (CLI)
- Fine-grained catches deeper in the stack (``except ConstraintViolation``)

Hierarchy:
    ThreadforkError
    ├── MessageNotFoundError        # unknown id or dangling variant_of pointer
    ├── BranchLimitExceeded         # variant ceiling for a root reached
    ├── ConstraintViolation         # concurrent insert lost the sequence race
    ├── RetryExhaustedError         # ConstraintViolation budget used up
    ├── DataIntegrityError          # resolver hop cap exceeded
    ├── InvalidOperationError       # operation not allowed for this message
    ├── DatabaseError               # storage layer
    └── ConfigError                 # config.py
"""

from __future__ import annotations


class ThreadforkError(Exception):
    """Base class for all threadfork errors."""


class MessageNotFoundError(ThreadforkError):
    """A referenced message does not exist."""

    def __init__(self, message_id: str, *, referenced_by: str | None = None) -> None:
        self.message_id = message_id
        self.referenced_by = referenced_by
        if referenced_by:
            text = f"Message {message_id} not found (dangling reference from {referenced_by})"
        else:
            text = f"Message {message_id} not found"
        super().__init__(text)


class BranchLimitExceeded(ThreadforkError):
    """The root already carries the maximum number of variants.

    Recoverable from the caller's point of view: retrying a different
    message is still allowed.
    """

    def __init__(self, root_id: str, limit: int) -> None:
        self.root_id = root_id
        self.limit = limit
        super().__init__(f"Maximum number of variants ({limit + 1}) reached for this message")


class ConstraintViolation(ThreadforkError):
    """Raised by the store when a variant insert races another insert."""

    def __init__(self, root_id: str, expected_count: int, actual_count: int | None = None) -> None:
        self.root_id = root_id
        self.expected_count = expected_count
        self.actual_count = actual_count
        detail = f"expected {expected_count} variants of {root_id}"
        if actual_count is not None:
            detail += f", found {actual_count}"
        super().__init__(f"Variant sequence conflict: {detail}")


class RetryExhaustedError(ThreadforkError):
    """Transient failure: sequence allocation kept colliding."""

    def __init__(self, root_id: str, attempts: int) -> None:
        self.root_id = root_id
        self.attempts = attempts
        super().__init__(f"Could not allocate a variant of {root_id} after {attempts} attempts; try again")


class DataIntegrityError(ThreadforkError):
    """Stored data violates an invariant the core relies on."""


class InvalidOperationError(ThreadforkError):
    """The requested operation does not apply to the given message."""


class DatabaseError(ThreadforkError):
    """Base class for database errors."""


class ConfigError(ThreadforkError):
    """Invalid configuration."""


__all__ = [
    "ThreadforkError",
    "MessageNotFoundError",
    "BranchLimitExceeded",
    "ConstraintViolation",
    "RetryExhaustedError",
    "DataIntegrityError",
    "InvalidOperationError",
    "DatabaseError",
    "ConfigError",
]
