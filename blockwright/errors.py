"""
Error taxonomy for Blockwright.

Every failure raised by the registry, the composition engine and the
persistence gateways is a ``BlockError`` subclass carrying a stable ``code``
so callers can branch on the kind of failure without string matching.
"""

from typing import Any, List, Optional


class BlockError(Exception):
    """
    Base class for all Blockwright errors.
    """

    code = "BLOCK_ERROR"
    retryable = False

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        return self.message


class NotFoundError(BlockError):
    """A referenced type, block or link does not exist."""

    code = "NOT_FOUND"


class TypeNotRegisteredError(NotFoundError):
    """The block type has no descriptor in the registry."""

    def __init__(self, block_type: Any):
        super().__init__(f'Block type "{block_type}" is not registered', {"type": str(block_type)})
        self.block_type = block_type


class BlockValidationError(BlockError):
    """
    A payload failed its type's validator.

    ``errors`` holds the ordered, human-readable field errors.
    """

    code = "VALIDATION"

    def __init__(self, message: str, errors: Optional[List[str]] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.errors = list(errors or [])

    def __str__(self) -> str:
        if not self.errors:
            return self.message
        return f"{self.message}: {'; '.join(self.errors)}"


class InvalidArgumentError(BlockValidationError):
    """An operation argument (usually a position) is out of range."""


class LimitExceededError(BlockError):
    """A multiplicity or document size cap has been reached."""

    code = "LIMIT_EXCEEDED"

    def __init__(self, message: str, limit: int, details: Optional[Any] = None):
        super().__init__(message, details)
        self.limit = limit


class ConflictError(BlockError):
    """Deleting a referenced block, duplicate link, or overlapping operation."""

    code = "CONFLICT"


class DatabaseError(BlockError):
    """Persistence failure. Presumed transient, so callers may retry."""

    code = "DATABASE"
    retryable = True


class UnauthorizedError(BlockError):
    """The acting user does not own the block being changed."""

    code = "UNAUTHORIZED"


class ConfigurationError(BlockError):
    """Startup configuration is unusable (e.g. a block type never registered)."""

    code = "CONFIGURATION"
