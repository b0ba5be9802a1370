"""
Authorization engine errors.

All errors are local and synchronous; none of them is worth retrying.
Storage errors (e.g. ``sqlalchemy.exc.IntegrityError`` on a duplicate
grant) are not wrapped and reach the caller unchanged.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AclError(Exception):
    """Base class for every error raised by the engine."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "ACL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details: Dict[str, Any] = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        return self.message


class InvalidArgumentError(AclError):
    """Malformed input: wrong arity, empty collection, wrong shape."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message, code="INVALID_ARGUMENT", details=details)


class NotFoundError(AclError):
    """A referenced role (or, in strict mode, permission) does not exist."""

    def __init__(self, message: str, missing: Optional[list[Any]] = None, **details: Any):
        if missing is not None:
            details["missing"] = missing
        super().__init__(message, code="NOT_FOUND", details=details)


class PreconditionError(AclError):
    """Operation called on an entity type that does not support it."""

    def __init__(self, message: str, **details: Any):
        super().__init__(message, code="PRECONDITION_FAILED", details=details)
