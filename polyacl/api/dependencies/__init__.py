"""
API dependencies.
"""

from .database import get_db
from .auth import (
    Authorize,
    Authorizer,
    CurrentSubject,
    get_authorizer,
    get_current_subject,
    require,
)

__all__ = [
    "get_db",
    "Authorize",
    "Authorizer",
    "CurrentSubject",
    "get_authorizer",
    "get_current_subject",
    "require",
]
