"""
deferring/errors.py

Exception hierarchy for deferred relations.
"""
from typing import Any, List, Optional


class DeferringError(Exception):
    """Base class for all errors raised by deferred relations"""


class ElementValidationError(DeferringError):
    """
    Raised when an element fails validation on the create-or-fail path.

    Attributes:
        element: The element that failed validation
        errors: Validation messages
    """

    def __init__(self, element: Any, errors: List[str]):
        self.element = element
        self.errors = list(errors)
        super().__init__(f"Validation failed: {', '.join(self.errors)}")


class ElementNotFoundError(DeferringError, LookupError):
    """Raised when an id cannot be resolved to a stored element"""

    def __init__(self, target: str, ident: Any):
        self.target = target
        self.ident = ident
        super().__init__(f"{target} with id={ident!r} not found")


class DetachedParentError(DeferringError):
    """Raised when a store operation needs a session and the parent has none"""

    def __init__(self, parent: Any, operation: Optional[str] = None):
        self.parent = parent
        self.operation = operation
        detail = f" ({operation})" if operation else ""
        super().__init__(f"{parent!r} is not attached to a session{detail}")


class InvalidTransitionError(DeferringError):
    """Raised when the load state machine is asked for an undeclared transition"""


__all__ = [
    "DeferringError",
    "ElementValidationError",
    "ElementNotFoundError",
    "DetachedParentError",
    "InvalidTransitionError",
]
