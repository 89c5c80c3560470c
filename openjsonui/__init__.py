"""Validated, shared UI state for agent-generated components.

The FastAPI application lives in :mod:`openjsonui.main`; importing the
package itself only loads the core.
"""

from .canvas import CanvasController, CanvasInstance
from .errors import ErrorKind, UIStateError, ValidationError
from .schemas import REGISTRY, ComponentRegistry
from .session import Session, SessionRegistry, get_session
from .state import SECTIONS, SharedStateStore
from .validator import MAX_DEPTH, is_valid, validate

__all__ = [
    "CanvasController",
    "CanvasInstance",
    "ComponentRegistry",
    "ErrorKind",
    "MAX_DEPTH",
    "REGISTRY",
    "SECTIONS",
    "Session",
    "SessionRegistry",
    "SharedStateStore",
    "UIStateError",
    "ValidationError",
    "get_session",
    "is_valid",
    "validate",
]
