"""
Error values shared by the validator, the state store and the canvas.

Validation never raises across its public boundary: :func:`validate` hands
back a :class:`ValidationError` value instead of a description.  The store
and the canvas reject bad requests by raising :class:`UIStateError`
subclasses, each carrying the same kind of value so the HTTP layer and the
agent graph can report every failure in one shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    MALFORMED_INPUT = "MalformedInput"
    UNKNOWN_VARIANT = "UnknownVariant"
    MISSING_FIELD = "MissingField"
    FIELD_TYPE_MISMATCH = "FieldTypeMismatch"
    MAX_DEPTH_EXCEEDED = "MaxDepthExceeded"
    CYCLIC_REFERENCE = "CyclicReference"
    DUPLICATE_ID_CONFLICT = "DuplicateIdConflict"
    INVALID_SECTION = "InvalidSection"
    STALE_WRITE = "StaleWrite"


@dataclass(frozen=True)
class ValidationError:
    """A machine-readable failure with a path that localizes it.

    ``path`` uses dotted/indexed notation (``sections[2].component.title``);
    it is empty when the failure concerns the input as a whole.
    """

    kind: ErrorKind
    message: str
    path: str = ""
    expected: Optional[str] = None
    actual: Optional[str] = None
    position: Optional[int] = None

    @property
    def field(self) -> Optional[str]:
        """The last named segment of ``path`` (``title`` for ``a[0].title``)."""
        if not self.path:
            return None
        return self.path.rsplit(".", 1)[-1].split("[", 1)[0] or None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.path:
            out["path"] = self.path
        if self.expected is not None:
            out["expected"] = self.expected
        if self.actual is not None:
            out["actual"] = self.actual
        if self.position is not None:
            out["position"] = self.position
        return out

    @classmethod
    def malformed_input(cls, message: str, *, position: Optional[int] = None) -> "ValidationError":
        return cls(ErrorKind.MALFORMED_INPUT, message, position=position)

    @classmethod
    def unknown_variant(cls, value: Any, *, path: str = "") -> "ValidationError":
        if value is None:
            message = "missing discriminant 'type'"
        else:
            message = f"unknown component type {value!r}"
        return cls(ErrorKind.UNKNOWN_VARIANT, message, path=path, actual=repr(value))

    @classmethod
    def missing_field(cls, path: str) -> "ValidationError":
        return cls(ErrorKind.MISSING_FIELD, f"missing required field '{path}'", path=path)

    @classmethod
    def field_type_mismatch(cls, path: str, expected: str, actual: str) -> "ValidationError":
        return cls(
            ErrorKind.FIELD_TYPE_MISMATCH,
            f"field '{path}' expected {expected}, got {actual}",
            path=path,
            expected=expected,
            actual=actual,
        )

    @classmethod
    def max_depth_exceeded(cls, path: str, limit: int) -> "ValidationError":
        return cls(
            ErrorKind.MAX_DEPTH_EXCEEDED,
            f"component nesting deeper than {limit} levels at '{path}'",
            path=path,
            expected=f"depth <= {limit}",
        )

    @classmethod
    def cyclic_reference(cls, path: str, ident: str) -> "ValidationError":
        return cls(
            ErrorKind.CYCLIC_REFERENCE,
            f"component at '{path}' reuses ancestor id {ident!r}",
            path=path,
            actual=ident,
        )

    @classmethod
    def duplicate_id(cls, ident: str) -> "ValidationError":
        return cls(
            ErrorKind.DUPLICATE_ID_CONFLICT,
            f"a component with id {ident!r} is already on the canvas",
            actual=ident,
        )

    @classmethod
    def invalid_section(cls, section: Any, allowed: tuple[str, ...]) -> "ValidationError":
        return cls(
            ErrorKind.INVALID_SECTION,
            f"unknown state section {section!r}; expected one of {', '.join(allowed)}",
            expected=" | ".join(allowed),
            actual=repr(section),
        )

    @classmethod
    def stale_write(cls, expected: int, actual: int) -> "ValidationError":
        return cls(
            ErrorKind.STALE_WRITE,
            f"state changed since lastUpdate={expected} (now {actual}); re-read before writing",
            expected=str(expected),
            actual=str(actual),
        )


class UIStateError(Exception):
    """Raised by the state store or the canvas before any mutation happens."""

    def __init__(self, error: ValidationError) -> None:
        super().__init__(error.message)
        self.error = error


class InvalidSectionError(UIStateError):
    pass


class InvalidPatchError(UIStateError):
    pass


class StaleWriteError(UIStateError):
    pass


class DuplicateIdConflictError(UIStateError):
    pass


__all__ = [
    "ErrorKind",
    "ValidationError",
    "UIStateError",
    "InvalidSectionError",
    "InvalidPatchError",
    "StaleWriteError",
    "DuplicateIdConflictError",
]
