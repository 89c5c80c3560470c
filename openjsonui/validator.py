"""
Turn loosely-typed tool output into a normalized component description.

:func:`validate` accepts JSON text or an already-decoded mapping, dispatches
on its ``type`` discriminant and walks the matching contract from
:mod:`openjsonui.schemas`.  Defaults are filled in, unknown keys are dropped,
layout bounds are clamped and anything else that does not fit the contract
is reported as a :class:`~openjsonui.errors.ValidationError` value.

The function is pure: the input is never mutated and the same input always
yields the same output, including the generated ``id`` of payloads that
arrive without one.
"""

from __future__ import annotations

import copy
import json
import logging
import math
from typing import Any, Dict, Mapping, Optional, Union

from .errors import ValidationError
from .schemas import (
    ANY,
    ARRAY,
    BOOLEAN,
    COMPONENT,
    INTEGER,
    MAPPING,
    NO_DEFAULT,
    NUMBER,
    OBJECT,
    REGISTRY,
    SCALAR,
    STRING,
    ComponentDescription,
    ComponentRegistry,
    FieldSpec,
    ObjectSchema,
    loads_strict,
    non_finite_path,
)

logger = logging.getLogger("openjsonui.validator")

MAX_DEPTH = 32


class _Rejected(Exception):
    def __init__(self, error: ValidationError) -> None:
        super().__init__(error.message)
        self.error = error


def _kind_of(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _join(path: str, name: str) -> str:
    return f"{path}.{name}" if path else name


def _json_copy(value: Any, path: str) -> Any:
    bad = non_finite_path(value, path)
    if bad is not None:
        raise _Rejected(ValidationError.field_type_mismatch(bad, "finite number", "non-finite number"))
    return copy.deepcopy(value)


def _load(raw: Any) -> Mapping[str, Any]:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise _Rejected(ValidationError.malformed_input(f"input is not UTF-8: {e}", position=e.start))
    if isinstance(raw, str):
        try:
            raw = loads_strict(raw)
        except json.JSONDecodeError as e:
            raise _Rejected(
                ValidationError.malformed_input(
                    f"{e.msg}: line {e.lineno} column {e.colno} (char {e.pos})",
                    position=e.pos,
                )
            )
        except ValueError as e:
            raise _Rejected(ValidationError.malformed_input(str(e)))
        except RecursionError:
            raise _Rejected(ValidationError.malformed_input("input is nested too deeply to parse"))
    if not isinstance(raw, Mapping):
        raise _Rejected(
            ValidationError.malformed_input(f"expected a JSON object, got {_kind_of(raw)}")
        )
    return raw


class _Walker:
    """One validation pass; holds the registry and the depth bound."""

    def __init__(self, registry: ComponentRegistry, max_depth: int) -> None:
        self.registry = registry
        self.max_depth = max_depth

    def component(
        self,
        value: Any,
        path: str,
        depth: int,
        ancestors: tuple,
        allowed: tuple,
    ) -> Dict[str, Any]:
        if depth > self.max_depth:
            raise _Rejected(ValidationError.max_depth_exceeded(path or "<root>", self.max_depth))
        if not isinstance(value, Mapping):
            raise _Rejected(ValidationError.field_type_mismatch(path or "<root>", "object", _kind_of(value)))

        tag = value.get("type")
        schema = self.registry.get(tag) if tag in allowed else None
        if schema is None:
            raise _Rejected(ValidationError.unknown_variant(tag, path=_join(path, "type")))

        out = self.fields(schema, value, path, depth, ancestors, owns_id=True)
        ident = out.get("id")
        if ident is not None and ident in ancestors:
            raise _Rejected(ValidationError.cyclic_reference(_join(path, "id"), ident))
        return out

    def fields(
        self,
        schema: ObjectSchema,
        value: Mapping[str, Any],
        path: str,
        depth: int,
        ancestors: tuple,
        owns_id: bool = False,
    ) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for spec in schema:
            # ``id`` precedes every nested field, so children see their parent.
            lineage = ancestors + (out["id"],) if owns_id and "id" in out else ancestors
            here = _join(path, spec.name)
            if spec.name not in value:
                if spec.derive is not None:
                    out[spec.name] = spec.derive(value)
                elif spec.default is not NO_DEFAULT:
                    out[spec.name] = self.value(spec, copy.deepcopy(spec.default), here, depth, lineage)
                elif spec.required:
                    raise _Rejected(ValidationError.missing_field(here))
                continue

            raw = value[spec.name]
            if raw is None:
                if spec.required or not spec.nullable:
                    raise _Rejected(ValidationError.field_type_mismatch(here, spec.kind, "null"))
                out[spec.name] = None
                continue
            out[spec.name] = self.value(spec, raw, here, depth, lineage)
        return out

    def value(self, spec: FieldSpec, raw: Any, path: str, depth: int, ancestors: tuple) -> Any:
        kind = spec.kind
        if kind == STRING:
            if not isinstance(raw, str):
                self._mismatch(path, spec, raw)
            return self._check_enum(spec, raw, path)
        if kind == BOOLEAN:
            if not isinstance(raw, bool):
                self._mismatch(path, spec, raw)
            return raw
        if kind in (NUMBER, INTEGER):
            return self._number(spec, raw, path)
        if kind == SCALAR:
            if isinstance(raw, str):
                return raw
            if _is_number(raw) and math.isfinite(raw):
                return raw
            raise _Rejected(ValidationError.field_type_mismatch(path, "string or number", _kind_of(raw)))
        if kind == ARRAY:
            if not isinstance(raw, (list, tuple)):
                self._mismatch(path, spec, raw)
            if spec.items is None:
                return _json_copy(list(raw), path)
            return [
                self._item(spec.items, item, f"{path}[{i}]", depth, ancestors)
                for i, item in enumerate(raw)
            ]
        if kind == MAPPING:
            if not isinstance(raw, Mapping):
                raise _Rejected(ValidationError.field_type_mismatch(path, "object", _kind_of(raw)))
            out: Dict[str, Any] = {}
            for key, item in raw.items():
                if not isinstance(key, str):
                    raise _Rejected(ValidationError.field_type_mismatch(path, "string keys", _kind_of(key)))
                out[key] = (
                    _json_copy(item, _join(path, key))
                    if spec.items is None
                    else self._item(spec.items, item, _join(path, key), depth, ancestors)
                )
            return out
        if kind == OBJECT:
            if not isinstance(raw, Mapping):
                self._mismatch(path, spec, raw)
            assert spec.schema is not None
            return self.fields(spec.schema, raw, path, depth, ancestors)
        if kind == COMPONENT:
            return self.component(raw, path, depth + 1, ancestors, spec.variants or ())
        if kind == ANY:
            return _json_copy(raw, path)
        raise ValueError(f"unsupported field kind {kind!r} on {path}")

    def _item(self, spec: FieldSpec, raw: Any, path: str, depth: int, ancestors: tuple) -> Any:
        if raw is None:
            if spec.kind == ANY:
                return None
            raise _Rejected(ValidationError.field_type_mismatch(path, spec.kind, "null"))
        return self.value(spec, raw, path, depth, ancestors)

    def _number(self, spec: FieldSpec, raw: Any, path: str) -> Union[int, float]:
        if not _is_number(raw) or not math.isfinite(raw):
            self._mismatch(path, spec, raw)
        if spec.kind == INTEGER:
            if isinstance(raw, float):
                if not raw.is_integer():
                    raise _Rejected(ValidationError.field_type_mismatch(path, "integer", repr(raw)))
                raw = int(raw)
        if spec.minimum is not None and raw < spec.minimum:
            if not spec.clamp:
                raise _Rejected(
                    ValidationError.field_type_mismatch(path, f"{spec.kind} >= {spec.minimum:g}", repr(raw))
                )
            logger.debug(f"Clamped {path}={raw!r} up to {spec.minimum:g}")
            raw = type(raw)(spec.minimum)
        if spec.maximum is not None and raw > spec.maximum:
            if not spec.clamp:
                raise _Rejected(
                    ValidationError.field_type_mismatch(path, f"{spec.kind} <= {spec.maximum:g}", repr(raw))
                )
            logger.debug(f"Clamped {path}={raw!r} down to {spec.maximum:g}")
            raw = type(raw)(spec.maximum)
        return self._check_enum(spec, raw, path)

    @staticmethod
    def _check_enum(spec: FieldSpec, raw: Any, path: str) -> Any:
        if spec.enum is not None and raw not in spec.enum:
            expected = "one of " + ", ".join(repr(v) for v in spec.enum)
            raise _Rejected(ValidationError.field_type_mismatch(path, expected, repr(raw)))
        return raw

    @staticmethod
    def _mismatch(path: str, spec: FieldSpec, raw: Any) -> None:
        raise _Rejected(ValidationError.field_type_mismatch(path, spec.kind, _kind_of(raw)))


def validate(
    raw: Any,
    *,
    registry: Optional[ComponentRegistry] = None,
    max_depth: int = MAX_DEPTH,
) -> Union[ComponentDescription, ValidationError]:
    """Validate and normalize one component description.

    Args:
        raw: JSON text (``str`` or ``bytes``) or a decoded mapping.
        registry: Contracts to validate against; defaults to the built-in
            registry.
        max_depth: Deepest allowed component nesting, counting the top-level
            component as depth 1.

    Returns:
        The normalized description, or a ``ValidationError`` describing the
        first problem found.
    """
    registry = registry or REGISTRY
    walker = _Walker(registry, max_depth)
    try:
        value = _load(raw)
        return walker.component(value, "", 1, (), registry.discriminants())  # type: ignore[return-value]
    except RecursionError:
        rejected = _Rejected(ValidationError.max_depth_exceeded("<root>", max_depth))
    except _Rejected as exc:
        rejected = exc
    logger.debug(f"Rejected component payload: {rejected.error.to_dict()}")
    return rejected.error


def is_valid(result: Any) -> bool:
    return not isinstance(result, ValidationError)


__all__ = ["MAX_DEPTH", "validate", "is_valid"]
