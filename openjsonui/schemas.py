"""
Declarative contracts for every UI component kind the agent can emit.

Each component kind (a *variant*) is an :class:`ObjectSchema`: an ordered
table of :class:`FieldSpec` entries saying which fields are required, which
carry a default, which values are legal and where nested objects or nested
components live.  The table is data only; :mod:`openjsonui.validator` walks
it with a single recursive algorithm.

Composite variants (``dashboard`` and ``workflow``) embed child components
through ``component`` fields whose legal discriminants are listed on the
field.  Two small kinds, ``metric`` and ``info``, only exist inside a
dashboard section or a workflow step and are rejected at top level.
"""

from __future__ import annotations

import hashlib
import json
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, TypedDict, Union

NO_DEFAULT: Any = object()

# Field kinds understood by the validator.
STRING = "string"
NUMBER = "number"
INTEGER = "integer"
BOOLEAN = "boolean"
SCALAR = "scalar"  # string or number
MAPPING = "mapping"
ARRAY = "array"
OBJECT = "object"
COMPONENT = "component"
ANY = "any"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: str
    required: bool = False
    default: Any = NO_DEFAULT
    # Computes a default from the raw mapping that owns the field.
    derive: Optional[Callable[[Mapping[str, Any]], Any]] = None
    nullable: bool = True
    enum: Optional[tuple] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    clamp: bool = False
    items: Optional["FieldSpec"] = None
    schema: Optional["ObjectSchema"] = None
    variants: Optional[tuple] = None

    @property
    def has_default(self) -> bool:
        return self.default is not NO_DEFAULT or self.derive is not None

    def describe(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name, "kind": self.kind}
        if self.required:
            out["required"] = True
        if self.default is not NO_DEFAULT:
            out["default"] = self.default
        elif self.derive is not None:
            out["default"] = "<generated>"
        if self.enum is not None:
            out["enum"] = list(self.enum)
        if self.minimum is not None:
            out["minimum"] = self.minimum
        if self.maximum is not None:
            out["maximum"] = self.maximum
        if self.items is not None:
            out["items"] = self.items.describe()
        if self.schema is not None:
            out["fields"] = [f.describe() for f in self.schema.fields]
        if self.variants is not None:
            out["variants"] = list(self.variants)
        return out


@dataclass(frozen=True)
class ObjectSchema:
    name: str
    fields: tuple

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self.fields)

    def field(self, name: str) -> Optional[FieldSpec]:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    @property
    def required(self) -> tuple:
        return tuple(spec.name for spec in self.fields if spec.required)

    def describe(self) -> Dict[str, Any]:
        return {"type": self.name, "fields": [spec.describe() for spec in self.fields]}


def _canonical(value: Any) -> str:
    try:
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    except TypeError:
        # mixed-type keys cannot be sorted
        return repr(value)


def reject_constant(name: str) -> Any:
    """``parse_constant`` hook: NaN and the infinities are not JSON."""
    raise ValueError(f"{name} is not a valid JSON value")


def loads_strict(text: Union[str, bytes, bytearray]) -> Any:
    """``json.loads`` without the NaN/Infinity extension."""
    return json.loads(text, parse_constant=reject_constant)


def non_finite_path(value: Any, path: str = "") -> Optional[str]:
    """Path of the first NaN or infinite float inside ``value``, if any."""
    if isinstance(value, float):
        return None if math.isfinite(value) else (path or "<root>")
    if isinstance(value, Mapping):
        for key, item in value.items():
            found = non_finite_path(item, f"{path}.{key}" if path else str(key))
            if found is not None:
                return found
    elif isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            found = non_finite_path(item, f"{path}[{i}]")
            if found is not None:
                return found
    return None


def content_id(prefix: str, value: Any) -> str:
    """Stable id for a payload that arrived without one."""
    digest = hashlib.sha1(_canonical(value).encode("utf-8")).hexdigest()[:12]
    return f"{prefix}-{digest}"


def _component_id(raw: Mapping[str, Any]) -> str:
    tag = raw.get("type")
    return content_id(tag if isinstance(tag, str) and tag else "component", raw)


def _prefixed_id(prefix: str) -> Callable[[Mapping[str, Any]], str]:
    return lambda raw: content_id(prefix, raw)


def _string(name: str, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name, STRING, **kwargs)


def _base_fields(tag: str) -> tuple:
    return (
        FieldSpec("id", STRING, derive=_component_id, nullable=False),
        FieldSpec("type", STRING, required=True, enum=(tag,), nullable=False),
        _string("title"),
        _string("className"),
        FieldSpec("style", MAPPING, items=FieldSpec("*", STRING)),
    )


def variant(tag: str, *fields: FieldSpec) -> ObjectSchema:
    return ObjectSchema(tag, _base_fields(tag) + tuple(fields))


def embedded(tag: str, *fields: FieldSpec) -> ObjectSchema:
    """An inline kind with only ``type`` (and an optional ``id``) as base."""
    return ObjectSchema(
        tag,
        (
            FieldSpec("id", STRING, nullable=False),
            FieldSpec("type", STRING, required=True, enum=(tag,), nullable=False),
        )
        + tuple(fields),
    )


# ---------------------------------------------------------------------------
# Leaf variants
# ---------------------------------------------------------------------------

WEATHER = variant(
    "weather",
    _string("location", required=True),
    _string("temperature"),
    _string("description"),
    _string("humidity"),
    _string("windSpeed"),
    _string("feelsLike"),
    _string("icon"),
)

DATA_POINT = ObjectSchema(
    "dataPoint",
    (
        _string("label", required=True),
        FieldSpec("value", SCALAR, required=True),
        _string("color"),
    ),
)

DATA_VISUALIZATION = variant(
    "dataVisualization",
    _string("chartType", enum=("bar", "line", "pie", "table"), default="table"),
    FieldSpec("data", ARRAY, required=True, items=FieldSpec("*", OBJECT, schema=DATA_POINT)),
    _string("xAxis"),
    _string("yAxis"),
)

FIELD_VALIDATION = ObjectSchema(
    "fieldValidation",
    (
        FieldSpec("min", NUMBER),
        FieldSpec("max", NUMBER),
        _string("pattern"),
        _string("message"),
    ),
)

FORM_FIELD = ObjectSchema(
    "formField",
    (
        _string("name", required=True),
        _string(
            "type",
            required=True,
            enum=("text", "email", "password", "number", "textarea", "select", "checkbox", "radio"),
        ),
        _string("label"),
        _string("placeholder"),
        FieldSpec("required", BOOLEAN, default=False),
        FieldSpec("options", ARRAY, items=FieldSpec("*", STRING)),
        FieldSpec("validation", OBJECT, schema=FIELD_VALIDATION),
    ),
)

SUBMIT_BUTTON = ObjectSchema(
    "submitButton",
    (
        _string("text", default="Submit"),
        _string("style", enum=("primary", "secondary", "success", "danger"), default="primary"),
    ),
)

FORM = variant(
    "form",
    _string("description"),
    FieldSpec("fields", ARRAY, required=True, items=FieldSpec("*", OBJECT, schema=FORM_FIELD)),
    FieldSpec("submitButton", OBJECT, schema=SUBMIT_BUTTON, default={}),
    _string("onSubmit"),
)

ACTION_BUTTON = ObjectSchema(
    "actionButton",
    (
        _string("label", required=True),
        _string("action", required=True),
        FieldSpec("params", MAPPING, items=FieldSpec("*", ANY)),
        _string("style", enum=("primary", "secondary", "success", "warning", "danger"), default="primary"),
        _string("size", enum=("sm", "md", "lg"), default="md"),
        FieldSpec("disabled", BOOLEAN, default=False),
        _string("icon"),
    ),
)

ACTION_CARD = variant(
    "actionCard",
    _string("description"),
    _string("image"),
    FieldSpec("actions", ARRAY, required=True, items=FieldSpec("*", OBJECT, schema=ACTION_BUTTON)),
    _string("variant", enum=("default", "outlined", "elevated"), default="default"),
)

METRIC = embedded("metric", _string("value", required=True), _string("unit"))

INFO = embedded("info", _string("content", required=True))

# ---------------------------------------------------------------------------
# Composite variants
# ---------------------------------------------------------------------------

LEAF_TYPES = ("weather", "dataVisualization", "form", "actionCard")
COMPOSITE_TYPES = ("dashboard", "workflow")

SECTION_SPAN = ObjectSchema(
    "sectionSpan",
    (
        FieldSpec("cols", INTEGER, default=1, minimum=1, maximum=12, clamp=True),
        FieldSpec("rows", INTEGER, default=1, minimum=1, maximum=6, clamp=True),
    ),
)

DASHBOARD_SECTION = ObjectSchema(
    "dashboardSection",
    (
        FieldSpec("id", STRING, derive=_prefixed_id("section"), nullable=False),
        _string(
            "type",
            required=True,
            enum=("metric", "chart", "table", "form", "weather", "actionCard")
            + ("dataVisualization",)
            + COMPOSITE_TYPES,
        ),
        _string("title", required=True),
        FieldSpec("span", OBJECT, schema=SECTION_SPAN, default={}),
        FieldSpec(
            "component",
            COMPONENT,
            required=True,
            variants=LEAF_TYPES + COMPOSITE_TYPES + ("metric",),
        ),
    ),
)

DASHBOARD = variant(
    "dashboard",
    _string("layout", enum=("grid", "columns", "rows"), default="grid"),
    FieldSpec("sections", ARRAY, required=True, items=FieldSpec("*", OBJECT, schema=DASHBOARD_SECTION)),
    FieldSpec("gridCols", INTEGER, default=3, minimum=1, maximum=12, clamp=True),
    _string("gap", enum=("sm", "md", "lg"), default="md"),
)

WORKFLOW_STEP = ObjectSchema(
    "workflowStep",
    (
        FieldSpec("id", STRING, derive=_prefixed_id("step"), nullable=False),
        _string("title", required=True),
        _string("description"),
        _string("type", required=True, enum=("form", "info", "action", "review")),
        FieldSpec("completed", BOOLEAN, default=False),
        FieldSpec("component", COMPONENT, variants=LEAF_TYPES + COMPOSITE_TYPES + ("info",)),
    ),
)

WORKFLOW = variant(
    "workflow",
    FieldSpec("currentStep", INTEGER, default=0, minimum=0),
    FieldSpec("steps", ARRAY, required=True, items=FieldSpec("*", OBJECT, schema=WORKFLOW_STEP)),
    FieldSpec("showProgress", BOOLEAN, default=True),
    FieldSpec("allowSkip", BOOLEAN, default=False),
)


class ComponentRegistry:
    """Discriminant -> contract lookup.

    Variants registered with ``embedded_only=True`` can be resolved inside a
    composite but are never offered as a top-level component kind.
    """

    def __init__(self) -> None:
        self._schemas: Dict[str, ObjectSchema] = {}
        self._embedded: set[str] = set()

    def register(self, schema: ObjectSchema, *, embedded_only: bool = False) -> None:
        if schema.name in self._schemas:
            raise ValueError(f"component type {schema.name!r} is already registered")
        self._schemas[schema.name] = schema
        if embedded_only:
            self._embedded.add(schema.name)

    def get(self, discriminant: Any) -> Optional[ObjectSchema]:
        if not isinstance(discriminant, str):
            return None
        return self._schemas.get(discriminant)

    def contract(self, discriminant: str) -> ObjectSchema:
        schema = self.get(discriminant)
        if schema is None:
            raise KeyError(discriminant)
        return schema

    def discriminants(self, *, include_embedded: bool = False) -> tuple:
        return tuple(
            name for name in self._schemas if include_embedded or name not in self._embedded
        )

    def is_top_level(self, discriminant: Any) -> bool:
        return isinstance(discriminant, str) and discriminant in self._schemas and discriminant not in self._embedded

    def describe(self, discriminant: Optional[str] = None) -> Any:
        """JSON-serialisable view of one contract, or of every top-level one."""
        if discriminant is not None:
            return self.contract(discriminant).describe()
        return [self._schemas[name].describe() for name in self.discriminants()]

    def __contains__(self, discriminant: object) -> bool:
        return self.is_top_level(discriminant)


def build_default_registry() -> ComponentRegistry:
    registry = ComponentRegistry()
    for schema in (WEATHER, DATA_VISUALIZATION, FORM, ACTION_CARD, DASHBOARD, WORKFLOW):
        registry.register(schema)
    registry.register(METRIC, embedded_only=True)
    registry.register(INFO, embedded_only=True)
    return registry


REGISTRY = build_default_registry()


# ---------------------------------------------------------------------------
# Typed views of validated descriptions
# ---------------------------------------------------------------------------


class _Base(TypedDict, total=False):
    id: str
    type: str
    title: Optional[str]
    className: Optional[str]
    style: Dict[str, str]


class WeatherComponent(_Base, total=False):
    location: str
    temperature: Optional[str]
    description: Optional[str]
    humidity: Optional[str]
    windSpeed: Optional[str]
    feelsLike: Optional[str]
    icon: Optional[str]


class DataVisualizationComponent(_Base, total=False):
    chartType: str
    data: List[Dict[str, Any]]
    xAxis: Optional[str]
    yAxis: Optional[str]


class FormComponent(_Base, total=False):
    description: Optional[str]
    fields: List[Dict[str, Any]]
    submitButton: Dict[str, Any]
    onSubmit: Optional[str]


class ActionCardComponent(_Base, total=False):
    description: Optional[str]
    image: Optional[str]
    actions: List[Dict[str, Any]]
    variant: str


class DashboardComponent(_Base, total=False):
    layout: str
    sections: List[Dict[str, Any]]
    gridCols: int
    gap: str


class WorkflowComponent(_Base, total=False):
    currentStep: int
    steps: List[Dict[str, Any]]
    showProgress: bool
    allowSkip: bool


ComponentDescription = Union[
    WeatherComponent,
    DataVisualizationComponent,
    FormComponent,
    ActionCardComponent,
    DashboardComponent,
    WorkflowComponent,
]


__all__ = [
    "NO_DEFAULT",
    "FieldSpec",
    "ObjectSchema",
    "ComponentRegistry",
    "REGISTRY",
    "build_default_registry",
    "content_id",
    "loads_strict",
    "non_finite_path",
    "reject_constant",
    "ComponentDescription",
    "WeatherComponent",
    "DataVisualizationComponent",
    "FormComponent",
    "ActionCardComponent",
    "DashboardComponent",
    "WorkflowComponent",
]
