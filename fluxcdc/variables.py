"""Typed process variables exchanged with the engine.

The engine transports every variable as ``{"type": ..., "value": ...,
"valueInfo": {...}}``. Values are modelled as a tagged union on ``type`` so
that a shape mismatch fails only the task that carries it, before its
handler runs.
"""

from __future__ import annotations

import json
import types
from datetime import datetime
from typing import (
    Annotated,
    Any,
    Dict,
    Literal,
    Mapping,
    Optional,
    Type,
    TypeVar,
    Union,
    get_args,
    get_origin,
)

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from .errors import InputError
from .timefmt import format_engine_time, parse_engine_time

ModelT = TypeVar("ModelT", bound=BaseModel)

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1


class _BaseValue(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value_info: Dict[str, Any] = Field(default_factory=dict, alias="valueInfo")

    def to_python(self) -> Any:
        return getattr(self, "value", None)

    def to_engine(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class StringValue(_BaseValue):
    type: Literal["String"] = "String"
    value: Optional[str] = None


class IntegerValue(_BaseValue):
    type: Literal["Integer"] = "Integer"
    value: Optional[int] = None


class ShortValue(_BaseValue):
    type: Literal["Short"] = "Short"
    value: Optional[int] = None


class LongValue(_BaseValue):
    type: Literal["Long"] = "Long"
    value: Optional[int] = None


class DoubleValue(_BaseValue):
    type: Literal["Double"] = "Double"
    value: Optional[float] = None


class BooleanValue(_BaseValue):
    type: Literal["Boolean"] = "Boolean"
    value: Optional[bool] = None


class JsonValue(_BaseValue):
    """Serialized JSON document; decoded on access."""

    type: Literal["Json"] = "Json"
    value: Optional[str] = None

    def to_python(self) -> Any:
        if self.value is None:
            return None
        return json.loads(self.value)


class DateValue(_BaseValue):
    type: Literal["Date"] = "Date"
    value: Optional[str] = None

    def to_python(self) -> Optional[datetime]:
        return parse_engine_time(self.value)


class NullValue(_BaseValue):
    type: Literal["Null"] = "Null"
    value: None = None


class ObjectValue(_BaseValue):
    """Engine-serialized Java objects and binary content, passed through."""

    type: Literal["Object", "Bytes", "File", "Xml"] = "Object"
    value: Any = None


TypedValue = Annotated[
    Union[
        StringValue,
        IntegerValue,
        ShortValue,
        LongValue,
        DoubleValue,
        BooleanValue,
        JsonValue,
        DateValue,
        NullValue,
        ObjectValue,
    ],
    Field(discriminator="type"),
]

_VARIABLES_ADAPTER = TypeAdapter(Dict[str, TypedValue])


def parse_variables(raw: Mapping[str, Any]) -> Dict[str, _BaseValue]:
    """Validate one task's raw engine variables into typed values.

    Raises:
        InputError: A variable has an unknown type or a value of the wrong shape.
    """
    try:
        return _VARIABLES_ADAPTER.validate_python(dict(raw))
    except ValidationError as exc:
        raise InputError(f"Invalid task variables: {exc}") from exc


def typed_value(value: Any) -> _BaseValue:
    """Wrap a Python value in the matching engine type.

    Structured values (models, mappings, sequences) become JSON text carried
    as ``String``, the same convention :func:`extract_input` decodes.
    """
    if value is None:
        return NullValue()
    if isinstance(value, bool):
        return BooleanValue(value=value)
    if isinstance(value, int):
        if _INT32_MIN <= value <= _INT32_MAX:
            return IntegerValue(value=value)
        return LongValue(value=value)
    if isinstance(value, float):
        return DoubleValue(value=value)
    if isinstance(value, str):
        return StringValue(value=value)
    if isinstance(value, datetime):
        return DateValue(value=format_engine_time(value))
    if isinstance(value, BaseModel):
        return StringValue(value=value.model_dump_json(by_alias=True))
    if isinstance(value, (dict, list, tuple)):
        return StringValue(value=json.dumps(value, default=str))
    raise TypeError(f"Unsupported variable type: {type(value).__name__}")


def to_engine_variables(output: Union[BaseModel, Mapping[str, Any], None]) -> Dict[str, Dict[str, Any]]:
    """Serialize handler output into the engine's variable map."""
    if output is None:
        return {}
    if isinstance(output, BaseModel):
        items = {
            (field.alias or name): getattr(output, name)
            for name, field in type(output).model_fields.items()
        }
    else:
        items = dict(output)
    return {name: typed_value(value).to_engine() for name, value in items.items()}


def _is_structured(annotation: Any) -> bool:
    origin = get_origin(annotation)
    if origin is Union or origin is getattr(types, "UnionType", None):
        return any(_is_structured(arg) for arg in get_args(annotation) if arg is not type(None))
    if origin in (dict, list, tuple):
        return True
    if annotation in (dict, list, tuple):
        return True
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def extract_input(model: Type[ModelT], variables: Mapping[str, _BaseValue]) -> ModelT:
    """Build ``model`` from task variables, one field per variable name.

    Raises:
        InputError: A required variable is missing or has the wrong shape.
    """
    raw: Dict[str, Any] = {}
    for name, field in model.model_fields.items():
        key = field.alias or name
        typed = variables.get(key)
        if typed is None:
            continue
        try:
            value = typed.to_python()
        except ValueError as exc:
            raise InputError(f"Variable {key} could not be decoded: {exc}") from exc
        if isinstance(value, str) and _is_structured(field.annotation):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise InputError(f"Variable {key} is not valid JSON: {exc}") from exc
        raw[key] = value
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise InputError(f"Invalid input for {model.__name__}: {exc}") from exc
