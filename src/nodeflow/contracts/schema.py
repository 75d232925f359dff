"""Schema catalog models: App -> Resource -> Operation -> Field.

The catalog is static data supplied to the engine (YAML or dict). Keys may be
written in camelCase as they appear in catalog files (displayName,
displayOptions, optionalFields) or in snake_case.

Constraint attributes may appear either at the top level of a field or under
a nested ``validation`` block, and numeric bounds may also be given as
``typeOptions.minValue`` / ``typeOptions.maxValue``. All of these are lifted
onto the field's top-level ``min``/``max``/``pattern``/``min_length``/
``max_length`` attributes at load time so validators read one place.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from nodeflow.contracts.enums import FieldType

_CATALOG_MODEL_CONFIG = ConfigDict(
    frozen=True,
    alias_generator=to_camel,
    populate_by_name=True,
    extra="ignore",
)

_LIFTED_VALIDATION_KEYS = {
    "min": "min",
    "max": "max",
    "pattern": "pattern",
    "minLength": "min_length",
    "maxLength": "max_length",
    "min_length": "min_length",
    "max_length": "max_length",
}


class FieldOption(BaseModel):
    """One enumerated choice of an options/multiOptions field."""

    model_config = _CATALOG_MODEL_CONFIG

    name: str
    value: str | int | float | bool | None = None
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _default_value_to_name(cls, data: Any) -> Any:
        # Catalog entries may omit value when it equals the display name
        if isinstance(data, dict) and data.get("value") is None and "name" in data:
            return {**data, "value": data["name"]}
        return data


class DisplayOptions(BaseModel):
    """Conditional relevance of a field on sibling field values.

    ``show``: every listed sibling must hold one of its allowed values.
    ``hide``: the field is hidden if any listed sibling holds one of its values.
    """

    model_config = _CATALOG_MODEL_CONFIG

    show: dict[str, list[Any]] = Field(default_factory=dict)
    hide: dict[str, list[Any]] = Field(default_factory=dict)

    @field_validator("show", "hide", mode="before")
    @classmethod
    def _wrap_scalars(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {k: val if isinstance(val, list) else [val] for k, val in v.items()}
        return v


class FieldSchema(BaseModel):
    """Declarative description of one configurable value."""

    model_config = _CATALOG_MODEL_CONFIG

    name: str = Field(min_length=1)
    display_name: str = ""
    type: FieldType = FieldType.STRING
    required: bool = False
    default: Any = None
    description: str = ""
    placeholder: str = ""
    options: list[FieldOption] = Field(default_factory=list)
    allow_custom: bool = False
    display_options: DisplayOptions | None = None
    type_options: dict[str, Any] = Field(default_factory=dict)
    min: float | None = None
    max: float | None = None
    pattern: str | None = None
    min_length: int | None = None
    max_length: int | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_constraints(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        validation = data.pop("validation", None) or {}
        for key, target in _LIFTED_VALIDATION_KEYS.items():
            if key in validation and data.get(target) is None and data.get(to_camel(target)) is None:
                data[target] = validation[key]
        if validation.get("required") and "required" not in data:
            data["required"] = True
        type_options = data.get("typeOptions") or data.get("type_options") or {}
        if "minValue" in type_options and data.get("min") is None:
            data["min"] = type_options["minValue"]
        if "maxValue" in type_options and data.get("max") is None:
            data["max"] = type_options["maxValue"]
        return data

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                re.compile(v)
            except re.error as e:
                raise ValueError(f"invalid pattern {v!r}: {e}") from e
        return v

    @property
    def label(self) -> str:
        return self.display_name or self.name

    @property
    def option_values(self) -> list[Any]:
        return [o.value for o in self.options]


class Operation(BaseModel):
    """A single action or trigger an app offers (e.g. Gmail > Message > Send)."""

    model_config = _CATALOG_MODEL_CONFIG

    id: str
    name: str
    value: str = ""
    description: str = ""
    action: str = ""
    fields: list[FieldSchema] = Field(default_factory=list)
    optional_fields: list[FieldSchema] = Field(default_factory=list)

    def matches(self, key: str) -> bool:
        return key in (self.id, self.value)


class Resource(BaseModel):
    """A group of operations on one kind of object (e.g. Message, Channel)."""

    model_config = _CATALOG_MODEL_CONFIG

    id: str
    name: str
    value: str = ""
    description: str = ""
    operations: list[Operation] = Field(default_factory=list)

    def matches(self, key: str) -> bool:
        return key in (self.id, self.value)


class AppSchema(BaseModel):
    """Catalog entry for one third-party app."""

    model_config = _CATALOG_MODEL_CONFIG

    id: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    icon: str = ""
    color: str = ""
    group: list[str] = Field(default_factory=list)
    credentials: list[dict[str, Any]] = Field(default_factory=list)
    resources: list[Resource] = Field(default_factory=list)


class NodeTypeSchema(BaseModel):
    """Fields of a built-in logic node type (delay, loop, ...), which has no app."""

    model_config = _CATALOG_MODEL_CONFIG

    fields: list[FieldSchema] = Field(default_factory=list)
    optional_fields: list[FieldSchema] = Field(default_factory=list)


@dataclass(frozen=True, slots=True)
class FieldSet:
    """Field definitions governing one node, split by required-ness."""

    required: tuple[FieldSchema, ...] = ()
    optional: tuple[FieldSchema, ...] = ()

    @property
    def all_fields(self) -> tuple[FieldSchema, ...]:
        return self.required + self.optional

    @classmethod
    def from_lists(cls, fields: list[FieldSchema], optional_fields: list[FieldSchema]) -> FieldSet:
        """Split an operation's field lists by each field's ``required`` flag."""
        required = tuple(f for f in fields if f.required)
        optional = tuple(f for f in fields if not f.required) + tuple(optional_fields)
        return cls(required=required, optional=optional)


EMPTY_FIELD_SET = FieldSet()
