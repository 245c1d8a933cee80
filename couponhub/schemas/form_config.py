from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

CustomFieldType = Literal["text", "textarea", "email", "tel", "number", "date", "checkbox", "select"]


class FieldSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    visible: bool = True
    required: bool = False


class CustomField(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=64, pattern=r"^[A-Za-z][A-Za-z0-9_-]*$")
    label: str = Field(min_length=1, max_length=255)
    type: CustomFieldType = "text"
    required: bool = False


def _shown(required: bool = False) -> FieldSpec:
    return FieldSpec(visible=True, required=required)


def _hidden() -> FieldSpec:
    return FieldSpec(visible=False, required=False)


class FormConfig(BaseModel):
    """Per-campaign submission form layout, stored as JSON on the campaign row."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    email: FieldSpec = Field(default_factory=lambda: _shown(required=True))
    first_name: FieldSpec = Field(default_factory=lambda: _shown(required=True))
    last_name: FieldSpec = Field(default_factory=lambda: _shown(required=True))
    phone: FieldSpec = Field(default_factory=_hidden)
    address: FieldSpec = Field(default_factory=_hidden)
    allergies: FieldSpec = Field(default_factory=_hidden)
    custom_fields: list[CustomField] = Field(default_factory=list)

    @model_validator(mode="after")
    def unique_custom_field_names(self) -> "FormConfig":
        names = [field.name for field in self.custom_fields]
        if len(names) != len(set(names)):
            raise ValueError("Custom field names must be unique")
        return self

    def to_storage(self) -> str:
        return self.model_dump_json(by_alias=True)


class CustomFieldsPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    custom_fields: list[CustomField] = Field(default_factory=list)
