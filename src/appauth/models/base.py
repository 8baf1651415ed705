"""Common base for the immutable protocol message models."""

from __future__ import annotations

import json
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, field_validator

from appauth.primitives.additional_params import check_additional_params
from appauth.primitives.json_fields import parse_json_object

KEY_ADDITIONAL_PARAMETERS = "additional_parameters"


class MessageModel(BaseModel):
    """Frozen pydantic model with a JSON persistence form.

    Field names double as the persisted JSON keys unless a field declares an
    alias. Subclasses list their protocol-defined parameters in
    ``BUILT_IN_PARAMS`` so that ``additional_parameters`` can never shadow
    them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    BUILT_IN_PARAMS: ClassVar[frozenset[str]] = frozenset()

    def to_json(self) -> dict[str, Any]:
        """Model dump to the persisted JSON form, omitting absent values."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json_string(self) -> str:
        return json.dumps(self.to_json())

    @classmethod
    def from_json(cls, data: str | bytes | dict[str, Any]):
        """Restore a model from its persisted JSON form.

        Raises:
            ValueError: If the JSON is malformed or any field is invalid
        """
        return cls.model_validate(parse_json_object(data))


class ExtensibleMessageModel(MessageModel):
    """Message model that carries vendor/extension parameters."""

    additional_parameters: dict[str, str] = {}

    @field_validator("additional_parameters", mode="before")
    @classmethod
    def validate_additional_parameters(cls, v: Any) -> dict[str, str]:
        return check_additional_params(v, cls.BUILT_IN_PARAMS)


def check_not_empty_if_defined(value: str | None, name: str) -> str | None:
    """Reject empty strings while allowing absent values."""
    if value is not None and value == "":
        raise ValueError(f"{name} must not be empty if defined")
    return value
