"""Shared pydantic base for the camelCase JSON API."""
from typing import Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from smartstudy.core.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def parse_model(model: Type[ModelT], data: dict) -> ModelT:
    """Validate ``data`` outside of FastAPI's body parsing (form fields, query groups).

    Errors are collected into one 400 ``ValidationError``.
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_errors(e.errors())
