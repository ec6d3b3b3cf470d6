"""Shared Pydantic base for API payloads."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Snake_case in Python, camelCase on the wire.

    The web client sends and expects `areaId`, `positionX`, `photoCount`;
    `populate_by_name` still accepts snake_case input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
