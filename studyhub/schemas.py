from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, SerializerFunctionWrapHandler, field_serializer
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base schema: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    @field_serializer("*", mode="wrap", when_used="json")
    def _mark_utc(self, value: Any, handler: SerializerFunctionWrapHandler) -> Any:
        # Stored timestamps are naive UTC; send them with an explicit "Z"
        if isinstance(value, datetime) and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return handler(value)


class Envelope(BaseModel, Generic[T]):
    """Response envelope shared by every successful endpoint."""
    message: str
    data: T


class MessageResponse(BaseModel):
    message: str
