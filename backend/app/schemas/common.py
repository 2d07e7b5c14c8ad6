"""Common schemas and utilities."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema with common configuration.

    Request bodies come from a JavaScript client, so fields accept their
    camelCase names as well as snake_case.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class ErrorResponse(BaseModel):
    """Error body returned by every route on failure."""

    error: str


class SuccessResponse(BaseModel):
    """Simple success response."""

    success: bool = True
    message: str | None = None
