"""Base classes for request and response models."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    """Request body read from camelCase JSON (``tentId``, ``inviteCode``).

    Snake case names are accepted as well. Required business fields are
    declared optional so the services can answer with their own messages
    instead of a generic 422.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseModel(BaseModel):
    """Response body built from an ORM row, serialized with column names."""

    model_config = ConfigDict(from_attributes=True)
