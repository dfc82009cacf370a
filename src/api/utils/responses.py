"""JSON response class backed by orjson.

``ORJSONResponse`` is the default response class of the application. orjson
serializes datetimes and UUIDs natively; money columns come back from the
database as ``Decimal``, which orjson does not know, so those are rendered
as floats.
"""

from decimal import Decimal
from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


def _default(value: object) -> object:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(value).__name__}")


class ORJSONResponse(JSONResponse):
    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json")

        # Sorted keys keep output stable across runs
        return orjson.dumps(content, default=_default, option=orjson.OPT_SORT_KEYS)
