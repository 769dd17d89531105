from datetime import datetime
from typing import Any
from bson import ObjectId
from fastapi.responses import JSONResponse
from pydantic.alias_generators import to_camel

NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

def no_store_json(data, status_code: int = 200):
    """Return JSONResponse with no-store caching headers."""
    return JSONResponse(content=data, status_code=status_code, headers=NO_STORE_HEADERS)

def serialize_doc(value: Any) -> Any:
    """Make a Mongo document JSON-safe for the mobile client.

    ObjectIds become strings, datetimes ISO strings, and snake_case keys
    camelCase ("_id" is kept as is).
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {
            (k if k.startswith("_") else to_camel(k)): serialize_doc(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [serialize_doc(v) for v in value]
    return value
