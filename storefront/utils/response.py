from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from fastapi.responses import JSONResponse


def serialize(obj: Any) -> Any:
    """Make datetimes, Decimals and Enums JSON-safe, recursively"""
    if isinstance(obj, datetime):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    elif isinstance(obj, dict):
        return {k: serialize(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [serialize(item) for item in obj]
    return obj


def success_response(
    message: str = "Success",
    data: Any = None,
    status_code: int = 200
) -> JSONResponse:
    """
    Standard success envelope

    Args:
        message: Success message
        data: Response data (optional)
        status_code: HTTP status code (default: 200)
    """
    response = {
        "success": True,
        "message": message
    }

    if data is not None:
        response["data"] = serialize(data)

    return JSONResponse(content=response, status_code=status_code)


def error_response(
    message: str = "Error",
    status_code: int = 400,
    data: Any = None
) -> JSONResponse:
    """
    Standard error envelope; data carries context such as a support link
    """
    response = {
        "success": False,
        "message": message
    }

    if data is not None:
        response["data"] = serialize(data)

    return JSONResponse(content=response, status_code=status_code)
