from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .models import ApiResponse


def _encode(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    return jsonable_encoder(data, by_alias=True)


def success_response(data: Any = None, message: str = "Success", status_code: int = 200) -> JSONResponse:
    body = ApiResponse(success=True, message=message, data=_encode(data) if data is not None else None)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def error_response(message: str, status_code: int = 400, data: Optional[Any] = None) -> JSONResponse:
    body = ApiResponse(success=False, message=message, data=_encode(data) if data is not None else None)
    return JSONResponse(status_code=status_code, content=body.model_dump())
