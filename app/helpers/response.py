from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from typing import Any
from pydantic import BaseModel
from sqlalchemy.orm import DeclarativeMeta

def safe_serialize(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    elif isinstance(obj.__class__, DeclarativeMeta):  # SQLAlchemy model
        return jsonable_encoder({col.name: getattr(obj, col.name) for col in obj.__table__.columns})
    elif isinstance(obj, (str, int, float, bool)) or obj is None:
        return obj
    else:
        try:
            return jsonable_encoder(obj)
        except Exception:
            return str(obj)  # final fallback

def _error_response(code: int, message: str, error: Any, data: Any) -> JSONResponse:
    return JSONResponse(
        status_code=code,
        content={
            "status": "error",
            "code": code,
            "message": message,
            "data": safe_serialize(data),
            "error": safe_serialize(error),
        },
    )

class ResponseHandler:
    @staticmethod
    def success(
        data: Any = None,
        message: str = "Success",
        code: int = 200
    ) -> JSONResponse:
        return JSONResponse(
            status_code=code,
            content={
                "status": "success",
                "code": code,
                "message": message,
                "data": safe_serialize(data),
            },
        )

    @staticmethod
    def bad_request(message: str = "Bad Request", error: Any = None, data: Any = None, code: int = 400) -> JSONResponse:
        return _error_response(code, message, error or {}, data)

    @staticmethod
    def unauthorized(message: str = "Unauthorized", error: Any = None, data: Any = None, code: int = 401) -> JSONResponse:
        return _error_response(code, message, error or {}, data)

    @staticmethod
    def not_found(message: str = "Not Found", error: Any = None, data: Any = None, code: int = 404) -> JSONResponse:
        return _error_response(code, message, error or {}, data)

    @staticmethod
    def validation_error(message: str = "Validation Error", error: Any = None, data: Any = None, code: int = 422) -> JSONResponse:
        return _error_response(code, message, error or {}, data)

    @staticmethod
    def internal_error(message: str = "Internal Server Error", error: Any = None, data: Any = None, code: int = 500) -> JSONResponse:
        return _error_response(code, message, error or {}, data)
