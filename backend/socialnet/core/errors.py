from __future__ import annotations

from fastapi.responses import JSONResponse

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
}


def error_code(status_code: int) -> str:
    return _ERROR_CODE_BY_STATUS.get(int(status_code), "HTTP_ERROR")


def error_response(status_code: int, message: str, *, error: str | None = None, details: dict | None = None) -> JSONResponse:
    payload: dict = {"error": error or error_code(status_code), "message": message}
    if details:
        payload["details"] = details
    return JSONResponse(status_code=status_code, content=payload)
