import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from socialnet.core.config import settings, require_jwt_secret
from socialnet.core.errors import error_code, error_response
from socialnet.routes.auth import router as auth_router
from socialnet.services.errors import MESSAGE_BY_KIND, STATUS_BY_KIND, AuthErrorKind, InternalError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

require_jwt_secret()

app = FastAPI(title="SocialNet")
logger.info(
    "Startup config: ENV=%s access_ttl=%sm remember_ttl=%sm refresh_ttl=%sm hash_at_rest=%s",
    settings.ENV,
    settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    settings.REMEMBER_ACCESS_TOKEN_EXPIRE_MINUTES,
    settings.REFRESH_TOKEN_EXPIRE_MINUTES,
    settings.REFRESH_TOKEN_HASH_AT_REST,
)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException):  # noqa: ARG001
    detail = exc.detail
    message: str
    code: str | None = None
    details: dict | None = None

    if isinstance(detail, str):
        message = detail
    elif isinstance(detail, dict):
        # HTTPException(detail={"error": "...", "message": "...", "details": {...}})
        msg = detail.get("message")
        message = msg if isinstance(msg, str) and msg else "Request failed"
        err = detail.get("error")
        code = err if isinstance(err, str) and err else None
        det = detail.get("details")
        details = det if isinstance(det, dict) else None
    else:
        message = str(detail) if detail is not None else "Request failed"

    resp = error_response(exc.status_code, message, error=code or error_code(exc.status_code), details=details)
    if exc.headers:
        resp.headers.update(exc.headers)
    return resp


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError):  # noqa: ARG001
    kind = AuthErrorKind.VALIDATION_ERROR
    return JSONResponse(
        status_code=STATUS_BY_KIND[kind],
        content={
            "error": kind.value,
            "message": MESSAGE_BY_KIND[kind],
            "details": {"errors": jsonable_errors(exc)},
        },
    )


@app.exception_handler(InternalError)
def internal_error_handler(request: Request, exc: InternalError):  # noqa: ARG001
    logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc)
    kind = AuthErrorKind.INTERNAL_ERROR
    return error_response(STATUS_BY_KIND[kind], MESSAGE_BY_KIND[kind], error=kind.value)


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception):  # noqa: ARG001
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    details = None
    if not settings.is_prod:
        details = {"type": exc.__class__.__name__}
    kind = AuthErrorKind.INTERNAL_ERROR
    return error_response(STATUS_BY_KIND[kind], MESSAGE_BY_KIND[kind], error=kind.value, details=details)


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # Drop non-serializable ctx payloads (e.g. the original ValueError) and never echo passwords.
    out: list[dict] = []
    for err in exc.errors():
        item = {k: v for k, v in err.items() if k not in {"ctx", "input", "url"}}
        out.append(item)
    return out


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)

@app.get("/health")
def health_check():
    return {"status": "ok"}
