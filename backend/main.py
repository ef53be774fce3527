import logging
from typing import Any, Iterable

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api import (
    auth_router,
    info_router,
    orders_router,
    pricing_router,
    upload_router,
)
from config import settings
from errors import AppError, FieldError, ValidationError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("print-orders")

app = FastAPI(title="Print Orders API")

if settings.allowed_origins == ["*"]:
    allow_origins = ["*"]
else:
    allow_origins = settings.allowed_origins

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(info_router)
app.include_router(pricing_router)
app.include_router(upload_router)
app.include_router(orders_router)
app.include_router(auth_router)


def _error_response(status_code: int, message: str, error: dict) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "error": error},
    )


def _field_path(loc: Iterable[Any]) -> str:
    path = ""
    for part in loc:
        if part in ("body", "query", "path", "form"):
            continue
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "body"


@app.exception_handler(AppError)
async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message, exc.to_error())


@app.exception_handler(RequestValidationError)
async def _handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    error = ValidationError(
        [FieldError(_field_path(item["loc"]), item["msg"]) for item in exc.errors()]
    )
    return _error_response(error.status_code, error.message, error.to_error())


@app.exception_handler(StarletteHTTPException)
async def _handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _error_response(exc.status_code, str(exc.detail), {"code": "http_error"})


@app.exception_handler(Exception)
async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "Internal server error", {"code": "internal_error"})


@app.on_event("startup")
async def _on_startup() -> None:
    if allow_origins == ["*"]:
        logger.warning(
            "CORS is set to allow all origins with credentials; set ALLOWED_ORIGINS to explicit values for production."
        )

