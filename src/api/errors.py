# src/api/errors.py
"""
Обработчики ошибок API.
Ошибки домена и валидации приводятся к ErrorResponse.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from src.common.errors import DomainError
from src.common.logger import log_error, log_warning
from src.shared.models.common import ErrorResponse


def _request_id(request: Request) -> Optional[str]:
    return request.headers.get("x-request-id")


def _response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
) -> JSONResponse:
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        details=jsonable_encoder(details) if details else None,
        request_id=_request_id(request),
    )
    return JSONResponse(body.model_dump(), status_code=status_code)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        if exc.status_code >= 500:
            await log_error(f"{request.method} {request.url.path}: {exc.error_code}: {exc.message}")
        else:
            await log_warning(f"{request.method} {request.url.path}: {exc.error_code}: {exc.message}")
        return _response(request, exc.status_code, exc.error_code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _response(
            request,
            400,
            "bad_request",
            "Request validation failed",
            {"errors": exc.errors()},
        )

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _response(request, 400, "bad_request", "Validation failed", {"errors": exc.errors()})

    @app.exception_handler(Exception)
    async def generic_handler(request: Request, exc: Exception) -> JSONResponse:
        await log_error(f"{request.method} {request.url.path}: необработанная ошибка: {exc}", exc_info=True)
        return _response(request, 500, "internal_error", "Internal Server Error")
