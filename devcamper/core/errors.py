"""Centralized error formatting.

Every failure leaves the API as ``{"success": false, "error": <message>}``.
Handlers raise ``HTTPException`` and never build error responses themselves.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

SERVER_ERROR = 'Server Error'


def error_response(status_code: int, message, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={'success': False, 'error': message},
        headers=headers,
    )


def format_validation_errors(errors) -> str:
    messages = []
    for error in errors:
        location = [str(part) for part in error.get('loc', ()) if part not in ('body', 'query', 'path')]
        message = error.get('msg', 'Invalid value')
        messages.append(f"{'.'.join(location)}: {message}" if location else message)
    return ', '.join(messages)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, exc.detail, headers=getattr(exc, 'headers', None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(status.HTTP_400_BAD_REQUEST, format_validation_errors(exc.errors()))


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning('Integrity error on %s %s: %s', request.method, request.url.path, exc.orig)
    return error_response(status.HTTP_400_BAD_REQUEST, 'Duplicate field value entered')


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception('Database error on %s %s', request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
