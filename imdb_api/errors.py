"""
This module translates every failure into the error envelope.
Request validation errors become 400 with one "path: message" line per
issue, store errors are mapped by their pymongo type or code, and anything
unclassified becomes a generic 500.
imdb_api.errors.py
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from loguru import logger
from pymongo.errors import ConnectionFailure, DuplicateKeyError, PyMongoError, WriteError
from starlette.exceptions import HTTPException as StarletteHTTPException

from imdb_api.exceptions import CastError, DocumentValidationError
from imdb_api.responses import error

LOCATIONS = ("body", "query", "path", "header", "cookie")
DOCUMENT_VALIDATION_FAILED = 121


def _bound(ctx: dict, *keys):
    for key in keys:
        if key in ctx:
            return ctx[key]
    return None


def message_for(issue: dict) -> str:
    kind = issue.get("type", "")
    ctx = issue.get("ctx") or {}
    if kind == "missing":
        return "must be provided"
    if kind == "string_type":
        return "must be a string type"
    if kind in ("int_type", "int_parsing", "int_from_float"):
        return "must be a valid integer"
    if kind in ("bool_type", "bool_parsing"):
        return "must be a boolean"
    if kind == "list_type":
        return "must be an array"
    if kind in ("dict_type", "model_type", "model_attributes_type"):
        return "must be an object"
    if kind in ("greater_than_equal", "greater_than"):
        return f"must be at least {_bound(ctx, 'ge', 'gt')}"
    if kind in ("less_than_equal", "less_than"):
        return f"must be at most {_bound(ctx, 'le', 'lt')}"
    if kind == "too_long":
        return f"must contain at most {ctx.get('max_length')} items"
    if kind == "string_too_short":
        return f"must be at least {ctx.get('min_length')} characters long"
    if kind == "string_too_long":
        return f"must be at most {ctx.get('max_length')} characters long"
    if kind == "literal_error":
        return f"must be one of {ctx.get('expected')}"
    if kind == "extra_forbidden":
        return "is not allowed"
    if kind == "json_invalid":
        return "must be valid JSON"
    if kind == "value_error" and "error" in ctx:
        return str(ctx["error"])
    return issue.get("msg", "is invalid")


def issue_path(loc) -> str:
    parts = list(loc)
    if parts and parts[0] in LOCATIONS:
        parts = parts[1:]
    return ".".join(str(part) for part in parts)


def format_validation_errors(issues) -> str:
    lines = []
    for issue in issues:
        path = issue_path(issue.get("loc", ()))
        prefix = f"{path}: " if path else ""
        lines.append(f"{prefix}{message_for(issue)}\n")
    return "".join(lines)


def duplicate_key_message(exc: DuplicateKeyError) -> str:
    key_value = (exc.details or {}).get("keyValue") or {}
    pairs = ",".join(f"{key}={value}" for key, value in key_value.items())
    return f"Duplicate key error: {pairs}"


def _log(request: Request, name: str, message: str, exc: Exception):
    logger.error(
        "{} {} {} {}: {}",
        name,
        request.method,
        request.url.path,
        getattr(request.state, "request_id", "unknown-request-id"),
        message,
    )
    logger.opt(exception=exc).debug("{} details", name)


async def validation_handler(request: Request, exc: RequestValidationError):
    message = format_validation_errors(exc.errors())
    _log(request, "Validation", message.strip(), exc)
    return error(request, 400, message)


async def http_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    _log(request, "HTTPException", message, exc)
    return error(request, exc.status_code, message)


async def cast_handler(request: Request, exc: CastError):
    _log(request, "CastError", str(exc), exc)
    return error(request, 400, str(exc))


async def document_validation_handler(request: Request, exc: DocumentValidationError):
    _log(request, "DocumentValidation", str(exc), exc)
    return error(request, 400, str(exc))


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    message = duplicate_key_message(exc)
    _log(request, "MongoDB", message, exc)
    return error(request, 409, message)


async def write_error_handler(request: Request, exc: WriteError):
    if exc.code == DOCUMENT_VALIDATION_FAILED:
        _log(request, "MongoDB", str(exc), exc)
        return error(request, 400, "Validation failed: Document failed validation")
    _log(request, "MongoDB", str(exc), exc)
    return error(request, 500, "Internal Server Error")


async def connection_handler(request: Request, exc: ConnectionFailure):
    _log(request, "MongoDB", str(exc), exc)
    return error(request, 503, "Database connection error")


async def pymongo_handler(request: Request, exc: PyMongoError):
    _log(request, "MongoDB", str(exc), exc)
    return error(request, 500, "Internal Server Error")


async def unhandled_handler(request: Request, exc: Exception):
    _log(request, "Unhandled", repr(exc), exc)
    return error(request, 500, "Internal Server Error")


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(RequestValidationError, validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_handler)
    app.add_exception_handler(CastError, cast_handler)
    app.add_exception_handler(DocumentValidationError, document_validation_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(WriteError, write_error_handler)
    app.add_exception_handler(ConnectionFailure, connection_handler)
    app.add_exception_handler(PyMongoError, pymongo_handler)
    app.add_exception_handler(Exception, unhandled_handler)
