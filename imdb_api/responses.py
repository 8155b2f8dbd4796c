"""
Uniform response envelopes.
Success: {statusCode, message, data, timestamp}
Error:   {statusCode, message, timestamp, requestCtx}
imdb_api.responses.py
"""
from datetime import datetime, timezone

from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from imdb_api.query import parse_query_string

SUCCESS_MESSAGES = {
    "GET": "Request successful",
    "POST": "Resource created successfully",
    "PUT": "Resource updated successfully",
    "PATCH": "Resource partially updated successfully",
    "DELETE": "Resource deleted successfully",
}

NO_STORE = {"Cache-Control": "no-store"}


def timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def request_context(request: Request) -> dict:
    return {
        "method": request.method,
        "url": str(request.url.path) + (f"?{request.url.query}" if request.url.query else ""),
        "query": parse_query_string(request.query_params.multi_items()),
        "params": dict(request.path_params),
    }


def ok(request: Request, data=None, status_code: int = 200, headers=None) -> JSONResponse:
    body = {
        "statusCode": status_code,
        "message": SUCCESS_MESSAGES.get(request.method, "Operation successful"),
        "data": data,
        "timestamp": timestamp(),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


def created(request: Request, data) -> JSONResponse:
    return ok(request, data, status_code=201, headers=NO_STORE)


def no_content() -> Response:
    return Response(status_code=204, headers=NO_STORE)


def error(request: Request, status_code: int, message: str) -> JSONResponse:
    body = {
        "statusCode": status_code,
        "message": message,
        "timestamp": timestamp(),
        "requestCtx": request_context(request),
    }
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
