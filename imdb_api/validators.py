"""
Small coercion helpers shared by the request models.
Query strings only ever carry strings (or lists of strings when a key is
repeated); these functions turn them into typed values or raise a
PydanticCustomError carrying the message reported to the client.
imdb_api.validators.py
"""
import re
from typing import Annotated

from fastapi.exceptions import RequestValidationError
from pydantic import AfterValidator, Field, StrictInt, StrictStr
from pydantic_core import PydanticCustomError

from imdb_api.exceptions import CastError

INT_PATTERN = re.compile(r"^[+-]?\d+$")
# largest value stored as a 32-bit BSON int
INT_MAX = 2**31 - 1

TRUTHY = ("true", "1")
FALSY = ("false", "0")


def strict_int(value):
    if isinstance(value, bool):
        raise PydanticCustomError("int_parsing", "must be a valid integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and INT_PATTERN.match(value.strip()):
        return int(value.strip(), 10)
    raise PydanticCustomError("int_parsing", "must be a valid integer")


def booleanish(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in TRUTHY:
            return True
        if value in FALSY:
            return False
    raise PydanticCustomError("booleanish", "must be one of true, false, 1, 0")


def sort_order(value):
    if value == "asc":
        return 1
    if value == "desc":
        return -1
    raise PydanticCustomError("sort_order", "must be one of asc, desc")


def as_list(value):
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def non_empty(value):
    if isinstance(value, str) and value.strip():
        return value
    if isinstance(value, str):
        raise PydanticCustomError("non_empty", "must be a non-empty string")
    return value


def cast_int(path: str, value):
    try:
        number = strict_int(value)
    except PydanticCustomError:
        raise CastError(path, value)
    if abs(number) > INT_MAX:
        raise CastError(path, value)
    return number


def reject(path: str, message: str):
    """Fail a request on a rule that can only be checked against the store."""
    raise RequestValidationError([{"type": "invalid", "loc": (path,), "msg": message}])


NonEmptyStr = Annotated[StrictStr, AfterValidator(non_empty)]
Int32 = Annotated[StrictInt, Field(ge=-INT_MAX - 1, le=INT_MAX)]
