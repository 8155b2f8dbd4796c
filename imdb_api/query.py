"""
Query-string handling shared by every resource: bracket-notation parsing
(filter[genre]=a&filter[genre]=b), the pagination model, the FastAPI
dependency that validates a query model, and the $facet stages that
paginate an aggregation.
imdb_api.query.py
"""
import math
import re

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field, ValidationError, field_validator

from imdb_api.validators import INT_MAX, booleanish, strict_int

KEY_PATTERN = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
SEGMENT_PATTERN = re.compile(r"\[([^\[\]]*)\]")


def split_key(key: str):
    match = KEY_PATTERN.match(key)
    if not match:
        return [key]
    return [match.group(1)] + SEGMENT_PATTERN.findall(match.group(2))


def _assign(node: dict, key: str, value, force_list: bool):
    if key not in node:
        node[key] = [value] if force_list else value
    elif isinstance(node[key], list):
        node[key].append(value)
    elif not isinstance(node[key], dict):
        node[key] = [node[key], value]


def parse_query_string(items) -> dict:
    """Build a nested dict out of (key, value) pairs.

    ``a[b]=1&a[b]=2&c[]=x&d=y`` becomes
    ``{"a": {"b": ["1", "2"]}, "c": ["x"], "d": "y"}``.
    """
    result = {}
    for key, value in items:
        parts = split_key(key)
        force_list = len(parts) > 1 and parts[-1] == ""
        if force_list:
            parts = parts[:-1]
        node = result
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        _assign(node, parts[-1], value, force_list)
    return result


class Pagination(BaseModel):
    limit: int = Field(default=10, ge=1, le=INT_MAX)
    page: int = Field(default=1, ge=1, le=INT_MAX)

    @field_validator("limit", "page", mode="before")
    @classmethod
    def coerce_int(cls, value):
        return strict_int(value)

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class Include(BaseModel):
    name: bool = False
    title: bool = False
    names: bool = False

    @field_validator("name", "title", "names", mode="before")
    @classmethod
    def coerce_bool(cls, value):
        return booleanish(value)


def query_model(model):
    """FastAPI dependency validating the bracket-parsed query against ``model``."""

    def dependency(request: Request):
        raw = parse_query_string(request.query_params.multi_items())
        try:
            return model.model_validate(raw)
        except ValidationError as exc:
            raise RequestValidationError(exc.errors())

    return dependency


def paginate_stages(pagination: Pagination, sort: dict, present=None) -> list:
    """$facet + $addFields stages; ``present`` stages run on the page of results only."""
    count = {"$arrayElemAt": ["$totalCount.count", 0]}
    has_count = {"$gt": [{"$size": "$totalCount"}, 0]}
    return [
        {
            "$facet": {
                "totalCount": [{"$count": "count"}],
                "results": [
                    {"$sort": sort},
                    {"$skip": pagination.skip},
                    {"$limit": pagination.limit},
                    *(present or []),
                ],
            }
        },
        {
            "$addFields": {
                "totalCount": {"$cond": {"if": has_count, "then": count, "else": 0}},
                "totalPages": {
                    "$cond": {
                        "if": has_count,
                        "then": {"$ceil": {"$divide": [count, pagination.limit]}},
                        "else": 0,
                    }
                },
                "currentPage": pagination.page,
                "perPage": pagination.limit,
            }
        },
    ]


def empty_page(pagination: Pagination) -> dict:
    return {
        "totalCount": 0,
        "totalPages": 0,
        "currentPage": pagination.page,
        "perPage": pagination.limit,
        "results": [],
    }


def first_page(documents, pagination: Pagination) -> dict:
    """Unwrap the single document produced by the $facet stages."""
    page = next(iter(documents), None)
    if not page:
        return empty_page(pagination)
    page["totalCount"] = int(page.get("totalCount") or 0)
    page["totalPages"] = int(page.get("totalPages") or total_pages(page["totalCount"], pagination.limit))
    page.setdefault("currentPage", pagination.page)
    page.setdefault("perPage", pagination.limit)
    page.setdefault("results", [])
    return page


def total_pages(total_count: int, limit: int) -> int:
    return math.ceil(total_count / limit) if total_count else 0


def check_page(page: dict):
    if page["totalCount"] > 0 and page["currentPage"] > page["totalPages"]:
        raise HTTPException(
            status_code=400,
            detail=f"Page exceeds. totalPages={page['totalPages']}, currentPage={page['currentPage']}",
        )
    return page
