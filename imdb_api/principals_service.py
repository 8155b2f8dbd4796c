"""This module serves as the service layer for principals, the per-title credits
stored in the ``principals`` collection. Rows sharing a tconst and nconst are
written one ordering at a time but read back merged into a single record.
imdb_api.principals_service.py
"""
import json
from typing import List, Optional

from fastapi import HTTPException
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from pymongo import ReturnDocument

from imdb_api import db
from imdb_api.basics_service import IMDB_TITLE_URL, PRESENT_STAGES as TITLE_PRESENT_STAGES, find_title
from imdb_api.names_service import find_name
from imdb_api.query import Include, Pagination, first_page, paginate_stages
from imdb_api.validators import INT_MAX, NonEmptyStr, as_list, strict_int

CAST_CATEGORIES = ("actor", "actress", "self")


class PrincipalCreate(BaseModel):
    nconst: NonEmptyStr
    category: NonEmptyStr
    job: Optional[NonEmptyStr] = None
    characters: List[NonEmptyStr] = Field(default_factory=list)

    @field_validator("characters", mode="before")
    @classmethod
    def wrap_single(cls, value):
        return value if value is None else as_list(value)


class PrincipalUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ordering: StrictInt = Field(ge=1, le=INT_MAX)
    category: NonEmptyStr = None
    job: Optional[NonEmptyStr] = None
    characters: List[NonEmptyStr] = None

    @field_validator("characters", mode="before")
    @classmethod
    def wrap_single(cls, value):
        return value if value is None else as_list(value)


class CastQuery(Pagination):
    include: Include = Field(default_factory=Include)


class CastSingleQuery(BaseModel):
    include: Include = Field(default_factory=Include)


class CastDeleteQuery(BaseModel):
    ordering: Optional[int] = Field(default=None, ge=1, le=INT_MAX)

    @field_validator("ordering", mode="before")
    @classmethod
    def coerce_int(cls, value):
        return strict_int(value)


CHARACTERS_AS_ARRAY = {
    "$cond": [
        {"$isArray": "$characters"},
        "$characters",
        {"$cond": [{"$eq": [{"$ifNull": ["$characters", None]}, None]}, [], ["$characters"]]},
    ]
}


def merge_stages() -> list:
    """Fold the rows of one person into a record with ordering/characters/job arrays."""
    return [
        {"$sort": {"ordering": 1}},
        {
            "$group": {
                "_id": "$nconst",
                "tconst": {"$first": "$tconst"},
                "category": {"$first": "$category"},
                "ordering": {"$push": "$ordering"},
                "characters": {"$push": CHARACTERS_AS_ARRAY},
                "job": {"$push": "$job"},
            }
        },
        {
            "$project": {
                "_id": 0,
                "tconst": 1,
                "nconst": "$_id",
                "category": 1,
                "ordering": 1,
                "characters": {
                    "$reduce": {
                        "input": "$characters",
                        "initialValue": [],
                        "in": {"$concatArrays": ["$$value", "$$this"]},
                    }
                },
                "job": {"$filter": {"input": "$job", "cond": {"$ne": ["$$this", None]}}},
            }
        },
    ]


def name_details_stages() -> list:
    return [
        {
            "$lookup": {
                "from": db.NAMES,
                "localField": "nconst",
                "foreignField": "nconst",
                "as": "nameDetails",
                "pipeline": [{"$project": {"_id": 0}}],
            }
        },
        {"$unwind": {"path": "$nameDetails", "preserveNullAndEmptyArrays": True}},
    ]


def title_details_stages() -> list:
    return [
        {
            "$lookup": {
                "from": db.BASICS,
                "localField": "tconst",
                "foreignField": "tconst",
                "as": "titleDetails",
                "pipeline": TITLE_PRESENT_STAGES,
            }
        },
        {"$unwind": {"path": "$titleDetails", "preserveNullAndEmptyArrays": True}},
    ]


def build_cast_pipeline(tconst: str, query: CastQuery) -> list:
    present = name_details_stages() if query.include.name else []
    return [
        {"$match": {"tconst": tconst, "category": {"$in": list(CAST_CATEGORIES)}}},
        *merge_stages(),
        *paginate_stages(query, {"ordering": 1, "nconst": 1}, present),
    ]


def build_member_pipeline(tconst: str, nconst: str, include: Include) -> list:
    pipeline = [{"$match": {"tconst": tconst, "nconst": nconst}}, *merge_stages()]
    if include.name:
        pipeline += name_details_stages()
    if include.title:
        pipeline += title_details_stages()
    return pipeline


def list_cast(tconst: str, query: CastQuery) -> dict:
    collection = db.get_collection(db.PRINCIPALS)
    page = first_page(collection.aggregate(build_cast_pipeline(tconst, query)), query)
    return {"tconst": tconst, "titleUrl": f"{IMDB_TITLE_URL}{tconst}/", **page}


def get_member(tconst: str, nconst: str, include: Include = None):
    collection = db.get_collection(db.PRINCIPALS)
    pipeline = build_member_pipeline(tconst, nconst, include or Include())
    return next(iter(collection.aggregate(pipeline)), None)


def ensure_title_and_name(tconst: str, nconst: str):
    if not find_title(tconst):
        raise HTTPException(status_code=404, detail=f"No title found for tconst={tconst}")
    if not find_name(nconst):
        raise HTTPException(status_code=404, detail=f"No name found for nconst={nconst}")


def check_duplicate(tconst: str, nconst: str, characters: List[str]):
    collection = db.get_collection(db.PRINCIPALS)
    wanted = sorted(characters)
    for row in collection.find({"tconst": tconst, "nconst": nconst}, {"_id": 0, "characters": 1}):
        stored = row.get("characters") or []
        if isinstance(stored, str):
            stored = [stored]
        if sorted(stored) == wanted:
            listed = json.dumps(characters, separators=(",", ":"))
            raise HTTPException(
                status_code=409,
                detail=(
                    f"Duplicate principal for nconst={nconst}, tconst={tconst} "
                    f"and characters={listed}"
                ),
            )


def create_principal(tconst: str, principal: PrincipalCreate) -> dict:
    ensure_title_and_name(tconst, principal.nconst)
    check_duplicate(tconst, principal.nconst, principal.characters)

    collection = db.get_collection(db.PRINCIPALS)
    doc = {
        "tconst": tconst,
        "nconst": principal.nconst,
        "ordering": db.next_ordering(collection, {"tconst": tconst}),
        "category": principal.category,
        "job": principal.job,
        "characters": principal.characters,
    }
    logger.info("Adding {} to {} as {} (ordering={})", doc["nconst"], tconst, doc["category"], doc["ordering"])
    collection.insert_one(doc)
    doc.pop("_id", None)
    return doc


def update_principal(tconst: str, nconst: str, principal: PrincipalUpdate):
    collection = db.get_collection(db.PRINCIPALS)
    key = {"tconst": tconst, "nconst": nconst, "ordering": principal.ordering}
    changes = principal.model_dump(exclude_unset=True, exclude={"ordering"})
    if not changes:
        return collection.find_one(key, {"_id": 0})

    logger.info("Updating principal {} with {}", key, changes)
    return collection.find_one_and_update(
        key,
        {"$set": changes},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )


def delete_principals(tconst: str, nconst: str, ordering: int = None, categories=None) -> List[dict]:
    """Delete the rows of a person on a title and return what was removed."""
    collection = db.get_collection(db.PRINCIPALS)
    match = {"tconst": tconst, "nconst": nconst}
    if ordering is not None:
        match["ordering"] = ordering
    if categories:
        match["category"] = {"$in": list(categories)}
    removed = list(collection.find(match, {"_id": 0}))
    if removed:
        collection.delete_many(match)
    return removed
