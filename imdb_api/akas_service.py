"""This module serves as the service layer for akas, the alternate and localized
titles of a title. Each aka is addressed by its title id and an ordering the
server assigns on creation.
imdb_api.akas_service.py
"""
from typing import List, Optional

from fastapi import HTTPException
from loguru import logger
from pydantic import BaseModel, ConfigDict, StrictBool, field_validator
from pymongo import ReturnDocument

from imdb_api import db
from imdb_api.basics_service import find_title
from imdb_api.query import Pagination, check_page, first_page, paginate_stages
from imdb_api.validators import NonEmptyStr, as_list


class AkaCreate(BaseModel):
    title: NonEmptyStr
    region: Optional[NonEmptyStr]
    language: Optional[NonEmptyStr]
    types: Optional[List[NonEmptyStr]]
    attributes: Optional[List[NonEmptyStr]]
    isOriginalTitle: StrictBool


class AkaUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: NonEmptyStr = None
    region: Optional[NonEmptyStr] = None
    language: Optional[NonEmptyStr] = None
    types: Optional[List[NonEmptyStr]] = None
    attributes: Optional[List[NonEmptyStr]] = None
    isOriginalTitle: StrictBool = None


class AkaQuery(Pagination):
    region: Optional[NonEmptyStr] = None
    language: Optional[NonEmptyStr] = None
    types: Optional[List[NonEmptyStr]] = None
    attributes: Optional[List[NonEmptyStr]] = None

    @field_validator("region")
    @classmethod
    def upper_region(cls, value):
        return value.upper() if value else value

    @field_validator("types", "attributes", mode="before")
    @classmethod
    def coerce_list(cls, value):
        return as_list(value)


def build_filter(tconst: str, query: AkaQuery) -> dict:
    match = {"titleId": tconst}
    if query.region:
        match["region"] = query.region
    if query.language:
        match["language"] = query.language
    if query.types:
        match["types"] = {"$in": query.types}
    if query.attributes:
        match["attributes"] = {"$in": query.attributes}
    return match


def build_akas_pipeline(tconst: str, query: AkaQuery) -> list:
    return [
        {"$match": build_filter(tconst, query)},
        *paginate_stages(query, {"ordering": 1}, [{"$project": {"_id": 0}}]),
    ]


def list_akas(tconst: str, query: AkaQuery) -> dict:
    collection = db.get_collection(db.AKAS)
    return check_page(first_page(collection.aggregate(build_akas_pipeline(tconst, query)), query))


def get_aka(tconst: str, ordering: int):
    return db.get_collection(db.AKAS).find_one({"titleId": tconst, "ordering": ordering}, {"_id": 0})


def create_aka(tconst: str, aka: AkaCreate) -> dict:
    if not find_title(tconst):
        raise HTTPException(status_code=404, detail=f"No title found for tconst={tconst}")

    collection = db.get_collection(db.AKAS)
    doc = {
        "titleId": tconst,
        "ordering": db.next_ordering(collection, {"titleId": tconst}),
        **aka.model_dump(),
    }
    logger.info("Creating aka {} for {}", doc["ordering"], tconst)
    collection.insert_one(doc)
    doc.pop("_id", None)
    return doc


def update_aka(tconst: str, ordering: int, aka: AkaUpdate):
    collection = db.get_collection(db.AKAS)
    key = {"titleId": tconst, "ordering": ordering}
    changes = aka.model_dump(exclude_unset=True)
    if not changes:
        return collection.find_one(key, {"_id": 0})

    logger.info("Updating aka {} with {}", key, changes)
    return collection.find_one_and_update(
        key,
        {"$set": changes},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )


def delete_aka(tconst: str, ordering: int) -> bool:
    result = db.get_collection(db.AKAS).delete_one({"titleId": tconst, "ordering": ordering})
    return result.deleted_count > 0
