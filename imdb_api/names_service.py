"""This module serves as the service layer for people (the ``names`` collection).
It provides the request models and the functions to create, read, update,
delete, list and text-search names.
imdb_api.names_service.py
"""
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pymongo import ReturnDocument

from imdb_api import db
from imdb_api.exceptions import DocumentValidationError
from imdb_api.query import Pagination, check_page, first_page, paginate_stages
from imdb_api.validators import INT_MAX, Int32, NonEmptyStr, as_list, booleanish, sort_order, strict_int

DEATH_BEFORE_BIRTH = "must be greater than or equal to birthYear"

MOST_APPEARANCE = {"$size": {"$ifNull": ["$knownForTitles", []]}}
PRESENT_STAGES = [{"$project": {"_id": 0, "score": 0, "mostAppearance": 0}}]


def name_year_problems(birth_year, death_year) -> List[str]:
    if birth_year is not None and death_year is not None and death_year < birth_year:
        return [DEATH_BEFORE_BIRTH]
    return []


class NameCreate(BaseModel):
    nconst: NonEmptyStr
    primaryName: NonEmptyStr
    birthYear: Optional[Int32] = None
    deathYear: Optional[Int32] = None
    primaryProfession: List[NonEmptyStr] = Field(default_factory=list, max_length=3)
    knownForTitles: List[NonEmptyStr] = Field(default_factory=list)

    @field_validator("deathYear")
    @classmethod
    def check_death_year(cls, value, info):
        problems = name_year_problems(info.data.get("birthYear"), value)
        if problems:
            raise ValueError(problems[0])
        return value


class NameUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    primaryName: NonEmptyStr = None
    birthYear: Optional[Int32] = None
    deathYear: Optional[Int32] = None
    primaryProfession: List[NonEmptyStr] = Field(default=None, max_length=3)
    knownForTitles: List[NonEmptyStr] = None


class NameSort(BaseModel):
    birthYear: Optional[int] = None
    mostAppearance: Optional[int] = None

    @field_validator("birthYear", "mostAppearance", mode="before")
    @classmethod
    def coerce_order(cls, value):
        return sort_order(value)


class NameFilter(BaseModel):
    profession: Optional[List[NonEmptyStr]] = Field(default=None, max_length=3)
    appearInTitles: Optional[List[NonEmptyStr]] = None
    alive: Optional[bool] = None
    from_: Optional[int] = Field(default=None, ge=0, le=INT_MAX, alias="from")

    @field_validator("profession", "appearInTitles", mode="before")
    @classmethod
    def coerce_list(cls, value):
        return as_list(value)

    @field_validator("alive", mode="before")
    @classmethod
    def coerce_bool(cls, value):
        return booleanish(value)

    @field_validator("from_", mode="before")
    @classmethod
    def coerce_year(cls, value):
        return strict_int(value)


class NameQuery(Pagination):
    sort: NameSort = Field(default_factory=NameSort)
    filter: NameFilter = Field(default_factory=NameFilter)


class NameSearch(NameQuery):
    q: str = Field(min_length=2, max_length=100)


def build_filter(filters: NameFilter) -> dict:
    match = {}
    if filters.profession:
        match["primaryProfession"] = {"$in": filters.profession}
    if filters.appearInTitles:
        match["knownForTitles"] = {"$in": filters.appearInTitles}
    if filters.alive is not None or filters.from_ is not None:
        birth = {"$ne": None}
        if filters.from_ is not None:
            birth["$gte"] = filters.from_
        match["birthYear"] = birth
    if filters.alive is True:
        match["deathYear"] = None
    elif filters.alive is False:
        match["deathYear"] = {"$ne": None}
    return match


def build_list_pipeline(query: NameQuery) -> list:
    sort = query.sort.model_dump(exclude_none=True) or {"nconst": 1}
    return [
        {"$match": build_filter(query.filter)},
        {"$addFields": {"mostAppearance": MOST_APPEARANCE}},
        *paginate_stages(query, sort, PRESENT_STAGES),
    ]


def build_search_pipeline(query: NameSearch) -> list:
    sort = {**query.sort.model_dump(exclude_none=True), "score": -1}
    return [
        {"$match": {"$text": {"$search": query.q}, **build_filter(query.filter)}},
        {"$addFields": {"score": {"$meta": "textScore"}, "mostAppearance": MOST_APPEARANCE}},
        *paginate_stages(query, sort, PRESENT_STAGES),
    ]


def list_names(query: NameQuery) -> dict:
    collection = db.get_collection(db.NAMES)
    return check_page(first_page(collection.aggregate(build_list_pipeline(query)), query))


def search_names(query: NameSearch) -> dict:
    collection = db.get_collection(db.NAMES)
    return check_page(first_page(collection.aggregate(build_search_pipeline(query)), query))


def find_name(nconst: str):
    return db.get_collection(db.NAMES).find_one({"nconst": nconst}, {"_id": 0})


def create_name(name: NameCreate) -> dict:
    doc = name.model_dump()
    doc["primaryProfession"] = [p.strip() for p in doc["primaryProfession"]]
    doc["knownForTitles"] = [t.strip() for t in doc["knownForTitles"]]
    logger.info("Creating name {}", doc["nconst"])
    logger.debug("Name payload: {}", doc)
    db.get_collection(db.NAMES).insert_one(doc)
    doc.pop("_id", None)
    return doc


def update_name(nconst: str, name: NameUpdate):
    collection = db.get_collection(db.NAMES)
    stored = collection.find_one({"nconst": nconst}, {"_id": 0})
    if not stored:
        return None

    changes = name.model_dump(exclude_unset=True)
    merged = {**stored, **changes}
    problems = name_year_problems(merged.get("birthYear"), merged.get("deathYear"))
    if problems:
        raise DocumentValidationError([f"deathYear: {problem}" for problem in problems])
    if not changes:
        return stored

    logger.info("Updating name {} with {}", nconst, changes)
    return collection.find_one_and_update(
        {"nconst": nconst},
        {"$set": changes},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )


def delete_name(nconst: str) -> bool:
    result = db.get_collection(db.NAMES).delete_one({"nconst": nconst})
    return result.deleted_count > 0
