"""This module serves as the service layer for titles (the ``basics`` collection).
It holds the request models used to create, update, list and search titles and
the functions turning them into MongoDB queries and aggregation pipelines.
Genres are stored as a comma-joined string and always handed out as an array.
imdb_api.basics_service.py
"""
import re
from typing import Annotated, List, Literal, Optional

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, field_validator
from pymongo import ReturnDocument

from imdb_api import db
from imdb_api.exceptions import DocumentValidationError
from imdb_api.query import Pagination, check_page, first_page, paginate_stages
from imdb_api.validators import INT_MAX, NonEmptyStr, as_list, booleanish, sort_order, strict_int

TitleType = Literal[
    "movie",
    "short",
    "tvEpisode",
    "tvMiniSeries",
    "tvMovie",
    "tvPilot",
    "tvSeries",
    "tvShort",
    "tvSpecial",
    "video",
    "videoGame",
]
SERIES_TYPES = ("tvSeries", "tvMiniSeries")

MEDIUM_RUNTIME_MINUTES = 30
LONG_RUNTIME_MINUTES = 70

IMDB_TITLE_URL = "https://www.imdb.com/title/"
GENRE_SEPARATOR = ","

Year = Annotated[StrictInt, Field(ge=1890, le=INT_MAX)]
Runtime = Annotated[StrictInt, Field(ge=1, le=INT_MAX)]


def title_year_problems(title_type, start_year, end_year) -> List[str]:
    """Cross-field rules on ``endYear``; an unknown ``title_type`` skips the type rule."""
    problems = []
    if end_year is None:
        return problems
    if title_type is not None and title_type not in SERIES_TYPES:
        problems.append("is only allowed for tvSeries and tvMiniSeries titles")
    if start_year is not None and end_year < start_year:
        problems.append("must be greater than or equal to startYear")
    return problems


class TitleCreate(BaseModel):
    tconst: NonEmptyStr
    titleType: TitleType
    primaryTitle: Optional[NonEmptyStr]
    originalTitle: Optional[NonEmptyStr]
    isAdult: StrictBool = False
    startYear: Optional[Year]
    endYear: Optional[Year]
    runtimeMinutes: Optional[Runtime]
    genres: List[NonEmptyStr] = Field(default_factory=list, max_length=3)

    @field_validator("endYear")
    @classmethod
    def check_end_year(cls, value, info):
        problems = title_year_problems(info.data.get("titleType"), info.data.get("startYear"), value)
        if problems:
            raise ValueError(", ".join(problems))
        return value


class TitleUpdate(BaseModel):
    # explicit null is rejected for the fields without a None in their type
    model_config = ConfigDict(extra="forbid")

    titleType: TitleType = None
    primaryTitle: Optional[NonEmptyStr] = None
    originalTitle: Optional[NonEmptyStr] = None
    isAdult: StrictBool = None
    startYear: Optional[Year] = None
    endYear: Optional[Year] = None
    runtimeMinutes: Optional[Runtime] = None
    genres: List[NonEmptyStr] = Field(default=None, max_length=3)


class TitleSort(BaseModel):
    startYear: Optional[int] = None
    primaryTitle: Optional[int] = None
    endYear: Optional[int] = None

    @field_validator("startYear", "primaryTitle", "endYear", mode="before")
    @classmethod
    def coerce_order(cls, value):
        return sort_order(value)


class TitleFilter(BaseModel):
    titleType: Optional[List[NonEmptyStr]] = Field(default=None, max_length=3)
    genre: Optional[List[NonEmptyStr]] = Field(default=None, max_length=3)
    isAdult: Optional[bool] = None
    since: Optional[int] = Field(default=None, ge=0, le=INT_MAX)
    until: Optional[int] = Field(default=None, ge=0, le=INT_MAX)
    duration: Optional[Literal["short", "medium", "long"]] = None

    @field_validator("titleType", "genre", mode="before")
    @classmethod
    def coerce_list(cls, value):
        return as_list(value)

    @field_validator("isAdult", mode="before")
    @classmethod
    def coerce_bool(cls, value):
        return booleanish(value)

    @field_validator("since", "until", mode="before")
    @classmethod
    def coerce_year(cls, value):
        return strict_int(value)

    @field_validator("until")
    @classmethod
    def check_range(cls, value, info):
        since = info.data.get("since")
        if value is not None and since is not None and value < since:
            raise ValueError("Filter 'until' must be greater than or equal to 'since'")
        return value


class TitleQuery(Pagination):
    sort: TitleSort = Field(default_factory=TitleSort)
    filter: TitleFilter = Field(default_factory=TitleFilter)


class TitleSearch(TitleQuery):
    q: NonEmptyStr


def genres_expression(field: str = "$genres") -> dict:
    """Aggregation expression presenting a stored genre string as an array."""
    blank = {"$or": [{"$eq": [{"$ifNull": [field, ""]}, ""]}, {"$eq": [field, "\\N"]}]}
    return {"$cond": [blank, [], {"$split": [field, GENRE_SEPARATOR]}]}


def imdb_url_expression(field: str = "$tconst") -> dict:
    return {"$concat": [IMDB_TITLE_URL, field, "/"]}


PRESENT_STAGES = [
    {"$addFields": {"genres": genres_expression(), "imdbUrl": imdb_url_expression()}},
    {"$project": {"_id": 0, "score": 0}},
]


def join_genres(genres) -> str:
    return GENRE_SEPARATOR.join(genre.strip() for genre in genres)


def split_genres(genres) -> List[str]:
    if isinstance(genres, list):
        return genres
    if not genres or genres == "\\N":
        return []
    return genres.split(GENRE_SEPARATOR)


def present_title(doc: dict) -> dict:
    title = {key: value for key, value in doc.items() if key not in ("_id", "score")}
    title["genres"] = split_genres(title.get("genres"))
    title["imdbUrl"] = f"{IMDB_TITLE_URL}{title['tconst']}/"
    return title


def genre_pattern(genre: str):
    return re.compile(rf"(^|{GENRE_SEPARATOR}){re.escape(genre)}({GENRE_SEPARATOR}|$)", re.IGNORECASE)


def build_filter(filters: TitleFilter) -> dict:
    match = {}
    if filters.titleType:
        match["titleType"] = {"$in": filters.titleType}
    if filters.genre:
        match["genres"] = {"$in": [genre_pattern(genre) for genre in filters.genre]}
    if filters.isAdult is not None:
        match["isAdult"] = filters.isAdult
    if filters.since is not None or filters.until is not None:
        years = {"$ne": None}
        if filters.since is not None:
            years["$gte"] = filters.since
        if filters.until is not None:
            years["$lte"] = filters.until
        match["startYear"] = years
    if filters.duration == "short":
        match["runtimeMinutes"] = {"$ne": None, "$lte": MEDIUM_RUNTIME_MINUTES}
    elif filters.duration == "medium":
        match["runtimeMinutes"] = {"$gt": MEDIUM_RUNTIME_MINUTES, "$lte": LONG_RUNTIME_MINUTES}
    elif filters.duration == "long":
        match["runtimeMinutes"] = {"$gt": LONG_RUNTIME_MINUTES}
    return match


def build_sort(sort: TitleSort) -> dict:
    return sort.model_dump(exclude_none=True)


def build_list_pipeline(query: TitleQuery) -> list:
    sort = build_sort(query.sort) or {"tconst": 1}
    return [{"$match": build_filter(query.filter)}, *paginate_stages(query, sort, PRESENT_STAGES)]


def build_search_pipeline(query: TitleSearch) -> list:
    # explicit sort fields lead, the text score breaks ties
    sort = {**build_sort(query.sort), "score": -1}
    return [
        {"$match": {"$text": {"$search": query.q}, **build_filter(query.filter)}},
        {"$addFields": {"score": {"$meta": "textScore"}}},
        *paginate_stages(query, sort, PRESENT_STAGES),
    ]


def list_titles(query: TitleQuery) -> dict:
    collection = db.get_collection(db.BASICS)
    return check_page(first_page(collection.aggregate(build_list_pipeline(query)), query))


def search_titles(query: TitleSearch) -> dict:
    collection = db.get_collection(db.BASICS)
    return check_page(first_page(collection.aggregate(build_search_pipeline(query)), query))


def find_title(tconst: str):
    return db.get_collection(db.BASICS).find_one({"tconst": tconst}, {"_id": 0})


def get_title(tconst: str):
    doc = find_title(tconst)
    if not doc:
        return None
    return present_title(doc)


def create_title(title: TitleCreate) -> dict:
    doc = title.model_dump()
    doc["genres"] = join_genres(doc["genres"])
    logger.info("Creating title {}", doc["tconst"])
    logger.debug("Title payload: {}", doc)
    db.get_collection(db.BASICS).insert_one(doc)
    return present_title(doc)


def update_title(tconst: str, title: TitleUpdate):
    collection = db.get_collection(db.BASICS)
    stored = collection.find_one({"tconst": tconst}, {"_id": 0})
    if not stored:
        return None

    changes = title.model_dump(exclude_unset=True)
    merged = {**stored, **changes}
    problems = title_year_problems(merged.get("titleType"), merged.get("startYear"), merged.get("endYear"))
    if problems:
        raise DocumentValidationError([f"endYear: {problem}" for problem in problems])
    if not changes:
        return present_title(stored)

    if "genres" in changes:
        changes["genres"] = join_genres(changes["genres"])
    logger.info("Updating title {} with {}", tconst, changes)
    updated = collection.find_one_and_update(
        {"tconst": tconst},
        {"$set": changes},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        return None
    return present_title(updated)


def delete_title(tconst: str) -> bool:
    result = db.get_collection(db.BASICS).delete_one({"tconst": tconst})
    return result.deleted_count > 0
