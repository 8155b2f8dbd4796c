"""This module serves as the service layer for crews, the per-title lists of
director and writer nconsts. Crew members are also principals, so adding,
moving or removing one keeps both collections in step.
imdb_api.crews_service.py
"""
from typing import List, Literal, Optional

from fastapi import HTTPException
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pymongo import DeleteMany

from imdb_api import db
from imdb_api.basics_service import find_title
from imdb_api.principals_service import (
    PrincipalCreate,
    PrincipalUpdate,
    create_principal,
    delete_principals,
    update_principal,
)
from imdb_api.query import Include
from imdb_api.validators import NonEmptyStr

CrewCategory = Literal["director", "writer"]
CREW_LISTS = {"director": "directors", "writer": "writers"}


class CrewCreate(BaseModel):
    directors: List[NonEmptyStr] = Field(default_factory=list)
    writers: List[NonEmptyStr] = Field(default_factory=list)


class CrewListChange(BaseModel):
    model_config = ConfigDict(extra="forbid")

    add: Optional[List[NonEmptyStr]] = None
    remove: Optional[List[NonEmptyStr]] = None


class CrewUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    directors: CrewListChange = Field(default_factory=CrewListChange)
    writers: CrewListChange = Field(default_factory=CrewListChange)


class CrewQuery(BaseModel):
    include: Include = Field(default_factory=Include)


class CrewMemberCreate(PrincipalCreate):
    category: CrewCategory


class CrewMemberUpdate(PrincipalUpdate):
    category: CrewCategory = None


def people_lookup(list_field: str, category: str, target: str) -> dict:
    """Resolve one nconst list against ``names`` with the person's role on the title."""
    return {
        "$lookup": {
            "from": db.NAMES,
            "localField": list_field,
            "foreignField": "nconst",
            "as": target,
            "let": {"titleId": "$tconst"},
            "pipeline": [
                {
                    "$lookup": {
                        "from": db.PRINCIPALS,
                        "localField": "nconst",
                        "foreignField": "nconst",
                        "as": "roleDetails",
                        "pipeline": [
                            {
                                "$match": {
                                    "$expr": {
                                        "$and": [
                                            {"$eq": ["$tconst", "$$titleId"]},
                                            {"$eq": ["$category", category]},
                                        ]
                                    }
                                }
                            },
                            {"$sort": {"ordering": 1}},
                            {"$limit": 1},
                            {"$project": {"_id": 0, "tconst": 0, "nconst": 0}},
                        ],
                    }
                },
                {"$unwind": {"path": "$roleDetails", "preserveNullAndEmptyArrays": True}},
                {"$project": {"_id": 0, "primaryProfession": 0, "knownForTitles": 0}},
            ],
        }
    }


def build_crew_pipeline(tconst: str, include: Include) -> list:
    pipeline = [{"$match": {"tconst": tconst}}]
    if include.names:
        pipeline += [
            people_lookup("directors", "director", "directorsInfo"),
            people_lookup("writers", "writer", "writersInfo"),
        ]
    pipeline.append({"$project": {"_id": 0}})
    return pipeline


def get_crew(tconst: str, include: Include = None):
    collection = db.get_collection(db.CREWS)
    return next(iter(collection.aggregate(build_crew_pipeline(tconst, include or Include()))), None)


def ensure_names(directors, writers):
    wanted = set(directors or []) | set(writers or [])
    if not wanted:
        return
    found = {
        doc["nconst"]
        for doc in db.get_collection(db.NAMES).find({"nconst": {"$in": sorted(wanted)}}, {"_id": 0, "nconst": 1})
    }
    missing_directors = [n for n in directors or [] if n not in found]
    missing_writers = [n for n in writers or [] if n not in found]
    if missing_directors or missing_writers:
        raise HTTPException(
            status_code=404,
            detail=(
                "Some of the names are not found. "
                f"(directors={','.join(missing_directors)}; writers={','.join(missing_writers)})"
            ),
        )


def create_crew(tconst: str, crew: CrewCreate) -> dict:
    if not find_title(tconst):
        raise HTTPException(status_code=404, detail=f"No title found for tconst={tconst}")
    ensure_names(crew.directors, crew.writers)

    doc = {"tconst": tconst, "directors": crew.directors, "writers": crew.writers}
    logger.info("Creating crew for {}", tconst)
    db.get_collection(db.CREWS).insert_one(doc)
    doc.pop("_id", None)
    return doc


def update_crew(tconst: str, change: CrewUpdate):
    collection = db.get_collection(db.CREWS)
    if not collection.find_one({"tconst": tconst}, {"_id": 1}):
        return None
    ensure_names(change.directors.add, change.writers.add)

    pulls, adds = {}, {}
    for field in ("directors", "writers"):
        lists = getattr(change, field)
        if lists.remove:
            pulls[field] = {"$in": lists.remove}
        if lists.add:
            adds[field] = {"$each": lists.add}

    # an nconst can be both removed and added, so the pull runs first
    if pulls:
        collection.update_one({"tconst": tconst}, {"$pull": pulls})
    if adds:
        collection.update_one({"tconst": tconst}, {"$addToSet": adds})

    removals = [
        DeleteMany({"tconst": tconst, "nconst": {"$in": lists.remove}, "category": category})
        for category, lists in (("director", change.directors), ("writer", change.writers))
        if lists.remove
    ]
    if removals:
        result = db.get_collection(db.PRINCIPALS).bulk_write(removals, ordered=False)
        logger.info("Removed {} crew principal rows from {}", result.deleted_count, tconst)

    return collection.find_one({"tconst": tconst}, {"_id": 0})


def delete_crew(tconst: str) -> bool:
    result = db.get_collection(db.CREWS).delete_one({"tconst": tconst})
    return result.deleted_count > 0


def add_member(tconst: str, member: CrewMemberCreate) -> dict:
    principal = create_principal(tconst, member)
    target = CREW_LISTS[member.category]
    other = CREW_LISTS["writer" if member.category == "director" else "director"]
    db.get_collection(db.CREWS).update_one(
        {"tconst": tconst},
        {"$addToSet": {target: member.nconst}, "$setOnInsert": {other: []}},
        upsert=True,
    )
    return principal


def update_member(tconst: str, nconst: str, member: CrewMemberUpdate):
    principal = update_principal(tconst, nconst, member)
    if not principal:
        return None

    if member.category is not None:
        target = CREW_LISTS[member.category]
        other = CREW_LISTS["writer" if member.category == "director" else "director"]
        logger.info("Moving {} on {} to {}", nconst, tconst, target)
        db.get_collection(db.CREWS).update_one(
            {"tconst": tconst},
            {"$addToSet": {target: nconst}, "$pull": {other: nconst}},
        )
    return principal


def remove_member(tconst: str, nconst: str) -> bool:
    removed = delete_principals(tconst, nconst, categories=CREW_LISTS.keys())
    result = db.get_collection(db.CREWS).update_one(
        {"tconst": tconst},
        {"$pull": {"directors": nconst, "writers": nconst}},
    )
    return bool(removed) or result.modified_count > 0
