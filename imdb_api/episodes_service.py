"""This module serves as the service layer for episodes. An episode links an
episode title to its parent series with a season and an episode number;
reads enrich it with the episode's own title record.
imdb_api.episodes_service.py
"""
from typing import Optional

from fastapi import HTTPException
from loguru import logger
from pydantic import BaseModel, ConfigDict
from pymongo import ReturnDocument

from imdb_api import db
from imdb_api.basics_service import PRESENT_STAGES as TITLE_PRESENT_STAGES
from imdb_api.basics_service import SERIES_TYPES, find_title, imdb_url_expression
from imdb_api.validators import Int32, NonEmptyStr, reject

EpisodeNumber = Optional[Int32]


class EpisodeCreate(BaseModel):
    tconst: NonEmptyStr
    seasonNumber: EpisodeNumber
    episodeNumber: EpisodeNumber


class EpisodeUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    seasonNumber: EpisodeNumber
    episodeNumber: EpisodeNumber


EPISODE_DETAIL_STAGES = [
    {
        "$lookup": {
            "from": db.BASICS,
            "localField": "tconst",
            "foreignField": "tconst",
            "as": "episodeDetail",
            "pipeline": TITLE_PRESENT_STAGES,
        }
    },
    {"$unwind": {"path": "$episodeDetail", "preserveNullAndEmptyArrays": True}},
]


def build_seasons_pipeline(parent_tconst: str) -> list:
    return [
        {"$match": {"parentTconst": parent_tconst}},
        *EPISODE_DETAIL_STAGES,
        {
            "$group": {
                "_id": "$seasonNumber",
                "episodes": {
                    "$push": {
                        "tconst": "$tconst",
                        "episodeNumber": "$episodeNumber",
                        "titleType": "$episodeDetail.titleType",
                        "primaryTitle": "$episodeDetail.primaryTitle",
                        "originalTitle": "$episodeDetail.originalTitle",
                        "isAdult": "$episodeDetail.isAdult",
                        "startYear": "$episodeDetail.startYear",
                        "endYear": "$episodeDetail.endYear",
                        "runtimeMinutes": "$episodeDetail.runtimeMinutes",
                        "genres": "$episodeDetail.genres",
                        "imdbUrl": imdb_url_expression(),
                    }
                },
            }
        },
        {"$sort": {"_id": 1}},
        {
            "$project": {
                "_id": 0,
                "season": "$_id",
                "episodes": {"$sortArray": {"input": "$episodes", "sortBy": {"episodeNumber": 1}}},
            }
        },
    ]


def build_episode_pipeline(parent_tconst: str, tconst: str) -> list:
    return [
        {"$match": {"parentTconst": parent_tconst, "tconst": tconst}},
        *EPISODE_DETAIL_STAGES,
        {
            "$replaceRoot": {
                "newRoot": {
                    "$mergeObjects": [
                        {"$ifNull": ["$episodeDetail", {}]},
                        {
                            "tconst": "$tconst",
                            "parentTconst": "$parentTconst",
                            "seasonNumber": "$seasonNumber",
                            "episodeNumber": "$episodeNumber",
                            "imdbUrl": imdb_url_expression(),
                        },
                    ]
                }
            }
        },
    ]


def is_series(title) -> bool:
    return bool(title) and title.get("titleType") in SERIES_TYPES


def ensure_series(parent_tconst: str):
    parent = find_title(parent_tconst)
    if not parent:
        raise HTTPException(status_code=404, detail=f"No title found for tconst={parent_tconst}")
    if not is_series(parent):
        reject("parentTconst", f"must reference a {' or '.join(SERIES_TYPES)} title")
    return parent


def check_slot(parent_tconst: str, season, episode, tconst: str):
    if season is None or episode is None:
        return
    taken = db.get_collection(db.EPISODES).find_one(
        {
            "parentTconst": parent_tconst,
            "seasonNumber": season,
            "episodeNumber": episode,
            "tconst": {"$ne": tconst},
        },
        {"_id": 0, "tconst": 1},
    )
    if taken:
        raise HTTPException(
            status_code=409,
            detail=(
                f"Episode slot taken: parentTconst={parent_tconst}, seasonNumber={season}, "
                f"episodeNumber={episode} by tconst={taken['tconst']}"
            ),
        )


def get_seasons(parent_tconst: str):
    parent = find_title(parent_tconst)
    if not is_series(parent):
        return None
    seasons = list(db.get_collection(db.EPISODES).aggregate(build_seasons_pipeline(parent_tconst)))
    return {
        "tconst": parent["tconst"],
        "title": parent.get("primaryTitle"),
        "titleType": parent["titleType"],
        "totalSeasons": len(seasons),
        "totalEpisodes": sum(len(season["episodes"]) for season in seasons),
        "seasons": seasons,
    }


def get_episode(parent_tconst: str, tconst: str):
    pipeline = build_episode_pipeline(parent_tconst, tconst)
    return next(iter(db.get_collection(db.EPISODES).aggregate(pipeline)), None)


def create_episode(parent_tconst: str, episode: EpisodeCreate) -> dict:
    ensure_series(parent_tconst)
    if not find_title(episode.tconst):
        raise HTTPException(status_code=404, detail=f"No episode title found for tconst={episode.tconst}")
    check_slot(parent_tconst, episode.seasonNumber, episode.episodeNumber, episode.tconst)

    doc = {"parentTconst": parent_tconst, **episode.model_dump()}
    logger.info("Adding episode {} to {}", episode.tconst, parent_tconst)
    db.get_collection(db.EPISODES).insert_one(doc)
    doc.pop("_id", None)
    return doc


def update_episode(parent_tconst: str, tconst: str, episode: EpisodeUpdate):
    ensure_series(parent_tconst)
    collection = db.get_collection(db.EPISODES)
    if not collection.find_one({"parentTconst": parent_tconst, "tconst": tconst}, {"_id": 0}):
        return None
    check_slot(parent_tconst, episode.seasonNumber, episode.episodeNumber, tconst)

    logger.info("Updating episode {} of {} with {}", tconst, parent_tconst, episode.model_dump())
    return collection.find_one_and_update(
        {"parentTconst": parent_tconst, "tconst": tconst},
        {"$set": episode.model_dump()},
        projection={"_id": 0},
        return_document=ReturnDocument.AFTER,
    )


def delete_episode(parent_tconst: str, tconst: str) -> bool:
    result = db.get_collection(db.EPISODES).delete_one({"parentTconst": parent_tconst, "tconst": tconst})
    return result.deleted_count > 0
