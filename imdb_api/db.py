"""
This module handles the connection to the MongoDB database.
It reads the connection settings from the environment, hands out the
collections used by the services and creates their indexes.
imdb_api.db.py
"""
import os
from dotenv import load_dotenv
from pymongo import ASCENDING, MongoClient, TEXT
from loguru import logger

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27018")
DB_NAME = os.getenv("MONGODB_DB_NAME", "tmdb")
DB_USER = os.getenv("MONGODB_USER", "admin")
DB_PASSWORD = os.getenv("MONGODB_PASSWORD", "admin")
APP_ENV = os.getenv("APP_ENV", "development")

BASICS = "basics"
NAMES = "names"
PRINCIPALS = "principals"
CREWS = "crews"
AKAS = "akas"
EPISODES = "episodes"

_client = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        _client = MongoClient(
            MONGODB_URI,
            username=DB_USER,
            password=DB_PASSWORD,
            tls=APP_ENV == "production",
            directConnection=True,
        )
    return _client


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None


def get_database():
    return get_client()[DB_NAME]


def get_collection(name: str):
    return get_database()[name]


def ensure_indexes():
    basics = get_collection(BASICS)
    basics.create_index("tconst", unique=True)
    basics.create_index(
        [("primaryTitle", TEXT), ("originalTitle", TEXT)],
        weights={"primaryTitle": 10, "originalTitle": 5},
        name="title_text",
    )

    names = get_collection(NAMES)
    names.create_index("nconst", unique=True)
    names.create_index([("primaryName", TEXT)], weights={"primaryName": 10}, name="name_text")

    principals = get_collection(PRINCIPALS)
    principals.create_index(
        [("tconst", ASCENDING), ("nconst", ASCENDING), ("ordering", ASCENDING)], unique=True
    )
    principals.create_index("tconst")
    principals.create_index("nconst")

    get_collection(CREWS).create_index("tconst", unique=True)

    get_collection(AKAS).create_index([("titleId", ASCENDING), ("ordering", ASCENDING)], unique=True)

    episodes = get_collection(EPISODES)
    episodes.create_index([("tconst", ASCENDING), ("parentTconst", ASCENDING)], unique=True)
    episodes.create_index("parentTconst")

    logger.info("Indexes ensured on database {}", DB_NAME)


def next_ordering(collection, match: dict) -> int:
    """Return the ordering following the highest one stored for ``match``."""
    latest = list(
        collection.aggregate(
            [
                {"$match": match},
                {"$sort": {"ordering": -1}},
                {"$limit": 1},
                {"$project": {"_id": 0, "ordering": 1}},
            ]
        )
    )
    return latest[0]["ordering"] + 1 if latest else 1
