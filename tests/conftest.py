"""
Shared pytest fixtures.

- mongo: one MagicMock per collection name, served by a patched db.get_collection
- client: FastAPI TestClient over the application (lifespan not started)
- memory_db: an in-memory mongomock database, for tests that run the pipelines
"""
from collections import defaultdict
from unittest.mock import MagicMock

import mongomock
import pytest
from fastapi.testclient import TestClient

from imdb_api import db


@pytest.fixture
def mongo(monkeypatch) -> defaultdict:
    """
    Collections keyed by name. Configure return values per test, e.g.
    ``mongo[db.BASICS].find_one.return_value = {...}``.
    """
    collections = defaultdict(MagicMock)
    monkeypatch.setattr(db, "get_collection", lambda name: collections[name])
    return collections


@pytest.fixture
def memory_db(mongo, monkeypatch):
    """Replaces the MagicMock collections, so it wins whenever both are requested."""
    database = mongomock.MongoClient().db
    monkeypatch.setattr(db, "get_collection", lambda name: database[name])
    return database


@pytest.fixture
def client(mongo) -> TestClient:
    from imdb_api.main import app

    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def stored_title() -> dict:
    return {
        "tconst": "tt4154796",
        "titleType": "movie",
        "primaryTitle": "Avengers: Endgame",
        "originalTitle": "Avengers: Endgame",
        "isAdult": False,
        "startYear": 2019,
        "endYear": None,
        "runtimeMinutes": 181,
        "genres": "sci-fi,adventure,action",
    }


@pytest.fixture
def stored_series() -> dict:
    return {
        "tconst": "tt0903747",
        "titleType": "tvSeries",
        "primaryTitle": "Breaking Bad",
        "originalTitle": "Breaking Bad",
        "isAdult": False,
        "startYear": 2008,
        "endYear": 2013,
        "runtimeMinutes": 45,
        "genres": "crime,drama,thriller",
    }
