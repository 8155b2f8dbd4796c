"""
Aggregation pipelines executed against an in-memory mongomock database:
page math of the $facet stages, genre presentation and the page checks.
The principal merge uses $reduce, which mongomock lacks; its stages are
checked structurally in test_principals_service.
"""
import pytest
from fastapi import HTTPException

from imdb_api import db
from imdb_api.akas_service import AkaQuery, list_akas
from imdb_api.basics_service import TitleQuery, list_titles


def seed_akas(memory_db):
    memory_db[db.AKAS].insert_many(
        [
            {"titleId": "tt1", "ordering": ordering, "title": f"Title {ordering}", "region": region}
            for ordering, region in [(4, "FR"), (2, "US"), (5, "US"), (1, "DE"), (3, "US")]
        ]
        + [{"titleId": "tt2", "ordering": 1, "title": "Other", "region": "US"}]
    )


class TestAkasPages:
    def test_first_page(self, memory_db):
        seed_akas(memory_db)
        page = list_akas("tt1", AkaQuery.model_validate({"limit": "2"}))
        assert page["totalCount"] == 5
        assert page["totalPages"] == 3
        assert page["currentPage"] == 1
        assert page["perPage"] == 2
        assert [aka["ordering"] for aka in page["results"]] == [1, 2]
        assert all("_id" not in aka for aka in page["results"])

    def test_last_page(self, memory_db):
        seed_akas(memory_db)
        page = list_akas("tt1", AkaQuery.model_validate({"limit": "2", "page": "3"}))
        assert [aka["ordering"] for aka in page["results"]] == [5]

    def test_region_filter(self, memory_db):
        seed_akas(memory_db)
        page = list_akas("tt1", AkaQuery.model_validate({"region": "us"}))
        assert page["totalCount"] == 3
        assert page["totalPages"] == 1
        assert [aka["ordering"] for aka in page["results"]] == [2, 3, 5]

    def test_page_beyond_last(self, memory_db):
        seed_akas(memory_db)
        with pytest.raises(HTTPException) as exc:
            list_akas("tt1", AkaQuery.model_validate({"limit": "2", "page": "4"}))
        assert exc.value.status_code == 400
        assert exc.value.detail == "Page exceeds. totalPages=3, currentPage=4"

    def test_no_rows(self, memory_db):
        page = list_akas("tt404", AkaQuery())
        assert page["totalCount"] == 0
        assert page["totalPages"] == 0
        assert page["results"] == []


class TestTitlePages:
    @pytest.fixture
    def titles(self, memory_db, stored_title, stored_series):
        untagged = {**stored_title, "tconst": "tt0000001", "titleType": "short", "genres": ""}
        memory_db[db.BASICS].insert_many([dict(stored_title), dict(stored_series), untagged])
        return memory_db

    def test_genres_presented_as_arrays(self, titles):
        page = list_titles(TitleQuery())
        assert [title["tconst"] for title in page["results"]] == ["tt0000001", "tt0903747", "tt4154796"]
        assert [title["genres"] for title in page["results"]] == [
            [],
            ["crime", "drama", "thriller"],
            ["sci-fi", "adventure", "action"],
        ]
        assert page["results"][2]["imdbUrl"] == "https://www.imdb.com/title/tt4154796/"
        assert all("_id" not in title for title in page["results"])

    def test_stored_genres_untouched(self, titles):
        list_titles(TitleQuery())
        assert titles[db.BASICS].find_one({"tconst": "tt4154796"})["genres"] == "sci-fi,adventure,action"

    def test_type_filter_and_sort(self, titles):
        query = TitleQuery.model_validate(
            {"filter": {"titleType": ["movie", "tvSeries"]}, "sort": {"startYear": "desc"}, "limit": "1"}
        )
        page = list_titles(query)
        assert page["totalCount"] == 2
        assert page["totalPages"] == 2
        assert [title["tconst"] for title in page["results"]] == ["tt4154796"]

    def test_page_beyond_last(self, titles):
        with pytest.raises(HTTPException) as exc:
            list_titles(TitleQuery.model_validate({"limit": "2", "page": "3"}))
        assert exc.value.detail == "Page exceeds. totalPages=2, currentPage=3"


class TestThroughHttp:
    def test_akas_limit(self, client, memory_db):
        seed_akas(memory_db)
        response = client.get("/api/v1/basics/tt1/akas", params={"limit": "2"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert (data["totalCount"], data["totalPages"], data["currentPage"]) == (5, 3, 1)
        assert [aka["ordering"] for aka in data["results"]] == [1, 2]

    def test_title_page_exceeds(self, client, memory_db, stored_title):
        memory_db[db.BASICS].insert_one(dict(stored_title))
        response = client.get("/api/v1/basics", params={"page": "2"})
        assert response.status_code == 400
        assert response.json()["message"] == "Page exceeds. totalPages=1, currentPage=2"
