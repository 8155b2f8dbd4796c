"""
Tests for the name models, filters and service functions.
"""
import pytest
from pydantic import ValidationError

from imdb_api import db
from imdb_api.exceptions import DocumentValidationError
from imdb_api.names_service import (
    NameCreate,
    NameFilter,
    NameQuery,
    NameSearch,
    NameUpdate,
    build_filter,
    build_list_pipeline,
    build_search_pipeline,
    create_name,
    update_name,
)


class TestNameModels:
    def test_defaults(self):
        name = NameCreate.model_validate({"nconst": "nm1234567", "primaryName": "Jane Doe"})
        assert name.birthYear is None
        assert name.deathYear is None
        assert name.primaryProfession == []

    def test_death_before_birth(self):
        with pytest.raises(ValidationError) as exc:
            NameCreate.model_validate({"nconst": "nm1", "primaryName": "A", "birthYear": 1950, "deathYear": 1940})
        assert exc.value.errors()[0]["loc"] == ("deathYear",)

    def test_primary_name_required(self):
        with pytest.raises(ValidationError) as exc:
            NameCreate.model_validate({"nconst": "nm1"})
        assert exc.value.errors()[0]["type"] == "missing"

    def test_search_length(self):
        with pytest.raises(ValidationError) as exc:
            NameSearch.model_validate({"q": "a"})
        assert exc.value.errors()[0]["type"] == "string_too_short"

    def test_filter_from_alias(self):
        query = NameQuery.model_validate({"filter": {"from": "1970", "alive": "1", "profession": "actor"}})
        assert query.filter.from_ == 1970
        assert query.filter.alive is True
        assert query.filter.profession == ["actor"]

    def test_too_many_professions(self):
        with pytest.raises(ValidationError) as exc:
            NameQuery.model_validate({"filter": {"profession": ["a", "b", "c", "d"]}})
        assert exc.value.errors()[0]["loc"] == ("filter", "profession")


class TestNameFilter:
    def test_alive(self):
        match = build_filter(NameFilter.model_validate({"alive": "true"}))
        assert match == {"birthYear": {"$ne": None}, "deathYear": None}

    def test_dead_since(self):
        match = build_filter(NameFilter.model_validate({"alive": "false", "from": "1900"}))
        assert match == {"birthYear": {"$ne": None, "$gte": 1900}, "deathYear": {"$ne": None}}

    def test_appear_in_titles(self):
        match = build_filter(NameFilter.model_validate({"appearInTitles": ["tt1", "tt2"]}))
        assert match == {"knownForTitles": {"$in": ["tt1", "tt2"]}}


class TestNamePipelines:
    def test_most_appearance_is_derived(self):
        pipeline = build_list_pipeline(NameQuery.model_validate({"sort": {"mostAppearance": "desc"}}))
        assert pipeline[1] == {"$addFields": {"mostAppearance": {"$size": {"$ifNull": ["$knownForTitles", []]}}}}
        assert pipeline[2]["$facet"]["results"][0] == {"$sort": {"mostAppearance": -1}}

    def test_search_ranks_by_score_without_sort(self):
        pipeline = build_search_pipeline(NameSearch.model_validate({"q": "keanu"}))
        assert pipeline[2]["$facet"]["results"][0] == {"$sort": {"score": -1}}


class TestNameService:
    def test_create_trims_lists(self, mongo):
        name = create_name(
            NameCreate.model_validate(
                {"nconst": "nm1", "primaryName": "A", "primaryProfession": [" actor "], "knownForTitles": ["tt1 "]}
            )
        )
        assert name["primaryProfession"] == ["actor"]
        assert name["knownForTitles"] == ["tt1"]
        mongo[db.NAMES].insert_one.assert_called_once()

    def test_update_rechecks_years(self, mongo):
        mongo[db.NAMES].find_one.return_value = {"nconst": "nm1", "primaryName": "A", "birthYear": 1960}
        with pytest.raises(DocumentValidationError):
            update_name("nm1", NameUpdate(deathYear=1950))

    def test_update_missing(self, mongo):
        mongo[db.NAMES].find_one.return_value = None
        assert update_name("nm0", NameUpdate(primaryName="B")) is None
