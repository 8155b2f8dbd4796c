"""
Tests for the bracket query-string parser, the pagination model and the
$facet pagination helpers.
"""
import pytest
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from imdb_api.query import (
    Include,
    Pagination,
    check_page,
    first_page,
    paginate_stages,
    parse_query_string,
    query_model,
    split_key,
    total_pages,
)


class TestParseQueryString:
    def test_plain_keys(self):
        assert parse_query_string([("limit", "10"), ("page", "2")]) == {"limit": "10", "page": "2"}

    def test_nested_keys(self):
        items = [("filter[genre]", "action"), ("sort[startYear]", "desc")]
        assert parse_query_string(items) == {"filter": {"genre": "action"}, "sort": {"startYear": "desc"}}

    def test_repeated_keys_become_lists(self):
        items = [("filter[genre]", "action"), ("filter[genre]", "drama"), ("filter[genre]", "comedy")]
        assert parse_query_string(items) == {"filter": {"genre": ["action", "drama", "comedy"]}}

    def test_empty_brackets_force_a_list(self):
        assert parse_query_string([("types[]", "dvd")]) == {"types": ["dvd"]}

    def test_mixed(self):
        items = [("a[b]", "1"), ("a[b]", "2"), ("c[]", "x"), ("d", "y")]
        assert parse_query_string(items) == {"a": {"b": ["1", "2"]}, "c": ["x"], "d": "y"}

    def test_split_key(self):
        assert split_key("include[name]") == ["include", "name"]
        assert split_key("weird]key") == ["weird]key"]


class TestPagination:
    def test_defaults_only_when_absent(self):
        pagination = Pagination.model_validate({})
        assert (pagination.page, pagination.limit, pagination.skip) == (1, 10, 0)

    def test_coerces_strings(self):
        pagination = Pagination.model_validate({"page": "3", "limit": "20"})
        assert pagination.skip == 40

    def test_invalid_integer(self):
        with pytest.raises(ValidationError) as exc:
            Pagination.model_validate({"limit": "ten"})
        error = exc.value.errors()[0]
        assert error["loc"] == ("limit",)
        assert error["type"] == "int_parsing"

    def test_lower_bound(self):
        with pytest.raises(ValidationError) as exc:
            Pagination.model_validate({"page": "0"})
        assert exc.value.errors()[0]["type"] == "greater_than_equal"


class TestInclude:
    def test_booleanish_flags(self):
        include = Include.model_validate({"name": "1", "title": "false"})
        assert include.name is True
        assert include.title is False
        assert include.names is False


class TestQueryModel:
    def test_validation_error_becomes_request_validation_error(self):
        class FakeRequest:
            class query_params:
                @staticmethod
                def multi_items():
                    return [("limit", "abc")]

        with pytest.raises(RequestValidationError) as exc:
            query_model(Pagination)(FakeRequest())
        assert exc.value.errors()[0]["loc"] == ("limit",)


class TestPaginateStages:
    def test_facet_and_page_fields(self):
        pagination = Pagination(page=2, limit=5)
        facet, add_fields = paginate_stages(pagination, {"ordering": 1}, [{"$project": {"_id": 0}}])
        assert facet["$facet"]["results"] == [
            {"$sort": {"ordering": 1}},
            {"$skip": 5},
            {"$limit": 5},
            {"$project": {"_id": 0}},
        ]
        assert facet["$facet"]["totalCount"] == [{"$count": "count"}]
        assert add_fields["$addFields"]["currentPage"] == 2
        assert add_fields["$addFields"]["perPage"] == 5


class TestPages:
    def test_total_pages(self):
        assert total_pages(5, 2) == 3
        assert total_pages(0, 10) == 0

    def test_first_page_of_empty_aggregation(self):
        page = first_page([], Pagination())
        assert page == {"totalCount": 0, "totalPages": 0, "currentPage": 1, "perPage": 10, "results": []}

    def test_first_page_unwraps_facet(self):
        doc = {"totalCount": 5, "totalPages": 3.0, "currentPage": 1, "perPage": 2, "results": [{"a": 1}]}
        page = first_page([doc], Pagination(limit=2))
        assert page["totalPages"] == 3
        assert isinstance(page["totalPages"], int)

    def test_check_page_beyond_last(self):
        page = {"totalCount": 5, "totalPages": 3, "currentPage": 4}
        with pytest.raises(HTTPException) as exc:
            check_page(page)
        assert exc.value.status_code == 400
        assert exc.value.detail == "Page exceeds. totalPages=3, currentPage=4"

    def test_check_page_empty_result_set(self):
        page = {"totalCount": 0, "totalPages": 0, "currentPage": 4}
        assert check_page(page) is page
