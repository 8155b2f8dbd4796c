"""
Tests for episodes: series checks, slot conflicts and the seasons view.
"""
import pytest
from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from imdb_api import db
from imdb_api.episodes_service import (
    EpisodeCreate,
    EpisodeUpdate,
    build_seasons_pipeline,
    create_episode,
    get_seasons,
    update_episode,
)


class TestEpisodeModels:
    def test_numbers_are_required_but_nullable(self):
        episode = EpisodeCreate.model_validate({"tconst": "tt1", "seasonNumber": None, "episodeNumber": None})
        assert episode.seasonNumber is None
        with pytest.raises(ValidationError) as exc:
            EpisodeUpdate.model_validate({"seasonNumber": 1})
        assert exc.value.errors()[0]["loc"] == ("episodeNumber",)
        assert exc.value.errors()[0]["type"] == "missing"

    def test_any_integer_numbering(self):
        episode = EpisodeUpdate.model_validate({"seasonNumber": 0, "episodeNumber": -1})
        assert (episode.seasonNumber, episode.episodeNumber) == (0, -1)

    def test_numbers_fit_int32(self):
        with pytest.raises(ValidationError) as exc:
            EpisodeUpdate.model_validate({"seasonNumber": 2**31, "episodeNumber": 1})
        assert exc.value.errors()[0]["type"] == "less_than_equal"


class TestSeasons:
    def test_pipeline_groups_by_season(self):
        pipeline = build_seasons_pipeline("tt0903747")
        assert pipeline[0] == {"$match": {"parentTconst": "tt0903747"}}
        group = next(stage["$group"] for stage in pipeline if "$group" in stage)
        assert group["_id"] == "$seasonNumber"
        assert pipeline[-1]["$project"]["episodes"]["$sortArray"]["sortBy"] == {"episodeNumber": 1}

    def test_not_a_series(self, mongo, stored_title):
        mongo[db.BASICS].find_one.return_value = stored_title
        assert get_seasons("tt4154796") is None
        mongo[db.EPISODES].aggregate.assert_not_called()

    def test_totals(self, mongo, stored_series):
        mongo[db.BASICS].find_one.return_value = stored_series
        mongo[db.EPISODES].aggregate.return_value = [
            {"season": 1, "episodes": [{"tconst": "tt1"}, {"tconst": "tt2"}]},
            {"season": 2, "episodes": [{"tconst": "tt3"}]},
        ]
        series = get_seasons("tt0903747")
        assert series["title"] == "Breaking Bad"
        assert series["totalSeasons"] == 2
        assert series["totalEpisodes"] == 3


class TestEpisodeWrites:
    def test_parent_must_be_a_series(self, mongo, stored_title):
        mongo[db.BASICS].find_one.return_value = stored_title
        with pytest.raises(RequestValidationError) as exc:
            create_episode("tt4154796", EpisodeCreate(tconst="tt2", seasonNumber=1, episodeNumber=1))
        assert exc.value.errors()[0]["loc"] == ("parentTconst",)

    def test_parent_must_exist(self, mongo):
        mongo[db.BASICS].find_one.return_value = None
        with pytest.raises(HTTPException) as exc:
            create_episode("tt0", EpisodeCreate(tconst="tt2", seasonNumber=1, episodeNumber=1))
        assert exc.value.status_code == 404

    def test_episode_title_must_exist(self, mongo, stored_series):
        mongo[db.BASICS].find_one.side_effect = [stored_series, None]
        with pytest.raises(HTTPException) as exc:
            create_episode("tt0903747", EpisodeCreate(tconst="tt9", seasonNumber=1, episodeNumber=1))
        assert exc.value.detail == "No episode title found for tconst=tt9"

    def test_slot_conflict(self, mongo, stored_series):
        mongo[db.BASICS].find_one.return_value = stored_series
        mongo[db.EPISODES].find_one.return_value = {"tconst": "tt1"}
        with pytest.raises(HTTPException) as exc:
            create_episode("tt0903747", EpisodeCreate(tconst="tt2", seasonNumber=1, episodeNumber=1))
        assert exc.value.status_code == 409

    def test_create(self, mongo, stored_series):
        mongo[db.BASICS].find_one.return_value = stored_series
        mongo[db.EPISODES].find_one.return_value = None
        episode = create_episode("tt0903747", EpisodeCreate(tconst="tt2", seasonNumber=1, episodeNumber=2))
        assert episode == {"parentTconst": "tt0903747", "tconst": "tt2", "seasonNumber": 1, "episodeNumber": 2}

    def test_update_excludes_itself_from_slot_check(self, mongo, stored_series):
        mongo[db.BASICS].find_one.return_value = stored_series
        mongo[db.EPISODES].find_one.side_effect = [{"tconst": "tt2", "seasonNumber": 1, "episodeNumber": 1}, None]
        mongo[db.EPISODES].find_one_and_update.return_value = {"tconst": "tt2", "seasonNumber": 2}
        update_episode("tt0903747", "tt2", EpisodeUpdate(seasonNumber=2, episodeNumber=1))
        slot_query = mongo[db.EPISODES].find_one.call_args.args[0]
        assert slot_query["tconst"] == {"$ne": "tt2"}

    def test_update_missing_episode_before_slot(self, mongo, stored_series):
        mongo[db.BASICS].find_one.return_value = stored_series
        mongo[db.EPISODES].find_one.side_effect = [None, {"tconst": "tt1"}]
        assert update_episode("tt0903747", "tt404", EpisodeUpdate(seasonNumber=1, episodeNumber=1)) is None
        assert mongo[db.EPISODES].find_one.call_count == 1
        mongo[db.EPISODES].find_one_and_update.assert_not_called()
