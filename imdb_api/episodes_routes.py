"""
API endpoints for the episodes of a series, nested under /basics/{tconst}/episodes.
imdb_api.episodes_routes.py
"""
from fastapi import APIRouter, HTTPException, Request

from imdb_api.episodes_service import (
    EpisodeCreate,
    EpisodeUpdate,
    create_episode,
    delete_episode,
    get_episode,
    get_seasons,
    update_episode,
)
from imdb_api.responses import NO_STORE, created, no_content, ok

router = APIRouter(prefix="/basics/{tconst}/episodes", tags=["episodes"])


def episode_not_found(tconst: str, episode: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"No episode found for parentTconst={tconst} and tconst={episode}")


@router.get("")
def seasons(request: Request, tconst: str):
    series = get_seasons(tconst)
    if not series:
        raise HTTPException(status_code=404, detail=f"No series found for tconst={tconst}")
    return ok(request, series)


@router.post("")
def create(request: Request, tconst: str, episode: EpisodeCreate):
    return created(request, create_episode(tconst, episode))


@router.get("/{episode}")
def get(request: Request, tconst: str, episode: str):
    found = get_episode(tconst, episode)
    if not found:
        raise episode_not_found(tconst, episode)
    return ok(request, found)


@router.put("/{episode}")
def update(request: Request, tconst: str, episode: str, change: EpisodeUpdate):
    updated = update_episode(tconst, episode, change)
    if not updated:
        raise episode_not_found(tconst, episode)
    return ok(request, updated, headers=NO_STORE)


@router.delete("/{episode}", status_code=204)
def delete(tconst: str, episode: str):
    if not delete_episode(tconst, episode):
        raise episode_not_found(tconst, episode)
    return no_content()
