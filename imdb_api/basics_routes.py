"""
API endpoints for titles: create, list, text search, read, update and delete.
imdb_api.basics_routes.py
"""
from fastapi import APIRouter, Depends, HTTPException, Request

from imdb_api.basics_service import (
    TitleCreate,
    TitleQuery,
    TitleSearch,
    TitleUpdate,
    create_title,
    delete_title,
    get_title,
    list_titles,
    search_titles,
    update_title,
)
from imdb_api.query import query_model
from imdb_api.responses import NO_STORE, created, no_content, ok

router = APIRouter(prefix="/basics", tags=["basics"])


def title_not_found(tconst: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Title with tconst={tconst} not found")


@router.post("")
def create(request: Request, title: TitleCreate):
    return created(request, create_title(title))


@router.get("")
def list_all(request: Request, query: TitleQuery = Depends(query_model(TitleQuery))):
    return ok(request, list_titles(query))


@router.get("/search")
def search(request: Request, query: TitleSearch = Depends(query_model(TitleSearch))):
    return ok(request, search_titles(query))


@router.get("/{tconst}")
def get(request: Request, tconst: str):
    title = get_title(tconst)
    if not title:
        raise title_not_found(tconst)
    return ok(request, title)


@router.put("/{tconst}")
def update(request: Request, tconst: str, title: TitleUpdate):
    updated = update_title(tconst, title)
    if not updated:
        raise title_not_found(tconst)
    return ok(request, updated, headers=NO_STORE)


@router.delete("/{tconst}", status_code=204)
def delete(tconst: str):
    if not delete_title(tconst):
        raise title_not_found(tconst)
    return no_content()
