"""
API endpoints for names: create, list, text search, read, update and delete.
imdb_api.names_routes.py
"""
from fastapi import APIRouter, Depends, HTTPException, Request

from imdb_api.names_service import (
    NameCreate,
    NameQuery,
    NameSearch,
    NameUpdate,
    create_name,
    delete_name,
    find_name,
    list_names,
    search_names,
    update_name,
)
from imdb_api.query import query_model
from imdb_api.responses import NO_STORE, created, no_content, ok

router = APIRouter(prefix="/names", tags=["names"])


def name_not_found(nconst: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Name with nconst={nconst} not found")


@router.post("")
def create(request: Request, name: NameCreate):
    return created(request, create_name(name))


@router.get("")
def list_all(request: Request, query: NameQuery = Depends(query_model(NameQuery))):
    return ok(request, list_names(query))


@router.get("/search")
def search(request: Request, query: NameSearch = Depends(query_model(NameSearch))):
    return ok(request, search_names(query))


@router.get("/{nconst}")
def get(request: Request, nconst: str):
    name = find_name(nconst)
    if not name:
        raise name_not_found(nconst)
    return ok(request, name)


@router.put("/{nconst}")
def update(request: Request, nconst: str, name: NameUpdate):
    updated = update_name(nconst, name)
    if not updated:
        raise name_not_found(nconst)
    return ok(request, updated, headers=NO_STORE)


@router.delete("/{nconst}", status_code=204)
def delete(nconst: str):
    if not delete_name(nconst):
        raise name_not_found(nconst)
    return no_content()
