"""
API endpoints for the alternate titles of a title, nested under
/basics/{tconst}/akas. The {ordering} path segment must be an integer.
imdb_api.akas_routes.py
"""
from fastapi import APIRouter, Depends, HTTPException, Request

from imdb_api.akas_service import AkaCreate, AkaQuery, AkaUpdate, create_aka, delete_aka, get_aka, list_akas, update_aka
from imdb_api.query import query_model
from imdb_api.responses import NO_STORE, created, no_content, ok
from imdb_api.validators import cast_int

router = APIRouter(prefix="/basics/{tconst}/akas", tags=["akas"])


def aka_not_found(tconst: str, ordering: int) -> HTTPException:
    return HTTPException(status_code=404, detail=f"No aka found for titleId={tconst} and ordering={ordering}")


@router.get("")
def list_all(request: Request, tconst: str, query: AkaQuery = Depends(query_model(AkaQuery))):
    return ok(request, list_akas(tconst, query))


@router.post("")
def create(request: Request, tconst: str, aka: AkaCreate):
    return created(request, create_aka(tconst, aka))


@router.get("/{ordering}")
def get(request: Request, tconst: str, ordering: str):
    number = cast_int("ordering", ordering)
    aka = get_aka(tconst, number)
    if not aka:
        raise aka_not_found(tconst, number)
    return ok(request, aka)


@router.put("/{ordering}")
def update(request: Request, tconst: str, ordering: str, aka: AkaUpdate):
    number = cast_int("ordering", ordering)
    updated = update_aka(tconst, number, aka)
    if not updated:
        raise aka_not_found(tconst, number)
    return ok(request, updated, headers=NO_STORE)


@router.delete("/{ordering}", status_code=204)
def delete(tconst: str, ordering: str):
    number = cast_int("ordering", ordering)
    if not delete_aka(tconst, number):
        raise aka_not_found(tconst, number)
    return no_content()
