"""
API endpoints for the cast of a title, nested under /basics/{tconst}/cast.
imdb_api.cast_routes.py
"""
from fastapi import APIRouter, Depends, HTTPException, Request

from imdb_api.principals_service import (
    CastDeleteQuery,
    CastQuery,
    CastSingleQuery,
    PrincipalCreate,
    PrincipalUpdate,
    create_principal,
    delete_principals,
    get_member,
    list_cast,
    update_principal,
)
from imdb_api.query import check_page, query_model
from imdb_api.responses import NO_STORE, created, no_content, ok

router = APIRouter(prefix="/basics/{tconst}/cast", tags=["cast"])


@router.get("")
def list_all(request: Request, tconst: str, query: CastQuery = Depends(query_model(CastQuery))):
    cast = list_cast(tconst, query)
    if cast["totalCount"] == 0:
        raise HTTPException(status_code=404, detail=f"No cast found for tconst={tconst}")
    return ok(request, check_page(cast), headers=NO_STORE)


@router.post("")
def create(request: Request, tconst: str, principal: PrincipalCreate):
    return created(request, create_principal(tconst, principal))


@router.get("/{nconst}")
def get(request: Request, tconst: str, nconst: str, query: CastSingleQuery = Depends(query_model(CastSingleQuery))):
    member = get_member(tconst, nconst, query.include)
    if not member:
        raise HTTPException(status_code=404, detail=f"No cast found for tconst={tconst} and nconst={nconst}")
    return ok(request, member, headers=NO_STORE)


@router.put("/{nconst}")
def update(request: Request, tconst: str, nconst: str, principal: PrincipalUpdate):
    updated = update_principal(tconst, nconst, principal)
    if not updated:
        raise HTTPException(
            status_code=404,
            detail=f"No cast found for tconst={tconst}, nconst={nconst} and ordering={principal.ordering}",
        )
    return ok(request, updated, headers=NO_STORE)


@router.delete("/{nconst}", status_code=204)
def delete(tconst: str, nconst: str, query: CastDeleteQuery = Depends(query_model(CastDeleteQuery))):
    if not delete_principals(tconst, nconst, query.ordering):
        if query.ordering is not None:
            detail = f"No cast found for tconst={tconst}, nconst={nconst} and ordering={query.ordering}"
        else:
            detail = f"No cast found for tconst={tconst} and nconst={nconst}"
        raise HTTPException(status_code=404, detail=detail)
    return no_content()
