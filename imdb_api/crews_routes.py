"""
API endpoints for the crew of a title and its members, nested under
/basics/{tconst}/crews.
imdb_api.crews_routes.py
"""
from fastapi import APIRouter, Depends, HTTPException, Request

from imdb_api.crews_service import (
    CrewCreate,
    CrewMemberCreate,
    CrewMemberUpdate,
    CrewQuery,
    CrewUpdate,
    add_member,
    create_crew,
    delete_crew,
    get_crew,
    remove_member,
    update_crew,
    update_member,
)
from imdb_api.query import query_model
from imdb_api.responses import NO_STORE, created, no_content, ok

router = APIRouter(prefix="/basics/{tconst}/crews", tags=["crews"])


def crew_not_found(tconst: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"No crew found for tconst={tconst}")


@router.get("")
def get(request: Request, tconst: str, query: CrewQuery = Depends(query_model(CrewQuery))):
    crew = get_crew(tconst, query.include)
    if not crew:
        raise crew_not_found(tconst)
    return ok(request, crew)


@router.post("")
def create(request: Request, tconst: str, crew: CrewCreate):
    return created(request, create_crew(tconst, crew))


@router.put("")
def update(request: Request, tconst: str, change: CrewUpdate):
    crew = update_crew(tconst, change)
    if not crew:
        raise crew_not_found(tconst)
    return ok(request, crew, headers=NO_STORE)


@router.delete("", status_code=204)
def delete(tconst: str):
    if not delete_crew(tconst):
        raise crew_not_found(tconst)
    return no_content()


@router.post("/members")
def create_member(request: Request, tconst: str, member: CrewMemberCreate):
    return created(request, add_member(tconst, member))


@router.put("/members/{nconst}")
def update_crew_member(request: Request, tconst: str, nconst: str, member: CrewMemberUpdate):
    updated = update_member(tconst, nconst, member)
    if not updated:
        raise HTTPException(
            status_code=404,
            detail=f"No crew member found for tconst={tconst}, nconst={nconst} and ordering={member.ordering}",
        )
    return ok(request, updated, headers=NO_STORE)


@router.delete("/members/{nconst}", status_code=204)
def delete_member(tconst: str, nconst: str):
    if not remove_member(tconst, nconst):
        raise HTTPException(status_code=404, detail=f"No crew member found for tconst={tconst} and nconst={nconst}")
    return no_content()
