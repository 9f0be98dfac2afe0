import json
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import LoginRequest
from server.models.responses import CountResponse, CreatedResponse, ExistsResponse, SavedResponse

MODEL_NAME = "User"

router = APIRouter(prefix="/users", tags=["users"], dependencies=[Depends(verify_api_key)])


def _parse_json_param(name: str, raw: str | None) -> dict:
    """Parse a JSON encoded query parameter (e.g. ?where={"email": "..."})."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Query parameter '{name}' is not valid JSON.")
    if not isinstance(value, dict):
        raise HTTPException(status_code=400, detail=f"Query parameter '{name}' must be a JSON object.")
    return value


@router.post("")
async def create_users(request: Request, body: dict[str, Any] | list[dict[str, Any]] = Body(...)) -> CreatedResponse:
    """Create one user, or one user per list item.

    Returns:
        CreatedResponse: The new id, or the new ids in input order.
    """
    connector = request.app.state.connector
    created = await connector.create(MODEL_NAME, body)
    if isinstance(created, list):
        return CreatedResponse(ids=created)
    return CreatedResponse(id=created)


@router.get("")
async def list_users(request: Request, filter: str | None = None) -> list[dict]:
    """Return all users matching the JSON encoded filter (where / include / limit)."""
    connector = request.app.state.connector
    records = await connector.all(MODEL_NAME, _parse_json_param("filter", filter))
    return [record.to_json() for record in records]


@router.put("")
async def upsert_user(request: Request, body: dict[str, Any] = Body(...)) -> dict:
    """Update the user identified by id or email, or create it."""
    connector = request.app.state.connector
    record = await connector.update_or_create(MODEL_NAME, body)
    return record.to_json()


@router.delete("")
async def delete_users(request: Request, where: str | None = None) -> CountResponse:
    """Delete all users matching the JSON encoded where clause."""
    connector = request.app.state.connector
    count = await connector.destroy_all(MODEL_NAME, _parse_json_param("where", where))
    return CountResponse(count=count)


@router.get("/count")
async def count_users(request: Request, where: str | None = None) -> CountResponse:
    connector = request.app.state.connector
    count = await connector.count(MODEL_NAME, _parse_json_param("where", where))
    return CountResponse(count=count)


@router.post("/update")
async def update_users(request: Request, where: str | None = None, body: dict[str, Any] = Body(...)) -> CountResponse:
    """Overlay the body onto every user matching the JSON encoded where clause."""
    connector = request.app.state.connector
    count = await connector.update_all(MODEL_NAME, _parse_json_param("where", where), body)
    return CountResponse(count=count)


@router.post("/login")
async def login(request: Request, body: LoginRequest) -> dict:
    connector = request.app.state.connector
    record = await connector.authenticate(MODEL_NAME, body.username, body.password)
    return record.to_json()


@router.get("/{user_id}")
async def get_user(request: Request, user_id: str, include: str | None = None) -> dict:
    """Return a single user. `include` is a comma separated list of related data to expand."""
    connector = request.app.state.connector
    expand = [name.strip() for name in include.split(",")] if include else None
    record = await connector.find(MODEL_NAME, user_id, include=expand)
    return record.to_json()


@router.get("/{user_id}/exists")
async def user_exists(request: Request, user_id: str) -> ExistsResponse:
    connector = request.app.state.connector
    return ExistsResponse(exists=await connector.exists(MODEL_NAME, user_id))


@router.put("/{user_id}")
async def save_user(request: Request, user_id: str, body: dict[str, Any] = Body(...)) -> SavedResponse:
    """Write the body back to the user with the given id."""
    connector = request.app.state.connector
    saved = await connector.save(MODEL_NAME, {**body, "id": user_id})
    return SavedResponse(saved=saved)
