from pydantic import BaseModel


class CreatedResponse(BaseModel):
    id: str | None = None
    ids: list[str] | None = None


class CountResponse(BaseModel):
    count: int


class ExistsResponse(BaseModel):
    exists: bool


class SavedResponse(BaseModel):
    saved: bool
