"""Layout routes — per-user column order, visibility and footer credit."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ...dependencies import get_row_store
from ...engine.row_store import SqlRowStore

router = APIRouter(prefix="/layout", tags=["layout"])


# --- Request bodies ---

class SaveLayoutRequest(BaseModel):
    userId: str = Field(min_length=1, max_length=128)
    columnOrder: Optional[list[str]] = None
    columnVisibility: Optional[list[str]] = None
    creatorName: Optional[str] = Field(default=None, max_length=255)
    creatorUrl: Optional[str] = Field(default=None, max_length=1024)


# --- Endpoints ---

@router.get("")
async def get_layout(
    userId: str = Query(..., min_length=1),
    store: SqlRowStore = Depends(get_row_store),
):
    """Stored layout for a user; 404 when the user never saved one."""
    return (await store.get_layout(userId)).to_dict()


@router.post("")
async def save_layout(body: SaveLayoutRequest, store: SqlRowStore = Depends(get_row_store)):
    """Upsert. Fields left out of the body keep their stored values."""
    layout = body.model_dump(exclude_unset=True, exclude={"userId"})
    return (await store.save_layout(body.userId, layout)).to_dict()
