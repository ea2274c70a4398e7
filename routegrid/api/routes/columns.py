"""Table column routes — column definitions and their shared order."""

from typing import Optional, Union

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from ...dependencies import get_row_store
from ...engine.row_store import SqlRowStore

router = APIRouter(prefix="/table-columns", tags=["table-columns"])


# --- Request bodies ---

class CreateColumnRequest(BaseModel):
    name: str = ""
    dataKey: str = ""
    type: str = "text"
    isEditable: Union[str, bool] = "true"
    options: list[str] = []


class UpdateColumnRequest(BaseModel):
    name: Optional[str] = None
    dataKey: Optional[str] = None
    type: Optional[str] = None
    isEditable: Optional[Union[str, bool]] = None
    options: Optional[list[str]] = None


class ReorderColumnsRequest(BaseModel):
    columnIds: list[str]


# --- Endpoints ---

@router.get("")
async def list_columns(store: SqlRowStore = Depends(get_row_store)):
    return [column.to_dict() for column in await store.list_columns()]


@router.post("", status_code=201)
async def create_column(body: CreateColumnRequest, store: SqlRowStore = Depends(get_row_store)):
    """Append a column. A dataKey already in use is answered with 409."""
    column = await store.create_column(body.model_dump())
    return column.to_dict()


@router.post("/reorder")
async def reorder_columns(body: ReorderColumnsRequest, store: SqlRowStore = Depends(get_row_store)):
    return [column.to_dict() for column in await store.reorder_columns(body.columnIds)]


@router.get("/{column_id}")
async def get_column(column_id: str, store: SqlRowStore = Depends(get_row_store)):
    return (await store.get_column(column_id)).to_dict()


@router.patch("/{column_id}")
async def update_column(
    column_id: str,
    body: UpdateColumnRequest,
    store: SqlRowStore = Depends(get_row_store),
):
    column = await store.update_column(column_id, body.model_dump(exclude_unset=True))
    return column.to_dict()


@router.delete("/{column_id}", status_code=204)
async def delete_column(column_id: str, store: SqlRowStore = Depends(get_row_store)):
    """Delete a column. Core columns are refused with 403."""
    await store.delete_column(column_id)
    return Response(status_code=204)
