"""Table row routes — row CRUD, reorder and the nested image collection."""

from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field

from ...dependencies import get_row_store
from ...engine.row_store import SqlRowStore

router = APIRouter(prefix="/table-rows", tags=["table-rows"])


# --- Request bodies ---

class ImagePayload(BaseModel):
    url: str = Field(min_length=1)
    caption: str = ""
    type: Optional[str] = None
    thumbnail: Optional[str] = None


class RowFieldsRequest(BaseModel):
    """Fixed row fields plus any runtime-added column keys."""

    model_config = ConfigDict(extra="allow")

    no: Optional[int] = None
    images: Optional[list[ImagePayload]] = None
    extraFields: Optional[dict[str, str]] = None


class ReorderRowsRequest(BaseModel):
    rowIds: list[str]


class AddImageRequest(BaseModel):
    imageUrl: Optional[str] = None
    caption: str = ""


class UpdateImageRequest(BaseModel):
    imageUrl: Optional[str] = None
    caption: Optional[str] = None


# --- Endpoints ---

@router.get("")
async def list_rows(store: SqlRowStore = Depends(get_row_store)):
    """All rows in persisted order."""
    return [row.to_dict() for row in await store.list_rows()]


@router.post("", status_code=201)
async def create_row(body: RowFieldsRequest, store: SqlRowStore = Depends(get_row_store)):
    row = await store.create_row(body.model_dump(exclude_unset=True))
    return row.to_dict()


@router.post("/reorder")
async def reorder_rows(body: ReorderRowsRequest, store: SqlRowStore = Depends(get_row_store)):
    """Rewrite sortOrder to follow the given id sequence."""
    return [row.to_dict() for row in await store.reorder_rows(body.rowIds)]


@router.get("/{row_id}")
async def get_row(row_id: str, store: SqlRowStore = Depends(get_row_store)):
    return (await store.get_row(row_id)).to_dict()


@router.patch("/{row_id}")
async def update_row(row_id: str, body: RowFieldsRequest, store: SqlRowStore = Depends(get_row_store)):
    row = await store.update_row(row_id, body.model_dump(exclude_unset=True))
    return row.to_dict()


@router.delete("/{row_id}", status_code=204)
async def delete_row(row_id: str, store: SqlRowStore = Depends(get_row_store)):
    await store.delete_row(row_id)
    return Response(status_code=204)


@router.post("/{row_id}/images", status_code=201)
async def add_image(row_id: str, body: AddImageRequest, store: SqlRowStore = Depends(get_row_store)):
    row = await store.add_image(row_id, body.imageUrl or "", body.caption)
    return row.to_dict()


@router.patch("/{row_id}/images/{index}")
async def update_image(
    row_id: str,
    index: int,
    body: UpdateImageRequest,
    store: SqlRowStore = Depends(get_row_store),
):
    row = await store.update_image(row_id, index, url=body.imageUrl, caption=body.caption)
    return row.to_dict()


@router.delete("/{row_id}/images")
async def clear_images(row_id: str, store: SqlRowStore = Depends(get_row_store)):
    """Remove every image of the row."""
    return (await store.delete_image(row_id)).to_dict()


@router.delete("/{row_id}/images/{index}")
async def delete_image(row_id: str, index: int, store: SqlRowStore = Depends(get_row_store)):
    return (await store.delete_image(row_id, index)).to_dict()
