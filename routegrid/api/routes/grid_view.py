"""Grid view route — server-side composition of one grid page."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ...config import RouteGridConfig
from ...dependencies import get_app_config, get_row_store
from ...engine.composer import ViewState, compose
from ...engine.errors import NotFoundError
from ...engine.layout import sanitize_layout
from ...engine.row_store import SqlRowStore

router = APIRouter(prefix="/view", tags=["view"])


@router.get("")
async def get_view(
    search: str = "",
    route: list[str] = Query(default=[]),
    excludeTrip: list[str] = Query(default=[]),
    page: int = Query(1, ge=1),
    pageSize: Optional[int] = None,
    userId: Optional[str] = None,
    store: SqlRowStore = Depends(get_row_store),
    config: RouteGridConfig = Depends(get_app_config),
):
    """Filtered, distance-annotated, paginated rows and the visible columns."""
    page_size = pageSize or config.default_page_size
    if page_size not in config.page_size_options:
        raise HTTPException(
            status_code=400,
            detail=f"pageSize must be one of {config.page_size_options}",
        )

    rows = await store.list_rows()
    columns = await store.list_columns()

    visible = order = None
    if userId:
        try:
            layout = sanitize_layout(await store.get_layout(userId), columns)
            visible, order = layout.column_visibility, layout.column_order
        except NotFoundError:
            # No saved layout: default order, all columns visible
            pass

    state = ViewState(
        search_term=search,
        route_filter=set(route),
        trip_filter=set(excludeTrip),
        visible_columns=visible,
        column_order=order,
        page=page,
        page_size=page_size,
    )
    return compose(rows, columns, state, config.depot_location).to_dict()
