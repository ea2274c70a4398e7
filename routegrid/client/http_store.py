"""HTTP Row Store — the row store contract spoken over the REST API.

Failures are mapped back onto the engine error taxonomy so callers cannot
tell this store apart from the in-process SQL store.
"""

from typing import Any, Optional

import httpx

from ..engine.errors import (
    GridError,
    NotFoundError,
    ProtectedMutationError,
    StoreUnavailableError,
    StoreValidationError,
)
from ..engine.layout import LayoutState
from ..engine.records import GridColumn, GridRow
from ..utils.logging import get_logger

logger = get_logger("client.http_store")


class HttpRowStore:
    """Async client for ``/api/v1`` of a RouteGrid server.

    Pass ``client`` to share a connection pool or to drive an ASGI app
    in-process; otherwise one is created lazily and closed by ``aclose``.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:8000/api/v1",
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpRowStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await self._get_client().request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise self._map_status(exc.response) from exc
        except httpx.HTTPError as exc:
            logger.error("row_store_transport_error", method=method, path=path, error=str(exc))
            raise StoreUnavailableError(f"Could not reach the row store: {exc}") from exc

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _map_status(response: httpx.Response) -> GridError:
        status = response.status_code
        message = f"HTTP {status}"
        field_errors: dict = {}
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = body.get("detail")
            if isinstance(detail, dict):
                message = str(detail.get("message") or message)
                field_errors = detail.get("fieldErrors") or {}
            elif detail:
                message = str(detail)

        logger.warning("row_store_http_error", status=status, detail=message)
        if status in (400, 422):
            return StoreValidationError(message, field_errors)
        if status == 409:
            return StoreValidationError(message, field_errors, status_code=409)
        if status == 404:
            return NotFoundError(message)
        if status == 403:
            return ProtectedMutationError(message)
        return StoreUnavailableError(message)

    # --- Rows ---

    async def list_rows(self) -> list[GridRow]:
        data = await self._request("GET", "/table-rows")
        return [GridRow.from_dict(item) for item in data]

    async def get_row(self, row_id: str) -> GridRow:
        return GridRow.from_dict(await self._request("GET", f"/table-rows/{row_id}"))

    async def create_row(self, data: dict) -> GridRow:
        return GridRow.from_dict(await self._request("POST", "/table-rows", json=data))

    async def update_row(self, row_id: str, updates: dict) -> GridRow:
        return GridRow.from_dict(await self._request("PATCH", f"/table-rows/{row_id}", json=updates))

    async def delete_row(self, row_id: str) -> None:
        await self._request("DELETE", f"/table-rows/{row_id}")

    async def reorder_rows(self, row_ids: list[str]) -> list[GridRow]:
        data = await self._request("POST", "/table-rows/reorder", json={"rowIds": list(row_ids)})
        return [GridRow.from_dict(item) for item in data]

    # --- Images ---

    async def add_image(self, row_id: str, url: str, caption: str = "") -> GridRow:
        data = await self._request(
            "POST", f"/table-rows/{row_id}/images", json={"imageUrl": url, "caption": caption}
        )
        return GridRow.from_dict(data)

    async def update_image(
        self,
        row_id: str,
        index: int,
        url: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> GridRow:
        body: dict[str, str] = {}
        if url is not None:
            body["imageUrl"] = url
        if caption is not None:
            body["caption"] = caption
        data = await self._request("PATCH", f"/table-rows/{row_id}/images/{index}", json=body)
        return GridRow.from_dict(data)

    async def delete_image(self, row_id: str, index: Optional[int] = None) -> GridRow:
        path = f"/table-rows/{row_id}/images" if index is None else f"/table-rows/{row_id}/images/{index}"
        return GridRow.from_dict(await self._request("DELETE", path))

    # --- Columns ---

    async def list_columns(self) -> list[GridColumn]:
        data = await self._request("GET", "/table-columns")
        return [GridColumn.from_dict(item) for item in data]

    async def get_column(self, column_id: str) -> GridColumn:
        return GridColumn.from_dict(await self._request("GET", f"/table-columns/{column_id}"))

    async def create_column(self, data: dict) -> GridColumn:
        return GridColumn.from_dict(await self._request("POST", "/table-columns", json=data))

    async def update_column(self, column_id: str, updates: dict) -> GridColumn:
        return GridColumn.from_dict(
            await self._request("PATCH", f"/table-columns/{column_id}", json=updates)
        )

    async def delete_column(self, column_id: str) -> None:
        await self._request("DELETE", f"/table-columns/{column_id}")

    async def reorder_columns(self, column_ids: list[str]) -> list[GridColumn]:
        data = await self._request(
            "POST", "/table-columns/reorder", json={"columnIds": list(column_ids)}
        )
        return [GridColumn.from_dict(item) for item in data]

    # --- Layout preferences ---

    async def get_layout(self, user_id: str) -> LayoutState:
        data = await self._request("GET", "/layout", params={"userId": user_id})
        return LayoutState.from_dict(data)

    async def save_layout(self, user_id: str, layout: dict) -> LayoutState:
        data = await self._request("POST", "/layout", json={"userId": user_id, **layout})
        return LayoutState.from_dict(data)
