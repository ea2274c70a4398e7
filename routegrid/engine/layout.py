"""Layout Preferences — per-user column order/visibility with a local fallback cache."""

import json
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Iterable, Optional

from ..utils.logging import get_logger
from .columns import default_order
from .errors import GridError, ProtectedMutationError
from .records import GridColumn

logger = get_logger("engine.layout")

DEFAULT_CREATOR_NAME = "Somebody"


@dataclass
class LayoutState:
    column_order: list[str] = field(default_factory=list)
    column_visibility: list[str] = field(default_factory=list)
    creator_name: Optional[str] = None
    creator_url: Optional[str] = None

    @property
    def footer_name(self) -> str:
        return self.creator_name or DEFAULT_CREATOR_NAME

    @classmethod
    def from_dict(cls, data: dict) -> "LayoutState":
        return cls(
            column_order=[str(cid) for cid in data.get("columnOrder") or []],
            column_visibility=[str(cid) for cid in data.get("columnVisibility") or []],
            creator_name=data.get("creatorName"),
            creator_url=data.get("creatorUrl"),
        )

    def to_dict(self) -> dict:
        return {
            "columnOrder": list(self.column_order),
            "columnVisibility": list(self.column_visibility),
            "creatorName": self.creator_name,
            "creatorUrl": self.creator_url,
        }


def default_layout(columns: Iterable[GridColumn]) -> LayoutState:
    ordered = [c.id for c in default_order(columns)]
    return LayoutState(column_order=ordered, column_visibility=list(ordered))


def sanitize_layout(state: LayoutState, columns: Iterable[GridColumn]) -> LayoutState:
    """Reconcile a stored layout with the current column collection.

    Ids of deleted columns are dropped. Columns the layout has never seen
    are appended to the order and shown. An empty order or an empty visible
    set falls back to the defaults.
    """
    columns = list(columns)
    defaults = default_layout(columns)
    known = set(defaults.column_order)

    order: list[str] = []
    for cid in state.column_order:
        if cid in known and cid not in order:
            order.append(cid)
    if not order:
        return replace(defaults, creator_name=state.creator_name, creator_url=state.creator_url)

    new_ids = [cid for cid in defaults.column_order if cid not in order]
    order.extend(new_ids)

    shown = set(state.column_visibility) | set(new_ids)
    visible = [cid for cid in order if cid in shown]
    if not visible:
        visible = list(defaults.column_visibility)

    return LayoutState(
        column_order=order,
        column_visibility=visible,
        creator_name=state.creator_name,
        creator_url=state.creator_url,
    )


class LocalLayoutCache:
    """JSON file holding the last applied layout per user."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("layout_cache_read_failed", path=str(self._path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, user_id: str) -> Optional[LayoutState]:
        entry = self._read_all().get(user_id)
        if not isinstance(entry, dict):
            return None
        return LayoutState.from_dict(entry)

    def put(self, user_id: str, state: LayoutState) -> None:
        data = self._read_all()
        data[user_id] = state.to_dict()
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            logger.warning("layout_cache_write_failed", path=str(self._path), error=str(e))


class LayoutPreferences:
    """Loads and persists one user's column layout.

    Reads go remote store -> local cache -> computed defaults and never fail.
    Writes go to the local cache first, then to the remote store.
    """

    def __init__(self, store, cache: Optional[LocalLayoutCache], user_id: str):
        self._store = store
        self._cache = cache
        self._user_id = user_id
        self._state: Optional[LayoutState] = None

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def state(self) -> Optional[LayoutState]:
        return self._state

    async def load(self, columns: Iterable[GridColumn]) -> LayoutState:
        columns = list(columns)
        stored: Optional[LayoutState] = None
        source = "defaults"
        try:
            stored = await self._store.get_layout(self._user_id)
            source = "remote"
        except GridError as e:
            logger.info("layout_remote_unavailable", user_id=self._user_id, error=e.message)
            if self._cache is not None:
                stored = self._cache.get(self._user_id)
                if stored is not None:
                    source = "cache"

        if stored is None:
            self._state = default_layout(columns)
        else:
            self._state = sanitize_layout(stored, columns)
        logger.debug("layout_loaded", user_id=self._user_id, source=source)
        return self._state

    def reconcile(self, columns: Iterable[GridColumn]) -> Optional[LayoutState]:
        """Re-sanitize the in-memory layout after the column collection changed.

        Nothing is persisted; the next explicit save carries the result.
        """
        if self._state is not None:
            self._state = sanitize_layout(self._state, columns)
        return self._state

    async def apply(
        self,
        visible_ids: Iterable[str],
        order: Iterable[str],
        columns: Optional[Iterable[GridColumn]] = None,
    ) -> LayoutState:
        """Persist a visibility/order customization.

        Raises ProtectedMutationError for an empty visible set and re-raises
        remote store failures after the local cache has been written.
        """
        visible = list(dict.fromkeys(visible_ids))
        ordered = list(dict.fromkeys(order))
        if not visible:
            raise ProtectedMutationError("At least one column must remain visible")

        current = self._state or LayoutState()
        state = LayoutState(
            column_order=ordered,
            column_visibility=[cid for cid in ordered if cid in visible]
            + [cid for cid in visible if cid not in ordered],
            creator_name=current.creator_name,
            creator_url=current.creator_url,
        )
        if columns is not None:
            state = sanitize_layout(state, columns)

        self._state = state
        if self._cache is not None:
            self._cache.put(self._user_id, state)
        await self._store.save_layout(self._user_id, {
            "columnOrder": state.column_order,
            "columnVisibility": state.column_visibility,
        })
        logger.info("layout_applied", user_id=self._user_id, visible=len(state.column_visibility))
        return state

    async def save_footer(self, creator_name: Optional[str], creator_url: Optional[str]) -> LayoutState:
        current = self._state or LayoutState()
        state = replace(current, creator_name=creator_name or None, creator_url=creator_url or None)
        self._state = state
        if self._cache is not None:
            self._cache.put(self._user_id, state)
        await self._store.save_layout(self._user_id, {
            "creatorName": state.creator_name,
            "creatorUrl": state.creator_url,
        })
        logger.info("layout_footer_saved", user_id=self._user_id)
        return state

    async def reset(self, columns: Iterable[GridColumn]) -> LayoutState:
        defaults = default_layout(columns)
        return await self.apply(defaults.column_visibility, defaults.column_order)
