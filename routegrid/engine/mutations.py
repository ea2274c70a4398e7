"""Mutation Coordinator — gated, confirmed, notified writes against a row store.

Every write goes through ``_run``. Edits are gated on the edit session;
reorders (drag gestures and sorts) are not. The (operation, target) pair is
marked pending for the duration of the call, a store failure becomes one
destructive notification naming the action, and the cached collections are
invalidated after every success. Nothing is retried and nothing is rolled
back; the next fetch is the reconciliation.
"""

import inspect
from collections import Counter
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, Union

from ..auth.edit_session import EditSession
from ..utils.logging import get_logger
from .columns import CORE_DATA_KEYS
from .errors import GridError, NotFoundError, ProtectedMutationError, StoreValidationError
from .notifications import Notifier
from .records import DEFAULT_DEPOT_LOCATION, GridColumn, GridRow
from .sorting import SortState, merge_subsequence, move_item, sort_rows

logger = get_logger("engine.mutations")

ConfirmFn = Callable[[str], Union[bool, Awaitable[bool]]]

DEFAULT_COLUMN_KEY = "newColumn"
DEFAULT_COLUMN_NAME = "New Column"


@dataclass
class MutationResult:
    ok: bool
    value: Any = None
    error: Optional[GridError] = None
    declined: bool = False


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


def unique_data_key(existing: Iterable[str], base: str = DEFAULT_COLUMN_KEY) -> str:
    """``base``, then ``base2``, ``base3``... whichever is free first."""
    taken = set(existing)
    if base not in taken:
        return base
    suffix = 2
    while f"{base}{suffix}" in taken:
        suffix += 1
    return f"{base}{suffix}"


class MutationCoordinator:
    """Translates user intents into row store calls."""

    def __init__(
        self,
        store,
        edit_session: EditSession,
        notifier: Optional[Notifier] = None,
        confirm: Optional[ConfirmFn] = None,
        on_invalidate: Optional[Callable[[], Any]] = None,
        depot_location: str = DEFAULT_DEPOT_LOCATION,
    ):
        self._store = store
        self._edit_session = edit_session
        self._notifier = notifier or Notifier()
        self._confirm = confirm
        self._on_invalidate = on_invalidate
        self._depot_location = depot_location
        self._pending: Counter = Counter()

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def pending(self) -> frozenset[tuple[str, str]]:
        return frozenset(key for key, count in self._pending.items() if count > 0)

    def is_pending(self, operation: str, target_id: str) -> bool:
        return self._pending[(operation, target_id)] > 0

    def set_on_invalidate(self, fn: Callable[[], Any]) -> None:
        self._on_invalidate = fn

    # --- Plumbing ---

    async def _invalidate(self) -> None:
        if self._on_invalidate is not None:
            await _maybe_await(self._on_invalidate())

    def _reject(self, action: str, error: GridError) -> MutationResult:
        logger.info("mutation_rejected", action=action, reason=error.message)
        self._notifier.error(f"Cannot {action}", error.message)
        return MutationResult(ok=False, error=error)

    def _gate(self, action: str) -> Optional[MutationResult]:
        try:
            self._edit_session.require_edit(action)
        except ProtectedMutationError as e:
            return self._reject(action, e)
        return None

    async def _confirmed(self, message: str) -> bool:
        if self._confirm is None:
            return False
        return bool(await _maybe_await(self._confirm(message)))

    async def _run(
        self,
        operation: str,
        target_id: str,
        action: str,
        call: Callable[[], Awaitable[Any]],
        success_message: Optional[str] = None,
        gated: bool = True,
    ) -> MutationResult:
        if gated:
            rejected = self._gate(action)
            if rejected is not None:
                return rejected

        key = (operation, target_id)
        self._pending[key] += 1
        try:
            value = await call()
        except GridError as e:
            logger.warning("mutation_failed", operation=operation, target=target_id, error=e.message)
            self._notifier.error(f"Failed to {action}", e.message)
            if isinstance(e, NotFoundError):
                await self._invalidate()
            return MutationResult(ok=False, error=e)
        finally:
            self._pending[key] -= 1
            if self._pending[key] <= 0:
                del self._pending[key]

        await self._invalidate()
        if success_message:
            self._notifier.success(success_message)
        logger.debug("mutation_succeeded", operation=operation, target=target_id)
        return MutationResult(ok=True, value=value)

    # --- Rows ---

    async def create_row(self, data: Optional[dict] = None, position: Optional[int] = None) -> MutationResult:
        """Create a row; with ``position`` (1-based) move it there afterwards.

        The create and the move are separate writes. When only the move
        fails the row exists at the end of the order: the result carries it
        with ``ok=False`` and the failure is reported as a failed move.
        """
        payload = dict(data or {})
        created = await self._run(
            "create_row", "new", "add row", lambda: self._store.create_row(payload), "Row added"
        )
        if not created.ok or position is None:
            return created

        row = created.value

        async def place():
            rows = await self._store.list_rows()
            ids = [r.id for r in rows if r.id != row.id]
            index = max(0, min(position - 1, len(ids)))
            ids.insert(index, row.id)
            await self._store.reorder_rows(ids)
            return await self._store.get_row(row.id)

        placed = await self._run("reorder_rows", row.id, "move row", place, gated=False)
        if not placed.ok:
            return MutationResult(ok=False, value=row, error=placed.error)
        return placed

    async def update_row(
        self,
        row_id: str,
        updates: dict,
        current: Optional[GridRow] = None,
    ) -> MutationResult:
        if current is not None and "no" in updates and current.is_depot(self._depot_location):
            return self._reject(
                "update row", ProtectedMutationError("The depot row's number cannot be edited")
            )
        return await self._run(
            "update_row", row_id, "update row",
            lambda: self._store.update_row(row_id, dict(updates)),
        )

    async def delete_row(self, row_id: str) -> MutationResult:
        rejected = self._gate("delete row")
        if rejected is not None:
            return rejected
        if not await self._confirmed("Delete this row? This cannot be undone."):
            logger.info("row_delete_declined", id=row_id)
            return MutationResult(ok=False, declined=True)

        async def call():
            await self._store.delete_row(row_id)

        return await self._run("delete_row", row_id, "delete row", call, "Row deleted")

    async def reorder_rows(self, row_ids: Sequence[str]) -> MutationResult:
        ids = list(row_ids)
        return await self._run(
            "reorder_rows", "rows", "reorder rows", lambda: self._store.reorder_rows(ids), gated=False
        )

    async def move_row(
        self,
        view_ids: Sequence[str],
        full_ids: Sequence[str],
        source_index: int,
        dest_index: int,
    ) -> MutationResult:
        """Persist one drag gesture over the visible rows as a full reorder."""
        if source_index == dest_index:
            return MutationResult(ok=True)
        try:
            moved = move_item(view_ids, source_index, dest_index)
            ids = merge_subsequence(full_ids, moved)
        except (IndexError, ValueError) as e:
            return self._reject("reorder rows", StoreValidationError(str(e)))
        return await self.reorder_rows(ids)

    async def apply_sort(
        self,
        view_rows: Sequence,
        full_ids: Optional[Sequence[str]],
        state: Optional[SortState],
    ) -> MutationResult:
        """Persist a sort of the visible rows as the new canonical order.

        The depot stays in front. With ``full_ids`` the sorted rows are merged
        back into the slots they hold in the complete sequence.
        """
        if state is None:
            return MutationResult(ok=True)
        depot = [r for r in view_rows if getattr(r, "row", r).is_depot(self._depot_location)]
        others = [r for r in view_rows if not getattr(r, "row", r).is_depot(self._depot_location)]
        sorted_ids = [r.id for r in depot] + [r.id for r in sort_rows(others, state)]
        try:
            ids = merge_subsequence(full_ids, sorted_ids) if full_ids is not None else sorted_ids
        except ValueError as e:
            return self._reject("sort rows", StoreValidationError(str(e)))
        logger.info("sort_applied", column=state.column, direction=state.direction, count=len(sorted_ids))
        return await self.reorder_rows(ids)

    # --- Images ---

    async def add_image(self, row_id: str, url: str, caption: str = "") -> MutationResult:
        if not url or not url.strip():
            return self._reject("add image", StoreValidationError("Image URL is required", {"imageUrl": "required"}))
        return await self._run(
            "add_image", row_id, "add image",
            lambda: self._store.add_image(row_id, url.strip(), caption or ""),
            "Image added",
        )

    async def update_image(
        self,
        row_id: str,
        index: int,
        url: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> MutationResult:
        if url is not None and not url.strip():
            return self._reject("update image", StoreValidationError("Image URL cannot be empty", {"imageUrl": "empty"}))
        return await self._run(
            "update_image", row_id, "update image",
            lambda: self._store.update_image(row_id, index, url=url, caption=caption),
        )

    async def delete_image(self, row_id: str, index: Optional[int] = None) -> MutationResult:
        return await self._run(
            "delete_image", row_id, "delete image",
            lambda: self._store.delete_image(row_id, index),
            "Images cleared" if index is None else "Image deleted",
        )

    # --- Columns ---

    async def create_column(
        self,
        name: Optional[str] = None,
        data_key: Optional[str] = None,
        column_type: str = "text",
        options: Optional[list[str]] = None,
        existing: Optional[Iterable[GridColumn]] = None,
    ) -> MutationResult:
        """Append a column. Missing name/key get unique generated defaults."""

        async def call():
            columns = list(existing) if existing is not None else await self._store.list_columns()
            key = data_key or unique_data_key(c.data_key for c in columns)
            label = name or (DEFAULT_COLUMN_NAME if key == DEFAULT_COLUMN_KEY
                             else f"{DEFAULT_COLUMN_NAME} {key[len(DEFAULT_COLUMN_KEY):]}")
            return await self._store.create_column({
                "name": label,
                "dataKey": key,
                "type": column_type,
                "isEditable": "true",
                "options": list(options or []),
            })

        return await self._run("create_column", "new", "add column", call, "Column added")

    async def update_column(self, column_id: str, updates: dict) -> MutationResult:
        return await self._run(
            "update_column", column_id, "update column",
            lambda: self._store.update_column(column_id, dict(updates)),
        )

    async def delete_column(self, column: Union[GridColumn, str]) -> MutationResult:
        """Delete a column after confirmation. Core columns are refused locally."""
        rejected = self._gate("delete column")
        if rejected is not None:
            return rejected
        if isinstance(column, str):
            try:
                column = await self._store.get_column(column)
            except GridError as e:
                self._notifier.error("Failed to delete column", e.message)
                if isinstance(e, NotFoundError):
                    await self._invalidate()
                return MutationResult(ok=False, error=e)

        if column.data_key in CORE_DATA_KEYS:
            return self._reject(
                "delete column", ProtectedMutationError(f"'{column.name}' is a core column")
            )
        if not await self._confirmed(f"Delete column '{column.name}'? Its values will be hidden."):
            logger.info("column_delete_declined", id=column.id)
            return MutationResult(ok=False, declined=True)

        async def call():
            await self._store.delete_column(column.id)

        return await self._run("delete_column", column.id, "delete column", call, "Column deleted")

    async def reorder_columns(self, column_ids: Sequence[str]) -> MutationResult:
        ids = list(column_ids)
        return await self._run(
            "reorder_columns", "columns", "reorder columns", lambda: self._store.reorder_columns(ids),
            gated=False,
        )

    async def move_column(self, column_ids: Sequence[str], source_index: int, dest_index: int) -> MutationResult:
        if source_index == dest_index:
            return MutationResult(ok=True)
        try:
            ids = move_item(column_ids, source_index, dest_index)
        except IndexError as e:
            return self._reject("reorder columns", StoreValidationError(str(e)))
        return await self.reorder_columns(ids)
