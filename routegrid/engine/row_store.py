"""Row Store — SQL persistence for rows, columns, images and layouts.

Every public method opens its own session from the injected factory, so the
store can be shared by the API routes and an in-process DataGrid session.
"""

import uuid
from dataclasses import replace
from typing import Any, Iterable, Optional

from sqlalchemy import func as sa_func
from sqlalchemy import select

from ..models.layout_preference import LayoutPreference
from ..models.table_column import TableColumn
from ..models.table_row import TableRow
from ..utils.logging import get_logger
from .columns import CORE_DATA_KEYS, DEFAULT_COLUMNS
from .errors import NotFoundError, ProtectedMutationError, StoreValidationError
from .info_codec import normalize_url, pack_info
from .layout import LayoutState
from .records import (
    COLUMN_TYPES,
    DEFAULT_DEPOT_LOCATION,
    ROW_FIELD_MAP,
    GridColumn,
    GridImage,
    GridRow,
    InfoRecord,
    parse_flag,
)

logger = get_logger("engine.row_store")

_TEXT_ROW_FIELDS = (
    "route", "code", "location", "delivery", "trip", "alt1", "alt2",
    "tng_site", "tng_route", "destination", "toll_price",
)
_IMMUTABLE_ROW_KEYS = {"id", "sortOrder"}

SAMPLE_ROWS: list[dict] = [
    {
        "no": 0, "route": "", "code": "", "location": "QL kitchen",
        "delivery": "", "trip": "", "alt1": "", "alt2": "",
        "info": "Central kitchen and dispatch point",
        "latitude": "3.1390", "longitude": "101.6869",
    },
    {
        "no": 1, "route": "KL-01", "code": "CODE001", "location": "Kuala Lumpur",
        "delivery": "Same Day", "trip": "Daily", "alt1": "Alternative 1", "alt2": "Alternative 2",
        "info": "Sample information for row 1", "tngSite": "TnG KL Central", "tngRoute": "Central-North",
        "latitude": "3.1579", "longitude": "101.7116",
        "images": [
            {"url": "https://images.unsplash.com/photo-1559827260-dc66d52bef19?w=800&h=600", "caption": "Modern city skyline"},
            {"url": "https://images.unsplash.com/photo-1573167507387-4d8c0a67ceb2?w=800&h=600", "caption": "Urban landscape"},
        ],
    },
    {
        "no": 2, "route": "SG-02", "code": "CODE002", "location": "Selangor",
        "delivery": "Next Day", "trip": "Weekday", "alt1": "Alt Option 1", "alt2": "Alt Option 2",
        "info": "Details for Selangor route", "tngSite": "TnG Shah Alam", "tngRoute": "Central-West",
        "latitude": "3.0738", "longitude": "101.5183",
        "images": [
            {"url": "https://images.unsplash.com/photo-1560472355-536de3962603?w=800&h=600", "caption": "Suburban area"},
        ],
    },
    {
        "no": 3, "route": "JB-03", "code": "CODE003", "location": "Johor Bahru",
        "delivery": "2-3 Days", "trip": "Alt 1", "alt1": "JB Alternative", "alt2": "South Route",
        "info": "Information about Johor Bahru delivery", "tngSite": "TnG JB Plaza", "tngRoute": "South-East",
        "latitude": "1.4927", "longitude": "103.7414",
    },
    {
        "no": 4, "route": "PG-04", "code": "CODE004", "location": "Penang",
        "delivery": "Same Day", "trip": "Alt 2", "alt1": "Penang Alt", "alt2": "Georgetown",
        "info": "Penang delivery information", "tngSite": "TnG Georgetown", "tngRoute": "North-West",
        "latitude": "5.4141", "longitude": "100.3288",
        "images": [
            {"url": "https://images.unsplash.com/photo-1571019613454-1cb2f99b2d8b?w=800&h=600", "caption": "Georgetown bridge"},
        ],
    },
    {
        "no": 5, "route": "KT-05", "code": "CODE005", "location": "Kota Kinabalu",
        "delivery": "3-5 Days", "trip": "Daily", "alt1": "KK Option", "alt2": "Sabah Route",
        "info": "Extended delivery to East Malaysia", "tngSite": "TnG KK Mall", "tngRoute": "East-North",
        "latitude": "5.9804", "longitude": "116.0735",
    },
]


class SqlRowStore:
    """Relational implementation of the row store contract."""

    def __init__(self, db_session_factory=None, depot_location: str = DEFAULT_DEPOT_LOCATION):
        self._db_session_factory = db_session_factory
        self._depot_location = depot_location

    def set_db_session_factory(self, factory) -> None:
        self._db_session_factory = factory

    # --- Rows ---

    async def list_rows(self) -> list[GridRow]:
        async with self._db_session_factory() as session:
            result = await session.execute(
                select(TableRow).order_by(TableRow.sort_order, TableRow.id)
            )
            return [self._to_row(r) for r in result.scalars().all()]

    async def get_row(self, row_id: str) -> GridRow:
        async with self._db_session_factory() as session:
            row = await self._load_row(session, row_id)
            return self._to_row(row)

    async def create_row(self, data: dict) -> GridRow:
        """Create a row at the end of the persisted order."""
        async with self._db_session_factory() as session:
            max_order = (await session.execute(
                select(sa_func.max(TableRow.sort_order))
            )).scalar()
            row = TableRow(
                id=str(uuid.uuid4()),
                no=0,
                info="",
                images_json=[],
                extra_fields_json={},
                sort_order=(max_order if max_order is not None else -1) + 1,
            )
            for attr in _TEXT_ROW_FIELDS:
                setattr(row, attr, "")
            self._apply_row_updates(row, data)
            await self._ensure_single_depot(session, row)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            result = self._to_row(row)

        logger.info("row_created", id=result.id, sort_order=result.sort_order)
        return result

    async def update_row(self, row_id: str, updates: dict) -> GridRow:
        """Partial update. ``id`` and ``sortOrder`` cannot be changed here."""
        async with self._db_session_factory() as session:
            row = await self._load_row(session, row_id)
            self._apply_row_updates(row, updates)
            await self._ensure_single_depot(session, row)
            await session.commit()
            await session.refresh(row)
            result = self._to_row(row)

        logger.info("row_updated", id=row_id, fields=sorted(updates))
        return result

    async def delete_row(self, row_id: str) -> None:
        async with self._db_session_factory() as session:
            row = await self._load_row(session, row_id)
            await session.delete(row)
            await session.commit()
        logger.info("row_deleted", id=row_id)

    async def reorder_rows(self, row_ids: list[str]) -> list[GridRow]:
        """Rewrite sortOrder so it follows ``row_ids``, dense from 0."""
        async with self._db_session_factory() as session:
            result = await session.execute(
                select(TableRow).order_by(TableRow.sort_order, TableRow.id)
            )
            self._rewrite_order(list(result.scalars().all()), row_ids, "row")
            await session.commit()

        logger.info("rows_reordered", count=len(row_ids))
        return await self.list_rows()

    # --- Images ---

    async def add_image(self, row_id: str, url: str, caption: str = "") -> GridRow:
        if not url or not url.strip():
            raise StoreValidationError("Image URL is required", {"imageUrl": "required"})
        async with self._db_session_factory() as session:
            row = await self._load_row(session, row_id)
            images = list(row.images_json or [])
            images.append({"url": url.strip(), "caption": caption or ""})
            row.images_json = images
            await session.commit()
            await session.refresh(row)
            result = self._to_row(row)

        logger.info("image_added", row_id=row_id, count=len(result.images))
        return result

    async def update_image(
        self,
        row_id: str,
        index: int,
        url: Optional[str] = None,
        caption: Optional[str] = None,
    ) -> GridRow:
        if url is not None and not url.strip():
            raise StoreValidationError("Image URL cannot be empty", {"imageUrl": "empty"})
        async with self._db_session_factory() as session:
            row = await self._load_row(session, row_id)
            images = [dict(img) for img in row.images_json or []]
            self._check_image_index(images, index)
            if url is not None:
                images[index]["url"] = url.strip()
            if caption is not None:
                images[index]["caption"] = caption
            row.images_json = images
            await session.commit()
            await session.refresh(row)
            result = self._to_row(row)

        logger.info("image_updated", row_id=row_id, index=index)
        return result

    async def delete_image(self, row_id: str, index: Optional[int] = None) -> GridRow:
        """Remove one image, or every image when ``index`` is None."""
        async with self._db_session_factory() as session:
            row = await self._load_row(session, row_id)
            images = list(row.images_json or [])
            if index is None:
                images = []
            else:
                self._check_image_index(images, index)
                images.pop(index)
            row.images_json = images
            await session.commit()
            await session.refresh(row)
            result = self._to_row(row)

        logger.info("image_deleted", row_id=row_id, index=index, remaining=len(result.images))
        return result

    # --- Columns ---

    async def list_columns(self) -> list[GridColumn]:
        async with self._db_session_factory() as session:
            result = await session.execute(
                select(TableColumn).order_by(TableColumn.sort_order, TableColumn.id)
            )
            return [self._to_column(c) for c in result.scalars().all()]

    async def get_column(self, column_id: str) -> GridColumn:
        async with self._db_session_factory() as session:
            column = await self._load_column(session, column_id)
            return self._to_column(column)

    async def create_column(self, data: dict) -> GridColumn:
        name = str(data.get("name") or "").strip()
        data_key = str(data.get("dataKey") or "").strip()
        errors = {}
        if not name:
            errors["name"] = "required"
        if not data_key:
            errors["dataKey"] = "required"
        column_type = str(data.get("type") or "text")
        if column_type not in COLUMN_TYPES:
            errors["type"] = f"must be one of {', '.join(COLUMN_TYPES)}"
        if errors:
            raise StoreValidationError("Invalid column", errors)

        async with self._db_session_factory() as session:
            await self._ensure_unique_data_key(session, data_key)
            max_order = (await session.execute(
                select(sa_func.max(TableColumn.sort_order))
            )).scalar()
            column = TableColumn(
                id=str(data.get("id") or f"col-{uuid.uuid4().hex[:12]}"),
                name=name,
                data_key=data_key,
                type=column_type,
                sort_order=(max_order if max_order is not None else -1) + 1,
                is_editable="true" if parse_flag(data.get("isEditable", "true")) else "false",
                options_json=[str(o) for o in data.get("options") or []],
            )
            session.add(column)
            await session.commit()
            await session.refresh(column)
            result = self._to_column(column)

        logger.info("column_created", id=result.id, data_key=data_key)
        return result

    async def update_column(self, column_id: str, updates: dict) -> GridColumn:
        async with self._db_session_factory() as session:
            column = await self._load_column(session, column_id)

            if "dataKey" in updates and updates["dataKey"] != column.data_key:
                new_key = str(updates["dataKey"] or "").strip()
                if not new_key:
                    raise StoreValidationError("Invalid column", {"dataKey": "required"})
                if column.data_key in CORE_DATA_KEYS:
                    raise ProtectedMutationError(f"Cannot change the data key of core column '{column.name}'")
                await self._ensure_unique_data_key(session, new_key)
                column.data_key = new_key
            if "name" in updates:
                name = str(updates["name"] or "").strip()
                if not name:
                    raise StoreValidationError("Invalid column", {"name": "required"})
                column.name = name
            if "type" in updates:
                if updates["type"] not in COLUMN_TYPES:
                    raise StoreValidationError(
                        "Invalid column", {"type": f"must be one of {', '.join(COLUMN_TYPES)}"}
                    )
                column.type = updates["type"]
            if "isEditable" in updates:
                column.is_editable = "true" if parse_flag(updates["isEditable"]) else "false"
            if "options" in updates:
                column.options_json = [str(o) for o in updates["options"] or []]

            await session.commit()
            await session.refresh(column)
            result = self._to_column(column)

        logger.info("column_updated", id=column_id, fields=sorted(updates))
        return result

    async def delete_column(self, column_id: str) -> None:
        """Delete a column. Core data keys are always refused."""
        async with self._db_session_factory() as session:
            column = await self._load_column(session, column_id)
            if column.data_key in CORE_DATA_KEYS:
                logger.warning("core_column_delete_rejected", id=column_id, data_key=column.data_key)
                raise ProtectedMutationError(f"Cannot delete core column '{column.name}'")
            await session.delete(column)
            await session.commit()
        logger.info("column_deleted", id=column_id)

    async def reorder_columns(self, column_ids: list[str]) -> list[GridColumn]:
        async with self._db_session_factory() as session:
            result = await session.execute(
                select(TableColumn).order_by(TableColumn.sort_order, TableColumn.id)
            )
            self._rewrite_order(list(result.scalars().all()), column_ids, "column")
            await session.commit()

        logger.info("columns_reordered", count=len(column_ids))
        return await self.list_columns()

    # --- Layout preferences ---

    async def get_layout(self, user_id: str) -> LayoutState:
        async with self._db_session_factory() as session:
            pref = (await session.execute(
                select(LayoutPreference).where(LayoutPreference.user_id == user_id)
            )).scalar_one_or_none()
            if pref is None:
                raise NotFoundError(f"No layout saved for user '{user_id}'")
            return self._to_layout(pref)

    async def save_layout(self, user_id: str, layout: dict) -> LayoutState:
        """Upsert a layout. Keys absent from ``layout`` keep their stored value."""
        if not user_id:
            raise StoreValidationError("User id is required", {"userId": "required"})
        async with self._db_session_factory() as session:
            pref = (await session.execute(
                select(LayoutPreference).where(LayoutPreference.user_id == user_id)
            )).scalar_one_or_none()
            if pref is None:
                pref = LayoutPreference(user_id=user_id, column_order_json=[], column_visibility_json=[])
                session.add(pref)

            if layout.get("columnOrder") is not None:
                pref.column_order_json = [str(cid) for cid in layout["columnOrder"]]
            if layout.get("columnVisibility") is not None:
                pref.column_visibility_json = [str(cid) for cid in layout["columnVisibility"]]
            if "creatorName" in layout:
                pref.creator_name = layout["creatorName"]
            if "creatorUrl" in layout:
                pref.creator_url = layout["creatorUrl"]

            await session.commit()
            await session.refresh(pref)
            result = self._to_layout(pref)

        logger.info("layout_saved", user_id=user_id, fields=sorted(layout))
        return result

    # --- Seeding ---

    async def seed_default_columns(self) -> int:
        """Insert the default column set when no column exists yet."""
        async with self._db_session_factory() as session:
            count = (await session.execute(select(sa_func.count(TableColumn.id)))).scalar() or 0
            if count:
                return 0
            for definition in DEFAULT_COLUMNS:
                session.add(TableColumn(
                    id=definition["id"],
                    name=definition["name"],
                    data_key=definition["dataKey"],
                    type=definition["type"],
                    sort_order=definition["sortOrder"],
                    is_editable=definition["isEditable"],
                    options_json=list(definition["options"]),
                ))
            await session.commit()
        logger.info("default_columns_seeded", count=len(DEFAULT_COLUMNS))
        return len(DEFAULT_COLUMNS)

    async def seed_sample_rows(self) -> int:
        """Insert the sample delivery stops when the table is empty."""
        async with self._db_session_factory() as session:
            count = (await session.execute(select(sa_func.count(TableRow.id)))).scalar() or 0
        if count:
            return 0
        for sample in SAMPLE_ROWS:
            await self.create_row(sample)
        logger.info("sample_rows_seeded", count=len(SAMPLE_ROWS))
        return len(SAMPLE_ROWS)

    # --- Helpers ---

    async def _load_row(self, session, row_id: str) -> TableRow:
        row = (await session.execute(
            select(TableRow).where(TableRow.id == row_id)
        )).scalar_one_or_none()
        if row is None:
            raise NotFoundError(f"Row '{row_id}' not found")
        return row

    async def _load_column(self, session, column_id: str) -> TableColumn:
        column = (await session.execute(
            select(TableColumn).where(TableColumn.id == column_id)
        )).scalar_one_or_none()
        if column is None:
            raise NotFoundError(f"Column '{column_id}' not found")
        return column

    async def _ensure_unique_data_key(self, session, data_key: str) -> None:
        existing = (await session.execute(
            select(TableColumn.id).where(TableColumn.data_key == data_key)
        )).scalar_one_or_none()
        if existing is not None:
            raise StoreValidationError(
                f"A column with data key '{data_key}' already exists",
                {"dataKey": "duplicate"},
                status_code=409,
            )

    async def _ensure_single_depot(self, session, row: TableRow) -> None:
        """At most one row may sit at the depot location."""
        if row.location != self._depot_location:
            return
        other = (await session.execute(
            select(TableRow.id)
            .where(TableRow.location == self._depot_location, TableRow.id != row.id)
            .limit(1)
        )).scalar_one_or_none()
        if other is not None:
            raise StoreValidationError(
                f"Row '{other}' is already the depot at '{self._depot_location}'",
                {"location": "duplicate depot"},
                status_code=409,
            )

    @staticmethod
    def _rewrite_order(items: list, ordered_ids: Iterable[str], kind: str) -> None:
        """Assign sortOrder = index for listed ids; unlisted items follow in current order."""
        ordered_ids = list(ordered_ids)
        if len(set(ordered_ids)) != len(ordered_ids):
            raise StoreValidationError(f"Duplicate {kind} ids in reorder request", {"ids": "duplicate"})

        by_id = {item.id: item for item in items}
        unknown = [item_id for item_id in ordered_ids if item_id not in by_id]
        if unknown:
            raise NotFoundError(f"Unknown {kind} ids: {', '.join(unknown)}")

        listed = set(ordered_ids)
        sequence = [by_id[item_id] for item_id in ordered_ids]
        sequence.extend(item for item in items if item.id not in listed)
        for index, item in enumerate(sequence):
            item.sort_order = index

    @staticmethod
    def _apply_row_updates(row: TableRow, updates: dict) -> None:
        errors: dict[str, str] = {}
        extra = dict(row.extra_fields_json or {})

        for key, value in updates.items():
            if key in _IMMUTABLE_ROW_KEYS:
                continue
            if key == "extraFields":
                for extra_key, extra_value in (value or {}).items():
                    extra[str(extra_key)] = "" if extra_value is None else str(extra_value)
                continue
            attr = ROW_FIELD_MAP.get(key)
            if attr is None:
                extra[str(key)] = "" if value is None else str(value)
                continue

            if attr == "no":
                try:
                    row.no = int(value)
                except (TypeError, ValueError):
                    errors["no"] = "must be an integer"
            elif attr == "info":
                info = InfoRecord.from_value(value)
                row.info = pack_info(replace(info, url=normalize_url(info.url)))
            elif attr == "images":
                images = []
                for image in value or []:
                    if not isinstance(image, dict) or not str(image.get("url") or "").strip():
                        errors["images"] = "every image needs a url"
                        break
                    images.append(GridImage.from_dict(image).to_dict())
                row.images_json = images
            elif attr in ("latitude", "longitude"):
                setattr(row, attr, None if value in (None, "") else str(value))
            else:
                setattr(row, attr, "" if value is None else str(value))

        if errors:
            raise StoreValidationError("Invalid row fields", errors)
        row.extra_fields_json = extra

    @staticmethod
    def _check_image_index(images: list, index: int) -> None:
        if index < 0 or index >= len(images):
            raise StoreValidationError(f"Invalid image index {index}", {"index": "out of range"})

    @staticmethod
    def _to_row(row: TableRow) -> GridRow:
        data: dict[str, Any] = {
            "id": row.id,
            "no": row.no,
            "route": row.route,
            "code": row.code,
            "location": row.location,
            "delivery": row.delivery,
            "trip": row.trip,
            "alt1": row.alt1,
            "alt2": row.alt2,
            "info": row.info,
            "tngSite": row.tng_site,
            "tngRoute": row.tng_route,
            "destination": row.destination,
            "tollPrice": row.toll_price,
            "latitude": row.latitude,
            "longitude": row.longitude,
            "images": row.images_json or [],
            "sortOrder": row.sort_order,
            "extraFields": row.extra_fields_json or {},
        }
        return GridRow.from_dict(data)

    @staticmethod
    def _to_column(column: TableColumn) -> GridColumn:
        return GridColumn(
            id=column.id,
            name=column.name,
            data_key=column.data_key,
            type=column.type,
            sort_order=column.sort_order,
            is_editable=parse_flag(column.is_editable),
            options=list(column.options_json or []),
        )

    @staticmethod
    def _to_layout(pref: LayoutPreference) -> LayoutState:
        return LayoutState(
            column_order=list(pref.column_order_json or []),
            column_visibility=list(pref.column_visibility_json or []),
            creator_name=pref.creator_name,
            creator_url=pref.creator_url,
        )
