"""Shared test fixtures."""

import os
import tempfile

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Keep log files out of the working tree
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "routegrid-test-logs"))

from routegrid.engine.records import GridColumn, GridImage, GridRow
from routegrid.engine.row_store import SqlRowStore
from routegrid.models.base import Base


@pytest.fixture
def make_row():
    """Factory for GridRow test doubles with optional coordinates."""

    def _make(row_id, location="", lat=None, lon=None, sort_order=0, **fields):
        images = [GridImage(url=u) for u in fields.pop("image_urls", [])]
        return GridRow(
            id=row_id,
            location=location,
            latitude=None if lat is None else str(lat),
            longitude=None if lon is None else str(lon),
            sort_order=sort_order,
            images=images,
            **fields,
        )

    return _make


@pytest.fixture
def make_column():
    """Factory for GridColumn test doubles."""

    def _make(column_id, data_key=None, name=None, sort_order=0, column_type="text"):
        return GridColumn(
            id=column_id,
            name=name or column_id.title(),
            data_key=data_key or column_id,
            type=column_type,
            sort_order=sort_order,
        )

    return _make


@pytest_asyncio.fixture
async def sql_store():
    """SqlRowStore over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)

    yield SqlRowStore(db_session_factory=factory)

    await engine.dispose()
