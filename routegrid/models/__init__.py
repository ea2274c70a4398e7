"""SQLAlchemy models package."""

from .base import Base
from .layout_preference import LayoutPreference
from .table_column import TableColumn
from .table_row import TableRow

__all__ = [
    "Base",
    "LayoutPreference",
    "TableColumn",
    "TableRow",
]
