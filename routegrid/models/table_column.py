"""Table column model — one column definition of the grid."""

from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TableColumn(Base):
    __tablename__ = "table_columns"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    data_key: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(20), default="text", nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)
    is_editable: Mapped[str] = mapped_column(String(5), default="true", nullable=False)
    options_json: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
