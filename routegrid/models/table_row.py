"""Table row model — one delivery stop."""

from typing import Optional

from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TableRow(Base):
    __tablename__ = "table_rows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    no: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    route: Mapped[str] = mapped_column(Text, default="", nullable=False)
    code: Mapped[str] = mapped_column(Text, default="", nullable=False)
    location: Mapped[str] = mapped_column(Text, default="", nullable=False)
    delivery: Mapped[str] = mapped_column(Text, default="", nullable=False)
    trip: Mapped[str] = mapped_column(Text, default="", nullable=False)
    alt1: Mapped[str] = mapped_column(Text, default="", nullable=False)
    alt2: Mapped[str] = mapped_column(Text, default="", nullable=False)
    # Legacy packed form: address|||DESCRIPTION|||description|||URL|||url
    info: Mapped[str] = mapped_column(Text, default="", nullable=False)
    tng_site: Mapped[str] = mapped_column(Text, default="", nullable=False)
    tng_route: Mapped[str] = mapped_column(Text, default="", nullable=False)
    destination: Mapped[str] = mapped_column(Text, default="", nullable=False)
    toll_price: Mapped[str] = mapped_column(Text, default="", nullable=False)
    latitude: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    longitude: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    images_json: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    extra_fields_json: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)
