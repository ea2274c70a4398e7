"""Layout preference model — per-user column visibility and order."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class LayoutPreference(Base):
    __tablename__ = "layout_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    column_order_json: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    column_visibility_json: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    creator_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    creator_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )
