"""Read-only mappings of tables owned by other systems.

Categories, events and attendance are written elsewhere; this context only
selects from them through the SQL event and category stores.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base


class GroupCategoryModel(Base):
    """ORM model for group_categories table."""

    __tablename__ = "group_categories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class GroupEventModel(Base):
    """ORM model for group_events table."""

    __tablename__ = "group_events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    group_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class EventAttendanceModel(Base):
    """ORM model for event_attendance table: one row per attendee."""

    __tablename__ = "event_attendance"

    event_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("group_events.id", ondelete="CASCADE"),
        primary_key=True,
    )
    contact_id: Mapped[str] = mapped_column(String(64), primary_key=True)
