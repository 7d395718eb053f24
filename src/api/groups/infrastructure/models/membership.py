"""SQLAlchemy ORM models for membership rows and membership requests."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, TimestampMixin


class GroupMembershipModel(Base, TimestampMixin):
    """ORM model for group_memberships table.

    The composite primary key (group_id, contact_id) is what enforces one
    membership per contact and group. Rows go away with their group.
    """

    __tablename__ = "group_memberships"

    group_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("groups.id", ondelete="CASCADE"),
        primary_key=True,
    )
    contact_id: Mapped[str] = mapped_column(String(64), primary_key=True, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False)

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<GroupMembershipModel(group_id={self.group_id}, "
            f"contact_id={self.contact_id}, role={self.role})>"
        )


class GroupMembershipRequestModel(Base):
    """ORM model for group_membership_requests table.

    At most one pending request per (group, contact).
    """

    __tablename__ = "group_membership_requests"
    __table_args__ = (
        UniqueConstraint(
            "group_id",
            "contact_id",
            name="uq_group_membership_requests_group_contact",
        ),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    group_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contact_id: Mapped[str] = mapped_column(String(64), nullable=False)
    distance_km: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<GroupMembershipRequestModel(id={self.id}, group_id={self.group_id}, "
            f"contact_id={self.contact_id})>"
        )
