"""SQLAlchemy ORM model for the groups table.

Each row stores its own parent id only. Children, ancestors and subtrees are
derived by the TreeStore with id lookups; there is no relationship() graph
and no closure table.
"""

from typing import Any, Optional

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, TimestampMixin


class GroupModel(Base, TimestampMixin):
    """ORM model for groups table.

    Foreign Key Constraint:
    - parent_id references groups.id with RESTRICT delete
    - Deleting a group first moves its children to the group's parent, so
      a dangling parent link can never be committed

    ``version`` is SQLAlchemy's version counter: every UPDATE and DELETE is
    qualified by it and a mismatch raises StaleDataError.
    """

    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    details: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    meta_data: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    privacy: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    category_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(26),
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    address: Mapped[Optional[dict[str, Any]]] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<GroupModel(id={self.id}, name={self.name}, parent_id={self.parent_id})>"
        )
