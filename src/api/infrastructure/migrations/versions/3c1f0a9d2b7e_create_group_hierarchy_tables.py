"""create group hierarchy tables

Revision ID: 3c1f0a9d2b7e
Revises:
Create Date: 2026-03-02 09:14:27.518342

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3c1f0a9d2b7e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "groups",
        sa.Column("id", sa.String(length=26), nullable=False),  # ULID
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("details", sa.String(length=500), nullable=True),
        sa.Column("meta_data", sa.String(length=500), nullable=True),
        sa.Column("privacy", sa.String(length=16), nullable=True),
        sa.Column("category_id", sa.String(length=64), nullable=False),
        sa.Column("parent_id", sa.String(length=26), nullable=True),  # ULID
        sa.Column("address", sa.JSON(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["parent_id"], ["groups.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_groups_name"), "groups", ["name"], unique=False)
    op.create_index(
        op.f("ix_groups_category_id"), "groups", ["category_id"], unique=False
    )
    # Children lookups (one query per tree level) go through this index
    op.create_index(op.f("ix_groups_parent_id"), "groups", ["parent_id"], unique=False)

    op.create_table(
        "group_memberships",
        sa.Column("group_id", sa.String(length=26), nullable=False),
        sa.Column("contact_id", sa.String(length=64), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("group_id", "contact_id"),
    )
    op.create_index(
        op.f("ix_group_memberships_contact_id"),
        "group_memberships",
        ["contact_id"],
        unique=False,
    )

    op.create_table(
        "group_membership_requests",
        sa.Column("id", sa.String(length=26), nullable=False),  # ULID
        sa.Column("group_id", sa.String(length=26), nullable=False),
        sa.Column("contact_id", sa.String(length=64), nullable=False),
        sa.Column("distance_km", sa.Float(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["group_id"], ["groups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "group_id",
            "contact_id",
            name="uq_group_membership_requests_group_contact",
        ),
    )
    op.create_index(
        op.f("ix_group_membership_requests_group_id"),
        "group_membership_requests",
        ["group_id"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(
        op.f("ix_group_membership_requests_group_id"),
        table_name="group_membership_requests",
    )
    op.drop_table("group_membership_requests")
    op.drop_index(
        op.f("ix_group_memberships_contact_id"), table_name="group_memberships"
    )
    op.drop_table("group_memberships")
    op.drop_index(op.f("ix_groups_parent_id"), table_name="groups")
    op.drop_index(op.f("ix_groups_category_id"), table_name="groups")
    op.drop_index(op.f("ix_groups_name"), table_name="groups")
    op.drop_table("groups")
