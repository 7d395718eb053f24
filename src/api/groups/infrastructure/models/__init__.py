"""SQLAlchemy ORM models for the groups bounded context.

These models map to database tables and are used by repository implementations.
"""

from groups.infrastructure.models.external import (
    EventAttendanceModel,
    GroupCategoryModel,
    GroupEventModel,
)
from groups.infrastructure.models.group import GroupModel
from groups.infrastructure.models.membership import (
    GroupMembershipModel,
    GroupMembershipRequestModel,
)

__all__ = [
    "EventAttendanceModel",
    "GroupCategoryModel",
    "GroupEventModel",
    "GroupMembershipModel",
    "GroupMembershipRequestModel",
    "GroupModel",
]
