"""Domain aggregates for the groups context.

Aggregates are the core business objects containing state and business logic.
They enforce invariants and business rules without depending on infrastructure.
"""

from groups.domain.aggregates.group import Group
from groups.domain.aggregates.membership_request import GroupMembershipRequest

__all__ = [
    "Group",
    "GroupMembershipRequest",
]
