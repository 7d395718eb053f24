"""Application services for the groups bounded context.

The TreeStore, MembershipIndex, PermissionEvaluator and AggregationEngine
are the building blocks; GroupService and MembershipService are the "front
door" that own transactions and compose them into use cases.
"""

from groups.application.services.aggregation_engine import AggregationEngine
from groups.application.services.group_service import (
    GroupService,
    calendar_month_window,
)
from groups.application.services.membership_index import MembershipIndex
from groups.application.services.membership_service import MembershipService
from groups.application.services.permission_evaluator import PermissionEvaluator
from groups.application.services.tree_store import TreeStore

__all__ = [
    "AggregationEngine",
    "GroupService",
    "MembershipIndex",
    "MembershipService",
    "PermissionEvaluator",
    "TreeStore",
    "calendar_month_window",
]
