"""Domain-Oriented Observability for the groups application layer.

Probes for application service operations following Domain-Oriented Observability patterns.
"""

from groups.application.observability.aggregation_probe import (
    AggregationProbe,
    DefaultAggregationProbe,
)
from groups.application.observability.group_service_probe import (
    DefaultGroupServiceProbe,
    GroupServiceProbe,
)
from groups.application.observability.membership_service_probe import (
    DefaultMembershipServiceProbe,
    MembershipServiceProbe,
)
from groups.application.observability.permission_probe import (
    DefaultPermissionProbe,
    PermissionProbe,
)
from groups.application.observability.tree_store_probe import (
    DefaultTreeStoreProbe,
    TreeStoreProbe,
)

__all__ = [
    "AggregationProbe",
    "DefaultAggregationProbe",
    "GroupServiceProbe",
    "DefaultGroupServiceProbe",
    "MembershipServiceProbe",
    "DefaultMembershipServiceProbe",
    "PermissionProbe",
    "DefaultPermissionProbe",
    "TreeStoreProbe",
    "DefaultTreeStoreProbe",
]
