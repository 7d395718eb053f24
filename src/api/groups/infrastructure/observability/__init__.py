"""Domain-Oriented Observability for groups infrastructure.

Probes for repository and external-service operations following
Domain-Oriented Observability patterns.
"""

from groups.infrastructure.observability.external_probe import (
    DefaultExternalServiceProbe,
    ExternalServiceProbe,
)
from groups.infrastructure.observability.repository_probe import (
    DefaultGroupRepositoryProbe,
    DefaultMembershipRepositoryProbe,
    GroupRepositoryProbe,
    MembershipRepositoryProbe,
)

__all__ = [
    "ExternalServiceProbe",
    "DefaultExternalServiceProbe",
    "GroupRepositoryProbe",
    "DefaultGroupRepositoryProbe",
    "MembershipRepositoryProbe",
    "DefaultMembershipRepositoryProbe",
]
