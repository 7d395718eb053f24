"""Ports (interfaces) for the groups bounded context.

Ports define the contracts for repositories and external collaborators
without specifying implementation details. This allows for dependency
inversion and keeps the domain layer independent of infrastructure.
"""

from groups.ports.repositories import (
    IGroupRepository,
    IMembershipRepository,
    IMembershipRequestRepository,
)
from groups.ports.services import Clock, ICategoryStore, IEventStore, IPlaceService

__all__ = [
    "Clock",
    "ICategoryStore",
    "IEventStore",
    "IGroupRepository",
    "IMembershipRepository",
    "IMembershipRequestRepository",
    "IPlaceService",
]
