"""Architecture tests using pytest-archon.

These tests enforce DDD architectural boundaries between layers
within the Groups bounded context.
"""

from pytest_archon import archrule


class TestGroupsDomainLayerBoundaries:
    """Tests that the domain layer has no forbidden dependencies."""

    def test_domain_does_not_import_infrastructure(self):
        """Domain layer should not depend on infrastructure.

        Groups, memberships and value objects must not know about the
        database or the place service.
        """
        (
            archrule("domain_no_infrastructure")
            .match("groups.domain*")
            .should_not_import("groups.infrastructure*", "infrastructure*")
            .check("groups")
        )

    def test_domain_does_not_import_application(self):
        """Domain objects should be usable without application services."""
        (
            archrule("domain_no_application")
            .match("groups.domain*")
            .should_not_import("groups.application*")
            .check("groups")
        )

    def test_domain_does_not_import_frameworks(self):
        """Domain layer should be framework-agnostic."""
        (
            archrule("domain_no_frameworks")
            .match("groups.domain*")
            .should_not_import("fastapi*", "starlette*", "sqlalchemy*", "httpx*")
            .check("groups")
        )


class TestGroupsPortsLayerBoundaries:
    """Tests that the ports layer has no forbidden dependencies."""

    def test_ports_does_not_import_infrastructure(self):
        """Ports define interfaces, not the SQL or HTTP implementations."""
        (
            archrule("ports_no_infrastructure")
            .match("groups.ports*")
            .should_not_import("groups.infrastructure*")
            .check("groups")
        )

    def test_ports_does_not_import_application(self):
        """Ports are used by the application layer, not the other way around."""
        (
            archrule("ports_no_application")
            .match("groups.ports*")
            .should_not_import("groups.application*")
            .check("groups")
        )


class TestGroupsApplicationLayerBoundaries:
    """Tests that the application layer has no forbidden dependencies."""

    def test_application_does_not_import_infrastructure(self):
        """Application services depend on ports; adapters are injected."""
        (
            archrule("application_no_infrastructure")
            .match("groups.application*")
            .should_not_import("groups.infrastructure*")
            .check("groups")
        )

    def test_application_does_not_import_presentation(self):
        """Application services must not know about HTTP."""
        (
            archrule("application_no_presentation")
            .match("groups.application*")
            .should_not_import("groups.presentation*", "fastapi*", "starlette*")
            .check("groups")
        )

    def test_application_can_import_domain_and_ports(self):
        """Application layer should be able to import domain and ports."""
        (
            archrule("application_uses_domain")
            .match("groups.application*")
            .may_import("groups.domain*", "groups.ports*")
            .check("groups")
        )


class TestGroupsInfrastructureLayerBoundaries:
    """Tests that the infrastructure layer has no forbidden dependencies."""

    def test_infrastructure_does_not_import_application(self):
        """Adapters implement ports and must not call application services."""
        (
            archrule("infrastructure_no_application")
            .match("groups.infrastructure*")
            .should_not_import("groups.application*", "groups.presentation*")
            .check("groups")
        )

    def test_infrastructure_can_import_domain_and_ports(self):
        """Infrastructure should be able to import domain and ports."""
        (
            archrule("infrastructure_uses_domain")
            .match("groups.infrastructure*")
            .may_import("groups.domain*", "groups.ports*")
            .check("groups")
        )


class TestSharedInfrastructureBoundaries:
    """Tests that the shared infrastructure stays free of bounded contexts."""

    def test_shared_database_does_not_import_groups(self):
        """Engines and sessions are shared and must not know about groups."""
        (
            archrule("shared_database_no_groups")
            .match("infrastructure.database*", "infrastructure.settings*")
            .should_not_import("groups*")
            .check("infrastructure")
        )

    def test_shared_observability_does_not_import_groups(self):
        """Shared probes must not depend on the groups context."""
        (
            archrule("shared_observability_no_groups")
            .match("infrastructure.observability*", "infrastructure.logging*")
            .should_not_import("groups*")
            .check("infrastructure")
        )
