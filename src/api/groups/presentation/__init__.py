"""Groups presentation layer.

HTTP routes and pydantic models for groups, memberships and membership
requests.
"""

from __future__ import annotations

from groups.presentation.routes import router

__all__ = ["router"]
