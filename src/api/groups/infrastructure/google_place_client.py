"""IPlaceService backed by the Google Places "place details" endpoint."""

from __future__ import annotations

from typing import Any

import httpx

from groups.domain.value_objects import Address, GeoPoint
from groups.infrastructure.bounded_call import bounded_call
from groups.infrastructure.observability import (
    DefaultExternalServiceProbe,
    ExternalServiceProbe,
)
from groups.ports.exceptions import ExternalServiceUnavailableError, PlaceNotFoundError
from groups.ports.services import IPlaceService

# Statuses meaning the place id itself is bad; anything else non-OK is an outage
_NOT_FOUND_STATUSES = frozenset({"NOT_FOUND", "INVALID_REQUEST", "ZERO_RESULTS"})
_DETAIL_FIELDS = "place_id,formatted_address,geometry/location"


class GooglePlaceClient(IPlaceService):
    """Resolve Google place ids to coordinates and a formatted address."""

    SERVICE_NAME = "place_service"

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://maps.googleapis.com/maps/api/place",
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
        probe: ExternalServiceProbe | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: Google Maps Platform API key
            base_url: Places API base URL
            timeout_seconds: Bound on one lookup
            client: Optional shared httpx client (tests inject a MockTransport)
            probe: Optional domain probe for observability
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._client = client
        self._probe = probe or DefaultExternalServiceProbe()

    async def resolve_place(self, place_id: str) -> Address:
        """Resolve a place id.

        Raises:
            PlaceNotFoundError: If Google does not know the place id
            ExternalServiceUnavailableError: On timeout, HTTP or quota errors
        """
        payload = await bounded_call(
            self.SERVICE_NAME,
            self._timeout_seconds,
            self._probe,
            lambda: self._fetch_details(place_id),
        )

        status = payload.get("status")
        if status in _NOT_FOUND_STATUSES:
            raise PlaceNotFoundError(f"Unknown place id {place_id}", place_id=place_id)
        if status != "OK":
            self._probe.call_failed(service=self.SERVICE_NAME, error=f"status={status}")
            raise ExternalServiceUnavailableError(
                f"Place lookup failed with status {status}",
                service=self.SERVICE_NAME,
            )

        try:
            result = payload["result"]
            location = result["geometry"]["location"]
            return Address(
                place_id=result.get("place_id", place_id),
                location=GeoPoint(
                    latitude=float(location["lat"]),
                    longitude=float(location["lng"]),
                ),
                formatted_address=result.get("formatted_address", ""),
            )
        except (KeyError, TypeError, ValueError) as e:
            self._probe.call_failed(service=self.SERVICE_NAME, error=repr(e))
            raise ExternalServiceUnavailableError(
                "Place lookup returned an unexpected payload",
                service=self.SERVICE_NAME,
            ) from e

    async def _fetch_details(self, place_id: str) -> dict[str, Any]:
        params = {"place_id": place_id, "fields": _DETAIL_FIELDS, "key": self._api_key}
        url = f"{self._base_url}/details/json"
        if self._client is not None:
            response = await self._client.get(url, params=params)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.get(url, params=params)
        response.raise_for_status()
        return response.json()
