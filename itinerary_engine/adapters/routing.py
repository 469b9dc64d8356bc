"""Routing collaborators: route optimization and directions.

The engine only depends on the two protocols below. `HttpRoutingService`
implements both against an internal routing service that already returns
normalized payloads:

    POST {base_url}/optimal-order  {"waypoints": [[lon, lat], ...]}
        -> {"order": [2, 0, 1]}
    POST {base_url}/route          {"origin": [lon, lat], "destination": [lon, lat], "mode": "driving"}
        -> {"duration_minutes": 12, "distance_meters": 4300, "cost": 3.0}
"""

from typing import Protocol

import httpx

from itinerary_engine.models.common import TransitMode
from itinerary_engine.models.services import DirectionsResult


class RouteOptimizationService(Protocol):
    """Returns a visiting order for waypoints."""

    async def optimal_order(self, waypoints: list[tuple[float, float]]) -> list[int]:
        """Return a permutation of waypoint indices."""
        ...


class DirectionsService(Protocol):
    """Returns travel time/distance/cost between two points."""

    async def route(
        self,
        origin: tuple[float, float],
        destination: tuple[float, float],
        mode: TransitMode = TransitMode.driving,
    ) -> DirectionsResult:
        """Return directions between two [lon, lat] points."""
        ...


def parse_permutation(order: object, size: int) -> list[int]:
    """Validate that `order` is a permutation of range(size).

    Raises:
        ValueError: If it is not
    """
    if not isinstance(order, list) or not all(isinstance(i, int) for i in order):
        raise ValueError(f"order must be a list of integers, got {order!r}")
    if sorted(order) != list(range(size)):
        raise ValueError(f"order {order} is not a permutation of {size} waypoints")
    return order


class HttpRoutingService:
    """Routing collaborator over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout_sec: float = 4.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize routing service.

        Args:
            base_url: Routing service base URL
            timeout_sec: Per-request timeout when this service owns the client
            client: Optional httpx client (for testing with mocks)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self._client = client

    async def _post(self, path: str, body: dict[str, object]) -> dict[str, object]:
        close_client = False
        client = self._client
        if client is None:
            client = httpx.AsyncClient(timeout=self.timeout_sec)
            close_client = True

        try:
            response = await client.post(f"{self.base_url}{path}", json=body)
            response.raise_for_status()
            data = response.json()
            if not isinstance(data, dict):
                raise ValueError(f"unexpected response body from {path}")
            return data
        finally:
            if close_client:
                await client.aclose()

    async def optimal_order(self, waypoints: list[tuple[float, float]]) -> list[int]:
        """Ask the routing service for the best visiting order.

        Raises:
            httpx.HTTPError: On network or HTTP errors
            ValueError: If the response is not a permutation
        """
        data = await self._post(
            "/optimal-order", {"waypoints": [list(point) for point in waypoints]}
        )
        return parse_permutation(data.get("order"), len(waypoints))

    async def route(
        self,
        origin: tuple[float, float],
        destination: tuple[float, float],
        mode: TransitMode = TransitMode.driving,
    ) -> DirectionsResult:
        """Fetch directions between two points.

        Raises:
            httpx.HTTPError: On network or HTTP errors
            pydantic.ValidationError: If the response is malformed
        """
        data = await self._post(
            "/route",
            {"origin": list(origin), "destination": list(destination), "mode": mode.value},
        )
        return DirectionsResult.model_validate({**data, "mode": data.get("mode", mode.value)})
