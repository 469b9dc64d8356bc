"""Haversine-based transit estimates used when the directions collaborator fails."""

import math

from itinerary_engine.models.common import Geo, Location, TransitMode
from itinerary_engine.models.itinerary import TransitLeg

EARTH_RADIUS_KM = 6371.0

# Beyond this distance a leg is assumed to be driven rather than walked
DRIVING_THRESHOLD_KM = 2.0

# Minutes per km
DRIVING_MINUTES_PER_KM = 3
WALKING_MINUTES_PER_KM = 12

# Cost per km
TRAVEL_COST_PER_KM: dict[TransitMode, float] = {
    TransitMode.driving: 0.5,
    TransitMode.walking: 0.0,
    TransitMode.cycling: 0.0,
    TransitMode.transit: 0.1,
}


def haversine_km(from_geo: Geo, to_geo: Geo) -> float:
    """Great-circle distance in kilometres."""
    lat1, lon1 = math.radians(from_geo.lat), math.radians(from_geo.lon)
    lat2, lon2 = math.radians(to_geo.lat), math.radians(to_geo.lon)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def estimate_travel_cost(distance_meters: float, mode: TransitMode) -> float:
    """Linear per-km cost, rounded up to a whole unit."""
    rate = TRAVEL_COST_PER_KM.get(mode, 0.0)
    return float(math.ceil((distance_meters / 1000) * rate))


def estimate_leg(origin: Location, destination: Location) -> TransitLeg:
    """Estimate a leg between two locations without any collaborator."""
    distance_km = haversine_km(origin.geo, destination.geo)

    if distance_km > DRIVING_THRESHOLD_KM:
        mode = TransitMode.driving
        duration = math.ceil(distance_km * DRIVING_MINUTES_PER_KM)
        cost = float(math.ceil(distance_km * TRAVEL_COST_PER_KM[TransitMode.driving]))
    else:
        mode = TransitMode.walking
        duration = math.ceil(distance_km * WALKING_MINUTES_PER_KM)
        cost = 0.0

    return TransitLeg(
        from_address=origin.address,
        to_address=destination.address,
        mode=mode,
        duration_minutes=duration,
        distance_meters=math.ceil(distance_km * 1000),
        cost=cost,
        estimated=True,
    )
