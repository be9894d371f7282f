"""
Geographic proximity scoring between two profile locations.
"""

import math
from typing import Optional

from .models import Location
from .signals import NEUTRAL_SCORE, SignalResult

EARTH_RADIUS_KM = 6371.0

# (upper bound in km, score), checked in order
DISTANCE_BANDS = [
    (100.0, 0.9),
    (500.0, 0.7),
    (2000.0, 0.5),
    (5000.0, 0.3),
]
FAR_SCORE = 0.1
SAME_CITY_SCORE = 1.0
SAME_COUNTRY_SCORE = 0.7
DIFFERENT_COUNTRY_SCORE = 0.2


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_score(distance_km: float) -> float:
    """Map a distance onto the proximity bands."""
    for upper, score in DISTANCE_BANDS:
        if distance_km < upper:
            return score
    return FAR_SCORE


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


class GeoScorer:
    """Scores how close two locations are."""

    def proximity(self, loc_a: Optional[Location], loc_b: Optional[Location]) -> float:
        """Proximity in [0, 1]; missing data yields the neutral score."""
        return self.score(loc_a, loc_b).or_default(NEUTRAL_SCORE)

    def score(self, loc_a: Optional[Location], loc_b: Optional[Location]) -> SignalResult:
        if loc_a is None or loc_b is None:
            return SignalResult.unavailable("missing location")

        try:
            city_a, city_b = _norm(loc_a.city), _norm(loc_b.city)
            country_a, country_b = _norm(loc_a.country), _norm(loc_b.country)

            both_coordinates = loc_a.has_coordinates and loc_b.has_coordinates

            # Names are compared only when at least one side names a place;
            # blank fields then compare equal to each other
            if any((city_a, city_b, country_a, country_b)):
                if city_a == city_b and country_a == country_b:
                    return SignalResult.of(SAME_CITY_SCORE)
                if country_a == country_b:
                    return SignalResult.of(SAME_COUNTRY_SCORE)
            elif not both_coordinates:
                return SignalResult.unavailable("no place names or coordinates")

            if both_coordinates:
                distance = haversine_km(
                    float(loc_a.latitude), float(loc_a.longitude),
                    float(loc_b.latitude), float(loc_b.longitude),
                )
                return SignalResult.of(distance_score(distance))

            return SignalResult.of(DIFFERENT_COUNTRY_SCORE)
        except Exception as e:
            return SignalResult.unavailable(f"bad location data: {e}")
