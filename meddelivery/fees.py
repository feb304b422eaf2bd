"""
Delivery distance and fee. Pure functions: no I/O, no state beyond the pricing defaults
read from settings at import.
"""
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from meddelivery.config import settings
from meddelivery.errors import InvalidDistance

EARTH_RADIUS_KM = 6371.0


class Coordinates(NamedTuple):
    latitude: float
    longitude: float


class FeeQuote(NamedTuple):
    distance_km: float
    fee: int


def hospital_origin() -> Coordinates:
    return Coordinates(settings.hospital_latitude, settings.hospital_longitude)


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    """Great-circle distance between two points in km."""
    lat1, lon1 = math.radians(origin.latitude), math.radians(origin.longitude)
    lat2, lon2 = math.radians(destination.latitude), math.radians(destination.longitude)
    a = (
        math.sin((lat2 - lat1) / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin((lon2 - lon1) / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def round_distance(distance_km: float) -> float:
    return float(Decimal(str(distance_km)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def compute_fee(
    distance_km: float,
    base_fee: int = settings.base_fee,
    per_km_rate: int = settings.per_km_rate,
) -> int:
    """base_fee + distance_km * per_km_rate, rounded half-up to whole rupiah."""
    if not math.isfinite(distance_km) or distance_km < 0:
        raise InvalidDistance(distance_km)
    fee = Decimal(base_fee) + Decimal(str(distance_km)) * Decimal(per_km_rate)
    return int(fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quote(destination: Coordinates, origin: Coordinates | None = None) -> FeeQuote:
    """Distance (rounded to 0.01 km) from origin, hospital by default, and the fee for it."""
    distance = round_distance(haversine_km(origin or hospital_origin(), destination))
    return FeeQuote(distance_km=distance, fee=compute_fee(distance))
