"""Great-circle distance and radius filtering.

Distances are meters internally. HTTP parameters are kilometers and are
converted with ``km_to_meters`` at the route boundary.
"""
import math

EARTH_RADIUS_METERS = 6371000.0

# Meters per degree of latitude, used to narrow radius queries in SQL
METERS_PER_DEGREE_LAT = math.pi * EARTH_RADIUS_METERS / 180.0


def km_to_meters(km: float) -> float:
    return float(km) * 1000.0


def meters_to_km(meters: float) -> float:
    return meters / 1000.0


def distance_meters(lat1, lon1, lat2, lon2) -> float:
    """Haversine distance between two points in meters.

    Returns ``math.inf`` when any coordinate is missing, so points without a
    location never fall inside a radius.
    """
    if lat1 is None or lon1 is None or lat2 is None or lon2 is None:
        return math.inf

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Rounding can push a slightly above 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def within_radius(lat, lng, target_lat, target_lng, radius_meters: float) -> bool:
    return distance_meters(lat, lng, target_lat, target_lng) <= radius_meters


def latitude_band(lat: float, radius_meters: float):
    """(min_lat, max_lat) that any point within the radius must lie in."""
    delta = radius_meters / METERS_PER_DEGREE_LAT
    return max(-90.0, lat - delta), min(90.0, lat + delta)


def filter_within_radius(items, lat: float, lng: float, radius_meters: float):
    """Return ``[(item, distance_meters)]`` for items inside the radius.

    Items need ``latitude``, ``longitude`` and ``id`` attributes. Results are
    ordered by ascending distance, ties broken by ascending id.
    """
    matches = []
    for item in items:
        distance = distance_meters(lat, lng, item.latitude, item.longitude)
        if distance <= radius_meters:
            matches.append((item, distance))
    matches.sort(key=lambda pair: (pair[1], pair[0].id))
    return matches


def apply_latitude_prefilter(query, model, lat: float, radius_meters: float):
    """Narrow a SQLAlchemy query to rows with coordinates in the latitude band.

    This is a coarse filter only; callers still apply ``filter_within_radius``.
    """
    min_lat, max_lat = latitude_band(lat, radius_meters)
    return query.filter(
        model.latitude.isnot(None),
        model.longitude.isnot(None),
        model.latitude >= min_lat,
        model.latitude <= max_lat,
    )
