"""
Geometry utility functions

Common geometry calculations on [lon, lat] coordinate lists
"""

import math
from typing import Dict, List, Optional, Tuple

from shapely.geometry import LineString, MultiPoint, Point, Polygon

EARTH_RADIUS_M = 6371000
M_PER_DEG_LAT = 111000


def haversine_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float
) -> float:
    """Calculate distance between two points in meters"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = math.sin(delta_phi/2)**2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda/2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

    return EARTH_RADIUS_M * c


def coord_distance(a: List[float], b: List[float]) -> float:
    """Haversine distance in meters between two [lon, lat] coordinates"""
    return haversine_distance(a[1], a[0], b[1], b[0])


def meters_to_degrees(meters: float, lat: float) -> Tuple[float, float]:
    """
    Convert a distance to (lon, lat) degree spans at the given latitude

    The longitude span is widened near the poles but capped at 360 degrees.
    """
    d_lat = meters / M_PER_DEG_LAT
    cos_lat = math.cos(math.radians(lat))
    d_lon = 360.0 if cos_lat < 1e-9 else min(360.0, meters / (M_PER_DEG_LAT * cos_lat))
    return d_lon, d_lat


def calculate_line_length(
    coords: List[List[float]]
) -> float:
    """Calculate length of a line string in meters"""
    if len(coords) < 2:
        return 0.0

    length = 0.0
    for i in range(len(coords) - 1):
        length += coord_distance(coords[i], coords[i + 1])

    return length


def bounding_box(coords: List[List[float]]) -> Optional[Tuple[float, float, float, float]]:
    """(west, south, east, north) of a coordinate list, None when empty"""
    if not coords:
        return None
    lons = [c[0] for c in coords]
    lats = [c[1] for c in coords]
    return (min(lons), min(lats), max(lons), max(lats))


def get_geo_info(coords: List[List[float]]) -> Tuple[Optional[Dict[str, float]], Optional[Dict[str, float]]]:
    """
    Centroid and bounds of a way-like coordinate list

    Closed sequences are treated as polygons, open ones as lines, single
    points as points.

    Returns:
        ({"lat", "lon"}, {"e", "n", "s", "w"}), either may be None
    """
    if not coords:
        return None, None

    if len(coords) == 1:
        geometry = Point(coords[0])
    elif len(coords) >= 4 and coords[0] == coords[-1]:
        geometry = Polygon(coords)
        if geometry.area == 0:
            geometry = LineString(coords)
    else:
        geometry = LineString(coords)

    centroid = geometry.centroid
    if centroid.is_empty:
        # Zero-length lines have an empty centroid
        centroid = Point(coords[0])

    west, south, east, north = geometry.bounds
    return (
        {"lat": centroid.y, "lon": centroid.x},
        {"e": east, "n": north, "s": south, "w": west},
    )


def get_compound_coordinates(coords: List[List[float]]) -> List[List[float]]:
    """
    Reduce an unordered coordinate cloud to its convex hull outline

    Returns a closed ring for three or more non-collinear points, otherwise
    the hull's own coordinates (a point or a line).
    """
    if not coords:
        return []
    hull = MultiPoint([tuple(c) for c in coords]).convex_hull
    if isinstance(hull, Polygon):
        return [[x, y] for x, y in hull.exterior.coords]
    return [[x, y] for x, y in hull.coords]


def get_middle(lines: List[List[List[float]]]) -> Optional[List[float]]:
    """Vertex closest to the centroid of all vertices of a multi-part line"""
    vertices = [c for line in lines for c in line]
    if not vertices:
        return None
    centroid = MultiPoint([tuple(c) for c in vertices]).centroid
    return min(vertices, key=lambda c: (c[0] - centroid.x) ** 2 + (c[1] - centroid.y) ** 2)


def line_midpoint(coords: List[List[float]]) -> List[float]:
    """Point halfway along a line (by planar length)"""
    if len(coords) == 1:
        return list(coords[0])
    point = LineString(coords).interpolate(0.5, normalized=True)
    return [point.x, point.y]
