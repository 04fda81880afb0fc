"""
Pydantic models for extraction output records
Matches the JSON line and GeoJSON shapes written by the CLI
"""

from typing import List, Optional, Dict, Any, Literal, Union
from pydantic import BaseModel, Field

from .analysis.boundaries import AdminBoundary
from .analysis.streets import Street


# ============================================================
# GeoJSON Types
# ============================================================

class GeoJSONMultiLineString(BaseModel):
    type: Literal["MultiLineString"] = "MultiLineString"
    coordinates: List[List[List[float]]]  # [[[lon, lat], ...], ...]


class GeoJSONMultiPolygon(BaseModel):
    type: Literal["MultiPolygon"] = "MultiPolygon"
    coordinates: List[List[List[List[float]]]]  # [[[[lon, lat], ...], ...], ...]


class Feature(BaseModel):
    type: Literal["Feature"] = "Feature"
    properties: Dict[str, Any] = Field(default_factory=dict)
    geometry: Optional[Union[GeoJSONMultiLineString, GeoJSONMultiPolygon]] = None


class FeatureCollection(BaseModel):
    type: Literal["FeatureCollection"] = "FeatureCollection"
    features: List[Feature] = Field(default_factory=list)


# ============================================================
# Object Records
# ============================================================

class Location(BaseModel):
    lat: float
    lon: float


class Bounds(BaseModel):
    e: float
    n: float
    s: float
    w: float


class ObjectRecord(BaseModel):
    id: int
    type: Literal["node", "way", "relation"]
    tags: Dict[str, str]
    centroid: Optional[Location] = None
    bounds: Optional[Bounds] = None
    coordinates: Optional[List[List[float]]] = None  # only when coordinates are retained


# ============================================================
# Street Records
# ============================================================

class StreetRecord(BaseModel):
    id: int
    name: str
    boundary: Optional[str] = None
    length: float
    loc: Optional[List[float]] = None  # [lon, lat]
    coordinates: List[List[List[float]]]

    @classmethod
    def from_street(cls, street: Street) -> "StreetRecord":
        return cls(
            id=street.id,
            name=street.name,
            boundary=street.boundary,
            length=street.length,
            loc=street.middle,
            coordinates=street.lines,
        )


def street_feature(street: Street) -> Optional[Feature]:
    """Street as a MultiLineString Feature, None if no part has two points"""
    lines = [line for line in street.lines if len(line) >= 2]
    if not lines:
        return None
    properties = {"name": street.name}
    if street.boundary is not None:
        properties["boundary"] = street.boundary
    return Feature(properties=properties, geometry=GeoJSONMultiLineString(coordinates=lines))


# ============================================================
# Boundary Records
# ============================================================

class BBox(BaseModel):
    sw: List[float]  # [lon, lat]
    ne: List[float]  # [lon, lat]


class BoundaryRecord(BaseModel):
    id: int
    name: str
    admin_level: int
    bbox: BBox
    complete: bool
    rings: Optional[List[List[List[List[float]]]]] = None  # MultiPolygon coordinates

    @classmethod
    def from_boundary(cls, boundary: AdminBoundary, with_rings: bool = False) -> "BoundaryRecord":
        extra = {"rings": boundary.polygon_coordinates()} if with_rings else {}
        return cls(
            id=boundary.relation_id,
            name=boundary.name,
            admin_level=boundary.admin_level,
            bbox=BBox(sw=boundary.sw, ne=boundary.ne),
            complete=boundary.complete,
            **extra
        )


def boundary_feature(boundary: AdminBoundary) -> Feature:
    """Boundary as a MultiPolygon Feature; geometry is null when no ring closed"""
    geometry = None
    if boundary.outer_rings:
        geometry = GeoJSONMultiPolygon(coordinates=boundary.polygon_coordinates())
    return Feature(
        properties={
            "name": boundary.name,
            "admin_level": boundary.admin_level,
            "complete": boundary.complete,
        },
        geometry=geometry,
    )
