"""
OpenStreetMap primitive handling

Components:
- Models: Data structures (OSMNode, OSMWay, OSMRelation)
- Parser: OSM JSON / Overpass documents
- PBF reader: .osm.pbf files via pyosmium
- Index: Frozen id → primitive lookups with lazy geometry resolution
"""

from .models import OSMNode, OSMWay, OSMRelation, RelationMember, Primitive
from .parser import OSMResponseParser
from .pbf_reader import PBFReader
from .index import EntityIndex

__all__ = [
    "OSMNode",
    "OSMWay",
    "OSMRelation",
    "RelationMember",
    "Primitive",
    "OSMResponseParser",
    "PBFReader",
    "EntityIndex",
]
