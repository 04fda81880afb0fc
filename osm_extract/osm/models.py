"""
OSM primitive models

Data classes for representing OSM nodes, ways and relations as they come
out of a primitive source. Geometry is never stored on ways or relations;
it is resolved through the EntityIndex.
"""

from typing import List, Dict, Union
from dataclasses import dataclass, field


MEMBER_KINDS = ("node", "way", "relation")


@dataclass(frozen=True)
class OSMNode:
    """Represents an OSM node (point)"""
    id: int
    lat: float
    lon: float
    tags: Dict[str, str] = field(default_factory=dict)

    def coordinate(self) -> List[float]:
        """Coordinate as [lon, lat]"""
        return [self.lon, self.lat]


@dataclass(frozen=True)
class OSMWay:
    """Represents an OSM way (line or ring) as a sequence of node references"""
    id: int
    node_ids: List[int]
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RelationMember:
    """A typed, role-labelled reference from a relation"""
    ref: int
    kind: str  # one of MEMBER_KINDS
    role: str = ""


@dataclass(frozen=True)
class OSMRelation:
    """Represents an OSM relation"""
    id: int
    members: List[RelationMember]
    tags: Dict[str, str] = field(default_factory=dict)


Primitive = Union[OSMNode, OSMWay, OSMRelation]
