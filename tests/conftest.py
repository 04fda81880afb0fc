import sys
from pathlib import Path

import pytest
from loguru import logger

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from osm_extract.config import ExtractConfig
from osm_extract.osm import EntityIndex, OSMNode, OSMWay, OSMRelation, RelationMember


class OSMBuilder:
    """Builds small primitive sets; nodes get ids from 1 upwards"""

    def __init__(self):
        self.primitives = []
        self._next_node = 1
        self._next_way = 100
        self._next_relation = 1000

    def node(self, lon, lat, tags=None, node_id=None):
        node_id = node_id or self._next_node
        self._next_node = max(self._next_node, node_id) + 1
        self.primitives.append(OSMNode(id=node_id, lat=lat, lon=lon, tags=tags or {}))
        return node_id

    def way(self, coords, tags=None, way_id=None):
        """coords: [(lon, lat), ...]; repeats the first node id when first == last"""
        node_ids = []
        for i, (lon, lat) in enumerate(coords):
            if i == len(coords) - 1 and i > 0 and tuple(coords[0]) == tuple(coords[-1]):
                node_ids.append(node_ids[0])
            else:
                node_ids.append(self.node(lon, lat))
        return self.way_from_nodes(node_ids, tags, way_id)

    def way_from_nodes(self, node_ids, tags=None, way_id=None):
        way_id = way_id or self._next_way
        self._next_way = max(self._next_way, way_id) + 1
        self.primitives.append(OSMWay(id=way_id, node_ids=list(node_ids), tags=tags or {}))
        return way_id

    def relation(self, members, tags=None, relation_id=None):
        """members: [(kind, ref, role), ...]"""
        relation_id = relation_id or self._next_relation
        self._next_relation = max(self._next_relation, relation_id) + 1
        self.primitives.append(OSMRelation(
            id=relation_id,
            members=[RelationMember(ref=ref, kind=kind, role=role) for kind, ref, role in members],
            tags=tags or {}
        ))
        return relation_id

    def boundary(self, name, level, outer_ways, inner_ways=(), relation_id=None):
        members = [("way", w, "outer") for w in outer_ways]
        members += [("way", w, "inner") for w in inner_ways]
        tags = {"type": "boundary", "boundary": "administrative",
                "admin_level": str(level), "name": name}
        return self.relation(members, tags, relation_id)

    def index(self):
        return EntityIndex.build(self.primitives)


@pytest.fixture
def osm():
    return OSMBuilder()


@pytest.fixture
def osm_builder():
    return OSMBuilder


@pytest.fixture
def config():
    return ExtractConfig(workers=1)


@pytest.fixture(autouse=True)
def quiet_logging():
    logger.remove()
    yield
    logger.remove()
