"""
OSM file reader

Streams primitives out of .osm.pbf / .osm / .osm.bz2 files using pyosmium
"""

from pathlib import Path
from typing import Iterator, Union

import osmium
from loguru import logger

from ..errors import DecodeError
from .models import OSMNode, OSMWay, OSMRelation, RelationMember, Primitive

MEMBER_TYPE_NAMES = {"n": "node", "w": "way", "r": "relation"}


class PBFReader:
    """
    Lazy, single-pass primitive source backed by osmium.FileProcessor

    Only plain values are copied out of the osmium buffers, so the yielded
    primitives stay valid after the reader has moved on.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def __iter__(self) -> Iterator[Primitive]:
        if not self.path.exists():
            raise DecodeError("file not found", str(self.path))

        logger.info(f"Reading OSM primitives from {self.path}")
        try:
            for obj in osmium.FileProcessor(str(self.path)):
                primitive = self._convert(obj)
                if primitive is not None:
                    yield primitive
        except DecodeError:
            raise
        except (RuntimeError, OSError, ValueError) as e:
            raise DecodeError(f"cannot decode OSM data: {e}", str(self.path)) from e

    @staticmethod
    def _convert(obj) -> Union[Primitive, None]:
        tags = {tag.k: tag.v for tag in obj.tags}

        if obj.is_node():
            location = obj.location
            if not location.valid():
                logger.debug(f"Skipping node {obj.id}: invalid location")
                return None
            return OSMNode(id=obj.id, lat=location.lat, lon=location.lon, tags=tags)

        if obj.is_way():
            return OSMWay(id=obj.id, node_ids=[n.ref for n in obj.nodes], tags=tags)

        if obj.is_relation():
            members = [
                RelationMember(ref=m.ref, kind=MEMBER_TYPE_NAMES[m.type], role=m.role)
                for m in obj.members
                if m.type in MEMBER_TYPE_NAMES
            ]
            return OSMRelation(id=obj.id, members=members, tags=tags)

        # Changesets and areas are not primitives
        return None
