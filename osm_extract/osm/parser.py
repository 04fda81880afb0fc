"""
OSM JSON parser

Parses Overpass API / OSM JSON documents into OSMNode, OSMWay and
OSMRelation primitives
"""

import json
from pathlib import Path
from typing import Dict, Any, Iterator, Union

from ..errors import DecodeError
from .models import OSMNode, OSMWay, OSMRelation, RelationMember, Primitive, MEMBER_KINDS


class OSMResponseParser:
    """Parses Overpass / OSM JSON documents into a primitive stream"""

    def __init__(self, source: Union[str, Path, Dict[str, Any]]):
        self.source = source

    def __iter__(self) -> Iterator[Primitive]:
        data = self._load()
        label = str(self.source) if not isinstance(self.source, dict) else None
        yield from self.parse_elements(data, label)

    def _load(self) -> Dict[str, Any]:
        if isinstance(self.source, dict):
            return self.source
        try:
            with open(self.source, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DecodeError(f"cannot read OSM JSON document: {e}", str(self.source)) from e

    @staticmethod
    def parse_elements(data: Dict[str, Any], source: str = None) -> Iterator[Primitive]:
        """
        Parse an OSM JSON document into primitives

        Handles both 'out body' (node references) and 'out geom' documents;
        inline way geometry from 'out geom' is ignored in favour of node refs.

        Args:
            data: JSON document with an "elements" list
            source: Label used in error messages

        Yields:
            OSMNode, OSMWay and OSMRelation objects in document order

        Raises:
            DecodeError: if the document or an element is structurally invalid
        """
        if not isinstance(data, dict) or not isinstance(data.get("elements"), list):
            raise DecodeError("document has no 'elements' list", source)

        for element in data["elements"]:
            try:
                element_type = element["type"]
                element_id = int(element["id"])
                tags = {str(k): str(v) for k, v in element.get("tags", {}).items()}

                if element_type == "node":
                    yield OSMNode(
                        id=element_id,
                        lat=float(element["lat"]),
                        lon=float(element["lon"]),
                        tags=tags
                    )
                elif element_type == "way":
                    yield OSMWay(
                        id=element_id,
                        node_ids=[int(n) for n in element.get("nodes", [])],
                        tags=tags
                    )
                elif element_type == "relation":
                    members = []
                    for member in element.get("members", []):
                        kind = member["type"]
                        if kind not in MEMBER_KINDS:
                            raise ValueError(f"unknown member type {kind!r}")
                        members.append(RelationMember(
                            ref=int(member["ref"]),
                            kind=kind,
                            role=member.get("role", "") or ""
                        ))
                    yield OSMRelation(id=element_id, members=members, tags=tags)
                # Other element types (e.g. Overpass 'count') carry no primitives
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise DecodeError(f"malformed element {element!r}: {e}", source) from e
