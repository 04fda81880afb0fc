"""
Entity index

Flat id-keyed lookups for every primitive of a run. Ways and relations hold
only ids; coordinates are resolved on demand by walking those ids through
the lookups. The index is written once during ingest and then frozen, so
worker threads can read it without locking.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple
from loguru import logger

from ..errors import DanglingReference
from .models import OSMNode, OSMWay, OSMRelation, RelationMember, Primitive


class EntityIndex:
    """Id → primitive lookups with lazy geometry resolution"""

    def __init__(self):
        self.nodes: Dict[int, OSMNode] = {}
        self.ways: Dict[int, OSMWay] = {}
        self.relations: Dict[int, OSMRelation] = {}
        self.duplicates = 0
        self._frozen = False

    @classmethod
    def build(cls, primitives: Iterable[Primitive]) -> "EntityIndex":
        """
        Consume a primitive stream in one pass and freeze the result

        Args:
            primitives: Any iterable of OSMNode / OSMWay / OSMRelation

        Returns:
            Frozen EntityIndex
        """
        index = cls()
        for primitive in primitives:
            index.add(primitive)
        index.freeze()
        logger.info(
            f"Indexed {len(index.nodes)} nodes, {len(index.ways)} ways, "
            f"{len(index.relations)} relations"
        )
        if index.duplicates:
            logger.warning(f"{index.duplicates} duplicate primitive id(s) replaced by later versions")
        return index

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add(self, primitive: Primitive) -> None:
        if self._frozen:
            raise RuntimeError("EntityIndex is frozen; primitives can only be added during ingest")

        if isinstance(primitive, OSMNode):
            table = self.nodes
        elif isinstance(primitive, OSMWay):
            table = self.ways
        elif isinstance(primitive, OSMRelation):
            table = self.relations
        else:
            raise TypeError(f"Not an OSM primitive: {primitive!r}")

        if primitive.id in table:
            self.duplicates += 1
        table[primitive.id] = primitive

    def freeze(self) -> None:
        self._frozen = True

    def __len__(self) -> int:
        return len(self.nodes) + len(self.ways) + len(self.relations)

    def primitives(self) -> Iterator[Tuple[str, Primitive]]:
        """Iterate every primitive as (kind, primitive): nodes, ways, relations, each by id"""
        for node_id in sorted(self.nodes):
            yield "node", self.nodes[node_id]
        for way_id in sorted(self.ways):
            yield "way", self.ways[way_id]
        for relation_id in sorted(self.relations):
            yield "relation", self.relations[relation_id]

    # ------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------

    def way_coordinates(self, way_id: int) -> List[List[float]]:
        """
        Resolve a way's node references to [lon, lat] coordinates

        Raises:
            KeyError: if the way itself is not indexed
            DanglingReference: if any referenced node is missing
        """
        way = self.ways[way_id]
        coords = []
        for node_id in way.node_ids:
            node = self.nodes.get(node_id)
            if node is None:
                raise DanglingReference("way", way_id, "node", node_id)
            coords.append(node.coordinate())
        return coords

    def relation_coordinates(
        self,
        relation_id: int,
        _visited: Optional[Set[int]] = None
    ) -> List[List[float]]:
        """
        Resolve every coordinate reachable from a relation's members

        Nested relations are followed; a relation already on the visited
        set contributes nothing, which breaks reference cycles.

        Raises:
            KeyError: if the relation itself is not indexed
            DanglingReference: if any member (or a member's node) is missing
        """
        visited = _visited if _visited is not None else set()
        if relation_id in visited:
            return []
        visited.add(relation_id)

        relation = self.relations[relation_id]
        coords = []
        for member in relation.members:
            if member.kind == "node":
                node = self.nodes.get(member.ref)
                if node is None:
                    raise DanglingReference("relation", relation_id, "node", member.ref)
                coords.append(node.coordinate())
            elif member.kind == "way":
                if member.ref not in self.ways:
                    raise DanglingReference("relation", relation_id, "way", member.ref)
                coords.extend(self.way_coordinates(member.ref))
            elif member.kind == "relation":
                if member.ref not in self.relations:
                    raise DanglingReference("relation", relation_id, "relation", member.ref)
                coords.extend(self.relation_coordinates(member.ref, visited))
        return coords

    def relation_way_members(
        self,
        relation_id: int
    ) -> Tuple[List[Tuple[RelationMember, List[List[float]]]], List[DanglingReference]]:
        """
        Resolve a relation's way members leniently

        Clipped extracts routinely miss some member ways of a large relation,
        so unresolvable members are returned separately instead of failing
        the whole relation.

        Returns:
            Tuple of ([(member, coordinates)], [DanglingReference per skipped member])
        """
        relation = self.relations[relation_id]
        resolved = []
        missing = []
        for member in relation.members:
            if member.kind != "way":
                continue
            if member.ref not in self.ways:
                missing.append(DanglingReference("relation", relation_id, "way", member.ref))
                continue
            try:
                resolved.append((member, self.way_coordinates(member.ref)))
            except DanglingReference as e:
                missing.append(e)
        return resolved, missing
