"""
Administrative boundary assembly

Boundary relations store their outline as an unordered bag of way fragments,
shared with neighbouring areas and often clipped at the extract's edge.
Fragments are stitched into closed rings per role; whatever does not close
is reported but still counts towards the bounding box.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from loguru import logger
from shapely.geometry import MultiPolygon, Polygon

from ..config import ExtractConfig, get_config
from ..errors import DegenerateGeometry, IncompleteRing
from ..osm.index import EntityIndex
from ..parallel import fan_out
from ..stats import ExtractionStats
from .geometry_utils import bounding_box, coord_distance
from .tag_query import Clause, Predicate, TagQuery

Coords = List[List[float]]


@dataclass
class AdminBoundary:
    """An assembled administrative area"""
    relation_id: int
    name: str
    admin_level: int
    bbox: Optional[Tuple[float, float, float, float]]  # (west, south, east, north)
    outer_rings: List[Coords] = field(default_factory=list)
    inner_rings: List[Coords] = field(default_factory=list)
    open_chains: List[Coords] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.open_chains and bool(self.outer_rings)

    @property
    def sw(self) -> Optional[List[float]]:
        return [self.bbox[0], self.bbox[1]] if self.bbox else None

    @property
    def ne(self) -> Optional[List[float]]:
        return [self.bbox[2], self.bbox[3]] if self.bbox else None

    @property
    def rings(self) -> List[Coords]:
        return self.outer_rings + self.inner_rings

    def polygon_coordinates(self) -> List[List[Coords]]:
        """
        MultiPolygon coordinates: one [outer, *holes] list per outer ring

        Each inner ring is attached to the first outer ring containing it;
        holes outside every outer ring are dropped.
        """
        outers = [Polygon(ring) for ring in self.outer_rings]
        holes: List[List[Coords]] = [[] for _ in outers]
        for ring in self.inner_rings:
            probe = Polygon(ring).representative_point()
            for i, outer in enumerate(outers):
                if outer.contains(probe):
                    holes[i].append(ring)
                    break
            else:
                logger.debug(f"Relation {self.relation_id}: inner ring outside every outer ring dropped")
        return [[ring] + holes[i] for i, ring in enumerate(self.outer_rings)]

    def geometry(self) -> Optional[MultiPolygon]:
        """Shapely MultiPolygon of the closed rings, None if no outer ring closed"""
        if not self.outer_rings:
            return None
        return MultiPolygon([(p[0], p[1:]) for p in self.polygon_coordinates()])


def _is_closed(chain: Coords, tolerance_m: float) -> bool:
    return len(chain) >= 4 and coord_distance(chain[0], chain[-1]) <= tolerance_m


def _join(a: Coords, b: Coords, tolerance_m: float) -> Optional[Coords]:
    """Attach chain b to either end of chain a, reversing b if needed"""
    if coord_distance(a[-1], b[0]) <= tolerance_m:
        return a + b[1:]
    if coord_distance(a[-1], b[-1]) <= tolerance_m:
        return a + b[-2::-1]
    if coord_distance(a[0], b[-1]) <= tolerance_m:
        return b + a[1:]
    if coord_distance(a[0], b[0]) <= tolerance_m:
        return b[::-1] + a[1:]
    return None


def _cut_loops(chain: Coords, tolerance_m: float, rings: List[Coords]) -> Coords:
    """
    Split off loops that close on an interior vertex of the chain

    Rings touching at a single vertex (enclaves, exclaves) would otherwise be
    stitched into one self-touching outline. A vertex near both chain ends
    is the chain's own closure and is left alone.
    """
    while True:
        for k in range(1, len(chain) - 3):
            if coord_distance(chain[-1], chain[k]) <= tolerance_m < coord_distance(chain[0], chain[k]):
                ring = chain[k:]
                ring[-1] = ring[0]
                rings.append(ring)
                chain = chain[:k + 1]
                break
        else:
            for k in range(3, len(chain) - 1):
                if coord_distance(chain[0], chain[k]) <= tolerance_m < coord_distance(chain[-1], chain[k]):
                    ring = chain[:k + 1]
                    ring[-1] = ring[0]
                    rings.append(ring)
                    chain = chain[k:]
                    break
            else:
                return chain


def assemble_rings(chains: List[Coords], tolerance_m: float) -> Tuple[List[Coords], List[Coords]]:
    """
    Stitch way fragments into closed rings

    Repeatedly grows a chain by attaching any pending fragment whose end
    coincides with one of its ends, until it closes or nothing attaches.
    A chain that runs back into one of its own interior vertices has that
    loop cut off as a separate ring.

    Args:
        chains: Fragments with at least two coordinates each, any order/direction
        tolerance_m: Max gap in meters between ends treated as coincident

    Returns:
        Tuple of (closed rings with first == last, leftover open chains)
    """
    pending = [list(c) for c in chains]
    rings = []
    open_chains = []

    while pending:
        current = pending.pop(0)
        while True:
            current = _cut_loops(current, tolerance_m, rings)
            if _is_closed(current, tolerance_m):
                break
            for i, other in enumerate(pending):
                joined = _join(current, other, tolerance_m)
                if joined is not None:
                    current = joined
                    del pending[i]
                    break
            else:
                break

        if _is_closed(current, tolerance_m):
            current[-1] = current[0]
            rings.append(current)
        else:
            open_chains.append(current)

    return rings, open_chains


def admin_query(levels: List[int]) -> TagQuery:
    """boundary=administrative + name + admin_level in levels"""
    return TagQuery(tuple(
        Clause((
            Predicate("boundary", "administrative"),
            Predicate("admin_level", str(level)),
            Predicate("name"),
        ))
        for level in sorted(set(levels))
    ))


class BoundaryAssembler:
    """Builds AdminBoundary records from relations in a frozen EntityIndex"""

    def __init__(self, index: EntityIndex, config: Optional[ExtractConfig] = None):
        self.index = index
        self.config = config or get_config()

    def relation_ids(self, levels: Optional[List[int]] = None) -> List[int]:
        query = admin_query(levels or self.config.admin_levels)
        return sorted(
            rel_id for rel_id, rel in self.index.relations.items()
            if query.test(rel.tags)
        )

    def assemble(self, relation_id: int) -> Tuple[Optional[AdminBoundary], ExtractionStats]:
        """
        Assemble one boundary relation

        Returns:
            (AdminBoundary or None when no member coordinate resolved, stats)
        """
        stats = ExtractionStats()
        relation = self.index.relations[relation_id]
        members, missing = self.index.relation_way_members(relation_id)

        for error in missing:
            logger.debug(f"Boundary {relation_id}: {error}")
        stats.skipped_members += len(missing)

        outer_chains: List[Coords] = []
        inner_chains: List[Coords] = []
        all_coords: Coords = []
        for member, coords in members:
            all_coords.extend(coords)
            if len(coords) < 2:
                stats.degenerate_geometries += 1
                logger.debug(f"Boundary {relation_id}: {DegenerateGeometry(member.ref, len(coords))}")
                continue
            if member.role == "inner":
                inner_chains.append(coords)
            else:
                outer_chains.append(coords)

        if not all_coords:
            logger.debug(f"Boundary {relation_id}: no resolvable member coordinates, skipped")
            return None, stats

        tolerance = self.config.ring_tolerance_m
        outer_rings, outer_open = assemble_rings(outer_chains, tolerance)
        inner_rings, inner_open = assemble_rings(inner_chains, tolerance)

        boundary = AdminBoundary(
            relation_id=relation_id,
            name=relation.tags["name"],
            admin_level=int(relation.tags["admin_level"]),
            bbox=bounding_box(all_coords),
            outer_rings=outer_rings,
            inner_rings=inner_rings,
            open_chains=outer_open + inner_open,
        )

        if not boundary.complete:
            stats.incomplete_rings += 1
            logger.debug(f"Boundary {relation_id} ({boundary.name}): "
                         f"{IncompleteRing(relation_id, len(boundary.open_chains))}")

        return boundary, stats

    def extract(
        self,
        levels: Optional[List[int]] = None,
        workers: Optional[int] = None
    ) -> Tuple[List[AdminBoundary], ExtractionStats]:
        """
        Assemble every boundary relation at the requested admin levels

        Args:
            levels: Admin levels to extract (default from config)
            workers: Thread count for the fan-out (default from config)

        Returns:
            Tuple of (boundaries ordered by relation id, merged stats)
        """
        relation_ids = self.relation_ids(levels)
        logger.info(f"Assembling {len(relation_ids)} boundary relation(s)")

        results = fan_out(self.assemble, relation_ids, workers or self.config.workers)

        boundaries = []
        stats = ExtractionStats()
        for boundary, task_stats in results:
            stats.merge(task_stats)
            if boundary is not None:
                boundaries.append(boundary)

        logger.info(f"Assembled {len(boundaries)} boundaries "
                    f"({stats.incomplete_rings} incomplete)")
        return boundaries, stats
