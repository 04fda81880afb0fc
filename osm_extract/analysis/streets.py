"""
Street clustering

Streets are digitised in OSM as many short ways sharing a `name` tag. Ways of
one name are joined wherever their endpoints meet (within the merge
tolerance) and each connected group becomes one street with a multi-part
line geometry.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import networkx as nx
from loguru import logger
from shapely.geometry import LineString, MultiLineString, Point, box
from shapely.ops import linemerge
from shapely.strtree import STRtree

from ..config import ExtractConfig, get_config
from ..errors import DanglingReference, DegenerateGeometry
from ..osm.index import EntityIndex
from ..parallel import fan_out
from ..stats import ExtractionStats
from .boundaries import AdminBoundary
from .geometry_utils import (
    calculate_line_length,
    coord_distance,
    get_middle,
    line_midpoint,
    meters_to_degrees,
)
from .tag_query import Clause, Predicate, TagQuery

Coords = List[List[float]]

# Smallest search envelope half-width in degrees, so a zero tolerance still hits exact matches
MIN_SEARCH_DEG = 1e-9


@dataclass
class Segment:
    """A resolved way taking part in clustering"""
    way_id: int
    coords: Coords


@dataclass
class Street:
    """One connected group of same-name ways"""
    name: str
    way_ids: List[int]
    lines: List[Coords]
    boundary: Optional[str] = None

    @property
    def id(self) -> int:
        """Order-independent id derived from the member way ids"""
        street_id = 0
        for way_id in self.way_ids:
            street_id ^= way_id
        return street_id

    @property
    def length(self) -> float:
        """Total length in meters"""
        return sum(calculate_line_length(line) for line in self.lines)

    @property
    def middle(self) -> Optional[List[float]]:
        """Representative [lon, lat] vertex near the centre of the street"""
        return get_middle(self.lines)


@dataclass
class StreetGroup:
    """Work item for one name: the ways to cluster"""
    name: str
    way_ids: List[int] = field(default_factory=list)


def street_query(highway_types: List[str]) -> TagQuery:
    """highway in highway_types"""
    return TagQuery(tuple(Clause((Predicate("highway", value),)) for value in highway_types))


class BoundaryLookup:
    """Point-in-boundary search over a fixed set of assembled boundaries"""

    def __init__(self, boundaries: List[AdminBoundary]):
        self.boundaries = []
        polygons = []
        for boundary in boundaries:
            geometry = boundary.geometry()
            if geometry is None:
                logger.debug(f"Boundary {boundary.relation_id} has no closed ring; not used for splitting")
                continue
            self.boundaries.append(boundary)
            polygons.append(geometry)
        self.tree = STRtree(polygons)

    def __len__(self) -> int:
        return len(self.boundaries)

    def find(self, coord: List[float]) -> Optional[AdminBoundary]:
        """Boundary containing the point, lowest relation id wins on overlap"""
        if not self.boundaries:
            return None
        hits = self.tree.query(Point(coord), predicate="within")
        if len(hits) == 0:
            return None
        return min((self.boundaries[int(i)] for i in hits), key=lambda b: b.relation_id)


class StreetClusterer:
    """Clusters named ways of a frozen EntityIndex into streets"""

    def __init__(self, index: EntityIndex, config: Optional[ExtractConfig] = None):
        self.index = index
        self.config = config or get_config()

    def name_groups(self, query: TagQuery, name: Optional[str] = None) -> List[StreetGroup]:
        """
        Partition ways by exact name

        Args:
            query: Tag query a way must match
            name: Only keep ways with exactly this name

        Returns:
            Groups ordered by name, way ids ascending
        """
        groups: Dict[str, StreetGroup] = {}
        for way_id in sorted(self.index.ways):
            tags = self.index.ways[way_id].tags
            way_name = tags.get("name")
            if not way_name:
                continue
            if name is not None and way_name != name:
                continue
            if not query.test(tags):
                continue
            groups.setdefault(way_name, StreetGroup(way_name)).way_ids.append(way_id)
        return [groups[k] for k in sorted(groups)]

    def segments(self, way_ids: List[int], stats: ExtractionStats) -> List[Segment]:
        """Resolve ways, skipping dangling and degenerate ones"""
        segments = []
        for way_id in way_ids:
            try:
                coords = self.index.way_coordinates(way_id)
                if len(coords) < 2:
                    raise DegenerateGeometry(way_id, len(coords))
            except DanglingReference as e:
                stats.dangling_references += 1
                logger.debug(f"Street segment skipped: {e}")
                continue
            except DegenerateGeometry as e:
                stats.degenerate_geometries += 1
                logger.debug(f"Street segment skipped: {e}")
                continue
            segments.append(Segment(way_id, coords))
        return segments

    def cluster(self, segments: List[Segment]) -> Tuple[List[List[int]], Dict[int, List[float]]]:
        """
        Group segments whose endpoints lie within the merge tolerance

        Endpoint i of segment s is endpoint number 2*s (start) or 2*s + 1
        (end). Candidate pairs of endpoints from different segments are
        joined into junctions closest pair first. A junction never takes
        both endpoints of one segment, so a segment shorter than the
        tolerance keeps its two ends apart.

        Each junction snaps to the coordinate most of its endpoints share
        (lowest endpoint number on a tie), so coincident endpoints stay put.

        Returns:
            Tuple of (components as sorted segment positions,
                      endpoint number → snapped junction coordinate)
        """
        tolerance = self.config.merge_tolerance_m
        endpoints = []
        for seg in segments:
            endpoints.append(seg.coords[0])
            endpoints.append(seg.coords[-1])

        tree = STRtree([Point(c) for c in endpoints])
        candidates = []
        for i, coord in enumerate(endpoints):
            d_lon, d_lat = meters_to_degrees(tolerance, coord[1])
            d_lon, d_lat = max(d_lon, MIN_SEARCH_DEG), max(d_lat, MIN_SEARCH_DEG)
            envelope = box(coord[0] - d_lon, coord[1] - d_lat, coord[0] + d_lon, coord[1] + d_lat)
            for j in tree.query(envelope):
                j = int(j)
                if j <= i or j // 2 == i // 2:
                    continue
                distance = coord_distance(coord, endpoints[j])
                if distance <= tolerance:
                    candidates.append((distance, i, j))

        junctions = nx.utils.UnionFind(range(len(endpoints)))
        members = {i: {i // 2} for i in range(len(endpoints))}
        for _, i, j in sorted(candidates):
            root_i, root_j = junctions[i], junctions[j]
            if root_i == root_j or members[root_i] & members[root_j]:
                continue
            junctions.union(root_i, root_j)
            members[junctions[i]] = members[root_i] | members[root_j]

        segment_graph = nx.Graph()
        segment_graph.add_nodes_from(range(len(segments)))
        snapped = {}
        for junction in junctions.to_sets():
            junction = sorted(junction)
            shared = Counter(tuple(endpoints[e]) for e in junction)
            anchor = endpoints[min(junction, key=lambda e: (-shared[tuple(endpoints[e])], e))]
            for endpoint in junction:
                snapped[endpoint] = anchor
            nx.add_path(segment_graph, [e // 2 for e in junction])

        components = sorted(sorted(c) for c in nx.connected_components(segment_graph))
        return components, snapped

    @staticmethod
    def merge(segments: List[Segment], positions: List[int], snapped: Dict[int, List[float]]) -> List[Coords]:
        """
        Join one component's segments into as few lines as possible

        Branching junctions leave a multi-part result; no single path is forced.
        """
        lines = []
        for pos in positions:
            coords = [list(c) for c in segments[pos].coords]
            coords[0] = list(snapped[2 * pos])
            coords[-1] = list(snapped[2 * pos + 1])
            line = LineString(coords)
            if line.length == 0:
                # Snapping collapsed a tiny segment; keep it as digitised
                line = LineString(segments[pos].coords)
            lines.append(line)

        merged = linemerge(MultiLineString(lines)) if len(lines) > 1 else lines[0]
        parts = [merged] if isinstance(merged, LineString) else list(merged.geoms)
        return [[[x, y] for x, y in part.coords] for part in parts]

    def build_streets(
        self,
        name: str,
        segments: List[Segment],
        boundary: Optional[str] = None
    ) -> List[Street]:
        if not segments:
            return []
        components, snapped = self.cluster(segments)
        return [
            Street(
                name=name,
                way_ids=[segments[pos].way_id for pos in positions],
                lines=self.merge(segments, positions, snapped),
                boundary=boundary,
            )
            for positions in components
        ]

    def process_group(
        self,
        group: StreetGroup,
        lookup: Optional[BoundaryLookup] = None
    ) -> Tuple[List[Street], ExtractionStats]:
        """Resolve, optionally split by boundary, and cluster one name group"""
        stats = ExtractionStats()
        segments = self.segments(group.way_ids, stats)

        if lookup is None:
            return self.build_streets(group.name, segments), stats

        by_boundary: Dict[Optional[int], List[Segment]] = defaultdict(list)
        names: Dict[Optional[int], Optional[str]] = {None: None}
        for seg in segments:
            area = lookup.find(line_midpoint(seg.coords))
            key = area.relation_id if area else None
            if area:
                names[key] = area.name
            by_boundary[key].append(seg)

        streets = []
        for key in sorted(by_boundary, key=lambda k: (k is not None, k or 0)):
            streets.extend(self.build_streets(group.name, by_boundary[key], names[key]))
        return streets, stats

    def extract(
        self,
        query: TagQuery,
        name: Optional[str] = None,
        boundaries: Optional[List[AdminBoundary]] = None,
        workers: Optional[int] = None
    ) -> Tuple[List[Street], ExtractionStats]:
        """
        Cluster every name group into streets

        Args:
            query: Tag query a way must match to count as a street segment
            name: Exact name filter (None = all named ways)
            boundaries: When given, split streets where they cross between these areas
            workers: Thread count for the fan-out (default from config)

        Returns:
            Tuple of (streets ordered by name, merged stats)
        """
        groups = self.name_groups(query, name)
        lookup = BoundaryLookup(boundaries) if boundaries is not None else None
        if lookup is not None:
            logger.info(f"Splitting streets along {len(lookup)} boundaries")
        logger.info(f"Clustering {sum(len(g.way_ids) for g in groups)} ways in {len(groups)} name group(s)")

        results = fan_out(
            lambda group: self.process_group(group, lookup),
            groups,
            workers or self.config.workers
        )

        streets = []
        stats = ExtractionStats()
        for group_streets, task_stats in results:
            streets.extend(group_streets)
            stats.merge(task_stats)

        logger.info(f"Built {len(streets)} street(s)")
        return streets, stats
