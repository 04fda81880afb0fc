"""
Main Pipeline Orchestrator for OSM extraction

Two phases:

  1. Ingest: a single sequential pass over the primitive source builds the
     EntityIndex, which is then frozen
  2. Derive: objects / streets / boundaries fan out over the frozen index
     in a thread pool; per-task anomaly counts are merged into self.stats

Primitive sources:
  - PBFReader: .osm.pbf / .osm / .osm.bz2 via pyosmium
  - OSMResponseParser: Overpass / OSM JSON documents
"""

from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from loguru import logger

from .config import ExtractConfig, get_config, validate_config
from .errors import DanglingReference
from .models import Bounds, Location, ObjectRecord
from .osm import EntityIndex, OSMResponseParser, PBFReader, Primitive
from .analysis.boundaries import AdminBoundary, BoundaryAssembler
from .analysis.geometry_utils import get_compound_coordinates, get_geo_info
from .analysis.streets import Street, StreetClusterer, street_query
from .analysis.tag_query import Predicate, TagQuery, parse
from .parallel import fan_out
from .stats import ExtractionStats

JSON_SUFFIXES = (".json", ".geojson")


def open_source(path: Union[str, Path]) -> Iterable[Primitive]:
    """Pick a primitive source for a file by its extension"""
    path = Path(path)
    if path.suffix.lower() in JSON_SUFFIXES:
        return OSMResponseParser(path)
    return PBFReader(path)


class ExtractionPipeline:
    """
    Extract objects, streets and boundaries from one primitive stream

    Usage:
        pipeline = ExtractionPipeline()
        pipeline.load(open_source("berlin.osm.pbf"))
        streets = pipeline.streets(name="Wilhelmstraße", boundary_level=10)
    """

    def __init__(self, config: Optional[ExtractConfig] = None):
        self.config = config or get_config()
        validate_config(self.config)
        self.index: Optional[EntityIndex] = None
        self.stats = ExtractionStats()

    def load(self, primitives: Iterable[Primitive]) -> EntityIndex:
        """
        Ingest a primitive stream; must complete before any extraction

        Raises:
            DecodeError: propagated from the source, aborting the run
        """
        self.index = EntityIndex.build(primitives)
        self.stats = ExtractionStats()
        return self.index

    def _require_index(self) -> EntityIndex:
        if self.index is None or not self.index.frozen:
            raise RuntimeError("No primitives loaded; call load() first")
        return self.index

    # ============================================================
    # Objects
    # ============================================================

    def objects(
        self,
        query: Union[str, TagQuery, None] = None,
        retain_coordinates: Optional[bool] = None
    ) -> List[ObjectRecord]:
        """
        Entities matching a tag query, with centroid and bounds

        Args:
            query: Tag query string or parsed TagQuery (None = everything)
            retain_coordinates: Include resolved coordinates (default from config)

        Returns:
            Records for nodes, then ways, then relations, each in id order

        Raises:
            MalformedQuery: if a query string cannot be parsed
        """
        tag_query = query if isinstance(query, TagQuery) else parse(query)
        index = self._require_index()
        retain = self.config.retain_coordinates if retain_coordinates is None else retain_coordinates

        candidates = [
            (kind, primitive.id)
            for kind, primitive in index.primitives()
            if tag_query.test(primitive.tags)
        ]
        logger.info(f"{len(candidates)} object(s) match tag query '{tag_query}'")

        results = fan_out(
            lambda item: self._object_record(item[0], item[1], retain),
            candidates,
            self.config.workers
        )

        records = []
        stats = ExtractionStats()
        for record, task_stats in results:
            stats.merge(task_stats)
            if record is not None:
                records.append(record)

        self.stats.merge(stats)
        stats.log_summary("Objects")
        return records

    def _object_record(
        self,
        kind: str,
        primitive_id: int,
        retain: bool
    ) -> Tuple[Optional[ObjectRecord], ExtractionStats]:
        stats = ExtractionStats()
        index = self.index

        if kind == "node":
            node = index.nodes[primitive_id]
            record = ObjectRecord(
                id=node.id,
                type="node",
                tags=node.tags,
                centroid=Location(lat=node.lat, lon=node.lon),
                bounds=None,
            )
            return record, stats

        try:
            if kind == "way":
                coords = index.way_coordinates(primitive_id)
                tags = index.ways[primitive_id].tags
            else:
                coords = get_compound_coordinates(index.relation_coordinates(primitive_id))
                tags = index.relations[primitive_id].tags
        except DanglingReference as e:
            stats.dangling_references += 1
            logger.debug(f"Object skipped: {e}")
            return None, stats

        centroid, bounds = get_geo_info(coords)
        extra = {"coordinates": coords} if retain else {}
        record = ObjectRecord(
            id=primitive_id,
            type=kind,
            tags=tags,
            centroid=Location(**centroid) if centroid else None,
            bounds=Bounds(**bounds) if bounds else None,
            **extra
        )
        return record, stats

    # ============================================================
    # Streets
    # ============================================================

    def street_query(self, name: Optional[str] = None, query: Union[str, TagQuery, None] = None) -> TagQuery:
        """
        Tag query selecting street segments

        An explicit query replaces the default highway-type query; a name
        adds a name~<name> predicate to every clause.
        """
        if query is None:
            base = street_query(self.config.street_highway_types)
        else:
            base = query if isinstance(query, TagQuery) else parse(query)
        if name is not None:
            base = base.combine(TagQuery.all_of(Predicate("name", name)))
        return base

    def streets(
        self,
        name: Optional[str] = None,
        boundary_level: Optional[int] = None,
        query: Union[str, TagQuery, None] = None
    ) -> List[Street]:
        """
        Cluster named ways into streets

        Args:
            name: Exact street name (None = every named way)
            boundary_level: Split streets along admin boundaries of this level
            query: Tag query replacing the default highway-type selection

        Returns:
            Streets ordered by name (then boundary)

        Raises:
            MalformedQuery: if a query string cannot be parsed
        """
        tag_query = self.street_query(name, query)
        index = self._require_index()

        boundaries = None
        if boundary_level is not None:
            boundaries = self.admin_boundaries([boundary_level])

        clusterer = StreetClusterer(index, self.config)
        streets, stats = clusterer.extract(tag_query, name, boundaries, self.config.workers)

        self.stats.merge(stats)
        stats.log_summary("Streets")
        return streets

    # ============================================================
    # Boundaries
    # ============================================================

    def admin_boundaries(self, levels: Optional[List[int]] = None) -> List[AdminBoundary]:
        """
        Assemble administrative boundaries

        Args:
            levels: Admin levels (default from config, normally 4, 6, 8, 9, 10)

        Returns:
            Boundaries ordered by relation id
        """
        index = self._require_index()
        assembler = BoundaryAssembler(index, self.config)
        boundaries, stats = assembler.extract(levels, self.config.workers)

        self.stats.merge(stats)
        stats.log_summary("Boundaries")
        return boundaries
