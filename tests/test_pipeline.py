"""
Tests for the extraction pipeline
"""

import pytest

from osm_extract import ExtractionPipeline, MalformedQuery, open_source
from osm_extract.analysis.tag_query import parse
from osm_extract.osm import OSMResponseParser, PBFReader


@pytest.fixture
def berlin(osm):
    """A fountain, a town hall, a street in two pieces and one district"""
    osm.node(13.40, 52.52, {"amenity": "fountain", "tourism": "attraction"})
    osm.node(13.41, 52.52, {"amenity": "fountain"})
    hall = osm.way([(13.40, 52.51), (13.41, 52.51), (13.41, 52.515), (13.40, 52.515), (13.40, 52.51)],
                   {"amenity": "townhall", "name": "Rotes Rathaus"})
    osm.way([(13.38, 52.517), (13.385, 52.517)], {"highway": "primary", "name": "Unter den Linden"})
    osm.way([(13.385, 52.517), (13.39, 52.517)], {"highway": "primary", "name": "Unter den Linden"})
    district = osm.way([(13.3, 52.4), (13.5, 52.4), (13.5, 52.6), (13.3, 52.6), (13.3, 52.4)])
    osm.boundary("Mitte", 10, [district])
    osm.hall = hall
    return osm


def pipeline_for(osm, config):
    pipeline = ExtractionPipeline(config)
    pipeline.load(osm.primitives)
    return pipeline


def test_requires_load(config):
    with pytest.raises(RuntimeError):
        ExtractionPipeline(config).objects("amenity")


def test_invalid_config_rejected(config):
    config.workers = 0
    with pytest.raises(ValueError):
        ExtractionPipeline(config)


def test_objects_by_query(berlin, config):
    pipeline = pipeline_for(berlin, config)

    records = pipeline.objects("amenity~fountain+tourism,amenity~townhall")

    assert [(r.type, r.id) for r in records] == [("node", 1), ("way", berlin.hall)]
    node, hall = records
    assert node.centroid.lat == 52.52 and node.centroid.lon == 13.40
    assert node.bounds is None
    assert hall.centroid.lat == pytest.approx(52.5125)
    assert hall.centroid.lon == pytest.approx(13.405)
    assert hall.bounds.w == pytest.approx(13.40)
    assert hall.bounds.n == pytest.approx(52.515)
    assert hall.coordinates is None


def test_objects_accept_parsed_query(berlin, config):
    pipeline = pipeline_for(berlin, config)
    assert len(pipeline.objects(parse("amenity"))) == 3


def test_malformed_query(berlin, config):
    pipeline = pipeline_for(berlin, config)
    with pytest.raises(MalformedQuery):
        pipeline.objects("amenity,")


def test_retained_coordinates(berlin, config):
    pipeline = pipeline_for(berlin, config)

    (hall,) = pipeline.objects("name~Rotes Rathaus", retain_coordinates=True)

    assert len(hall.coordinates) == 5
    assert hall.coordinates[0] == hall.coordinates[-1]


def test_relation_object_uses_hull(osm, config):
    a = osm.node(0, 0)
    b = osm.node(2, 0)
    c = osm.node(1, 2)
    d = osm.node(1, 1)
    rel = osm.relation([("node", n, "") for n in (a, b, c, d)], {"site": "yes"})
    pipeline = pipeline_for(osm, config)

    (record,) = pipeline.objects("site")

    assert record.id == rel
    assert record.type == "relation"
    assert (record.bounds.w, record.bounds.s, record.bounds.e, record.bounds.n) == (0, 0, 2, 2)


def test_dangling_object_skipped_and_counted(osm, config):
    osm.way_from_nodes([osm.node(0, 0), 555], {"building": "yes"})
    osm.way([(0, 0), (1, 1)], {"building": "yes"})
    pipeline = pipeline_for(osm, config)

    records = pipeline.objects("building")

    assert len(records) == 1
    assert pipeline.stats.dangling_references == 1


def test_streets_merge(berlin, config):
    pipeline = pipeline_for(berlin, config)

    (street,) = pipeline.streets(name="Unter den Linden")

    assert len(street.lines) == 1
    assert street.boundary is None


def test_streets_split_by_boundary(berlin, config):
    pipeline = pipeline_for(berlin, config)

    (street,) = pipeline.streets(name="Unter den Linden", boundary_level=10)

    assert street.boundary == "Mitte"


def test_street_query_combines_name(config):
    pipeline = ExtractionPipeline(config)

    query = pipeline.street_query("A", "highway~footway")

    assert str(query) == "highway~footway+name~A"
    assert str(pipeline.street_query()).startswith("highway~primary,highway~secondary")


def test_admin_boundaries(berlin, config):
    pipeline = pipeline_for(berlin, config)

    (mitte,) = pipeline.admin_boundaries()

    assert mitte.name == "Mitte"
    assert mitte.sw == [13.3, 52.4]
    assert mitte.ne == [13.5, 52.6]
    assert pipeline.admin_boundaries([8]) == []


def test_parallel_matches_sequential(berlin, config):
    sequential = pipeline_for(berlin, config).objects("amenity")
    config.workers = 4
    parallel = pipeline_for(berlin, config).objects("amenity")

    assert sequential == parallel


def test_open_source_by_extension(tmp_path):
    assert isinstance(open_source(tmp_path / "a.json"), OSMResponseParser)
    assert isinstance(open_source(tmp_path / "a.osm.pbf"), PBFReader)
    assert isinstance(open_source(tmp_path / "a.osm"), PBFReader)
