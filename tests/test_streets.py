"""
Tests for street clustering
"""

import pytest

from osm_extract.analysis.boundaries import BoundaryAssembler
from osm_extract.analysis.streets import BoundaryLookup, Street, StreetClusterer, street_query
from osm_extract.analysis.tag_query import parse

RESIDENTIAL = {"highway": "residential"}


def named(name, **extra):
    tags = dict(RESIDENTIAL, name=name)
    tags.update(extra)
    return tags


def run(osm, config, name=None, boundaries=None, query=None):
    clusterer = StreetClusterer(osm.index(), config)
    query = query or street_query(config.street_highway_types)
    return clusterer.extract(query, name, boundaries, workers=1)


def endpoints(line):
    return {tuple(line[0]), tuple(line[-1])}


def test_two_touching_segments_merge(osm, config):
    w1 = osm.way([(0, 0), (1, 0)], named("X"))
    w2 = osm.way([(1, 0), (2, 0)], named("X"))

    streets, stats = run(osm, config)

    assert len(streets) == 1
    street = streets[0]
    assert street.name == "X"
    assert sorted(street.way_ids) == [w1, w2]
    assert len(street.lines) == 1
    assert endpoints(street.lines[0]) == {(0, 0), (2, 0)}
    assert len(street.lines[0]) == 3
    assert stats.total == 0


def test_reversed_segment_still_merges(osm, config):
    osm.way([(0, 0), (0.001, 0)], named("X"))
    osm.way([(0.002, 0), (0.001, 0)], named("X"))

    streets, _ = run(osm, config)

    assert len(streets) == 1
    assert len(streets[0].lines) == 1
    assert endpoints(streets[0].lines[0]) == {(0, 0), (0.002, 0)}


def test_gap_within_tolerance_snaps(osm, config):
    # ~11 m apart at the equator
    osm.way([(0, 0), (0.001, 0)], named("X"))
    osm.way([(0.0011, 0), (0.002, 0)], named("X"))

    streets, _ = run(osm, config)

    assert len(streets) == 1
    assert len(streets[0].lines) == 1
    assert endpoints(streets[0].lines[0]) == {(0, 0), (0.002, 0)}


def test_gap_beyond_tolerance_stays_separate(osm, config):
    # ~111 m apart, default tolerance is 25 m
    osm.way([(0, 0), (0.001, 0)], named("X"))
    osm.way([(0.002, 0), (0.003, 0)], named("X"))

    streets, _ = run(osm, config)

    assert len(streets) == 2
    assert all(s.name == "X" for s in streets)


def test_zero_tolerance_still_joins_shared_endpoints(osm, config):
    config.merge_tolerance_m = 0.0
    osm.way([(0, 0), (1, 0)], named("X"))
    osm.way([(1, 0), (2, 0)], named("X"))

    streets, _ = run(osm, config)

    assert len(streets) == 1


def test_different_names_never_merge(osm, config):
    osm.way([(0, 0), (1, 0)], named("X"))
    osm.way([(1, 0), (2, 0)], named("Y"))

    streets, _ = run(osm, config)

    assert [s.name for s in streets] == ["X", "Y"]


def test_unnamed_and_non_street_ways_ignored(osm, config):
    osm.way([(0, 0), (1, 0)], RESIDENTIAL)
    osm.way([(1, 0), (2, 0)], {"highway": "motorway", "name": "X"})
    osm.way([(2, 0), (3, 0)], {"waterway": "river", "name": "X"})

    streets, _ = run(osm, config)

    assert streets == []


def test_name_filter(osm, config):
    osm.way([(0, 0), (1, 0)], named("X"))
    osm.way([(0, 1), (1, 1)], named("Y"))

    streets, _ = run(osm, config, name="Y")

    assert [s.name for s in streets] == ["Y"]


def test_branching_street_is_multi_part(osm, config):
    osm.way([(0, 0), (1, 0)], named("X"))
    osm.way([(1, 0), (2, 0)], named("X"))
    osm.way([(1, 0), (1, 1)], named("X"))

    streets, _ = run(osm, config)

    assert len(streets) == 1
    assert len(streets[0].way_ids) == 3
    assert len(streets[0].lines) > 1


def test_street_id_is_xor_of_way_ids(osm, config):
    w1 = osm.way([(0, 0), (1, 0)], named("X"))
    w2 = osm.way([(1, 0), (2, 0)], named("X"))
    w3 = osm.way([(2, 0), (3, 0)], named("X"))

    streets, _ = run(osm, config)

    assert streets[0].id == w1 ^ w2 ^ w3


def test_length_in_meters(osm, config):
    osm.way([(0, 0), (0.01, 0)], named("X"))
    osm.way([(0.01, 0), (0.02, 0)], named("X"))

    streets, _ = run(osm, config)

    # 0.02 degrees of longitude at the equator
    assert streets[0].length == pytest.approx(2224, rel=0.01)


def test_result_is_independent_of_way_order(osm_builder, config):
    coords = [[(0, 0), (1, 0)], [(1, 0), (2, 0)], [(2, 0), (3, 0)]]
    forward, backward = osm_builder(), osm_builder()
    for i, c in enumerate(coords):
        forward.way(c, named("X"), way_id=100 + i)
    for i, c in reversed(list(enumerate(coords))):
        backward.way(c, named("X"), way_id=100 + i)

    a, _ = run(forward, config)
    b, _ = run(backward, config)

    assert [s.id for s in a] == [s.id for s in b]
    assert [endpoints(s.lines[0]) for s in a] == [endpoints(s.lines[0]) for s in b]


def test_repeated_runs_are_identical(osm, config):
    osm.way([(0, 0), (1, 0)], named("X"))
    osm.way([(1, 0), (2, 0)], named("X"))
    osm.way([(5, 5), (6, 5)], named("X"))
    index = osm.index()
    clusterer = StreetClusterer(index, config)
    query = street_query(config.street_highway_types)

    first, _ = clusterer.extract(query, workers=1)
    second, _ = clusterer.extract(query, workers=3)

    assert first == second


def test_degenerate_and_dangling_ways_counted(osm, config):
    osm.way([(0, 0), (1, 0)], named("X"))
    osm.way([(5, 5)], named("X"))
    good = osm.node(2, 0)
    osm.way_from_nodes([good, 9999], named("X"))

    streets, stats = run(osm, config)

    assert len(streets) == 1
    assert stats.degenerate_geometries == 1
    assert stats.dangling_references == 1


def test_custom_query_replaces_highway_selection(osm, config):
    osm.way([(0, 0), (1, 0)], {"waterway": "canal", "name": "Landwehrkanal"})

    streets, _ = run(osm, config, query=parse("waterway"))

    assert [s.name for s in streets] == ["Landwehrkanal"]


def _two_districts(osm):
    west = osm.way([(0, 0), (1, 0), (1, 1), (0, 1), (0, 0)])
    east = osm.way([(1, 0), (2, 0), (2, 1), (1, 1), (1, 0)])
    osm.boundary("West", 10, [west])
    osm.boundary("East", 10, [east])


def test_split_by_boundary(osm, config):
    _two_districts(osm)
    osm.way([(0.2, 0.5), (0.9, 0.5)], named("Main"))
    osm.way([(0.9, 0.5), (1.6, 0.5)], named("Main"))
    index = osm.index()
    boundaries, _ = BoundaryAssembler(index, config).extract([10], workers=1)

    streets, _ = StreetClusterer(index, config).extract(
        street_query(config.street_highway_types), "Main", boundaries, workers=1
    )

    assert [s.boundary for s in streets] == ["West", "East"]
    assert all(len(s.way_ids) == 1 for s in streets)


def test_ways_outside_every_boundary_have_no_boundary(osm, config):
    _two_districts(osm)
    osm.way([(5, 5), (6, 5)], named("Main"))
    osm.way([(0.2, 0.5), (0.8, 0.5)], named("Main"))
    index = osm.index()
    boundaries, _ = BoundaryAssembler(index, config).extract([10], workers=1)

    streets, _ = StreetClusterer(index, config).extract(
        street_query(config.street_highway_types), "Main", boundaries, workers=1
    )

    assert [s.boundary for s in streets] == [None, "West"]


def test_boundary_lookup_prefers_lowest_relation_id(osm, config):
    outer = osm.way([(0, 0), (2, 0), (2, 2), (0, 2), (0, 0)])
    inner = osm.way([(0.5, 0.5), (1.5, 0.5), (1.5, 1.5), (0.5, 1.5), (0.5, 0.5)])
    osm.boundary("Large", 10, [outer], relation_id=2000)
    osm.boundary("Small", 10, [inner], relation_id=1500)
    boundaries, _ = BoundaryAssembler(osm.index(), config).extract([10], workers=1)

    lookup = BoundaryLookup(boundaries)

    assert lookup.find([1, 1]).name == "Small"
    assert lookup.find([0.2, 0.2]).name == "Large"
    assert lookup.find([3, 3]) is None


def test_street_middle_is_a_vertex(osm, config):
    osm.way([(0, 0), (1, 0), (2, 0)], named("X"))

    streets, _ = run(osm, config)

    assert streets[0].middle == [1, 0]
    assert Street("X", [], []).middle is None


def test_vertical_segments_merge_end_to_end(osm, config):
    osm.way([(0, 0), (0, 1)], named("X"))
    osm.way([(0, 1), (0, 2)], named("X"))

    (street,), _ = run(osm, config)

    assert len(street.lines) == 1
    assert endpoints(street.lines[0]) == {(0, 0), (0, 2)}


def test_short_segment_keeps_both_ends(osm, config):
    # Middle way is ~17 m long, shorter than the 25 m merge tolerance
    a = osm.node(0, 0)
    b = osm.node(0.001, 0)
    c = osm.node(0.00115, 0)
    d = osm.node(0.003, 0)
    osm.way_from_nodes([a, b], named("X"))
    osm.way_from_nodes([b, c], named("X"))
    osm.way_from_nodes([c, d], named("X"))

    (street,), _ = run(osm, config)

    assert len(street.lines) == 1
    line = street.lines[0]
    assert endpoints(line) == {(0, 0), (0.003, 0)}
    assert sorted(tuple(v) for v in line) == [(0, 0), (0.001, 0), (0.00115, 0), (0.003, 0)]


def test_coincident_endpoints_are_not_moved(osm, config):
    # Side way ending ~12 m from the shared node, numbered before the others
    osm.way([(0.00105, 0.0001), (0.00105, 0.001)], named("X"), way_id=50)
    shared = osm.node(0.001, 0)
    osm.way_from_nodes([osm.node(0, 0), shared], named("X"), way_id=60)
    osm.way_from_nodes([shared, osm.node(0.002, 0)], named("X"), way_id=70)

    (street,), _ = run(osm, config)

    vertices = {tuple(v) for line in street.lines for v in line}
    assert (0.001, 0) in vertices
    assert (0.00105, 0.0001) not in vertices
    assert (0.00105, 0.001) in vertices
