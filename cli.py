#!/usr/bin/env python
"""
Command-line interface for osm-extract

Usage:
    python cli.py objects berlin.osm.pbf --tags "amenity~fountain+tourism,amenity~townhall"
    python cli.py streets berlin.osm.pbf --name "Wilhelmstraße" --boundary 10 --geojson
    python cli.py boundaries berlin.osm.pbf --levels 9 10 --geojson
"""

import sys
import argparse

from loguru import logger

from osm_extract import DecodeError, MalformedQuery, ExtractionPipeline, load_config, open_source
from osm_extract.analysis.tag_query import parse
from osm_extract.models import BoundaryRecord, StreetRecord, boundary_feature, street_feature
from osm_extract.output import write_geojson, write_json_lines

EXIT_OK = 0
EXIT_DECODE_ERROR = 1
EXIT_BAD_QUERY = 2
EXIT_CONFIG_ERROR = 3


def setup_logging(verbose: bool = False):
    """Configure logging"""
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level=level
    )


def build_pipeline(args) -> ExtractionPipeline:
    config = load_config()
    if args.workers:
        config.workers = args.workers
    if getattr(args, "tolerance", None) is not None:
        config.merge_tolerance_m = args.tolerance
    pipeline = ExtractionPipeline(config)
    pipeline.load(open_source(args.path))
    return pipeline


def cmd_objects(args, out=None):
    """Write tagged objects matching --tags as JSON lines"""
    out = out or sys.stdout
    # Parse before ingest so a bad query fails fast
    query = parse(args.tags)
    pipeline = build_pipeline(args)
    records = pipeline.objects(query, retain_coordinates=args.retain_coordinates)
    count = write_json_lines(records, out)
    logger.info(f"✓ Wrote {count} object(s)")
    return EXIT_OK


def cmd_streets(args, out=None):
    """Write merged streets as JSON lines or GeoJSON"""
    out = out or sys.stdout
    query = parse(args.tags) if args.tags is not None else None
    pipeline = build_pipeline(args)
    streets = pipeline.streets(name=args.name, boundary_level=args.boundary, query=query)
    if args.geojson:
        count = write_geojson((street_feature(s) for s in streets), out)
    else:
        count = write_json_lines((StreetRecord.from_street(s) for s in streets), out)
    logger.info(f"✓ Wrote {count} street(s)")
    return EXIT_OK


def cmd_boundaries(args, out=None):
    """Write administrative boundaries as JSON lines or GeoJSON"""
    out = out or sys.stdout
    pipeline = build_pipeline(args)
    boundaries = pipeline.admin_boundaries(args.levels)
    if args.geojson:
        count = write_geojson((boundary_feature(b) for b in boundaries), out)
    else:
        count = write_json_lines(
            (BoundaryRecord.from_boundary(b, with_rings=args.rings) for b in boundaries),
            out
        )
    logger.info(f"✓ Wrote {count} boundar{'y' if count == 1 else 'ies'}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract objects, streets and administrative boundaries from OSM data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Fountains with a tourism tag, or town halls:
    python cli.py objects berlin.osm.pbf --tags "amenity~fountain+tourism,amenity~townhall"

  One street, split by district (admin level 10):
    python cli.py streets berlin.osm.pbf --name "Wilhelmstraße" --boundary 10

  District boundaries as GeoJSON:
    python cli.py boundaries berlin.osm.pbf --levels 10 --geojson
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-w", "--workers", type=int, help="Worker threads (default from config)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Objects command
    obj_parser = subparsers.add_parser("objects", help="Extract tagged objects")
    obj_parser.add_argument("path", help="Input .osm.pbf / .osm / OSM JSON file")
    obj_parser.add_argument("--tags", "-t", default="", help="Tag query, e.g. 'amenity~cafe+name,shop'")
    obj_parser.add_argument("--retain-coordinates", "-r", action="store_true",
                            help="Include resolved coordinates")
    obj_parser.set_defaults(func=cmd_objects)

    # Streets command
    street_parser = subparsers.add_parser("streets", help="Merge way segments into streets")
    street_parser.add_argument("path", help="Input .osm.pbf / .osm / OSM JSON file")
    street_parser.add_argument("--name", "-n", help="Only streets with this exact name")
    street_parser.add_argument("--boundary", "-b", type=int, help="Split streets along this admin level")
    street_parser.add_argument("--tags", "-t", help="Tag query replacing the default highway selection")
    street_parser.add_argument("--tolerance", type=float, help="Endpoint merge tolerance in meters")
    street_parser.add_argument("--geojson", "-g", action="store_true", help="Write a GeoJSON FeatureCollection")
    street_parser.set_defaults(func=cmd_streets)

    # Boundaries command
    boundary_parser = subparsers.add_parser("boundaries", help="Assemble administrative boundaries")
    boundary_parser.add_argument("path", help="Input .osm.pbf / .osm / OSM JSON file")
    boundary_parser.add_argument("--levels", "-l", type=int, nargs="+", help="Admin levels (default 4 6 8 9 10)")
    boundary_parser.add_argument("--rings", action="store_true", help="Include ring geometry in JSON lines")
    boundary_parser.add_argument("--geojson", "-g", action="store_true", help="Write a GeoJSON FeatureCollection")
    boundary_parser.set_defaults(func=cmd_boundaries)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    try:
        return args.func(args)
    except MalformedQuery as e:
        logger.error(str(e))
        return EXIT_BAD_QUERY
    except DecodeError as e:
        logger.error(f"Failed to read OSM data: {e}")
        return EXIT_DECODE_ERROR
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    sys.exit(main())
