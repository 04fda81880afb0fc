"""
osm-extract: objects, streets and administrative boundaries from OSM data
"""

from .config import ExtractConfig, get_config, load_config
from .errors import (
    OSMExtractError,
    DecodeError,
    MalformedQuery,
    DanglingReference,
    DegenerateGeometry,
    IncompleteRing,
)
from .pipeline import ExtractionPipeline, open_source

__version__ = "0.3.0"

__all__ = [
    "ExtractConfig",
    "get_config",
    "load_config",
    "OSMExtractError",
    "DecodeError",
    "MalformedQuery",
    "DanglingReference",
    "DegenerateGeometry",
    "IncompleteRing",
    "ExtractionPipeline",
    "open_source",
]
