"""
Derivation stages operating on a frozen EntityIndex
"""

from .tag_query import TagQuery, parse, matches
from .streets import Street, StreetClusterer
from .boundaries import AdminBoundary, BoundaryAssembler, assemble_rings

__all__ = [
    "TagQuery",
    "parse",
    "matches",
    "Street",
    "StreetClusterer",
    "AdminBoundary",
    "BoundaryAssembler",
    "assemble_rings",
]
