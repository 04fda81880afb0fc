"""
Error taxonomy for OSM extraction

Structural failures (DecodeError, MalformedQuery) abort a run.
Per-entity anomalies (DanglingReference, DegenerateGeometry, IncompleteRing)
are caught by the analysis stages, counted and skipped.
"""

from typing import Optional


class OSMExtractError(Exception):
    """Base class for all extraction errors"""


class DecodeError(OSMExtractError):
    """The primitive stream is corrupt or truncated beyond recovery"""

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{source}: {message}"
        super().__init__(message)


class MalformedQuery(OSMExtractError):
    """A tag query string could not be parsed"""

    def __init__(self, query: str, fragment: str, reason: str = "empty clause"):
        self.query = query
        self.fragment = fragment
        super().__init__(f"Malformed tag query {query!r}: {reason} at {fragment!r}")


class DanglingReference(OSMExtractError):
    """A way or relation references an id that is not in the index"""

    def __init__(self, owner_kind: str, owner_id: int, missing_kind: str, missing_id: int):
        self.owner_kind = owner_kind
        self.owner_id = owner_id
        self.missing_kind = missing_kind
        self.missing_id = missing_id
        super().__init__(
            f"{owner_kind} {owner_id} references missing {missing_kind} {missing_id}"
        )


class DegenerateGeometry(OSMExtractError):
    """A way resolved to fewer than two coordinates"""

    def __init__(self, way_id: int, count: int):
        self.way_id = way_id
        self.count = count
        super().__init__(f"way {way_id} has {count} resolvable coordinate(s), need at least 2")


class IncompleteRing(OSMExtractError):
    """Boundary member ways did not close into rings"""

    def __init__(self, relation_id: int, open_chains: int):
        self.relation_id = relation_id
        self.open_chains = open_chains
        super().__init__(f"relation {relation_id} left {open_chains} unclosed chain(s)")
