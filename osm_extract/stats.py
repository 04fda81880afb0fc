"""
Per-run anomaly counters

Workers never share a counter: each task fills its own ExtractionStats and
the orchestrator merges them after the fan-out.
"""

from dataclasses import dataclass, fields
from loguru import logger


@dataclass
class ExtractionStats:
    """Counts of entities skipped or degraded during extraction"""
    dangling_references: int = 0
    degenerate_geometries: int = 0
    incomplete_rings: int = 0
    skipped_members: int = 0

    def merge(self, other: "ExtractionStats") -> "ExtractionStats":
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self

    @property
    def total(self) -> int:
        return sum(getattr(self, f.name) for f in fields(self))

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def log_summary(self, label: str) -> None:
        if not self.total:
            logger.info(f"{label}: no anomalies")
            return
        details = ", ".join(f"{k}={v}" for k, v in self.as_dict().items() if v)
        logger.warning(f"{label}: {details}")
