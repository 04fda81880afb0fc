"""
Configuration settings for OSM extraction
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
import os

from dotenv import load_dotenv
from loguru import logger

ENV_PREFIX = "OSM_EXTRACT_"


@dataclass
class ExtractConfig:
    """Extraction tunables"""
    # Street clustering: endpoints closer than this (meters) are one junction
    merge_tolerance_m: float = 25.0

    # Boundary assembly: chain ends closer than this (meters) are joined
    ring_tolerance_m: float = 1.0

    # Admin levels extracted when none are requested
    admin_levels: List[int] = field(default_factory=lambda: [4, 6, 8, 9, 10])

    # Highway values that count as streets (used when no tag query is given)
    street_highway_types: List[str] = field(default_factory=lambda: [
        "primary",
        "secondary",
        "tertiary",
        "residential",
        "service",
        "living_street",
        "pedestrian",
    ])

    # Worker threads for the read-only fan-out (1 = run inline)
    workers: int = 4

    # Keep full way/relation coordinates in object records
    retain_coordinates: bool = False


# Global config instance
config = ExtractConfig()


def get_config() -> ExtractConfig:
    """Get global configuration"""
    return config


def _load_env_file() -> None:
    """Load a .env file from the project root or cwd, never overriding the environment"""
    env_paths = [
        Path(__file__).parent.parent / ".env",
        Path.cwd() / ".env",
    ]
    for env_path in env_paths:
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded .env file from {env_path}")
            return


def load_config(base: Optional[ExtractConfig] = None) -> ExtractConfig:
    """
    Build a configuration from defaults plus OSM_EXTRACT_* environment overrides

    Recognised variables:
        OSM_EXTRACT_MERGE_TOLERANCE_M, OSM_EXTRACT_RING_TOLERANCE_M,
        OSM_EXTRACT_ADMIN_LEVELS (comma separated), OSM_EXTRACT_WORKERS

    Raises:
        ValueError: if an override cannot be parsed or the result is invalid
    """
    _load_env_file()
    cfg = base or ExtractConfig()

    def env(name: str) -> Optional[str]:
        value = os.getenv(ENV_PREFIX + name)
        return value.strip() if value and value.strip() else None

    try:
        if env("MERGE_TOLERANCE_M"):
            cfg.merge_tolerance_m = float(env("MERGE_TOLERANCE_M"))
        if env("RING_TOLERANCE_M"):
            cfg.ring_tolerance_m = float(env("RING_TOLERANCE_M"))
        if env("ADMIN_LEVELS"):
            cfg.admin_levels = [int(v) for v in env("ADMIN_LEVELS").split(",") if v.strip()]
        if env("WORKERS"):
            cfg.workers = int(env("WORKERS"))
    except ValueError as e:
        raise ValueError(f"Invalid {ENV_PREFIX}* environment override: {e}") from e

    validate_config(cfg)
    return cfg


def validate_config(config: ExtractConfig) -> None:
    """
    Validate that all configuration values are usable.
    Raises ValueError listing every problem found.
    """
    errors = []

    if config.merge_tolerance_m is None or config.merge_tolerance_m < 0:
        errors.append(f"merge_tolerance_m must be >= 0, got {config.merge_tolerance_m}")

    if config.ring_tolerance_m is None or config.ring_tolerance_m < 0:
        errors.append(f"ring_tolerance_m must be >= 0, got {config.ring_tolerance_m}")

    if not config.admin_levels:
        errors.append("admin_levels must contain at least one level")
    elif any(level < 0 for level in config.admin_levels):
        errors.append(f"admin_levels must be non-negative, got {config.admin_levels}")

    if config.workers is None or config.workers < 1:
        errors.append(f"workers must be at least 1, got {config.workers}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ValueError(error_msg)
