"""
Output writers

JSON lines (one record per line) or a single GeoJSON FeatureCollection
"""

import json
from typing import Iterable, Optional, TextIO

from pydantic import BaseModel

from .models import Feature, FeatureCollection


def write_json_lines(records: Iterable[BaseModel], stream: TextIO) -> int:
    """
    Write one JSON object per line

    Fields left unset on a record (e.g. optional coordinates) are omitted;
    fields explicitly set to None are written as null.

    Returns:
        Number of records written
    """
    count = 0
    for record in records:
        stream.write(json.dumps(record.model_dump(exclude_unset=True), ensure_ascii=False))
        stream.write("\n")
        count += 1
    return count


def write_geojson(features: Iterable[Optional[Feature]], stream: TextIO) -> int:
    """
    Write a single FeatureCollection line; None entries are skipped

    Returns:
        Number of features written
    """
    collection = FeatureCollection(features=[f for f in features if f is not None])
    stream.write(json.dumps(collection.model_dump(), ensure_ascii=False))
    stream.write("\n")
    return len(collection.features)
