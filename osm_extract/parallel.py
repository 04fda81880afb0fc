"""
Read-only fan-out over independent work items
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def fan_out(func: Callable[[T], R], items: Iterable[T], workers: int = 1) -> List[R]:
    """
    Apply func to every item, in a thread pool when workers > 1

    Results come back in input order. An exception raised by any task is
    re-raised here; per-entity anomalies are expected to be handled inside
    func.
    """
    items = list(items)
    if workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        return list(executor.map(func, items))
