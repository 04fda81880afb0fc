"""
Tag query engine

Query grammar:
    query     := clause ("," clause)*
    clause    := predicate ("+" predicate)*
    predicate := key | key "~" value

Clauses are OR-ed, predicates within a clause are AND-ed. `key` tests for
presence of a tag, `key~value` for an exact value. The empty query matches
everything.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..errors import MalformedQuery

CLAUSE_SEPARATOR = ","
PREDICATE_SEPARATOR = "+"
VALUE_SEPARATOR = "~"


@dataclass(frozen=True)
class Predicate:
    """Tag presence (value is None) or exact tag value test"""
    key: str
    value: Optional[str] = None

    def test(self, tags: Dict[str, str]) -> bool:
        if self.value is None:
            return self.key in tags
        return tags.get(self.key) == self.value

    def __str__(self) -> str:
        if self.value is None:
            return self.key
        return f"{self.key}{VALUE_SEPARATOR}{self.value}"


@dataclass(frozen=True)
class Clause:
    """Conjunction of predicates"""
    predicates: Tuple[Predicate, ...]

    def test(self, tags: Dict[str, str]) -> bool:
        return all(p.test(tags) for p in self.predicates)

    def __str__(self) -> str:
        return PREDICATE_SEPARATOR.join(str(p) for p in self.predicates)


@dataclass(frozen=True)
class TagQuery:
    """Disjunction of clauses; no clauses means match everything"""
    clauses: Tuple[Clause, ...] = ()

    @property
    def matches_all(self) -> bool:
        return not self.clauses

    def test(self, tags: Dict[str, str]) -> bool:
        if not self.clauses:
            return True
        return any(c.test(tags) for c in self.clauses)

    def __str__(self) -> str:
        return CLAUSE_SEPARATOR.join(str(c) for c in self.clauses)

    @classmethod
    def all_of(cls, *predicates: Predicate) -> "TagQuery":
        return cls((Clause(tuple(predicates)),))

    def combine(self, other: "TagQuery") -> "TagQuery":
        """AND two queries together by distributing their clauses"""
        if self.matches_all:
            return other
        if other.matches_all:
            return self
        return TagQuery(tuple(
            Clause(a.predicates + b.predicates)
            for a in self.clauses
            for b in other.clauses
        ))


def _parse_predicate(query: str, clause_str: str, fragment: str) -> Predicate:
    if not fragment:
        raise MalformedQuery(query, clause_str, "empty predicate")
    key, sep, value = fragment.partition(VALUE_SEPARATOR)
    if not key:
        raise MalformedQuery(query, fragment, "missing key")
    if not sep:
        return Predicate(key)
    return Predicate(key, value)


def parse(query: Optional[str]) -> TagQuery:
    """
    Parse a tag query string

    Args:
        query: Query string, or None / "" for a match-everything query

    Returns:
        TagQuery

    Raises:
        MalformedQuery: on an empty clause or predicate (leading, trailing
            or doubled separators) or a predicate without a key
    """
    if not query:
        return TagQuery()

    clauses = []
    parts = query.split(CLAUSE_SEPARATOR)
    for i, clause_str in enumerate(parts):
        if not clause_str:
            # Report the separators around the gap, e.g. "a,,b" or ",a"
            context = CLAUSE_SEPARATOR.join(parts[max(0, i - 1):i + 2])
            raise MalformedQuery(query, context, "empty clause")
        predicates = tuple(
            _parse_predicate(query, clause_str, fragment)
            for fragment in clause_str.split(PREDICATE_SEPARATOR)
        )
        clauses.append(Clause(predicates))
    return TagQuery(tuple(clauses))


def matches(tags: Dict[str, str], query: TagQuery) -> bool:
    """True if the tag map satisfies at least one clause of the query"""
    return query.test(tags)
