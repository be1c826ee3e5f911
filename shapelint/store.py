"""
shapelint.store - An indexed, insertion-ordered triple store.

GraphStore keeps a set of triples plus subject, predicate and object
indexes. Inserting a triple that is already present is a no-op, and
query results always come back in insertion order.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable, Iterator, Optional

from shapelint.terms import NamedNode, Node, Term, Triple


class GraphStore:
    """Set of triples indexed by subject, predicate and object."""

    def __init__(self, triples: Optional[Iterable[Triple]] = None):
        # dict as an ordered set; the position is the insertion sequence
        self._triples: dict[Triple, int] = {}
        self._by_subject: dict[Term, list[Triple]] = defaultdict(list)
        self._by_predicate: dict[Term, list[Triple]] = defaultdict(list)
        self._by_object: dict[Term, list[Triple]] = defaultdict(list)
        if triples is not None:
            self.insert_all(triples)

    # ── Mutation ─────────────────────────────────────────────────

    def insert(self, triple: Triple) -> bool:
        """Insert a triple. Returns False if it was already present."""
        if triple in self._triples:
            return False
        self._triples[triple] = len(self._triples)
        self._by_subject[triple.subject].append(triple)
        self._by_predicate[triple.predicate].append(triple)
        self._by_object[triple.object].append(triple)
        return True

    def insert_all(self, triples: Iterable[Triple]) -> int:
        return sum(1 for t in triples if self.insert(t))

    def add(self, subject: Node, predicate: NamedNode, obj: Term, graph: Optional[Node] = None) -> bool:
        return self.insert(Triple(subject, predicate, obj, graph))

    # ── Queries ──────────────────────────────────────────────────

    def query(
        self,
        subject: Optional[Term] = None,
        predicate: Optional[Term] = None,
        obj: Optional[Term] = None,
        graph: Optional[Term] = None,
    ) -> Iterator[Triple]:
        """Lazily yield triples matching every bound position.

        Unbound positions (None) match anything. The candidate list is the
        shortest index among the bound positions; results keep insertion
        order.
        """
        candidates: Optional[list[Triple]] = None
        for index, key in (
            (self._by_subject, subject),
            (self._by_predicate, predicate),
            (self._by_object, obj),
        ):
            if key is None:
                continue
            bucket = index.get(key)
            if not bucket:
                return
            if candidates is None or len(bucket) < len(candidates):
                candidates = bucket

        source: Iterable[Triple] = self._triples if candidates is None else candidates
        for t in source:
            if subject is not None and t.subject != subject:
                continue
            if predicate is not None and t.predicate != predicate:
                continue
            if obj is not None and t.object != obj:
                continue
            if graph is not None and t.graph != graph:
                continue
            yield t

    def objects(self, subject: Term, predicate: Term) -> Iterator[Term]:
        for t in self.query(subject, predicate, None):
            yield t.object

    def subjects(self, predicate: Optional[Term] = None, obj: Optional[Term] = None) -> Iterator[Node]:
        for t in self.query(None, predicate, obj):
            yield t.subject

    def predicates(self, subject: Term) -> Iterator[NamedNode]:
        for t in self.query(subject, None, None):
            yield t.predicate

    def value(self, subject: Term, predicate: Term) -> Optional[Term]:
        """First object of (subject, predicate, *), or None."""
        return next(self.objects(subject, predicate), None)

    # ── Container protocol ───────────────────────────────────────

    def __len__(self) -> int:
        return len(self._triples)

    def __iter__(self) -> Iterator[Triple]:
        return iter(list(self._triples))

    def __contains__(self, triple: object) -> bool:
        return triple in self._triples

    def __repr__(self) -> str:
        return f"<GraphStore triples={len(self)}>"
