"""
shapelint.targets - Compute the focus nodes a shape applies to.
"""

from __future__ import annotations

from shapelint.parser import ByClass, ByNode, ObjectsOf, Shape, SubjectsOf
from shapelint.store import GraphStore
from shapelint.terms import RDF_TYPE, Literal, Term, sort_key


def resolve_targets(shape: Shape, data_graph: GraphStore) -> list[Term]:
    """Union of every target on the shape, deduplicated and sorted.

    Class targets match direct rdf:type triples only; rdfs:subClassOf is
    not followed. Objects-of targets skip literal objects.
    """
    focus: set[Term] = set()
    for target in shape.targets:
        if isinstance(target, ByClass):
            focus.update(data_graph.subjects(RDF_TYPE, target.cls))
        elif isinstance(target, ByNode):
            focus.add(target.node)
        elif isinstance(target, SubjectsOf):
            focus.update(data_graph.subjects(target.predicate, None))
        elif isinstance(target, ObjectsOf):
            focus.update(
                t.object
                for t in data_graph.query(None, target.predicate, None)
                if not isinstance(t.object, Literal)
            )
    return sorted(focus, key=sort_key)
