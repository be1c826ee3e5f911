"""
shapelint.loader - Load graphs from RDF text via rdflib, and back.

Format-specific parsing is delegated to rdflib. Triple formats (turtle,
n-triples, json-ld, ...) land in the default graph; quad formats (trig,
nquads) keep their graph labels.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional, Union

import rdflib
from rdflib import BNode, Dataset, Graph, URIRef
from rdflib import Literal as RDFLiteral
from rdflib.graph import DATASET_DEFAULT_GRAPH_ID
from rdflib.namespace import SH as RDFLIB_SH
from rdflib.util import guess_format

from shapelint.store import GraphStore
from shapelint.terms import XSD_STRING, BlankNode, Literal, NamedNode, Term, Triple

logger = logging.getLogger(__name__)

QUAD_FORMATS = {"trig", "nquads", "trix"}


@contextmanager
def _lexical_literals():
    """Keep literals in their source lexical form while rdflib parses.

    rdflib otherwise rewrites typed literals to a canonical form
    ("007"^^xsd:integer becomes "7").
    """
    previous = rdflib.NORMALIZE_LITERALS
    rdflib.NORMALIZE_LITERALS = False
    try:
        yield
    finally:
        rdflib.NORMALIZE_LITERALS = previous


def load_graph(data: str, format: str = "turtle", base: Optional[str] = None) -> GraphStore:
    """Parse an RDF document string into a GraphStore."""
    store = GraphStore()
    if format in QUAD_FORMATS:
        ds = Dataset()
        with _lexical_literals():
            ds.parse(data=data, format=format, publicID=base)
        _load_quads(store, ds)
    else:
        g = Graph()
        with _lexical_literals():
            g.parse(data=data, format=format, publicID=base)
        _load_triples(store, g)
    logger.debug("Loaded %d triples (%s)", len(store), format)
    return store


def load_graph_file(path: Union[str, Path], format: Optional[str] = None) -> GraphStore:
    """Parse an RDF file; the format is guessed from the suffix if not given."""
    path = Path(path)
    fmt = format or guess_format(str(path)) or "turtle"
    return load_graph(path.read_text(encoding="utf-8"), format=fmt, base=path.as_uri())


def load_shapes(data: str, format: str = "turtle"):
    """Parse a shapes document and build its ShapesModel."""
    from shapelint.shacl_parser import parse_shapes
    return parse_shapes(load_graph(data, format=format))


# ─── rdflib <-> shapelint terms ──────────────────────────────────────


def from_rdflib(term) -> Term:
    if isinstance(term, URIRef):
        return NamedNode(str(term))
    if isinstance(term, BNode):
        return BlankNode(str(term))
    if isinstance(term, RDFLiteral):
        datatype = NamedNode(str(term.datatype)) if term.datatype is not None else None
        return Literal(str(term), datatype=datatype, language=term.language)
    raise TypeError(f"Unsupported rdflib term: {term!r}")


def to_rdflib_term(term: Term):
    if isinstance(term, NamedNode):
        return URIRef(term.value)
    if isinstance(term, BlankNode):
        return BNode(term.value)
    if term.language:
        return RDFLiteral(term.value, lang=term.language)
    if term.datatype.value == XSD_STRING:
        return RDFLiteral(term.value)
    return RDFLiteral(term.value, datatype=URIRef(term.datatype.value))


def _load_triples(store: GraphStore, g: Graph) -> None:
    for s, p, o in g:
        store.insert(Triple(from_rdflib(s), from_rdflib(p), from_rdflib(o)))


def _load_quads(store: GraphStore, ds: Dataset) -> None:
    for s, p, o, ctx in ds.quads((None, None, None, None)):
        label = None
        identifier = getattr(ctx, "identifier", ctx)
        if identifier is not None and identifier != DATASET_DEFAULT_GRAPH_ID:
            label = from_rdflib(identifier)
        store.insert(Triple(from_rdflib(s), from_rdflib(p), from_rdflib(o), label))


def to_rdflib(store: GraphStore) -> Graph:
    """Copy a GraphStore into an rdflib Graph (graph labels are dropped)."""
    g = Graph()
    g.bind("sh", RDFLIB_SH)
    for t in store:
        g.add((to_rdflib_term(t.subject), to_rdflib_term(t.predicate), to_rdflib_term(t.object)))
    return g


def serialize_graph(store: GraphStore, format: str = "turtle") -> str:
    return to_rdflib(store).serialize(format=format)
