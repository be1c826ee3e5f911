"""
shapelint.terms - Immutable RDF terms and triples.

Terms compare structurally: two literals are equal only when lexical form,
datatype and language all match. Numeric interpretation of a literal is
never implicit; use parse_numeric() when a number is needed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from rdflib.namespace import RDF as _RDF, SH as _SH, XSD as _XSD


# ─── Vocabulary ──────────────────────────────────────────────────────

SH = str(_SH)
RDF = str(_RDF)
XSD = str(_XSD)

XSD_STRING = f"{XSD}string"
RDF_LANG_STRING = f"{RDF}langString"


# ─── Terms ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class NamedNode:
    value: str

    def n3(self) -> str:
        return f"<{self.value}>"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class BlankNode:
    value: str

    def n3(self) -> str:
        return f"_:{self.value}"

    def __str__(self) -> str:
        return self.n3()


@dataclass(frozen=True)
class Literal:
    value: str
    datatype: NamedNode = None  # type: ignore[assignment]
    language: Optional[str] = None

    def __post_init__(self):
        if self.language:
            # Language tags are case-insensitive
            object.__setattr__(self, "language", self.language.lower())
            object.__setattr__(self, "datatype", NamedNode(RDF_LANG_STRING))
        elif self.datatype is None:
            object.__setattr__(self, "datatype", NamedNode(XSD_STRING))
        elif isinstance(self.datatype, str):
            object.__setattr__(self, "datatype", NamedNode(self.datatype))

    def n3(self) -> str:
        escaped = (
            self.value.replace("\\", "\\\\")
            .replace('"', '\\"')
            .replace("\n", "\\n")
            .replace("\r", "\\r")
        )
        if self.language:
            return f'"{escaped}"@{self.language}'
        if self.datatype.value == XSD_STRING:
            return f'"{escaped}"'
        return f'"{escaped}"^^{self.datatype.n3()}'

    def __str__(self) -> str:
        return self.value


Term = Union[NamedNode, BlankNode, Literal]
Node = Union[NamedNode, BlankNode]


def is_node(term) -> bool:
    return isinstance(term, (NamedNode, BlankNode))


def sort_key(term: Term) -> str:
    """Canonical string form used wherever a deterministic order is needed."""
    return term.n3()


@dataclass(frozen=True)
class Triple:
    subject: Node
    predicate: NamedNode
    object: Term
    graph: Optional[Node] = None

    def __post_init__(self):
        if not is_node(self.subject):
            raise TypeError(f"Triple subject must be a named or blank node, got {self.subject!r}")
        if not isinstance(self.predicate, NamedNode):
            raise TypeError(f"Triple predicate must be a named node, got {self.predicate!r}")
        if not isinstance(self.object, (NamedNode, BlankNode, Literal)):
            raise TypeError(f"Triple object must be a term, got {self.object!r}")
        if self.graph is not None and not is_node(self.graph):
            raise TypeError(f"Graph label must be a named or blank node, got {self.graph!r}")


# ─── Convenience constructors ────────────────────────────────────────


def sh(local: str) -> NamedNode:
    return NamedNode(f"{SH}{local}")


def rdf(local: str) -> NamedNode:
    return NamedNode(f"{RDF}{local}")


def xsd(local: str) -> NamedNode:
    return NamedNode(f"{XSD}{local}")


RDF_TYPE = rdf("type")
RDF_FIRST = rdf("first")
RDF_REST = rdf("rest")
RDF_NIL = rdf("nil")


# ─── XSD lexical spaces ──────────────────────────────────────────────

_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")
_DECIMAL_RE = re.compile(r"^[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)$")
_FLOAT_RE = re.compile(r"^([+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?|[+-]?INF|NaN)$")
_BOOLEAN_RE = re.compile(r"^(true|false|1|0)$")
_TZ = r"(Z|[+-][0-9]{2}:[0-9]{2})?"
_DATE_RE = re.compile(r"^-?[0-9]{4,}-[0-9]{2}-[0-9]{2}" + _TZ + "$")
_DATETIME_RE = re.compile(
    r"^-?[0-9]{4,}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}:[0-9]{2}(\.[0-9]+)?" + _TZ + "$"
)

# Integer-derived types: (min, max); None = unbounded
INTEGER_BOUNDS: dict[str, tuple[Optional[int], Optional[int]]] = {
    f"{XSD}integer": (None, None),
    f"{XSD}long": (-(2**63), 2**63 - 1),
    f"{XSD}int": (-(2**31), 2**31 - 1),
    f"{XSD}short": (-(2**15), 2**15 - 1),
    f"{XSD}byte": (-(2**7), 2**7 - 1),
    f"{XSD}nonNegativeInteger": (0, None),
    f"{XSD}positiveInteger": (1, None),
    f"{XSD}nonPositiveInteger": (None, 0),
    f"{XSD}negativeInteger": (None, -1),
    f"{XSD}unsignedLong": (0, 2**64 - 1),
    f"{XSD}unsignedInt": (0, 2**32 - 1),
    f"{XSD}unsignedShort": (0, 2**16 - 1),
    f"{XSD}unsignedByte": (0, 2**8 - 1),
}

FLOAT_TYPES = {f"{XSD}float", f"{XSD}double"}
DECIMAL_TYPE = f"{XSD}decimal"
NUMERIC_TYPES = set(INTEGER_BOUNDS) | FLOAT_TYPES | {DECIMAL_TYPE}


def parse_numeric(term) -> Optional[Union[Decimal, float]]:
    """Return the numeric value of a literal, or None if it has none.

    A literal is numeric only if its datatype is a numeric XSD type and its
    lexical form is valid for that type. Integers and decimals come back as
    Decimal, float/double as float.
    """
    if not isinstance(term, Literal):
        return None
    dt = term.datatype.value
    lex = term.value.strip()
    if dt in INTEGER_BOUNDS:
        if not _INTEGER_RE.match(lex):
            return None
        number = int(lex)
        low, high = INTEGER_BOUNDS[dt]
        if (low is not None and number < low) or (high is not None and number > high):
            return None
        return Decimal(number)
    if dt == DECIMAL_TYPE:
        if not _DECIMAL_RE.match(lex):
            return None
        try:
            return Decimal(lex)
        except InvalidOperation:
            return None
    if dt in FLOAT_TYPES:
        if not _FLOAT_RE.match(lex):
            return None
        return float(lex)
    return None


def is_valid_lexical(term: Literal) -> bool:
    """True if the lexical form is valid for the literal's datatype.

    Datatypes without a known lexical space are accepted as-is.
    """
    dt = term.datatype.value
    if dt in NUMERIC_TYPES:
        return parse_numeric(term) is not None
    lex = term.value
    if dt == f"{XSD}boolean":
        return bool(_BOOLEAN_RE.match(lex))
    if dt == f"{XSD}date":
        return bool(_DATE_RE.match(lex))
    if dt == f"{XSD}dateTime":
        return bool(_DATETIME_RE.match(lex))
    if dt == RDF_LANG_STRING:
        return bool(term.language)
    return True


def compare_terms(a: Term, b: Term) -> Optional[int]:
    """Order two terms for sh:lessThan and friends.

    Returns -1, 0 or 1, or None when the terms are not comparable. Numbers
    compare numerically across numeric datatypes; other literals compare
    lexically only when they share a datatype and language.
    """
    na, nb = parse_numeric(a), parse_numeric(b)
    if na is not None and nb is not None:
        if na != na or nb != nb:  # NaN
            return None
        return (na > nb) - (na < nb)
    if not isinstance(a, Literal) or not isinstance(b, Literal):
        return None
    if na is not None or nb is not None:
        return None
    if a.datatype != b.datatype or a.language != b.language:
        return None
    if not is_valid_lexical(a) or not is_valid_lexical(b):
        return None
    return (a.value > b.value) - (a.value < b.value)
