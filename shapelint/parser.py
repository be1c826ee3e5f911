"""
shapelint.parser - Shape model: the in-memory form of a shapes graph.

Every SHACL constraint parameter is parsed once into a typed Constraint
dataclass, so the evaluator never re-reads the shapes graph. The walk over
the shapes graph itself lives in shapelint.shacl_parser.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Iterator, Optional, Union

from shapelint.terms import SH, Literal, NamedNode, Term, sort_key


# ─── Enums ───────────────────────────────────────────────────────────


class Severity(str, Enum):
    INFO = "Info"
    WARNING = "Warning"
    VIOLATION = "Violation"

    @property
    def iri(self) -> NamedNode:
        return NamedNode(f"{SH}{self.value}")


class ConstraintKind(str, Enum):
    MIN_COUNT = "MinCount"
    MAX_COUNT = "MaxCount"
    DATATYPE = "Datatype"
    CLASS = "Class"
    NODE_KIND = "NodeKind"
    MIN_LENGTH = "MinLength"
    MAX_LENGTH = "MaxLength"
    PATTERN = "Pattern"
    LANGUAGE_IN = "LanguageIn"
    UNIQUE_LANG = "UniqueLang"
    MIN_INCLUSIVE = "MinInclusive"
    MAX_INCLUSIVE = "MaxInclusive"
    MIN_EXCLUSIVE = "MinExclusive"
    MAX_EXCLUSIVE = "MaxExclusive"
    HAS_VALUE = "HasValue"
    IN = "In"
    EQUALS = "Equals"
    DISJOINT = "Disjoint"
    LESS_THAN = "LessThan"
    LESS_THAN_OR_EQUALS = "LessThanOrEquals"
    NODE = "Node"
    NOT = "Not"
    AND = "And"
    OR = "Or"
    XONE = "Xone"
    QUALIFIED_MIN_COUNT = "QualifiedMinCount"
    QUALIFIED_MAX_COUNT = "QualifiedMaxCount"
    CLOSED = "Closed"

    @property
    def component(self) -> NamedNode:
        """SHACL constraint component IRI, e.g. sh:MinCountConstraintComponent."""
        return NamedNode(f"{SH}{self.value}ConstraintComponent")

    @property
    def violation_name(self) -> str:
        return f"{self.value}ConstraintViolation"


class NodeKindType(str, Enum):
    IRI = "IRI"
    BLANK_NODE = "BlankNode"
    LITERAL = "Literal"
    BLANK_NODE_OR_IRI = "BlankNodeOrIRI"
    BLANK_NODE_OR_LITERAL = "BlankNodeOrLiteral"
    IRI_OR_LITERAL = "IRIOrLiteral"

    @property
    def iri(self) -> NamedNode:
        return NamedNode(f"{SH}{self.value}")


# ─── Constraints ─────────────────────────────────────────────────────

Number = Union[Decimal, float]


@dataclass(frozen=True)
class MinCount:
    kind: ClassVar[ConstraintKind] = ConstraintKind.MIN_COUNT
    count: int


@dataclass(frozen=True)
class MaxCount:
    kind: ClassVar[ConstraintKind] = ConstraintKind.MAX_COUNT
    count: int


@dataclass(frozen=True)
class Datatype:
    kind: ClassVar[ConstraintKind] = ConstraintKind.DATATYPE
    datatype: NamedNode


@dataclass(frozen=True)
class Class:
    kind: ClassVar[ConstraintKind] = ConstraintKind.CLASS
    cls: Term


@dataclass(frozen=True)
class NodeKind:
    kind: ClassVar[ConstraintKind] = ConstraintKind.NODE_KIND
    node_kind: NodeKindType


@dataclass(frozen=True)
class MinLength:
    kind: ClassVar[ConstraintKind] = ConstraintKind.MIN_LENGTH
    length: int


@dataclass(frozen=True)
class MaxLength:
    kind: ClassVar[ConstraintKind] = ConstraintKind.MAX_LENGTH
    length: int


@dataclass(frozen=True)
class Pattern:
    kind: ClassVar[ConstraintKind] = ConstraintKind.PATTERN
    pattern: str
    flags: Optional[str]
    regex: re.Pattern = field(compare=False, repr=False)


@dataclass(frozen=True)
class LanguageIn:
    kind: ClassVar[ConstraintKind] = ConstraintKind.LANGUAGE_IN
    languages: tuple[str, ...]


@dataclass(frozen=True)
class UniqueLang:
    kind: ClassVar[ConstraintKind] = ConstraintKind.UNIQUE_LANG
    unique: bool


@dataclass(frozen=True)
class MinInclusive:
    kind: ClassVar[ConstraintKind] = ConstraintKind.MIN_INCLUSIVE
    bound: Literal
    number: Number


@dataclass(frozen=True)
class MaxInclusive:
    kind: ClassVar[ConstraintKind] = ConstraintKind.MAX_INCLUSIVE
    bound: Literal
    number: Number


@dataclass(frozen=True)
class MinExclusive:
    kind: ClassVar[ConstraintKind] = ConstraintKind.MIN_EXCLUSIVE
    bound: Literal
    number: Number


@dataclass(frozen=True)
class MaxExclusive:
    kind: ClassVar[ConstraintKind] = ConstraintKind.MAX_EXCLUSIVE
    bound: Literal
    number: Number


@dataclass(frozen=True)
class HasValue:
    kind: ClassVar[ConstraintKind] = ConstraintKind.HAS_VALUE
    value: Term


@dataclass(frozen=True)
class In:
    kind: ClassVar[ConstraintKind] = ConstraintKind.IN
    values: tuple[Term, ...]


@dataclass(frozen=True)
class Equals:
    kind: ClassVar[ConstraintKind] = ConstraintKind.EQUALS
    predicate: NamedNode


@dataclass(frozen=True)
class Disjoint:
    kind: ClassVar[ConstraintKind] = ConstraintKind.DISJOINT
    predicate: NamedNode


@dataclass(frozen=True)
class LessThan:
    kind: ClassVar[ConstraintKind] = ConstraintKind.LESS_THAN
    predicate: NamedNode


@dataclass(frozen=True)
class LessThanOrEquals:
    kind: ClassVar[ConstraintKind] = ConstraintKind.LESS_THAN_OR_EQUALS
    predicate: NamedNode


@dataclass(frozen=True)
class NestedNode:
    kind: ClassVar[ConstraintKind] = ConstraintKind.NODE
    shape: Term


@dataclass(frozen=True)
class Not:
    kind: ClassVar[ConstraintKind] = ConstraintKind.NOT
    shape: Term


@dataclass(frozen=True)
class And:
    kind: ClassVar[ConstraintKind] = ConstraintKind.AND
    shapes: tuple[Term, ...]


@dataclass(frozen=True)
class Or:
    kind: ClassVar[ConstraintKind] = ConstraintKind.OR
    shapes: tuple[Term, ...]


@dataclass(frozen=True)
class Xone:
    kind: ClassVar[ConstraintKind] = ConstraintKind.XONE
    shapes: tuple[Term, ...]


@dataclass(frozen=True)
class QualifiedValueShape:
    kind: ClassVar[ConstraintKind] = ConstraintKind.QUALIFIED_MIN_COUNT
    shape: Term
    min_count: Optional[int] = None
    max_count: Optional[int] = None


Constraint = Union[
    MinCount, MaxCount, Datatype, Class, NodeKind, MinLength, MaxLength,
    Pattern, LanguageIn, UniqueLang, MinInclusive, MaxInclusive,
    MinExclusive, MaxExclusive, HasValue, In, Equals, Disjoint, LessThan,
    LessThanOrEquals, NestedNode, Not, And, Or, Xone, QualifiedValueShape,
]

RANGE_CONSTRAINTS = (MinInclusive, MaxInclusive, MinExclusive, MaxExclusive)


# ─── Targets ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ByClass:
    cls: Term


@dataclass(frozen=True)
class ByNode:
    node: Term


@dataclass(frozen=True)
class SubjectsOf:
    predicate: NamedNode


@dataclass(frozen=True)
class ObjectsOf:
    predicate: NamedNode


TargetSpec = Union[ByClass, ByNode, SubjectsOf, ObjectsOf]


# ─── Shapes ──────────────────────────────────────────────────────────


@dataclass
class Shape:
    id: Term
    targets: list[TargetSpec] = field(default_factory=list)
    constraints: list[Constraint] = field(default_factory=list)
    closed: bool = False
    ignored_properties: frozenset[NamedNode] = frozenset()
    severity: Severity = Severity.VIOLATION
    message: Optional[str] = None
    deactivated: bool = False

    @property
    def label(self) -> str:
        return sort_key(self.id)


@dataclass
class NodeShape(Shape):
    property_shapes: list[Term] = field(default_factory=list)


@dataclass
class PropertyShape(Shape):
    path: NamedNode = None  # type: ignore[assignment]


@dataclass
class ShapesModel:
    """All shapes of one shapes graph, keyed by shape id in discovery order."""

    shapes: dict[Term, Shape] = field(default_factory=dict)

    def __getitem__(self, shape_id: Term) -> Shape:
        return self.shapes[shape_id]

    def __contains__(self, shape_id: object) -> bool:
        return shape_id in self.shapes

    def __iter__(self) -> Iterator[Shape]:
        return iter(self.shapes.values())

    def __len__(self) -> int:
        return len(self.shapes)

    def targeted(self) -> list[Shape]:
        """Shapes that select their own focus nodes."""
        return [s for s in self.shapes.values() if s.targets and not s.deactivated]


# ─── Errors ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ShapeIssue:
    shape_id: Optional[Term]
    message: str

    def __str__(self) -> str:
        if self.shape_id is None:
            return self.message
        return f"{sort_key(self.shape_id)}: {self.message}"


class ShapesGraphError(ValueError):
    """The shapes graph is malformed; validation cannot run."""

    def __init__(self, message: str, shape_id: Optional[Term] = None, issues: tuple[ShapeIssue, ...] = ()):
        super().__init__(message)
        self.message = message
        self.shape_id = shape_id
        self.issues = issues or (ShapeIssue(shape_id, message),)

    @classmethod
    def from_issues(cls, issues: list[ShapeIssue]) -> "ShapesGraphError":
        if len(issues) == 1:
            message = f"Invalid shapes graph: {issues[0]}"
        else:
            details = "\n  ".join(str(i) for i in issues)
            message = f"Invalid shapes graph ({len(issues)} problems):\n  {details}"
        return cls(message, shape_id=issues[0].shape_id, issues=tuple(issues))
