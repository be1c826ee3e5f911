"""
shapelint.shacl_parser - Parse a SHACL shapes graph into a ShapesModel.

Walks a GraphStore holding SHACL Core vocabulary and produces NodeShape /
PropertyShape objects with typed constraints. Every problem with the
shapes graph is collected and raised together as a ShapesGraphError.
"""

from __future__ import annotations

import logging
import re
import warnings
from collections import deque
from decimal import Decimal
from typing import Callable, Optional

from shapelint.parser import (
    And,
    ByClass,
    ByNode,
    Class,
    Constraint,
    Datatype,
    Disjoint,
    Equals,
    HasValue,
    In,
    LanguageIn,
    LessThan,
    LessThanOrEquals,
    MaxCount,
    MaxExclusive,
    MaxInclusive,
    MaxLength,
    MinCount,
    MinExclusive,
    MinInclusive,
    MinLength,
    NestedNode,
    NodeKind,
    NodeKindType,
    NodeShape,
    Not,
    ObjectsOf,
    Or,
    Pattern,
    PropertyShape,
    QualifiedValueShape,
    Severity,
    Shape,
    ShapeIssue,
    ShapesGraphError,
    ShapesModel,
    SubjectsOf,
    TargetSpec,
    UniqueLang,
    Xone,
)
from shapelint.store import GraphStore
from shapelint.terms import (
    RDF_FIRST,
    RDF_NIL,
    RDF_REST,
    RDF_TYPE,
    SH,
    Literal,
    NamedNode,
    Term,
    is_node,
    parse_numeric,
    sh,
)

logger = logging.getLogger(__name__)

SH_NODE_SHAPE = sh("NodeShape")
SH_PROPERTY_SHAPE = sh("PropertyShape")
SH_PROPERTY = sh("property")
SH_PATH = sh("path")

TARGET_PREDICATES: dict[NamedNode, Callable[[Term], TargetSpec]] = {
    sh("targetClass"): ByClass,
    sh("targetNode"): ByNode,
    sh("targetSubjectsOf"): SubjectsOf,
    sh("targetObjectsOf"): ObjectsOf,
}

REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


def parse_shapes(g: GraphStore) -> ShapesModel:
    """Parse every shape in a shapes graph.

    Shapes are discovered from explicit sh:NodeShape / sh:PropertyShape
    declarations, from target declarations, and transitively from every
    shape reference (sh:property, sh:node, sh:not, sh:and, sh:or, sh:xone,
    sh:qualifiedValueShape).
    """
    issues: list[ShapeIssue] = []
    model = ShapesModel()

    property_nodes = list(dict.fromkeys(t.object for t in g.query(None, SH_PROPERTY, None)))
    pending = deque(_declared_shapes(g) + property_nodes)
    property_set = set(property_nodes)
    seen: set[Term] = set()

    while pending:
        node = pending.popleft()
        if node in seen:
            continue
        seen.add(node)
        if next(g.query(node, None, None), None) is None:
            # Undescribed node; reported below as a dangling reference
            continue
        shape = _parse_shape(g, node, node in property_set, issues)
        model.shapes[node] = shape
        pending.extend(_references(shape))

    for shape in model:
        for ref in _references(shape):
            if ref not in model:
                issues.append(ShapeIssue(
                    shape.id,
                    f"references {ref.n3()} which has no shape description",
                ))

    if issues:
        raise ShapesGraphError.from_issues(issues)

    logger.debug(
        "Parsed %d shapes (%d with targets)", len(model), len(model.targeted())
    )
    return model


def _declared_shapes(g: GraphStore) -> list[Term]:
    """Shape nodes in first-appearance order."""
    found: dict[Term, None] = {}
    for t in g:
        if t.predicate == RDF_TYPE and t.object in (SH_NODE_SHAPE, SH_PROPERTY_SHAPE):
            found.setdefault(t.subject, None)
        elif t.predicate in TARGET_PREDICATES:
            found.setdefault(t.subject, None)
    return list(found)


def _references(shape: Shape) -> list[Term]:
    refs: list[Term] = []
    if isinstance(shape, NodeShape):
        refs.extend(shape.property_shapes)
    for c in shape.constraints:
        if isinstance(c, (NestedNode, Not, QualifiedValueShape)):
            refs.append(c.shape)
        elif isinstance(c, (And, Or, Xone)):
            refs.extend(c.shapes)
    return refs


# ── Shape processing ─────────────────────────────────────────────


def _parse_shape(
    g: GraphStore,
    node: Term,
    is_property_object: bool,
    issues: list[ShapeIssue],
) -> Shape:
    types = set(g.objects(node, RDF_TYPE))
    paths = list(g.objects(node, SH_PATH))
    is_property = bool(paths) or is_property_object or SH_PROPERTY_SHAPE in types

    targets = [
        factory(obj)
        for pred, factory in TARGET_PREDICATES.items()
        for obj in g.objects(node, pred)
    ]
    common = dict(
        id=node,
        targets=targets,
        constraints=_constraints(g, node, issues),
        severity=_shacl_severity(g.value(node, sh("severity")), node),
        message=_message(g, node),
        deactivated=_boolean(g, node, sh("deactivated"), issues),
    )

    closed = _boolean(g, node, sh("closed"), issues)
    ignored: list[Term] = []
    ignored_head = g.value(node, sh("ignoredProperties"))
    if ignored_head is not None:
        ignored = _read_list(g, ignored_head, node, issues) or []

    if not is_property:
        return NodeShape(
            closed=closed,
            ignored_properties=frozenset(i for i in ignored if isinstance(i, NamedNode)),
            property_shapes=list(g.objects(node, SH_PROPERTY)),
            **common,
        )

    if closed:
        warnings.warn(
            f"sh:closed on property shape {node.n3()} is not supported, ignoring."
        )
    path: Optional[NamedNode] = None
    if not paths:
        issues.append(ShapeIssue(node, "property shape has no sh:path"))
    elif len(paths) > 1:
        issues.append(ShapeIssue(node, "property shape has more than one sh:path"))
    elif not isinstance(paths[0], NamedNode):
        issues.append(ShapeIssue(
            node, "only simple predicate paths are supported in sh:path"
        ))
    else:
        path = paths[0]
    return PropertyShape(path=path, **common)


def _constraints(g: GraphStore, node: Term, issues: list[ShapeIssue]) -> list[Constraint]:
    """Parse every constraint parameter on a shape node.

    A parameter may occur more than once; each occurrence becomes its own
    constraint.
    """
    constraints: list[Constraint] = []

    def objects(local: str) -> list[Term]:
        return list(g.objects(node, sh(local)))

    def issue(message: str) -> None:
        issues.append(ShapeIssue(node, message))

    # Cardinality and string length
    for local, factory in (
        ("minCount", MinCount),
        ("maxCount", MaxCount),
        ("minLength", MinLength),
        ("maxLength", MaxLength),
    ):
        for value in objects(local):
            n = _non_negative_int(value)
            if n is None:
                issue(f"sh:{local} must be a non-negative integer, got {value.n3()}")
            else:
                constraints.append(factory(n))

    # Value type
    for value in objects("datatype"):
        if isinstance(value, NamedNode):
            constraints.append(Datatype(value))
        else:
            issue(f"sh:datatype must be an IRI, got {value.n3()}")

    for value in objects("class"):
        if is_node(value):
            constraints.append(Class(value))
        else:
            issue(f"sh:class must be an IRI or blank node, got {value.n3()}")

    for value in objects("nodeKind"):
        kind = _node_kind(value)
        if kind is None:
            issue(f"unknown sh:nodeKind {value.n3()}")
        else:
            constraints.append(NodeKind(kind))

    # String-based
    flags_value = g.value(node, sh("flags"))
    flags = flags_value.value if isinstance(flags_value, Literal) else None
    for value in objects("pattern"):
        if not isinstance(value, Literal):
            issue(f"sh:pattern must be a literal, got {value.n3()}")
            continue
        try:
            regex = _compile_pattern(value.value, flags)
        except (re.error, ValueError) as e:
            issue(f"invalid sh:pattern {value.value!r}: {e}")
            continue
        constraints.append(Pattern(value.value, flags, regex))

    for head in objects("languageIn"):
        items = _read_list(g, head, node, issues)
        if items is None:
            continue
        if not all(isinstance(i, Literal) for i in items):
            issue("sh:languageIn members must be literals")
            continue
        constraints.append(LanguageIn(tuple(i.value.lower() for i in items)))

    if _boolean(g, node, sh("uniqueLang"), issues):
        constraints.append(UniqueLang(True))

    # Numeric range
    for local, factory in (
        ("minInclusive", MinInclusive),
        ("maxInclusive", MaxInclusive),
        ("minExclusive", MinExclusive),
        ("maxExclusive", MaxExclusive),
    ):
        for value in objects(local):
            number = parse_numeric(value)
            if number is None:
                issue(f"sh:{local} must be a numeric literal, got {value.n3()}")
            else:
                constraints.append(factory(value, number))

    # Value set
    for value in objects("hasValue"):
        constraints.append(HasValue(value))

    for head in objects("in"):
        items = _read_list(g, head, node, issues)
        if items is not None:
            constraints.append(In(tuple(items)))

    # Property pairs
    for local, factory in (
        ("equals", Equals),
        ("disjoint", Disjoint),
        ("lessThan", LessThan),
        ("lessThanOrEquals", LessThanOrEquals),
    ):
        for value in objects(local):
            if isinstance(value, NamedNode):
                constraints.append(factory(value))
            else:
                issue(f"sh:{local} must be an IRI, got {value.n3()}")

    # Shape composition
    for local, factory in (("node", NestedNode), ("not", Not)):
        for value in objects(local):
            if is_node(value):
                constraints.append(factory(value))
            else:
                issue(f"sh:{local} must reference a shape, got {value.n3()}")

    for local, factory in (("and", And), ("or", Or), ("xone", Xone)):
        for head in objects(local):
            items = _read_list(g, head, node, issues)
            if items is None:
                continue
            bad = [i for i in items if not is_node(i)]
            if bad:
                issue(f"sh:{local} members must be shapes, got {bad[0].n3()}")
                continue
            constraints.append(factory(tuple(items)))

    qualified = objects("qualifiedValueShape")
    if qualified:
        q_min = _optional_count(g, node, "qualifiedMinCount", issues)
        q_max = _optional_count(g, node, "qualifiedMaxCount", issues)
        for value in qualified:
            if is_node(value):
                constraints.append(QualifiedValueShape(value, q_min, q_max))
            else:
                issue(f"sh:qualifiedValueShape must reference a shape, got {value.n3()}")

    return constraints


# ── Helpers ──────────────────────────────────────────────────────


def _read_list(
    g: GraphStore, head: Term, shape_id: Term, issues: list[ShapeIssue]
) -> Optional[list[Term]]:
    """Read an RDF list (rdf:first / rdf:rest chain ending in rdf:nil).

    Returns None, after recording an issue, if the list is malformed or
    cyclic.
    """
    items: list[Term] = []
    visited: set[Term] = set()
    current = head
    while current != RDF_NIL:
        if current in visited:
            issues.append(ShapeIssue(shape_id, f"RDF list at {head.n3()} is cyclic"))
            return None
        if not is_node(current):
            issues.append(ShapeIssue(
                shape_id, f"RDF list at {head.n3()} is malformed: {current.n3()} is not a list node"
            ))
            return None
        visited.add(current)
        firsts = list(g.objects(current, RDF_FIRST))
        rests = list(g.objects(current, RDF_REST))
        if len(firsts) != 1 or len(rests) != 1:
            issues.append(ShapeIssue(
                shape_id,
                f"RDF list at {head.n3()} is malformed: {current.n3()} needs exactly "
                f"one rdf:first and one rdf:rest",
            ))
            return None
        items.append(firsts[0])
        current = rests[0]
    return items


def _compile_pattern(pattern: str, flags: Optional[str]) -> re.Pattern:
    """Compile a SHACL pattern with its XPath-style flags."""
    value = 0
    quote = False
    for ch in flags or "":
        if ch == "q":
            quote = True
        elif ch in REGEX_FLAGS:
            value |= REGEX_FLAGS[ch]
        else:
            raise ValueError(f"unsupported flag {ch!r}")
    return re.compile(re.escape(pattern) if quote else pattern, value)


def _non_negative_int(value: Term) -> Optional[int]:
    number = parse_numeric(value)
    if not isinstance(number, Decimal) or number != number.to_integral_value() or number < 0:
        return None
    return int(number)


def _optional_count(
    g: GraphStore, node: Term, local: str, issues: list[ShapeIssue]
) -> Optional[int]:
    value = g.value(node, sh(local))
    if value is None:
        return None
    n = _non_negative_int(value)
    if n is None:
        issues.append(ShapeIssue(node, f"sh:{local} must be a non-negative integer, got {value.n3()}"))
    return n


def _boolean(g: GraphStore, node: Term, predicate: NamedNode, issues: list[ShapeIssue]) -> bool:
    value = g.value(node, predicate)
    if value is None:
        return False
    if isinstance(value, Literal) and value.value in ("true", "1"):
        return True
    if isinstance(value, Literal) and value.value in ("false", "0"):
        return False
    issues.append(ShapeIssue(
        node, f"{predicate.value[len(SH):]} must be a boolean, got {value.n3()}"
    ))
    return False


def _node_kind(value: Term) -> Optional[NodeKindType]:
    if not isinstance(value, NamedNode) or not value.value.startswith(SH):
        return None
    try:
        return NodeKindType(value.value[len(SH):])
    except ValueError:
        return None


def _message(g: GraphStore, node: Term) -> Optional[str]:
    messages = [m for m in g.objects(node, sh("message")) if isinstance(m, Literal)]
    if not messages:
        return None
    # Prefer an untagged or English message when several languages are given
    for m in messages:
        if m.language in (None, "en"):
            return m.value
    return messages[0].value


def _shacl_severity(sev_iri: Optional[Term], node: Term) -> Severity:
    """Map SHACL severity IRI to the Severity enum."""
    if sev_iri is None:
        return Severity.VIOLATION  # SHACL default
    for severity in Severity:
        if sev_iri == severity.iri:
            return severity
    warnings.warn(
        f"Unknown sh:severity {sev_iri.n3()} on {node.n3()}, treating as sh:Violation."
    )
    return Severity.VIOLATION
