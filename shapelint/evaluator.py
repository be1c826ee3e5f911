"""
shapelint.evaluator - Evaluate shape constraints against focus nodes.

ConstraintEvaluator walks one focus node through one shape: the shape's
own constraints over its value nodes, then (for node shapes) the closed
check and every attached property shape. Shape references recurse through
validate_focus_node with a visiting set of (shape, focus node) pairs, so
recursive shapes always terminate.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Optional

from shapelint.parser import (
    RANGE_CONSTRAINTS,
    And,
    Class,
    Constraint,
    ConstraintKind,
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
    Or,
    Pattern,
    PropertyShape,
    QualifiedValueShape,
    Shape,
    ShapesModel,
    UniqueLang,
    Xone,
)
from shapelint.report import Violation
from shapelint.store import GraphStore
from shapelint.terms import (
    RDF_TYPE,
    BlankNode,
    Literal,
    NamedNode,
    Term,
    compare_terms,
    is_node,
    is_valid_lexical,
    parse_numeric,
)

Visiting = frozenset  # of (shape id, focus node) pairs

_NODE_KINDS: dict[NodeKindType, tuple[type, ...]] = {
    NodeKindType.IRI: (NamedNode,),
    NodeKindType.BLANK_NODE: (BlankNode,),
    NodeKindType.LITERAL: (Literal,),
    NodeKindType.BLANK_NODE_OR_IRI: (BlankNode, NamedNode),
    NodeKindType.BLANK_NODE_OR_LITERAL: (BlankNode, Literal),
    NodeKindType.IRI_OR_LITERAL: (NamedNode, Literal),
}


@dataclass
class _Context:
    """One shape being evaluated on one focus node."""

    focus: Term
    shape: Shape
    values: list[Term]
    visiting: Visiting

    @property
    def path(self) -> Optional[NamedNode]:
        return self.shape.path if isinstance(self.shape, PropertyShape) else None

    @property
    def subject(self) -> str:
        if self.path is not None:
            return f"Property {self.path.n3()}"
        return f"Node {self.focus.n3()}"

    def result(
        self,
        kind: ConstraintKind,
        value: Optional[Term],
        message: str,
        path: Optional[NamedNode] = None,
    ) -> Violation:
        return Violation(
            focus_node=self.focus,
            source_shape=self.shape.id,
            constraint_component=kind,
            result_path=path if path is not None else self.path,
            value=value,
            message=self.shape.message or message,
            severity=self.shape.severity,
        )


class ConstraintEvaluator:
    """Validates focus nodes of one data graph against one shapes model."""

    def __init__(self, data_graph: GraphStore, shapes: ShapesModel):
        self.data = data_graph
        self.shapes = shapes
        self._dispatch: dict[type, Callable[[_Context, Constraint], list[Violation]]] = {
            MinCount: self._min_count,
            MaxCount: self._max_count,
            Datatype: self._datatype,
            Class: self._class,
            NodeKind: self._node_kind,
            MinLength: self._min_length,
            MaxLength: self._max_length,
            Pattern: self._pattern,
            LanguageIn: self._language_in,
            UniqueLang: self._unique_lang,
            HasValue: self._has_value,
            In: self._in,
            Equals: self._equals,
            Disjoint: self._disjoint,
            LessThan: self._less_than,
            LessThanOrEquals: self._less_than,
            NestedNode: self._nested_node,
            Not: self._not,
            And: self._and,
            Or: self._or,
            Xone: self._xone,
            QualifiedValueShape: self._qualified,
        }

    # ── Entry points ─────────────────────────────────────────────

    def validate_focus_node(
        self,
        focus_node: Term,
        shape: Shape,
        visiting: Visiting = frozenset(),
    ) -> list[Violation]:
        """All violations of focus_node against shape.

        A (shape, focus node) pair that is already being evaluated further up
        the recursion is treated as conformant, which guarantees termination
        for cyclic shape references.
        """
        if shape.deactivated:
            return []
        key = (shape.id, focus_node)
        if key in visiting:
            return []
        visiting = visiting | {key}

        ctx = _Context(focus_node, shape, self.value_nodes(focus_node, shape), visiting)
        results: list[Violation] = []
        datatype_flagged: set[Term] = set()

        for constraint in shape.constraints:
            if isinstance(constraint, RANGE_CONSTRAINTS):
                continue
            found = self._dispatch[type(constraint)](ctx, constraint)
            if isinstance(constraint, Datatype):
                datatype_flagged.update(v.value for v in found)
            results.extend(found)

        ranges = [c for c in shape.constraints if isinstance(c, RANGE_CONSTRAINTS)]
        if ranges:
            results.extend(self._ranges(ctx, ranges, datatype_flagged))

        if isinstance(shape, NodeShape):
            if shape.closed:
                results.extend(self._closed(ctx))
            for prop_id in shape.property_shapes:
                results.extend(
                    self.validate_focus_node(focus_node, self.shapes[prop_id], visiting)
                )

        return results

    def conforms(self, node: Term, shape_id: Term, visiting: Visiting = frozenset()) -> bool:
        """True if node produces no results of any severity against the shape."""
        return not self.validate_focus_node(node, self.shapes[shape_id], visiting)

    def value_nodes(self, focus_node: Term, shape: Shape) -> list[Term]:
        if isinstance(shape, PropertyShape):
            # The same object can be stored once per graph label
            return list(dict.fromkeys(self.data.objects(focus_node, shape.path)))
        return [focus_node]

    # ── Cardinality ──────────────────────────────────────────────

    def _min_count(self, ctx: _Context, c: MinCount) -> list[Violation]:
        if len(ctx.values) >= c.count:
            return []
        return [ctx.result(
            ConstraintKind.MIN_COUNT,
            None,
            f"{ctx.subject} has {len(ctx.values)} values, but minimum count is {c.count}",
        )]

    def _max_count(self, ctx: _Context, c: MaxCount) -> list[Violation]:
        if len(ctx.values) <= c.count:
            return []
        return [ctx.result(
            ConstraintKind.MAX_COUNT,
            None,
            f"{ctx.subject} has {len(ctx.values)} values, but maximum count is {c.count}",
        )]

    # ── Value type ───────────────────────────────────────────────

    def _datatype(self, ctx: _Context, c: Datatype) -> list[Violation]:
        results = []
        for v in ctx.values:
            if isinstance(v, Literal) and v.datatype == c.datatype and is_valid_lexical(v):
                continue
            results.append(ctx.result(
                ConstraintKind.DATATYPE,
                v,
                f"Value {v.n3()} does not have datatype {c.datatype.n3()}",
            ))
        return results

    def _class(self, ctx: _Context, c: Class) -> list[Violation]:
        results = []
        for v in ctx.values:
            if is_node(v) and next(self.data.query(v, RDF_TYPE, c.cls), None) is not None:
                continue
            results.append(ctx.result(
                ConstraintKind.CLASS,
                v,
                f"Value {v.n3()} is not an instance of class {c.cls.n3()}",
            ))
        return results

    def _node_kind(self, ctx: _Context, c: NodeKind) -> list[Violation]:
        allowed = _NODE_KINDS[c.node_kind]
        return [
            ctx.result(
                ConstraintKind.NODE_KIND,
                v,
                f"Value {v.n3()} does not have node kind {c.node_kind.iri.n3()}",
            )
            for v in ctx.values
            if not isinstance(v, allowed)
        ]

    # ── String-based ─────────────────────────────────────────────

    def _min_length(self, ctx: _Context, c: MinLength) -> list[Violation]:
        results = []
        for v in ctx.values:
            if not isinstance(v, BlankNode) and len(v.value) >= c.length:
                continue
            results.append(ctx.result(
                ConstraintKind.MIN_LENGTH,
                v,
                f"Value {v.n3()} is shorter than the minimum length {c.length}",
            ))
        return results

    def _max_length(self, ctx: _Context, c: MaxLength) -> list[Violation]:
        results = []
        for v in ctx.values:
            if not isinstance(v, BlankNode) and len(v.value) <= c.length:
                continue
            results.append(ctx.result(
                ConstraintKind.MAX_LENGTH,
                v,
                f"Value {v.n3()} is longer than the maximum length {c.length}",
            ))
        return results

    def _pattern(self, ctx: _Context, c: Pattern) -> list[Violation]:
        results = []
        for v in ctx.values:
            if not isinstance(v, BlankNode) and c.regex.search(v.value):
                continue
            results.append(ctx.result(
                ConstraintKind.PATTERN,
                v,
                f"Value {v.n3()} does not match pattern {c.pattern!r}",
            ))
        return results

    def _language_in(self, ctx: _Context, c: LanguageIn) -> list[Violation]:
        results = []
        for v in ctx.values:
            lang = v.language if isinstance(v, Literal) else None
            if lang and any(_language_matches(lang, tag) for tag in c.languages):
                continue
            results.append(ctx.result(
                ConstraintKind.LANGUAGE_IN,
                v,
                f"Value {v.n3()} does not have a language tag in {list(c.languages)}",
            ))
        return results

    def _unique_lang(self, ctx: _Context, c: UniqueLang) -> list[Violation]:
        seen: dict[str, list[Term]] = {}
        for v in ctx.values:
            if isinstance(v, Literal) and v.language:
                seen.setdefault(v.language, []).append(v)
        return [
            ctx.result(
                ConstraintKind.UNIQUE_LANG,
                None,
                f"Language tag '{lang}' is used by {len(values)} values",
            )
            for lang, values in seen.items()
            if len(values) > 1
        ]

    # ── Numeric range ────────────────────────────────────────────

    def _ranges(self, ctx: _Context, constraints: list, datatype_flagged: set) -> list[Violation]:
        results = []
        for v in ctx.values:
            number = parse_numeric(v)
            if number is None:
                if v not in datatype_flagged:
                    results.append(ctx.result(
                        ConstraintKind.DATATYPE,
                        v,
                        f"Value {v.n3()} is not numeric and cannot be range-checked",
                    ))
                continue
            for c in constraints:
                if _in_range(c, number):
                    continue
                results.append(ctx.result(
                    c.kind, v, f"Value {v.n3()} is {_RANGE_OPS[type(c)]} value {c.bound.value}"
                ))
        return results

    # ── Value set ────────────────────────────────────────────────

    def _has_value(self, ctx: _Context, c: HasValue) -> list[Violation]:
        if c.value in ctx.values:
            return []
        return [ctx.result(
            ConstraintKind.HAS_VALUE,
            None,
            f"{ctx.subject} does not have the required value {c.value.n3()}",
        )]

    def _in(self, ctx: _Context, c: In) -> list[Violation]:
        allowed = set(c.values)
        return [
            ctx.result(
                ConstraintKind.IN,
                v,
                f"Value {v.n3()} is not in the allowed list of values",
            )
            for v in ctx.values
            if v not in allowed
        ]

    # ── Property pairs ───────────────────────────────────────────

    def _others(self, ctx: _Context, predicate: NamedNode) -> list[Term]:
        return list(dict.fromkeys(self.data.objects(ctx.focus, predicate)))

    def _equals(self, ctx: _Context, c: Equals) -> list[Violation]:
        others = self._others(ctx, c.predicate)
        missing = [v for v in ctx.values if v not in others]
        missing += [o for o in others if o not in ctx.values]
        return [
            ctx.result(
                ConstraintKind.EQUALS,
                v,
                f"Value {v.n3()} is not shared with {c.predicate.n3()}",
            )
            for v in missing
        ]

    def _disjoint(self, ctx: _Context, c: Disjoint) -> list[Violation]:
        others = set(self._others(ctx, c.predicate))
        return [
            ctx.result(
                ConstraintKind.DISJOINT,
                v,
                f"Value {v.n3()} is also a value of {c.predicate.n3()}",
            )
            for v in ctx.values
            if v in others
        ]

    def _less_than(self, ctx: _Context, c) -> list[Violation]:
        strict = isinstance(c, LessThan)
        kind = ConstraintKind.LESS_THAN if strict else ConstraintKind.LESS_THAN_OR_EQUALS
        relation = "less than" if strict else "less than or equal to"
        results = []
        for v in ctx.values:
            for o in self._others(ctx, c.predicate):
                order = compare_terms(v, o)
                if order is not None and (order < 0 or (order == 0 and not strict)):
                    continue
                results.append(ctx.result(
                    kind,
                    v,
                    f"Value {v.n3()} is not {relation} {o.n3()} ({c.predicate.n3()})",
                ))
        return results

    # ── Shape composition ────────────────────────────────────────

    def _nested_node(self, ctx: _Context, c: NestedNode) -> list[Violation]:
        nested = self.shapes[c.shape]
        # Results from a deeper sh:node already name their own shape
        own = {nested.id}
        if isinstance(nested, NodeShape):
            own.update(nested.property_shapes)
        results = []
        for v in ctx.values:
            for found in self.validate_focus_node(v, nested, ctx.visiting):
                if found.source_shape in own:
                    found = replace(found, source_shape=nested.id)
                results.append(found)
        return results

    def _not(self, ctx: _Context, c: Not) -> list[Violation]:
        return [
            ctx.result(
                ConstraintKind.NOT,
                v,
                f"Value {v.n3()} conforms to {c.shape.n3()}, which it must not",
            )
            for v in ctx.values
            if self.conforms(v, c.shape, ctx.visiting)
        ]

    def _and(self, ctx: _Context, c: And) -> list[Violation]:
        return [
            ctx.result(
                ConstraintKind.AND,
                v,
                f"Value {v.n3()} does not conform to all of {_shape_list(c.shapes)}",
            )
            for v in ctx.values
            if not all(self.conforms(v, s, ctx.visiting) for s in c.shapes)
        ]

    def _or(self, ctx: _Context, c: Or) -> list[Violation]:
        return [
            ctx.result(
                ConstraintKind.OR,
                v,
                f"Value {v.n3()} does not conform to any of {_shape_list(c.shapes)}",
            )
            for v in ctx.values
            if not any(self.conforms(v, s, ctx.visiting) for s in c.shapes)
        ]

    def _xone(self, ctx: _Context, c: Xone) -> list[Violation]:
        results = []
        for v in ctx.values:
            matched = sum(1 for s in c.shapes if self.conforms(v, s, ctx.visiting))
            if matched != 1:
                results.append(ctx.result(
                    ConstraintKind.XONE,
                    v,
                    f"Value {v.n3()} conforms to {matched} of {_shape_list(c.shapes)}, "
                    f"expected exactly one",
                ))
        return results

    def _qualified(self, ctx: _Context, c: QualifiedValueShape) -> list[Violation]:
        matched = sum(1 for v in ctx.values if self.conforms(v, c.shape, ctx.visiting))
        results = []
        if c.min_count is not None and matched < c.min_count:
            results.append(ctx.result(
                ConstraintKind.QUALIFIED_MIN_COUNT,
                None,
                f"{ctx.subject} has {matched} values conforming to {c.shape.n3()}, "
                f"but at least {c.min_count} are required",
            ))
        if c.max_count is not None and matched > c.max_count:
            results.append(ctx.result(
                ConstraintKind.QUALIFIED_MAX_COUNT,
                None,
                f"{ctx.subject} has {matched} values conforming to {c.shape.n3()}, "
                f"but at most {c.max_count} are allowed",
            ))
        return results

    # ── Closed shapes ────────────────────────────────────────────

    def _closed(self, ctx: _Context) -> list[Violation]:
        shape = ctx.shape
        allowed = set(shape.ignored_properties)
        allowed.add(RDF_TYPE)
        for prop_id in shape.property_shapes:
            prop = self.shapes[prop_id]
            if isinstance(prop, PropertyShape):
                allowed.add(prop.path)

        results = []
        reported: set[NamedNode] = set()
        for t in self.data.query(ctx.focus, None, None):
            if t.predicate in allowed or t.predicate in reported:
                continue
            reported.add(t.predicate)
            results.append(ctx.result(
                ConstraintKind.CLOSED,
                t.object,
                f"Property {t.predicate.n3()} is not allowed (shape is closed)",
                path=t.predicate,
            ))
        return results


# ── Helpers ──────────────────────────────────────────────────────


_RANGE_OPS = {
    MinInclusive: "less than minimum inclusive",
    MaxInclusive: "greater than maximum inclusive",
    MinExclusive: "not greater than minimum exclusive",
    MaxExclusive: "not less than maximum exclusive",
}


def _in_range(c, number) -> bool:
    # NaN is outside every range
    if number != number or c.number != c.number:
        return False
    if isinstance(c, MinInclusive):
        return number >= c.number
    if isinstance(c, MaxInclusive):
        return number <= c.number
    if isinstance(c, MinExclusive):
        return number > c.number
    return number < c.number


def _language_matches(lang: str, tag: str) -> bool:
    """Basic language-range filtering (RFC 4647)."""
    tag = tag.lower()
    return tag == "*" or lang == tag or lang.startswith(tag + "-")


def _shape_list(shapes) -> str:
    return "[" + ", ".join(s.n3() for s in shapes) + "]"
