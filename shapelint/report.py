"""
shapelint.report - Violations and the validation report.

A ValidationReport is the terminal artifact of one validate() call. It can
be rendered as JSON, as a text table, or re-serialized as a graph of
sh:ValidationResult triples.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Iterable, Optional

from shapelint.loader import serialize_graph
from shapelint.parser import ConstraintKind, Severity
from shapelint.store import GraphStore
from shapelint.terms import RDF_TYPE, BlankNode, Literal, NamedNode, Term, sh, xsd


# ─── Report types ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Violation:
    focus_node: Term
    source_shape: Term
    constraint_component: ConstraintKind
    result_path: Optional[NamedNode]
    value: Optional[Term]
    message: str
    severity: Severity = Severity.VIOLATION

    def to_dict(self) -> dict:
        d = {
            "focusNode": self.focus_node.n3(),
            "sourceShape": self.source_shape.n3(),
            "sourceConstraintComponent": self.constraint_component.component.value,
            "type": self.constraint_component.violation_name,
            "resultMessage": self.message,
            "resultSeverity": self.severity.value,
        }
        if self.result_path is not None:
            d["resultPath"] = self.result_path.value
        if self.value is not None:
            d["value"] = self.value.n3()
        return d


@dataclass(frozen=True)
class ValidationReport:
    conforms: bool
    violations: tuple[Violation, ...] = field(default_factory=tuple)

    def by_severity(self, severity: Severity) -> list[Violation]:
        return [v for v in self.violations if v.severity == severity]

    def by_component(self, kind: ConstraintKind) -> list[Violation]:
        return [v for v in self.violations if v.constraint_component == kind]

    @property
    def summary(self) -> dict:
        return {
            "violations": len(self.by_severity(Severity.VIOLATION)),
            "warnings": len(self.by_severity(Severity.WARNING)),
            "info": len(self.by_severity(Severity.INFO)),
            "total": len(self.violations),
        }

    def to_dict(self) -> dict:
        return {
            "conforms": self.conforms,
            "summary": self.summary,
            "results": [v.to_dict() for v in self.violations],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def to_graph(self) -> GraphStore:
        return serialize_report(self)

    def to_turtle(self) -> str:
        return serialize_graph(self.to_graph(), format="turtle")

    def print_table(self) -> str:
        """Format report as a human-readable table."""
        lines = []

        lines.append("shapelint validation report")
        lines.append("")

        s = self.summary
        status = "✓ CONFORMS" if self.conforms else "✗ DOES NOT CONFORM"
        lines.append(f"  {status}")
        lines.append(
            f"  {s['violations']} violations  {s['warnings']} warnings  {s['info']} info"
        )
        lines.append("")

        if self.violations:
            lines.append("  RESULTS:")
            lines.append("")
            for v in self.violations:
                icon = {
                    Severity.VIOLATION: "✗",
                    Severity.WARNING: "⚠",
                    Severity.INFO: "ℹ",
                }[v.severity]
                lines.append(
                    f"  {icon} [{v.severity.value.upper()}] {v.constraint_component.violation_name}"
                )
                lines.append(f"    {v.message}")
                lines.append(f"      focus: {v.focus_node.n3()}")
                lines.append(f"      shape: {v.source_shape.n3()}")
                if v.result_path is not None:
                    lines.append(f"      path:  {v.result_path.n3()}")
                if v.value is not None:
                    lines.append(f"      value: {v.value.n3()}")
                lines.append("")

        return "\n".join(lines)


# ─── Aggregation ─────────────────────────────────────────────────────


def build_report(violations: Iterable[Violation]) -> ValidationReport:
    """Aggregate violations; conforms unless one has severity Violation."""
    results = tuple(violations)
    conforms = all(v.severity != Severity.VIOLATION for v in results)
    return ValidationReport(conforms=conforms, violations=results)


# ─── Graph serialization ─────────────────────────────────────────────


def serialize_report(report: ValidationReport) -> GraphStore:
    """Express the report as sh:ValidationReport / sh:ValidationResult triples."""
    g = GraphStore()
    root = BlankNode("report")
    g.add(root, RDF_TYPE, sh("ValidationReport"))
    g.add(
        root,
        sh("conforms"),
        Literal("true" if report.conforms else "false", datatype=xsd("boolean")),
    )

    for i, v in enumerate(report.violations):
        node = BlankNode(f"result{i}")
        g.add(root, sh("result"), node)
        g.add(node, RDF_TYPE, sh("ValidationResult"))
        g.add(node, sh("focusNode"), v.focus_node)
        g.add(node, sh("sourceShape"), v.source_shape)
        g.add(node, sh("sourceConstraintComponent"), v.constraint_component.component)
        if v.result_path is not None:
            g.add(node, sh("resultPath"), v.result_path)
        if v.value is not None:
            g.add(node, sh("value"), v.value)
        g.add(node, sh("resultMessage"), Literal(v.message))
        g.add(node, sh("resultSeverity"), v.severity.iri)

    return g
