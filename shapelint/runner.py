"""
shapelint.runner - Validate a data graph against a shapes graph.

validate() is the engine's entry point: parse the shapes graph, resolve
the focus nodes of every targeted shape, evaluate them, and aggregate the
results into a ValidationReport. A malformed shapes graph raises
ShapesGraphError before any data is looked at.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Optional, Union

from shapelint.evaluator import ConstraintEvaluator
from shapelint.loader import load_graph
from shapelint.parser import ShapesModel
from shapelint.report import ValidationReport, Violation, build_report
from shapelint.shacl_parser import parse_shapes
from shapelint.store import GraphStore
from shapelint.targets import resolve_targets

logger = logging.getLogger(__name__)


@dataclass
class ValidationOptions:
    """Knobs for one validate() call.

    workers > 1 shards the focus nodes of each shape over a thread pool.
    Results are merged in focus-node order, so the report is the same as
    a sequential run.
    """

    workers: int = 1

    def __post_init__(self):
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")


def validate(
    data_graph: GraphStore,
    shapes_graph: Union[GraphStore, ShapesModel],
    options: Optional[ValidationOptions] = None,
) -> ValidationReport:
    """Validate data_graph against every targeted shape of shapes_graph.

    Neither input graph is modified. Raises ShapesGraphError if the shapes
    graph is malformed; data problems are always reported as violations.
    """
    if options is None:
        options = ValidationOptions()

    if isinstance(shapes_graph, ShapesModel):
        model = shapes_graph
    else:
        model = parse_shapes(shapes_graph)

    evaluator = ConstraintEvaluator(data_graph, model)
    violations: list[Violation] = []

    pool = ThreadPoolExecutor(max_workers=options.workers) if options.workers > 1 else nullcontext()
    with pool as executor:
        for shape in model.targeted():
            focus_nodes = resolve_targets(shape, data_graph)
            logger.debug("Shape %s: %d focus nodes", shape.label, len(focus_nodes))
            for found in _evaluate(evaluator, shape, focus_nodes, executor):
                violations.extend(found)

    report = build_report(violations)
    logger.debug(
        "Validation finished: conforms=%s, %d results", report.conforms, len(report.violations)
    )
    return report


def _evaluate(evaluator: ConstraintEvaluator, shape, focus_nodes, executor: Optional[Executor]):
    if executor is None:
        return (evaluator.validate_focus_node(node, shape) for node in focus_nodes)
    # Executor.map yields in submission order regardless of completion order
    return executor.map(lambda node: evaluator.validate_focus_node(node, shape), focus_nodes)


def validate_text(
    data: str,
    shapes: str,
    format: str = "turtle",
    options: Optional[ValidationOptions] = None,
) -> ValidationReport:
    """Parse two RDF documents and validate the first against the second."""
    return validate(load_graph(data, format=format), load_graph(shapes, format=format), options)
