import pytest

from shapelint.loader import load_graph, load_graph_file, load_shapes
from shapelint.runner import validate_text

PREFIXES = """\
@prefix sh: <http://www.w3.org/ns/shacl#> .
@prefix ex: <http://example.org/> .
@prefix xsd: <http://www.w3.org/2001/XMLSchema#> .
@prefix rdf: <http://www.w3.org/1999/02/22-rdf-syntax-ns#> .
"""


@pytest.fixture
def examples_dir(request):
    return request.config.rootpath / "examples"


@pytest.fixture
def person_shapes(examples_dir):
    return load_graph_file(examples_dir / "person.shapes.ttl")


@pytest.fixture
def person_data(examples_dir):
    return load_graph_file(examples_dir / "person.data.ttl")


@pytest.fixture
def run():
    """Validate two Turtle snippets; the common prefixes are prepended."""
    def _run(data: str, shapes: str, **kwargs):
        return validate_text(PREFIXES + data, PREFIXES + shapes, **kwargs)
    return _run


@pytest.fixture
def parse():
    """Build a ShapesModel from a Turtle snippet."""
    def _parse(shapes: str):
        return load_shapes(PREFIXES + shapes)
    return _parse


@pytest.fixture
def graph():
    """Load a Turtle snippet into a GraphStore."""
    def _graph(data: str):
        return load_graph(PREFIXES + data)
    return _graph
