import logging
import sys

from shapelint.loader import load_graph_file
from shapelint.runner import validate

logging.basicConfig(level=logging.INFO)

data = load_graph_file("examples/person.data.ttl")
shapes = load_graph_file("examples/person.shapes.ttl")

report = validate(data, shapes)
print(report.print_table())
sys.exit(0 if report.conforms else 1)
