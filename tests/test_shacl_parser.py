"""
Test parsing a SHACL shapes graph into the shape model.
"""

import pytest

from shapelint.parser import (
    And,
    ByClass,
    ByNode,
    Datatype,
    In,
    LanguageIn,
    MaxCount,
    MaxInclusive,
    MaxLength,
    MinCount,
    MinInclusive,
    MinLength,
    NodeKind,
    NodeKindType,
    NodeShape,
    ObjectsOf,
    Pattern,
    PropertyShape,
    QualifiedValueShape,
    Severity,
    ShapesGraphError,
    SubjectsOf,
)
from shapelint.shacl_parser import parse_shapes
from shapelint.terms import Literal, NamedNode, xsd

EX = "http://example.org/"


def ex(local):
    return NamedNode(EX + local)


# ─── Shape model ─────────────────────────────────────────────────────


def test_person_shapes(person_shapes):
    """PersonShape parses into one node shape and three property shapes."""
    model = parse_shapes(person_shapes)

    person = model[ex("PersonShape")]
    assert isinstance(person, NodeShape)
    assert person.targets == [ByClass(ex("Person"))]
    assert len(person.property_shapes) == 3
    assert model.targeted() == [person]

    props = {model[p].path: model[p] for p in person.property_shapes}
    assert set(props) == {ex("name"), ex("age"), ex("email")}

    name = props[ex("name")]
    assert isinstance(name, PropertyShape)
    assert set(name.constraints) == {
        MinCount(1), MaxCount(1), MinLength(1), MaxLength(100), Datatype(xsd("string")),
    }

    age = props[ex("age")]
    assert MinInclusive(Literal("0", datatype=xsd("integer")), 0) in age.constraints
    assert MaxInclusive(Literal("150", datatype=xsd("integer")), 150) in age.constraints

    email = props[ex("email")]
    [pattern] = [c for c in email.constraints if isinstance(c, Pattern)]
    assert pattern.regex.search("john@example.com")
    assert not pattern.regex.search("invalid-email")

    for shape in model:
        print(f"{shape.label}: {shape.constraints}")


def test_all_target_kinds(parse):
    model = parse("""\
    ex:S a sh:NodeShape ;
        sh:targetClass ex:Person ;
        sh:targetNode ex:alice ;
        sh:targetSubjectsOf ex:knows ;
        sh:targetObjectsOf ex:worksFor .
    """)
    assert set(model[ex("S")].targets) == {
        ByClass(ex("Person")),
        ByNode(ex("alice")),
        SubjectsOf(ex("knows")),
        ObjectsOf(ex("worksFor")),
    }


def test_standalone_property_shape_with_target(parse):
    """A property shape can carry its own targets."""
    model = parse("""\
    ex:NameShape a sh:PropertyShape ;
        sh:targetClass ex:Person ;
        sh:path ex:name ;
        sh:minCount 1 .
    """)
    shape = model[ex("NameShape")]
    assert isinstance(shape, PropertyShape)
    assert shape.path == ex("name")
    assert model.targeted() == [shape]


def test_referenced_shapes_are_discovered(parse):
    """Shapes reached only through sh:and are still parsed."""
    model = parse("""\
    ex:S a sh:NodeShape ;
        sh:targetNode ex:x ;
        sh:and ( ex:A ex:B ) .
    ex:A sh:nodeKind sh:IRI .
    ex:B sh:path ex:p ; sh:minCount 1 .
    """)
    assert And((ex("A"), ex("B"))) in model[ex("S")].constraints
    assert model[ex("A")].constraints == [NodeKind(NodeKindType.IRI)]
    assert isinstance(model[ex("B")], PropertyShape)
    assert [s.id for s in model.targeted()] == [ex("S")]


def test_lists_and_language_parameters(parse):
    model = parse("""\
    ex:S a sh:NodeShape ;
        sh:targetNode ex:x ;
        sh:property [
            sh:path ex:label ;
            sh:languageIn ( "EN" "de" ) ;
            sh:uniqueLang true
        ] ;
        sh:property [
            sh:path ex:color ;
            sh:in ( "red" "green" ex:blue )
        ] .
    """)
    props = {model[p].path: model[p] for p in model[ex("S")].property_shapes}
    assert LanguageIn(("en", "de")) in props[ex("label")].constraints
    assert props[ex("color")].constraints == [In((Literal("red"), Literal("green"), ex("blue")))]


def test_qualified_value_shape(parse):
    model = parse("""\
    ex:S a sh:NodeShape ;
        sh:targetNode ex:x ;
        sh:property [
            sh:path ex:parent ;
            sh:qualifiedValueShape ex:Female ;
            sh:qualifiedMinCount 1 ;
            sh:qualifiedMaxCount 1
        ] .
    ex:Female sh:path ex:gender ; sh:hasValue ex:female .
    """)
    [prop_id] = model[ex("S")].property_shapes
    assert model[prop_id].constraints == [QualifiedValueShape(ex("Female"), 1, 1)]


def test_severity_message_deactivated(parse):
    model = parse("""\
    ex:S a sh:NodeShape ;
        sh:targetNode ex:x ;
        sh:severity sh:Warning ;
        sh:message "Bonjour"@fr, "Hello"@en .
    ex:Off a sh:NodeShape ;
        sh:targetNode ex:x ;
        sh:deactivated true .
    """)
    shape = model[ex("S")]
    assert shape.severity is Severity.WARNING
    assert shape.message == "Hello"
    assert model[ex("Off")].deactivated
    assert model.targeted() == [shape]


def test_closed_shape_ignored_properties(parse):
    model = parse("""\
    ex:S a sh:NodeShape ;
        sh:targetNode ex:x ;
        sh:closed true ;
        sh:ignoredProperties ( ex:note ex:comment ) .
    """)
    shape = model[ex("S")]
    assert shape.closed
    assert shape.ignored_properties == frozenset({ex("note"), ex("comment")})


# ─── Warnings ────────────────────────────────────────────────────────


def test_unknown_severity_warns(parse):
    with pytest.warns(UserWarning, match="sh:severity"):
        model = parse("""\
        ex:S a sh:NodeShape ;
            sh:targetNode ex:x ;
            sh:severity ex:Catastrophic .
        """)
    assert model[ex("S")].severity is Severity.VIOLATION


def test_closed_property_shape_warns(parse):
    with pytest.warns(UserWarning, match="sh:closed"):
        parse("""\
        ex:P a sh:PropertyShape ;
            sh:targetNode ex:x ;
            sh:path ex:p ;
            sh:closed true .
        """)


# ─── Structural errors ───────────────────────────────────────────────


def test_missing_path(parse):
    with pytest.raises(ShapesGraphError, match="no sh:path") as exc:
        parse("""\
        ex:P a sh:PropertyShape ;
            sh:targetNode ex:x ;
            sh:minCount 1 .
        """)
    assert exc.value.shape_id == ex("P")
    assert isinstance(exc.value, ValueError)


def test_complex_path_rejected(parse):
    with pytest.raises(ShapesGraphError, match="simple predicate paths"):
        parse("""\
        ex:P a sh:PropertyShape ;
            sh:targetNode ex:x ;
            sh:path ( ex:a ex:b ) .
        """)


def test_cyclic_list(parse):
    with pytest.raises(ShapesGraphError, match="cyclic"):
        parse("""\
        ex:S a sh:NodeShape ;
            sh:targetNode ex:x ;
            sh:in _:l1 .
        _:l1 rdf:first "a" ; rdf:rest _:l2 .
        _:l2 rdf:first "b" ; rdf:rest _:l1 .
        """)


def test_malformed_list(parse):
    with pytest.raises(ShapesGraphError, match="malformed"):
        parse("""\
        ex:S a sh:NodeShape ;
            sh:targetNode ex:x ;
            sh:in _:l1 .
        _:l1 rdf:first "a" .
        """)


def test_bad_regex(parse):
    with pytest.raises(ShapesGraphError, match="invalid sh:pattern"):
        parse("""\
        ex:P a sh:PropertyShape ;
            sh:targetNode ex:x ;
            sh:path ex:p ;
            sh:pattern "[unclosed" .
        """)


def test_unknown_regex_flag(parse):
    with pytest.raises(ShapesGraphError, match="unsupported flag"):
        parse("""\
        ex:P a sh:PropertyShape ;
            sh:targetNode ex:x ;
            sh:path ex:p ;
            sh:pattern "abc" ;
            sh:flags "z" .
        """)


def test_dangling_reference(parse):
    with pytest.raises(ShapesGraphError, match="no shape description") as exc:
        parse("""\
        ex:S a sh:NodeShape ;
            sh:targetNode ex:x ;
            sh:node ex:Missing .
        """)
    assert exc.value.shape_id == ex("S")


def test_non_integer_count(parse):
    with pytest.raises(ShapesGraphError, match="non-negative integer"):
        parse("""\
        ex:P a sh:PropertyShape ;
            sh:targetNode ex:x ;
            sh:path ex:p ;
            sh:minCount 1.5 .
        """)


def test_all_problems_reported_together(parse):
    """Every structural problem ends up in one error."""
    with pytest.raises(ShapesGraphError) as exc:
        parse("""\
        ex:P a sh:PropertyShape ;
            sh:targetNode ex:x ;
            sh:minCount -1 .
        ex:Q a sh:NodeShape ;
            sh:targetNode ex:x ;
            sh:nodeKind sh:Banana .
        """)
    messages = [issue.message for issue in exc.value.issues]
    print(exc.value)
    assert len(messages) == 3
    assert any("sh:minCount" in m for m in messages)
    assert any("no sh:path" in m for m in messages)
    assert any("sh:nodeKind" in m for m in messages)
    assert "3 problems" in str(exc.value)
