"""Tests for the semantic bridge: lifting, querying, reasoning."""

import io
import itertools

import pytest
from rdflib import Literal, URIRef
from rdflib.namespace import OWL, RDF, RDFS

from conftest import (
    DOMAIN,
    RUN,
    geology_program,
    list_values,
    lit,
    make_namespaces,
    make_program,
    new,
    run_program,
    this_field,
)

from smol.errors import BridgeError, ExternalServiceError, QueryError
from smol.model.program import ClassDecl, FieldDecl, MethodDecl
from smol.model.statements import ReturnStatement
from smol.runtime import ObjectRef
from smol.semantic import (
    HeapSource,
    ReasonerMode,
    SemanticBridge,
    Source,
    StaticTableSource,
    TripleSettings,
)


PREFIXES = f"""
@prefix domain: <{DOMAIN}> .
@prefix rdfs: <http://www.w3.org/2000/01/rdf-schema#> .
@prefix owl: <http://www.w3.org/2002/07/owl#> .
"""

OBJ1 = URIRef(RUN + "obj1")
OBJ2 = URIRef(RUN + "obj2")


class FailingReasoner:
    """Fails the test if the bridge consults it."""

    def expand(self, graph, mode):
        pytest.fail("reasoner must not be called")

    def is_consistent(self, graph, mode):
        pytest.fail("reasoner must not be called")


@pytest.fixture
def interp():
    interp, _ = run_program(geology_program())
    return interp


def _bridge(interp, **kwargs):
    return SemanticBridge(interp.state, interp.static, make_namespaces(), **kwargs)


@pytest.fixture
def bridge(interp):
    return _bridge(interp)


@pytest.fixture
def ns():
    return make_namespaces()


def _only(*sources, **kwargs):
    return TripleSettings(sources={s: s in sources for s in Source}, **kwargs)


# ---------------------------------------------------------------------------
# Lifting
# ---------------------------------------------------------------------------

class TestHeapTriples:
    def test_heap_only(self, bridge, ns):
        triples = bridge.ordered_triples(_only(Source.HEAP))
        assert len(triples) == 13
        assert triples[0] == (URIRef(RUN + "obj0"), RDF.type, ns.prog_iri("_Entry_"))
        assert triples[1] == (OBJ1, RDF.type, ns.prog_iri("Shale"))

    def test_fields(self, bridge, ns):
        graph = bridge.build_graph(_only(Source.HEAP))
        assert (OBJ1, ns.prog_iri("Layer_thickness"), Literal(2.5)) in graph
        assert (OBJ2, ns.prog_iri("Layer_below"), OBJ1) in graph
        assert (OBJ1, ns.prog_iri("Layer_below"), ns.lang_iri("null")) in graph

    def test_field_models_predicate(self, bridge):
        graph = bridge.build_graph(_only(Source.HEAP))
        assert (OBJ1, URIRef(DOMAIN + "thickness"), Literal(2.5)) in graph

    def test_class_templates(self, bridge):
        graph = bridge.build_graph(_only(Source.HEAP))
        assert (OBJ2, RDF.type, URIRef(DOMAIN + "Sandstone")) in graph
        assert (OBJ2, URIRef(DOMAIN + "porous"), Literal(True)) in graph
        # Shale has no template of its own and uses Layer's
        assert (OBJ1, RDF.type, URIRef(DOMAIN + "GeoUnit")) in graph
        assert (OBJ1, RDF.type, URIRef(DOMAIN + "Sandstone")) not in graph

    def test_template_substitution(self, ns):
        cls = ClassDecl(
            name="Well",
            fields=[FieldDecl(name="depth", data_type="Int"), FieldDecl(name="next", data_type="Well")],
            models="domain:depth %depth ; domain:next %next",
        )
        interp, _ = run_program(make_program(
            [new("w", "Well", lit(30), lit("null"), declares="Well")],
            [cls],
        ))
        graph = _bridge(interp).build_graph(_only(Source.HEAP))
        assert (OBJ1, URIRef(DOMAIN + "depth"), Literal(30)) in graph
        assert (OBJ1, URIRef(DOMAIN + "next"), ns.lang_iri("null")) in graph

    def test_template_blank_nodes_are_stable(self):
        cls = ClassDecl(
            name="Well",
            fields=[FieldDecl(name="depth", data_type="Int")],
            models="domain:hasPart [ domain:size %depth ]",
        )
        interp, _ = run_program(make_program([new("w", "Well", lit(30), declares="Well")], [cls]))
        bridge = _bridge(interp)
        query = "SELECT ?part ?size WHERE { run:obj1 domain:hasPart ?part . ?part domain:size ?size }"
        first = bridge.query(query, TripleSettings()).rows
        second = bridge.query(query, TripleSettings()).rows
        assert first == second
        assert [(r["part"], r["size"]) for r in first] == [(URIRef(RUN + "obj1_b0"), Literal(30))]
        assert bridge.ordered_triples(TripleSettings()) == bridge.ordered_triples(TripleSettings())

    def test_bad_template(self):
        cls = ClassDecl(name="Bad", models="domain:p ((( [")
        interp, _ = run_program(make_program([new("b", "Bad", declares="Bad")], [cls]))
        with pytest.raises(BridgeError, match="Invalid models template of class 'Bad'"):
            _bridge(interp).build_graph(TripleSettings())

    def test_reflects_current_heap(self, bridge, interp, ns):
        settings = _only(Source.HEAP)
        query = "SELECT ?obj WHERE { run:obj2 prog:Layer_thickness ?obj }"
        assert bridge.query(query, settings).column() == [Literal(1.0)]
        top = interp.state.heap.find("obj2")
        interp.state.heap[top]["thickness"] = 9.5
        assert bridge.query(query, settings).column() == [Literal(9.5)]


class TestStaticTriples:
    def test_declarations(self, bridge, ns):
        graph = bridge.build_graph(_only(Source.STATIC_TABLE))
        smol = ns.lang_iri
        assert (ns.prog_iri("Sandstone"), RDFS.subClassOf, ns.prog_iri("Layer")) in graph
        assert (ns.prog_iri("Layer"), RDF.type, OWL.Class) in graph
        assert (ns.prog_iri("List"), RDF.type, smol("Class")) in graph
        assert (ns.prog_iri("Layer"), smol("hasField"), ns.prog_iri("Layer_thickness")) in graph
        assert (ns.prog_iri("Layer_thickness"), RDF.type, OWL.DatatypeProperty) in graph
        assert (ns.prog_iri("Layer_below"), RDF.type, OWL.ObjectProperty) in graph
        assert (ns.prog_iri("Layer_below"), smol("fieldType"), Literal("Layer")) in graph
        assert (ns.prog_iri("Sandstone.depth"), smol("methodName"), Literal("depth")) in graph
        assert (ns.prog_iri("Sandstone"), smol("hasMethod"), ns.prog_iri("Sandstone.depth")) in graph
        # inherited fields are declared once, on their owner
        assert (ns.prog_iri("Sandstone"), smol("hasField"), None) not in graph

    def test_field_and_method_sharing_a_name(self, ns):
        cls = ClassDecl(
            name="Well",
            fields=[FieldDecl(name="depth", data_type="Int")],
            methods=[MethodDecl(name="depth", return_type="Int", body=[ReturnStatement(value=this_field("depth"))])],
        )
        interp, _ = run_program(make_program([], [cls]))
        graph = _bridge(interp).build_graph(_only(Source.STATIC_TABLE))
        smol = ns.lang_iri
        field_iri, method_iri = ns.prog_iri("Well_depth"), ns.prog_iri("Well.depth")
        assert (field_iri, RDF.type, smol("Field")) in graph
        assert (field_iri, RDF.type, smol("Method")) not in graph
        assert (method_iri, RDF.type, smol("Method")) in graph
        assert (method_iri, smol("fieldName"), None) not in graph

    def test_no_heap_triples(self, bridge):
        graph = bridge.build_graph(_only(Source.STATIC_TABLE))
        assert (OBJ1, None, None) not in graph


class TestVocabularyAndOntology:
    def test_core_vocabulary(self, bridge, ns):
        graph = bridge.build_graph(_only(Source.CORE_VOCABULARY))
        assert (ns.lang_iri("hasField"), RDFS.domain, ns.lang_iri("Class")) in graph

    def test_ontology(self, interp):
        bridge = _bridge(interp, ontology=PREFIXES + "domain:Sandstone rdfs:subClassOf domain:Reservoir .")
        graph = bridge.build_graph(_only(Source.EXTERNAL_ONTOLOGY))
        assert len(graph) == 1

    def test_duplicates_reported_once(self, interp, bridge):
        settings = _only(Source.HEAP, Source.EXTERNAL_ONTOLOGY)
        baseline = bridge.ordered_triples(settings)
        duplicated = _bridge(
            interp,
            ontology=f"<{RUN}obj1> a <{make_namespaces().prog}Shale> .",
        ).ordered_triples(settings)
        assert duplicated == baseline

    def test_bad_ontology(self, interp):
        bridge = _bridge(interp, ontology="this is not turtle")
        with pytest.raises(ExternalServiceError, match="Could not load ontology"):
            bridge.query("SELECT ?s WHERE { ?s ?p ?o }", TripleSettings())
        # not consulted when the source is off
        settings = TripleSettings(sources={Source.EXTERNAL_ONTOLOGY: False})
        assert len(bridge.query("SELECT ?s WHERE { ?s a prog:Shale }", settings)) == 1


# ---------------------------------------------------------------------------
# Guards and virtualization
# ---------------------------------------------------------------------------

PATTERNS = [
    (None, None, None),
    (OBJ2, None, None),
    (None, RDF.type, None),
    (OBJ1, URIRef(DOMAIN + "thickness"), None),
    (None, None, OBJ1),
]


class TestGuards:
    @pytest.mark.parametrize("pattern", PATTERNS)
    def test_heap_guard_transparent(self, interp, ns, pattern):
        source = HeapSource(interp.state.heap, interp.static, ns)
        assert list(source.triples(pattern, True)) == list(source.triples(pattern, False))

    @pytest.mark.parametrize("pattern", [
        (None, None, None),
        (make_namespaces().prog_iri("Layer"), None, None),
        (None, RDFS.subClassOf, None),
    ])
    def test_static_guard_transparent(self, interp, ns, pattern):
        source = StaticTableSource(interp.static, ns)
        assert list(source.triples(pattern, True)) == list(source.triples(pattern, False))

    def test_graph_independent_of_strategy(self, bridge):
        query = "SELECT ?s ?o WHERE { ?s domain:thickness ?o } ORDER BY ?o"
        baseline = bridge.ordered_triples(TripleSettings())
        rows = bridge.query(query, TripleSettings()).rows
        for flags in itertools.product([True, False], repeat=4):
            settings = TripleSettings(
                guards={Source.HEAP: flags[0], Source.STATIC_TABLE: flags[1]},
                virtualization={Source.HEAP: flags[2], Source.STATIC_TABLE: flags[3]},
            )
            assert bridge.ordered_triples(settings) == baseline
            assert bridge.query(query, settings).rows == rows

    def test_unordered_results_independent_of_strategy(self, bridge):
        query = "SELECT ?s ?p ?o WHERE { ?s ?p ?o }"
        rows = bridge.query(query, TripleSettings()).rows
        assert rows
        for flags in itertools.product([True, False], repeat=4):
            settings = TripleSettings(
                guards={Source.HEAP: flags[0], Source.STATIC_TABLE: flags[1]},
                virtualization={Source.HEAP: flags[2], Source.STATIC_TABLE: flags[3]},
            )
            assert bridge.query(query, settings).rows == rows


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

class TestQuery:
    def test_heap_only_scenario(self, bridge, ns):
        result = bridge.query(
            "SELECT ?s ?o WHERE { ?s prog:Layer_thickness ?o }", _only(Source.HEAP),
        )
        assert result.variables == ("s", "o")
        assert {(r["s"], r["o"]) for r in result} == {(OBJ1, Literal(2.5)), (OBJ2, Literal(1.0))}
        assert result.column() == [row["s"] for row in result.rows]

    def test_obj_column_preferred(self, bridge):
        result = bridge.query("SELECT ?x ?obj WHERE { ?x prog:Layer_below ?obj }", TripleSettings())
        assert len(result) == 2
        assert set(result.column()) == {OBJ1, make_namespaces().lang_iri("null")}

    def test_only_select(self, bridge):
        with pytest.raises(QueryError, match="Only SELECT"):
            bridge.query("ASK { ?s ?p ?o }", TripleSettings())

    def test_syntax_error(self, bridge):
        with pytest.raises(QueryError, match="Invalid query"):
            bridge.query("SELECT ?s WHERE { ?s ", TripleSettings())

    def test_unknown_prefix(self, bridge):
        with pytest.raises(QueryError):
            bridge.query("SELECT ?s WHERE { ?s a nope:Thing }", TripleSettings())


class TestClassMembers:
    def test_first_appearance_order(self, bridge):
        members = bridge.class_members("prog:Sandstone or prog:Shale", TripleSettings())
        assert members == [OBJ1, OBJ2]

    def test_intersection(self, bridge):
        assert bridge.class_members("prog:Sandstone and domain:GeoUnit", TripleSettings()) == [OBJ2]
        assert bridge.class_members("domain:GeoUnit", TripleSettings()) == [OBJ1, OBJ2]

    def test_iri_form(self, bridge):
        members = bridge.class_members(f"<{DOMAIN}Sandstone>", TripleSettings())
        assert members == [OBJ2]

    def test_superclass_needs_reasoner(self, bridge):
        assert bridge.class_members("prog:Layer", TripleSettings()) == []
        settings = TripleSettings(reasoner=ReasonerMode.RDFS)
        assert bridge.class_members("prog:Layer", settings) == [OBJ1, OBJ2]

    def test_ontology_classes(self, interp):
        bridge = _bridge(interp, ontology=PREFIXES + "domain:Sandstone rdfs:subClassOf domain:Reservoir .")
        settings = TripleSettings(reasoner=ReasonerMode.RDFS)
        assert bridge.class_members("domain:Reservoir", settings) == [OBJ2]

    @pytest.mark.parametrize("expression", ["nope:Layer", "prog:Layer and", "prog:A prog:B", ""])
    def test_malformed(self, bridge, expression):
        with pytest.raises(QueryError):
            bridge.class_members(expression, TripleSettings())

    def test_lowered_in_reverse(self, bridge, interp):
        head = bridge.lower(bridge.class_members("domain:GeoUnit", TripleSettings()))
        values = list_values(interp.state.heap, head)
        assert [v.name for v in values] == ["obj2", "obj1"]


# ---------------------------------------------------------------------------
# Consistency
# ---------------------------------------------------------------------------

class TestConsistency:
    def test_off_short_circuits(self, interp):
        bridge = _bridge(interp, reasoner=FailingReasoner())
        assert bridge.check_consistency(TripleSettings())
        bridge.query("SELECT ?s WHERE { ?s a prog:Shale }", TripleSettings())
        bridge.class_members("prog:Shale", TripleSettings())

    def test_consistent_model(self, bridge):
        assert bridge.check_consistency(TripleSettings(reasoner=ReasonerMode.FULL))

    def test_disjointness_violated(self, interp):
        bridge = _bridge(interp, ontology=PREFIXES + "domain:Sandstone owl:disjointWith domain:GeoUnit .")
        assert bridge.check_consistency(TripleSettings(reasoner=ReasonerMode.RDFS))
        assert not bridge.check_consistency(TripleSettings(reasoner=ReasonerMode.FULL))

    def test_reasoner_failure_wrapped(self, interp):
        class Broken:
            def expand(self, graph, mode):
                raise RuntimeError("engine down")

            def is_consistent(self, graph, mode):
                raise RuntimeError("engine down")

        bridge = _bridge(interp, reasoner=Broken())
        settings = TripleSettings(reasoner=ReasonerMode.RDFS)
        with pytest.raises(ExternalServiceError, match="engine down"):
            bridge.check_consistency(settings)
        with pytest.raises(ExternalServiceError, match="engine down"):
            bridge.class_members("prog:Layer", settings)


# ---------------------------------------------------------------------------
# Dump and parameters
# ---------------------------------------------------------------------------

class TestDump:
    def test_turtle(self, bridge):
        sink = io.StringIO()
        count = bridge.dump(sink, TripleSettings())
        assert count == len(bridge.build_graph(TripleSettings()))
        assert "@prefix domain:" in sink.getvalue()

    def test_other_format(self, bridge):
        sink = io.StringIO()
        bridge.dump(sink, _only(Source.HEAP), format="nt")
        assert len(sink.getvalue().strip().splitlines()) == 13


class TestParameters:
    def test_object_and_literals(self, bridge):
        query = bridge.bind_parameters("%1 %2 %3 %4", [ObjectRef("obj2", "Sandstone"), 5, "a", None])
        assert query == (
            f"<{RUN}obj2> "
            '"5"^^<http://www.w3.org/2001/XMLSchema#integer> '
            '"a" '
            f"<{make_namespaces().lang}null>"
        )

    def test_two_digit_index(self, bridge):
        params = list(range(10))
        assert bridge.bind_parameters("%10|%1", params).startswith('"9"')

    def test_values_are_not_rescanned(self, bridge):
        query = bridge.bind_parameters("%2 %1", [5, "%1"])
        assert query == '"%1" "5"^^<http://www.w3.org/2001/XMLSchema#integer>'

    def test_out_of_range(self, bridge):
        with pytest.raises(QueryError, match="%2"):
            bridge.bind_parameters("%1 %2", [1])
