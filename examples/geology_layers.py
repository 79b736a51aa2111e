"""Querying a running program through its knowledge graph.

Demonstrates:
  - Classes that export domain triples through ``models`` templates
  - ``member`` retrieval of live objects by a domain class
  - ``access`` with a ``%1`` parameter bound to a program variable
  - RDFS reasoning over an external ontology
"""

import sys

from smol.model.expressions import LiteralExpr, ThisExpr, FieldAccessExpr, VariableRef
from smol.model.program import ClassDecl, FieldDecl, MethodDecl, Program
from smol.model.statements import (
    AccessStatement,
    BreakpointStatement,
    CallStatement,
    MemberStatement,
    NewStatement,
    PrintStatement,
    ReturnStatement,
)
from smol.model.types import PrimitiveType
from smol.semantic import Namespaces, ReasonerMode, TripleSettings
from smol.session import SessionConfig, open_session


GEO = "http://example.org/geo#"

ONTOLOGY = f"""
@prefix geo: <{GEO}> .
@prefix rdfs: <http://www.w3.org/2000/01/rdf-schema#> .

geo:Sandstone rdfs:subClassOf geo:Reservoir .
geo:Reservoir rdfs:subClassOf geo:GeoUnit .
geo:Shale rdfs:subClassOf geo:Seal .
geo:Seal rdfs:subClassOf geo:GeoUnit .
"""


def v(name):
    return VariableRef(name=name)


def text(value):
    return LiteralExpr(value=value, data_type=PrimitiveType.STRING)


def num(value):
    return LiteralExpr(value=value)


# =========================================================================
# Classes
# =========================================================================

LAYER = ClassDecl(
    name="Layer",
    abstract=True,
    fields=[
        FieldDecl(name="thickness", data_type="Double", models="geo:thickness"),
        FieldDecl(name="below", data_type="Layer"),
    ],
    methods=[
        MethodDecl(
            name="thick",
            return_type="Double",
            body=[ReturnStatement(value=FieldAccessExpr(target=ThisExpr(), field="thickness"))],
        ),
    ],
)

SANDSTONE = ClassDecl(name="Sandstone", extends="Layer", models="a geo:Sandstone")
SHALE = ClassDecl(name="Shale", extends="Layer", models="a geo:Shale")


# =========================================================================
# Main block
# =========================================================================

MAIN = [
    NewStatement(target=v("base"), class_name="Shale", args=[num("12.0"), num("null")], declares="Layer"),
    NewStatement(target=v("mid"), class_name="Sandstone", args=[num("4.5"), v("base")], declares="Layer"),
    NewStatement(target=v("cap"), class_name="Shale", args=[num("0.8"), v("mid")], declares="Layer"),
    MemberStatement(target=v("reservoirs"), query=text("geo:Reservoir"), declares="List<Layer>"),
    CallStatement(target=v("count"), declares="Int", callee=v("reservoirs"), method="length"),
    PrintStatement(value=v("count")),
    AccessStatement(
        target=v("under"),
        query=text("SELECT ?obj WHERE { %1 prog:Layer_below ?obj }"),
        params=[v("cap")],
        declares="List<Layer>",
    ),
    CallStatement(target=v("first"), declares="Layer", callee=v("under"), method="get", args=[num("0")]),
    PrintStatement(value=v("first")),
    BreakpointStatement(),
]


if __name__ == "__main__":
    config = SessionConfig(
        namespaces=Namespaces(domain=GEO),
        ontology=ONTOLOGY,
        ontology_format="turtle",
        triple_settings=TripleSettings(reasoner=ReasonerMode.RDFS),
    )
    session = open_session(Program(classes=[LAYER, SANDSTONE, SHALE], main=MAIN), config)

    result = session.auto()
    if not result.ok:
        print(f"failed: {result.error}", file=sys.stderr)
        sys.exit(1)

    print(session.examine().value)
    print()
    members = session.class_members("geo:GeoUnit").value
    print(f"geo:GeoUnit members: {[str(m) for m in members]}")
    print(f"consistent: {session.consistency().value}")
    session.dump(sys.stdout)
