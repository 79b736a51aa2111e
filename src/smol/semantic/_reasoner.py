"""Reasoners: expand a knowledge graph with entailed triples.

The bridge talks to reasoners through the ``Reasoner`` protocol, so an
external engine can be plugged in.  ``OwlrlReasoner`` is the default and
computes the deductive closure with the ``owlrl`` package: RDFS semantics
in ``rdfs`` mode, OWL 2 RL semantics in ``full`` mode.  owlrl reports
detected inconsistencies as instances of the agent-ontology error classes.
"""

from __future__ import annotations

import logging
from typing import Protocol

import owlrl
from rdflib import Graph, URIRef
from rdflib.namespace import OWL, RDF

from smol.errors import ExternalServiceError

from ._settings import ReasonerMode


logger = logging.getLogger(__name__)

_AGENT_ONT = "http://www.daml.org/2002/03/agents/agent-ont#"

# Instances of these classes mark a detected inconsistency.
ERROR_CLASS = URIRef(_AGENT_ONT + "Error")
ERROR_MESSAGE_CLASS = URIRef(_AGENT_ONT + "ErrorMessage")

_SEMANTICS = {
    ReasonerMode.RDFS: owlrl.RDFS_Semantics,
    ReasonerMode.FULL: owlrl.OWLRL_Semantics,
}


class Reasoner(Protocol):
    def expand(self, graph: Graph, mode: ReasonerMode) -> Graph:
        """Return a new graph holding *graph* plus everything it entails."""
        ...

    def is_consistent(self, graph: Graph, mode: ReasonerMode) -> bool:
        ...


def copy_graph(graph: Graph) -> Graph:
    closure = Graph()
    for prefix, iri in graph.namespaces():
        closure.bind(prefix, iri, override=False)
    for triple in graph:
        closure.add(triple)
    return closure


class OwlrlReasoner:
    """Deductive closure through ``owlrl.DeductiveClosure``.

    Parameters
    ----------
    axiomatic_triples : bool
        Add the RDFS/OWL axiomatic triples to every closure.
    """

    def __init__(self, axiomatic_triples: bool = False) -> None:
        self.axiomatic_triples = axiomatic_triples

    def expand(self, graph: Graph, mode: ReasonerMode) -> Graph:
        closure = copy_graph(graph)
        semantics = _SEMANTICS.get(mode)
        if semantics is None:
            return closure

        before = len(closure)
        try:
            owlrl.DeductiveClosure(
                semantics, axiomatic_triples=self.axiomatic_triples,
            ).expand(closure)
        except Exception as exc:  # owlrl and rdflib raise plain exceptions
            raise ExternalServiceError(f"Reasoner failed: {exc}") from exc
        logger.debug(
            "%s closure: %d -> %d triples", mode.value, before, len(closure),
        )
        return closure

    def is_consistent(self, graph: Graph, mode: ReasonerMode) -> bool:
        closure = self.expand(graph, mode)
        for cls in (OWL.Nothing, ERROR_CLASS, ERROR_MESSAGE_CLASS):
            if (None, RDF.type, cls) in closure:
                return False
        return True
