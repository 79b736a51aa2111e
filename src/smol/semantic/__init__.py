"""SMOL semantic bridge: lifting program state to RDF and lowering answers back.

Entry point::

    from smol.semantic import SemanticBridge, TripleSettings

    bridge = SemanticBridge(interp.state, interp.static)
    settings = TripleSettings()
    for row in bridge.query("SELECT ?obj WHERE { ?obj a prog:Layer }", settings):
        print(row["obj"])
"""

from __future__ import annotations

from ._bridge import QueryResult, SemanticBridge
from ._lowering import classify_literal, lower, term_token
from ._reasoner import OwlrlReasoner, Reasoner
from ._settings import (
    COMPUTED_SOURCES,
    Namespaces,
    ReasonerMode,
    Source,
    TripleSettings,
)
from ._sources import (
    DocumentSource,
    HeapSource,
    StaticTableSource,
    TripleSource,
)
from ._store import SourceUnionStore, SourceView


__all__ = [
    "COMPUTED_SOURCES",
    "DocumentSource",
    "HeapSource",
    "Namespaces",
    "OwlrlReasoner",
    "QueryResult",
    "Reasoner",
    "ReasonerMode",
    "SemanticBridge",
    "Source",
    "SourceUnionStore",
    "SourceView",
    "StaticTableSource",
    "TripleSettings",
    "TripleSource",
    "classify_literal",
    "lower",
    "term_token",
]
