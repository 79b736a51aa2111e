"""Settings for the semantic bridge.

``TripleSettings`` selects which sources contribute triples and how
they are computed.  It may be changed between steps; each bridge call
reads the settings object it is given.  ``Namespaces`` holds the prefix
IRIs shared by lifting, querying and lowering.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, StrictBool, model_validator
from rdflib import Graph, URIRef

from smol.errors import QueryError


class Source(str, Enum):
    HEAP = "heap"
    STATIC_TABLE = "staticTable"
    CORE_VOCABULARY = "coreVocabulary"
    EXTERNAL_ONTOLOGY = "externalOntology"


# Sources whose triples are computed from program state; only these
# support guards and virtualization.
COMPUTED_SOURCES = (Source.HEAP, Source.STATIC_TABLE)


class ReasonerMode(str, Enum):
    OFF = "off"
    RDFS = "rdfs"
    FULL = "full"


def _all_on(sources) -> dict:
    return {s: True for s in sources}


class TripleSettings(BaseModel):
    """Per-run switches for the knowledge graph.

    Parameters
    ----------
    sources : dict[Source, bool]
        Which sources contribute triples.
    guards : dict[Source, bool]
        Push query patterns into triple generation (heap, staticTable).
    virtualization : dict[Source, bool]
        Answer patterns lazily instead of materializing the source
        (heap, staticTable).
    reasoner : ReasonerMode
        ``off`` queries the raw graph; ``rdfs`` and ``full`` go through
        the reasoner.
    """

    model_config = ConfigDict(validate_assignment=True)

    sources: dict[Source, StrictBool] = Field(default_factory=lambda: _all_on(Source))
    guards: dict[Source, StrictBool] = Field(default_factory=lambda: _all_on(COMPUTED_SOURCES))
    virtualization: dict[Source, StrictBool] = Field(default_factory=lambda: _all_on(COMPUTED_SOURCES))
    reasoner: ReasonerMode = ReasonerMode.OFF

    @model_validator(mode="after")
    def _complete_flags(self) -> Self:
        for name in ("guards", "virtualization"):
            flags = getattr(self, name)
            extra = set(flags) - set(COMPUTED_SOURCES)
            if extra:
                raise ValueError(
                    f"{name} only apply to {[s.value for s in COMPUTED_SOURCES]}, "
                    f"got {sorted(s.value for s in extra)}"
                )
            for source in COMPUTED_SOURCES:
                flags.setdefault(source, True)
        for source in Source:
            self.sources.setdefault(source, True)
        return self

    def source_enabled(self, source: Source) -> bool:
        return self.sources[source]

    def guarded(self, source: Source) -> bool:
        return self.guards.get(source, False)

    def virtual(self, source: Source) -> bool:
        return self.virtualization.get(source, False)

    def set_source(self, source: Source | str, enabled: bool) -> None:
        self.sources = {**self.sources, Source(source): enabled}

    def set_guard(self, source: Source | str, enabled: bool) -> None:
        self.guards = {**self.guards, _computed(source): enabled}

    def set_virtualization(self, source: Source | str, enabled: bool) -> None:
        self.virtualization = {**self.virtualization, _computed(source): enabled}

    def set_reasoner(self, mode: ReasonerMode | str) -> None:
        self.reasoner = ReasonerMode(mode)


def _computed(source: Source | str) -> Source:
    source = Source(source)
    if source not in COMPUTED_SOURCES:
        raise ValueError(
            f"Source must be one of {[s.value for s in COMPUTED_SOURCES]}, got {source.value!r}"
        )
    return source


# ---------------------------------------------------------------------------
# Namespaces
# ---------------------------------------------------------------------------

STANDARD_PREFIXES = {
    "owl": "http://www.w3.org/2002/07/owl#",
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
    "rdfs": "http://www.w3.org/2000/01/rdf-schema#",
    "xsd": "http://www.w3.org/2001/XMLSchema#",
}


def _run_prefix() -> str:
    return f"https://github.com/Edkamb/SemanticObjects/Run{int(time.time() * 1000)}#"


class Namespaces(BaseModel):
    """Prefix IRIs.

    ``prog:`` holds declared entities, ``run:`` the individuals of this
    execution (time-stamped), ``smol:`` the language vocabulary and
    ``domain:`` the caller's ontology.  *extra* adds further prefixes.
    """

    domain: str = "https://github.com/Edkamb/SemanticObjects/ontologies/default#"
    prog: str = "https://github.com/Edkamb/SemanticObjects/Program#"
    run: str = Field(default_factory=_run_prefix)
    lang: str = "https://github.com/Edkamb/SemanticObjects#"
    extra: dict[str, str] = {}

    def prefix_map(self) -> dict[str, str]:
        prefixes = {
            "domain": self.domain,
            "smol": self.lang,
            "prog": self.prog,
            "run": self.run,
            **STANDARD_PREFIXES,
        }
        prefixes.update(self.extra)
        return prefixes

    def expand(self, curie: str) -> URIRef:
        """Resolve ``prefix:local`` or ``<iri>`` to a URIRef."""
        curie = curie.strip()
        if curie.startswith("<") and curie.endswith(">"):
            return URIRef(curie[1:-1])
        prefix, sep, local = curie.partition(":")
        prefixes = self.prefix_map()
        if not sep or prefix not in prefixes:
            raise QueryError(f"Unknown prefix in {curie!r}")
        return URIRef(prefixes[prefix] + local)

    def prog_iri(self, local: str) -> URIRef:
        return URIRef(self.prog + local)

    def run_iri(self, local: str) -> URIRef:
        return URIRef(self.run + local)

    def lang_iri(self, local: str) -> URIRef:
        return URIRef(self.lang + local)

    def local_name(self, iri: str) -> str:
        """Strip one of the known namespaces from *iri*."""
        for namespace in (self.run, self.prog, self.domain, self.lang, *self.extra.values()):
            if iri.startswith(namespace) and len(iri) > len(namespace):
                return iri[len(namespace):]
        for sep in ("#", "/"):
            if sep in iri:
                return iri.rsplit(sep, 1)[1]
        return iri

    def bind(self, graph: Graph) -> Graph:
        for prefix, namespace in self.prefix_map().items():
            graph.bind(prefix, namespace, override=True)
        return graph

    def turtle_header(self) -> str:
        return "".join(
            f"@prefix {prefix}: <{namespace}> .\n"
            for prefix, namespace in self.prefix_map().items()
        )
