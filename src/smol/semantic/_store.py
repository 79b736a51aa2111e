"""Read-only rdflib store over the enabled triple sources."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from rdflib.store import Store

from ._sources import ANY, Pattern, Triple, TripleSource, matches


class SourceView:
    """One source as seen by a single bridge call.

    A virtual view answers every pattern by calling the source; a
    materialized view generates the whole source once, on first use,
    and filters that list afterwards.
    """

    def __init__(self, source: TripleSource, *, virtual: bool, guarded: bool) -> None:
        self.source = source
        self.virtual = virtual
        self.guarded = guarded
        self._materialized: list[Triple] | None = None

    def triples(self, pattern: Pattern) -> Iterator[Triple]:
        if self.virtual:
            return self.source.triples(pattern, self.guarded)
        if self._materialized is None:
            self._materialized = list(self.source.generate(None))
        return (t for t in self._materialized if matches(t, pattern))


class SourceUnionStore(Store):
    """Union of source views, in view order, without duplicates.

    A triple produced by several sources is reported once, at its first
    occurrence.
    """

    context_aware = False
    formula_aware = False
    transaction_aware = False
    graph_aware = False

    def __init__(self, views: Iterable[SourceView]) -> None:
        super().__init__()
        self.views = tuple(views)

    def triples(self, triple_pattern, context=None):
        pattern = tuple(triple_pattern)
        seen: set[Triple] = set()
        for view in self.views:
            for triple in view.triples(pattern):
                if triple not in seen:
                    seen.add(triple)
                    yield triple, iter(())

    def ordered(self) -> list[Triple]:
        """All triples in source order."""
        return [t for t, _ in self.triples(ANY)]

    def __len__(self, context=None) -> int:
        return sum(1 for _ in self.triples(ANY))

    def contexts(self, triple=None):
        return iter(())

    def add(self, triple, context, quoted=False):
        raise TypeError("The knowledge graph is read-only")

    def addN(self, quads):  # noqa: N802
        raise TypeError("The knowledge graph is read-only")

    def remove(self, triple, context=None):
        raise TypeError("The knowledge graph is read-only")
