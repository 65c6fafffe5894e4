"""
Graph snapshot for structural features: degree, centrality, clustering, hyperedges.

Built from the agent ids and the ledger's directed edges. Pairwise structure is an
undirected NetworkX graph (direction is irrelevant for degree and clustering).
Hyperedges are the multi-party interaction footprints: each agent with outgoing
edges contributes {source} | targets.
"""

from __future__ import annotations

from typing import Iterable

import networkx as nx

from trustflow.analysis_engine.ledger import Edge


class GraphSnapshot:
    """Immutable view of the interaction graph at one instant."""

    def __init__(self, nodes: Iterable[str], edges: Iterable[Edge]) -> None:
        G = nx.Graph()
        G.add_nodes_from(nodes)
        outgoing: dict[str, set[str]] = {}
        last_active: dict[str, float] = {}
        for e in edges:
            if not G.has_node(e.source) or not G.has_node(e.target):
                continue
            if e.source != e.target:
                G.add_edge(e.source, e.target)
            outgoing.setdefault(e.source, set()).add(e.target)
            for n in (e.source, e.target):
                if e.last_active > last_active.get(n, float("-inf")):
                    last_active[n] = e.last_active
        self._graph = G
        self._hyperedges: list[frozenset[str]] = [
            frozenset({src} | targets) for src, targets in sorted(outgoing.items()) if targets
        ]
        self._last_active = last_active
        self._clustering: dict[str, float] = nx.clustering(G) if G.number_of_nodes() else {}
        self._centrality: dict[str, float] = (
            nx.degree_centrality(G) if G.number_of_nodes() > 1 else {n: 0.0 for n in G.nodes}
        )

    @property
    def graph(self) -> nx.Graph:
        return self._graph

    def nodes(self) -> list[str]:
        return list(self._graph.nodes)

    def degree(self, node: str) -> int:
        return int(self._graph.degree(node)) if self._graph.has_node(node) else 0

    def degree_centrality(self, node: str) -> float:
        return float(self._centrality.get(node, 0.0))

    def clustering_coefficient(self, node: str) -> float:
        return float(self._clustering.get(node, 0.0))

    def hyperedges(self) -> list[frozenset[str]]:
        return list(self._hyperedges)

    def hyperedge_count_for(self, node: str) -> int:
        return sum(1 for h in self._hyperedges if node in h)

    def hyperedge_load(self, node: str) -> float:
        """Fraction of hyperedges containing node; 0 with no hyperedges."""
        if not self._hyperedges:
            return 0.0
        return self.hyperedge_count_for(node) / len(self._hyperedges)

    def last_active(self, node: str) -> float | None:
        """Latest last_active over edges touching node, or None when isolated."""
        return self._last_active.get(node)
