#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Proximity graph of SVs whose distances pass the clustering thresholds, its
connected components, and the exact-match sub-cluster and representative of
each component.
'''
import logging
import random
from collections import defaultdict
from dataclasses import dataclass
from typing import List, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Cluster:
    nodes: Tuple[str, ...]
    exact_nodes: Tuple[str, ...]
    representative: str
    max_relshift: float = 0.0
    max_relsizediff: float = 0.0
    max_reldist: float = 0.0

    @property
    def size(self):
        return len(self.nodes)

    @property
    def exact_size(self):
        return len(self.exact_nodes)


class ProximityGraph:
    '''
    Undirected graph with integer node indices assigned at first encounter.
    Only identifiers touching at least one qualifying edge become nodes.
    '''
    def __init__(self):
        self.node_ids: List[str] = []
        self.index = {}
        self.adjacency: List[List[int]] = []
        self.n_edges = 0

    def __len__(self):
        return len(self.node_ids)

    def _node(self, sv_id):
        if sv_id not in self.index:
            self.index[sv_id] = len(self.node_ids)
            self.node_ids.append(sv_id)
            self.adjacency.append([])
        return self.index[sv_id]

    def add_edge(self, id1, id2):
        i = self._node(id1)
        j = self._node(id2)
        self.adjacency[i].append(j)
        self.adjacency[j].append(i)
        self.n_edges += 1

    def edges(self):
        return [(self.node_ids[i], self.node_ids[j])
                for i, neighbors in enumerate(self.adjacency) for j in neighbors if i < j]

    @classmethod
    def from_store(cls, store, thresholds):
        graph = cls()
        for (id1, id2), pair in store.items():
            if thresholds.passes(pair):
                graph.add_edge(id1, id2)
        logger.info(f"Graph has {len(graph)} nodes and {graph.n_edges} edges")
        return graph

    def components(self):
        '''
        Connected components as lists of node indices, found with an
        explicit-stack depth-first search from each undiscovered node in index
        order.
        '''
        discovered = [False] * len(self.node_ids)
        components = []
        for root in range(len(self.node_ids)):
            if discovered[root]:
                continue
            discovered[root] = True
            stack = [root]
            component = []
            while stack:
                node = stack.pop()
                component.append(node)
                for neighbor in self.adjacency[node]:
                    if not discovered[neighbor]:
                        discovered[neighbor] = True
                        stack.append(neighbor)
            components.append(component)
        return components


class GraphClusterer:
    '''
    Turns the components of a ProximityGraph into Clusters. ``rng`` drives
    the tie-break between equally large exact-match groups and the choice of
    representative; pass a seeded ``random.Random`` for reproducible output.
    '''
    def __init__(self, store, rng=None):
        self.store = store
        self.rng = rng if rng is not None else random.Random()

    def analyze_component(self, node_ids):
        node_ids = list(node_ids)
        if len(node_ids) == 1:
            return Cluster(nodes=tuple(node_ids), exact_nodes=tuple(node_ids),
                           representative=node_ids[0])

        labels = list(range(len(node_ids)))
        max_relshift = max_relsizediff = max_reldist = 0.0
        for i in range(len(node_ids)):
            for j in range(i + 1, len(node_ids)):
                pair = self.store.lookup(node_ids[i], node_ids[j])
                if pair is None:
                    logger.warning(f"No distance stored for {node_ids[i]} and {node_ids[j]}, skipping pair")
                    continue
                max_relshift = max(max_relshift, pair.relshift)
                max_relsizediff = max(max_relsizediff, pair.relsizediff)
                max_reldist = max(max_reldist, pair.reldist)
                if pair.is_exact() and labels[i] != labels[j]:
                    old, new = labels[j], labels[i]
                    labels = [new if label == old else label for label in labels]

        groups = defaultdict(list)
        for sv_id, label in zip(node_ids, labels):
            groups[label].append(sv_id)
        largest = max(len(members) for members in groups.values())
        tied = [members for members in groups.values() if len(members) == largest]
        # uniform over every tied group, the last one included
        exact = tied[0] if len(tied) == 1 else self.rng.choice(tied)
        representative = self.rng.choice(exact)
        return Cluster(nodes=tuple(node_ids), exact_nodes=tuple(exact),
                       representative=representative, max_relshift=max_relshift,
                       max_relsizediff=max_relsizediff, max_reldist=max_reldist)

    def cluster(self, graph):
        clusters = []
        for component in graph.components():
            clusters.append(self.analyze_component([graph.node_ids[i] for i in component]))
        logger.info(f"Found {len(clusters)} clusters")
        return clusters
