#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Sliding window over a sorted variant stream. Each new variant is compared
with the earlier variants still inside the window, so every nearby pair is
measured exactly once.
'''
import logging
import timeit
from collections import deque

from svreconcile.distance_store import DistanceStore, PairDistance

logger = logging.getLogger(__name__)


class NeighborhoodWindow:
    '''
    Variants on the cursor's chromosome no more than ``max_distance`` bases
    behind it, oldest first.
    '''
    def __init__(self, max_distance):
        self.max_distance = max_distance
        self._members = deque()

    def __len__(self):
        return len(self._members)

    @property
    def members(self):
        return list(self._members)

    def _stale(self, member, variant):
        return member.chrom != variant.chrom or variant.pos - member.pos > self.max_distance

    def add(self, variant):
        '''
        Evict stale members, return the remaining neighbors of ``variant``
        and append it.
        '''
        while self._members and self._stale(self._members[0], variant):
            self._members.popleft()
        neighbors = list(self._members)
        self._members.append(variant)
        return neighbors


def compute_distances(variants, comparator, params, store=None, pair_filter=None):
    '''
    Run the window over ``variants`` and record the distance of every
    neighboring pair the comparator considers a potential match.
    ``pair_filter(earlier, later)`` can restrict which pairs are compared.
    '''
    if store is None:
        store = DistanceStore()
    window = NeighborhoodWindow(params.max_distance)
    start = timeit.default_timer()
    n_variants = 0
    n_compared = 0
    for variant in variants:
        n_variants += 1
        for neighbor in window.add(variant):
            if pair_filter is not None and not pair_filter(neighbor, variant):
                continue
            if not comparator.potential_match(neighbor, variant):
                continue
            measures = comparator.distance(neighbor, variant)
            store.record(neighbor.uid, variant.uid, PairDistance.from_measures(neighbor, variant, measures))
            n_compared += 1
    logger.info(f"Compared {n_compared} pairs among {n_variants} variants "
                f"in {timeit.default_timer() - start:.2f} seconds")
    return store
