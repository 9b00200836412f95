#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Symmetric store of pairwise SV distances keyed by the canonical (lesser,
greater) identifier pair, and its flat tab-separated cache table.
'''
import logging
import math
from collections import defaultdict
from dataclasses import astuple, dataclass, fields

import pandas as pd

from svreconcile.exceptions import DuplicatePairError, SVReconcileError

logger = logging.getLogger(__name__)

DIST_TAG = "DIST"
TABLE_COLUMNS = ["#TAG", "ID1", "ID2", "EDITDIST", "MAXSHIFT", "ALTLENDIFF", "ALTLENAVG",
                 "SIZEDIFF", "SIZEAVG", "POSDIFF", "RELSHIFT", "RELSIZEDIFF", "RELDIST"]


def pair_key(id1, id2):
    if id1 <= id2:
        return (id1, id2)
    return (id2, id1)


def _relative(raw, denominator):
    raw = abs(raw)
    if raw == 0:
        return 0.0
    if denominator == 0:
        return math.inf
    return raw / denominator


@dataclass(frozen=True)
class PairDistance:
    '''
    Raw measures of one compared pair plus the derived distance tuple
    (posdiff, relshift, relsizediff, reldist). Relative measures are raw
    measures divided by the smaller of the two SV sizes.
    '''
    edit_distance: float
    max_shift: float
    alt_length_diff: float
    alt_length_avg: float
    size_diff: float
    size_avg: float
    posdiff: float
    relshift: float
    relsizediff: float
    reldist: float

    @classmethod
    def from_measures(cls, v1, v2, measures):
        denominator = measures.shared_denominator
        return cls(
            edit_distance=measures.edit_distance,
            max_shift=measures.max_shift,
            alt_length_diff=measures.alt_length_diff,
            alt_length_avg=measures.alt_length_avg,
            size_diff=measures.size_diff,
            size_avg=measures.size_avg,
            posdiff=abs(v1.pos - v2.pos),
            relshift=_relative(measures.max_shift, denominator),
            relsizediff=_relative(measures.size_diff, denominator),
            reldist=_relative(measures.edit_distance, denominator),
        )

    @property
    def distance_tuple(self):
        return (self.posdiff, self.relshift, self.relsizediff, self.reldist)

    def is_exact(self):
        return all(value == 0 for value in self.distance_tuple)


class DistanceStore:
    '''
    Pair distances recorded once per unordered pair. ``partners`` keeps, per
    identifier, the identifiers it has a stored distance with, in recording
    order.
    '''
    def __init__(self):
        self._pairs = {}
        self._partners = defaultdict(list)

    def __len__(self):
        return len(self._pairs)

    def __contains__(self, key):
        return pair_key(*key) in self._pairs

    def record(self, id1, id2, pair):
        key = pair_key(id1, id2)
        if key in self._pairs:
            raise DuplicatePairError(key)
        self._pairs[key] = pair
        self._partners[key[0]].append(key[1])
        self._partners[key[1]].append(key[0])

    def lookup(self, id1, id2):
        '''
        Stored PairDistance for the pair, or None when it was never compared
        '''
        return self._pairs.get(pair_key(id1, id2))

    def partners(self, sv_id):
        return list(self._partners.get(sv_id, ()))

    def items(self):
        return self._pairs.items()

    def to_dataframe(self):
        rows = [[DIST_TAG, id1, id2] + list(astuple(pair)) for (id1, id2), pair in self._pairs.items()]
        return pd.DataFrame(rows, columns=TABLE_COLUMNS)

    def to_table(self, out_file):
        self.to_dataframe().to_csv(out_file, sep="\t", index=False)
        logger.info(f"Wrote {len(self)} pair distances to {out_file}")

    @classmethod
    def from_table(cls, table_file):
        '''
        Reload a store written by ``to_table``; rows keep their order so the
        derived graph numbers its nodes identically.
        '''
        df = pd.read_csv(table_file, sep="\t", header=0, dtype={"ID1": str, "ID2": str},
                         float_precision="round_trip", comment=None,
                         keep_default_na=False, na_filter=False)
        missing = [c for c in TABLE_COLUMNS if c not in df.columns]
        if missing:
            raise SVReconcileError(f"{table_file}: distance table lacks columns {', '.join(missing)}")
        df = df.loc[df["#TAG"] == DIST_TAG, TABLE_COLUMNS]
        store = cls()
        names = [f.name for f in fields(PairDistance)]
        for row in df.itertuples(index=False, name=None):
            values = dict(zip(TABLE_COLUMNS, row))
            pair = PairDistance(**{name: float(values[col]) for name, col in zip(names, TABLE_COLUMNS[3:])})
            store.record(values["ID1"], values["ID2"], pair)
        logger.info(f"Loaded {len(store)} pair distances from {table_file}")
        return store
