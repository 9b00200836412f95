#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Run parameters. One immutable object is built per invocation (defaults, then
an optional JSON config, then command line overrides) and handed to every
component at construction.
'''
import json
from dataclasses import dataclass, field, fields, replace
from typing import Optional


@dataclass(frozen=True)
class Thresholds:
    '''
    Upper limits on a pair's distance tuple. A limit of None is not checked.
    '''
    max_posdiff: Optional[float] = None
    max_relshift: Optional[float] = 1.0
    max_relsizediff: Optional[float] = 0.1
    max_reldist: Optional[float] = 0.1

    def passes(self, pair):
        if self.max_posdiff is not None and pair.posdiff > self.max_posdiff:
            return False
        if self.max_relshift is not None and pair.relshift > self.max_relshift:
            return False
        if self.max_relsizediff is not None and pair.relsizediff > self.max_relsizediff:
            return False
        if self.max_reldist is not None and pair.reldist > self.max_reldist:
            return False
        return True


@dataclass(frozen=True)
class ReconcileParams:
    max_distance: int = 2000
    cluster_thresholds: Thresholds = field(default_factory=Thresholds)
    benchmark_thresholds: Thresholds = field(default_factory=lambda: Thresholds(
        max_posdiff=100000, max_relshift=1.0, max_relsizediff=1.0, max_reldist=None))
    genotype_maxdist: int = 1000
    seed: Optional[int] = None
    reference: Optional[str] = None
    require_end: bool = True
    ignore_length: bool = False
    ins_as_dup: bool = True
    comparator_cmd: Optional[str] = None
    comparator_timeout: float = 600.0
    max_haplotype_length: int = 1000000
    flank: int = 100


_THRESHOLD_KEYS = ("cluster_thresholds", "benchmark_thresholds")


def _thresholds_from(base, values):
    if isinstance(values, Thresholds):
        return values
    known = {f.name for f in fields(Thresholds)}
    unknown = set(values) - known
    if unknown:
        raise ValueError(f"Unknown threshold keys: {', '.join(sorted(unknown))}")
    return replace(base, **values)


def read_config(config_json):
    '''
    Parsed JSON config as a dict; empty when no file is given
    '''
    if config_json is None:
        return {}
    with open(config_json, 'r') as f:
        return json.load(f)


def load_params(config_json=None, base=None, **overrides):
    '''
    Build run parameters from defaults, a JSON config and overrides.
    ``config_json`` is a path or an already parsed dict. Overrides that are
    None are ignored so argparse defaults do not mask the config file.
    Threshold dicts are merged key by key, so an override of one limit keeps
    the other limits of the config.
    '''
    params = base if base is not None else ReconcileParams()
    config = dict(config_json) if isinstance(config_json, dict) else read_config(config_json)
    overrides = {k: v for k, v in overrides.items() if v is not None}

    known = {f.name for f in fields(ReconcileParams)}
    unknown = (set(config) | set(overrides)) - known
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
    for values in (config, overrides):
        for key in _THRESHOLD_KEYS:
            if key in values:
                values[key] = _thresholds_from(getattr(params, key), values[key])
        params = replace(params, **values)
    return params
