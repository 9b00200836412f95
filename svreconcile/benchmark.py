#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Benchmark a test SV call set against a truth set. Distances between test and
truth SVs are computed through the sliding window (or reloaded from a
distance table), then
  pass 1: a test SV with at least one truth SV within the position, shift
          and size thresholds is a true positive, otherwise a false positive
  pass 2: a truth SV matched by at least one test SV is detected, otherwise a
          false negative
'''
import argparse
import logging
import os
import timeit
from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from svreconcile.bed_utils import loadBed
from svreconcile.comparator import make_comparator
from svreconcile.config import Thresholds, load_params, read_config
from svreconcile.distance_store import DistanceStore
from svreconcile.vcf_output import write_benchmark_report, write_benchmark_vcfs
from svreconcile.vcf_utils import SortedVariantStream
from svreconcile.window import compute_distances

logger = logging.getLogger(__name__)

TEST_LABEL = "test"
TRUTH_LABEL = "truth"


@dataclass(frozen=True)
class BenchmarkMetrics:
    true_positives: int
    false_positives: int
    detected_true_positives: int
    false_negatives: int

    @staticmethod
    def _ratio(numerator, denominator):
        if denominator == 0:
            return None
        return numerator / denominator

    @property
    def recall(self) -> Optional[float]:
        return self._ratio(self.detected_true_positives,
                           self.detected_true_positives + self.false_negatives)

    @property
    def precision(self) -> Optional[float]:
        return self._ratio(self.true_positives, self.true_positives + self.false_positives)

    @property
    def f1(self) -> Optional[float]:
        recall, precision = self.recall, self.precision
        if recall is None or precision is None:
            return None
        return self._ratio(2 * recall * precision, recall + precision)


@dataclass
class BenchmarkResult:
    metrics: BenchmarkMetrics
    true_positives: List = field(default_factory=list)
    false_positives: List = field(default_factory=list)
    detected: List = field(default_factory=list)
    false_negatives: List = field(default_factory=list)
    matches: Dict[str, List[str]] = field(default_factory=dict)


class BenchmarkScorer:
    def __init__(self, store, thresholds: Thresholds):
        self.store = store
        # the edit distance is not part of the match criteria here
        self.thresholds = replace(thresholds, max_reldist=None)

    def score(self, test_variants, truth_variants):
        truth_ids = {v.uid for v in truth_variants}
        matched_by = defaultdict(list)
        matches = {}
        true_positives, false_positives = [], []
        for variant in test_variants:
            survivors = []
            for partner in self.store.partners(variant.uid):
                if partner not in truth_ids:
                    continue
                if self.thresholds.passes(self.store.lookup(variant.uid, partner)):
                    survivors.append(partner)
            if not survivors:
                false_positives.append(variant)
                continue
            if len(survivors) > 1:
                logger.warning(f"Test variant {variant.id} matches {len(survivors)} truth variants: "
                               f"{','.join(survivors)}")
            true_positives.append(variant)
            matches[variant.uid] = survivors
            for truth_id in survivors:
                matched_by[truth_id].append(variant.uid)

        detected, false_negatives = [], []
        for variant in truth_variants:
            links = matched_by.get(variant.uid, [])
            if not links:
                false_negatives.append(variant)
                continue
            if len(links) > 1:
                logger.warning(f"Truth variant {variant.id} is matched by {len(links)} test variants: "
                               f"{','.join(links)}")
            detected.append(variant)

        metrics = BenchmarkMetrics(true_positives=len(true_positives),
                                   false_positives=len(false_positives),
                                   detected_true_positives=len(detected),
                                   false_negatives=len(false_negatives))
        for name in ("recall", "precision", "f1"):
            if getattr(metrics, name) is None:
                logger.warning(f"{name} is undefined: zero denominator")
        return BenchmarkResult(metrics=metrics, true_positives=true_positives,
                               false_positives=false_positives, detected=detected,
                               false_negatives=false_negatives, matches=matches)


def cross_set(earlier, later):
    return earlier.source != later.source


def split_by_source(variants, call_sets):
    '''
    Pass variants through, appending each to ``call_sets[variant.source]``
    '''
    for variant in variants:
        call_sets[variant.source].append(variant)
        yield variant


def benchmark_main(params=None):
    parser = argparse.ArgumentParser(prog="benchmark",
                                     description="Compare a test SV call set with a truth set.")
    parser.add_argument("-t", "--test", help="Test VCF file.", required=True)
    parser.add_argument("-b", "--truth", help="Truth VCF file.", required=True)
    parser.add_argument("-r", "--ref", help="Reference FASTA used by the comparator.", default=None)
    parser.add_argument("-p", "--prefix", help="Output prefix, default benchmark", default="benchmark")
    parser.add_argument("-c", "--config", help="JSON config file with run parameters.", default=None)
    parser.add_argument("-d", "--maxdist", type=int, help="Window size in bp (default: config max_distance, else --max-posdiff).", default=None)
    parser.add_argument("--max-posdiff", type=float, default=None, help="Maximum position difference (default: 100000).")
    parser.add_argument("--max-relshift", type=float, default=None, help="Maximum relative shift (default: 1.0).")
    parser.add_argument("--max-relsizediff", type=float, default=None, help="Maximum relative size difference (default: 1.0).")
    parser.add_argument("--include-bed", help="Only compare SVs with a breakpoint in these regions.", default=None)
    parser.add_argument("--ignore-length", action="store_true", default=None, help="Ignore REF length discrepancies with POS/END.")
    parser.add_argument("--skip-missing-end", action="store_true", default=False,
                        help="Skip symbolic-allele SVs without END instead of stopping.")
    cache = parser.add_mutually_exclusive_group()
    cache.add_argument("--write-distances", help="Write computed distances to this table.", default=None)
    cache.add_argument("--distances", help="Reuse a distance table instead of computing distances.", default=None)
    if params is not None:
        if isinstance(params, str):
            params = params.split()
        args = parser.parse_args(params)
    else:
        args = parser.parse_args()

    config = read_config(args.config)
    overrides = {k: v for k, v in (("max_posdiff", args.max_posdiff), ("max_relshift", args.max_relshift),
                                   ("max_relsizediff", args.max_relsizediff)) if v is not None}
    run_params = load_params(config, reference=args.ref, ignore_length=args.ignore_length,
                             require_end=False if args.skip_missing_end else None,
                             benchmark_thresholds=overrides or None)
    # --maxdist, then the config's max_distance, then the position limit
    if args.maxdist is not None:
        max_distance = args.maxdist
    elif "max_distance" in config:
        max_distance = config["max_distance"]
    else:
        max_distance = int(run_params.benchmark_thresholds.max_posdiff or 100000)
    run_params = load_params(base=run_params, max_distance=max_distance)

    start_time = timeit.default_timer()
    regions = loadBed(args.include_bed) if args.include_bed else None
    stream = SortedVariantStream([args.test, args.truth], run_params,
                                 labels=[TEST_LABEL, TRUTH_LABEL], regions=regions)
    call_sets = {TEST_LABEL: [], TRUTH_LABEL: []}
    variants = split_by_source(stream, call_sets)
    if args.distances is not None:
        store = DistanceStore.from_table(args.distances)
        for _ in variants:
            pass
    else:
        comparator = make_comparator(run_params)
        store = compute_distances(variants, comparator, run_params, pair_filter=cross_set)
        comparator.close()
        if args.write_distances is not None:
            store.to_table(args.write_distances)

    scorer = BenchmarkScorer(store, run_params.benchmark_thresholds)
    result = scorer.score(call_sets[TEST_LABEL], call_sets[TRUTH_LABEL])
    out_dir = os.path.dirname(args.prefix)
    if out_dir and not os.path.exists(out_dir):
        os.makedirs(out_dir)
    write_benchmark_vcfs(args.prefix, stream.headers[0], stream.headers[1], result)
    write_benchmark_report(args.prefix + ".report", args.test, args.truth, result.metrics)
    m = result.metrics
    logger.info(f"TP {m.true_positives}, FP {m.false_positives}, detected {m.detected_true_positives}, "
                f"FN {m.false_negatives} in {timeit.default_timer() - start_time:.2f} seconds")
    return result
