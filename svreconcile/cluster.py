#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Cluster SVs from one or more sorted VCFs: nearby pairs are compared through
the sliding window, pairs within the clustering thresholds form a graph, and
each connected component is reported once through a representative SV.
'''
import argparse
import logging
import random
import timeit

from svreconcile.bed_utils import loadBed
from svreconcile.comparator import make_comparator
from svreconcile.config import load_params
from svreconcile.distance_store import DistanceStore
from svreconcile.graph_utils import GraphClusterer, ProximityGraph
from svreconcile.vcf_output import write_cluster_vcf
from svreconcile.vcf_utils import SortedVariantStream
from svreconcile.window import compute_distances

logger = logging.getLogger(__name__)


def run_cluster(vcf_files, out_file, params, distances=None, write_distances=None, regions=None):
    '''
    Cluster the variants of ``vcf_files`` into ``out_file``. Distances are
    either reloaded from ``distances`` or computed, and then optionally saved
    to ``write_distances``; a run never does both.
    '''
    if distances is not None and write_distances is not None:
        raise ValueError("A distance table is either read or written in one run, not both")
    stream = SortedVariantStream(vcf_files, params, regions=regions)
    if distances is not None:
        store = DistanceStore.from_table(distances)
    else:
        comparator = make_comparator(params)
        store = compute_distances(stream, comparator, params)
        comparator.close()
        if write_distances is not None:
            store.to_table(write_distances)

    graph = ProximityGraph.from_store(store, params.cluster_thresholds)
    clusterer = GraphClusterer(store, rng=random.Random(params.seed))
    clusters = clusterer.cluster(graph)
    # second pass over the inputs for the output records
    write_cluster_vcf(out_file, stream.headers, stream, clusters)
    return clusters


def cluster_main(params=None):
    parser = argparse.ArgumentParser(prog="cluster", description="Cluster similar SVs and report one SV per cluster.")
    parser.add_argument("-i", "--input", nargs="+", help="Input SV VCF file(s), each sorted by chromosome and position.", required=True)
    parser.add_argument("-o", "--output", help="Output VCF file, default merged.clustered.vcf", default="merged.clustered.vcf")
    parser.add_argument("-r", "--ref", help="Reference FASTA used to build alternate haplotypes.", default=None)
    parser.add_argument("-c", "--config", help="JSON config file with run parameters.", default=None)
    parser.add_argument("-d", "--maxdist", type=int, help="Maximum distance in bp between compared SVs (default: 2000).", default=None)
    parser.add_argument("--max-relshift", type=float, default=None, help="Maximum relative shift (default: 1.0).")
    parser.add_argument("--max-relsizediff", type=float, default=None, help="Maximum relative size difference (default: 0.1).")
    parser.add_argument("--max-reldist", type=float, default=None, help="Maximum relative edit distance (default: 0.1).")
    parser.add_argument("-s", "--seed", type=int, default=None, help="Random seed for representative selection.")
    parser.add_argument("--include-bed", help="Only cluster SVs with a breakpoint in these regions.", default=None)
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

    thresholds = {k: v for k, v in (("max_relshift", args.max_relshift), ("max_relsizediff", args.max_relsizediff),
                                    ("max_reldist", args.max_reldist)) if v is not None}
    run_params = load_params(args.config, reference=args.ref, max_distance=args.maxdist, seed=args.seed,
                             ignore_length=args.ignore_length,
                             require_end=False if args.skip_missing_end else None,
                             cluster_thresholds=thresholds or None)
    start_time = timeit.default_timer()
    regions = loadBed(args.include_bed) if args.include_bed else None
    clusters = run_cluster(args.input, args.output, run_params, distances=args.distances,
                           write_distances=args.write_distances, regions=regions)
    logger.info(f"Clustered SVs into {len(clusters)} clusters in {timeit.default_timer() - start_time:.2f} seconds")
    return clusters
