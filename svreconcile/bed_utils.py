#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Interval helpers: BED region filters and homozygous-reference coverage
regions, both held as per-chromosome IntervalTrees.
'''

import gzip
import logging
from collections import defaultdict
from dataclasses import dataclass

from intervaltree import IntervalTree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RefRegion:
    chrom: str
    start: int
    end: int
    contig: str = "."


def _open(path):
    if path.endswith('.gz'):
        return gzip.open(path, 'rt')
    return open(path, 'r')


def loadBed(bedFile, tree=None, max_size=None):   # dict of IntervalTrees, each interval: chrom/start/end
    if tree is None:
        tree = defaultdict(IntervalTree)
    n_regions = 0
    with _open(bedFile) as f:
        for line in f:
            if line.startswith('#') or line.startswith("chrom") or line.startswith("track") or not line.strip():
                continue
            info = line.strip().split()
            chrom = info[0]
            start = int(info[1])
            end = int(info[2])
            if max_size is None or end - start <= max_size:
                # BED is 0-based half-open, variants are 1-based
                tree[chrom].addi(start + 1, end + 1)
                n_regions += 1
    logger.info(f"Loaded {n_regions} regions from {bedFile}")
    return tree


def regionAnno(variant, interested_regions):
    '''
    True when either end of the variant falls inside a region
    '''
    if variant.chrom not in interested_regions:
        return False
    tree = interested_regions[variant.chrom]
    return bool(tree[variant.pos]) or bool(tree[variant.end])


def read_ref_coverage(covfile):
    '''
    Collect the distinct HOMREF regions of an assembly coverage file.

    Rows look like ``HOMREF chrom start end hr_chrom hr_start hr_end hr_contig ...``;
    the hr_* columns give the region covered by reference-matching sequence.
    '''
    regions = []
    seen = set()
    with _open(covfile) as f:
        for line in f:
            if not line.startswith("HOMREF"):
                continue
            cols = line.rstrip("\n").split("\t")
            region = RefRegion(chrom=cols[4], start=int(cols[5]), end=int(cols[6]),
                               contig=cols[7] if len(cols) > 7 else ".")
            if region in seen:
                continue
            seen.add(region)
            regions.append(region)
    return regions


def region_trees(regions):
    '''
    Index regions by chromosome, keeping file order; interval ends are made half-open
    '''
    trees = defaultdict(IntervalTree)
    for i, region in enumerate(regions):
        trees[region.chrom].addi(region.start, region.end + 1, (i, region))
    return trees


def containing_regions(trees, chrom, start, end):
    '''
    Regions that strictly contain [start, end] (region.start < start and region.end > end)
    '''
    if chrom not in trees:
        return []
    hits = [iv.data for iv in trees[chrom].overlap(start, end + 1)
            if iv.data[1].start < start and iv.data[1].end > end]
    return [region for _, region in sorted(hits, key=lambda hit: hit[0])]
