#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Back-genotype the SVs of one target sample across the other samples'
assembly-based call sets. For every target SV and every sample:
  - HOMREF regions strictly containing the SV's wide interval give allele 0 (high)
  - calls with identical wide interval, type and length give allele 1 (high)
  - otherwise the comparator's first match among nearby calls gives allele 1 (low)
'''
import argparse
import logging
import timeit
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import pandas as pd

from svreconcile.bed_utils import containing_regions, read_ref_coverage, region_trees
from svreconcile.comparator import make_comparator
from svreconcile.config import load_params
from svreconcile.exceptions import MissingSampleError, SVReconcileError
from svreconcile.vcf_utils import iter_variants, open_vcf, variant_sort_key
from svreconcile.vcf_output import write_genotype_vcf

logger = logging.getLogger(__name__)

INFO_COLUMNS = ["sample", "vcf", "coverage", "qdelta"]
PLOT_FLANK = 500


class Confidence(str, Enum):
    HIGH = "H"
    LOW = "L"


@dataclass(frozen=True)
class SampleGenotype:
    alleles: Tuple[str, ...] = ()
    confidences: Tuple[Confidence, ...] = ()
    # the sample's calls supporting the non-reference alleles
    evidence: tuple = field(default=(), compare=False)

    @property
    def genotype(self):
        return "/".join(self.alleles) if self.alleles else "."

    @property
    def allele_indices(self):
        if not self.alleles:
            return (None,)
        return tuple(int(a) for a in self.alleles)

    @property
    def confidence(self):
        return ",".join(c.value for c in self.confidences) if self.confidences else "."


@dataclass
class SampleCallSet:
    '''
    One sample's SV calls and homozygous-reference regions, indexed for lookup
    '''
    name: str
    variants: list
    homref_regions: list = field(default_factory=list)
    vcf_file: str = None
    header: object = None
    qdelta: Optional[str] = None

    def __post_init__(self):
        self._by_chrom = defaultdict(list)
        self._exact = defaultdict(list)
        for variant in self.variants:
            self._by_chrom[variant.chrom].append(variant)
            self._exact[self.exact_key(variant)].append(variant)
        self._homref = region_trees(self.homref_regions)

    @staticmethod
    def exact_key(variant):
        return (variant.chrom, variant.wide_start, variant.wide_end, variant.svtype, variant.svlen)

    def homref_covering(self, variant):
        return containing_regions(self._homref, variant.chrom, variant.wide_start, variant.wide_end)

    def exact_matches(self, variant):
        return list(self._exact.get(self.exact_key(variant), ()))

    def nearby(self, variant, maxdist):
        return [v for v in self._by_chrom.get(variant.chrom, ())
                if abs(v.wide_mean - variant.wide_mean) < maxdist]


@dataclass(frozen=True)
class GenotypeCall:
    variant: object
    genotypes: Tuple[Tuple[str, SampleGenotype], ...]

    def __getitem__(self, sample):
        return dict(self.genotypes)[sample]


class MatchResolver:
    def __init__(self, callsets, sample_order, comparator, params):
        self.callsets = callsets
        self.sample_order = list(sample_order)
        self.comparator = comparator
        self.params = params

    def resolve(self, variant, sample, is_target=False):
        callset = self.callsets[sample]
        alleles: List[str] = []
        confidences: List[Confidence] = []
        for _ in callset.homref_covering(variant):
            alleles.append("0")
            confidences.append(Confidence.HIGH)

        if is_target:
            alleles.append("1")
            confidences.append(Confidence.HIGH)
            return SampleGenotype(tuple(alleles), tuple(confidences), evidence=(variant,))

        evidence = []
        exact = callset.exact_matches(variant)
        if exact:
            for match in exact:
                alleles.append("1")
                confidences.append(Confidence.HIGH)
                evidence.append(match)
        else:
            candidates = callset.nearby(variant, self.params.genotype_maxdist)
            if candidates:
                ordinal = self.comparator.batch_match(variant, candidates)
                if ordinal is not None:
                    match = candidates[ordinal - 1]
                    logger.debug(f"{variant.id} matches {match.id} in {sample}")
                    alleles.append("1")
                    confidences.append(Confidence.LOW)
                    evidence.append(match)
        return SampleGenotype(tuple(alleles), tuple(confidences), evidence=tuple(evidence))

    def genotype_target(self, target_sample):
        '''
        Genotype calls for every target variant, sorted by chromosome, start, end
        '''
        if target_sample not in self.callsets:
            raise MissingSampleError(f"Info file must contain a line for the target sample {target_sample}")
        for variant in sorted(self.callsets[target_sample].variants, key=variant_sort_key):
            logger.debug(f"Processing {variant.chrom}:{variant.wide_start}-{variant.wide_end}")
            genotypes = tuple((sample, self.resolve(variant, sample, is_target=(sample == target_sample)))
                              for sample in self.sample_order)
            yield GenotypeCall(variant=variant, genotypes=genotypes)


def read_info_file(info_file, params):
    '''
    Load the per-sample call sets listed in an info file of
    ``sample vcf coverage [qdelta]`` rows; row order is the sample order.
    '''
    info = pd.read_csv(info_file, sep=r"\s+", header=None, names=INFO_COLUMNS, comment="#", dtype=str)
    if info["coverage"].isna().any():
        raise SVReconcileError(f"{info_file}: expected sample, VCF and coverage columns")
    callsets = {}
    order = []
    for row in info.itertuples(index=False):
        sample, sample_vcf, cov_file = row.sample, row.vcf, row.coverage
        with open_vcf(sample_vcf) as vcf:
            variants = list(iter_variants(vcf, sample_vcf, params))
            header = vcf.header
        logger.info(f"Read {len(variants)} variants for {sample}")
        regions = read_ref_coverage(cov_file)
        logger.info(f"Read {len(regions)} HOMREF regions for {sample}")
        callsets[sample] = SampleCallSet(name=sample, variants=variants, homref_regions=regions,
                                         vcf_file=sample_vcf, header=header,
                                         qdelta=row.qdelta if isinstance(row.qdelta, str) else None)
        order.append(sample)
    return callsets, order


def plot_command(variant, qdelta, program="mummerplot", flank=PLOT_FLANK):
    '''
    mummerplot call showing the alignment of a call's contig around its
    reference interval, or None without contig coordinates or delta file
    '''
    if variant.contig is None or qdelta is None:
        return None
    ref_start, ref_end = variant.wide_start - flank, variant.wide_end + flank
    if variant.contig_comp:
        contig_start, contig_end = variant.contig_end - flank, variant.contig_start + flank
    else:
        contig_start, contig_end = variant.contig_start - flank, variant.contig_end + flank
    return (f"{program} -IdR {variant.chrom} -IdQ {variant.contig} "
            f"-x [{ref_start}:{ref_end}] -y [{contig_start}:{contig_end}] {qdelta}")


def write_plot_commands(out_file, calls, callsets, program="mummerplot"):
    '''
    One "Processing" line per target SV followed by a mummerplot command for
    every call supporting it
    '''
    n_commands = 0
    with open(out_file, "w") as fh:
        for call in calls:
            variant = call.variant
            fh.write(f"Processing {variant.chrom}:{variant.wide_start}-{variant.wide_end}\n")
            for sample, genotype in call.genotypes:
                for match in genotype.evidence:
                    command = plot_command(match, callsets[sample].qdelta, program)
                    if command is not None:
                        fh.write(command + "\n")
                        n_commands += 1
    logger.info(f"Wrote {n_commands} mummerplot commands to {out_file}")
    return n_commands


def genotype_main(params=None):
    parser = argparse.ArgumentParser(prog="genotype",
                                     description="Genotype a target sample's SVs across assembly-based call sets.")
    parser.add_argument("-t", "--target", help="Target sample name.", required=True)
    parser.add_argument("-i", "--info", help="Info file: sample, VCF, coverage file [, qdelta] per line.", required=True)
    parser.add_argument("-r", "--ref", help="Reference FASTA used by the comparator.", default=None)
    parser.add_argument("-o", "--output", help="Output VCF file, default out.multi.vcf", default="out.multi.vcf")
    parser.add_argument("-c", "--config", help="JSON config file with run parameters.", default=None)
    parser.add_argument("-m", "--maxdist", type=int, help="Maximum wide-interval midpoint distance for fuzzy matches (default: 1000).", default=None)
    parser.add_argument("--comparator-cmd", help="External comparator command template, e.g. 'SVcomp.pl --ref {ref} {target} {candidates}'.", default=None)
    parser.add_argument("--timeout", type=float, help="Timeout in seconds for each external comparator call.", default=None)
    parser.add_argument("--plot-commands", help="Write mummerplot commands for the supporting contig alignments to this file.", default=None)
    parser.add_argument("--mummerplot", help="mummerplot program used in --plot-commands, default mummerplot", default="mummerplot")
    parser.add_argument("--ignore-length", action="store_true", default=None, help="Ignore REF length discrepancies with POS/END.")
    parser.add_argument("--skip-missing-end", action="store_true", default=False,
                        help="Skip symbolic-allele SVs without END instead of stopping.")
    if params is not None:
        if isinstance(params, str):
            params = params.split()
        args = parser.parse_args(params)
    else:
        args = parser.parse_args()

    run_params = load_params(args.config, reference=args.ref, genotype_maxdist=args.maxdist,
                             comparator_cmd=args.comparator_cmd, comparator_timeout=args.timeout,
                             ignore_length=args.ignore_length,
                             require_end=False if args.skip_missing_end else None)
    start_time = timeit.default_timer()
    callsets, order = read_info_file(args.info, run_params)
    if args.target not in callsets:
        raise MissingSampleError(f"Info file passed with --info must contain a line for the target sample {args.target}")
    comparator = make_comparator(run_params)
    resolver = MatchResolver(callsets, order, comparator, run_params)
    calls = list(resolver.genotype_target(args.target))
    comparator.close()
    n_out = write_genotype_vcf(args.output, callsets[args.target].header, order, calls)
    if args.plot_commands is not None:
        write_plot_commands(args.plot_commands, calls, callsets, args.mummerplot)
    logger.info(f"Genotyped {n_out} SVs of {args.target} across {len(order)} samples "
                f"in {timeit.default_timer() - start_time:.2f} seconds")
    return calls
