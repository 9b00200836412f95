#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

SV comparators. A comparator decides whether two variants are worth comparing
and, if so, measures how far apart their alternate haplotypes are. The
clustering, benchmarking and genotyping code only sees the SVComparator
protocol, so the alignment can run in-process or in an external program.
'''
import logging
import os
import re
import shlex
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, runtime_checkable

import edlib
from pysam import FastaFile

from svreconcile.distance_store import PairDistance
from svreconcile.vcf_utils import SKIP_TYPES

logger = logging.getLogger(__name__)

RC = str.maketrans("ACGTN", "TGCAN")
PAIR_LINE = re.compile(r"^Pair(\d+)")


@dataclass(frozen=True)
class SVDistance:
    '''
    Raw distance measures between two variants
    '''
    edit_distance: float
    max_shift: float
    alt_length_diff: float
    alt_length_avg: float
    size_diff: float
    size_avg: float
    shared_denominator: float


@runtime_checkable
class SVComparator(Protocol):
    def potential_match(self, v1, v2) -> bool:
        ...

    def distance(self, v1, v2) -> SVDistance:
        ...

    def batch_match(self, target, candidates: Sequence) -> Optional[int]:
        ...


def _alt_length(variant):
    if variant.has_sequence:
        return len(variant.alt)
    if variant.svtype in ("INS", "DUP"):
        return variant.size + 1
    return 1


def _types_compatible(t1, t2, ins_as_dup):
    if t1 == t2:
        return True
    if ins_as_dup and {t1, t2} <= {"INS", "DUP"}:
        return True
    return False


class HaplotypeComparator:
    '''
    Compare variants by aligning their alternate haplotypes over the span
    both variants touch, padded by ``params.flank`` bases of reference.
    '''
    def __init__(self, params, fasta=None):
        self.params = params
        self.thresholds = params.cluster_thresholds
        if fasta is None and params.reference is not None:
            fasta = FastaFile(params.reference)
        self.fasta = fasta

    def close(self):
        if self.fasta is not None:
            self.fasta.close()

    def potential_match(self, v1, v2):
        if v1.chrom != v2.chrom:
            return False
        if v1.svtype.upper() in SKIP_TYPES or v2.svtype.upper() in SKIP_TYPES:
            return False
        if not _types_compatible(v1.svtype.upper(), v2.svtype.upper(), self.params.ins_as_dup):
            return False
        if v1.svlen and v2.svlen and (v1.svlen > 0) != (v2.svlen > 0):
            return False
        return abs(v1.pos - v2.pos) <= self.params.max_distance

    def _haplotype(self, variant, start, end):
        '''
        Reference sequence [start, end] (1-based, inclusive) with the variant applied
        '''
        def fetch(s, e):
            if e < s:
                return ""
            return self.fasta.fetch(variant.chrom, s - 1, e).upper()

        svtype = variant.svtype.upper()
        if variant.has_sequence:
            ref_end = variant.pos + len(variant.ref) - 1
            return fetch(start, variant.pos - 1) + variant.alt + fetch(ref_end + 1, end)
        if svtype == "DEL":
            return fetch(start, variant.pos) + fetch(variant.end + 1, end)
        if svtype == "DUP":
            return fetch(start, variant.end) + fetch(variant.pos + 1, end)
        if svtype == "INV":
            inverted = fetch(variant.pos + 1, variant.end).translate(RC)[::-1]
            return fetch(start, variant.pos) + inverted + fetch(variant.end + 1, end)
        return None

    def _edit_distance(self, v1, v2, size_diff):
        if self.fasta is not None and v1.chrom in self.fasta.references:
            start = max(1, min(v1.pos, v2.pos) - self.params.flank)
            end = min(self.fasta.get_reference_length(v1.chrom),
                      max(v1.end, v2.end) + self.params.flank)
            if end - start + 1 <= self.params.max_haplotype_length:
                hap1 = self._haplotype(v1, start, end)
                hap2 = self._haplotype(v2, start, end)
                if hap1 is not None and hap2 is not None:
                    if hap1 == hap2:
                        return 0
                    return edlib.align(hap1, hap2, task="distance")["editDistance"]
            else:
                logger.debug(f"Span {v1.chrom}:{start}-{end} too long to align {v1.id} and {v2.id}")
        if v1.has_sequence and v2.has_sequence:
            if v1.alt == v2.alt and v1.ref == v2.ref and v1.pos == v2.pos:
                return 0
            return edlib.align(v1.alt, v2.alt, task="distance")["editDistance"]
        return abs(size_diff)

    def distance(self, v1, v2):
        max_shift = max(abs(v1.pos - v2.pos), abs(v1.end - v2.end))
        alt1, alt2 = _alt_length(v1), _alt_length(v2)
        size_diff = v1.size - v2.size
        return SVDistance(
            edit_distance=self._edit_distance(v1, v2, size_diff),
            max_shift=max_shift,
            alt_length_diff=abs(alt1 - alt2),
            alt_length_avg=(alt1 + alt2) / 2.0,
            size_diff=size_diff,
            size_avg=(v1.size + v2.size) / 2.0,
            shared_denominator=min(v1.size, v2.size),
        )

    def batch_match(self, target, candidates):
        '''
        1-based ordinal of the first candidate matching the target, or None
        '''
        for n, candidate in enumerate(candidates, start=1):
            if not self.potential_match(target, candidate):
                continue
            pair = PairDistance.from_measures(target, candidate, self.distance(target, candidate))
            if self.thresholds.passes(pair):
                return n
        return None


class ExternalComparator(HaplotypeComparator):
    '''
    Pairwise distances are computed in-process, batch matching is delegated
    to an external program such as SVcomp. The command template may use
    {ref}, {target} and {candidates}; the program must print one line per
    matching pair starting with ``Pair<N>`` and containing ``matches``.
    '''
    def __init__(self, params, fasta=None):
        super().__init__(params, fasta=fasta)
        if not params.comparator_cmd:
            raise ValueError("ExternalComparator needs a comparator command")
        self.command = params.comparator_cmd

    def _build_command(self, target_vcf, candidates_vcf):
        values = {"ref": self.params.reference or "", "target": target_vcf,
                  "candidates": candidates_vcf}
        if isinstance(self.command, str):
            return [part.format(**values) for part in shlex.split(self.command)]
        return [str(part).format(**values) for part in self.command]

    def batch_match(self, target, candidates):
        if not candidates:
            return None
        with tempfile.TemporaryDirectory(prefix="svreconcile_") as tmp_dir:
            target_vcf = os.path.join(tmp_dir, "ref_var.vcf")
            candidates_vcf = os.path.join(tmp_dir, "pot_vars.vcf")
            with open(target_vcf, "w") as f1, open(candidates_vcf, "w") as f2:
                for candidate in candidates:
                    f1.write(target.line + "\n")
                    f2.write(candidate.line + "\n")
            cmd = self._build_command(target_vcf, candidates_vcf)
            try:
                result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                                        text=True, timeout=self.params.comparator_timeout)
            except subprocess.TimeoutExpired:
                logger.warning(f"Comparator timed out after {self.params.comparator_timeout}s "
                               f"on {target.id} against {len(candidates)} candidates; treated as no match")
                return None
        if result.returncode != 0:
            logger.warning(f"Comparator exited with status {result.returncode} on {target.id}")
        for line in result.stdout.splitlines():
            if "matches" not in line:
                continue
            found = PAIR_LINE.match(line)
            if found is None:
                logger.warning(f"No pair number found in line: {line}")
                continue
            pairno = int(found.group(1))
            if 1 <= pairno <= len(candidates):
                return pairno
            logger.warning(f"Pair number {pairno} out of range for {len(candidates)} candidates")
        return None


def make_comparator(params):
    if params.comparator_cmd:
        return ExternalComparator(params)
    return HaplotypeComparator(params)
