#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Pytest configuration and shared fixtures.
"""

import os
import tempfile

import pytest
from pysam import VariantFile

from svreconcile.comparator import SVDistance
from svreconcile.config import ReconcileParams
from svreconcile.vcf_utils import variant_from_record

VCF_INFO = [
    '##INFO=<ID=SVTYPE,Number=1,Type=String,Description="Type of SV">',
    '##INFO=<ID=SVLEN,Number=.,Type=Integer,Description="Length of SV">',
    '##INFO=<ID=END,Number=1,Type=Integer,Description="End position of SV">',
    '##INFO=<ID=REFWIDENED,Number=1,Type=String,Description="Widened reference interval">',
    '##INFO=<ID=CONTIGWIDENED,Number=1,Type=String,Description="Widened contig interval">',
]

VCF_HEADER = [
    "##fileformat=VCFv4.3",
    "##contig=<ID=chr1,length=1000000>",
    "##contig=<ID=chr2,length=1000000>",
] + VCF_INFO + [
    "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO",
]


def vcf_line(var_id, chrom="chr1", pos=1000, svtype="DEL", svlen=-100, end=None,
             ref="N", alt=None, wide=None, extra=None):
    """Build a VCF data line carrying the tags the parser needs."""
    if alt is None:
        alt = f"<{svtype}>"
    if end is None and not (ref.isalpha() and alt.isalpha()):
        end = pos + abs(svlen) if svtype == "DEL" else pos + 1
    if wide is None:
        wide = (pos - 10, (end if end is not None else pos) + 10)
    info = [f"SVTYPE={svtype}", f"SVLEN={svlen}"]
    if end is not None:
        info.append(f"END={end}")
    info.append(f"REFWIDENED={chrom}:{wide[0]}-{wide[1]}")
    if extra:
        info.append(extra)
    return "\t".join([chrom, str(pos), var_id, ref, alt, ".", "PASS", ";".join(info)])


def read_records(lines, header=None):
    """Read data lines through pysam under ``header`` (default VCF_HEADER)."""
    header = list(header if header is not None else VCF_HEADER)
    with tempfile.TemporaryDirectory() as tmp:
        path = os.path.join(tmp, "records.vcf")
        with open(path, "w") as fh:
            fh.write("\n".join(header + list(lines)) + "\n")
        with VariantFile(path) as vcf:
            return list(vcf)


def parse_line(line, params=None, n=0, source=None):
    """Variant built from one data line, or None when it is skipped."""
    record = read_records([line])[0]
    return variant_from_record(record, params or ReconcileParams(), n=n, source=source)


def make_variant(var_id, chrom="chr1", pos=1000, source=None, params=None, **kwargs):
    """Variant from the line ``vcf_line`` builds."""
    header = VCF_HEADER
    if chrom not in ("chr1", "chr2"):
        header = VCF_HEADER[:-1] + [f"##contig=<ID={chrom}>"] + VCF_HEADER[-1:]
    record = read_records([vcf_line(var_id, chrom=chrom, pos=pos, **kwargs)], header)[0]
    return variant_from_record(record, params or ReconcileParams(), source=source)


def measures(edit=0, shift=0, size_diff=0, denominator=100):
    return SVDistance(edit_distance=edit, max_shift=shift, alt_length_diff=0,
                      alt_length_avg=1, size_diff=size_diff, size_avg=denominator,
                      shared_denominator=denominator)


class StubComparator:
    """Comparator answering from fixed per-pair measures, recording calls."""

    def __init__(self, distances=None, batch=None):
        self.distances = {frozenset(k): v for k, v in (distances or {}).items()}
        self.batch = dict(batch or {})
        self.calls = []
        self.batch_calls = []

    def potential_match(self, v1, v2):
        return frozenset((v1.id, v2.id)) in self.distances

    def distance(self, v1, v2):
        self.calls.append(frozenset((v1.id, v2.id)))
        return self.distances[frozenset((v1.id, v2.id))]

    def batch_match(self, target, candidates):
        self.batch_calls.append((target.id, [c.id for c in candidates]))
        return self.batch.get(target.id)

    def close(self):
        pass


@pytest.fixture
def params():
    return ReconcileParams()


@pytest.fixture
def write_vcf(tmp_path):
    """Write data lines under a minimal header and return the path."""
    def _write(name, lines, header=None):
        path = tmp_path / name
        with open(path, "w") as fh:
            for line in (header if header is not None else VCF_HEADER):
                fh.write(line + "\n")
            for line in lines:
                fh.write(line + "\n")
        return str(path)
    return _write
