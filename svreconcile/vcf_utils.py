#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Read SV records from VCF files with pysam into immutable Variant objects and
stream them in (chromosome, position) order from one or more inputs.
'''
import heapq
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from pysam import VariantFile

from svreconcile.bed_utils import regionAnno
from svreconcile.exceptions import (RefLengthMismatchError, UnsortedInputError,
                                    VcfFormatError)

logger = logging.getLogger(__name__)

SKIP_TYPES = ("BND", "UNK")
SEQ_ALLELE = re.compile(r"^[ACGTN]+$")
BASES = re.compile(r"^[ACGT]+$")
END_TAG = re.compile(r"(?:^|;)END=")
WIDENED = re.compile(r"^([^:]+):(\d+)-(\d+)")
CONTIG_WIDENED = re.compile(r"^([^:]+):(\d+)-(\d+)(_comp)?")


@dataclass(frozen=True)
class Variant:
    chrom: str
    pos: int
    end: int
    id: str
    ref: str
    alt: str
    svtype: str
    svlen: int
    wide_chrom: str
    wide_start: int
    wide_end: int
    contig: Optional[str] = None
    contig_start: Optional[int] = None
    contig_end: Optional[int] = None
    contig_comp: bool = False
    source: Optional[str] = None
    info: dict = field(default_factory=dict, compare=False, hash=False, repr=False)
    record: object = field(default=None, compare=False, hash=False, repr=False)

    @property
    def uid(self):
        '''
        Identifier used as the distance key; input label prefixed when set
        '''
        if self.source:
            return f"{self.source}:{self.id}"
        return self.id

    @property
    def size(self):
        return abs(self.svlen)

    @property
    def has_sequence(self):
        return bool(SEQ_ALLELE.match(self.ref)) and bool(SEQ_ALLELE.match(self.alt))

    @property
    def wide_mean(self):
        return (self.wide_start + self.wide_end) / 2.0

    @property
    def contig_wide_mean(self):
        if self.contig is None:
            return None
        return (self.contig_start + self.contig_end) / 2.0

    @property
    def line(self):
        '''
        The source record as a VCF data line
        '''
        if self.record is None:
            return ""
        return str(self.record).rstrip("\n")


def chrom_sort_key(chrom):
    '''
    Numeric chromosomes order numerically and before any non-numeric name,
    non-numeric names order lexically.
    '''
    if chrom.isdigit():
        return (0, int(chrom), "")
    return (1, 0, chrom)


def variant_sort_key(variant):
    return (chrom_sort_key(variant.chrom), variant.pos, variant.end)


def info_value(record, key):
    '''
    First value of an INFO tag, None when absent
    '''
    if key not in record.info:
        return None
    value = record.info[key]
    if isinstance(value, tuple):
        return value[0] if value else None
    return value


def has_end_tag(record):
    # pysam keeps END out of record.info and folds it into record.stop
    return bool(END_TAG.search(str(record).split("\t", 8)[7]))


def _parse_svlen(value, where):
    try:
        return int(str(value).split(",")[0])
    except ValueError:
        raise VcfFormatError(f"{where}: SVLEN is not an integer: {value}")


def _is_breakend(svtype, alt):
    if svtype is not None and svtype.upper() in SKIP_TYPES:
        return True
    return "[" in alt or "]" in alt


def variant_from_record(record, params, n=0, source=None):
    '''
    Build a Variant from a pysam VariantRecord. Returns None for records that
    cannot take part in comparisons (breakends and unknown types silently,
    records missing required tags with a warning). Inconsistent records raise.
    '''
    chrom, pos = record.chrom, record.pos
    ref = record.ref.upper()
    alt = record.alts[0].upper() if record.alts else "."
    where = f"{chrom}:{pos}"

    svtype = info_value(record, "SVTYPE")
    svtype = str(svtype) if svtype is not None else None
    if _is_breakend(svtype, alt):
        return None

    # with sequence alleles the extent comes from REF and any END is ignored
    if BASES.match(ref) and BASES.match(alt):
        end = pos + len(ref) - 1
    elif has_end_tag(record):
        end = record.stop
    elif params.require_end:
        raise VcfFormatError(
            f"{where}: variants without END in INFO field must have sequence alleles in REF and ALT fields")
    else:
        logger.warning(f"Skipping variant at {where} with symbolic alleles and no END tag in INFO field")
        return None

    widened = WIDENED.match(str(info_value(record, "REFWIDENED") or ""))
    if widened is None:
        logger.warning(f"Skipping variant at {where} with no REFWIDENED tag in INFO field")
        return None
    if svtype is None:
        logger.warning(f"Skipping variant at {where} with no SVTYPE tag in INFO field")
        return None
    svlen = info_value(record, "SVLEN")
    if svlen is None:
        logger.warning(f"Skipping variant at {where} with no SVLEN tag in INFO field")
        return None
    svlen = _parse_svlen(svlen, where)

    if BASES.match(ref) and not params.ignore_length and end - pos + 1 != len(ref):
        raise RefLengthMismatchError(
            f"{where}: length of reference allele does not match provided POS, END. "
            "Use --ignore-length to ignore this discrepancy.")

    contig = contig_start = contig_end = None
    contig_comp = False
    contig_widened = CONTIG_WIDENED.match(str(info_value(record, "CONTIGWIDENED") or ""))
    if contig_widened is not None:
        contig = contig_widened.group(1)
        contig_start = int(contig_widened.group(2))
        contig_end = int(contig_widened.group(3))
        contig_comp = contig_widened.group(4) is not None

    var_id = record.id
    if var_id is None:
        var_id = f"{chrom}_{pos}_{svtype}_{n}"

    return Variant(chrom=chrom, pos=pos, end=end, id=var_id, ref=ref, alt=alt,
                   svtype=svtype, svlen=svlen,
                   wide_chrom=widened.group(1), wide_start=int(widened.group(2)),
                   wide_end=int(widened.group(3)),
                   contig=contig, contig_start=contig_start, contig_end=contig_end,
                   contig_comp=contig_comp, source=source, info=dict(record.info),
                   record=record)


def open_vcf(vcf_file):
    try:
        return VariantFile(vcf_file)
    except (ValueError, OSError) as err:
        raise VcfFormatError(f"Cannot read VCF {vcf_file}: {err}") from err


def read_header(vcf_file):
    '''
    Copy of a VCF file's header
    '''
    with open_vcf(vcf_file) as vcf:
        return vcf.header.copy()


def iter_variants(vcf, vcf_file, params, source=None, regions=None):
    '''
    Yield the usable variants of an open VariantFile in file order.
    '''
    n = 0
    try:
        for record in vcf:
            n += 1
            variant = variant_from_record(record, params, n=n, source=source)
            if variant is None:
                continue
            if regions is not None and not regionAnno(variant, regions):
                continue
            yield variant
    except (ValueError, OSError) as err:
        raise VcfFormatError(f"{vcf_file}: cannot parse VCF record after record {n}: {err}") from err


def read_variants(vcf_file, params, source=None, regions=None):
    with open_vcf(vcf_file) as vcf:
        yield from iter_variants(vcf, vcf_file, params, source=source, regions=regions)


def check_order(variants, source):
    '''
    Pass variants through, raising if a chromosome block is revisited or the
    position decreases within a chromosome.
    '''
    finished = set()
    previous = None
    for variant in variants:
        if previous is not None:
            if variant.chrom == previous.chrom:
                if variant.pos < previous.pos:
                    raise UnsortedInputError(source, (previous.chrom, previous.pos),
                                             (variant.chrom, variant.pos))
            else:
                finished.add(previous.chrom)
                if variant.chrom in finished:
                    raise UnsortedInputError(source, (previous.chrom, previous.pos),
                                             (variant.chrom, variant.pos))
        previous = variant
        yield variant


class SortedVariantStream:
    '''
    Variants from one or more sorted VCF files, merged into a single
    (chromosome, position) ordered sequence. Chromosome order follows the
    header contigs of the inputs, then first appearance.

    Each iteration is a fresh lazy pass over the files. ``headers`` holds
    one header per input; after a complete pass it also carries the INFO
    tags and contigs that htslib added for undeclared names.
    '''
    def __init__(self, vcf_files, params, labels=None, regions=None):
        if isinstance(vcf_files, str):
            vcf_files = [vcf_files]
        self.vcf_files = list(vcf_files)
        self.labels = list(labels) if labels is not None else [None] * len(self.vcf_files)
        if len(self.labels) != len(self.vcf_files):
            raise ValueError("One label is needed per input file")
        self.params = params
        self.regions = regions
        self.headers = [read_header(vcf_file) for vcf_file in self.vcf_files]
        self.contig_rank = {}
        for header in self.headers:
            for contig in header.contigs:
                self.contig_rank.setdefault(contig, len(self.contig_rank))

    def _read(self, i):
        vcf_file = self.vcf_files[i]
        n_read = 0
        with open_vcf(vcf_file) as vcf:
            self.headers[i] = vcf.header
            variants = iter_variants(vcf, vcf_file, self.params, source=self.labels[i],
                                     regions=self.regions)
            for variant in check_order(variants, vcf_file):
                n_read += 1
                yield variant
        logger.info(f"Read {n_read} variants from {vcf_file}")

    def _key(self, variant):
        return (self.contig_rank.setdefault(variant.chrom, len(self.contig_rank)), variant.pos)

    def __iter__(self):
        streams = [self._read(i) for i in range(len(self.vcf_files))]
        if len(streams) == 1:
            merged = streams[0]
        else:
            merged = heapq.merge(*streams, key=self._key)
        seen = set()
        for variant in check_order(merged, ",".join(self.vcf_files)):
            if variant.uid in seen:
                raise VcfFormatError(f"Duplicate variant identifier {variant.uid}")
            seen.add(variant.uid)
            yield variant

    def variants(self, label=None):
        '''
        All variants in stream order, optionally restricted to one input label
        '''
        return [v for v in self if label is None or v.source == label]
