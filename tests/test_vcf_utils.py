#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for reading VCF records and the sorted variant stream.
"""

import logging

import pytest

from svreconcile.config import ReconcileParams
from svreconcile.exceptions import (RefLengthMismatchError, UnsortedInputError,
                                    VcfFormatError)
from svreconcile.vcf_utils import SortedVariantStream, chrom_sort_key, read_variants

from conftest import VCF_HEADER, VCF_INFO, parse_line, vcf_line


class TestVariantFromRecord:
    """Test building variants from single records."""

    def test_symbolic_deletion(self, params):
        variant = parse_line(vcf_line("del1", pos=1000, svlen=-100), params)
        assert variant.id == "del1"
        assert variant.end == 1100
        assert variant.svtype == "DEL"
        assert variant.size == 100
        assert (variant.wide_start, variant.wide_end) == (990, 1110)
        assert variant.wide_mean == 1050.0
        assert not variant.has_sequence
        assert variant.line.split("\t")[:3] == ["chr1", "1000", "del1"]

    def test_sequence_alleles_without_end(self, params):
        line = vcf_line("ins1", pos=500, svtype="INS", svlen=4, ref="A", alt="ACGTA")
        variant = parse_line(line, params)
        assert variant.end == 500
        assert variant.has_sequence
        assert "END" not in variant.info

    def test_breakend_skipped_silently(self, params, caplog):
        line = vcf_line("bnd1", svtype="BND", svlen=0, alt="N[chr2:500[")
        with caplog.at_level(logging.WARNING):
            assert parse_line(line, params) is None
        assert caplog.records == []

    def test_unknown_type_skipped(self, params):
        assert parse_line(vcf_line("u1", svtype="UNK", svlen=0), params) is None

    def test_symbolic_without_end_is_fatal(self, params):
        line = "\t".join(["chr1", "1000", "d1", "N", "<DEL>", ".", "PASS",
                          "SVTYPE=DEL;SVLEN=-100;REFWIDENED=chr1:990-1110"])
        with pytest.raises(VcfFormatError, match="without END"):
            parse_line(line, params)

    def test_symbolic_without_end_skipped_when_allowed(self, caplog):
        line = "\t".join(["chr1", "1000", "d1", "N", "<DEL>", ".", "PASS",
                          "SVTYPE=DEL;SVLEN=-100;REFWIDENED=chr1:990-1110"])
        with caplog.at_level(logging.WARNING):
            assert parse_line(line, ReconcileParams(require_end=False)) is None
        assert "no END tag" in caplog.text

    def test_base_ref_disagreeing_with_end(self, params):
        line = vcf_line("d1", pos=1000, svlen=-100, end=1100, ref="A")
        with pytest.raises(RefLengthMismatchError):
            parse_line(line, params)
        variant = parse_line(line, ReconcileParams(ignore_length=True))
        assert variant.end == 1100

    def test_base_ref_agreeing_with_end(self, params):
        line = vcf_line("d1", pos=1000, svlen=-3, end=1003, ref="ACGT", alt="<DEL>")
        assert parse_line(line, params).end == 1003

    def test_unknown_base_ref_is_not_checked(self, params):
        assert parse_line(vcf_line("d1", pos=1000, svlen=-100, end=1100, ref="N"), params).end == 1100

    def test_sequence_alleles_ignore_end(self, params):
        line = vcf_line("d1", pos=1000, svlen=-3, end=1004, ref="ACGT", alt="A")
        variant = parse_line(line, params)
        assert variant.end == 1003
        assert variant.has_sequence

    def test_missing_widened_interval(self, params, caplog):
        line = "\t".join(["chr1", "1000", "d1", "N", "<DEL>", ".", "PASS",
                          "SVTYPE=DEL;SVLEN=-100;END=1100"])
        with caplog.at_level(logging.WARNING):
            assert parse_line(line, params) is None
        assert "REFWIDENED" in caplog.text

    def test_missing_svlen(self, params, caplog):
        line = "\t".join(["chr1", "1000", "d1", "N", "<DEL>", ".", "PASS",
                          "SVTYPE=DEL;END=1100;REFWIDENED=chr1:990-1110"])
        with caplog.at_level(logging.WARNING):
            assert parse_line(line, params) is None
        assert "SVLEN" in caplog.text

    def test_contig_widened(self, params):
        line = vcf_line("d1", extra="CONTIGWIDENED=h1tg000001l:2000-2120_comp")
        variant = parse_line(line, params)
        assert variant.contig == "h1tg000001l"
        assert (variant.contig_start, variant.contig_end) == (2000, 2120)
        assert variant.contig_comp
        assert variant.contig_wide_mean == 2060.0

    def test_missing_id_gets_synthetic_id(self, params):
        variant = parse_line(vcf_line(".", pos=1000), params, n=7)
        assert variant.id == "chr1_1000_DEL_7"

    def test_source_prefixes_uid(self, params):
        variant = parse_line(vcf_line("d1"), params, source="truth")
        assert variant.uid == "truth:d1"
        assert variant.id == "d1"


def test_chrom_sort_key():
    assert sorted(["X", "10", "chr1", "2"], key=chrom_sort_key) == ["2", "10", "X", "chr1"]


def test_file_without_header(params, tmp_path):
    path = tmp_path / "bare.vcf"
    path.write_text(vcf_line("d1") + "\n")
    with pytest.raises(VcfFormatError):
        list(read_variants(str(path), params))


def test_read_variants_numbers_missing_ids(params, write_vcf):
    path = write_vcf("a.vcf", [vcf_line("a1", pos=100), vcf_line(".", pos=200)])
    assert [v.id for v in read_variants(path, params)] == ["a1", "chr1_200_DEL_2"]


class TestSortedVariantStream:
    """Test reading and merging sorted inputs."""

    def test_single_file_order(self, params, write_vcf):
        path = write_vcf("a.vcf", [vcf_line("a1", pos=100), vcf_line("a2", pos=300),
                                   vcf_line("a3", chrom="chr2", pos=50)])
        stream = SortedVariantStream(path, params)
        assert [v.id for v in stream] == ["a1", "a2", "a3"]
        assert list(stream.headers[0].contigs) == ["chr1", "chr2"]
        assert "SVTYPE" in stream.headers[0].info

    def test_decreasing_position(self, params, write_vcf):
        path = write_vcf("a.vcf", [vcf_line("a1", pos=300), vcf_line("a2", pos=100)])
        with pytest.raises(UnsortedInputError) as err:
            list(SortedVariantStream(path, params))
        assert err.value.previous == ("chr1", 300)
        assert err.value.current == ("chr1", 100)

    def test_records_are_read_on_demand(self, params, write_vcf):
        path = write_vcf("a.vcf", [vcf_line("a1", pos=300), vcf_line("a2", pos=100)])
        stream = SortedVariantStream(path, params)
        variants = iter(stream)
        assert next(variants).id == "a1"
        with pytest.raises(UnsortedInputError):
            next(variants)

    def test_revisited_chromosome(self, params, write_vcf):
        path = write_vcf("a.vcf", [vcf_line("a1", pos=100), vcf_line("a2", chrom="chr2", pos=50),
                                   vcf_line("a3", pos=200)])
        with pytest.raises(UnsortedInputError):
            list(SortedVariantStream(path, params))

    def test_merge_two_files(self, params, write_vcf):
        first = write_vcf("a.vcf", [vcf_line("a1", pos=100), vcf_line("a2", chrom="chr2", pos=10)])
        second = write_vcf("b.vcf", [vcf_line("b1", pos=50), vcf_line("b2", pos=5000)])
        stream = SortedVariantStream([first, second], params, labels=["test", "truth"])
        assert [v.uid for v in stream] == ["truth:b1", "test:a1", "truth:b2", "test:a2"]
        assert [v.id for v in stream.variants("truth")] == ["b1", "b2"]

    def test_contig_order_from_header(self, params, write_vcf):
        header = ["##fileformat=VCFv4.3", "##contig=<ID=chrY>", "##contig=<ID=chrA>"] + VCF_INFO + VCF_HEADER[-1:]
        path = write_vcf("a.vcf", [vcf_line("y1", chrom="chrY", pos=10), vcf_line("a1", chrom="chrA", pos=5)],
                         header=header)
        assert [v.id for v in SortedVariantStream(path, params)] == ["y1", "a1"]

    def test_duplicate_identifier(self, params, write_vcf):
        path = write_vcf("a.vcf", [vcf_line("dup", pos=100), vcf_line("dup", pos=200)])
        with pytest.raises(VcfFormatError, match="Duplicate"):
            list(SortedVariantStream(path, params))

    def test_same_identifier_in_labelled_inputs(self, params, write_vcf):
        first = write_vcf("a.vcf", [vcf_line("sv1", pos=100)])
        second = write_vcf("b.vcf", [vcf_line("sv1", pos=100)])
        stream = SortedVariantStream([first, second], params, labels=["test", "truth"])
        assert len(stream.variants()) == 2

    def test_region_filter(self, params, write_vcf, tmp_path):
        from svreconcile.bed_utils import loadBed
        bed = tmp_path / "keep.bed"
        bed.write_text("chr1\t90\t110\n")
        path = write_vcf("a.vcf", [vcf_line("a1", pos=100, svlen=-10), vcf_line("a2", pos=5000)])
        stream = SortedVariantStream(path, params, regions=loadBed(str(bed)))
        assert [v.id for v in stream] == ["a1"]

    def test_skipped_records_do_not_count(self, params, write_vcf):
        path = write_vcf("a.vcf", [vcf_line("a1", pos=100),
                                   vcf_line("b1", pos=150, svtype="BND", svlen=0, alt="N]chr2:10]"),
                                   vcf_line("a2", pos=200)])
        assert [v.id for v in SortedVariantStream(path, params)] == ["a1", "a2"]
