#!/usr/bin/env python
# -*-coding:utf-8 -*-
'''
@Time: 2026/10/18

Write cluster, genotype and benchmark results as VCF records through pysam.
Output paths ending in .gz are bgzip-compressed and tabix-indexed once
written.
'''
import logging
from contextlib import contextmanager

from pysam import VariantFile, VariantHeader, tabix_index

import svreconcile

logger = logging.getLogger(__name__)

CLUSTER_INFO = [
    ("ClusterIDs", ".", "String", "IDs of SVs in the same cluster"),
    ("NumClusterSVs", 1, "Integer", "Number of SVs in the cluster"),
    ("ExactMatchIDs", ".", "String", "IDs of SVs exactly matching the representative"),
    ("NumExactMatchSVs", 1, "Integer", "Number of SVs in the exact-match group"),
    ("ClusterMaxShiftDist", 1, "Float", "Maximum relative shift distance between two SVs in the cluster"),
    ("ClusterMaxSizeDiff", 1, "Float", "Maximum relative size difference between two SVs in the cluster"),
    ("ClusterMaxEditDist", 1, "Float", "Maximum relative edit distance between two SVs in the cluster"),
]

GENOTYPE_FORMAT = [
    ("GT", 1, "String", "Genotype"),
    ("GTCONF", 1, "String", "Confidence of each allele in GT: H=high (reference coverage or exact match), "
                            "L=low (inexact match)"),
]

BENCHMARK_INFO = [
    ("MatchedIDs", ".", "String", "IDs of the truth SVs matched by this test SV"),
]


def copy_header(*sources, samples=(), info=(), formats=()):
    '''
    New header with the meta lines and contigs of ``sources``, the given
    sample columns and extra INFO/FORMAT definitions
    '''
    header = VariantHeader()
    for source in sources:
        for record in source.records:
            if record.key in ("contig", "fileformat", "source"):
                continue
            if record.key == "INFO" and record.get("ID") in header.info:
                continue
            if record.key == "FORMAT" and record.get("ID") in header.formats:
                continue
            header.add_record(record)
        for name, contig in source.contigs.items():
            if name not in header.contigs:
                header.contigs.add(name, length=contig.length)
    header.add_line(f"##source=svreconcile v{svreconcile.__version__}")
    for tag, number, tag_type, description in info:
        if tag not in header.info:
            header.info.add(tag, number=number, type=tag_type, description=description)
    for tag, number, tag_type, description in formats:
        if tag not in header.formats:
            header.formats.add(tag, number=number, type=tag_type, description=description)
    for sample in samples:
        header.add_sample(sample)
    return header


def shared_samples(headers):
    '''
    Sample columns common to all headers, empty when they differ
    '''
    samples = [list(header.samples) for header in headers]
    if all(s == samples[0] for s in samples):
        return samples[0]
    return []


@contextmanager
def open_output(out_file, header):
    compressed = out_file.endswith(".gz")
    out = VariantFile(out_file, "wz" if compressed else "w", header=header)
    try:
        yield out
    finally:
        out.close()
    if compressed:
        tabix_index(out_file, preset="vcf", force=True)


def new_record(record, header):
    '''
    Site columns of ``record`` as a new record of ``header``, no sample data
    '''
    return header.new_record(contig=record.chrom, start=record.start, stop=record.stop,
                             alleles=record.alleles, id=record.id, qual=record.qual,
                             filter=record.filter.keys(), info=dict(record.info))


def transfer_record(record, header):
    '''
    Copy of ``record`` keyed to ``header``. Sample data is kept when both
    headers list the same samples.
    '''
    if list(record.header.samples) != list(header.samples):
        return new_record(record, header)
    record = record.copy()
    record.translate(header)
    return record


def cluster_annotations(cluster):
    return {
        "ClusterIDs": list(cluster.nodes),
        "NumClusterSVs": cluster.size,
        "ExactMatchIDs": list(cluster.exact_nodes),
        "NumExactMatchSVs": cluster.exact_size,
        "ClusterMaxShiftDist": float(cluster.max_relshift),
        "ClusterMaxSizeDiff": float(cluster.max_relsizediff),
        "ClusterMaxEditDist": float(cluster.max_reldist),
    }


def write_cluster_vcf(out_file, headers, variants, clusters):
    '''
    One record per cluster (its annotated representative) plus every
    unclustered variant, in input order. Returns the number of records.
    '''
    representatives = {cluster.representative: cluster for cluster in clusters}
    clustered = {sv_id for cluster in clusters for sv_id in cluster.nodes}
    header = copy_header(*headers, samples=shared_samples(headers), info=CLUSTER_INFO)
    n_out = 0
    with open_output(out_file, header) as out:
        for variant in variants:
            if variant.uid in clustered and variant.uid not in representatives:
                continue
            record = transfer_record(variant.record, out.header)
            if variant.uid in representatives:
                for key, value in cluster_annotations(representatives[variant.uid]).items():
                    record.info[key] = value
            out.write(record)
            n_out += 1
    logger.info(f"Wrote {n_out} records ({len(clusters)} clusters) to {out_file}")
    return n_out


def write_genotype_vcf(out_file, source_header, samples, calls):
    header = copy_header(source_header, samples=samples, formats=GENOTYPE_FORMAT)
    n_out = 0
    with open_output(out_file, header) as out:
        for call in calls:
            record = new_record(call.variant.record, out.header)
            for sample in samples:
                gt = call[sample]
                record.samples[sample]["GT"] = gt.allele_indices
                record.samples[sample]["GTCONF"] = gt.confidence
            out.write(record)
            n_out += 1
    return n_out


def _plain_id(uid):
    return uid.split(":", 1)[1] if ":" in uid else uid


def write_benchmark_vcfs(prefix, test_header, truth_header, result):
    '''
    Split test and truth SVs into true positive, false positive and false
    negative VCFs named <prefix>.truepositives.vcf etc.
    '''
    outputs = {}
    tp_file = prefix + ".truepositives.vcf"
    header = copy_header(test_header, samples=list(test_header.samples), info=BENCHMARK_INFO)
    with open_output(tp_file, header) as out:
        for variant in result.true_positives:
            record = transfer_record(variant.record, out.header)
            record.info["MatchedIDs"] = [_plain_id(uid) for uid in result.matches.get(variant.uid, [])]
            out.write(record)
    outputs["truepositives"] = tp_file
    for name, source_header, variants in (("falsepositives", test_header, result.false_positives),
                                          ("falsenegatives", truth_header, result.false_negatives)):
        out_file = f"{prefix}.{name}.vcf"
        header = copy_header(source_header, samples=list(source_header.samples))
        with open_output(out_file, header) as out:
            for variant in variants:
                out.write(transfer_record(variant.record, out.header))
        outputs[name] = out_file
    return outputs


def _percent(value):
    if value is None:
        return "NA"
    return f"{100 * value:.2f}%"


def write_benchmark_report(out_file, test_vcf, truth_vcf, metrics):
    lines = [
        f"Test VCF\t{test_vcf}",
        f"Truth VCF\t{truth_vcf}",
        f"True positives (test)\t{metrics.true_positives}",
        f"False positives (test)\t{metrics.false_positives}",
        f"Detected true positives (truth)\t{metrics.detected_true_positives}",
        f"False negatives (truth)\t{metrics.false_negatives}",
        f"Recall\t{_percent(metrics.recall)}",
        f"Precision\t{_percent(metrics.precision)}",
        f"F1\t{_percent(metrics.f1)}",
    ]
    with open(out_file, "w") as fh:
        fh.write("\n".join(lines) + "\n")
    for line in lines[2:]:
        logger.info(line.replace("\t", ": "))
    return out_file
