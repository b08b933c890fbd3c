import numpy as np
from pathlib import Path
from src.mito_assembler.core.models import (
    AlignmentSummary,
    AssemblyConfig,
    CoverageProfile,
    QCReport,
    Sample,
    VariantCounts,
)
from src.mito_assembler.core.qc import evaluate_assembly, evaluate_coverage
from src.mito_assembler.utils.stats import calculate_sequence_stats
from src.mito_assembler.visualization.report_generator import (
    generate_qc_report,
    generate_coverage_dashboard,
    write_assembly_stats
)

def make_report(tmp_path, depths, sequence, config=None):
    config = config or AssemblyConfig(expected_size_min=10, expected_size_max=100)
    sample = Sample("s1", tmp_path / "r1.fq", tmp_path / "r2.fq", tmp_path / "ref.fasta")
    profile = CoverageProfile(
        contigs=np.array(['chrM'] * len(depths), dtype=object),
        positions=np.arange(1, len(depths) + 1),
        depths=np.array(depths)
    )
    report = QCReport(sample=sample, config=config, analysis_date="2026-01-01 00:00:00")
    report.alignment = AlignmentSummary(lines=["100 reads; of these:", "99.00% overall alignment rate"])
    report.average_coverage = float(np.mean(depths))
    report.reference_length = len(depths)
    report.covered_bases = int(sum(d >= config.min_depth for d in depths))
    report.breadth = report.covered_bases / len(depths)
    report.coverage_gates = evaluate_coverage(profile, config)
    report.variants = VariantCounts(total=3, retained=1, rejected_by={'quality': 2})
    report.assembly_stats = calculate_sequence_stats("s1", sequence)
    report.validation_gates = evaluate_assembly(report.assembly_stats, config)
    report.files["Consensus"] = tmp_path / "s1.consensus.fasta"
    report.completed = True
    return report, profile

def test_qc_report_all_pass(tmp_path):
    report, _ = make_report(tmp_path, [50] * 20, "ACGT" * 5)
    out = tmp_path / "qc.txt"
    generate_qc_report(report, out)
    text = out.read_text()

    for section in ("INPUT FILES:", "ALIGNMENT STATISTICS:", "COVERAGE STATISTICS:", "VARIANT STATISTICS:",
                    "ASSEMBLY VALIDATION:", "CONTAMINATION SCREENING:", "=== FINAL QC SUMMARY ===",
                    "Files generated:"):
        assert section in text
    assert "99.00% overall alignment rate" in text
    assert "Total variants: 3" in text
    assert "Filtered variants: 1" in text
    assert "[WARNING]" not in text
    assert "[PASS] ASSEMBLY COMPLETE" in text
    assert "BLAST not available" in text
    assert report.overall_passed

def test_qc_report_lists_warnings(tmp_path):
    report, _ = make_report(tmp_path, [2] * 20, "N" * 20)
    out = tmp_path / "qc.txt"
    generate_qc_report(report, out)
    text = out.read_text()

    assert not report.overall_passed
    assert "ASSEMBLY COMPLETED WITH WARNINGS" in text
    assert "High N content" in text
    assert "Average coverage (2.00) below threshold" in text

def test_partial_report_when_pipeline_stops(tmp_path):
    sample = Sample("s1", tmp_path / "r1.fq", tmp_path / "r2.fq", tmp_path / "ref.fasta")
    report = QCReport(sample=sample, config=AssemblyConfig())
    out = tmp_path / "qc.txt"
    generate_qc_report(report, out)
    text = out.read_text()
    assert "Not reached" in text
    assert "Pipeline stopped before completion" in text

def test_assembly_stats_file(tmp_path):
    stats = calculate_sequence_stats("s1", "GGCCAATTNN")
    out = tmp_path / "stats.txt"
    write_assembly_stats(stats, Path("s1.consensus.fasta"), out, ["file\tnum_seqs", "s1.fa\t1"])
    lines = out.read_text().splitlines()
    assert lines[0] == "=== ASSEMBLY STATISTICS ==="
    assert "sum_len: 10" in lines
    assert "N_count: 2" in lines
    assert "GC_percent: 50.00" in lines
    assert "=== SEQKIT STATISTICS ===" in lines

def test_coverage_dashboard(tmp_path):
    _, profile = make_report(tmp_path, [5, 10, 15], "ACGTACGTACGT")
    out = tmp_path / "cov.html"
    generate_coverage_dashboard(profile, 10, "s1", out, low_depth_regions=1)
    html = out.read_text()
    assert "Coverage Report: s1" in html
    assert "Plotly.newPlot" in html
    assert "Masked low-depth regions" in html
