"""
Single-sample assembly pipeline for MitoAssembler.
Sequences the external aligner, alignment toolkit and variant caller to build a
consensus mitogenome, then evaluates the QC gates and writes the reports.
Stages run strictly in order; each blocks until its external tool exits.
"""

import logging
import os
import shlex
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import FrozenSet, List, Optional, Tuple

from src.mito_assembler.core.exceptions import InputNotFound
from src.mito_assembler.core.models import (
    AlignmentSummary,
    AssemblyConfig,
    Capability,
    CoverageProfile,
    QCReport,
    Sample,
    SampleResult,
    VariantCounts,
)
from src.mito_assembler.core.qc import evaluate_assembly, evaluate_coverage
from src.mito_assembler.core.variant_filter import VariantFilter
from src.mito_assembler.parsers.bowtie2_parser import parse_bowtie2_summary
from src.mito_assembler.parsers.depth_parser import parse_depth
from src.mito_assembler.parsers.fasta_parser import parse_consensus_stats, rewrite_header
from src.mito_assembler.parsers.vcf_parser import parse_vcf
from src.mito_assembler.utils.stats import average_depth, breadth_of_coverage, covered_bases, low_depth_intervals
from src.mito_assembler.utils.tools import check_required_tools, probe_capabilities, run_command, run_piped
from src.mito_assembler.visualization.report_generator import (
    generate_coverage_dashboard,
    generate_qc_report,
    write_assembly_stats,
    write_sample_result,
)

logger = logging.getLogger(__name__)

BOWTIE2_INDEX_SUFFIXES = (".1.bt2", ".1.bt2l")

@dataclass(frozen=True)
class SamplePaths:
    """
    Every file a single-sample run reads or writes under its output directory.
    """
    outdir: Path
    prefix: str

    def _path(self, suffix: str) -> Path:
        return self.outdir / f"{self.prefix}{suffix}"

    @property
    def log(self) -> Path:
        return self._path("_log.txt")

    @property
    def qc_report(self) -> Path:
        return self._path("_QC_report.txt")

    @property
    def bam(self) -> Path:
        return self._path(".bam")

    @property
    def sorted_bam(self) -> Path:
        return self._path(".sorted.bam")

    @property
    def vcf(self) -> Path:
        return self._path(".calls.vcf.gz")

    @property
    def filtered_vcf(self) -> Path:
        return self._path(".calls.filtered.vcf.gz")

    @property
    def raw_consensus(self) -> Path:
        return self._path(".consensus.raw.fasta")

    @property
    def consensus(self) -> Path:
        return self._path(".consensus.fasta")

    @property
    def coverage(self) -> Path:
        return self._path("_coverage.txt")

    @property
    def mask_bed(self) -> Path:
        return self._path(".lowdp.mask.bed")

    @property
    def stats(self) -> Path:
        return self._path("_assembly_stats.txt")

    @property
    def result(self) -> Path:
        return self._path("_result.json")

    @property
    def dashboard(self) -> Path:
        return self._path("_coverage_report.html")

def validate_inputs(sample: Sample, outdir: Path) -> None:
    """
    Check that reads and reference exist and the output directory is writable.

    :raises InputNotFound: For the first unusable path.
    """
    for path in (sample.r1, sample.r2, sample.reference):
        if not Path(path).is_file():
            raise InputNotFound(f"File not found: {path}")
    try:
        outdir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise InputNotFound(f"Cannot create output directory {outdir}: {e}") from e
    if not os.access(outdir, os.W_OK):
        raise InputNotFound(f"Output directory is not writable: {outdir}")

def prepare_run(sample: Sample, outdir: Path) -> FrozenSet[Capability]:
    """
    Validate inputs, resolve required tools and probe optional capabilities.

    :return: The capability set consulted by later stages.
    """
    validate_inputs(sample, outdir)
    check_required_tools()
    return probe_capabilities()

def has_bowtie2_index(reference: Path) -> bool:
    return any(Path(f"{reference}{suffix}").exists() for suffix in BOWTIE2_INDEX_SUFFIXES)

def index_reference(reference: Path, threads: int = 1) -> bool:
    """
    Build the bowtie2 index next to the reference unless one already exists.

    :return: True if an index was built, False if the existing one was reused.
    """
    if has_bowtie2_index(reference):
        logger.info(f"Bowtie2 index exists for {reference}; skipping")
        return False
    run_command(["bowtie2-build", "--threads", str(threads), reference, reference], "index")
    return True

def align_reads(sample: Sample, config: AssemblyConfig, bam_path: Path) -> AlignmentSummary:
    """
    Align paired reads, dropping unaligned pairs, into an unsorted BAM.

    :return: The aligner's summary statistics.
    """
    bowtie2 = (["bowtie2"] + shlex.split(config.sensitivity) +
               ["-x", sample.reference, "-1", sample.r1, "-2", sample.r2,
                "-p", str(config.threads), "--no-unal"])
    samtools = ["samtools", "view", "-b", "-o", bam_path, "-"]
    stderr_text = run_piped(bowtie2, samtools, "align")
    summary = parse_bowtie2_summary(stderr_text)
    if summary.overall_rate is not None:
        logger.info(f"Overall alignment rate: {summary.overall_rate:.2f}%")
    return summary

def sort_and_index(bam_path: Path, sorted_bam: Path, threads: int) -> None:
    run_command(["samtools", "sort", "-@", str(threads), "-o", sorted_bam, bam_path], "sort")
    run_command(["samtools", "index", sorted_bam], "index_bam")

def compute_depth(sorted_bam: Path, coverage_path: Path) -> CoverageProfile:
    """
    Per-base depth over every reference position, including zero-depth ones.
    """
    run_command(["samtools", "depth", "-a", sorted_bam], "depth", stdout_path=coverage_path)
    return parse_depth(coverage_path)

def call_variants(reference: Path, sorted_bam: Path, vcf_path: Path, config: AssemblyConfig) -> None:
    """
    Haploid pileup calling with allele-depth annotations retained.
    """
    mpileup = ["bcftools", "mpileup", "-Ou", "-f", reference,
               "-q", str(config.min_mapping_quality), "-Q", str(config.min_base_quality),
               "-a", "AD,ADF,ADR,DP", sorted_bam]
    call = ["bcftools", "call", "-m", "-v", "--ploidy", "1", "-Oz", "-o", vcf_path]
    run_piped(mpileup, call, "call")
    run_command(["bcftools", "index", "-f", vcf_path], "call")

def filter_variants(vcf_path: Path, filtered_vcf: Path, variant_filter: VariantFilter) -> VariantCounts:
    """
    Apply the variant filter with bcftools and tally the outcome.

    :return: Total, retained and per-term rejection counts.
    """
    expression = variant_filter.to_bcftools_expression()
    logger.debug(f"Filter expression: {expression}")
    run_command(["bcftools", "filter", "-i", expression, vcf_path, "-Oz", "-o", filtered_vcf], "filter")
    run_command(["bcftools", "index", "-f", filtered_vcf], "filter")

    counts = variant_filter.summarize(parse_vcf(vcf_path))
    retained = len(parse_vcf(filtered_vcf))
    if retained != counts.retained:
        logger.warning(f"bcftools retained {retained} sites but the filter accepts {counts.retained}")
    counts.retained = retained
    logger.info(f"Variants called: {counts.total}; retained after filtering: {counts.retained}")
    return counts

def build_consensus(reference: Path, filtered_vcf: Path, output_fasta: Path, handle_ambiguous: bool) -> None:
    """
    Apply the filtered variants to the reference.
    Mixed calls become IUPAC codes when handle_ambiguous is set, otherwise the first allele is used.
    """
    allele_option = ["--iupac-codes"] if handle_ambiguous else ["-H", "1"]
    run_command(["bcftools", "consensus"] + allele_option +
                ["-f", reference, "-o", output_fasta, filtered_vcf], "consensus")

def write_mask_bed(intervals: List[Tuple[str, int, int]], bed_path: Path) -> None:
    with open(bed_path, "w", encoding="utf-8") as f:
        for contig, start, end in intervals:
            f.write(f"{contig}\t{start}\t{end}\n")

def mask_low_depth(
    raw_consensus: Path,
    consensus: Path,
    profile: CoverageProfile,
    config: AssemblyConfig,
    capabilities: FrozenSet[Capability],
    bed_path: Path,
    report: QCReport,
) -> Optional[int]:
    """
    Produce the final consensus, masking low-depth positions with N if requested.

    :return: Number of masked intervals, or None when no masking was applied.
    """
    if not config.mask_low_depth:
        shutil.copyfile(raw_consensus, consensus)
        return None

    intervals = low_depth_intervals(profile, config.min_depth)
    write_mask_bed(intervals, bed_path)
    if not intervals:
        logger.info("No low-depth positions to mask")
        shutil.copyfile(raw_consensus, consensus)
        return 0
    if Capability.MASKING not in capabilities:
        message = (f"Masking requested but bedtools is not available; "
                   f"{len(intervals)} low-depth regions left unmasked")
        logger.warning(message)
        report.notes.append(message)
        shutil.copyfile(raw_consensus, consensus)
        return None

    run_command(["bedtools", "maskfasta", "-fi", raw_consensus, "-bed", bed_path, "-fo", consensus], "mask")
    logger.info(f"Masked {len(intervals)} low-depth regions")
    return len(intervals)

def seqkit_stats(path: Path, all_stats: bool = False, skip_header: bool = False) -> List[str]:
    command = ["seqkit", "stats", "-T"] + (["-a"] if all_stats else []) + [path]
    result = run_command(command, "stats", capture_output=True)
    lines = [line for line in result.stdout.splitlines() if line.strip()]
    return lines[1:] if skip_header else lines

def cleanup(paths: SamplePaths) -> None:
    for path in (paths.bam, paths.raw_consensus):
        if path.exists():
            path.unlink()
            logger.debug(f"Removed intermediate file {path}")

def build_sample_result(report: QCReport, paths: SamplePaths) -> SampleResult:
    stats = report.assembly_stats
    return SampleResult(
        sample=report.sample.name,
        consensus=str(paths.consensus),
        length=stats.length,
        n_count=stats.n_count,
        n_percent=round(stats.n_percent, 2),
        gc_percent=round(stats.gc_percent, 2),
        at_percent=round(stats.at_percent, 2),
        average_coverage=round(report.average_coverage, 2) if report.average_coverage is not None else None,
        breadth=round(report.breadth, 4) if report.breadth is not None else None,
        gates={g.name: g.status.value for g in report.gates},
        qc_passed=report.overall_passed,
    )

def run_pipeline(
    sample: Sample,
    config: AssemblyConfig,
    outdir: Path,
    capabilities: Optional[FrozenSet[Capability]] = None,
) -> QCReport:
    """
    Run every stage for one sample and write the reports.
    The QC report is written even if a stage fails, with the sections reached so far.

    :param sample: Reads and reference of the sample.
    :param config: Validated run configuration.
    :param outdir: Output directory owned by this sample.
    :param capabilities: Pre-probed capability set; probed here when omitted.
    :return: The completed QCReport.
    :raises PipelineError: On any operational failure.
    """
    if capabilities is None:
        capabilities = prepare_run(sample, outdir)
    paths = SamplePaths(outdir, sample.name)
    report = QCReport(
        sample=sample,
        config=config,
        capabilities=capabilities,
        analysis_date=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    )
    variant_filter = VariantFilter.from_config(config)

    try:
        logger.info("Stage 1: Recording input statistics...")
        for reads in (sample.r1, sample.r2):
            report.input_stats[str(reads)] = (
                seqkit_stats(reads, skip_header=True) if Capability.ENHANCED_STATS in capabilities else []
            )

        logger.info("Stage 2: Indexing reference...")
        index_reference(sample.reference, config.threads)

        logger.info("Stage 3: Aligning reads with bowtie2...")
        report.alignment = align_reads(sample, config, paths.bam)

        logger.info("Stage 4: Sorting and indexing alignments...")
        sort_and_index(paths.bam, paths.sorted_bam, config.threads)

        logger.info("Stage 5: Computing per-base depth...")
        profile = compute_depth(paths.sorted_bam, paths.coverage)
        report.files["Coverage"] = paths.coverage

        logger.info("Stage 6: Coverage quality check...")
        report.average_coverage = average_depth(profile)
        report.reference_length = profile.reference_length
        report.covered_bases = covered_bases(profile, config.min_depth)
        report.breadth = breadth_of_coverage(profile, config.min_depth)
        report.coverage_gates = evaluate_coverage(profile, config)
        if not all(g.passed for g in report.coverage_gates):
            logger.warning(f"Coverage QC failed - check {paths.qc_report}")

        logger.info("Stage 7: Calling variants (ploidy=1)...")
        call_variants(sample.reference, paths.sorted_bam, paths.vcf, config)

        logger.info("Stage 8: Filtering variants...")
        report.variants = filter_variants(paths.vcf, paths.filtered_vcf, variant_filter)
        report.files["Variants"] = paths.filtered_vcf

        logger.info("Stage 9: Generating consensus...")
        build_consensus(sample.reference, paths.filtered_vcf, paths.raw_consensus, config.handle_ambiguous)

        logger.info("Stage 10: Low-depth masking...")
        report.masked_intervals = mask_low_depth(paths.raw_consensus, paths.consensus, profile, config,
                                                 capabilities, paths.mask_bed, report)

        logger.info("Stage 11: Normalising FASTA header...")
        rewrite_header(paths.consensus, sample.name)
        report.files["Consensus"] = paths.consensus

        logger.info("Stage 12: Final assembly validation...")
        report.assembly_stats = parse_consensus_stats(paths.consensus)
        if Capability.ENHANCED_STATS in capabilities:
            report.enhanced_stats = seqkit_stats(paths.consensus, all_stats=True)
        report.validation_gates = evaluate_assembly(report.assembly_stats, config)
        if not all(g.passed for g in report.validation_gates):
            logger.warning(f"Assembly validation failed - check {paths.qc_report}")

        logger.info("Stage 13: Writing statistics...")
        write_assembly_stats(report.assembly_stats, paths.consensus, paths.stats, report.enhanced_stats)
        report.files["Assembly Stats"] = paths.stats
        generate_coverage_dashboard(profile, config.min_depth, sample.name, paths.dashboard,
                                    report.masked_intervals)
        report.files["Coverage Dashboard"] = paths.dashboard
        write_sample_result(build_sample_result(report, paths), paths.result)
        report.files["Result Record"] = paths.result

        logger.info("Stage 14: Removing intermediate files...")
        cleanup(paths)
        report.completed = True
    finally:
        report.files["Log"] = paths.log
        report.files["QC Report"] = paths.qc_report
        generate_qc_report(report, paths.qc_report)

    length = report.assembly_stats.length
    if report.overall_passed:
        logger.info(f"Assembly completed: {paths.consensus} ({length} bp)")
    else:
        logger.warning(f"Assembly completed with issues: {paths.consensus} ({length} bp)")
    return report
