"""
Batch orchestration for MitoAssembler.
Runs the single-sample pipeline as an isolated child process per manifest row,
either on a bounded worker pool or sequentially, and aggregates the outcomes.
"""

import json
import logging
import multiprocessing
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from src.mito_assembler.core.exceptions import PipelineError
from src.mito_assembler.core.models import (
    AssemblyConfig,
    BatchResult,
    BatchStatus,
    FailureReason,
    ManifestRow,
)
from src.mito_assembler.core.pipeline import SamplePaths
from src.mito_assembler.parsers.fasta_parser import concatenate_fasta
from src.mito_assembler.utils.logging import worker_configurer
from src.mito_assembler.visualization.report_generator import write_batch_summary

logger = logging.getLogger(__name__)

PIPELINE_MODULE = "src.mito_assembler.main"

@dataclass(frozen=True)
class BatchSettings:
    """
    Settings shared by every row of a batch.
    """
    ref_dir: Path
    outdir: Path
    config: AssemblyConfig
    parallel_jobs: int = 1

@dataclass
class BatchOutcome:
    results: List[BatchResult]
    summary_path: Path
    failed_path: Path
    combined_fasta: Path
    combined_records: int

    @property
    def succeeded(self) -> List[BatchResult]:
        return [r for r in self.results if r.status == BatchStatus.SUCCESS]

    @property
    def failed(self) -> List[BatchResult]:
        return [r for r in self.results if r.status == BatchStatus.FAILED]

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

def build_command(row: ManifestRow, reference: Path, sample_outdir: Path, config: AssemblyConfig) -> List[str]:
    return [
        sys.executable, "-m", PIPELINE_MODULE,
        "--r1", str(row.r1),
        "--r2", str(row.r2),
        "--ref", str(reference),
        "--prefix", row.name,
        "--outdir", str(sample_outdir),
    ] + config.to_cli_args()

def _format_stat(value, suffix: str = "") -> str:
    if value is None:
        return "Unknown"
    return f"{value}{suffix}"

def collect_sample_result(row: ManifestRow, paths: SamplePaths) -> BatchResult:
    """
    Turn a finished child run into a BatchResult using its structured result record.
    Missing record fields are reported as 'Unknown'.
    """
    if not paths.consensus.is_file():
        logger.error(f"Failed {row.name}: No output file")
        return BatchResult(row.name, BatchStatus.FAILED, FailureReason.NO_OUTPUT, invoked=True)

    record = {}
    if paths.result.is_file():
        try:
            with open(paths.result, encoding='utf-8') as f:
                record = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read result record {paths.result}: {e}")
    else:
        logger.warning(f"No result record for {row.name}; statistics reported as Unknown")

    length = record.get("length")
    if length is None:
        # Sequence characters only, header lines excluded
        with open(paths.consensus, encoding='utf-8') as f:
            length = sum(len(line.strip()) for line in f if not line.startswith(">"))

    qc_passed = record.get("qc_passed")
    result = BatchResult(
        name=row.name,
        status=BatchStatus.SUCCESS,
        length=length,
        at_content=_format_stat(record.get("at_percent"), "%"),
        coverage=_format_stat(record.get("average_coverage")),
        completeness="Unknown" if qc_passed is None else ("PASS" if qc_passed else "WARNING"),
        consensus=paths.consensus,
        invoked=True,
    )
    logger.info(f"Completed {row.name}: {length} bp")
    return result

def _stream_child(command: List[str], name: str) -> int:
    """
    Run one child pipeline, forwarding its combined output to the batch log line by line.

    :return: The child's exit status.
    """
    with subprocess.Popen(command, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                          text=True, errors='replace') as process:
        for line in process.stdout:
            logger.info(f"[{name}] {line.rstrip()}")
    return process.returncode

def process_sample(row: ManifestRow, settings: BatchSettings) -> BatchResult:
    """
    Validate one manifest row and run the single-sample pipeline for it.

    :param row: Manifest row.
    :param settings: Shared batch settings.
    :return: BatchResult for the row. Failures are recorded, never raised.
    """
    logger.info(f"Starting {row.name}")
    reference = settings.ref_dir / row.reference_name if row.reference_name else None
    for path, reason, label in ((row.r1, FailureReason.MISSING_R1, "R1 file"),
                                (row.r2, FailureReason.MISSING_R2, "R2 file"),
                                (reference, FailureReason.MISSING_REF, "Reference")):
        if path is None or not path.is_file():
            logger.error(f"{label} not found for {row.name}: {path if path is not None else 'not given'}")
            return BatchResult(row.name, BatchStatus.FAILED, reason)

    invoked = False
    try:
        sample_outdir = settings.outdir / row.name
        sample_outdir.mkdir(parents=True, exist_ok=True)
        command = build_command(row, reference, sample_outdir, settings.config)
        logger.info(f"Command: {' '.join(command)}")

        invoked = True
        returncode = _stream_child(command, row.name)
        if returncode != 0:
            logger.error(f"Failed {row.name}: Assembly error (exit {returncode})")
            return BatchResult(row.name, BatchStatus.FAILED, FailureReason.ASSEMBLY_ERROR, invoked=True)

        return collect_sample_result(row, SamplePaths(sample_outdir, row.name))
    except (OSError, ValueError, PipelineError) as e:
        logger.error(f"Failed {row.name}: {e}")
        return BatchResult(row.name, BatchStatus.FAILED, FailureReason.ASSEMBLY_ERROR, invoked=invoked)

def _process_sample_star(task):
    return process_sample(*task)

def run_rows(rows: List[ManifestRow], settings: BatchSettings, log_queue=None) -> List[BatchResult]:
    """
    Process rows on a worker pool when parallel_jobs > 1, otherwise sequentially in manifest order.
    Results are returned in manifest order either way.
    """
    if settings.parallel_jobs > 1 and len(rows) > 1:
        logger.info(f"Processing {len(rows)} samples with {settings.parallel_jobs} parallel jobs...")
        initializer = worker_configurer if log_queue is not None else None
        initargs = (log_queue,) if log_queue is not None else ()
        by_name = {}
        with multiprocessing.Pool(settings.parallel_jobs, initializer=initializer, initargs=initargs) as pool:
            for result in pool.imap_unordered(_process_sample_star, [(row, settings) for row in rows]):
                by_name[result.name] = result
        return [by_name[row.name] for row in rows]

    logger.info(f"Processing {len(rows)} samples sequentially...")
    return [process_sample(row, settings) for row in rows]

def run_batch(rows: List[ManifestRow], settings: BatchSettings, log_queue=None) -> BatchOutcome:
    """
    Process every manifest row and write the batch-level outputs.

    :param rows: Parsed manifest rows.
    :param settings: Shared batch settings.
    :param log_queue: Logging queue handed to pool workers.
    :return: BatchOutcome with per-row results and output paths.
    """
    settings.outdir.mkdir(parents=True, exist_ok=True)
    results = run_rows(rows, settings, log_queue)

    summary_path = settings.outdir / "batch_summary.txt"
    failed_path = settings.outdir / "failed_samples.txt"
    write_batch_summary(results, summary_path, failed_path)

    combined_fasta = settings.outdir / "all_mitogenomes.fasta"
    logger.info(f"Creating collective FASTA file: {combined_fasta}")
    consensus_files = [r.consensus for r in results
                       if r.status == BatchStatus.SUCCESS and r.consensus is not None]
    combined_records = concatenate_fasta(consensus_files, combined_fasta)
    if combined_records:
        logger.info(f"Collective FASTA: {combined_records} sequences")
    else:
        logger.info("No sequences to combine")

    return BatchOutcome(results, summary_path, failed_path, combined_fasta, combined_records)

def log_outcome(outcome: BatchOutcome, log_path: Optional[Path] = None):
    logger.info("Batch Processing Complete!")
    logger.info(f"Total samples: {len(outcome.results)}")
    logger.info(f"Successful: {len(outcome.succeeded)}")
    logger.info(f"Failed: {len(outcome.failed)}")
    for r in outcome.succeeded:
        logger.info(f"  {r.name}: {r.length} bp")
    for r in outcome.failed:
        logger.warning(f"  {r.name}: {r.reason.value}")
    logger.info(f"Summary: {outcome.summary_path}")
    if log_path is not None:
        logger.info(f"Log: {log_path}")
    logger.info(f"Failed samples: {outcome.failed_path}")
    logger.info(f"Individual results: {outcome.summary_path.parent}/[sample_name]/")
