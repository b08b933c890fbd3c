"""
Entry point for batch MitoAssembler runs.
Reads a sample manifest and assembles every row with shared parameters.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from src.mito_assembler.core.batch_runner import BatchSettings, log_outcome, run_batch
from src.mito_assembler.core.exceptions import PipelineError
from src.mito_assembler.parsers.manifest_parser import parse_manifest
from src.mito_assembler.utils.arguments import PipelineArgumentParser, add_config_arguments, config_from_args
from src.mito_assembler.utils.logging import setup_logging

BATCH_DEFAULTS = {
    "min_coverage": 20,
    "min_breadth": 0.98,
    "max_n_percent": 2,
}

def build_parser() -> argparse.ArgumentParser:
    parser = PipelineArgumentParser(
        prog="mito-batch",
        description="Batch mitogenome assembly: runs mito-assemble for every row of a sample list.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        epilog=(
            "Sample list format (tab-separated): "
            "sample_name  R1_path  R2_path  reference_name. "
            "Blank lines and lines starting with # are ignored."
        ),
    )
    parser.add_argument("--sample-list", required=True, type=Path, help="Tab-separated sample list")
    parser.add_argument("--ref-dir", required=True, type=Path, help="Directory containing reference genomes")
    parser.add_argument("--outdir", type=Path, default=Path("batch_results"), help="Output directory")
    parser.add_argument("--parallel-jobs", type=int, default=1, help="Number of parallel assemblies")
    add_config_arguments(parser, BATCH_DEFAULTS)
    return parser

def main(argv: Optional[List[str]] = None):
    argv = sys.argv[1:] if argv is None else argv
    parser = build_parser()
    if not argv:
        parser.print_help()
        sys.exit(0)

    args = parser.parse_args(argv)
    try:
        config = config_from_args(args)
    except PipelineError as e:
        parser.error(str(e))
    if args.parallel_jobs < 1:
        parser.error(f"--parallel-jobs must be >= 1 (got {args.parallel_jobs})")
    if not args.sample_list.is_file():
        print(f"Error: Sample list file not found: {args.sample_list}", file=sys.stderr)
        sys.exit(1)
    if not args.ref_dir.is_dir():
        print(f"Error: Reference directory not found: {args.ref_dir}", file=sys.stderr)
        sys.exit(1)

    log_path = args.outdir / "batch_processing.log"
    log_queue, log_listener = setup_logging(log_path)
    logger = logging.getLogger(__name__)
    exit_code = 1
    try:
        logger.info("Batch Mitogenome Assembly Pipeline")
        logger.info(f"Sample list: {args.sample_list}")
        logger.info(f"Reference dir: {args.ref_dir}")
        logger.info(f"Output dir: {args.outdir}")
        logger.info(f"Parallel jobs: {args.parallel_jobs}")

        rows = parse_manifest(args.sample_list)
        settings = BatchSettings(
            ref_dir=args.ref_dir,
            outdir=args.outdir,
            config=config,
            parallel_jobs=args.parallel_jobs,
        )
        outcome = run_batch(rows, settings, log_queue)
        log_outcome(outcome, log_path)
        if outcome.failed:
            logger.warning(f"Some samples failed - check {outcome.failed_path} for details")
        else:
            logger.info("All samples processed successfully!")
        exit_code = outcome.exit_code
    except PipelineError as e:
        logger.error(f"Batch failed: {e}")
    except Exception as e:
        logger.error(f"Critical failure: {e}")
    finally:
        log_listener.stop()
    sys.exit(exit_code)

if __name__ == "__main__":
    main()
