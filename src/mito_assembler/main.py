"""
Main entry point for the single-sample MitoAssembler command-line tool.
Parses options, validates inputs and tools, then runs the assembly pipeline
from alignment to the final QC report.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from src.mito_assembler.core.exceptions import PipelineError
from src.mito_assembler.core.models import Sample
from src.mito_assembler.core.pipeline import SamplePaths, prepare_run, run_pipeline
from src.mito_assembler.utils.arguments import PipelineArgumentParser, add_config_arguments, config_from_args
from src.mito_assembler.utils.logging import setup_logging

def build_parser() -> argparse.ArgumentParser:
    parser = PipelineArgumentParser(
        prog="mito-assemble",
        description="MitoAssembler: reference-guided mitogenome consensus assembly with quality control.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        epilog=(
            "Example: mito-assemble --r1 sample_R1.fq.gz --r2 sample_R2.fq.gz "
            "--ref ref.fasta --prefix my_sample --min-cov 20 --min-breadth 0.98"
        ),
    )

    # Mandatory
    required = parser.add_argument_group("Required arguments")
    required.add_argument("--r1", required=True, type=Path, help="Forward reads file (FASTQ, gzipped supported)")
    required.add_argument("--r2", required=True, type=Path, help="Reverse reads file (FASTQ, gzipped supported)")
    required.add_argument("--ref", required=True, type=Path, help="Reference mitogenome (FASTA)")
    required.add_argument("--prefix", "--species", dest="prefix", required=True, help="Sample identifier")

    # Optional
    parser.add_argument("--outdir", "--out", dest="outdir", type=Path, default=Path("results"),
                        help="Output directory")

    # Configurable
    add_config_arguments(parser)
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

    sample = Sample(name=args.prefix, r1=args.r1, r2=args.r2, reference=args.ref)
    paths = SamplePaths(args.outdir, sample.name)
    try:
        log_queue, log_listener = setup_logging(paths.log)
    except OSError as e:
        print(f"Error: cannot write to output directory {args.outdir}: {e}", file=sys.stderr)
        sys.exit(1)

    logger = logging.getLogger(__name__)
    try:
        logger.info("Starting MitoAssembler single-sample pipeline...")
        logger.info(f"Reference: {sample.reference}")
        logger.info(f"Reads: R1={sample.r1} R2={sample.r2}")
        logger.info(f"Output: {args.outdir} (prefix {sample.name}, threads {config.threads})")
        logger.info(f"QC parameters: min coverage {config.min_coverage}, min breadth {config.min_breadth}, "
                    f"max N {config.max_n_percent}%")

        capabilities = prepare_run(sample, args.outdir)
        report = run_pipeline(sample, config, args.outdir, capabilities)

        logger.info(f"Quality Control Report: {paths.qc_report}")
        logger.info(f"Assembly Statistics: {paths.stats}")
        logger.info(f"Final Assembly: {paths.consensus} ({report.assembly_stats.length} bp)")
    except PipelineError as e:
        logger.error(f"Pipeline failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Critical failure: {e}")
        sys.exit(1)
    finally:
        log_listener.stop()

if __name__ == "__main__":
    main()
