"""
Command-line argument helpers shared by the single-sample and batch entry points.
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

from src.mito_assembler.core.models import AssemblyConfig

BOWTIE2_PRESETS = frozenset(
    f"--{speed}{mode}"
    for speed in ("very-fast", "fast", "sensitive", "very-sensitive")
    for mode in ("", "-local")
)

def attach_preset_values(argv: List[str]) -> List[str]:
    """
    Rewrite '--sensitivity --preset' as '--sensitivity=--preset' so argparse
    does not read the dashed preset as another option.
    """
    joined = []
    i = 0
    while i < len(argv):
        if argv[i] == "--sensitivity" and i + 1 < len(argv) and argv[i + 1] in BOWTIE2_PRESETS:
            joined.append(f"--sensitivity={argv[i + 1]}")
            i += 2
            continue
        joined.append(argv[i])
        i += 1
    return joined

class PipelineArgumentParser(argparse.ArgumentParser):
    """
    ArgumentParser that exits with status 1 on usage errors instead of 2
    and accepts dashed bowtie2 presets as option values.
    """

    def parse_known_args(self, args=None, namespace=None):
        args = sys.argv[1:] if args is None else list(args)
        return super().parse_known_args(attach_preset_values(args), namespace)

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")

def normalize_sensitivity(value: str) -> str:
    """
    Accept bowtie2 presets with or without the leading dashes.
    """
    value = value.strip()
    if value and not value.startswith("-"):
        return f"--{value}"
    return value

def add_config_arguments(parser: argparse.ArgumentParser, defaults: Optional[Dict[str, Any]] = None):
    """
    Register every AssemblyConfig option on a parser.

    :param parser: Parser to extend.
    :param defaults: Overrides for AssemblyConfig defaults (by field name).
    """
    base = AssemblyConfig()
    d = {name: getattr(base, name) for name in base.__dataclass_fields__}
    d.update(defaults or {})

    group = parser.add_argument_group("Alignment and variant calling")
    group.add_argument("--threads", type=int, default=d["threads"], help="Number of CPU threads per assembly")
    group.add_argument("--sensitivity", type=normalize_sensitivity, default=d["sensitivity"],
                       help="Bowtie2 preset, e.g. --sensitivity --very-sensitive-local or --sensitivity sensitive")
    group.add_argument("--min-mq", type=int, default=d["min_mapping_quality"], help="Minimum mapping quality for pileup")
    group.add_argument("--min-bq", type=int, default=d["min_base_quality"], help="Minimum base quality for pileup")
    group.add_argument("--min-dp", type=int, default=d["min_depth"], help="Minimum depth for variant filtering, breadth and masking")
    group.add_argument("--af", type=float, default=d["min_allele_fraction"], help="Minimum alternate allele fraction")
    group.add_argument("--handle-ambiguous", action="store_true", default=d["handle_ambiguous"],
                       help="Render mixed calls as IUPAC ambiguity codes")
    group.add_argument("--mask-lowdp", action="store_true", default=d["mask_low_depth"],
                       help="Mask low-depth positions with N (requires bedtools)")

    qc = parser.add_argument_group("Quality control thresholds")
    qc.add_argument("--min-cov", type=float, default=d["min_coverage"], help="Minimum average coverage")
    qc.add_argument("--min-breadth", type=float, default=d["min_breadth"], help="Minimum breadth of coverage (fraction)")
    qc.add_argument("--max-n-percent", type=float, default=d["max_n_percent"], help="Maximum percentage of Ns")
    qc.add_argument("--expected-size-min", type=int, default=d["expected_size_min"], help="Minimum expected assembly size (bp)")
    qc.add_argument("--expected-size-max", type=int, default=d["expected_size_max"], help="Maximum expected assembly size (bp)")

def config_from_args(args: argparse.Namespace) -> AssemblyConfig:
    """
    Build and validate the immutable configuration from parsed arguments.
    """
    return AssemblyConfig(
        sensitivity=args.sensitivity,
        threads=args.threads,
        min_mapping_quality=args.min_mq,
        min_base_quality=args.min_bq,
        min_depth=args.min_dp,
        min_allele_fraction=args.af,
        handle_ambiguous=args.handle_ambiguous,
        mask_low_depth=args.mask_lowdp,
        min_coverage=args.min_cov,
        min_breadth=args.min_breadth,
        max_n_percent=args.max_n_percent,
        expected_size_min=args.expected_size_min,
        expected_size_max=args.expected_size_max,
    ).validate()
