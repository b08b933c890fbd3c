"""
VCF parser for MitoAssembler.
Reads single-sample bcftools calls (plain or bgzipped) into VariantSite records,
keeping the DP/AD/ADF/ADR annotations the variant filter needs.
"""

import logging
import math
from pathlib import Path
from typing import Any, List

import pysam

from src.mito_assembler.core.models import VariantSite

logger = logging.getLogger(__name__)

def safe_format(sample: Any, field: str, default: Any = None) -> Any:
    """
    Read a FORMAT field from a pysam sample, returning default when it is absent or missing.
    """
    if sample is None:
        return default
    try:
        val = sample[field]
    except (KeyError, TypeError):
        return default
    if val is None or (isinstance(val, float) and math.isnan(val)):
        return default
    return val

def _allele_depth(values: Any, index: int) -> int:
    # Number=R fields come back as tuples with None for '.'
    if not isinstance(values, tuple) or len(values) <= index or values[index] is None:
        return 0
    return int(values[index])

def parse_vcf(vcf_path: Path) -> List[VariantSite]:
    """
    Parse the records of a single-sample VCF.
    Only the first alternate allele's depths are considered, matching AD[0:1].

    :param vcf_path: Path to a .vcf or .vcf.gz file.
    :return: List of VariantSite objects in file order.
    """
    sites = []
    try:
        with pysam.VariantFile(str(vcf_path)) as vcf:
            has_sample = len(vcf.header.samples) > 0
            for rec in vcf:
                sample = rec.samples[0] if has_sample else None
                ad = safe_format(sample, 'AD')
                depth = safe_format(sample, 'DP', default=0)

                sites.append(VariantSite(
                    chrom=rec.chrom,
                    pos=rec.pos,
                    ref=rec.ref,
                    alt=",".join(rec.alts) if rec.alts else ".",
                    qual=float(rec.qual) if rec.qual is not None else 0.0,
                    depth=int(depth),
                    ref_depth=_allele_depth(ad, 0),
                    alt_depth=_allele_depth(ad, 1),
                    alt_forward=_allele_depth(safe_format(sample, 'ADF'), 1),
                    alt_reverse=_allele_depth(safe_format(sample, 'ADR'), 1),
                ))
    except (OSError, ValueError) as e:
        logger.error(f"Failed to read VCF file {vcf_path}: {e}")
        raise
    return sites
