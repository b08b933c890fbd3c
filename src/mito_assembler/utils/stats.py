"""
Statistics utilities for MitoAssembler.
Coverage summaries over a depth profile and base composition of a consensus.
"""

import numpy as np
from typing import List, Tuple

from src.mito_assembler.core.models import AssemblyStats, CoverageProfile

AMBIGUITY_SYMBOL = "N"

def average_depth(profile: CoverageProfile) -> float:
    """
    Mean per-base depth across the reference; 0.0 for an empty profile.
    """
    if profile.reference_length == 0:
        return 0.0
    return float(np.mean(profile.depths))

def covered_bases(profile: CoverageProfile, min_depth: int) -> int:
    """
    Number of positions with depth >= min_depth.
    """
    return int(np.count_nonzero(profile.depths >= min_depth))

def breadth_of_coverage(profile: CoverageProfile, min_depth: int) -> float:
    """
    Fraction of reference positions meeting the minimum depth.

    :param profile: Per-base depth profile.
    :param min_depth: Depth a position needs to count as covered.
    :return: Breadth in [0, 1]; 0.0 for an empty profile.
    """
    if profile.reference_length == 0:
        return 0.0
    return covered_bases(profile, min_depth) / profile.reference_length

def low_depth_intervals(profile: CoverageProfile, min_depth: int) -> List[Tuple[str, int, int]]:
    """
    Merge positions with depth below min_depth into zero-based half-open intervals.

    :param profile: Per-base depth profile (1-based positions).
    :param min_depth: Positions strictly below this depth are reported.
    :return: List of (contig, start, end) tuples in BED convention.
    """
    intervals: List[Tuple[str, int, int]] = []
    low = profile.depths < min_depth
    current = None
    for contig, pos, is_low in zip(profile.contigs, profile.positions, low):
        start = int(pos) - 1
        if is_low:
            if current is not None and current[0] == contig and current[2] == start:
                current[2] = start + 1
            else:
                if current is not None:
                    intervals.append(tuple(current))
                current = [contig, start, start + 1]
        elif current is not None:
            intervals.append(tuple(current))
            current = None
    if current is not None:
        intervals.append(tuple(current))
    return intervals

def calculate_sequence_stats(name: str, sequence: str) -> AssemblyStats:
    """
    Calculate length, N content and GC/AT content of a sequence.
    GC and AT percentages are relative to unambiguous A/C/G/T bases, so they always sum to 100
    and neither N masking nor IUPAC codes dilute them.

    :param name: Sequence identifier.
    :param sequence: Ungapped sequence.
    :return: AssemblyStats for the sequence.
    """
    seq = sequence.upper().replace("-", "")
    length = len(seq)
    n_count = seq.count(AMBIGUITY_SYMBOL)
    gc_count = seq.count("G") + seq.count("C")
    at_count = seq.count("A") + seq.count("T")
    informative = gc_count + at_count

    return AssemblyStats(
        name=name,
        length=length,
        n_count=n_count,
        n_percent=(n_count * 100 / length) if length > 0 else 0.0,
        gc_count=gc_count,
        gc_percent=(gc_count * 100 / informative) if informative > 0 else 0.0,
        at_percent=(at_count * 100 / informative) if informative > 0 else 0.0,
    )
