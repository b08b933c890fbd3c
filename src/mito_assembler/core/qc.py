"""
Quality-control gates for MitoAssembler.
Each gate yields PASS or WARN independently; none of them aborts a run.
"""

import logging
from typing import List

from src.mito_assembler.core.models import (
    AssemblyConfig,
    AssemblyStats,
    CoverageProfile,
    GateResult,
    GateStatus,
)
from src.mito_assembler.utils.stats import average_depth, breadth_of_coverage

logger = logging.getLogger(__name__)

def _status(passed: bool) -> GateStatus:
    return GateStatus.PASS if passed else GateStatus.WARN

def evaluate_coverage(profile: CoverageProfile, config: AssemblyConfig) -> List[GateResult]:
    """
    Coverage-adequacy and breadth-adequacy gates.

    :param profile: Per-base depth over the reference.
    :param config: Run configuration (min_coverage, min_breadth, min_depth).
    :return: [average coverage gate, breadth gate]. An empty profile fails both.
    """
    if profile.reference_length == 0:
        return [
            GateResult("coverage", GateStatus.WARN, 0.0, config.min_coverage,
                       "Coverage file is empty"),
            GateResult("breadth", GateStatus.WARN, 0.0, config.min_breadth,
                       "Coverage file is empty"),
        ]

    avg = average_depth(profile)
    breadth = breadth_of_coverage(profile, config.min_depth)

    coverage_ok = avg >= config.min_coverage
    breadth_ok = breadth >= config.min_breadth
    gates = [
        GateResult(
            "coverage", _status(coverage_ok), avg, config.min_coverage,
            "Average coverage: PASS" if coverage_ok else
            f"Average coverage ({avg:.2f}) below threshold ({config.min_coverage:g})",
        ),
        GateResult(
            "breadth", _status(breadth_ok), breadth, config.min_breadth,
            "Breadth of coverage: PASS" if breadth_ok else
            f"Breadth of coverage ({breadth:.4f}) below threshold ({config.min_breadth:g})",
        ),
    ]
    for gate in gates:
        if not gate.passed:
            logger.warning(gate.message)
    return gates

def evaluate_size(stats: AssemblyStats, config: AssemblyConfig) -> GateResult:
    """
    Size gate: ungapped length within [expected_size_min, expected_size_max], bounds inclusive.
    """
    length = stats.length
    if length < config.expected_size_min:
        message = f"Assembly too short (<{config.expected_size_min} bp)"
    elif length > config.expected_size_max:
        message = f"Assembly too long (>{config.expected_size_max} bp)"
    else:
        return GateResult("size", GateStatus.PASS, length,
                          (config.expected_size_min, config.expected_size_max), "Assembly size: PASS")
    logger.warning(message)
    return GateResult("size", GateStatus.WARN, length,
                      (config.expected_size_min, config.expected_size_max), message)

def evaluate_n_content(stats: AssemblyStats, config: AssemblyConfig) -> GateResult:
    """
    N-content gate: percentage of N must not exceed max_n_percent.
    Compared as n * 100 <= max * length so the boundary is exact.
    """
    passed = stats.n_count * 100 <= config.max_n_percent * stats.length
    if passed:
        return GateResult("n_content", GateStatus.PASS, stats.n_percent, config.max_n_percent,
                          "N content: PASS")
    message = f"High N content (>{config.max_n_percent:g}%)"
    logger.warning(message)
    return GateResult("n_content", GateStatus.WARN, stats.n_percent, config.max_n_percent, message)

def evaluate_assembly(stats: AssemblyStats, config: AssemblyConfig) -> List[GateResult]:
    return [evaluate_size(stats, config), evaluate_n_content(stats, config)]
