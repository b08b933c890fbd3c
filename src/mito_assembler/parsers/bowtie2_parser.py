"""
Bowtie2 alignment summary parser for MitoAssembler.
Picks the summary block out of the aligner's stderr and extracts headline numbers.
"""

import re
from typing import Optional

from src.mito_assembler.core.models import AlignmentSummary

SUMMARY_LINE = re.compile(
    r"(reads; of these:|aligned concordantly|aligned discordantly|aligned exactly|overall alignment rate)"
)
TOTAL_READS = re.compile(r"^(\d+) reads; of these:")
CONCORDANT_ONCE = re.compile(r"^(\d+) \([\d.]+%\) aligned concordantly exactly 1 time")
CONCORDANT_MULTI = re.compile(r"^(\d+) \([\d.]+%\) aligned concordantly >1 times")
DISCORDANT_ONCE = re.compile(r"^(\d+) \([\d.]+%\) aligned discordantly 1 time")
OVERALL_RATE = re.compile(r"^([\d.]+)% overall alignment rate")

def _first_int(pattern: re.Pattern, line: str, current: Optional[int]) -> Optional[int]:
    if current is not None:
        return current
    match = pattern.match(line)
    return int(match.group(1)) if match else None

def parse_bowtie2_summary(stderr_text: str) -> AlignmentSummary:
    """
    Parse the summary bowtie2 prints on stderr after a paired-end run.

    :param stderr_text: Captured aligner stderr.
    :return: AlignmentSummary with the verbatim summary lines and parsed counts.
    """
    summary = AlignmentSummary()
    for raw in stderr_text.splitlines():
        if not SUMMARY_LINE.search(raw):
            continue
        summary.lines.append(raw.rstrip())
        line = raw.strip()
        summary.total_reads = _first_int(TOTAL_READS, line, summary.total_reads)
        summary.concordant_once = _first_int(CONCORDANT_ONCE, line, summary.concordant_once)
        summary.concordant_multi = _first_int(CONCORDANT_MULTI, line, summary.concordant_multi)
        summary.discordant_once = _first_int(DISCORDANT_ONCE, line, summary.discordant_once)
        rate = OVERALL_RATE.match(line)
        if rate:
            summary.overall_rate = float(rate.group(1))
    return summary
