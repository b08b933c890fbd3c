"""
FASTA handling for MitoAssembler.
Reads consensus sequences, normalises headers and concatenates batch outputs.
"""

from Bio import SeqIO
from pathlib import Path
from typing import Iterable, List
import logging

from src.mito_assembler.core.models import AssemblyStats
from src.mito_assembler.utils.stats import calculate_sequence_stats

logger = logging.getLogger(__name__)

def rewrite_header(fasta_path: Path, sample_name: str) -> None:
    """
    Rename the first record of a FASTA file to the sample identifier, in place.
    Any description emitted by upstream tools is dropped.

    :param fasta_path: FASTA file to rewrite.
    :param sample_name: New identifier for the first record.
    """
    records = list(SeqIO.parse(str(fasta_path), "fasta"))
    if not records:
        logger.warning(f"No FASTA records found in {fasta_path}; header left unchanged")
        return
    first = records[0]
    first.id = sample_name
    first.name = sample_name
    first.description = ""
    with open(fasta_path, "w", encoding='utf-8') as f:
        SeqIO.write(records, f, "fasta")

def parse_consensus_stats(fasta_path: Path) -> AssemblyStats:
    """
    Calculate assembly statistics over all records of a FASTA file.

    :param fasta_path: Path to the consensus FASTA.
    :return: AssemblyStats for the concatenated, ungapped sequence.
    """
    records = list(SeqIO.parse(str(fasta_path), "fasta"))
    name = records[0].id if records else fasta_path.stem
    stats = calculate_sequence_stats(name, "".join(str(r.seq) for r in records))
    stats.num_seqs = len(records)
    return stats

def concatenate_fasta(fasta_paths: Iterable[Path], output_fasta: Path) -> int:
    """
    Write all records of the given FASTA files into one file.

    :param fasta_paths: FASTA files in output order.
    :param output_fasta: Combined output path.
    :return: Number of records written.
    """
    records: List = []
    for path in fasta_paths:
        records.extend(SeqIO.parse(str(path), "fasta"))
    with open(output_fasta, "w", encoding='utf-8') as f:
        SeqIO.write(records, f, "fasta")
    return len(records)
