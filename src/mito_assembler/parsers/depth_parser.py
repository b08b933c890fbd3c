"""
Depth table parser for MitoAssembler.
Reads `samtools depth -a` output into a CoverageProfile.
"""

import numpy as np
import pandas as pd
import logging
from pathlib import Path

from src.mito_assembler.core.models import CoverageProfile

logger = logging.getLogger(__name__)

def parse_depth(depth_path: Path) -> CoverageProfile:
    """
    Parse a three-column depth table (contig, 1-based position, depth).

    :param depth_path: Path to the depth table.
    :return: CoverageProfile ordered by reference coordinate; empty if the file has no rows.
    """
    try:
        df = pd.read_csv(depth_path, sep='\t', header=None, names=['contig', 'pos', 'depth'],
                         usecols=[0, 1, 2], comment='#', encoding='utf-8')
    except pd.errors.EmptyDataError:
        logger.warning(f"Depth file {depth_path} is empty.")
        return CoverageProfile.empty()
    except Exception as e:
        logger.error(f"Failed to read depth file {depth_path}: {e}")
        raise

    if df.empty:
        logger.warning(f"Depth file {depth_path} is empty.")
        return CoverageProfile.empty()

    return CoverageProfile(
        contigs=df['contig'].astype(str).to_numpy(dtype=object),
        positions=df['pos'].to_numpy(dtype=np.int64),
        depths=df['depth'].to_numpy(dtype=np.int64),
    )
