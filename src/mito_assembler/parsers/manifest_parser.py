"""
Sample manifest parser for batch runs.
"""

from pathlib import Path
from typing import List, Optional
import logging

from src.mito_assembler.core.exceptions import ManifestError
from src.mito_assembler.core.models import ManifestRow

logger = logging.getLogger(__name__)

MANIFEST_FIELDS = 4

def _optional_path(value: Optional[str]) -> Optional[Path]:
    return Path(value) if value else None

def parse_manifest(manifest_path: Path) -> List[ManifestRow]:
    """
    Parse a tab-separated sample list: name, R1 path, R2 path, reference file name.
    Blank lines and lines starting with '#' are skipped.
    Lines with fewer than four fields are kept with the missing fields set to None,
    so the batch records them as per-sample failures.

    :param manifest_path: Path to the sample list.
    :return: Rows in manifest order.
    :raises ManifestError: On duplicated sample names.
    """
    rows: List[ManifestRow] = []
    seen = {}
    with open(manifest_path, encoding='utf-8') as f:
        for line_number, line in enumerate(f, start=1):
            line = line.rstrip('\r\n')
            if not line.strip() or line.lstrip().startswith('#'):
                continue
            fields = [field.strip() for field in line.split('\t')]
            present = len([x for x in fields[:MANIFEST_FIELDS] if x])
            if present < MANIFEST_FIELDS:
                logger.warning(
                    f"{manifest_path}:{line_number}: expected {MANIFEST_FIELDS} tab-separated fields "
                    f"(sample, R1, R2, reference), got {present}"
                )
            fields = (fields + [''] * MANIFEST_FIELDS)[:MANIFEST_FIELDS]
            name, r1, r2, ref_name = fields
            if not name:
                logger.error(f"{manifest_path}:{line_number}: no sample name; line skipped")
                continue
            if name in seen:
                raise ManifestError(
                    f"{manifest_path}:{line_number}: duplicate sample name '{name}' "
                    f"(first seen on line {seen[name]})"
                )
            seen[name] = line_number
            rows.append(ManifestRow(line_number, name, _optional_path(r1), _optional_path(r2), ref_name or None))

    logger.info(f"Read {len(rows)} samples from {manifest_path}")
    return rows
