"""
Data models for MitoAssembler.
Defines the sample, configuration, coverage, variant, QC and batch result types.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import List, Tuple, Optional, Dict, FrozenSet, Any

import numpy as np

from src.mito_assembler.core.exceptions import ConfigError


class Capability(Enum):
    """
    Optional features unlocked by external tools found at start-up.
    The value is the executable that provides the feature.
    """
    ENHANCED_STATS = "seqkit"
    MASKING = "bedtools"
    CONTAMINATION_SCREEN = "blastn"


class GateStatus(Enum):
    PASS = "PASS"
    WARN = "WARN"


class BatchStatus(Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class FailureReason(Enum):
    """
    Reason a batch row ended as FAILED.
    """
    MISSING_R1 = "Missing_R1"
    MISSING_R2 = "Missing_R2"
    MISSING_REF = "Missing_Ref"
    NO_OUTPUT = "No_Output"
    ASSEMBLY_ERROR = "Assembly_Error"

    @property
    def description(self) -> str:
        return {
            FailureReason.MISSING_R1: "Missing R1 file",
            FailureReason.MISSING_R2: "Missing R2 file",
            FailureReason.MISSING_REF: "Missing reference file",
            FailureReason.NO_OUTPUT: "No consensus output",
            FailureReason.ASSEMBLY_ERROR: "Assembly pipeline failed",
        }[self]


@dataclass(frozen=True)
class Sample:
    """Paired reads and reference for one assembly."""
    name: str
    r1: Path
    r2: Path
    reference: Path


@dataclass(frozen=True)
class AssemblyConfig:
    """
    Immutable set of tunable thresholds shared by every pipeline stage.
    """
    sensitivity: str = "--very-sensitive-local"
    threads: int = 4
    min_mapping_quality: int = 30
    min_base_quality: int = 20
    min_depth: int = 10
    min_allele_fraction: float = 0.90
    handle_ambiguous: bool = False
    mask_low_depth: bool = False
    min_coverage: float = 10
    min_breadth: float = 0.95
    max_n_percent: float = 5
    expected_size_min: int = 15000
    expected_size_max: int = 20000

    def validate(self) -> "AssemblyConfig":
        """
        Check every threshold against its allowed range.

        :return: The same configuration, for chaining.
        :raises ConfigError: On the first out-of-range value.
        """
        if not self.sensitivity.strip():
            raise ConfigError("Sensitivity preset must not be empty")
        if self.threads < 1:
            raise ConfigError(f"Thread count must be >= 1 (got {self.threads})")
        for name in ("min_mapping_quality", "min_base_quality", "min_depth",
                     "min_coverage", "expected_size_min", "expected_size_max"):
            value = getattr(self, name)
            if value < 0:
                raise ConfigError(f"{name} must be >= 0 (got {value})")
        for name in ("min_allele_fraction", "min_breadth"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must be within [0, 1] (got {value})")
        if not 0.0 <= self.max_n_percent <= 100.0:
            raise ConfigError(f"max_n_percent must be within [0, 100] (got {self.max_n_percent})")
        if self.expected_size_min > self.expected_size_max:
            raise ConfigError(
                f"expected_size_min ({self.expected_size_min}) exceeds "
                f"expected_size_max ({self.expected_size_max})"
            )
        return self

    def to_cli_args(self) -> List[str]:
        """
        Render the configuration as single-sample command-line flags.
        """
        args = [
            f"--sensitivity={self.sensitivity}",
            "--threads", str(self.threads),
            "--min-mq", str(self.min_mapping_quality),
            "--min-bq", str(self.min_base_quality),
            "--min-dp", str(self.min_depth),
            "--af", str(self.min_allele_fraction),
            "--min-cov", str(self.min_coverage),
            "--min-breadth", str(self.min_breadth),
            "--max-n-percent", str(self.max_n_percent),
            "--expected-size-min", str(self.expected_size_min),
            "--expected-size-max", str(self.expected_size_max),
        ]
        if self.handle_ambiguous:
            args.append("--handle-ambiguous")
        if self.mask_low_depth:
            args.append("--mask-lowdp")
        return args


@dataclass
class CoverageProfile:
    """
    Per-base depth ordered by reference coordinate (positions are 1-based).
    """
    contigs: np.ndarray
    positions: np.ndarray
    depths: np.ndarray

    @property
    def reference_length(self) -> int:
        return int(self.depths.size)

    @classmethod
    def empty(cls) -> "CoverageProfile":
        return cls(
            contigs=np.array([], dtype=object),
            positions=np.array([], dtype=np.int64),
            depths=np.array([], dtype=np.int64),
        )


@dataclass
class VariantSite:
    """
    A called site with the allele-depth annotations of its single sample.
    """
    chrom: str
    pos: int
    ref: str
    alt: str
    qual: float
    depth: int
    ref_depth: int = 0
    alt_depth: int = 0
    alt_forward: int = 0
    alt_reverse: int = 0

    @property
    def alt_fraction(self) -> float:
        total = self.ref_depth + self.alt_depth
        return self.alt_depth / total if total > 0 else 0.0


@dataclass
class AlignmentSummary:
    """
    Aligner summary lines kept verbatim plus the headline numbers.
    """
    lines: List[str] = field(default_factory=list)
    total_reads: Optional[int] = None
    concordant_once: Optional[int] = None
    concordant_multi: Optional[int] = None
    discordant_once: Optional[int] = None
    overall_rate: Optional[float] = None


@dataclass
class AssemblyStats:
    name: str
    length: int
    n_count: int
    n_percent: float
    gc_count: int
    gc_percent: float
    at_percent: float
    num_seqs: int = 1


@dataclass
class GateResult:
    """
    Outcome of one QC gate. A WARN never aborts the pipeline.
    """
    name: str
    status: GateStatus
    observed: Any
    threshold: Any
    message: str

    @property
    def passed(self) -> bool:
        return self.status == GateStatus.PASS


@dataclass
class VariantCounts:
    total: int = 0
    retained: int = 0
    rejected_by: Dict[str, int] = field(default_factory=dict)


@dataclass
class QCReport:
    """
    Everything the text QC report shows. Sections stay empty until reached.
    """
    sample: Sample
    config: AssemblyConfig
    capabilities: FrozenSet[Capability] = frozenset()
    analysis_date: str = ""
    input_stats: Dict[str, List[str]] = field(default_factory=dict)
    alignment: Optional[AlignmentSummary] = None
    average_coverage: Optional[float] = None
    reference_length: Optional[int] = None
    covered_bases: Optional[int] = None
    breadth: Optional[float] = None
    coverage_gates: List[GateResult] = field(default_factory=list)
    variants: Optional[VariantCounts] = None
    masked_intervals: Optional[int] = None
    assembly_stats: Optional[AssemblyStats] = None
    enhanced_stats: List[str] = field(default_factory=list)
    validation_gates: List[GateResult] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)
    files: Dict[str, Path] = field(default_factory=dict)
    completed: bool = False

    @property
    def gates(self) -> List[GateResult]:
        return self.coverage_gates + self.validation_gates

    @property
    def overall_passed(self) -> bool:
        return bool(self.gates) and all(g.passed for g in self.gates)


@dataclass
class SampleResult:
    """
    Structured result record written next to each consensus for the batch layer.
    """
    sample: str
    consensus: str
    length: int
    n_count: int
    n_percent: float
    gc_percent: float
    at_percent: float
    average_coverage: Optional[float]
    breadth: Optional[float]
    gates: Dict[str, str]
    qc_passed: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ManifestRow:
    """
    One sample line of a batch manifest. Fields absent from a short line are None.
    """
    line_number: int
    name: str
    r1: Optional[Path]
    r2: Optional[Path]
    reference_name: Optional[str]


@dataclass
class BatchResult:
    """
    Per-row outcome of a batch run.
    """
    name: str
    status: BatchStatus
    reason: Optional[FailureReason] = None
    length: Optional[int] = None
    at_content: str = "Unknown"
    coverage: str = "Unknown"
    completeness: str = "Unknown"
    consensus: Optional[Path] = None
    invoked: bool = False

    def summary_fields(self) -> Tuple[str, str, str, str, str, str]:
        if self.status == BatchStatus.SUCCESS:
            return (self.name, self.status.value, str(self.length),
                    self.at_content, self.coverage, self.completeness)
        return (self.name, self.status.value, self.reason.value, "-", "-", "-")
