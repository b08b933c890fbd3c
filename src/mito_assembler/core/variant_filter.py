"""
Variant filtering for MitoAssembler.
The filter is a conjunction of named terms evaluated in Python and translated
to a bcftools `filter -i` expression only when the external tool is invoked.
"""

from dataclasses import dataclass
from typing import Callable, Iterable, List

from src.mito_assembler.core.models import AssemblyConfig, VariantCounts, VariantSite

MIN_SITE_QUALITY = 30.0

@dataclass(frozen=True)
class FilterTerm:
    """
    One named comparison of the filter and its bcftools rendering.
    """
    name: str
    check: Callable[[VariantSite], bool]
    expression: str

@dataclass(frozen=True)
class VariantFilter:
    """
    Site passes when quality, depth, allele fraction and strand balance all hold.
    """
    min_quality: float = MIN_SITE_QUALITY
    min_depth: int = 10
    min_alt_fraction: float = 0.90
    require_both_strands: bool = True

    @classmethod
    def from_config(cls, config: AssemblyConfig) -> "VariantFilter":
        return cls(min_depth=config.min_depth, min_alt_fraction=config.min_allele_fraction)

    def terms(self) -> List[FilterTerm]:
        terms = [
            FilterTerm(
                "quality",
                lambda s: s.qual >= self.min_quality,
                f"QUAL >= {self.min_quality:g}",
            ),
            FilterTerm(
                "depth",
                lambda s: s.depth >= self.min_depth,
                f"FORMAT/DP[0] >= {self.min_depth}",
            ),
            # Cross-multiplied so zero-depth sites never divide; the depth term rejects them
            FilterTerm(
                "allele_fraction",
                lambda s: s.alt_depth >= self.min_alt_fraction * (s.ref_depth + s.alt_depth),
                f"FORMAT/AD[0:1] >= ({self.min_alt_fraction:g} * (FORMAT/AD[0:0] + FORMAT/AD[0:1]))",
            ),
        ]
        if self.require_both_strands:
            terms.append(FilterTerm(
                "strand_balance",
                lambda s: s.alt_forward > 0 and s.alt_reverse > 0,
                "(FORMAT/ADF[0:1] > 0 && FORMAT/ADR[0:1] > 0)",
            ))
        return terms

    def failed_terms(self, site: VariantSite) -> List[str]:
        """
        Names of the terms a site does not satisfy.
        """
        return [t.name for t in self.terms() if not t.check(site)]

    def accepts(self, site: VariantSite) -> bool:
        return not self.failed_terms(site)

    def to_bcftools_expression(self) -> str:
        return " && ".join(t.expression for t in self.terms())

    def summarize(self, sites: Iterable[VariantSite]) -> VariantCounts:
        """
        Count retained sites and how many sites fail each term.

        :param sites: Called sites before filtering.
        :return: VariantCounts with per-term rejection tallies.
        """
        counts = VariantCounts(rejected_by={t.name: 0 for t in self.terms()})
        for site in sites:
            counts.total += 1
            failed = self.failed_terms(site)
            if not failed:
                counts.retained += 1
            for name in failed:
                counts.rejected_by[name] += 1
        return counts
