"""
Report generation module for MitoAssembler.
Renders the text QC report, the assembly statistics file, the interactive
coverage dashboard and the batch summary tables.
"""

import json
import plotly.graph_objects as go
from jinja2 import Environment, FileSystemLoader
from pathlib import Path
from typing import List, Optional

import pandas as pd

from src.mito_assembler.core.models import (
    AssemblyStats,
    BatchResult,
    BatchStatus,
    Capability,
    CoverageProfile,
    QCReport,
    SampleResult,
)

SUMMARY_COLUMNS = ['Sample_Name', 'Status', 'Assembly_Length', 'AT_Content', 'Coverage', 'Completeness']

def _environment() -> Environment:
    template_dir = Path(__file__).parent / 'templates'
    env = Environment(loader=FileSystemLoader(str(template_dir)), trim_blocks=True, lstrip_blocks=True)
    env.filters['fmt'] = lambda value, spec: format(value, spec) if value is not None else "NA"
    return env

def generate_qc_report(report: QCReport, output_path: Path):
    """
    Render the plain-text QC report.

    :param report: QCReport with the sections reached so far.
    :param output_path: Destination of the report.
    """
    template = _environment().get_template('qc_report.txt')
    content = template.render(
        report=report,
        config=report.config,
        sample=report.sample,
        blast_available=Capability.CONTAMINATION_SCREEN in report.capabilities,
    )
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(content)

def write_assembly_stats(stats: AssemblyStats, fasta_path: Path, output_path: Path, enhanced: List[str] = None):
    """
    Write the assembly statistics file. The seqkit table is appended when available.

    :param stats: Statistics computed from the final consensus.
    :param fasta_path: Consensus the statistics describe.
    :param output_path: Destination file.
    :param enhanced: Raw `seqkit stats` lines, if that capability is present.
    """
    lines = [
        "=== ASSEMBLY STATISTICS ===",
        f"file: {fasta_path}",
        f"num_seqs: {stats.num_seqs}",
        f"sum_len: {stats.length}",
        f"N_count: {stats.n_count}",
        f"N_percent: {stats.n_percent:.2f}",
        f"GC_count: {stats.gc_count}",
        f"GC_percent: {stats.gc_percent:.2f}",
        f"AT_percent: {stats.at_percent:.2f}",
    ]
    if enhanced:
        lines.append("")
        lines.append("=== SEQKIT STATISTICS ===")
        lines.extend(enhanced)
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write("\n".join(lines) + "\n")

def write_sample_result(result: SampleResult, output_path: Path):
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(result.to_dict(), f, indent=2)

def generate_coverage_dashboard(
    profile: CoverageProfile,
    min_depth: int,
    sample_name: str,
    output_path: Path,
    low_depth_regions: Optional[int] = None,
):
    """
    Write an interactive HTML page with the per-base depth track.

    :param profile: Per-base depth over the reference.
    :param min_depth: Depth threshold drawn as a reference line.
    :param sample_name: Sample identifier for the title.
    :param output_path: Destination HTML file.
    :param low_depth_regions: Number of masked intervals, if masking ran.
    """
    fig = go.Figure()
    if profile.reference_length:
        fig.add_trace(go.Scatter(
            x=profile.positions.tolist(),
            y=profile.depths.tolist(),
            mode='lines',
            name='Depth',
            line=dict(color='steelblue', width=1),
        ))
    fig.add_hline(y=min_depth, line_width=2, line_dash="dash", line_color="red",
                  annotation_text=f"Min depth: {min_depth}")
    fig.update_layout(title=f"Per-base Depth: {sample_name}", xaxis_title="Reference Position (bp)",
                      yaxis_title="Depth")

    template = _environment().get_template('coverage_report.html')
    html_content = template.render(
        sample_name=sample_name,
        depth_plot_json=fig.to_json(),
        reference_length=profile.reference_length,
        min_depth=min_depth,
        low_depth_regions=low_depth_regions,
    )
    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(html_content)

def write_batch_summary(results: List[BatchResult], summary_path: Path, failed_path: Path):
    """
    Write the batch summary TSV and the failed sample list.

    :param results: One BatchResult per manifest row.
    :param summary_path: Tab-separated summary destination.
    :param failed_path: Failed sample list destination.
    """
    df_summary = pd.DataFrame([r.summary_fields() for r in results], columns=SUMMARY_COLUMNS)
    df_summary.to_csv(summary_path, sep='\t', index=False, encoding='utf-8')

    with open(failed_path, 'w', encoding='utf-8') as f:
        f.write("# Failed samples:\n")
        for r in results:
            if r.status == BatchStatus.FAILED:
                f.write(f"{r.name}: {r.reason.description}\n")
