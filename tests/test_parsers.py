import gzip
import pytest
from pathlib import Path
from Bio import SeqIO
from src.mito_assembler.core.exceptions import ManifestError
from src.mito_assembler.parsers.depth_parser import parse_depth
from src.mito_assembler.parsers.vcf_parser import parse_vcf
from src.mito_assembler.parsers.bowtie2_parser import parse_bowtie2_summary
from src.mito_assembler.parsers.manifest_parser import parse_manifest
from src.mito_assembler.parsers.fasta_parser import rewrite_header, parse_consensus_stats, concatenate_fasta

VCF_TEXT = """##fileformat=VCFv4.2
##contig=<ID=chrM,length=16569>
##INFO=<ID=DP,Number=1,Type=Integer,Description="Raw read depth">
##FORMAT=<ID=GT,Number=1,Type=String,Description="Genotype">
##FORMAT=<ID=PL,Number=G,Type=Integer,Description="Phred-scaled genotype likelihoods">
##FORMAT=<ID=DP,Number=1,Type=Integer,Description="Number of high-quality bases">
##FORMAT=<ID=AD,Number=R,Type=Integer,Description="Allelic depths">
##FORMAT=<ID=ADF,Number=R,Type=Integer,Description="Allelic depths on the forward strand">
##FORMAT=<ID=ADR,Number=R,Type=Integer,Description="Allelic depths on the reverse strand">
#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO\tFORMAT\tsample1
chrM\t73\t.\tA\tG\t225.4\t.\tDP=40\tGT:PL:DP:AD:ADF:ADR\t1:255,0:40:1,39:1,20:0,19
chrM\t310\trs#1\tT\tTC\t45\t.\tDP=12\tGT:PL:DP:AD:ADF:ADR\t1:75,0:12:2,10:1,10:1,0
chrM\t16519\t.\tT\tC\t.\t.\tDP=0\tGT:DP:AD\t.:0:.
"""

BOWTIE2_STDERR = """Warning: skipping read 'r17' because it was < 2 characters long
10000 reads; of these:
  10000 (100.00%) were paired; of these:
    650 (6.50%) aligned concordantly 0 times
    8823 (88.23%) aligned concordantly exactly 1 time
    527 (5.27%) aligned concordantly >1 times
    ----
    650 pairs aligned concordantly 0 times; of these:
      34 (5.23%) aligned discordantly 1 time
    ----
    616 pairs aligned 0 times concordantly or discordantly; of these:
      1232 mates make up the pairs; of these:
        660 (53.57%) aligned 0 times
        571 (46.35%) aligned exactly 1 time
        1 (0.08%) aligned >1 times
96.70% overall alignment rate
"""

def test_parse_depth(tmp_path):
    depth_path = tmp_path / "cov.txt"
    depth_path.write_text("chrM\t1\t0\nchrM\t2\t15\nchrM\t3\t30\n")

    profile = parse_depth(depth_path)
    assert profile.reference_length == 3
    assert profile.positions.tolist() == [1, 2, 3]
    assert profile.depths.tolist() == [0, 15, 30]
    assert list(profile.contigs) == ['chrM'] * 3

def test_parse_depth_empty_file(tmp_path):
    depth_path = tmp_path / "cov.txt"
    depth_path.write_text("")
    profile = parse_depth(depth_path)
    assert profile.reference_length == 0

def test_parse_vcf_plain(tmp_path):
    vcf_path = tmp_path / "calls.vcf"
    vcf_path.write_text(VCF_TEXT)

    sites = parse_vcf(vcf_path)
    assert len(sites) == 3

    snv = sites[0]
    assert (snv.chrom, snv.pos, snv.ref, snv.alt) == ('chrM', 73, 'A', 'G')
    assert snv.qual == 225.4
    assert snv.depth == 40
    assert (snv.ref_depth, snv.alt_depth) == (1, 39)
    assert (snv.alt_forward, snv.alt_reverse) == (20, 19)

    # A "#" inside a data field is not a comment
    indel = sites[1]
    assert indel.alt == 'TC'
    assert indel.pos == 310
    assert (indel.alt_forward, indel.alt_reverse) == (10, 0)

    # Missing QUAL and allele depths default to zero
    empty = sites[2]
    assert empty.qual == 0.0
    assert empty.depth == 0
    assert empty.alt_depth == 0
    assert empty.alt_fraction == 0.0

def test_parse_vcf_gzipped(tmp_path):
    vcf_path = tmp_path / "calls.vcf.gz"
    with gzip.open(vcf_path, 'wt') as f:
        f.write(VCF_TEXT)
    assert [s.pos for s in parse_vcf(vcf_path)] == [73, 310, 16519]

def test_parse_vcf_header_only(tmp_path):
    vcf_path = tmp_path / "calls.vcf"
    header = [line for line in VCF_TEXT.splitlines() if line.startswith("#")]
    vcf_path.write_text("\n".join(header) + "\n")
    assert parse_vcf(vcf_path) == []

def test_parse_bowtie2_summary():
    summary = parse_bowtie2_summary(BOWTIE2_STDERR)

    assert summary.total_reads == 10000
    assert summary.concordant_once == 8823
    assert summary.concordant_multi == 527
    assert summary.discordant_once == 34
    assert summary.overall_rate == 96.70
    # Summary block kept verbatim, unrelated warnings dropped
    assert summary.lines[0] == "10000 reads; of these:"
    assert summary.lines[-1] == "96.70% overall alignment rate"
    assert not any("Warning" in line for line in summary.lines)

def test_parse_bowtie2_summary_without_summary():
    summary = parse_bowtie2_summary("")
    assert summary.lines == []
    assert summary.total_reads is None
    assert summary.overall_rate is None

def test_parse_manifest_skips_comments_and_blanks(tmp_path):
    manifest = tmp_path / "samples.txt"
    manifest.write_text(
        "# sample\tR1\tR2\treference\n"
        "s1\tdata/s1_R1.fq.gz\tdata/s1_R2.fq.gz\tref1.fasta\n"
        "\n"
        "   \n"
        "s2\tdata/s2_R1.fq.gz\tdata/s2_R2.fq.gz\tref2.fasta\n"
    )
    rows = parse_manifest(manifest)
    assert [r.name for r in rows] == ['s1', 's2']
    assert rows[0].r1 == Path("data/s1_R1.fq.gz")
    assert rows[1].reference_name == 'ref2.fasta'
    assert rows[1].line_number == 5

def test_parse_manifest_keeps_short_rows(tmp_path):
    manifest = tmp_path / "samples.txt"
    manifest.write_text("s1\ta\tb\tref.fa\ns2\ta\tb\ns3\ta\n")
    rows = parse_manifest(manifest)

    # Valid siblings are kept; missing fields are None
    assert [r.name for r in rows] == ['s1', 's2', 's3']
    assert rows[0].reference_name == 'ref.fa'
    assert rows[1].r2 == Path("b")
    assert rows[1].reference_name is None
    assert (rows[2].r2, rows[2].reference_name) == (None, None)

def test_parse_manifest_skips_rows_without_name(tmp_path):
    manifest = tmp_path / "samples.txt"
    manifest.write_text("\ta\tb\tref.fa\ns1\ta\tb\tref.fa\n")
    assert [r.name for r in parse_manifest(manifest)] == ['s1']

def test_parse_manifest_rejects_duplicate_names(tmp_path):
    manifest = tmp_path / "samples.txt"
    manifest.write_text("s1\ta\tb\tref.fa\ns1\tc\td\tref.fa\n")
    with pytest.raises(ManifestError, match="duplicate"):
        parse_manifest(manifest)

def test_rewrite_header(tmp_path):
    fasta = tmp_path / "cons.fasta"
    fasta.write_text(">NC_012920.1 Homo sapiens mitochondrion\nACGTN\nACGT\n")

    rewrite_header(fasta, "sample_A")

    records = list(SeqIO.parse(str(fasta), "fasta"))
    assert len(records) == 1
    assert records[0].id == "sample_A"
    assert str(records[0].seq) == "ACGTNACGT"
    assert fasta.read_text().splitlines()[0] == ">sample_A"

def test_parse_consensus_stats(tmp_path):
    fasta = tmp_path / "cons.fasta"
    fasta.write_text(">s\nGGCCNNAT\n")
    stats = parse_consensus_stats(fasta)
    assert stats.name == "s"
    assert stats.length == 8
    assert stats.n_count == 2
    assert stats.n_percent == 25.0
    assert stats.gc_percent == pytest.approx(66.6667, abs=1e-3)
    assert stats.num_seqs == 1

def test_concatenate_fasta(tmp_path):
    a = tmp_path / "a.fasta"
    b = tmp_path / "b.fasta"
    a.write_text(">a\nAAAA\n")
    b.write_text(">b\nCCCC\n")
    out = tmp_path / "all.fasta"

    assert concatenate_fasta([a, b], out) == 2
    assert [r.id for r in SeqIO.parse(str(out), "fasta")] == ['a', 'b']

def test_concatenate_fasta_no_inputs(tmp_path):
    out = tmp_path / "all.fasta"
    assert concatenate_fasta([], out) == 0
    assert out.exists()
    assert out.read_text() == ""
