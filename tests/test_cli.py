import pytest
from src.mito_assembler import main as single
from src.mito_assembler import batch

def exit_code(entry, argv):
    with pytest.raises(SystemExit) as excinfo:
        entry(argv)
    return excinfo.value.code

def test_no_arguments_prints_usage(capsys):
    assert exit_code(single.main, []) == 0
    assert "--r1" in capsys.readouterr().out

def test_help_exits_zero(capsys):
    assert exit_code(single.main, ["-h"]) == 0
    assert exit_code(single.main, ["--help"]) == 0

def test_missing_required_arguments_exit_one(capsys):
    assert exit_code(single.main, ["--r1", "a.fq", "--r2", "b.fq"]) == 1
    assert "required" in capsys.readouterr().err

def test_unknown_flag_exits_one():
    assert exit_code(single.main, ["--r1", "a", "--r2", "b", "--ref", "r", "--prefix", "p", "--bogus"]) == 1

def test_invalid_configuration_exits_one(capsys):
    argv = ["--r1", "a", "--r2", "b", "--ref", "r", "--prefix", "p", "--min-breadth", "1.5"]
    assert exit_code(single.main, argv) == 1
    assert "min_breadth" in capsys.readouterr().err

def test_missing_input_file_exits_one(tmp_path):
    argv = ["--r1", str(tmp_path / "missing_R1.fq"), "--r2", str(tmp_path / "missing_R2.fq"),
            "--ref", str(tmp_path / "ref.fasta"), "--prefix", "p", "--outdir", str(tmp_path / "out")]
    assert exit_code(single.main, argv) == 1
    log_text = (tmp_path / "out" / "p_log.txt").read_text()
    assert "File not found" in log_text

def test_sensitivity_accepts_bare_preset():
    args = single.build_parser().parse_args(
        ["--r1", "a", "--r2", "b", "--ref", "r", "--prefix", "p", "--sensitivity", "very-sensitive"]
    )
    assert args.sensitivity == "--very-sensitive"

def test_species_alias_and_defaults():
    args = single.build_parser().parse_args(["--r1", "a", "--r2", "b", "--ref", "r", "--species", "p"])
    assert args.prefix == "p"
    assert args.min_cov == 10
    assert args.min_breadth == 0.95
    assert args.max_n_percent == 5

def test_batch_defaults():
    args = batch.build_parser().parse_args(["--sample-list", "s.txt", "--ref-dir", "refs"])
    assert args.min_cov == 20
    assert args.min_breadth == 0.98
    assert args.max_n_percent == 2
    assert args.parallel_jobs == 1
    assert args.threads == 4

def test_batch_no_arguments_prints_usage(capsys):
    assert exit_code(batch.main, []) == 0
    assert "--sample-list" in capsys.readouterr().out

def test_batch_missing_sample_list_exits_one(tmp_path):
    argv = ["--sample-list", str(tmp_path / "none.txt"), "--ref-dir", str(tmp_path)]
    assert exit_code(batch.main, argv) == 1

def test_batch_rejects_zero_parallel_jobs(tmp_path):
    manifest = tmp_path / "s.txt"
    manifest.write_text("")
    argv = ["--sample-list", str(manifest), "--ref-dir", str(tmp_path), "--parallel-jobs", "0"]
    assert exit_code(batch.main, argv) == 1

def test_sensitivity_accepts_dashed_preset_after_space():
    args = single.build_parser().parse_args(
        ["--r1", "a", "--r2", "b", "--ref", "r", "--prefix", "p", "--sensitivity", "--very-sensitive-local",
         "--threads", "2"]
    )
    assert args.sensitivity == "--very-sensitive-local"
    assert args.threads == 2

def test_batch_sensitivity_accepts_dashed_preset_after_space():
    args = batch.build_parser().parse_args(
        ["--sample-list", "s.txt", "--ref-dir", "refs", "--sensitivity", "--sensitive"]
    )
    assert args.sensitivity == "--sensitive"

def test_sensitivity_without_value_is_usage_error():
    argv = ["--r1", "a", "--r2", "b", "--ref", "r", "--prefix", "p", "--sensitivity", "--threads", "2"]
    assert exit_code(single.main, argv) == 1

def test_rerun_replaces_previous_log(tmp_path):
    outdir = tmp_path / "out"
    outdir.mkdir()
    (outdir / "p_log.txt").write_text("stale line from an earlier run\n")
    argv = ["--r1", str(tmp_path / "missing_R1.fq"), "--r2", str(tmp_path / "missing_R2.fq"),
            "--ref", str(tmp_path / "ref.fasta"), "--prefix", "p", "--outdir", str(outdir)]
    assert exit_code(single.main, argv) == 1
    log_text = (outdir / "p_log.txt").read_text()
    assert "stale line" not in log_text
    assert "File not found" in log_text
