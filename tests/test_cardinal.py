#!/usr/bin/env python
from __future__ import annotations
import pytest # type: ignore
from cardinal.cardinal import main, parse_args

def run_cli(capsys, store, *args):
    code = main(["--store", str(store), *args])
    out, err = capsys.readouterr()
    return code, out.strip(), err

@pytest.mark.quick
class TestCommandLineQuick:
    """Quick tests for the cardinal command line."""

    def test_parse_args_defaults(self, tmp_path):
        args = parse_args(["--store", str(tmp_path), "count", "k"])
        assert args.precision == 14
        assert args.seed == 42
        assert args.add_reply == "boolean"
        assert args.keys == ["k"]

    def test_store_required(self):
        with pytest.raises(SystemExit) as excinfo:
            parse_args(["count", "k"])
        assert excinfo.value.code == 2

    def test_add_and_count(self, capsys, tmp_path):
        assert run_cli(capsys, tmp_path, "add", "visitors", "alice", "bob", "carol")[:2] == (0, "1")
        assert run_cli(capsys, tmp_path, "add", "visitors", "bob")[:2] == (0, "0")
        assert run_cli(capsys, tmp_path, "count", "visitors")[:2] == (0, "3")

    def test_merge_and_keys(self, capsys, tmp_path):
        run_cli(capsys, tmp_path, "add", "a", "v1", "v2", "v3")
        run_cli(capsys, tmp_path, "add", "b", "v4")
        assert run_cli(capsys, tmp_path, "count", "a", "b")[:2] == (0, "4")
        assert run_cli(capsys, tmp_path, "merge", "all", "a", "b")[0] == 0
        assert run_cli(capsys, tmp_path, "count", "all")[:2] == (0, "4")
        assert run_cli(capsys, tmp_path, "keys")[1].split() == ["a", "all", "b"]

    def test_delete(self, capsys, tmp_path):
        run_cli(capsys, tmp_path, "add", "a", "v1")
        assert run_cli(capsys, tmp_path, "delete", "a")[:2] == (0, "1")
        assert run_cli(capsys, tmp_path, "delete", "a")[:2] == (0, "0")

    def test_registers_reply_and_packing(self, capsys, tmp_path):
        code, out, _ = run_cli(capsys, tmp_path, "--reply", "registers", "--packing", "packed",
                               "add", "k", "x", "y")
        assert (code, out) == (0, "2")
        assert run_cli(capsys, tmp_path, "count", "k")[:2] == (0, "2")

    def test_error_exit_code(self, capsys, tmp_path):
        run_cli(capsys, tmp_path, "--precision", "8", "add", "small", "v")
        run_cli(capsys, tmp_path, "add", "large", "v")
        code, _, err = run_cli(capsys, tmp_path, "count", "small", "large")
        assert code == 1
        assert "different precisions" in err

    def test_invalid_precision(self, capsys, tmp_path):
        code, _, err = run_cli(capsys, tmp_path, "--precision", "30", "count", "k")
        assert code == 1
        assert "Precision" in err
