"""
Tests for the gex command line.
"""

import json
import os
import subprocess
import tempfile
from unittest.mock import MagicMock, patch

import pytest

from gex.main import main, main_bun, parse_arguments
from gex.utils.models import PackageInfo, Report
from gex.utils.report_renderers import render_json, render_markdown


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("GEX_PACKAGE_MANAGER", "GEX_OUTPUT_FORMAT", "GEX_RATE_LIMIT_MS"):
        monkeypatch.delenv(name, raising=False)


def _npm_ls_result():
    tree = {
        "name": "demo-app",
        "dependencies": {
            "zod": {"version": "3.23.8", "path": "/p/node_modules/zod"},
            "chalk": {"version": "5.3.0", "path": "/p/node_modules/chalk"},
        },
    }
    return MagicMock(returncode=0, stdout=json.dumps(tree))


def _sample_report():
    return Report(
        global_packages=[PackageInfo(name="typescript", version="5.6.2")],
        local_dependencies=[PackageInfo(name="chalk", version="5.3.0")],
    )


def test_local_is_the_default_command():
    """Test that `local` is assumed when no sub-command is given."""
    args = parse_arguments(["-f", "md", "--omit-dev"])

    # Check results
    assert args.command == "local"
    assert args.output_format == "md"
    assert args.omit_dev is True


def test_global_options_before_and_after_command():
    """Test that global flags work on either side of the sub-command."""
    before = parse_arguments(["--package-manager", "bun", "global"])
    after = parse_arguments(["global", "--verbose"])

    # Check results
    assert before.command == "global"
    assert before.package_manager == "bun"
    assert after.verbose is True


def test_option_value_is_not_a_command():
    """Test that an option value spelled like a sub-command does not select it."""
    args = parse_arguments(["-o", "read"])
    cwd_args = parse_arguments(["--cwd", "global", "-f", "md"])

    # Check results
    assert args.command == "local"
    assert args.out_file == "read"
    assert cwd_args.command == "local"
    assert cwd_args.cwd == "global"


@patch("subprocess.run")
def test_local_json_to_stdout(mock_run, capsys):
    """Test printing a local JSON report."""
    mock_run.return_value = _npm_ls_result()

    with tempfile.TemporaryDirectory() as temp_dir:
        exit_code = main(["local", "--cwd", temp_dir])

    # Check results
    assert exit_code == 0
    data = json.loads(capsys.readouterr().out)
    assert [pkg["name"] for pkg in data["local_dependencies"]] == ["chalk", "zod"]
    assert mock_run.call_args.args[0] == ['npm', 'ls', '--json', '--depth=0']


@patch("subprocess.run")
def test_markdown_report_to_file(mock_run, capsys):
    """Test writing a Markdown report to a nested output path."""
    mock_run.return_value = _npm_ls_result()

    with tempfile.TemporaryDirectory() as temp_dir:
        out_file = os.path.join(temp_dir, "reports", "gex.md")
        exit_code = main(["-f", "md", "-o", out_file, "--cwd", temp_dir])

        with open(out_file, "r", encoding="utf-8") as f:
            content = f.read()

    # Check results
    assert exit_code == 0
    assert content.startswith("# GEX Report")
    assert "| chalk | 5.3.0 | /p/node_modules/chalk |" in content
    assert f"Wrote report to {out_file}" in capsys.readouterr().out


@patch("subprocess.run")
def test_package_manager_failure_exits_nonzero(mock_run):
    """Test that a failing package manager gives exit code 1."""
    mock_run.side_effect = OSError("npm not found")

    with tempfile.TemporaryDirectory() as temp_dir:
        exit_code = main(["local", "--cwd", temp_dir])

    # Check results
    assert exit_code == 1


def _npm_outdated_error():
    outdated = {"chalk": {"current": "4.1.2", "wanted": "4.1.2", "latest": "5.3.0", "type": "dependencies"}}
    # npm outdated exits with status 1 when something is outdated
    return subprocess.CalledProcessError(1, ["npm", "outdated", "--json"], output=json.dumps(outdated))


@patch("subprocess.run")
def test_check_outdated_without_out_file_skips_report(mock_run, capsys):
    """Test that -c prints the outdated table and stops without an output file."""
    mock_run.side_effect = _npm_outdated_error()

    with tempfile.TemporaryDirectory() as temp_dir:
        exit_code = main(["local", "-c", "--cwd", temp_dir])

    # Check results
    assert exit_code == 0
    commands = [call.args[0] for call in mock_run.call_args_list]
    assert commands == [["npm", "outdated", "--json"]]
    out = capsys.readouterr().out
    assert "chalk" in out
    assert "5.3.0" in out


@patch("subprocess.run")
def test_check_outdated_with_out_file_writes_report(mock_run):
    """Test that -c together with -o still writes the report."""
    mock_run.side_effect = [_npm_outdated_error(), _npm_ls_result()]

    with tempfile.TemporaryDirectory() as temp_dir:
        out_file = os.path.join(temp_dir, "report.json")
        exit_code = main(["-c", "-o", out_file, "--cwd", temp_dir])

        with open(out_file, "r", encoding="utf-8") as f:
            data = json.load(f)

    # Check results
    assert exit_code == 0
    assert [pkg["name"] for pkg in data["local_dependencies"]] == ["chalk", "zod"]


@patch("subprocess.run")
def test_update_outdated_named_packages(mock_run):
    """Test that -u with names runs npm update for just those packages."""
    mock_run.side_effect = [_npm_outdated_error(), MagicMock(returncode=0, stdout="")]

    exit_code = main(["global", "-u", "chalk"])

    # Check results
    assert exit_code == 0
    assert mock_run.call_args.args[0] == ["npm", "update", "-g", "chalk"]


def test_update_outdated_invalid_name_exits_nonzero():
    """Test that an invalid package name for -u fails with exit code 1."""
    exit_code = main(["local", "-u", "bad name"])

    # Check results
    assert exit_code == 1


def test_read_prints_packages(capsys):
    """Test printing the packages of a JSON report."""
    with tempfile.TemporaryDirectory() as temp_dir:
        report_path = os.path.join(temp_dir, "report.json")
        with open(report_path, "w", encoding="utf-8") as f:
            f.write(render_json(_sample_report()))

        exit_code = main(["read", report_path])

    # Check results
    assert exit_code == 0
    out = capsys.readouterr().out
    assert "Global Packages:" in out
    assert "- typescript@5.6.2" in out
    assert "- chalk@5.3.0" in out


def test_read_missing_report_exits_nonzero():
    """Test that reading a missing report fails with exit code 1."""
    with tempfile.TemporaryDirectory() as temp_dir:
        exit_code = main(["read", "-r", os.path.join(temp_dir, "missing.json")])

    # Check results
    assert exit_code == 1


def test_read_invalid_json_exits_nonzero():
    """Test that a corrupt JSON report fails with exit code 1."""
    with tempfile.TemporaryDirectory() as temp_dir:
        report_path = os.path.join(temp_dir, "report.json")
        with open(report_path, "w", encoding="utf-8") as f:
            f.write("{ invalid")

        exit_code = main(["read", report_path])

    # Check results
    assert exit_code == 1


@patch("subprocess.run")
def test_read_install_dry_run(mock_run, capsys):
    """Test that --dry-run prints the packages and runs nothing."""
    with tempfile.TemporaryDirectory() as temp_dir:
        report_path = os.path.join(temp_dir, "report.md")
        with open(report_path, "w", encoding="utf-8") as f:
            f.write(render_markdown(_sample_report()))

        exit_code = main(["read", report_path, "--install", "--print", "--dry-run"])

    # Check results
    assert exit_code == 0
    mock_run.assert_not_called()
    assert "- chalk@5.3.0" in capsys.readouterr().out


@patch("subprocess.run")
def test_bun_read_install(mock_run):
    """Test that gex-bun installs with bun in the requested directory."""
    mock_run.return_value = MagicMock(returncode=0)

    with tempfile.TemporaryDirectory() as temp_dir:
        report_path = os.path.join(temp_dir, "bun-report.json")
        with open(report_path, "w", encoding="utf-8") as f:
            f.write(render_json(_sample_report()))

        exit_code = main_bun(["read", report_path, "-i", "--cwd", temp_dir])

        # Check results
        assert exit_code == 0
        commands = [call.args[0] for call in mock_run.call_args_list]
        assert commands == [
            ["bun", "add", "-g", "typescript@5.6.2"],
            ["bun", "add", "chalk@5.3.0"],
        ]
        assert mock_run.call_args.kwargs["cwd"] == os.fspath(os.path.realpath(temp_dir))


def test_version_flag(capsys):
    """Test --version."""
    with pytest.raises(SystemExit) as exc_info:
        main(["--version"])

    # Check results
    assert exc_info.value.code == 0
    assert "gex" in capsys.readouterr().out
