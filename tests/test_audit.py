"""
Tests for audit orchestration.
"""

import json
import os
import tempfile
from unittest.mock import MagicMock, patch

import pytest

import gex
from gex.utils.audit import default_report_file, outdated_handlers, produce_report, render_report
from gex.utils.models import PackageInfo, Report
from gex.utils.package_manager import PackageManagerError
from gex.utils.validators import ValidationError


def test_produce_local_report():
    """Test a local audit with npm-style output and manifest extras."""
    client = MagicMock()
    client.list_tree.return_value = {
        "dependencies": {"chalk": {"version": "5.3.0", "path": "/p/chalk"}},
        "devDependencies": {"vitest": {"version": "2.1.1"}},
    }

    with tempfile.TemporaryDirectory() as temp_dir:
        with open(os.path.join(temp_dir, "package.json"), "w", encoding="utf-8") as f:
            json.dump({
                "name": "demo-app",
                "version": "1.0.0",
                "description": "Demo",
                "bugs": {"url": "https://example.com/issues"},
            }, f)

        report, extras = produce_report("local", cwd=temp_dir, omit_dev=True, client=client, logger=MagicMock())

    # Check results
    client.list_tree.assert_called_once_with(global_=False, omit_dev=True, cwd=temp_dir, depth0=True)
    client.root_global.assert_not_called()
    assert report.project_name == "demo-app"
    assert report.tool_version == gex.__version__
    assert [pkg.name for pkg in report.local_dependencies] == ["chalk"]
    assert report.tree is None
    assert extras["project_description"] == "Demo"
    assert extras["project_bugs"] == "https://example.com/issues"


def test_produce_global_report_with_npm():
    """Test a global audit resolving fallback paths from npm root -g."""
    client = MagicMock()
    client.list_tree.return_value = {"dependencies": {"typescript": {"version": "5.6.2"}}}
    client.root_global.return_value = "/g/node_modules"

    report, extras = produce_report("global", manager="npm", full_tree=True, client=client,
                                    tool_version="9.9.9", logger=MagicMock())

    # Check results
    assert client.list_tree.call_args.kwargs["global_"] is True
    assert client.list_tree.call_args.kwargs["depth0"] is False
    assert report.global_packages == [
        PackageInfo(name="typescript", version="5.6.2", resolved_path=os.path.join("/g/node_modules", "typescript"))
    ]
    assert report.tree is not None
    assert report.tool_version == "9.9.9"
    assert extras["project_description"] is None


def test_global_root_failure_is_tolerated():
    """Test that a failing npm root -g still produces a report."""
    client = MagicMock()
    client.list_tree.return_value = {"dependencies": {"npm": {"version": "10.8.0", "path": "/usr/lib/node_modules/npm"}}}
    client.root_global.side_effect = PackageManagerError("npm root -g failed: boom")
    logger = MagicMock()

    report, _ = produce_report("global", client=client, logger=logger)

    # Check results
    assert report.global_packages[0].resolved_path == "/usr/lib/node_modules/npm"
    logger.warning.assert_called_once()


def test_bun_global_root_comes_from_tree():
    """Test that the Bun backend uses the node_modules path it listed."""
    client = MagicMock()
    client.list_tree.return_value = {
        "dependencies": {"cowsay": {"version": "1.6.0"}},
        "node_modules_path": "/bun/global/node_modules",
    }

    report, _ = produce_report("global", manager="bun", client=client, logger=MagicMock())

    # Check results
    client.root_global.assert_not_called()
    assert report.global_packages[0].resolved_path == os.path.join("/bun/global/node_modules", "cowsay")


def test_render_report_dispatch():
    """Test choosing the renderer from the output format."""
    report = Report(local_dependencies=[PackageInfo(name="chalk", version="5.3.0")])

    # Check results
    assert json.loads(render_report(report, "json"))["local_dependencies"][0]["name"] == "chalk"
    assert render_report(report, "md").startswith("# GEX Report")
    assert render_report(report, "html").startswith("<!DOCTYPE html>")


def test_default_report_file():
    """Test the default report file name per backend."""
    # Check results
    assert default_report_file("npm") == "gex-report.json"
    assert default_report_file("bun") == "bun-report.json"


def test_render_report_rejects_unknown_format():
    """Test that an unsupported format raises ValidationError."""
    with pytest.raises(ValidationError):
        render_report(Report(), "pdf")


@patch("subprocess.run")
def test_npm_outdated_handlers(mock_run):
    """Test that npm checks and updates go through npm outdated and npm update."""
    mock_run.return_value = MagicMock(
        returncode=0,
        stdout=json.dumps({"chalk": {"current": "4.1.2", "wanted": "4.1.2", "latest": "5.3.0"}}),
    )

    fetch_outdated, update_runner = outdated_handlers("global", "npm", cwd="/p")
    outdated = fetch_outdated()
    update_runner(["chalk"])

    # Check results
    assert [entry.name for entry in outdated] == ["chalk"]
    commands = [call.args[0] for call in mock_run.call_args_list]
    assert commands == [["npm", "outdated", "--json", "--global"], ["npm", "update", "-g", "chalk"]]


@patch("subprocess.run")
def test_bun_outdated_handlers_compare_with_registry(mock_run):
    """Test that Bun packages are compared against npm view and cannot be updated."""
    mock_run.return_value = MagicMock(returncode=0, stdout='"5.3.0"')

    with tempfile.TemporaryDirectory() as temp_dir:
        pkg_dir = os.path.join(temp_dir, "node_modules", "chalk")
        os.makedirs(pkg_dir)
        with open(os.path.join(pkg_dir, "package.json"), "w", encoding="utf-8") as f:
            json.dump({"name": "chalk", "version": "4.1.2"}, f)
        with open(os.path.join(temp_dir, "package.json"), "w", encoding="utf-8") as f:
            json.dump({"dependencies": {"chalk": "^4.1.2"}}, f)

        fetch_outdated, update_runner = outdated_handlers("local", "bun", cwd=temp_dir)
        outdated = fetch_outdated()

    # Check results
    assert update_runner is None
    assert [(entry.name, entry.current, entry.latest) for entry in outdated] == [("chalk", "4.1.2", "5.3.0")]
