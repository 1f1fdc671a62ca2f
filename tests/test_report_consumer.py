"""
Tests for installing packages from a report.
"""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from gex.utils.models import PackageInfo, PackageManager, Report
from gex.utils.package_manager import PackageManagerError
from gex.utils.report_consumer import (
    ReportInstaller,
    compute_install_plan,
    format_report_listing,
    format_spec,
)


def _full_report():
    return Report(
        global_packages=[PackageInfo(name="typescript", version="5.6.2")],
        local_dependencies=[
            PackageInfo(name="chalk", version="5.3.0"),
            PackageInfo(name="commander", version="12.1.0"),
        ],
        local_dev_dependencies=[PackageInfo(name="vitest", version="2.1.1")],
    )


def test_format_spec():
    """Test install specifiers with and without a version."""
    # Check results
    assert format_spec(PackageInfo(name="chalk", version="5.3.0")) == "chalk@5.3.0"
    assert format_spec(PackageInfo(name="@types/node", version="22.5.0")) == "@types/node@22.5.0"
    assert format_spec(PackageInfo(name="chalk", version="")) == "chalk"


def test_empty_report_installs_nothing():
    """Test that an empty report runs no command and reports nothing to install."""
    runner = MagicMock()
    logger = MagicMock()
    installer = ReportInstaller(cwd="/project", runner=runner, logger=logger)

    result = installer.install_from_report(Report())

    # Check results
    assert compute_install_plan(Report()).is_empty
    assert result is False
    runner.assert_not_called()
    logger.info.assert_called_with("No packages to install from report.")


def test_npm_install_order_and_batching():
    """Test that npm installs run global, local then dev with batched specs."""
    runner = MagicMock()
    installer = ReportInstaller(cwd="/project", package_manager=PackageManager.NPM, runner=runner)

    result = installer.install_from_report(_full_report(), show_progress=False)

    # Check results
    assert result is True
    assert [call.args for call in runner.call_args_list] == [
        (["npm", "i", "-g", "typescript@5.6.2"], "/project"),
        (["npm", "i", "chalk@5.3.0", "commander@12.1.0"], "/project"),
        (["npm", "i", "-D", "vitest@2.1.1"], "/project"),
    ]


def test_bun_install_commands():
    """Test the Bun command table."""
    runner = MagicMock()
    installer = ReportInstaller(cwd="/project", package_manager="bun", runner=runner)

    installer.install_from_report(_full_report(), show_progress=False)

    # Check results
    assert [call.args[0] for call in runner.call_args_list] == [
        ["bun", "add", "-g", "typescript@5.6.2"],
        ["bun", "add", "chalk@5.3.0", "commander@12.1.0"],
        ["bun", "add", "-d", "vitest@2.1.1"],
    ]


def test_empty_categories_are_skipped():
    """Test that only categories with packages produce a command."""
    runner = MagicMock()
    report = Report(local_dev_dependencies=[PackageInfo(name="eslint", version="")])
    installer = ReportInstaller(cwd="/project", runner=runner)

    installer.install_from_report(report, show_progress=False)

    # Check results
    runner.assert_called_once_with(["npm", "i", "-D", "eslint"], "/project")


def test_dry_run_runs_nothing():
    """Test that a dry run only logs the commands."""
    runner = MagicMock()
    logger = MagicMock()
    installer = ReportInstaller(cwd="/project", runner=runner, logger=logger)

    result = installer.install_from_report(_full_report(), dry_run=True)

    # Check results
    assert result is True
    runner.assert_not_called()
    messages = [call.args[0] for call in logger.info.call_args_list]
    assert "[DRY RUN] Would run: npm i -g typescript@5.6.2" in messages
    assert "[DRY RUN] Would run: npm i -D vitest@2.1.1" in messages


def test_rate_limiter_throttles_each_command():
    """Test that the injected rate limiter is consulted before every command."""
    runner = MagicMock()
    rate_limiter = MagicMock()
    installer = ReportInstaller(cwd="/project", runner=runner, rate_limiter=rate_limiter)

    installer.install_from_report(_full_report(), show_progress=False)

    # Check results
    assert rate_limiter.throttle.call_count == 3


@patch("subprocess.run")
def test_default_runner_uses_subprocess(mock_run):
    """Test that the default runner calls subprocess.run in the project directory."""
    mock_run.return_value = MagicMock(returncode=0)
    installer = ReportInstaller(cwd="/project")

    installer.install_from_report(Report(global_packages=[PackageInfo(name="npm", version="10.8.0")]),
                                  show_progress=False)

    # Check results
    mock_run.assert_called_once_with(
        ["npm", "i", "-g", "npm@10.8.0"],
        cwd="/project",
        check=True,
        capture_output=True,
        text=True
    )


def test_failed_install_raises():
    """Test that a failing command stops the install with PackageManagerError."""
    runner = MagicMock(side_effect=subprocess.CalledProcessError(1, ["npm"], stderr="E404 not found"))
    installer = ReportInstaller(cwd="/project", runner=runner, logger=MagicMock())

    with pytest.raises(PackageManagerError, match="E404"):
        installer.install_from_report(_full_report(), show_progress=False)

    # Check results
    assert runner.call_count == 1


def test_format_report_listing():
    """Test the printable package listing."""
    listing = format_report_listing(_full_report())

    # Check results
    assert listing.splitlines() == [
        "Global Packages:",
        "- typescript@5.6.2",
        "",
        "Local Dependencies:",
        "- chalk@5.3.0",
        "- commander@12.1.0",
        "",
        "Local Dev Dependencies:",
        "- vitest@2.1.1",
    ]
    assert format_report_listing(Report()) == "(no packages found in report)"


def test_range_and_protocol_versions_become_specs():
    """Test that non-exact versions are installed as written."""
    report = Report(local_dependencies=[
        PackageInfo(name="lodash", version="^4.17.21"),
        PackageInfo(name="shared", version="workspace:*"),
        PackageInfo(name="forked", version="github:user/repo"),
    ])

    plan = compute_install_plan(report, logger=MagicMock())

    # Check results
    assert plan.local_specs == ["lodash@^4.17.21", "shared@workspace:*", "forked@github:user/repo"]
    assert not plan.is_empty


def test_report_with_only_a_range_version_is_not_empty():
    """Test that a single range entry still produces an install step."""
    report = Report(local_dependencies=[PackageInfo(name="lodash", version="^4.17.21")])

    plan = compute_install_plan(report, logger=MagicMock())

    # Check results
    assert not plan.is_empty
    assert plan.specs_for("local") == ["lodash@^4.17.21"]


def test_entries_that_look_like_flags_are_skipped():
    """Test that names or versions starting with a dash never reach the command line."""
    report = Report(local_dependencies=[
        PackageInfo(name="chalk", version="5.3.0"),
        PackageInfo(name="--registry=http://example.invalid", version=""),
        PackageInfo(name="zod", version="--force"),
    ])
    logger = MagicMock()

    plan = compute_install_plan(report, logger=logger)

    # Check results
    assert plan.local_specs == ["chalk@5.3.0"]
    assert logger.warning.call_count == 2
