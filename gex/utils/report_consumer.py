"""
Report consumer for GEX.

Turns a parsed report back into install commands. Each package category
(global, local, dev) becomes at most one package-manager invocation with all
of its specs batched, and the invocations always run in that order.
"""

import logging
import os
import subprocess
from dataclasses import dataclass, field
from typing import List

from tqdm import tqdm

from gex.utils.models import PackageManager
from gex.utils.package_manager import BINARIES, INSTALL_COMMANDS, PackageManagerError
from gex.utils.rate_limiter import NullRateLimiter

INSTALL_ORDER = (
    ("global", "Installing global"),
    ("local", "Installing local deps"),
    ("dev", "Installing local devDeps"),
)

LISTING_SECTIONS = (
    ("global_packages", "Global Packages:"),
    ("local_dependencies", "Local Dependencies:"),
    ("local_dev_dependencies", "Local Dev Dependencies:"),
)


def format_spec(pkg):
    """
    Args:
        pkg (PackageInfo): Package from a report.

    Returns:
        str: "name@version", or just "name" when the version is empty.
    """
    return pkg.spec


@dataclass
class InstallPlan:
    """Install specs per category, in report order."""

    global_specs: List[str] = field(default_factory=list)
    local_specs: List[str] = field(default_factory=list)
    dev_specs: List[str] = field(default_factory=list)

    @property
    def is_empty(self):
        return not (self.global_specs or self.local_specs or self.dev_specs)

    def specs_for(self, category):
        return getattr(self, f"{category}_specs")


def _installable(packages, logger):
    # Anything starting with "-" would be read as a package-manager flag
    for pkg in packages:
        if not pkg.name or pkg.name.startswith("-") or pkg.version.startswith("-"):
            logger.warning(f"Skipping {pkg.name!r} from report: not a valid install target")
            continue
        yield pkg


def compute_install_plan(report, logger=None):
    """
    Derive install specs from a report.

    Every entry becomes a spec, including range and protocol versions such
    as "^4.17.21" or "workspace:*". Only names or versions that would be
    parsed as command-line flags are skipped, with a warning.

    Args:
        report (Report): Parsed report.
        logger (logging.Logger, optional): Logger instance.

    Returns:
        InstallPlan: One spec list per category.
    """
    logger = logger or logging.getLogger(__name__)
    return InstallPlan(
        global_specs=[format_spec(pkg) for pkg in _installable(report.global_packages, logger)],
        local_specs=[format_spec(pkg) for pkg in _installable(report.local_dependencies, logger)],
        dev_specs=[format_spec(pkg) for pkg in _installable(report.local_dev_dependencies, logger)],
    )


def format_report_listing(report):
    """
    Human-readable listing of the packages in a report.

    Returns:
        str: One block per non-empty category, or "(no packages found in report)".
    """
    lines = []
    for attribute, title in LISTING_SECTIONS:
        packages = getattr(report, attribute)
        if not packages:
            continue
        if lines:
            lines.append("")
        lines.append(title)
        lines.extend(f"- {pkg.name}@{pkg.version}" for pkg in packages)

    if not lines:
        lines.append("(no packages found in report)")
    return "\n".join(lines)


def build_install_command(package_manager, category, specs):
    """
    Args:
        package_manager (PackageManager or str): Backend.
        category (str): "global", "local" or "dev".
        specs (list): Install specs.

    Returns:
        list: Full argument vector, e.g. ['npm', 'i', '-D', 'vitest@2.1.1'].
    """
    manager = PackageManager(package_manager)
    return [BINARIES[manager]] + INSTALL_COMMANDS[manager][category] + list(specs)


def run_command(cmd, cwd):
    """Default command runner."""
    return subprocess.run(
        cmd,
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True
    )


class ReportInstaller:
    """
    Installs the packages listed in a report.
    """

    def __init__(self, cwd=None, package_manager=PackageManager.NPM, rate_limiter=None,
                 runner=None, logger=None):
        """
        Initialize the installer.

        Args:
            cwd (str or Path, optional): Directory the install commands run in.
            package_manager (PackageManager or str): Backend whose command table is used.
            rate_limiter (RateLimiter, optional): Throttle applied before every command.
            runner (callable, optional): Called as runner(cmd, cwd); defaults to subprocess.run.
            logger (logging.Logger, optional): Logger instance. If None, a new logger is created.
        """
        self.cwd = os.fspath(cwd) if cwd else os.getcwd()
        self.package_manager = PackageManager(package_manager)
        self.rate_limiter = rate_limiter or NullRateLimiter()
        self.runner = runner or run_command
        self.logger = logger or logging.getLogger(__name__)

    def planned_commands(self, plan):
        """
        Returns:
            list: (label, category, cmd) for every non-empty category, in install order.
        """
        commands = []
        for category, label in INSTALL_ORDER:
            specs = plan.specs_for(category)
            if specs:
                commands.append((label, category, build_install_command(self.package_manager, category, specs)))
        return commands

    def install_from_report(self, report, dry_run=False, show_progress=None):
        """
        Install every package in the report.

        Args:
            report (Report): Parsed report.
            dry_run (bool): Log the commands instead of running them.
            show_progress (bool, optional): Force the progress bar on or off.
                By default it is shown only on a terminal.

        Returns:
            bool: False when the report lists nothing to install, True otherwise.

        Raises:
            PackageManagerError: If an install command fails.
        """
        plan = compute_install_plan(report, logger=self.logger)
        if plan.is_empty:
            self.logger.info("No packages to install from report.")
            return False

        commands = self.planned_commands(plan)

        if dry_run:
            for label, category, cmd in commands:
                self.logger.info(f"[DRY RUN] Would run: {' '.join(cmd)}")
            return True

        disable = None if show_progress is None else not show_progress
        for label, category, cmd in tqdm(commands, desc="Installing", unit="step", disable=disable):
            specs = plan.specs_for(category)
            self.logger.info(f"{label}: {' '.join(specs)}")
            self.rate_limiter.throttle()
            try:
                self.runner(cmd, self.cwd)
            except subprocess.CalledProcessError as e:
                stderr = e.stderr.strip() if isinstance(e.stderr, str) else ""
                message = stderr or str(e)
                self.logger.error(f"Failed to run {' '.join(cmd)}: {message}")
                raise PackageManagerError(f"{' '.join(cmd[:2])} failed: {message}")
            except OSError as e:
                raise PackageManagerError(f"Failed to run {cmd[0]}: {e}")

        self.logger.info("Finished installing packages from report.")
        return True


def install_from_report(report, cwd=None, package_manager=PackageManager.NPM, dry_run=False,
                        rate_limiter=None, runner=None, logger=None):
    """Convenience wrapper around ReportInstaller.install_from_report."""
    installer = ReportInstaller(
        cwd=cwd,
        package_manager=package_manager,
        rate_limiter=rate_limiter,
        runner=runner,
        logger=logger,
    )
    return installer.install_from_report(report, dry_run=dry_run)
