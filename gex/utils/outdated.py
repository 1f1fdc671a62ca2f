"""
Outdated-package checks for GEX.

Normalizes `npm outdated --json` output, renders it as a plain-text table
and drives the optional update step.
"""

import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from gex.utils.validators import validate_package_name


@dataclass(frozen=True)
class OutdatedInfo:
    name: str
    current: str = ""
    wanted: str = ""
    latest: str = ""
    type: Optional[str] = None


@dataclass(frozen=True)
class UpdateSelection:
    """Which packages the user asked to update."""

    should_update: bool = False
    update_all: bool = False
    packages: tuple = ()


def _field(info, key):
    value = info.get(key) if isinstance(info, dict) else None
    return str(value) if value else ""


def normalize_outdated(stdout):
    """
    Convert `npm outdated --json` output into OutdatedInfo entries.

    Args:
        stdout (str): Raw command output.

    Returns:
        list: Entries in the order npm printed them ([] for empty or unparsable output).
    """
    if not stdout or not stdout.strip():
        return []
    try:
        data = json.loads(stdout)
    except ValueError:
        return []
    if not isinstance(data, dict):
        return []

    return [
        OutdatedInfo(
            name=name,
            current=_field(info, "current"),
            wanted=_field(info, "wanted"),
            latest=_field(info, "latest"),
            type=_field(info, "type") or None,
        )
        for name, info in data.items()
    ]


def normalize_update_selection(value):
    """
    Interpret the --update option.

    Args:
        value: None (flag absent), True (bare flag) or a string / list of
            comma-separated package names.

    Returns:
        UpdateSelection: The normalized selection.

    Raises:
        ValidationError: If a named package is not a valid package name.
    """
    if value is None or value is False:
        return UpdateSelection()
    if value is True:
        return UpdateSelection(should_update=True, update_all=True)

    raw = value if isinstance(value, (list, tuple)) else [value]
    packages = tuple(
        validate_package_name(part)
        for entry in raw
        for part in str(entry).split(",")
        if part.strip()
    )
    return UpdateSelection(should_update=True, update_all=False, packages=packages)


def format_outdated_table(entries: List[OutdatedInfo]) -> str:
    """
    Render outdated entries as an aligned plain-text table.

    Returns:
        str: Header, dashed rule and one row per entry; blank cells show "-".
    """
    headers = ["Name", "Current", "Wanted", "Latest", "Type"]
    rows = [
        [
            entry.name,
            entry.current or "-",
            entry.wanted or "-",
            entry.latest or "-",
            entry.type or "-",
        ]
        for entry in entries
    ]

    widths = [
        max([len(header)] + [len(row[index]) for row in rows])
        for index, header in enumerate(headers)
    ]

    def format_row(columns):
        return "  ".join(col.ljust(widths[idx]) for idx, col in enumerate(columns))

    lines = [format_row(headers), format_row(["-" * width for width in widths])]
    lines.extend(format_row(row) for row in rows)
    return "\n".join(lines)


def resolve_outdated_with_view(packages, view_version, logger=None):
    """
    Compare installed versions against the registry one package at a time.

    Used for backends without an outdated command.

    Args:
        packages (list): PackageInfo entries that are installed.
        view_version (callable): Returns the latest version for a package name.
        logger (logging.Logger, optional): Logger instance.

    Returns:
        list: OutdatedInfo for every package whose latest version differs.
    """
    logger = logger or logging.getLogger(__name__)
    results = []
    for pkg in packages:
        try:
            latest = view_version(pkg.name)
        except RuntimeError as e:
            logger.warning(f"Could not look up {pkg.name}: {e}")
            continue
        if latest and pkg.version and latest != pkg.version:
            results.append(OutdatedInfo(name=pkg.name, current=pkg.version, wanted=latest, latest=latest))
    return results


def handle_outdated_workflow(check_outdated, selection, context_label, fetch_outdated,
                             update_runner=None, out_file=None, logger=None):
    """
    Run the outdated check and optional update.

    Args:
        check_outdated (bool): Print the outdated table.
        selection (UpdateSelection): Packages to update.
        context_label (str): "local" or "global", used in messages.
        fetch_outdated (callable): Returns the list of OutdatedInfo.
        update_runner (callable, optional): Called with the package names to update.
        out_file (str, optional): Report destination; when set, report generation continues.
        logger (logging.Logger, optional): Logger instance.

    Returns:
        bool: True if the caller should go on to produce a report.
    """
    logger = logger or logging.getLogger(__name__)

    if not check_outdated and not selection.should_update:
        return True

    logger.info("Checking for outdated packages...")
    outdated = fetch_outdated()
    logger.info("Finished checking outdated packages.")

    if check_outdated:
        if not outdated:
            print(f"All {context_label} packages are up to date.")
        else:
            print(format_outdated_table(outdated))

    if selection.should_update and update_runner is not None:
        if selection.update_all:
            to_update = [entry.name for entry in outdated]
        else:
            to_update = list(selection.packages)

        if not to_update:
            if selection.update_all:
                logger.info("No outdated packages to update.")
            else:
                logger.info("No packages were specified for updating.")
        else:
            logger.info(f"Updating packages: {' '.join(to_update)}")
            update_runner(to_update)
            logger.info("Finished updating packages.")

    return bool(out_file)
