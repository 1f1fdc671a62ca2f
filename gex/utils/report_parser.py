"""
Report parsing for GEX.

Reads previously written reports back into Report objects. The JSON reader
is strict about syntax and raises ReportParseError; the Markdown reader is
best-effort and skips anything it cannot make sense of.
"""

import json
import logging
import re
from pathlib import Path

from gex.utils.models import PACKAGE_LIST_FIELDS, PackageInfo, Report, UNKNOWN_TOOL_VERSION
from gex.utils.report_renderers import MARKDOWN_TITLE, SECTIONS

MARKDOWN_EXTENSIONS = {".md", ".markdown"}

# A pipe not preceded by a backslash
CELL_SEPARATOR = re.compile(r'(?<!\\)\|')
METADATA_LINE = re.compile(r'^-\s*(Name|Version)\s*:\s*(.*)$', re.IGNORECASE)

logger = logging.getLogger(__name__)


class ReportParseError(ValueError):
    """Raised when a report file cannot be decoded."""


def is_markdown_report_file(file_path):
    """
    Args:
        file_path (str or Path): Report path.

    Returns:
        bool: True for .md and .markdown files (any case).
    """
    return Path(file_path).suffix.lower() in MARKDOWN_EXTENSIONS


def looks_like_markdown_report(text):
    """True when the first line is the GEX report title."""
    first_line = text.lstrip("\ufeff").split("\n", 1)[0].strip()
    return first_line == MARKDOWN_TITLE


def _split_row(line):
    cells = CELL_SEPARATOR.split(line.strip())
    # Drop the empty cells produced by the leading and trailing delimiters
    inner = cells[1:-1] if len(cells) > 1 else []
    return [cell.replace("\\|", "|").strip() for cell in inner]


def _find_heading(lines, title):
    wanted = f"## {title}".lower()
    for index, line in enumerate(lines):
        if line.strip().lower() == wanted:
            return index
    return -1


def _parse_table(lines, start):
    """Rows of the first table after a heading; header and separator rows are skipped."""
    index = start + 1
    while index < len(lines) and not lines[index].strip().startswith("|"):
        index += 1
    if index >= len(lines):
        return []

    packages = []
    index += 2
    while index < len(lines) and lines[index].strip().startswith("|"):
        cells = _split_row(lines[index])
        # Short rows are padded so missing columns read as empty
        cells += [""] * (3 - len(cells))
        name, version, resolved_path = cells[:3]
        if name:
            packages.append(PackageInfo(name=name, version=version, resolved_path=resolved_path))
        else:
            logger.debug(f"Skipping Markdown table row without a name: {lines[index].strip()}")
        index += 1
    return packages


def _parse_metadata(lines):
    start = _find_heading(lines, "Project Metadata")
    if start < 0:
        return {}

    metadata = {}
    for line in lines[start + 1:]:
        stripped = line.strip()
        if stripped.startswith("#"):
            break
        match = METADATA_LINE.match(stripped)
        if match and match.group(2).strip():
            metadata[match.group(1).lower()] = match.group(2).strip()
    return metadata


def parse_markdown_report(text):
    """
    Parse a Markdown report.

    Missing sections give empty lists, missing cells read as "" and rows
    without a name are skipped; this function does not raise on malformed
    content. Provenance is not
    kept by the Markdown format, so the result gets a fresh timestamp and
    tool_version "unknown".

    Args:
        text (str): Markdown document.

    Returns:
        Report: The reconstructed report.
    """
    lines = text.splitlines()

    lists = {}
    for attribute, title in SECTIONS:
        heading = _find_heading(lines, title)
        lists[attribute] = _parse_table(lines, heading) if heading >= 0 else []

    metadata = _parse_metadata(lines)
    return Report(
        tool_version=UNKNOWN_TOOL_VERSION,
        project_name=metadata.get("name"),
        project_version=metadata.get("version"),
        **lists,
    )


def parse_json_report(text):
    """
    Parse a JSON report.

    Args:
        text (str): JSON document.

    Returns:
        Report: The decoded report.

    Raises:
        ReportParseError: If the text is not valid JSON or not a JSON object.
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        raise ReportParseError(f"Failed to parse report file as JSON: {e}")

    if not isinstance(data, dict):
        raise ReportParseError("Failed to parse report file as JSON: top-level value must be an object")

    for list_field in PACKAGE_LIST_FIELDS:
        if list_field in data and not isinstance(data[list_field], list):
            logger.warning(f"Ignoring {list_field}: expected a list")
    return Report.from_dict(data)


def parse_report_text(text, file_path=None):
    """
    Parse report text, choosing the format from the file name or the content.

    Args:
        text (str): Report content.
        file_path (str or Path, optional): Where the text came from.

    Returns:
        Report: The parsed report.
    """
    if (file_path is not None and is_markdown_report_file(file_path)) or looks_like_markdown_report(text):
        return parse_markdown_report(text)
    return parse_json_report(text)


def load_report_from_file(file_path):
    """
    Load a report file (JSON or Markdown).

    Args:
        file_path (str or Path): Report path.

    Returns:
        Report: The parsed report.

    Raises:
        OSError: If the file cannot be read.
        ReportParseError: If a JSON report is malformed.
    """
    path = Path(file_path)
    with open(path, 'r', encoding='utf-8') as f:
        text = f.read()
    logger.debug(f"Loaded {len(text)} characters from {path}")
    return parse_report_text(text, path)
