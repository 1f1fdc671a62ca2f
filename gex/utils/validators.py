"""
Input validation helpers for GEX.

Every check raises ValidationError, so callers can tell bad input apart from
package-manager or parse failures.
"""

import os
import re
from pathlib import Path

from gex.utils.models import OutputFormat


class ValidationError(ValueError):
    """Raised when user-supplied input is rejected."""


# Parent directory references (plain and URL-encoded) and null bytes
SUSPICIOUS_PATH_PATTERNS = [
    re.compile(r'\.\./'),
    re.compile(r'\.\.\\+'),
    re.compile(r'%2e%2e%2f', re.IGNORECASE),
    re.compile(r'%2e%2e%5c', re.IGNORECASE),
    re.compile(r'\x00'),
]

PACKAGE_NAME_PATTERN = re.compile(r'^(@[a-z0-9\-_]+/)?[a-z0-9\-_.]+$', re.IGNORECASE)
SEMVER_PATTERN = re.compile(r'^(\d+)\.(\d+)\.(\d+)(?:-([a-zA-Z0-9\-_.]+))?(?:\+([a-zA-Z0-9\-_.]+))?$')
RELAXED_VERSION_PATTERN = re.compile(r'^[a-zA-Z0-9\-_.+]+$')

MAX_PACKAGE_NAME_LENGTH = 214
MAX_VERSION_LENGTH = 50


def validate_file_path(file_path, cwd=None):
    """
    Validate a file path and return it resolved.

    Args:
        file_path (str or Path): Path supplied by the user.
        cwd (str or Path, optional): Base directory for relative paths. Defaults to the process cwd.

    Returns:
        Path: Absolute path.

    Raises:
        ValidationError: If the path is empty, contains traversal patterns or
            escapes the base directory.
    """
    if file_path is None or not isinstance(file_path, (str, os.PathLike)):
        raise ValidationError("File path must be a non-empty string")

    raw = os.fspath(file_path)
    if not raw.strip():
        raise ValidationError("File path cannot be empty or whitespace only")

    for pattern in SUSPICIOUS_PATH_PATTERNS:
        if pattern.search(raw):
            raise ValidationError("File path contains suspicious characters or patterns")

    base = Path(cwd) if cwd else Path.cwd()
    candidate = Path(raw)
    if candidate.is_absolute():
        return candidate.resolve()

    resolved = (base / candidate).resolve()
    try:
        resolved.relative_to(base.resolve())
    except ValueError:
        raise ValidationError("File path attempts to access files outside the current directory")
    return resolved


def validate_output_format(output_format):
    """
    Args:
        output_format (str or OutputFormat): Requested format.

    Returns:
        OutputFormat: The matching enum member.
    """
    try:
        return OutputFormat(output_format)
    except ValueError:
        allowed = ", ".join(f'"{fmt.value}"' for fmt in OutputFormat)
        raise ValidationError(f"Output format must be one of {allowed}")


def validate_package_name(name):
    if not name or not isinstance(name, str):
        raise ValidationError("Package name must be a non-empty string")

    trimmed = name.strip()
    if not trimmed:
        raise ValidationError("Package name cannot be empty or whitespace only")
    if not PACKAGE_NAME_PATTERN.match(trimmed):
        raise ValidationError("Package name contains invalid characters")
    if len(trimmed) > MAX_PACKAGE_NAME_LENGTH:
        raise ValidationError("Package name is too long")

    return trimmed


def validate_version(version):
    """
    Validate a version string. Empty versions are allowed for broken packages.

    Returns:
        str: The trimmed version.
    """
    if not isinstance(version, str):
        raise ValidationError("Version must be a string")

    trimmed = version.strip()
    if not trimmed:
        return ""

    if not SEMVER_PATTERN.match(trimmed) and not RELAXED_VERSION_PATTERN.match(trimmed):
        raise ValidationError("Version contains invalid characters")
    if len(trimmed) > MAX_VERSION_LENGTH:
        raise ValidationError("Version string is too long")

    return trimmed


def sanitize_for_markdown(text):
    """
    Make a value safe to place in a Markdown table cell.

    Pipes are escaped, line breaks and tabs become spaces and surrounding
    whitespace is trimmed.

    Args:
        text (str): Raw cell value.

    Returns:
        str: Sanitized value ("" for None or non-strings).
    """
    if not text or not isinstance(text, str):
        return ""

    return (
        text.replace("|", "\\|")
        .replace("\r\n", " ")
        .replace("\n", " ")
        .replace("\r", " ")
        .replace("\t", " ")
        .strip()
    )
