"""
Manifest (package.json) helpers for GEX.

A missing or broken manifest is routine (global installs, fresh checkouts,
half-written files), so everything here returns None instead of raising.
"""

import json
import logging
from pathlib import Path

MANIFEST_FILENAME = "package.json"

logger = logging.getLogger(__name__)


def read_json_file(path):
    """
    Read and decode a JSON file.

    Args:
        path (str or Path): File to read.

    Returns:
        object or None: Decoded value, or None if the file is missing, unreadable or invalid.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.debug(f"Could not read JSON from {path}: {e}")
        return None


def load_manifest(cwd):
    """
    Load the project manifest from a directory.

    Args:
        cwd (str or Path): Project directory.

    Returns:
        dict or None: Parsed manifest, or None when absent or not a JSON object.
    """
    data = read_json_file(Path(cwd) / MANIFEST_FILENAME)
    if not isinstance(data, dict):
        return None
    return data


def manifest_keys(manifest, section):
    """Names declared under a manifest section such as "devDependencies"."""
    if not manifest:
        return set()
    entries = manifest.get(section)
    if not isinstance(entries, dict):
        return set()
    return set(entries.keys())


def manifest_extras(manifest):
    """
    Project metadata shown in Markdown and HTML reports.

    Args:
        manifest (dict or None): Parsed manifest.

    Returns:
        dict: project_description, project_homepage and project_bugs (values may be None).
    """
    extras = {
        "project_description": None,
        "project_homepage": None,
        "project_bugs": None,
    }
    if not manifest:
        return extras

    if isinstance(manifest.get("description"), str):
        extras["project_description"] = manifest["description"]
    if isinstance(manifest.get("homepage"), str):
        extras["project_homepage"] = manifest["homepage"]

    bugs = manifest.get("bugs")
    if isinstance(bugs, str):
        extras["project_bugs"] = bugs
    elif isinstance(bugs, dict) and isinstance(bugs.get("url"), str):
        extras["project_bugs"] = bugs["url"]

    return extras
