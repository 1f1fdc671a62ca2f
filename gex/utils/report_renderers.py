"""
JSON and Markdown rendering of GEX reports.

Both renderers work on a sorted copy of the report and never modify the
report they are given.
"""

import json

from gex.utils.validators import sanitize_for_markdown

MARKDOWN_TITLE = "# GEX Report"

# (report attribute, Markdown section title), in rendering order
SECTIONS = (
    ("global_packages", "Global Packages"),
    ("local_dependencies", "Local Dependencies"),
    ("local_dev_dependencies", "Local Dev Dependencies"),
)

METADATA_FIELDS = (
    ("project_name", "Name"),
    ("project_version", "Version"),
    ("project_description", "Description"),
    ("project_homepage", "Homepage"),
    ("project_bugs", "Bugs"),
)


def render_json(report):
    """
    Render a report as pretty-printed JSON.

    Args:
        report (Report): Report to render.

    Returns:
        str: JSON text with 2-space indentation. Equal reports render to identical text.
    """
    return json.dumps(report.sorted_copy().to_dict(), indent=2, ensure_ascii=False)


def _metadata_values(report, extras):
    extras = extras or {}
    values = {
        "project_name": report.project_name,
        "project_version": report.project_version,
    }
    for key in ("project_description", "project_homepage", "project_bugs"):
        values[key] = extras.get(key)
    return values


def _table(packages):
    lines = [
        "| Name | Version | Path |",
        "| --- | --- | --- |",
    ]
    for pkg in packages:
        cells = [sanitize_for_markdown(pkg.name), sanitize_for_markdown(pkg.version),
                 sanitize_for_markdown(pkg.resolved_path)]
        lines.append(f"| {' | '.join(cells)} |")
    return lines


def render_markdown(report, extras=None):
    """
    Render a report as a Markdown document.

    Layout: title, optional "Project Metadata" list, one table per
    non-empty package category, then a footer. Empty categories are left
    out entirely.

    Args:
        report (Report): Report to render.
        extras (dict, optional): project_description, project_homepage and
            project_bugs taken from the manifest.

    Returns:
        str: Markdown text starting with "# GEX Report".
    """
    report = report.sorted_copy()
    lines = [MARKDOWN_TITLE, ""]

    metadata = _metadata_values(report, extras)
    meta_lines = [
        f"- {label}: {sanitize_for_markdown(str(metadata[key]))}"
        for key, label in METADATA_FIELDS
        if metadata.get(key)
    ]
    if meta_lines:
        lines.append("## Project Metadata")
        lines.extend(meta_lines)
        lines.append("")

    for attribute, title in SECTIONS:
        packages = getattr(report, attribute)
        if not packages:
            continue
        lines.append(f"## {title}")
        lines.extend(_table(packages))
        lines.append("")

    lines.append("---")
    lines.append(f"_Generated by GEX v{sanitize_for_markdown(report.tool_version)} on {report.timestamp}_")
    return "\n".join(lines) + "\n"
