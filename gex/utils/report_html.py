"""
HTML rendering of GEX reports.

Produces a single self-contained page. Unlike the Markdown output, every
package category gets a section, with a placeholder when it is empty.
"""

from html import escape

from gex.utils.report_renderers import SECTIONS

STYLE = """
    body {
      font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
      line-height: 1.6;
      color: #333;
      max-width: 1200px;
      margin: 0 auto;
      padding: 20px;
      background-color: #f5f5f5;
    }
    .container { background: white; border-radius: 8px; padding: 30px; }
    h1 { color: #2c3e50; border-bottom: 3px solid #3498db; padding-bottom: 10px; margin-top: 0; }
    h2 { color: #34495e; border-bottom: 2px solid #bdc3c7; padding-bottom: 8px; margin-top: 40px; }
    .metadata { background: #ecf0f1; border-radius: 6px; padding: 20px; margin-bottom: 20px; }
    .metadata dt { font-weight: bold; color: #2c3e50; margin-top: 10px; }
    .metadata dd { margin: 5px 0 0 20px; color: #555; }
    table { width: 100%; border-collapse: collapse; margin-bottom: 30px; }
    th { background: #3498db; color: white; padding: 12px; text-align: left; }
    td { padding: 12px; border-bottom: 1px solid #ecf0f1; font-family: 'SFMono-Regular', Consolas, monospace; }
    tr:nth-child(even) { background: #f8f9fa; }
    .no-data { text-align: center; color: #7f8c8d; font-style: italic; padding: 40px; }
    .footer { text-align: center; color: #7f8c8d; font-size: 14px; margin-top: 40px; }
"""


def _table(packages):
    header = "<tr><th>Name</th><th>Version</th><th>Path</th></tr>"
    body = "".join(
        f"<tr><td>{escape(pkg.name)}</td><td>{escape(pkg.version)}</td><td>{escape(pkg.resolved_path)}</td></tr>"
        for pkg in packages
    )
    return f"<table><thead>{header}</thead><tbody>{body}</tbody></table>"


def _metadata_section(report, extras):
    items = []
    if report.project_name:
        items.append(f"<dt>Project Name</dt><dd>{escape(report.project_name)}</dd>")
    if report.project_version:
        items.append(f"<dt>Version</dt><dd>{escape(report.project_version)}</dd>")
    if extras.get("project_description"):
        items.append(f"<dt>Description</dt><dd>{escape(extras['project_description'])}</dd>")
    for key, label in (("project_homepage", "Homepage"), ("project_bugs", "Bugs")):
        url = extras.get(key)
        if url:
            items.append(f'<dt>{label}</dt><dd><a href="{escape(url)}" target="_blank">{escape(url)}</a></dd>')
    if not items:
        return ""

    items.append(f"<dt>Report Generated</dt><dd>{escape(report.timestamp)}</dd>")
    return (
        '<section class="metadata"><h2>Project Information</h2><dl>'
        + "".join(items)
        + "</dl></section>"
    )


def render_html(report, extras=None):
    """
    Render a report as an HTML page.

    Args:
        report (Report): Report to render.
        extras (dict, optional): project_description, project_homepage and project_bugs.

    Returns:
        str: Complete HTML document with all values escaped.
    """
    report = report.sorted_copy()
    extras = extras or {}
    title = escape(report.project_name or "Dependency Audit")

    sections = []
    for attribute, section_title in SECTIONS:
        packages = getattr(report, attribute)
        if packages:
            sections.append(
                f"<section><h2>{section_title} <small>({len(packages)})</small></h2>{_table(packages)}</section>"
            )
        else:
            sections.append(
                f'<section><h2>{section_title}</h2><div class="no-data">No {section_title.lower()} found</div></section>'
            )

    body = "".join(sections)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>GEX Report - {title}</title>
  <style>{STYLE}</style>
</head>
<body>
  <div class="container">
    <h1>GEX Dependency Report</h1>
    {_metadata_section(report, extras)}
    {body}
    <footer class="footer">
      <p>Generated by <strong>GEX v{escape(report.tool_version)}</strong> on {escape(report.timestamp)}</p>
      <p>Report format version: {escape(report.report_version)}</p>
    </footer>
  </div>
</body>
</html>
"""
