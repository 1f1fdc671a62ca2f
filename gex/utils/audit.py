"""
Audit orchestration for GEX.

Ties an adapter, the report builder and the manifest together: list the
installed packages, resolve where they live and turn the result into a
Report plus the extra metadata used by the Markdown and HTML renderers.
"""

import logging
import os

import gex
from gex.utils.manifest import load_manifest, manifest_extras
from gex.utils.models import OutputFormat, PackageManager, ReportContext
from gex.utils.outdated import resolve_outdated_with_view
from gex.utils.package_manager import BunClient, NpmClient, PackageManagerError, get_package_manager_client
from gex.utils.report_builder import build_report, iter_tree_section, package_from_node
from gex.utils.report_html import render_html
from gex.utils.report_renderers import render_json, render_markdown
from gex.utils.validators import validate_output_format

DEFAULT_REPORT_FILES = {
    PackageManager.NPM: "gex-report.json",
    PackageManager.BUN: "bun-report.json",
}


def get_tool_version():
    """Version stamped into generated reports."""
    return gex.__version__


def default_report_file(manager):
    """
    Args:
        manager (PackageManager or str): Backend.

    Returns:
        str: Report file name used by `read` when none is given.
    """
    return DEFAULT_REPORT_FILES[PackageManager(manager)]


def _resolve_global_root(client, manager, tree, logger):
    if manager is PackageManager.BUN:
        root = tree.get("node_modules_path") if isinstance(tree, dict) else None
        return root or client.root_global()

    try:
        return client.root_global()
    except PackageManagerError as e:
        # Paths in `npm ls -g` output are usually complete; the root only fills gaps
        logger.warning(f"Could not resolve the global node_modules directory: {str(e)}")
        return None


def produce_report(context, manager=PackageManager.NPM, cwd=None, full_tree=False, omit_dev=False,
                   tool_version=None, rate_limiter=None, client=None, logger=None):
    """
    Audit installed packages and build a report.

    Args:
        context (ReportContext or str): "local" or "global".
        manager (PackageManager or str): Backend to query.
        cwd (str or Path, optional): Project directory for local audits.
        full_tree (bool): List the full dependency tree and embed it in the report.
        omit_dev (bool): Leave out devDependencies (local audits only).
        tool_version (str, optional): Version to stamp. Defaults to the installed GEX version.
        rate_limiter (RateLimiter, optional): Throttle for package-manager calls.
        client (NpmClient or BunClient, optional): Adapter to use instead of a new one.
        logger (logging.Logger, optional): Logger instance.

    Returns:
        tuple: (Report, dict of Markdown/HTML extras).

    Raises:
        PackageManagerError: If the package manager cannot list packages.
    """
    logger = logger or logging.getLogger(__name__)
    context = ReportContext(context)
    manager = PackageManager(manager)
    cwd = os.fspath(cwd) if cwd else os.getcwd()
    client = client or get_package_manager_client(manager, rate_limiter=rate_limiter, logger=logger)

    is_global = context is ReportContext.GLOBAL
    logger.info(f"Listing {context.value} packages with {manager.value}...")
    tree = client.list_tree(
        global_=is_global,
        omit_dev=omit_dev and not is_global,
        cwd=cwd,
        depth0=not full_tree,
    )

    global_root = _resolve_global_root(client, manager, tree, logger) if is_global else None

    report = build_report(
        tree,
        context,
        tool_version or get_tool_version(),
        cwd=cwd,
        global_root=global_root,
        include_tree=full_tree,
        logger=logger,
    )

    extras = manifest_extras(None if is_global else load_manifest(cwd))
    return report, extras


def render_report(report, output_format, extras=None):
    """
    Render a report in the requested format.

    Args:
        report (Report): Report to render.
        output_format (OutputFormat or str): "json", "md" or "html".
        extras (dict, optional): Manifest metadata for Markdown and HTML.

    Returns:
        str: Rendered report text.

    Raises:
        ValidationError: If the format is not one GEX can render.
    """
    output_format = validate_output_format(output_format)
    if output_format is OutputFormat.MARKDOWN:
        return render_markdown(report, extras)
    if output_format is OutputFormat.HTML:
        return render_html(report, extras)
    return render_json(report)


def outdated_handlers(context, manager=PackageManager.NPM, cwd=None, rate_limiter=None, logger=None):
    """
    Build the fetch and update callables for the outdated workflow.

    npm answers with `npm outdated`. Bun has no equivalent, so installed
    versions are compared against `npm view` and updating is not offered.

    Args:
        context (ReportContext or str): "local" or "global".
        manager (PackageManager or str): Backend to query.
        cwd (str or Path, optional): Project directory for local checks.
        rate_limiter (RateLimiter, optional): Throttle for package-manager calls.
        logger (logging.Logger, optional): Logger instance.

    Returns:
        tuple: (fetch_outdated, update_runner); update_runner is None for Bun.
    """
    logger = logger or logging.getLogger(__name__)
    is_global = ReportContext(context) is ReportContext.GLOBAL
    cwd = os.fspath(cwd) if cwd else os.getcwd()
    npm = NpmClient(rate_limiter=rate_limiter, logger=logger)

    if PackageManager(manager) is PackageManager.BUN:
        bun = BunClient(rate_limiter=rate_limiter, logger=logger)

        def fetch_bun_outdated():
            tree = bun.list_tree(global_=is_global, cwd=cwd)
            root = tree.get("node_modules_path", "")
            packages = [
                package_from_node(name, node, root)
                for section in ("dependencies", "devDependencies")
                for name, node in iter_tree_section(tree, section)
            ]
            return resolve_outdated_with_view(packages, npm.view_version, logger=logger)

        return fetch_bun_outdated, None

    def fetch_npm_outdated():
        return npm.outdated(global_=is_global, cwd=cwd)

    def update_npm_packages(packages):
        npm.update(packages, global_=is_global, cwd=cwd)

    return fetch_npm_outdated, update_npm_packages
