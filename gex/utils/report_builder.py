"""
Report builder for GEX.

This module turns the raw dependency listing of a package manager into a
canonical Report. Package-manager output is irregular: sections can be
missing or null, nodes can lack a version or a path, and npm still prints a
partial tree when `npm ls` reports problems. None of that is an error here;
every irregularity falls back to an empty value so that a report can always
be produced.
"""

import logging
import os

from gex.utils.manifest import load_manifest, manifest_keys
from gex.utils.models import PackageInfo, Report, ReportContext, sort_packages


def iter_tree_section(tree, section):
    """
    Yield (name, node) pairs from one section of a raw tree.

    Args:
        tree (object): Raw tree; anything other than a mapping yields nothing.
        section (str): "dependencies" or "devDependencies".

    Yields:
        tuple: (name, node) for every named entry whose node is not None.
    """
    if not isinstance(tree, dict):
        return
    entries = tree.get(section)
    if not isinstance(entries, dict):
        return
    for name, node in entries.items():
        if name and node is not None:
            yield str(name), node


def package_from_node(name, node, fallback_dir):
    """
    Build a PackageInfo from a tree node.

    Args:
        name (str): Package name (the key in the tree).
        node (object): Tree node, normally {"version": ..., "path": ...}.
        fallback_dir (str): Directory joined with the name when the node has no path.

    Returns:
        PackageInfo: The normalized package.
    """
    version = ""
    path = ""
    if isinstance(node, dict):
        version = node.get("version") or ""
        path = node.get("path") or ""
    if not path:
        path = os.path.join(fallback_dir, name)
    return PackageInfo(name=name, version=str(version), resolved_path=str(path))


class ReportBuilder:
    """
    Builds reports from raw package-manager trees.
    """

    def __init__(self, tool_version, logger=None):
        """
        Initialize the report builder.

        Args:
            tool_version (str): Version stamped into every report.
            logger (logging.Logger, optional): Logger instance. If None, a new logger is created.
        """
        self.tool_version = tool_version
        self.logger = logger or logging.getLogger(__name__)

    def build(self, tree, context, cwd=None, global_root=None, include_tree=False):
        """
        Build a report from a raw tree.

        Args:
            tree (dict): Raw tree with optional "dependencies" and "devDependencies".
            context (ReportContext or str): "local" or "global".
            cwd (str or Path, optional): Project directory. Defaults to the process cwd.
            global_root (str, optional): Global node_modules directory, used for fallback paths.
            include_tree (bool): Whether to keep the raw tree on the report.

        Returns:
            Report: The normalized report.
        """
        context = ReportContext(context)
        report = Report(tool_version=self.tool_version)

        if context is ReportContext.LOCAL:
            self._fill_local(report, tree, os.fspath(cwd) if cwd else os.getcwd())
        else:
            self._fill_global(report, tree, os.fspath(global_root) if global_root else "")

        if include_tree:
            report.tree = tree

        self.logger.debug(
            f"Built {context.value} report: {len(report.global_packages)} global, "
            f"{len(report.local_dependencies)} dependencies, "
            f"{len(report.local_dev_dependencies)} dev dependencies"
        )
        return report

    def _fill_local(self, report, tree, cwd):
        manifest = load_manifest(cwd)
        if manifest is None:
            self.logger.debug(f"No readable package.json in {cwd}; project metadata left unset")
        else:
            if manifest.get("name"):
                report.project_name = str(manifest["name"])
            if manifest.get("version"):
                report.project_version = str(manifest["version"])

        node_modules = os.path.join(cwd, "node_modules")

        tree_dev = [
            package_from_node(name, node, node_modules)
            for name, node in iter_tree_section(tree, "devDependencies")
        ]

        # A tree that lists its own dev dependencies is trusted over the manifest
        if tree_dev:
            dev_names = {pkg.name for pkg in tree_dev}
        else:
            dev_names = manifest_keys(manifest, "devDependencies")

        dependencies = {}
        dev_dependencies = {pkg.name: pkg for pkg in tree_dev}

        for name, node in iter_tree_section(tree, "dependencies"):
            pkg = package_from_node(name, node, node_modules)
            if name in dev_names:
                if name not in dev_dependencies:
                    dev_dependencies[name] = pkg
            else:
                dependencies[name] = pkg

        report.local_dependencies = sort_packages(dependencies.values())
        report.local_dev_dependencies = sort_packages(dev_dependencies.values())

    def _fill_global(self, report, tree, global_root):
        packages = [
            package_from_node(name, node, global_root)
            for name, node in iter_tree_section(tree, "dependencies")
        ]
        report.global_packages = sort_packages(packages)


def build_report(tree, context, tool_version, cwd=None, global_root=None, include_tree=False, logger=None):
    """
    Build a report from a raw tree in one call.

    Args:
        tree (dict): Raw package-manager tree.
        context (ReportContext or str): "local" or "global".
        tool_version (str): Version of the generating tool.
        cwd (str or Path, optional): Project directory.
        global_root (str, optional): Global node_modules directory.
        include_tree (bool): Keep the raw tree on the report.
        logger (logging.Logger, optional): Logger instance.

    Returns:
        Report: The normalized report.
    """
    builder = ReportBuilder(tool_version, logger=logger)
    return builder.build(tree, context, cwd=cwd, global_root=global_root, include_tree=include_tree)
