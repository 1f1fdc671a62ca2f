"""
Data model for GEX dependency reports.

A report is built once from a point-in-time package-manager listing and is
treated as read-only afterwards. The JSON field names below are the on-disk
format and must not change without bumping REPORT_VERSION.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

REPORT_VERSION = "1.0"
UNKNOWN_TOOL_VERSION = "unknown"

PACKAGE_LIST_FIELDS = ("global_packages", "local_dependencies", "local_dev_dependencies")


class ReportContext(str, Enum):
    """Scope of a dependency audit."""

    LOCAL = "local"
    GLOBAL = "global"


class OutputFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "md"
    HTML = "html"


class PackageManager(str, Enum):
    """Supported package-manager backends."""

    NPM = "npm"
    BUN = "bun"


def utc_timestamp():
    """
    Current instant as an ISO-8601 string with millisecond precision.

    Returns:
        str: Timestamp such as "2025-01-13T12:00:00.000Z".
    """
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def package_sort_key(pkg):
    # Case-insensitive first; on ties lowercase sorts before uppercase
    return (pkg.name.casefold(), pkg.name.swapcase())


def sort_packages(packages):
    """
    Return a new list of packages ordered by name.

    Args:
        packages (list): PackageInfo entries.

    Returns:
        list: Sorted copy; the input list is left untouched.
    """
    return sorted(packages, key=package_sort_key)


def _text(value):
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True)
class PackageInfo:
    """One resolved package occurrence."""

    name: str
    version: str = ""
    resolved_path: str = ""

    @property
    def spec(self):
        """Install specifier: name@version, or the bare name when the version is unknown."""
        return f"{self.name}@{self.version}" if self.version else self.name

    def to_dict(self):
        return {
            "name": self.name,
            "version": self.version,
            "resolved_path": self.resolved_path,
        }

    @classmethod
    def from_dict(cls, data):
        """
        Build a PackageInfo from a loosely shaped mapping.

        Returns:
            PackageInfo or None: None when the entry has no usable name.
        """
        if not isinstance(data, dict):
            return None
        name = _text(data.get("name"))
        if not name.strip():
            return None
        return cls(
            name=name,
            version=_text(data.get("version")),
            resolved_path=_text(data.get("resolved_path")),
        )


@dataclass
class Report:
    """The complete audit artifact."""

    timestamp: str = field(default_factory=utc_timestamp)
    tool_version: str = UNKNOWN_TOOL_VERSION
    report_version: str = REPORT_VERSION
    project_name: Optional[str] = None
    project_version: Optional[str] = None
    global_packages: List[PackageInfo] = field(default_factory=list)
    local_dependencies: List[PackageInfo] = field(default_factory=list)
    local_dev_dependencies: List[PackageInfo] = field(default_factory=list)
    tree: Any = None

    def is_empty(self):
        return not (self.global_packages or self.local_dependencies or self.local_dev_dependencies)

    def sorted_copy(self):
        """
        Copy of the report with all three package lists sorted by name.

        Returns:
            Report: A new report; the package entries themselves are shared (they are immutable).
        """
        return Report(
            timestamp=self.timestamp,
            tool_version=self.tool_version,
            report_version=self.report_version,
            project_name=self.project_name,
            project_version=self.project_version,
            global_packages=sort_packages(self.global_packages),
            local_dependencies=sort_packages(self.local_dependencies),
            local_dev_dependencies=sort_packages(self.local_dev_dependencies),
            tree=self.tree,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serializable mapping in the fixed on-disk key order; unset optional fields are omitted."""
        data: Dict[str, Any] = {
            "report_version": self.report_version,
            "timestamp": self.timestamp,
            "tool_version": self.tool_version,
        }
        if self.project_name is not None:
            data["project_name"] = self.project_name
        if self.project_version is not None:
            data["project_version"] = self.project_version
        for list_field in PACKAGE_LIST_FIELDS:
            data[list_field] = [pkg.to_dict() for pkg in getattr(self, list_field)]
        if self.tree is not None:
            data["tree"] = self.tree
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Report":
        """
        Rebuild a report from decoded JSON.

        Content is accepted leniently: missing lists become empty, entries
        without a name are dropped and missing scalar fields fall back to
        defaults.
        """
        lists = {}
        for list_field in PACKAGE_LIST_FIELDS:
            raw_entries = data.get(list_field)
            entries = []
            if isinstance(raw_entries, list):
                for raw in raw_entries:
                    pkg = PackageInfo.from_dict(raw)
                    if pkg is not None:
                        entries.append(pkg)
            lists[list_field] = entries

        project_name = data.get("project_name")
        project_version = data.get("project_version")
        return cls(
            report_version=_text(data.get("report_version")) or REPORT_VERSION,
            timestamp=_text(data.get("timestamp")) or utc_timestamp(),
            tool_version=_text(data.get("tool_version")) or UNKNOWN_TOOL_VERSION,
            project_name=_text(project_name) if project_name is not None else None,
            project_version=_text(project_version) if project_version is not None else None,
            tree=data.get("tree"),
            **lists,
        )
