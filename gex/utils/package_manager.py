"""
Package-manager adapters for GEX.

Two backends are supported and both hand back the same raw tree shape:

    {
        "dependencies": {name: {"version": ..., "path": ...}},
        "devDependencies": {name: {"version": ..., "path": ...}},  # optional
    }

NpmClient shells out to `npm ls --json`. BunClient has no JSON listing
command to rely on, so it reads package.json files under node_modules
directly.
"""

import json
import logging
import os
import subprocess
from pathlib import Path

from gex.utils.manifest import MANIFEST_FILENAME, read_json_file
from gex.utils.models import PackageManager
from gex.utils.outdated import normalize_outdated
from gex.utils.rate_limiter import NullRateLimiter
from gex.utils.validators import ValidationError, validate_version


class PackageManagerError(RuntimeError):
    """Raised when a package-manager command fails without usable output."""


# Base arguments for installing each report category, per backend
INSTALL_COMMANDS = {
    PackageManager.NPM: {
        "global": ["i", "-g"],
        "local": ["i"],
        "dev": ["i", "-D"],
    },
    PackageManager.BUN: {
        "global": ["add", "-g"],
        "local": ["add"],
        "dev": ["add", "-d"],
    },
}

BINARIES = {
    PackageManager.NPM: "npm",
    PackageManager.BUN: "bun",
}

IGNORED_NODE_MODULES_ENTRIES = {".bin"}


def _error_message(error, label):
    stderr = getattr(error, "stderr", None)
    if isinstance(stderr, str) and stderr.strip():
        return stderr.strip()
    return str(error) or f"{label} failed"


class NpmClient:
    """
    Runs npm commands and returns their decoded output.
    """

    manager = PackageManager.NPM

    def __init__(self, rate_limiter=None, logger=None):
        """
        Initialize the npm client.

        Args:
            rate_limiter (RateLimiter, optional): Throttle applied before every npm call.
            logger (logging.Logger, optional): Logger instance. If None, a new logger is created.
        """
        self.rate_limiter = rate_limiter or NullRateLimiter()
        self.logger = logger or logging.getLogger(__name__)

    def _run(self, args, cwd=None):
        cmd = ['npm'] + list(args)
        self.rate_limiter.throttle()
        self.logger.debug(f"Running: {' '.join(cmd)}")
        return subprocess.run(
            cmd,
            cwd=cwd,
            check=True,
            capture_output=True,
            text=True
        )

    def list_tree(self, global_=False, omit_dev=False, cwd=None, depth0=False):
        """
        List installed packages with `npm ls --json`.

        npm exits non-zero for missing or invalid packages but still prints
        the tree; that output is used as is.

        Args:
            global_ (bool): List global packages.
            omit_dev (bool): Leave out devDependencies.
            cwd (str or Path, optional): Project directory.
            depth0 (bool): Only list top-level packages.

        Returns:
            dict: Raw tree ({} when npm prints nothing).

        Raises:
            PackageManagerError: If npm fails and prints no parseable tree.
        """
        args = ['ls', '--json']
        if global_:
            args.append('--global')
        if omit_dev:
            args.append('--omit=dev')
        if depth0:
            args.append('--depth=0')

        try:
            result = self._run(args, cwd=cwd)
        except subprocess.CalledProcessError as e:
            stdout = e.stdout if isinstance(e.stdout, str) else ""
            if stdout.strip():
                try:
                    tree = json.loads(stdout)
                    self.logger.warning(f"npm ls reported problems: {_error_message(e, 'npm ls')}")
                    return tree
                except ValueError as parse_error:
                    self.logger.debug(f"npm ls stdout parse failed: {parse_error}")
            raise PackageManagerError(f"npm ls failed: {_error_message(e, 'npm ls')}")
        except OSError as e:
            raise PackageManagerError(f"npm ls failed: {e}")

        if result.stdout and result.stdout.strip():
            try:
                return json.loads(result.stdout)
            except ValueError as e:
                raise PackageManagerError(f"npm ls failed: could not parse output: {e}")
        return {}

    def root_global(self):
        """
        Returns:
            str: The global node_modules directory reported by `npm root -g`.
        """
        try:
            result = self._run(['root', '-g'])
        except subprocess.CalledProcessError as e:
            raise PackageManagerError(f"npm root -g failed: {_error_message(e, 'npm root -g')}")
        except OSError as e:
            raise PackageManagerError(f"npm root -g failed: {e}")
        return result.stdout.strip()

    def outdated(self, global_=False, cwd=None):
        """
        List outdated packages with `npm outdated --json`.

        npm exits with status 1 whenever something is outdated, so a failed
        call with output is the normal case.

        Returns:
            list: OutdatedInfo entries.
        """
        args = ['outdated', '--json']
        if global_:
            args.append('--global')

        try:
            result = self._run(args, cwd=cwd)
        except subprocess.CalledProcessError as e:
            stdout = e.stdout if isinstance(e.stdout, str) else ""
            if stdout.strip():
                return normalize_outdated(stdout)
            raise PackageManagerError(f"npm outdated failed: {_error_message(e, 'npm outdated')}")
        except OSError as e:
            raise PackageManagerError(f"npm outdated failed: {e}")
        return normalize_outdated(result.stdout)

    def update(self, packages=None, global_=False, cwd=None):
        """
        Update packages with `npm update`.

        Args:
            packages (list, optional): Package names. All packages when empty.
            global_ (bool): Update global packages.
            cwd (str or Path, optional): Project directory.
        """
        args = ['update']
        if global_:
            args.append('-g')
        if packages:
            args.extend(packages)

        try:
            self._run(args, cwd=cwd)
        except subprocess.CalledProcessError as e:
            raise PackageManagerError(f"npm update failed: {_error_message(e, 'npm update')}")
        except OSError as e:
            raise PackageManagerError(f"npm update failed: {e}")

    def view_version(self, package_name):
        """
        Returns:
            str: Latest published version of a package ("" if npm returns nothing useful).

        Raises:
            PackageManagerError: If npm fails or reports a malformed version.
        """
        label = f"npm view {package_name}"
        try:
            result = self._run(['view', package_name, 'version', '--json'])
            parsed = json.loads(result.stdout)
        except subprocess.CalledProcessError as e:
            raise PackageManagerError(f"{label} failed: {_error_message(e, label)}")
        except (OSError, ValueError) as e:
            raise PackageManagerError(f"{label} failed: {e}")

        if isinstance(parsed, list):
            parsed = parsed[-1] if parsed else ""
        if not isinstance(parsed, str):
            return ""
        try:
            return validate_version(parsed)
        except ValidationError as e:
            raise PackageManagerError(f"{label} returned an unusable version {parsed!r}: {e}")


def _package_dir(root, package_name):
    # Scoped names live one directory deeper: @scope/name
    return Path(root).joinpath(*package_name.split('/'))


def _is_dir(path):
    # Follows symlinks, which is how linked workspaces show up in node_modules
    try:
        return path.is_dir()
    except OSError:
        return False


def _safe_listdir(path):
    try:
        return sorted(Path(path).iterdir(), key=lambda p: p.name)
    except OSError:
        return []


def _declared(manifest, *sections):
    """Mapping of declared name -> range across manifest sections; first declaration wins."""
    selected = {}
    if not manifest:
        return selected
    for section in sections:
        entries = manifest.get(section)
        if not isinstance(entries, dict):
            continue
        for name, declared in entries.items():
            if name not in selected:
                selected[name] = declared if isinstance(declared, str) else None
    return selected


class BunClient:
    """
    Lists Bun-installed packages by inspecting node_modules directories.
    """

    manager = PackageManager.BUN

    def __init__(self, rate_limiter=None, logger=None, environ=None):
        """
        Initialize the Bun client.

        Args:
            rate_limiter (RateLimiter, optional): Throttle applied before every listing.
            logger (logging.Logger, optional): Logger instance. If None, a new logger is created.
            environ (dict, optional): Environment mapping. Defaults to os.environ.
        """
        self.rate_limiter = rate_limiter or NullRateLimiter()
        self.logger = logger or logging.getLogger(__name__)
        self.environ = os.environ if environ is None else environ

    def list_tree(self, global_=False, omit_dev=False, cwd=None, depth0=False):
        """
        Build a raw tree from node_modules.

        Packages declared in package.json are looked up by name; when the
        manifest declares nothing, every package directory is listed.
        depth0 is accepted for interface parity; the listing is always flat.

        Returns:
            dict: Raw tree with "dependencies", optional "devDependencies" and "node_modules_path".
        """
        self.rate_limiter.throttle()

        if global_:
            root = self.root_global()
            manifest = read_json_file(Path(root).parent / MANIFEST_FILENAME)
            selected = _declared(manifest if isinstance(manifest, dict) else None,
                                 'dependencies', 'optionalDependencies')
            dependencies = (
                self._collect_for_names(root, selected) if selected
                else self._collect_from_node_modules(root)
            )
            return {"dependencies": dependencies, "node_modules_path": root}

        cwd = os.fspath(cwd) if cwd else os.getcwd()
        node_modules = self.root_local(cwd)
        manifest = read_json_file(Path(cwd) / MANIFEST_FILENAME)
        if not isinstance(manifest, dict):
            manifest = None

        prod = _declared(manifest, 'dependencies', 'optionalDependencies')
        dependencies = (
            self._collect_for_names(node_modules, prod) if prod
            else self._collect_from_node_modules(node_modules)
        )

        tree = {"dependencies": dependencies, "node_modules_path": node_modules}
        if not omit_dev:
            dev = _declared(manifest, 'devDependencies')
            tree["devDependencies"] = self._collect_for_names(node_modules, dev) if dev else {}
        return tree

    def root_global(self):
        """
        Resolve Bun's global node_modules directory.

        Returns:
            str: GEX_BUN_GLOBAL_ROOT if set, else the first existing candidate,
                else the first candidate, else ~/.bun/install/global/node_modules.
        """
        override = self.environ.get('GEX_BUN_GLOBAL_ROOT')
        if override:
            return override

        candidates = self._global_root_candidates()
        for candidate in candidates:
            if os.access(candidate, os.R_OK):
                return candidate

        if candidates:
            return candidates[0]
        home = self.environ.get('HOME') or os.getcwd()
        return os.path.join(home, '.bun', 'install', 'global', 'node_modules')

    def root_local(self, cwd=None):
        override = self.environ.get('GEX_BUN_LOCAL_ROOT')
        if override:
            return override
        return os.path.join(os.fspath(cwd) if cwd else os.getcwd(), 'node_modules')

    def _global_root_candidates(self):
        candidates = []

        def maybe_add(value):
            if value and value not in candidates:
                candidates.append(value)

        home = self.environ.get('HOME')
        bun_install = self.environ.get('BUN_INSTALL') or (os.path.join(home, '.bun') if home else None)
        if bun_install:
            maybe_add(os.path.join(bun_install, 'install', 'global', 'node_modules'))
            maybe_add(os.path.join(bun_install, 'global', 'node_modules'))
        xdg_data_home = self.environ.get('XDG_DATA_HOME')
        if xdg_data_home:
            maybe_add(os.path.join(xdg_data_home, 'bun', 'install', 'global', 'node_modules'))
        maybe_add('/usr/local/share/bun/global/node_modules')
        maybe_add('/opt/homebrew/var/bun/install/global/node_modules')
        return candidates

    def _collect_for_names(self, node_modules, selected):
        packages = {}
        for name, declared in selected.items():
            pkg_dir = _package_dir(node_modules, name)
            manifest = read_json_file(pkg_dir / MANIFEST_FILENAME)
            if not isinstance(manifest, dict):
                manifest = {}
            pkg_name = manifest.get('name') if isinstance(manifest.get('name'), str) else name
            version = manifest.get('version') if isinstance(manifest.get('version'), str) else (declared or '')
            packages[pkg_name] = {"version": version, "path": str(pkg_dir)}
        return packages

    def _collect_from_node_modules(self, node_modules):
        packages = {}
        for entry in _safe_listdir(node_modules):
            if entry.name.startswith('.') or entry.name in IGNORED_NODE_MODULES_ENTRIES:
                continue
            if not _is_dir(entry):
                continue

            if entry.name.startswith('@'):
                for scoped in _safe_listdir(entry):
                    if scoped.name.startswith('.') or not _is_dir(scoped):
                        continue
                    self._add_package_dir(packages, scoped, f"{entry.name}/{scoped.name}")
            else:
                self._add_package_dir(packages, entry, entry.name)

        self.logger.debug(f"Found {len(packages)} packages in {node_modules}")
        return packages

    def _add_package_dir(self, packages, pkg_dir, default_name):
        manifest = read_json_file(pkg_dir / MANIFEST_FILENAME)
        if not isinstance(manifest, dict):
            manifest = {}
        pkg_name = manifest.get('name') if isinstance(manifest.get('name'), str) else default_name
        version = manifest.get('version') if isinstance(manifest.get('version'), str) else ''
        packages[pkg_name] = {"version": version, "path": str(pkg_dir)}


def get_package_manager_client(manager, rate_limiter=None, logger=None):
    """
    Return the adapter for a package manager.

    Args:
        manager (PackageManager or str): "npm" or "bun".
        rate_limiter (RateLimiter, optional): Throttle shared by the client's calls.
        logger (logging.Logger, optional): Logger instance.

    Returns:
        NpmClient or BunClient: The adapter.
    """
    manager = PackageManager(manager)
    if manager is PackageManager.BUN:
        return BunClient(rate_limiter=rate_limiter, logger=logger)
    return NpmClient(rate_limiter=rate_limiter, logger=logger)
