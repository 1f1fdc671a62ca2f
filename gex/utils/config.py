"""
Configuration loading for GEX.

Settings are layered, lowest precedence first: built-in defaults, a project
rc file (.gexrc.toml, .gexrc.yml or .gexrc.yaml), environment variables and
finally command-line flags, which the CLI applies with GexConfig.merge().
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

import tomli
import yaml

from gex.utils.models import OutputFormat, PackageManager

CONFIG_FILENAMES = (".gexrc.toml", ".gexrc.yml", ".gexrc.yaml")

ENV_OVERRIDES = {
    "GEX_PACKAGE_MANAGER": "package_manager",
    "GEX_OUTPUT_FORMAT": "output_format",
    "GEX_RATE_LIMIT_MS": "rate_limit_ms",
}

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when a configuration value has the wrong type or an unknown choice."""


@dataclass
class GexConfig:
    package_manager: str = PackageManager.NPM.value
    output_format: str = OutputFormat.JSON.value
    out_file: Optional[str] = None
    full_tree: bool = False
    omit_dev: bool = False
    rate_limit_ms: int = 50
    log_file: Optional[str] = None
    verbose: bool = False
    source: Optional[str] = None

    def merge(self, **overrides):
        """
        Return a copy with the given values applied; None values are skipped.

        Args:
            **overrides: Field values, typically parsed command-line flags.

        Returns:
            GexConfig: The merged configuration.
        """
        known = {f.name for f in fields(self)}
        values = {}
        for key, value in overrides.items():
            if key not in known or value is None:
                continue
            values[key] = _coerce(key, value)
        return replace(self, **values)


def _coerce_bool(key, value):
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean, got {value!r}")


def _coerce(key, value):
    if key == "package_manager":
        try:
            return PackageManager(str(value).strip().lower()).value
        except ValueError:
            raise ConfigError(f"Unknown package manager: {value!r} (expected npm or bun)")
    if key == "output_format":
        text = str(value).strip().lower()
        if text == "markdown":
            text = OutputFormat.MARKDOWN.value
        try:
            return OutputFormat(text).value
        except ValueError:
            raise ConfigError(f"Unknown output format: {value!r} (expected json, md or html)")
    if key == "rate_limit_ms":
        if isinstance(value, bool):
            raise ConfigError(f"rate_limit_ms must be an integer, got {value!r}")
        try:
            number = int(str(value).strip())
        except ValueError:
            raise ConfigError(f"rate_limit_ms must be an integer, got {value!r}")
        if number < 0:
            raise ConfigError(f"rate_limit_ms must not be negative, got {number}")
        return number
    if key in ("full_tree", "omit_dev", "verbose"):
        return _coerce_bool(key, value)
    if key in ("out_file", "log_file"):
        return str(value) if value else None
    return value


def _read_config_file(path):
    """Decode an rc file into a flat mapping of settings."""
    if path.suffix == ".toml":
        with open(path, 'rb') as f:
            data = tomli.load(f)
        # Settings may sit at the top level or under a [gex] table
        if isinstance(data.get("gex"), dict):
            data = data["gex"]
    else:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
        if data is None:
            data = {}
        if isinstance(data, dict) and isinstance(data.get("gex"), dict):
            data = data["gex"]

    if not isinstance(data, dict):
        raise ConfigError("top-level value must be a table/mapping")
    # Allow kebab-case keys such as rate-limit-ms
    return {str(key).replace("-", "_"): value for key, value in data.items()}


def find_config_file(cwd):
    """
    Args:
        cwd (str or Path): Directory to search.

    Returns:
        Path or None: The first existing rc file, in CONFIG_FILENAMES order.
    """
    for filename in CONFIG_FILENAMES:
        candidate = Path(cwd) / filename
        if candidate.is_file():
            return candidate
    return None


def load_config(cwd=None, environ=None, logger=None):
    """
    Load GEX configuration for a project directory.

    Broken rc files and bad values are logged as warnings and ignored, so a
    misconfigured project still gets the defaults.

    Args:
        cwd (str or Path, optional): Project directory. Defaults to the process cwd.
        environ (dict, optional): Environment mapping. Defaults to os.environ.
        logger (logging.Logger, optional): Logger instance.

    Returns:
        GexConfig: The resolved configuration (without command-line overrides).
    """
    logger = logger or logging.getLogger(__name__)
    environ = os.environ if environ is None else environ
    cwd = Path(cwd) if cwd else Path.cwd()

    config = GexConfig()
    known = {f.name for f in fields(config)} - {"source"}

    config_file = find_config_file(cwd)
    if config_file is not None:
        try:
            data = _read_config_file(config_file)
        except (OSError, ValueError, tomli.TOMLDecodeError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring config file {config_file}: {str(e)}")
        else:
            for key, value in data.items():
                if key not in known:
                    logger.debug(f"Ignoring unknown config key {key!r} in {config_file}")
                    continue
                try:
                    config = config.merge(**{key: value})
                except ConfigError as e:
                    logger.warning(f"Ignoring {key} in {config_file}: {str(e)}")
            config = replace(config, source=str(config_file))
            logger.debug(f"Loaded configuration from {config_file}")

    for env_name, key in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if not value:
            continue
        try:
            config = config.merge(**{key: value})
        except ConfigError as e:
            logger.warning(f"Ignoring {env_name}: {str(e)}")

    return config
