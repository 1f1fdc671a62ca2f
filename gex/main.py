#!/usr/bin/env python3

"""
Main entry point for GEX.
This script handles the workflow of:
1. Listing the packages installed for a project (or globally)
2. Building a normalized dependency report
3. Rendering it as JSON, Markdown or HTML
4. Reading a saved report back to print or reinstall its packages
5. Optionally checking for (and updating) outdated packages first

Usage:
    gex [local] [-f json|md|html] [-o FILE] [--full-tree] [--omit-dev] [-c] [-u [PKGS]] [--cwd DIR]
    gex global [-f json|md|html] [-o FILE] [--full-tree] [-c] [-u [PKGS]]
    gex read [REPORT] [-r REPORT] [-p] [-i] [--dry-run]
    gex-bun ...             Same commands, using Bun instead of npm

Options:
    --package-manager PM   npm or bun (default: npm for gex, bun for gex-bun)
    --verbose              Enable verbose logging
    --log-file FILE        Also write a detailed log to FILE
    --version              Show the GEX version and exit
"""

import argparse
import sys
from pathlib import Path

from gex import __version__
from gex.utils.audit import default_report_file, outdated_handlers, produce_report, render_report
from gex.utils.config import ConfigError, load_config
from gex.utils.logger import setup_logger
from gex.utils.models import OutputFormat, PackageManager
from gex.utils.outdated import handle_outdated_workflow, normalize_update_selection
from gex.utils.package_manager import PackageManagerError
from gex.utils.rate_limiter import RateLimiter
from gex.utils.report_consumer import ReportInstaller, format_report_listing
from gex.utils.report_parser import ReportParseError, load_report_from_file
from gex.utils.validators import ValidationError, validate_file_path

COMMANDS = ("local", "global", "read")
TOP_LEVEL_FLAGS = ("-h", "--help", "--version")
# Options whose next token is their value, never a sub-command
VALUE_OPTIONS = (
    "-f", "--output-format", "-o", "--out-file", "--cwd",
    "--package-manager", "--log-file", "-r", "--report",
)

READ_HINT = "Use -r <path> to point to a JSON or Markdown report, or run a local/global command first."


def _add_global_options(parser):
    # SUPPRESS keeps a value given before the sub-command from being reset by the sub-parser
    parser.add_argument(
        '--package-manager',
        choices=[pm.value for pm in PackageManager],
        default=argparse.SUPPRESS,
        help='Package manager to query and install with'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        default=argparse.SUPPRESS,
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--log-file',
        type=str,
        default=argparse.SUPPRESS,
        help='Write a detailed log to this file'
    )


def _add_report_options(parser, allow_omit_dev):
    parser.add_argument(
        '-f', '--output-format',
        choices=[fmt.value for fmt in OutputFormat],
        default=None,
        help='Output format (default: json)'
    )
    parser.add_argument(
        '-o', '--out-file',
        type=str,
        default=None,
        help='Write the report to this file instead of stdout'
    )
    parser.add_argument(
        '--full-tree',
        action='store_true',
        default=None,
        help='Include the full dependency tree instead of top-level packages only'
    )
    if allow_omit_dev:
        parser.add_argument(
            '--omit-dev',
            action='store_true',
            default=None,
            help='Exclude devDependencies'
        )
    parser.add_argument(
        '-c', '--check-outdated',
        action='store_true',
        default=False,
        help='List outdated packages; without -o no report is written'
    )
    parser.add_argument(
        '-u', '--update-outdated',
        nargs='?',
        const=True,
        default=None,
        help='Update all outdated packages, or a comma-separated list of packages'
    )
    parser.add_argument(
        '--cwd',
        type=str,
        default=None,
        help='Project directory (default: current directory)'
    )


def build_parser(default_manager=PackageManager.NPM):
    """
    Build the argument parser.

    Args:
        default_manager (PackageManager): Backend of the entry point; only affects help texts.

    Returns:
        argparse.ArgumentParser: The parser.
    """
    default_manager = PackageManager(default_manager)
    prog = "gex-bun" if default_manager is PackageManager.BUN else "gex"

    common = argparse.ArgumentParser(add_help=False)
    _add_global_options(common)

    parser = argparse.ArgumentParser(
        prog=prog,
        description='Audit and document installed npm/Bun packages.',
        parents=[common]
    )
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest='command')

    local_parser = subparsers.add_parser(
        'local',
        parents=[common],
        help="Generate a report for the current project's dependencies (default)"
    )
    _add_report_options(local_parser, allow_omit_dev=True)

    global_parser = subparsers.add_parser(
        'global',
        parents=[common],
        help='Generate a report of globally installed packages'
    )
    _add_report_options(global_parser, allow_omit_dev=False)

    read_parser = subparsers.add_parser(
        'read',
        parents=[common],
        help='Read a saved report (JSON or Markdown) and print or install its packages'
    )
    read_parser.add_argument(
        'report',
        nargs='?',
        default=None,
        help=f'Path to the report file (default: {default_report_file(default_manager)})'
    )
    read_parser.add_argument('-r', '--report', dest='report_option', type=str, default=None,
                             help='Path to the report file')
    read_parser.add_argument('-p', '--print', dest='print_packages', action='store_true',
                             help='Print package names and versions (default)')
    read_parser.add_argument('-i', '--install', action='store_true',
                             help='Install the packages listed in the report')
    read_parser.add_argument('--dry-run', action='store_true',
                             help='Show the install commands without running them')
    read_parser.add_argument('--cwd', type=str, default=None,
                             help='Directory to install into (default: current directory)')

    return parser


def _first_positional(argv):
    skip_next = False
    for token in argv:
        if skip_next:
            skip_next = False
        elif token in VALUE_OPTIONS:
            skip_next = True
        elif not token.startswith('-'):
            return token
    return None


def parse_arguments(argv=None, default_manager=PackageManager.NPM):
    """
    Parse command line arguments; `local` is assumed when no sub-command is given.
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    if not (argv and argv[0] in TOP_LEVEL_FLAGS) and _first_positional(argv) not in COMMANDS:
        argv = ['local'] + argv
    return build_parser(default_manager).parse_args(argv)


def write_output(text, out_file, logger):
    """
    Print the report or write it to a file.

    Args:
        text (str): Rendered report.
        out_file (str or None): Destination path; stdout when None.
        logger (logging.Logger): Logger instance.
    """
    if not out_file:
        print(text)
        return

    path = validate_file_path(out_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(text)
    logger.debug(f"Wrote {len(text)} characters to {path}")
    print(f"Wrote report to {out_file}")


def run_report_command(args, config, logger):
    """Handle the `local` and `global` sub-commands."""
    cwd = Path(args.cwd).resolve() if args.cwd else Path.cwd()
    rate_limiter = RateLimiter(config.rate_limit_ms)

    selection = normalize_update_selection(args.update_outdated)
    if args.check_outdated or selection.should_update:
        fetch_outdated, update_runner = outdated_handlers(
            args.command,
            manager=config.package_manager,
            cwd=cwd,
            rate_limiter=rate_limiter,
            logger=logger,
        )
        if selection.should_update and update_runner is None:
            logger.warning("Updating is not supported for Bun projects; run `bun update` instead.")
        proceed = handle_outdated_workflow(
            args.check_outdated,
            selection,
            args.command,
            fetch_outdated,
            update_runner=update_runner,
            out_file=config.out_file,
            logger=logger,
        )
        if not proceed:
            return 0

    report, extras = produce_report(
        args.command,
        manager=config.package_manager,
        cwd=cwd,
        full_tree=config.full_tree,
        omit_dev=config.omit_dev if args.command == 'local' else False,
        rate_limiter=rate_limiter,
        logger=logger,
    )
    text = render_report(report, config.output_format, extras)
    write_output(text, config.out_file, logger)
    return 0


def run_read_command(args, config, logger):
    """Handle the `read` sub-command."""
    chosen = args.report_option or args.report or default_report_file(config.package_manager)
    report_path = Path.cwd() / chosen

    try:
        report = load_report_from_file(report_path)
    except (OSError, ReportParseError) as e:
        logger.error(f"Failed to read report at {report_path}: {str(e)}")
        logger.error(READ_HINT)
        return 1

    do_install = args.install
    do_print = args.print_packages or not do_install

    if do_print:
        print(format_report_listing(report))

    if do_install:
        installer = ReportInstaller(
            cwd=Path(args.cwd).resolve() if args.cwd else Path.cwd(),
            package_manager=config.package_manager,
            rate_limiter=RateLimiter(config.rate_limit_ms),
            logger=logger,
        )
        installer.install_from_report(report, dry_run=args.dry_run)
    return 0


def run(argv=None, default_manager=PackageManager.NPM):
    """
    Run the CLI.

    Args:
        argv (list, optional): Arguments without the program name. Defaults to sys.argv[1:].
        default_manager (PackageManager): Backend used when neither a flag nor the config picks one.

    Returns:
        int: Exit code.
    """
    default_manager = PackageManager(default_manager)
    args = parse_arguments(argv, default_manager)

    verbose = getattr(args, 'verbose', False)
    log_file = getattr(args, 'log_file', None)
    logger = setup_logger(log_file, verbose)

    cwd = getattr(args, 'cwd', None)
    config = load_config(cwd, logger=logger)

    # The Bun entry point picks its backend unless a flag says otherwise
    package_manager = getattr(args, 'package_manager', None)
    if package_manager is None and default_manager is PackageManager.BUN:
        package_manager = default_manager.value

    try:
        config = config.merge(
            package_manager=package_manager,
            output_format=getattr(args, 'output_format', None),
            out_file=getattr(args, 'out_file', None),
            full_tree=getattr(args, 'full_tree', None),
            omit_dev=getattr(args, 'omit_dev', None),
            verbose=verbose or None,
            log_file=log_file,
        )
    except ConfigError as e:
        logger.error(str(e))
        return 1

    if config.verbose != verbose or config.log_file != log_file:
        logger = setup_logger(config.log_file, config.verbose)

    if config.source:
        logger.debug(f"Using configuration from {config.source}")

    try:
        if args.command == 'read':
            return run_read_command(args, config, logger)
        return run_report_command(args, config, logger)
    except ValidationError as e:
        logger.error(f"Invalid input: {str(e)}")
        return 1
    except PackageManagerError as e:
        logger.error(f"An error occurred: {str(e)}")
        return 1


def main(argv=None):
    """Entry point for the npm-backed `gex` command."""
    return run(argv, default_manager=PackageManager.NPM)


def main_bun(argv=None):
    """Entry point for the Bun-backed `gex-bun` command."""
    return run(argv, default_manager=PackageManager.BUN)


if __name__ == '__main__':
    sys.exit(main())
