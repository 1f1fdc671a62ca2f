#!/usr/bin/env python3
"""
Command-line tool for reading a GEX report and reinstalling its packages.
"""

import argparse
import sys
from pathlib import Path

from gex.utils.logger import setup_logger
from gex.utils.models import PackageManager
from gex.utils.package_manager import PackageManagerError
from gex.utils.rate_limiter import RateLimiter
from gex.utils.report_consumer import ReportInstaller, format_report_listing
from gex.utils.report_parser import ReportParseError, load_report_from_file


def main(argv=None):
    """Main entry point for the script."""
    parser = argparse.ArgumentParser(description='Print or install the packages listed in a GEX report.')
    parser.add_argument('report', nargs='?', default='gex-report.json', type=str,
                        help='Path to the report file (JSON or Markdown).')
    parser.add_argument('-i', '--install', action='store_true', help='Install the packages from the report.')
    parser.add_argument('--dry-run', action='store_true', help='Show the install commands without running them.')
    parser.add_argument('--package-manager', choices=[pm.value for pm in PackageManager],
                        default=PackageManager.NPM.value, help='Package manager used for installing.')
    parser.add_argument('--rate-limit-ms', type=int, default=50,
                        help='Minimum delay between package-manager commands.')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose logging.')

    args = parser.parse_args(argv)

    # Setup logging
    logger = setup_logger(verbose=args.verbose)

    report_path = Path.cwd() / args.report

    try:
        report = load_report_from_file(report_path)
    except OSError as e:
        logger.error(f"Failed to read report at {report_path}: {str(e)}")
        return 1
    except ReportParseError as e:
        logger.error(f"Failed to parse report at {report_path}: {str(e)}")
        return 1

    print(format_report_listing(report))

    if not args.install:
        return 0

    installer = ReportInstaller(
        cwd=Path.cwd(),
        package_manager=args.package_manager,
        rate_limiter=RateLimiter(args.rate_limit_ms),
        logger=logger,
    )
    try:
        installer.install_from_report(report, dry_run=args.dry_run)
    except PackageManagerError as e:
        logger.error(f"Failed to install packages from {report_path}: {str(e)}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
