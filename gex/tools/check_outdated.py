#!/usr/bin/env python3
"""
Command-line tool for checking and updating outdated packages.
"""

import argparse
import sys
from pathlib import Path

from gex.utils.audit import outdated_handlers
from gex.utils.logger import setup_logger
from gex.utils.models import PackageManager
from gex.utils.outdated import handle_outdated_workflow, normalize_update_selection
from gex.utils.package_manager import PackageManagerError
from gex.utils.rate_limiter import RateLimiter
from gex.utils.validators import ValidationError


def main(argv=None):
    """Main entry point for the script."""
    parser = argparse.ArgumentParser(description='List outdated packages and optionally update them.')
    parser.add_argument('-g', '--global', dest='global_', action='store_true',
                        help='Check globally installed packages.')
    parser.add_argument('-u', '--update', nargs='?', const=True, default=None,
                        help='Update all outdated packages, or a comma-separated list of packages.')
    parser.add_argument('--cwd', type=str, default=None, help='Project directory.')
    parser.add_argument('--package-manager', choices=[pm.value for pm in PackageManager],
                        default=PackageManager.NPM.value, help='Package manager to query.')
    parser.add_argument('--rate-limit-ms', type=int, default=50,
                        help='Minimum delay between package-manager commands.')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose logging.')

    args = parser.parse_args(argv)

    # Setup logging
    logger = setup_logger(verbose=args.verbose)

    cwd = Path(args.cwd).resolve() if args.cwd else Path.cwd()
    context_label = "global" if args.global_ else "local"

    try:
        selection = normalize_update_selection(args.update)
    except ValidationError as e:
        logger.error(f"Invalid input: {str(e)}")
        return 1

    fetch_outdated, update_runner = outdated_handlers(
        context_label,
        manager=args.package_manager,
        cwd=cwd,
        rate_limiter=RateLimiter(args.rate_limit_ms),
        logger=logger,
    )
    if selection.should_update and update_runner is None:
        logger.warning("Updating is not supported for Bun projects; run `bun update` instead.")

    try:
        handle_outdated_workflow(
            check_outdated=True,
            selection=selection,
            context_label=context_label,
            fetch_outdated=fetch_outdated,
            update_runner=update_runner,
            logger=logger,
        )
    except PackageManagerError as e:
        logger.error(f"An error occurred: {str(e)}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
