"""
Install command implementation.

Installs the precompiled library for this host, or builds it locally when the
project asks for a forced build.
"""

import logging

from prebuiltkit.cli.utils import load_project_config, reports_errors
from prebuiltkit.precompile.builder import build_native
from prebuiltkit.precompile.installer import ensure_installed

logger = logging.getLogger(__name__)


@reports_errors
def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    config = load_project_config(args)

    if config.force_build:
        logger.info(f"Force build enabled for {config.app} {config.version}")
        build_native(config)
        return 0

    result = ensure_installed(config)
    if result.skipped:
        logger.info(f"Already installed: {result.load_path}")
    else:
        logger.info(f"Installed {result.target}: {result.load_path}")
    return 0
