"""
Precompile command implementation.

Builds, packages and checksums the extension for every configured target.
"""

import logging

from prebuiltkit.cli.utils import load_project_config, reports_errors
from prebuiltkit.precompile.builder import precompile

logger = logging.getLogger(__name__)


@reports_errors
def run(args) -> int:
    """
    Run the precompile command.

    Args:
        args: Parsed command-line arguments with:
            - targets: Optional list of targets
            - build_args: Extra build command arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    config = load_project_config(args)
    build_args = [a for a in (args.build_args or []) if a != "--"]

    artifacts = precompile(config, args.targets, build_args)

    for target, artifact in artifacts.items():
        print(f"{target}: {artifact.path} ({artifact.algorithm}:{artifact.checksum})")
    logger.info(f"Checksum file: {config.checksum_path}")
    return 0
