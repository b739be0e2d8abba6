"""
Target command implementation.

Prints the canonical target triple of the running host.
"""

import logging

from prebuiltkit.cli.utils import load_project_config, reports_errors
from prebuiltkit.targets.resolver import TargetResolver

logger = logging.getLogger(__name__)


@reports_errors
def run(args) -> int:
    """
    Run the target command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 if the host is unsupported)
    """
    config = load_project_config(args)
    resolver = TargetResolver(config.convention, config.targets, config.runtime_versions)
    resolved = resolver.current_target(config.runtime_version)

    logger.debug(f"Runtime version {resolved.runtime_version}")
    print(resolved.target)
    return 0
