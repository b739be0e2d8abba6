"""
Shared utilities for CLI commands.

Provides configuration loading and consistent error output for every command.
"""

import logging
import sys
from functools import wraps
from typing import Optional

from prebuiltkit.config.parser import PrecompileConfig, load_config
from prebuiltkit.core.exceptions import PrebuiltKitError

logger = logging.getLogger(__name__)


def load_project_config(args) -> PrecompileConfig:
    """
    Load prebuiltkit.yaml using the global --config/--project-root options.

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    return load_config(
        getattr(args, "config", None),
        project_root=getattr(args, "project_root", None),
    )


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)


def reports_errors(func):
    """
    Turn PrebuiltKitError into an 'ERROR: ...' line and exit code 1.
    """

    @wraps(func)
    def wrapper(args) -> int:
        try:
            return func(args)
        except PrebuiltKitError as e:
            logger.debug("Command failed", exc_info=True)
            print_error(str(e))
            return 1

    return wrapper
