"""
Urls command implementation.
"""

from prebuiltkit.cli.utils import load_project_config, reports_errors
from prebuiltkit.precompile.fetch import artifact_urls


@reports_errors
def run(args) -> int:
    """Print every archive URL recorded for the project, one per line."""
    config = load_project_config(args)
    for url in artifact_urls(config):
        print(url)
    return 0
