"""
Fetch command implementation.

Downloads the published archives and regenerates the checksum file.
"""

import logging

from prebuiltkit.cli.utils import load_project_config, reports_errors
from prebuiltkit.core.cache import cache_root
from prebuiltkit.core.download import fetch_many
from prebuiltkit.precompile.fetch import artifact_urls, fetch_artifacts

logger = logging.getLogger(__name__)


@reports_errors
def run(args) -> int:
    """
    Run the fetch command.

    Args:
        args: Parsed command-line arguments with:
            - only_local: Only this host's target
            - ignore_unavailable: Skip archives that fail to download
            - print_only: Print URLs and checksums, leave the checksum file alone

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    config = load_project_config(args)

    if args.print_only:
        urls = artifact_urls(config, only_local=args.only_local)
        artifacts = fetch_many(
            urls, ignore_unavailable=args.ignore_unavailable, cache_dir=cache_root()
        )
        for artifact in artifacts:
            print(f"{artifact.url} {artifact.algorithm}:{artifact.checksum}")
        return 0

    artifacts = fetch_artifacts(
        config,
        only_local=args.only_local,
        ignore_unavailable=args.ignore_unavailable,
    )
    logger.info(f"Wrote {len(artifacts)} checksum(s) to {config.checksum_path}")
    return 0
