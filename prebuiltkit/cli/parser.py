"""
PrebuiltKit CLI argument parser.

This module implements the command-line interface for PrebuiltKit using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("prebuiltkit")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)

COMMAND_MODULES = {
    "target": "prebuiltkit.cli.commands.target",
    "install": "prebuiltkit.cli.commands.install",
    "precompile": "prebuiltkit.cli.commands.precompile",
    "fetch": "prebuiltkit.cli.commands.fetch",
    "urls": "prebuiltkit.cli.commands.urls",
}


class CLI:
    """PrebuiltKit command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="pbkit",
            description="PrebuiltKit - precompiled native extension installer",
            epilog='Use "pbkit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"PrebuiltKit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: ./prebuiltkit.yaml)",
        )
        parser.add_argument(
            "--project-root",
            type=Path,
            metavar="PATH",
            default=None,
            help="Project root directory (default: directory of the config file)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_target_command(subparsers)
        self._add_install_command(subparsers)
        self._add_precompile_command(subparsers)
        self._add_fetch_command(subparsers)
        self._add_urls_command(subparsers)

        return parser

    def _add_target_command(self, subparsers):
        """Add 'target' subcommand."""
        subparsers.add_parser(
            "target",
            help="Print the target triple of this host",
            description="Resolve and print the canonical target for this host",
        )

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        subparsers.add_parser(
            "install",
            help="Install the precompiled library for this host",
            description=(
                "Download, verify and extract the precompiled archive for this "
                "host, or build it locally when force_build is set"
            ),
        )

    def _add_precompile_command(self, subparsers):
        """Add 'precompile' subcommand."""
        parser = subparsers.add_parser(
            "precompile",
            help="Build and package archives for every target",
            description=(
                "Run the build command once per target with a cross compiler, "
                "package each result and write the checksum file"
            ),
        )
        parser.add_argument(
            "--targets",
            metavar="T1,T2",
            type=lambda value: [t.strip() for t in value.split(",") if t.strip()],
            help="Comma-separated targets (default: PREBUILTKIT_TARGETS or config)",
        )
        parser.add_argument(
            "build_args",
            nargs=argparse.REMAINDER,
            metavar="ARGS",
            help="Extra arguments passed to the build command",
        )

    def _add_fetch_command(self, subparsers):
        """Add 'fetch' subcommand."""
        parser = subparsers.add_parser(
            "fetch",
            help="Download published archives and write the checksum file",
            description="Download published archives and write the checksum file",
        )
        scope = parser.add_mutually_exclusive_group()
        scope.add_argument(
            "--all",
            action="store_true",
            help="Fetch archives for every target (default)",
        )
        scope.add_argument(
            "--only-local",
            action="store_true",
            help="Fetch only the archives for this host's target",
        )
        parser.add_argument(
            "--ignore-unavailable",
            action="store_true",
            help="Skip archives that cannot be downloaded",
        )
        parser.add_argument(
            "--print",
            dest="print_only",
            action="store_true",
            help="Print the URLs (and checksums) instead of writing the checksum file",
        )

    def _add_urls_command(self, subparsers):
        """Add 'urls' subcommand."""
        subparsers.add_parser(
            "urls",
            help="Print available archive URLs",
            description="Print the archive URLs recorded for this project",
        )

    def parse_args(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        """Parse arguments (sys.argv when args is None)."""
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Parse arguments, set up logging and run the selected command.

        Returns:
            0 on success, 1 on errors or a missing command, 130 on Ctrl-C
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Interrupted")
            return 130

    def _configure_logging(self, args):
        """
        Map --verbose/--quiet onto the root logger.

        HTTP connection chatter from urllib3 is only shown with --verbose.
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(level=level, format=format_str, force=True)
        logging.getLogger("urllib3").setLevel(
            logging.DEBUG if args.verbose else logging.WARNING
        )

    def _dispatch_command(self, args) -> int:
        """Import the command module and hand it the parsed arguments."""
        module_name = COMMAND_MODULES.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        return importlib.import_module(module_name).run(args)


def main():
    """Console entry point for ``pbkit``."""
    sys.exit(CLI().run())


if __name__ == "__main__":
    main()
