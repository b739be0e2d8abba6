"""
Entry point for running PrebuiltKit CLI as a module.

Usage: python -m prebuiltkit [command] [options]
"""

from prebuiltkit.cli.parser import main

if __name__ == "__main__":
    main()
