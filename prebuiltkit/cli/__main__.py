"""
Entry point for running PrebuiltKit CLI as a module.

Usage: python -m prebuiltkit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
