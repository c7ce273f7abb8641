"""
PrismPDF - Python package for assembling PDF files locally

This package merges, splits, reorders and compresses PDF documents on the
user's own machine and keeps the results in a local workspace.
"""

__version__ = "1.0.0"
__author__ = "PrismPDF Contributors"
__license__ = "GPL-3.0"


def main(argv: list[str] | None = None) -> int:
    """Run the command-line interface."""
    from prismpdf.cli import main as cli_main

    return cli_main(argv)
