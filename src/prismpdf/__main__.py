#!/usr/bin/env python3
"""
PrismPDF - Entry point for python -m prismpdf

This module allows the package to be run as a module:
    python -m prismpdf
"""

import sys

from prismpdf import main

if __name__ == "__main__":
    sys.exit(main())
