"""
Recipe Core - CLI Logging

Shared by ingest.py and enrich.py so both scripts print the same way.
"""

import logging
import sys


def setup_logging(verbose: bool = False, quiet: bool = False):
    """Configure logging based on verbosity flags."""
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",  # Simple format, just the message, no timestamps
        handlers=[logging.StreamHandler(sys.stdout)]
    )
