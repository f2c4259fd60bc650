"""flatctl - command-line front end for a multi-installation package manager."""

import logging

__version__ = "0.3.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
