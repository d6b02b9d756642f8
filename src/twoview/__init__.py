"""
twoview: minimal-solver geometric estimation for two-view structure from motion.
"""
from .log import configure_logging

__version__ = "0.1.0"

configure_logging()
