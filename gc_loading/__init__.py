"""GC loading tracker: package-level load selection for shipments."""

from __future__ import annotations

from .logging_utils import setup_logging

__version__ = "0.3.0"

# Configure logging on package import
setup_logging()
