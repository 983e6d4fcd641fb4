"""Harvester - multi-platform content harvesting with uniform output records."""

__version__ = "0.1.0"
