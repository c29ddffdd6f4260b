"""Sentinel City public-health backend."""

__version__ = "0.1.0"
