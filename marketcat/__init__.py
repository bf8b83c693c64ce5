"""Marketplace category cache and matching service."""

__version__ = "0.1.0"
