"""Batch update orchestrator for vuln-list data repositories."""

__version__ = "1.0.0"
