"""Reconcile reading-dashboard catalog, stats and annotations into analytics."""

__version__ = "0.1.0"
