"""
Carrier Sync - per-store carrier priority reconciliation.
"""

__version__ = "1.0.0"
