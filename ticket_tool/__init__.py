"""Service ticket reconciliation and invoice grouping."""

__version__ = "1.0.0"
