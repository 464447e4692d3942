"""Turnover - villa property-turnover workflow engine."""

__version__ = "0.1.0"
