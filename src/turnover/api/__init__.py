"""Turnover HTTP API."""

from turnover.api.router import router

__all__ = ["router"]
