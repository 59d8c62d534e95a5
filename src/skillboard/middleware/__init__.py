# src/skillboard/middleware/__init__.py

"""Middleware components for the SkillBoard API."""

from .logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
