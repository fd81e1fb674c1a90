"""Heuristic and AI-assisted code review for TypeScript / JavaScript projects."""

__version__ = "1.0.0"
