"""Dependency Injection Container.

Manages component lifecycle and dependency resolution.
"""

from .container import Container

__all__ = ["Container"]
