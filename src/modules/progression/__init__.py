"""
Progression Module
==================

Public facade of the engine: external intake (match results, grants,
purchases), queries and commands returning `OperationResult`.
"""

from .service import ProgressionService

__all__ = ["ProgressionService"]
