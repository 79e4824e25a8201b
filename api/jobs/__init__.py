"""
Jobs package for delayed status transitions.

Provides the scheduler that flips datasets to processed and deployments to
deployed after their simulated delays.
"""

from .manager import Transition, TransitionKind, TransitionScheduler, TransitionStatus

__all__ = ["TransitionScheduler", "Transition", "TransitionKind", "TransitionStatus"]
