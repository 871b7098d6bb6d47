"""
Core Pantry functionality.

Exports core abstractions and base classes.
"""

from pantry.core.resource import Resource, Plan, Action, Change, Platform
from pantry.core.executor import Executor, Outcome, PlanResult, ApplyResult

__all__ = [
    "Resource",
    "Plan",
    "Action",
    "Change",
    "Platform",
    "Executor",
    "Outcome",
    "PlanResult",
    "ApplyResult",
]
