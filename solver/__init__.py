"""Solver-Modul (Constraint-Auswertung, manuelle Platzierung, AutoScheduler)."""

from .evaluator import ConstraintEvaluator, Evaluation, Violation, ViolationKind
from .placement import PlacementError, PlacementOverride, PlacementService
from .scheduler import AutoScheduler, ScheduleResult
from .engine import TimetableEngine

__all__ = [
    "ConstraintEvaluator",
    "Evaluation",
    "Violation",
    "ViolationKind",
    "PlacementError",
    "PlacementOverride",
    "PlacementService",
    "AutoScheduler",
    "ScheduleResult",
    "TimetableEngine",
]
