"""TimetableEngine – programmatische Schnittstelle für den Host.

Bündelt EntityStore, PlacementService, AutoScheduler und Restbedarf.
"""

from typing import Optional

from models.store import EntityStore
from models.lesson import Placement
from solver.demand import CapacityCheck, capacity_check, remaining
from solver.evaluator import ConstraintEvaluator, Evaluation
from solver.placement import ConfirmCallback, PlacementOverride, PlacementService
from solver.scheduler import AutoScheduler, ScheduleResult


class TimetableEngine:
    """Fassade über dem Store.

    Verwendung:
        engine = TimetableEngine(EntityStore.with_defaults())
        engine.place(lesson.id, day=0, period=1)
        result = engine.auto_schedule(seed=42)
    """

    def __init__(self, store: EntityStore, confirm: Optional[ConfirmCallback] = None) -> None:
        self.store = store
        self.confirm = confirm

    # Evaluator und Service lesen Gewichte aus der Config; nach
    # apply_settings() müssen sie neu gebaut werden.
    @property
    def evaluator(self) -> ConstraintEvaluator:
        return ConstraintEvaluator(self.store)

    @property
    def placement(self) -> PlacementService:
        return PlacementService(self.store)

    # ─── Manuelle Platzierung ─────────────────────────────────────────────────

    def place(
        self,
        lesson_id: str,
        day: int,
        period: int,
        override: Optional[PlacementOverride] = None,
        confirm: Optional[ConfirmCallback] = None,
    ) -> Placement:
        return self.placement.place(
            lesson_id, day, period,
            override=override,
            confirm=confirm if confirm is not None else self.confirm,
        )

    def unplace(self, placement_id: str) -> bool:
        return self.placement.unplace(placement_id)

    def clear_cell(self, cohort: str, day: int, period: int) -> bool:
        return self.store.clear_cell(cohort, day, period)

    def evaluate(self, lesson_id: str, day: int, period: int,
                 relax_same_subject: bool = False,
                 relax_teacher_repeat: bool = False) -> Evaluation:
        """Auswertung einer Kandidaten-Zelle auf dem aktuellen Raster."""
        lesson = self.store.get_lesson(lesson_id)
        return self.evaluator.evaluate(
            lesson, day, period,
            relax_same_subject=relax_same_subject,
            relax_teacher_repeat=relax_teacher_repeat,
        )

    # ─── Automatik ────────────────────────────────────────────────────────────

    def auto_schedule(self, seed: Optional[int] = None, commit: bool = True) -> ScheduleResult:
        """Plant alle Einheiten neu. Mit ``commit`` ersetzt das Ergebnis das Store-Raster."""
        result = AutoScheduler(self.store).schedule(seed=seed)
        if commit:
            self.store.replace_grid(result.grid)
        return result

    # ─── Restbedarf ───────────────────────────────────────────────────────────

    def remaining(self) -> dict[str, int]:
        return remaining(self.store.lessons, self.store.grid)

    def capacity(self) -> CapacityCheck:
        return capacity_check(self.store.lessons, self.store.grid)

    def reset_grid(self) -> None:
        self.store.reset_grid()
