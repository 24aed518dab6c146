"""PlacementService – setzt einzelne Sitzungen manuell ins Raster.

Eine Platzierung wird entweder vollständig geschrieben (in alle Zellen der
Zielkohorten) oder gar nicht. Zwei Verstöße sind übersteuerbar: eine nicht
verfügbare Lehrkraft und eine bereits belegte Zelle.
"""

import logging
import uuid
from typing import Callable, Optional

from pydantic import BaseModel

from models.lesson import Placement
from models.store import EntityStore
from solver.evaluator import ConstraintEvaluator, Violation, ViolationKind

logger = logging.getLogger(__name__)

ConfirmCallback = Callable[[str], bool]

# Reihenfolge, in der nicht übersteuerbare Verstöße gemeldet werden
_FATAL_ORDER = (
    ViolationKind.UNKNOWN_REFERENCE,
    ViolationKind.UNKNOWN_COHORT,
    ViolationKind.OUT_OF_BOUNDS,
    ViolationKind.PERIOD_TYPE_MISMATCH,
)
_CONFLICT_ORDER = (
    ViolationKind.TEACHER_DOUBLE_BOOKED,
    ViolationKind.ROOM_DOUBLE_BOOKED,
)


class PlacementError(Exception):
    """Platzierung abgelehnt; benennt Art, Zelle und betroffene Ressource."""

    def __init__(
        self,
        kind: ViolationKind,
        message: str,
        cohort: Optional[str] = None,
        day: Optional[int] = None,
        period: Optional[int] = None,
        resource: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cohort = cohort
        self.day = day
        self.period = period
        self.resource = resource

    @classmethod
    def from_violation(cls, violation: Violation, day: int, period: int) -> "PlacementError":
        return cls(
            kind=violation.kind,
            message=violation.message,
            cohort=violation.cohort,
            day=day,
            period=period,
            resource=violation.resource,
        )

    def __repr__(self) -> str:
        return f"PlacementError({self.kind.value}, {self.message!r})"


class PlacementOverride(BaseModel):
    """Explizite Übersteuerungen für place()."""
    allow_unavailable_teacher: bool = False
    replace_occupied: bool = False


class PlacementService:
    """Validiert und schreibt einzelne Platzierungen.

    Verwendung:
        service = PlacementService(store)
        placement = service.place(lesson.id, day=0, period=1)
        service.unplace(placement.placement_id)
    """

    def __init__(self, store: EntityStore) -> None:
        self.store = store
        self.evaluator = ConstraintEvaluator(store)

    def place(
        self,
        lesson_id: str,
        day: int,
        period: int,
        override: Optional[PlacementOverride] = None,
        confirm: Optional[ConfirmCallback] = None,
    ) -> Placement:
        """Platziert eine Sitzung von ``lesson_id`` in (day, period).

        Ohne gesetztes Override-Flag wird ``confirm`` (falls vorhanden) je
        übersteuerbarem Fall genau einmal gefragt. Beim Ersetzen wird jede
        belegende Platzierung vollständig entfernt.

        Raises:
            PlacementError: bei jedem nicht übersteuerten Verstoß; das Raster
                bleibt dann unverändert.
        """
        override = override or PlacementOverride()
        grid = self.store.grid

        lesson = self.store.find_lesson(lesson_id)
        if lesson is None:
            raise PlacementError(
                kind=ViolationKind.UNKNOWN_REFERENCE,
                message=f"Unbekannte Unterrichtseinheit: {lesson_id}",
                day=day,
                period=period,
                resource=lesson_id,
            )

        evaluation = self.evaluator.evaluate(lesson, day, period, grid)
        self._raise_first(evaluation.violations, _FATAL_ORDER, day, period)

        # Belegte Zellen: ersetzen nur mit Flag oder Bestätigung
        replaced: frozenset = frozenset()
        occupied = evaluation.of_kind(ViolationKind.CELL_OCCUPIED)
        if occupied:
            first = occupied[0]
            if not override.replace_occupied and not self._ask(
                confirm,
                f"{first.message} Bestehende Platzierung ersetzen?",
            ):
                raise PlacementError.from_violation(first, day, period)
            replaced = frozenset(v.resource for v in occupied)
            evaluation = self.evaluator.evaluate(lesson, day, period, grid, ignore=replaced)

        self._raise_first(evaluation.violations, _CONFLICT_ORDER, day, period)

        unavailable = evaluation.of_kind(ViolationKind.TEACHER_UNAVAILABLE)
        if unavailable and not override.allow_unavailable_teacher:
            if not self._ask(confirm, f"{unavailable[0].message} Trotzdem platzieren?"):
                raise PlacementError.from_violation(unavailable[0], day, period)

        for pid in replaced:
            removed = grid.remove(pid)
            if removed is not None:
                logger.info(f"Platzierung {pid} ersetzt ({', '.join(removed.cohorts)})")

        placement = Placement(
            placement_id=f"pl_{uuid.uuid4().hex[:12]}",
            lesson_id=lesson.id,
            subject_id=lesson.subject_id,
            teacher_id=lesson.teacher_id,
            room_id=lesson.room_id,
            cohorts=tuple(lesson.cohorts),
            day=day,
            period=period,
        )
        grid.add(placement)
        logger.debug(
            f"Platziert: {lesson.id} → {'/'.join(lesson.cohorts)} "
            f"{grid.day_names[day]} P{period} (Strafe {evaluation.penalty:.3f})"
        )
        return placement

    def unplace(self, placement_id: str) -> bool:
        """Entfernt eine Platzierung aus allen Zellen. True wenn etwas entfernt wurde."""
        return self.store.grid.remove(placement_id) is not None

    def clear_cell(self, cohort: str, day: int, period: int) -> bool:
        """Leert eine Zelle (siehe EntityStore.clear_cell)."""
        return self.store.clear_cell(cohort, day, period)

    # ─── Hilfen ───────────────────────────────────────────────────────────────

    @staticmethod
    def _raise_first(violations: list[Violation], order: tuple, day: int, period: int) -> None:
        for kind in order:
            for v in violations:
                if v.kind == kind:
                    raise PlacementError.from_violation(v, day, period)

    @staticmethod
    def _ask(confirm: Optional[ConfirmCallback], question: str) -> bool:
        if confirm is None:
            return False
        return bool(confirm(question))
