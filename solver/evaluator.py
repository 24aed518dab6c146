"""ConstraintEvaluator: harte Verstöße und weiche Strafe für eine Kandidaten-Zelle.

Reine Abfragen ohne Seiteneffekte. Lehrer- und Raum-Exklusivität sowie die
Tageszähler pro Kohorte kommen aus dem inkrementellen Index des Rasters.
"""

from enum import Enum
from typing import Callable, Optional

from pydantic import BaseModel

from models.grid import TimetableGrid
from models.lesson import Lesson
from models.store import EntityStore


class ViolationKind(str, Enum):
    CELL_OCCUPIED = "CellOccupied"
    PERIOD_TYPE_MISMATCH = "PeriodTypeMismatch"
    TEACHER_UNAVAILABLE = "TeacherUnavailable"
    TEACHER_DOUBLE_BOOKED = "TeacherDoubleBooked"
    ROOM_DOUBLE_BOOKED = "RoomDoubleBooked"
    UNKNOWN_COHORT = "UnknownCohort"
    UNKNOWN_REFERENCE = "UnknownReference"
    OUT_OF_BOUNDS = "OutOfBounds"


class Violation(BaseModel):
    """Ein einzelner harter Verstoß."""
    kind: ViolationKind
    message: str
    cohort: Optional[str] = None
    resource: Optional[str] = None     # Lehrer-, Raum- oder Placement-ID


class Evaluation(BaseModel):
    """Ergebnis von evaluate(): harte Verstöße + weiche Strafe."""
    violations: list[Violation]
    penalty: float

    @property
    def is_legal(self) -> bool:
        return not self.violations

    @property
    def kinds(self) -> set[ViolationKind]:
        return {v.kind for v in self.violations}

    def of_kind(self, kind: ViolationKind) -> list[Violation]:
        return [v for v in self.violations if v.kind == kind]


class ConstraintEvaluator:
    """Prüft eine Unterrichtseinheit gegen eine (Tag, Slot)-Zelle.

    Verwendung:
        evaluator = ConstraintEvaluator(store)
        result = evaluator.evaluate(lesson, day=0, period=1)
    """

    def __init__(self, store: EntityStore) -> None:
        self.store = store
        weights = store.config.solver
        self.weight_same_subject = weights.weight_same_subject
        self.weight_teacher_repeat = weights.weight_teacher_repeat
        self.weight_tie_break = weights.weight_tie_break

    # ─── Vollständige Auswertung ──────────────────────────────────────────────

    def evaluate(
        self,
        lesson: Lesson,
        day: int,
        period: int,
        grid: Optional[TimetableGrid] = None,
        relax_same_subject: bool = False,
        relax_teacher_repeat: bool = False,
        ignore: frozenset = frozenset(),
    ) -> Evaluation:
        """Alle harten Verstöße und die weiche Strafe für (lesson, day, period).

        ``ignore`` enthält Placement-IDs, die als nicht vorhanden gelten
        (z.B. die Platzierung, die ersetzt werden soll).
        """
        grid = grid if grid is not None else self.store.grid
        violations: list[Violation] = []

        # Strukturelle Prüfungen: danach ist keine weitere Auswertung sinnvoll
        violations.extend(self._reference_violations(lesson))
        for cohort in lesson.cohorts:
            if not grid.has_cohort(cohort):
                violations.append(Violation(
                    kind=ViolationKind.UNKNOWN_COHORT,
                    message=f"Kohorte '{cohort}' ist nicht konfiguriert.",
                    cohort=cohort,
                ))
        if not grid.in_bounds(day, period):
            violations.append(Violation(
                kind=ViolationKind.OUT_OF_BOUNDS,
                message=f"Tag {day} / Slot {period} liegt außerhalb des Rasters {grid.shape}.",
            ))
        if violations:
            return Evaluation(violations=violations, penalty=0.0)

        subject = self.store.get_subject(lesson.subject_id)
        day_name = grid.day_names[day]

        if subject.is_form and period != 0:
            violations.append(Violation(
                kind=ViolationKind.PERIOD_TYPE_MISMATCH,
                message=f"{subject.name} darf nur im Form-Slot liegen, nicht in P{period}.",
                resource=subject.id,
            ))
        elif not subject.is_form and period == 0:
            violations.append(Violation(
                kind=ViolationKind.PERIOD_TYPE_MISMATCH,
                message=f"{subject.name} darf nicht im Form-Slot liegen ({day_name}).",
                resource=subject.id,
            ))

        for cohort in lesson.cohorts:
            occupant = grid.cell(cohort, day, period)
            if occupant is not None and occupant.placement_id not in ignore:
                violations.append(Violation(
                    kind=ViolationKind.CELL_OCCUPIED,
                    message=f"Zelle {cohort} {day_name} P{period} ist bereits belegt.",
                    cohort=cohort,
                    resource=occupant.placement_id,
                ))

        if lesson.teacher_id is not None:
            teacher = self.store.get_teacher(lesson.teacher_id)
            if not teacher.is_available(day_name, period):
                violations.append(Violation(
                    kind=ViolationKind.TEACHER_UNAVAILABLE,
                    message=f"{teacher.name} ({teacher.code}) arbeitet nicht {day_name} P{period}.",
                    resource=teacher.id,
                ))
            if grid.teacher_busy(teacher.id, day, period, ignore):
                violations.append(Violation(
                    kind=ViolationKind.TEACHER_DOUBLE_BOOKED,
                    message=f"{teacher.name} ({teacher.code}) unterrichtet {day_name} P{period} bereits.",
                    resource=teacher.id,
                ))

        if lesson.room_id is not None and grid.room_busy(lesson.room_id, day, period, ignore):
            room = self.store.find_room(lesson.room_id)
            violations.append(Violation(
                kind=ViolationKind.ROOM_DOUBLE_BOOKED,
                message=f"Raum {room.name} ist {day_name} P{period} bereits belegt.",
                resource=lesson.room_id,
            ))

        penalty = self.penalty(lesson, day, period, grid, relax_same_subject, relax_teacher_repeat)
        return Evaluation(violations=violations, penalty=penalty)

    def _reference_violations(self, lesson: Lesson) -> list[Violation]:
        store = self.store
        missing = []
        if store.find_subject(lesson.subject_id) is None:
            missing.append(f"Fach {lesson.subject_id}")
        if lesson.teacher_id is not None and store.find_teacher(lesson.teacher_id) is None:
            missing.append(f"Lehrkraft {lesson.teacher_id}")
        if lesson.room_id is not None and store.find_room(lesson.room_id) is None:
            missing.append(f"Raum {lesson.room_id}")
        return [
            Violation(
                kind=ViolationKind.UNKNOWN_REFERENCE,
                message=f"Unterrichtseinheit {lesson.id} verweist auf unbekannte(s) {m}.",
                resource=lesson.id,
            )
            for m in missing
        ]

    # ─── Schnellpfad für den Solver ───────────────────────────────────────────

    def is_placeable(self, lesson: Lesson, grid: Optional[TimetableGrid] = None) -> bool:
        """True wenn die Einheit strukturell überhaupt platziert werden kann."""
        grid = grid if grid is not None else self.store.grid
        return not self._reference_violations(lesson) and all(
            grid.has_cohort(c) for c in lesson.cohorts
        )

    def candidate_periods(self, lesson: Lesson, grid: TimetableGrid) -> range:
        """Slots, deren Typ zum Fach passt (Form → nur 0, sonst 1..periods)."""
        if self.store.get_subject(lesson.subject_id).is_form:
            return range(0, 1)
        return range(1, grid.slots_per_day)

    def is_legal(self, lesson: Lesson, day: int, period: int, grid: TimetableGrid) -> bool:
        """Wie ``evaluate(...).is_legal``, aber ohne Meldungen (Solver-Schnellpfad).

        Setzt voraus, dass is_placeable() wahr und die Zelle typ-passend ist.
        """
        for cohort in lesson.cohorts:
            if grid.cell(cohort, day, period) is not None:
                return False
        teacher_id = lesson.teacher_id
        if teacher_id is not None:
            if grid.teacher_busy(teacher_id, day, period):
                return False
            teacher = self.store.get_teacher(teacher_id)
            if not teacher.is_available(grid.day_names[day], period):
                return False
        if lesson.room_id is not None and grid.room_busy(lesson.room_id, day, period):
            return False
        return True

    def penalty(
        self,
        lesson: Lesson,
        day: int,
        period: int,
        grid: TimetableGrid,
        relax_same_subject: bool = False,
        relax_teacher_repeat: bool = False,
    ) -> float:
        """Weiche Strafe: Fach-Wiederholung, Lehrer-Wiederholung, Gleichstandsbrecher."""
        score = 0.0
        if not relax_same_subject:
            if any(grid.subject_count(c, day, lesson.subject_id) > 0 for c in lesson.cohorts):
                score += self.weight_same_subject
        if not relax_teacher_repeat and lesson.teacher_id is not None:
            repeats = sum(grid.teacher_count(c, day, lesson.teacher_id) for c in lesson.cohorts)
            score += self.weight_teacher_repeat * repeats
        score += self.weight_tie_break * (day * grid.slots_per_day + period)
        return score

    def options(
        self,
        lesson: Lesson,
        grid: TimetableGrid,
        relax_same_subject: bool = False,
        relax_teacher_repeat: bool = False,
        tick: Optional[Callable[[], None]] = None,
    ) -> list[tuple[float, int, int]]:
        """Alle legalen Zellen als (Strafe, Tag, Slot), aufsteigend nach Strafe.

        ``tick`` wird pro Tag aufgerufen (Zeitbudget-Prüfung des Solvers).
        """
        if not self.is_placeable(lesson, grid):
            return []
        periods = self.candidate_periods(lesson, grid)
        result: list[tuple[float, int, int]] = []
        for day in range(grid.days_per_week):
            if tick is not None:
                tick()
            for period in periods:
                if self.is_legal(lesson, day, period, grid):
                    result.append((
                        self.penalty(lesson, day, period, grid,
                                     relax_same_subject, relax_teacher_repeat),
                        day,
                        period,
                    ))
        result.sort()
        return result


def evaluate(
    store: EntityStore,
    lesson: Lesson,
    day: int,
    period: int,
    relax_same_subject: bool = False,
    relax_teacher_repeat: bool = False,
) -> Evaluation:
    """Kurzform für ``ConstraintEvaluator(store).evaluate(...)`` auf dem Store-Raster."""
    return ConstraintEvaluator(store).evaluate(
        lesson, day, period,
        relax_same_subject=relax_same_subject,
        relax_teacher_repeat=relax_teacher_repeat,
    )
