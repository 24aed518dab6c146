"""Post-Solve Validierung eines fertigen Rasters.

Prüft die Zellen direkt (nicht den Belegungs-Index) auf Verletzungen harter
Regeln – als Sicherheitsnetz unabhängig von Solver und PlacementService.
"""

from collections import defaultdict
from typing import Literal, Optional

from pydantic import BaseModel

from models.grid import TimetableGrid
from models.lesson import Placement
from models.store import EntityStore
from solver.demand import placed_counts


class ValidationViolation(BaseModel):
    """Eine einzelne Constraint-Verletzung."""

    severity: Literal["error", "warning"]
    constraint: str      # z.B. "teacher_double_booking"
    description: str
    entity: str          # teacher_id / cohort / room_id / lesson_id


class ValidationReport(BaseModel):
    """Ergebnis der Post-Solve Validierung."""

    violations: list[ValidationViolation]
    is_valid: bool       # True wenn keine Errors (Warnings ok)

    @property
    def errors(self) -> list[ValidationViolation]:
        return [v for v in self.violations if v.severity == "error"]

    @property
    def warnings(self) -> list[ValidationViolation]:
        return [v for v in self.violations if v.severity == "warning"]

    def print_rich(self) -> None:
        """Gibt den Report formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        status = (
            "[bold green]✓ VALIDE[/bold green]"
            if self.is_valid
            else "[bold red]✗ VERLETZUNGEN GEFUNDEN[/bold red]"
        )
        lines = [status, f"Fehler: {len(self.errors)} | Warnungen: {len(self.warnings)}"]
        console.print(Panel("\n".join(lines), title="Raster-Validierung", border_style="cyan"))

        if not self.violations:
            console.print("[dim]Keine Verletzungen gefunden.[/dim]")
            return

        table = Table(box=box.ROUNDED, show_lines=True)
        table.add_column("Typ", width=8)
        table.add_column("Constraint", width=26)
        table.add_column("Entität", width=14)
        table.add_column("Beschreibung")

        for v in self.violations:
            color = "red" if v.severity == "error" else "yellow"
            table.add_row(
                f"[{color}]{v.severity.upper()}[/{color}]",
                v.constraint,
                v.entity,
                v.description,
            )
        console.print(table)


class SolutionValidator:
    """Prüft ein fertiges Raster gegen alle harten Regeln."""

    def validate(self, store: EntityStore,
                 grid: Optional[TimetableGrid] = None) -> ValidationReport:
        """Führt alle Validierungschecks durch und gibt einen ValidationReport zurück."""
        grid = grid if grid is not None else store.grid
        placements = self._collect_placements(grid)
        violations: list[ValidationViolation] = []

        violations.extend(self._check_cell_consistency(grid, placements))
        violations.extend(self._check_references(store, placements))
        violations.extend(self._check_teacher_double_booking(store, grid, placements))
        violations.extend(self._check_room_double_booking(store, grid, placements))
        violations.extend(self._check_period_type(store, grid, placements))
        violations.extend(self._check_unavailable_slots(store, grid, placements))
        violations.extend(self._check_lesson_fulfillment(store, grid))

        has_errors = any(v.severity == "error" for v in violations)
        return ValidationReport(violations=violations, is_valid=not has_errors)

    @staticmethod
    def _collect_placements(grid: TimetableGrid) -> dict[str, Placement]:
        """Alle Platzierungen aus den Zellen, jede einmal."""
        found: dict[str, Placement] = {}
        for row in grid.rows():
            for day in row:
                for cell in day:
                    if cell is not None:
                        found.setdefault(cell.placement_id, cell)
        return found

    @staticmethod
    def _where(grid: TimetableGrid, day: int, period: int) -> str:
        return f"{grid.day_names[day]} P{period}"

    # ── Einzelne Prüfungen ────────────────────────────────────────────────────

    def _check_cell_consistency(
        self, grid: TimetableGrid, placements: dict[str, Placement]
    ) -> list[ValidationViolation]:
        """Jede Platzierung steht in ALLEN ihren Kohorten-Zellen und nur dort."""
        violations: list[ValidationViolation] = []
        for row_idx, row in enumerate(grid.rows()):
            cohort = grid.cohorts[row_idx]
            for d, day in enumerate(row):
                for s, cell in enumerate(day):
                    if cell is None:
                        continue
                    if cohort not in cell.cohorts or (cell.day, cell.period) != (d, s):
                        violations.append(ValidationViolation(
                            severity="error",
                            constraint="misplaced_cell",
                            entity=cohort,
                            description=(
                                f"{self._where(grid, d, s)}: Platzierung {cell.placement_id} "
                                f"gehört nicht in diese Zelle."
                            ),
                        ))

        for p in placements.values():
            missing = [
                c for c in p.cohorts
                if not grid.has_cohort(c) or grid.cell(c, p.day, p.period) is not p
            ]
            if missing:
                violations.append(ValidationViolation(
                    severity="error",
                    constraint="merged_inconsistency",
                    entity=p.placement_id,
                    description=(
                        f"{self._where(grid, p.day, p.period)}: fehlt in "
                        f"{', '.join(missing)}."
                    ),
                ))
        return violations

    def _check_references(
        self, store: EntityStore, placements: dict[str, Placement]
    ) -> list[ValidationViolation]:
        violations: list[ValidationViolation] = []
        for p in placements.values():
            if store.find_lesson(p.lesson_id) is None:
                violations.append(ValidationViolation(
                    severity="error",
                    constraint="unknown_reference",
                    entity=p.lesson_id,
                    description=f"Platzierung {p.placement_id} verweist auf unbekannte Einheit.",
                ))
        return violations

    def _check_teacher_double_booking(
        self, store: EntityStore, grid: TimetableGrid, placements: dict[str, Placement]
    ) -> list[ValidationViolation]:
        """Keine Lehrkraft darf zur selben Zeit zwei Platzierungen haben."""
        violations: list[ValidationViolation] = []
        seen: dict[tuple, list[Placement]] = defaultdict(list)
        for p in placements.values():
            if p.teacher_id:
                seen[(p.teacher_id, p.day, p.period)].append(p)

        for (teacher_id, day, period), booked in seen.items():
            if len(booked) > 1:
                teacher = store.find_teacher(teacher_id)
                cohorts = ["/".join(p.cohorts) for p in booked]
                violations.append(ValidationViolation(
                    severity="error",
                    constraint="teacher_double_booking",
                    entity=teacher.code if teacher else teacher_id,
                    description=(
                        f"{self._where(grid, day, period)}: gleichzeitig in "
                        f"{', '.join(cohorts)} eingeplant."
                    ),
                ))
        return violations

    def _check_room_double_booking(
        self, store: EntityStore, grid: TimetableGrid, placements: dict[str, Placement]
    ) -> list[ValidationViolation]:
        """Ein Raum darf pro Slot nur einmal belegt sein."""
        violations: list[ValidationViolation] = []
        seen: dict[tuple, list[Placement]] = defaultdict(list)
        for p in placements.values():
            if p.room_id:
                seen[(p.room_id, p.day, p.period)].append(p)

        for (room_id, day, period), booked in seen.items():
            if len(booked) > 1:
                room = store.find_room(room_id)
                cohorts = ["/".join(p.cohorts) for p in booked]
                violations.append(ValidationViolation(
                    severity="error",
                    constraint="room_double_booking",
                    entity=room.name if room else room_id,
                    description=(
                        f"{self._where(grid, day, period)}: gleichzeitig von "
                        f"{', '.join(cohorts)} belegt."
                    ),
                ))
        return violations

    def _check_period_type(
        self, store: EntityStore, grid: TimetableGrid, placements: dict[str, Placement]
    ) -> list[ValidationViolation]:
        """Form-Fach nur in Slot 0, alle anderen nie in Slot 0."""
        violations: list[ValidationViolation] = []
        for p in placements.values():
            subject = store.find_subject(p.subject_id)
            if subject is None:
                continue
            if subject.is_form != (p.period == 0):
                violations.append(ValidationViolation(
                    severity="error",
                    constraint="period_type_mismatch",
                    entity="/".join(p.cohorts),
                    description=f"{self._where(grid, p.day, p.period)}: {subject.name} im falschen Slot-Typ.",
                ))
        return violations

    def _check_unavailable_slots(
        self, store: EntityStore, grid: TimetableGrid, placements: dict[str, Placement]
    ) -> list[ValidationViolation]:
        """Lehrkräfte außerhalb ihrer Verfügbarkeit (nur manuell übersteuerbar)."""
        violations: list[ValidationViolation] = []
        for p in placements.values():
            teacher = store.find_teacher(p.teacher_id)
            if teacher and not teacher.is_available(grid.day_names[p.day], p.period):
                violations.append(ValidationViolation(
                    severity="warning",
                    constraint="teacher_unavailable",
                    entity=teacher.code,
                    description=(
                        f"{self._where(grid, p.day, p.period)}: {teacher.name} nicht verfügbar, "
                        f"aber für {'/'.join(p.cohorts)} eingeplant."
                    ),
                ))
        return violations

    def _check_lesson_fulfillment(
        self, store: EntityStore, grid: TimetableGrid
    ) -> list[ValidationViolation]:
        """Soll-Sitzungen pro Einheit gegen tatsächliche Platzierungen."""
        violations: list[ValidationViolation] = []
        placed = placed_counts(grid)
        for lesson in store.lessons:
            got = placed[lesson.id]
            if got == lesson.count:
                continue
            subject = store.find_subject(lesson.subject_id)
            name = subject.name if subject else lesson.subject_id
            constraint = "over_placement" if got > lesson.count else "unplaced_sessions"
            violations.append(ValidationViolation(
                severity="warning",
                constraint=constraint,
                entity=lesson.id,
                description=(
                    f"{'/'.join(lesson.cohorts)} {name}: Soll {lesson.count}, Ist {got} "
                    f"(Differenz {got - lesson.count:+d})."
                ),
            ))
        return violations
