"""Restbedarf: wie viele Sitzungen pro Unterrichtseinheit noch fehlen."""

from collections import Counter

from pydantic import BaseModel

from models.grid import TimetableGrid
from models.lesson import Lesson


class CapacityCheck(BaseModel):
    """Vergleich Sitzungen (Tokens) gegen adressierbare Zellen."""
    tokens: int
    cells: int
    over_capacity: bool

    @property
    def utilization(self) -> float:
        return self.tokens / self.cells if self.cells else 0.0


def placed_counts(grid: TimetableGrid) -> Counter:
    """Anzahl verschiedener Platzierungen pro Lesson-ID."""
    return Counter(p.lesson_id for p in grid.placements())


def remaining(lessons: list[Lesson], grid: TimetableGrid) -> dict[str, int]:
    """Restbedarf pro Lesson-ID (count minus Platzierungen, nie negativ).

    Zusammengelegte Platzierungen zählen einmal, nicht pro Kohorte.
    """
    placed = placed_counts(grid)
    return {l.id: max(0, l.count - placed[l.id]) for l in lessons}


def total_remaining(lessons: list[Lesson], grid: TimetableGrid) -> int:
    return sum(remaining(lessons, grid).values())


def capacity_check(lessons: list[Lesson], grid: TimetableGrid) -> CapacityCheck:
    """Tokens gegen ``Kohorten × Tage × Slots`` (Form-Slot mitgezählt)."""
    tokens = sum(l.count for l in lessons)
    cells = grid.capacity
    return CapacityCheck(tokens=tokens, cells=cells, over_capacity=tokens > cells)
