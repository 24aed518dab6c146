"""Wochenraster Kohorte × Tag × Slot mit inkrementellem Belegungs-Index."""

import logging
from collections import Counter, defaultdict
from typing import Optional

from models.lesson import Placement

logger = logging.getLogger(__name__)


class TimetableGrid:
    """3-D-Raster ``[kohorte][tag][slot]``; jede Zelle ist leer oder eine Placement.

    Die Form hat immer ``len(cohorts) × len(day_names) × (1 + periods)``.
    Neben den Zellen werden Indizes gepflegt, die bei jedem add/remove
    aktualisiert werden:

      (day, slot)    → Lehrer-ID → Placement-IDs   (Lehrer-Exklusivität)
      (day, slot)    → Raum-ID   → Placement-IDs   (Raum-Exklusivität)
      (kohorte, day) → Fach-ID   → Anzahl          (weiche Regel: Fach/Tag)
      (kohorte, day) → Lehrer-ID → Anzahl          (weiche Regel: Lehrer/Tag)
    """

    def __init__(self, cohorts: list[str], day_names: list[str], periods: int) -> None:
        self.cohorts: list[str] = list(cohorts)
        self.day_names: list[str] = list(day_names)
        self.periods: int = periods
        self._cohort_idx: dict[str, int] = {c: i for i, c in enumerate(self.cohorts)}
        self._cells: list[list[list[Optional[Placement]]]] = [
            [[None] * self.slots_per_day for _ in self.day_names]
            for _ in self.cohorts
        ]
        self._placements: dict[str, Placement] = {}
        self._teachers: dict[tuple[int, int], dict[str, set[str]]] = defaultdict(dict)
        self._rooms: dict[tuple[int, int], dict[str, set[str]]] = defaultdict(dict)
        self._day_subjects: dict[tuple[str, int], Counter] = defaultdict(Counter)
        self._day_teachers: dict[tuple[str, int], Counter] = defaultdict(Counter)

    # ─── Form ─────────────────────────────────────────────────────────────────

    @property
    def slots_per_day(self) -> int:
        return 1 + self.periods

    @property
    def days_per_week(self) -> int:
        return len(self.day_names)

    @property
    def shape(self) -> tuple[int, int, int]:
        return (len(self.cohorts), self.days_per_week, self.slots_per_day)

    @property
    def capacity(self) -> int:
        """Anzahl adressierbarer Zellen."""
        c, d, s = self.shape
        return c * d * s

    def has_cohort(self, cohort: str) -> bool:
        return cohort in self._cohort_idx

    def in_bounds(self, day: int, period: int) -> bool:
        return 0 <= day < self.days_per_week and 0 <= period < self.slots_per_day

    # ─── Lesen ────────────────────────────────────────────────────────────────

    def cell(self, cohort: str, day: int, period: int) -> Optional[Placement]:
        """Inhalt einer Zelle (None = leer)."""
        return self._cells[self._cohort_idx[cohort]][day][period]

    def rows(self) -> list[list[list[Optional[Placement]]]]:
        """Kopie des 3-D-Arrays (für Anzeige durch den Host)."""
        return [[list(day) for day in row] for row in self._cells]

    def placements(self) -> list[Placement]:
        """Alle Platzierungen, jede genau einmal (auch zusammengelegte)."""
        return list(self._placements.values())

    def get_placement(self, placement_id: str) -> Optional[Placement]:
        return self._placements.get(placement_id)

    def placements_for_lesson(self, lesson_id: str) -> list[Placement]:
        return [p for p in self._placements.values() if p.lesson_id == lesson_id]

    def is_empty(self) -> bool:
        return not self._placements

    def __len__(self) -> int:
        return len(self._placements)

    def __iter__(self):
        return iter(self._placements.values())

    # ─── Belegungs-Index ──────────────────────────────────────────────────────

    def teacher_busy(self, teacher_id: str, day: int, period: int,
                     ignore: frozenset = frozenset()) -> bool:
        """True wenn die Lehrkraft in (day, period) in IRGENDEINER Kohorte unterrichtet."""
        pids = self._teachers.get((day, period), {}).get(teacher_id)
        return bool(pids) and not pids <= ignore

    def room_busy(self, room_id: str, day: int, period: int,
                  ignore: frozenset = frozenset()) -> bool:
        pids = self._rooms.get((day, period), {}).get(room_id)
        return bool(pids) and not pids <= ignore

    def occupancy(self, day: int, period: int) -> dict[str, set[str]]:
        """Lehrer- und Raum-IDs, die in (day, period) belegt sind."""
        return {
            "teachers": set(self._teachers.get((day, period), {})),
            "rooms": set(self._rooms.get((day, period), {})),
        }

    def subject_count(self, cohort: str, day: int, subject_id: str) -> int:
        return self._day_subjects.get((cohort, day), Counter())[subject_id]

    def teacher_count(self, cohort: str, day: int, teacher_id: str) -> int:
        return self._day_teachers.get((cohort, day), Counter())[teacher_id]

    # ─── Schreiben ────────────────────────────────────────────────────────────

    def add(self, placement: Placement) -> None:
        """Schreibt die Platzierung in alle ihre Zellen (alles oder nichts).

        Prüft nur die Struktur (Grenzen, Zellen frei). Fachliche Regeln
        sind Sache des ConstraintEvaluator.
        """
        if placement.placement_id in self._placements:
            raise ValueError(f"Platzierung {placement.placement_id} existiert bereits.")
        if not self.in_bounds(placement.day, placement.period):
            raise ValueError(
                f"Zelle außerhalb des Rasters: Tag {placement.day}, Slot {placement.period}"
            )
        for cohort in placement.cohorts:
            if cohort not in self._cohort_idx:
                raise ValueError(f"Unbekannte Kohorte: {cohort}")
            occupant = self.cell(cohort, placement.day, placement.period)
            if occupant is not None:
                raise ValueError(
                    f"Zelle {cohort}/Tag {placement.day}/Slot {placement.period} "
                    f"ist bereits durch {occupant.placement_id} belegt."
                )

        for cohort in placement.cohorts:
            self._cells[self._cohort_idx[cohort]][placement.day][placement.period] = placement
        self._placements[placement.placement_id] = placement
        self._index(placement, +1)

    def remove(self, placement_id: str) -> Optional[Placement]:
        """Entfernt eine Platzierung aus ALLEN ihren Zellen."""
        placement = self._placements.pop(placement_id, None)
        if placement is None:
            return None
        for cohort in placement.cohorts:
            row = self._cells[self._cohort_idx[cohort]]
            if row[placement.day][placement.period] is placement:
                row[placement.day][placement.period] = None
        self._index(placement, -1)
        return placement

    def clear(self) -> None:
        """Leert das gesamte Raster."""
        for pid in list(self._placements):
            self.remove(pid)

    def _index(self, placement: Placement, delta: int) -> None:
        key = (placement.day, placement.period)
        for index, resource in ((self._teachers, placement.teacher_id),
                                (self._rooms, placement.room_id)):
            if resource is None:
                continue
            bucket = index[key]
            if delta > 0:
                bucket.setdefault(resource, set()).add(placement.placement_id)
            else:
                pids = bucket.get(resource, set())
                pids.discard(placement.placement_id)
                if not pids:
                    bucket.pop(resource, None)

        for cohort in placement.cohorts:
            day_key = (cohort, placement.day)
            self._day_subjects[day_key][placement.subject_id] += delta
            if placement.teacher_id is not None:
                self._day_teachers[day_key][placement.teacher_id] += delta

    # ─── Umformen / Normalisieren ─────────────────────────────────────────────

    def reshaped(self, cohorts: list[str], day_names: list[str],
                 periods: int) -> "TimetableGrid":
        """Neues Raster mit anderer Form; Platzierungen bleiben erhalten, wenn sie passen.

        Zuordnung über Kohorten- und Tagesnamen. Eine Platzierung, von der
        auch nur eine Zelle aus dem neuen Raster fällt, wird komplett verworfen.
        """
        new = TimetableGrid(cohorts, day_names, periods)
        dropped = 0
        for p in self.placements():
            day_name = self.day_names[p.day]
            if day_name not in new.day_names or p.period >= new.slots_per_day \
                    or not all(new.has_cohort(c) for c in p.cohorts):
                dropped += 1
                continue
            new.add(p.model_copy(update={"day": new.day_names.index(day_name)}))
        if dropped:
            logger.info(f"Raster umgeformt: {dropped} Platzierung(en) außerhalb der neuen Grenzen verworfen")
        return new

    @classmethod
    def from_rows(cls, rows: list, cohorts: list[str], day_names: list[str],
                  periods: int) -> "TimetableGrid":
        """Baut ein Raster aus einem (evtl. inkonsistenten) 3-D-Array.

        Zu kurze Dimensionen werden aufgefüllt, zu lange abgeschnitten
        (Zuordnung über Position). Jede gefundene Platzierung wird nur
        übernommen, wenn alle ihre Zellen im Raster liegen, an ihrer
        eigenen (Tag, Slot)-Position stehen und frei sind.
        """
        grid = cls(cohorts, day_names, periods)
        slots = grid.slots_per_day
        seen: dict[str, Placement] = {}
        for y, row in enumerate((rows or [])[:len(cohorts)]):
            for d, day in enumerate((row or [])[:len(day_names)]):
                for s, cell in enumerate((day or [])[:slots]):
                    if isinstance(cell, Placement) and (cell.day, cell.period) == (d, s):
                        seen.setdefault(cell.placement_id, cell)

        dropped = 0
        for placement in seen.values():
            try:
                grid.add(placement)
            except ValueError as e:
                dropped += 1
                logger.warning(f"Normalisierung: Platzierung {placement.placement_id} verworfen ({e})")
        if dropped:
            logger.warning(f"Normalisierung: {dropped} Platzierung(en) verworfen")
        return grid

    def __repr__(self) -> str:
        c, d, s = self.shape
        return f"TimetableGrid({c}×{d}×{s}, {len(self._placements)} Platzierungen)"
