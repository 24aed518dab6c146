"""Testdaten-Generator für die Timetable Engine.

Erzeugt einen vollständigen EntityStore (Standard-Katalog + Lehrkräfte,
Verfügbarkeiten, Unterrichtseinheiten) mit absichtlichen Engpässen.

Absichtliche Engpässe:
  1. Teilzeit-Cluster: einige Lehrkräfte haben freitags frei
  2. Stark eingeschränkte Lehrkraft: nur Di+Mi, mittwochs nur P1-P3
  3. Zusammengelegte Einheiten: Sport/Psychologie für Y10+Y11, Soziologie für LSU+SF
  4. Fachräume: Naturwissenschaft, Sport und Informatik mit festem Raum

Lösbarkeits-Garantien:
  - Pro Kohorte werden Fächer nur bis ``fill_ratio`` der Perioden-Zellen geplant
  - Keine Lehrkraft erhält mehr als ``teacher_load`` ihrer verfügbaren Slots
  - Form-Tutoren sind immer Vollzeit (Slot 0 an jedem Tag verfügbar)
"""

import random
from typing import Optional

from config.schema import TimetableConfig
from models.lesson import Lesson
from models.store import EntityStore
from models.subject import Subject
from models.teacher import Teacher, full_availability

# ─── Namens-Listen ────────────────────────────────────────────────────────────

_FIRST_NAMES = [
    "Adam", "Amira", "Ben", "Chloe", "Daniel", "Ella", "Farah", "George",
    "Hannah", "Isaac", "Jade", "Kieran", "Layla", "Mohammed", "Niamh",
    "Oliver", "Priya", "Rhys", "Sophie", "Tom", "Uma", "Victoria", "Will",
    "Yasmin", "Zara", "Callum", "Grace", "Harvey", "Imogen", "Jack",
]

_LAST_NAMES = [
    "Smith", "Jones", "Taylor", "Brown", "Williams", "Wilson", "Johnson",
    "Davies", "Patel", "Robinson", "Wright", "Thompson", "Evans", "Walker",
    "White", "Roberts", "Green", "Hall", "Wood", "Jackson", "Clarke",
    "Hughes", "Khan", "Edwards", "Hill", "Moore", "Lewis", "Ahmed",
    "Harris", "Martin", "Cooper", "Ward", "Morris", "King", "Baker",
]

# ─── Kernfächer, Zusammenlegungen und Fachräume ──────────────────────────────

_CORE_SUBJECTS = ("English Language", "Mathematics", "Science")

_MERGE_RULES: dict[str, list[str]] = {
    "Physical Education": ["Y10", "Y11"],
    "Psychology": ["Y10", "Y11"],
    "Sociology": ["LSU", "SF"],
}

_SPECIAL_ROOMS: dict[str, str] = {
    "Science": "S-127",
    "Physical Education": "S-130",
    "Computer Science": "F-120",
    "Food Technology": "S-135",
}


class FakeDataGenerator:
    """Generiert einen vollständigen EntityStore auf Basis der TimetableConfig."""

    def __init__(
        self,
        config: Optional[TimetableConfig] = None,
        seed: Optional[int] = None,
        fill_ratio: float = 0.85,
        teacher_load: float = 0.6,
        part_time_share: float = 0.25,
    ) -> None:
        self.config = config or TimetableConfig()
        self.rng = random.Random(seed)
        self.fill_ratio = fill_ratio
        self.teacher_load = teacher_load
        self.part_time_share = part_time_share
        self._load: dict[str, int] = {}   # Lehrer-ID → zugewiesene Sitzungen

    # ─── Fächer ───────────────────────────────────────────────────────────────

    def _apply_merge_rules(self, store: EntityStore) -> None:
        """Hinterlegt die zusammenlegbaren Kohorten an den Fächern."""
        for name, cohorts in _MERGE_RULES.items():
            subject = store.subject_by_name(name)
            present = [c for c in cohorts if c in store.cohorts]
            if subject is not None and len(present) > 1:
                store.update_subject(subject.id, mergeable_cohorts=set(present))

    def _subjects_for_cohort(self, store: EntityStore) -> list[Subject]:
        """Wählt Fächer, bis die Perioden-Zellen zu ``fill_ratio`` gefüllt sind.

        Reihenfolge: Kernfächer, zusammenlegbare Fächer, Rest gemischt.
        """
        budget = int(store.periods * len(store.day_names) * self.fill_ratio)
        candidates = [s for s in store.subjects if not s.is_form and s.default_count > 0]
        core = [s for s in candidates if s.name in _CORE_SUBJECTS]
        merged = [s for s in candidates if s.name in _MERGE_RULES]
        rest = [s for s in candidates if s not in core and s not in merged]
        self.rng.shuffle(rest)

        chosen: list[Subject] = []
        used = 0
        for subject in core + merged + rest:
            if used + subject.default_count > budget:
                continue
            chosen.append(subject)
            used += subject.default_count
        return chosen

    # ─── Lehrkräfte ───────────────────────────────────────────────────────────

    def _make_teacher(
        self,
        store: EntityStore,
        subjects: list[str],
        free_day: Optional[str] = None,
    ) -> Teacher:
        """Erstellt eine Lehrkraft mit zufälligem Namen (Kürzel aus dem Namen)."""
        name = f"{self.rng.choice(_FIRST_NAMES)} {self.rng.choice(_LAST_NAMES)}"
        availability = full_availability(store.day_names, store.slots_per_day)
        if free_day is not None:
            availability[free_day] = [False] * store.slots_per_day
        teacher = store.add_teacher(name, availability=availability, subjects=subjects)
        self._load[teacher.id] = 0
        return teacher

    def _capacity(self, store: EntityStore, teacher: Teacher) -> int:
        """Maximale Sitzungen einer Lehrkraft (Anteil der verfügbaren Perioden-Slots)."""
        periods = sum(
            1
            for d in store.day_names
            for s in range(1, store.slots_per_day)
            if teacher.is_available(d, s)
        )
        return int(periods * self.teacher_load)

    def _teacher_for(self, store: EntityStore, subject: Subject, count: int) -> Teacher:
        """Lehrkraft des Fachs mit der meisten freien Kapazität; sonst neu anlegen."""
        pool = [t for t in store.teachers if subject.id in t.subjects]
        fitting = [
            t for t in pool
            if self._load[t.id] + count <= self._capacity(store, t)
        ]
        if fitting:
            teacher = max(fitting, key=lambda t: self._capacity(store, t) - self._load[t.id])
        else:
            free_day = None
            if len(store.day_names) > 1 and self.rng.random() < self.part_time_share:
                free_day = store.day_names[-1]
            teacher = self._make_teacher(store, [subject.id], free_day=free_day)
        self._load[teacher.id] += count
        return teacher

    def _add_restricted_teacher(self, store: EntityStore, subject: Subject) -> Teacher:
        """Engpass: nur an zwei Tagen verfügbar, am zweiten nur bis P3."""
        teacher = self._make_teacher(store, [subject.id])
        days = store.day_names
        if len(days) < 3:
            return teacher
        for i, day in enumerate(days):
            if i == 1:
                slots = list(range(1, store.slots_per_day))
            elif i == 2:
                slots = list(range(1, min(4, store.slots_per_day)))
            else:
                slots = []
            teacher = store.set_teacher_availability(teacher.id, day, slots)
        return teacher

    # ─── Unterrichtseinheiten ────────────────────────────────────────────────

    def _add_lesson(self, store: EntityStore, cohorts: list[str], subject: Subject) -> Lesson:
        teacher = self._teacher_for(store, subject, subject.default_count)
        room_id = None
        room_name = _SPECIAL_ROOMS.get(subject.name)
        if room_name is not None:
            room = next((r for r in store.rooms if r.name == room_name), None)
            room_id = room.id if room else None
        return store.add_lesson(
            cohorts=cohorts,
            subject_id=subject.id,
            teacher_id=teacher.id,
            room_id=room_id,
            count=subject.default_count,
        )

    def _add_form_lessons(self, store: EntityStore) -> None:
        """Pro Kohorte eine Form-Einheit mit eigenem Vollzeit-Tutor."""
        form = store.form_subject()
        if form is None or form.default_count <= 0:
            return
        count = min(form.default_count, len(store.day_names))
        for cohort in store.cohorts:
            tutor = self._make_teacher(store, [form.id])
            store.add_lesson([cohort], form.id, teacher_id=tutor.id, count=count)

    # ─── Vollständiger Datensatz ──────────────────────────────────────────────

    def generate(self) -> EntityStore:
        """Erzeugt den vollständigen Datensatz als EntityStore."""
        store = EntityStore.with_defaults(self.config)
        self._load = {}
        self._apply_merge_rules(store)

        subjects = self._subjects_for_cohort(store)
        if subjects:
            self._add_restricted_teacher(store, self.rng.choice(subjects))

        merged_done: set[str] = set()
        for cohort in store.cohorts:
            for subject in subjects:
                subject = store.get_subject(subject.id)
                if cohort in subject.mergeable_cohorts:
                    if subject.id not in merged_done:
                        merged_done.add(subject.id)
                        cohorts = [c for c in store.cohorts if c in subject.mergeable_cohorts]
                        self._add_lesson(store, cohorts, subject)
                    continue
                self._add_lesson(store, [cohort], subject)

        self._add_form_lessons(store)
        return store

    # ─── Ausgabe ──────────────────────────────────────────────────────────────

    def print_summary(self, store: EntityStore) -> None:
        """Gibt eine Rich-Tabelle mit Übersicht der erzeugten Daten aus."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        console = Console()
        table = Table(title="Erzeugte Testdaten", box=box.ROUNDED)
        table.add_column("Kategorie", style="bold cyan")
        table.add_column("Anzahl", justify="right")
        table.add_column("Details")

        full = len(store.day_names) * store.slots_per_day
        part_time = sum(
            1 for t in store.teachers
            if t.available_slot_count(store.day_names, store.slots_per_day) < full
        )
        merged = sum(1 for l in store.lessons if l.is_merged)
        sessions = sum(l.count for l in store.lessons)

        table.add_row("Fächer", str(len(store.subjects)), "")
        table.add_row("Kohorten", str(len(store.cohorts)), ", ".join(store.cohorts))
        table.add_row("Räume", str(len(store.rooms)), "")
        table.add_row("Lehrkräfte", str(len(store.teachers)),
                      f"{part_time} eingeschränkt, {len(store.teachers) - part_time} voll verfügbar")
        table.add_row("Unterrichtseinheiten", str(len(store.lessons)),
                      f"{merged} zusammengelegt, {sessions} Sitzungen/Woche")

        console.print(table)
