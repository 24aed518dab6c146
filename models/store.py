"""EntityStore: Fächer, Lehrkräfte, Räume, Kohorten, Unterrichtseinheiten und Raster."""

import logging
import uuid
import zlib
from typing import Iterable, Optional

from pydantic import BaseModel

from config.schema import TimetableConfig
from models.grid import TimetableGrid
from models.lesson import Lesson
from models.room import Room
from models.subject import Subject
from models.teacher import Teacher, full_availability, generate_teacher_code

logger = logging.getLogger(__name__)

MAX_LESSON_COUNT = 50
MAX_PERIODS = 12


def new_id(prefix: str) -> str:
    """Kurze, eindeutige ID mit Präfix ("les_3f9a2c1")."""
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


def subject_color(name: str) -> str:
    """Stabile Anzeigefarbe aus dem Fachnamen."""
    hue = zlib.crc32(name.encode("utf-8")) % 360
    return f"hsl({hue} 70% 60%)"


class FeasibilityReport(BaseModel):
    """Ergebnis des Machbarkeits-Checks."""

    is_feasible: bool
    errors: list[str]      # Kritische Probleme (vollständige Lösung unmöglich)
    warnings: list[str]    # Hinweise (Lösung schwierig aber möglich)

    def print_rich(self) -> None:
        """Gibt den Report formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel

        console = Console()
        if self.is_feasible:
            status = "[bold green]✓ VOLLSTÄNDIG PLANBAR[/bold green]"
        else:
            status = "[bold red]✗ NICHT VOLLSTÄNDIG PLANBAR[/bold red]"

        lines = [status]
        if self.errors:
            lines.append("\n[red bold]Fehler (kritisch):[/red bold]")
            for e in self.errors:
                lines.append(f"  [red]• {e}[/red]")
        if self.warnings:
            lines.append("\n[yellow bold]Warnungen:[/yellow bold]")
            for w in self.warnings:
                lines.append(f"  [yellow]• {w}[/yellow]")
        if not self.errors and not self.warnings:
            lines.append("[dim]Keine Probleme gefunden.[/dim]")

        console.print(Panel("\n".join(lines), title="Machbarkeits-Check", border_style="cyan"))


class EntityStore:
    """Hält alle Entitäten und das Raster; Lookup- und Mutations-Primitive.

    Fachliche Prüfungen (Konflikte, Verfügbarkeit) liegen im
    ConstraintEvaluator. Der Store kümmert sich nur um Referenzen:
    Löschen einer Lehrkraft oder eines Fachs entfernt die abhängigen
    Unterrichtseinheiten samt aller Platzierungen.
    """

    def __init__(self, config: Optional[TimetableConfig] = None) -> None:
        self.config = config or TimetableConfig()
        self._subjects: dict[str, Subject] = {}
        self._teachers: dict[str, Teacher] = {}
        self._rooms: dict[str, Room] = {}
        self._lessons: dict[str, Lesson] = {}
        self.grid = TimetableGrid(self.cohorts, self.day_names, self.periods)

    @classmethod
    def with_defaults(cls, config: Optional[TimetableConfig] = None) -> "EntityStore":
        """Store mit Standard-Fächerkatalog und Standard-Räumen."""
        from config.defaults import SUBJECT_CATALOG, default_room_names

        store = cls(config)
        for name, count in SUBJECT_CATALOG.items():
            store.add_subject(name, default_count=count)
        for room_name in default_room_names():
            store.add_room(room_name)
        return store

    # ─── Konfiguration ────────────────────────────────────────────────────────

    @property
    def cohorts(self) -> list[str]:
        return list(self.config.cohorts.labels)

    @property
    def day_names(self) -> list[str]:
        return list(self.config.time_grid.day_names)

    @property
    def periods(self) -> int:
        return self.config.time_grid.periods

    @property
    def slots_per_day(self) -> int:
        return self.config.time_grid.slots_per_day

    def apply_settings(
        self,
        day_names: Optional[list[str]] = None,
        periods: Optional[int] = None,
        cohorts: Optional[list[str]] = None,
    ) -> None:
        """Ändert Tage/Perioden/Kohorten und formt das Raster um.

        Perioden werden auf 1..12 begrenzt. Platzierungen, die nicht mehr
        ins Raster passen, werden verworfen.
        """
        tg = self.config.time_grid
        new_days = list(day_names) if day_names is not None else list(tg.day_names)
        if not new_days:
            raise ValueError("Mindestens ein Unterrichtstag muss gewählt werden.")
        new_periods = tg.periods if periods is None else max(1, min(MAX_PERIODS, int(periods)))
        new_cohorts = list(cohorts) if cohorts is not None else self.cohorts

        new_config = self.config.model_copy(deep=True)
        new_config.time_grid = tg.model_copy(update={"day_names": new_days, "periods": new_periods})
        new_config.cohorts = self.config.cohorts.model_copy(update={"labels": new_cohorts})
        # Validierung durch Pydantic erzwingen
        self.config = TimetableConfig.model_validate(new_config.model_dump())

        self.grid = self.grid.reshaped(self.cohorts, self.day_names, self.periods)
        logger.info(
            f"Einstellungen übernommen: {len(self.day_names)} Tage × "
            f"{self.slots_per_day} Slots × {len(self.cohorts)} Kohorten"
        )

    # ─── Lookup ───────────────────────────────────────────────────────────────

    @property
    def subjects(self) -> list[Subject]:
        return list(self._subjects.values())

    @property
    def teachers(self) -> list[Teacher]:
        return list(self._teachers.values())

    @property
    def rooms(self) -> list[Room]:
        return list(self._rooms.values())

    @property
    def lessons(self) -> list[Lesson]:
        return list(self._lessons.values())

    def find_subject(self, subject_id: Optional[str]) -> Optional[Subject]:
        return self._subjects.get(subject_id) if subject_id else None

    def find_teacher(self, teacher_id: Optional[str]) -> Optional[Teacher]:
        return self._teachers.get(teacher_id) if teacher_id else None

    def find_room(self, room_id: Optional[str]) -> Optional[Room]:
        return self._rooms.get(room_id) if room_id else None

    def find_lesson(self, lesson_id: Optional[str]) -> Optional[Lesson]:
        return self._lessons.get(lesson_id) if lesson_id else None

    def get_subject(self, subject_id: str) -> Subject:
        return self._subjects[subject_id]

    def get_teacher(self, teacher_id: str) -> Teacher:
        return self._teachers[teacher_id]

    def get_lesson(self, lesson_id: str) -> Lesson:
        return self._lessons[lesson_id]

    def subject_by_name(self, name: str) -> Optional[Subject]:
        return next((s for s in self._subjects.values() if s.name == name), None)

    def form_subject(self) -> Optional[Subject]:
        return next((s for s in self._subjects.values() if s.is_form), None)

    # ─── Fächer / Räume / Lehrkräfte ─────────────────────────────────────────

    def add_subject(
        self,
        name: str,
        default_count: int = 0,
        color: Optional[str] = None,
        mergeable_cohorts: Iterable[str] = (),
        is_form: Optional[bool] = None,
    ) -> Subject:
        """Legt ein Fach an. ``is_form`` folgt standardmäßig dem konfigurierten Form-Fach."""
        if is_form is None:
            is_form = name == self.config.form_subject_name
        subject = Subject(
            id=new_id("sub"),
            name=name,
            color=color or subject_color(name),
            default_count=max(0, default_count),
            mergeable_cohorts=set(mergeable_cohorts),
            is_form=is_form,
        )
        self._subjects[subject.id] = subject
        return subject

    def update_subject(self, subject_id: str, **changes) -> Subject:
        """Ändert Felder eines Fachs (z.B. default_count, mergeable_cohorts).

        Eine neue Zusammenlegungs-Regel darf keine bestehende Einheit
        ungültig machen. Wechselt ``is_form``, stehen alle Platzierungen
        des Fachs im falschen Slot-Typ und werden entfernt.

        Raises:
            ValueError: ID-Änderung oder Regel verbietet bestehende Einheiten.
        """
        subject = self.get_subject(subject_id)
        if changes.get("id", subject_id) != subject_id:
            raise ValueError("Die ID eines Fachs kann nicht geändert werden.")
        if "default_count" in changes:
            changes["default_count"] = max(0, int(changes["default_count"]))
        updated = Subject.model_validate({**subject.model_dump(), **changes})

        lessons = [l for l in self._lessons.values() if l.subject_id == subject_id]
        broken = [l.cohorts for l in lessons if not updated.can_merge(l.cohorts)]
        if broken:
            raise ValueError(
                f"Fach '{subject.name}': Zusammenlegung {broken} wäre nicht mehr erlaubt "
                f"(neu erlaubt: {sorted(updated.mergeable_cohorts)})"
            )

        self._subjects[subject_id] = updated
        if updated.is_form != subject.is_form:
            removed = 0
            for p in self.grid.placements():
                if p.subject_id == subject_id:
                    self.grid.remove(p.placement_id)
                    removed += 1
            logger.info(f"Fach {subject.name}: Form-Status geändert, {removed} Platzierung(en) entfernt")
        return updated

    def add_room(self, name: str) -> Room:
        room = Room(id=new_id("room"), name=name)
        self._rooms[room.id] = room
        return room

    def add_teacher(
        self,
        full_name: str,
        code: Optional[str] = None,
        availability: Optional[dict[str, list[bool]]] = None,
        subjects: Iterable[str] = (),
    ) -> Teacher:
        """Legt eine Lehrkraft an; ohne Angabe ist sie in jedem Slot verfügbar."""
        full_name = full_name.strip()
        if not full_name:
            raise ValueError("Name der Lehrkraft darf nicht leer sein.")
        existing = [t.code for t in self._teachers.values()]
        if code is None:
            code = generate_teacher_code(full_name, existing)
        elif code.strip().upper() in {c.upper() for c in existing}:
            raise ValueError(f"Kürzel '{code}' ist bereits vergeben.")
        teacher = Teacher(
            id=new_id("t"),
            name=full_name,
            code=code,
            availability=availability
            if availability is not None
            else full_availability(self.day_names, self.slots_per_day),
            subjects=list(subjects),
        )
        self._teachers[teacher.id] = teacher
        return teacher

    def set_teacher_availability(self, teacher_id: str, day_name: str,
                                 slots: Iterable[int]) -> Teacher:
        """Setzt die verfügbaren Slots einer Lehrkraft an einem Tag."""
        if day_name not in self.day_names:
            raise ValueError(f"Unbekannter Tag: {day_name}")
        teacher = self.get_teacher(teacher_id)
        updated = teacher.with_availability(day_name, list(slots), self.slots_per_day)
        self._teachers[teacher_id] = updated
        return updated

    def remove_teacher(self, teacher_id: str) -> list[Lesson]:
        """Entfernt eine Lehrkraft samt ihrer Unterrichtseinheiten und Platzierungen."""
        if teacher_id not in self._teachers:
            raise KeyError(teacher_id)
        removed = [l for l in self._lessons.values() if l.teacher_id == teacher_id]
        for lesson in removed:
            self.remove_lesson(lesson.id)
        for p in self.grid.placements():
            if p.teacher_id == teacher_id:
                self.grid.remove(p.placement_id)
        del self._teachers[teacher_id]
        logger.info(f"Lehrkraft {teacher_id} entfernt ({len(removed)} Unterrichtseinheiten)")
        return removed

    def remove_subject(self, subject_id: str) -> list[Lesson]:
        """Entfernt ein Fach samt seiner Unterrichtseinheiten und Platzierungen."""
        if subject_id not in self._subjects:
            raise KeyError(subject_id)
        removed = [l for l in self._lessons.values() if l.subject_id == subject_id]
        for lesson in removed:
            self.remove_lesson(lesson.id)
        for p in self.grid.placements():
            if p.subject_id == subject_id:
                self.grid.remove(p.placement_id)
        del self._subjects[subject_id]
        return removed

    # ─── Unterrichtseinheiten ────────────────────────────────────────────────

    def add_lesson(
        self,
        cohorts: list[str],
        subject_id: str,
        teacher_id: Optional[str] = None,
        room_id: Optional[str] = None,
        count: int = 1,
    ) -> Lesson:
        """Legt eine Unterrichtseinheit an (count wird auf 1..50 begrenzt).

        Existiert bereits eine identische Einheit, wird diese zurückgegeben.
        """
        subject = self.find_subject(subject_id)
        if subject is None:
            raise ValueError(f"Unbekanntes Fach: {subject_id}")
        if teacher_id is not None and teacher_id not in self._teachers:
            raise ValueError(f"Unbekannte Lehrkraft: {teacher_id}")
        if room_id is not None and room_id not in self._rooms:
            raise ValueError(f"Unbekannter Raum: {room_id}")
        unknown = [c for c in cohorts if c not in self.cohorts]
        if unknown:
            raise ValueError(f"Unbekannte Kohorte(n): {unknown}")
        if not subject.can_merge(cohorts):
            raise ValueError(
                f"Fach '{subject.name}' darf nicht für {cohorts} zusammengelegt werden "
                f"(erlaubt: {sorted(subject.mergeable_cohorts)})"
            )

        for lesson in self._lessons.values():
            if (lesson.cohorts == list(cohorts) and lesson.subject_id == subject_id
                    and lesson.teacher_id == teacher_id and lesson.room_id == room_id):
                return lesson

        lesson = Lesson(
            id=new_id("les"),
            cohorts=list(cohorts),
            subject_id=subject_id,
            teacher_id=teacher_id,
            room_id=room_id,
            count=max(1, min(MAX_LESSON_COUNT, int(count))),
        )
        self._lessons[lesson.id] = lesson
        return lesson

    def generate_lessons_for_cohorts(self, cohorts: Iterable[str]) -> list[Lesson]:
        """Erzeugt pro Kohorte × Fach eine Einheit mit der Standard-Stundenzahl.

        Bereits vorhandene (Kohorte, Fach)-Paare und Fächer mit
        default_count == 0 werden übersprungen. Das Form-Fach bekommt
        höchstens eine Sitzung pro Unterrichtstag.
        """
        created: list[Lesson] = []
        for cohort in cohorts:
            if cohort not in self.cohorts:
                raise ValueError(f"Unbekannte Kohorte: {cohort}")
            for subject in self._subjects.values():
                if subject.default_count <= 0:
                    continue
                exists = any(
                    l.cohorts == [cohort] and l.subject_id == subject.id
                    for l in self._lessons.values()
                )
                if exists:
                    continue
                count = subject.default_count
                if subject.is_form:
                    count = min(count, len(self.day_names))
                lesson = Lesson(
                    id=new_id("les"),
                    cohorts=[cohort],
                    subject_id=subject.id,
                    count=min(MAX_LESSON_COUNT, count),
                )
                self._lessons[lesson.id] = lesson
                created.append(lesson)
        return created

    def remove_lesson(self, lesson_id: str) -> Optional[Lesson]:
        """Entfernt eine Einheit und alle ihre Platzierungen."""
        lesson = self._lessons.pop(lesson_id, None)
        if lesson is None:
            return None
        for p in self.grid.placements_for_lesson(lesson_id):
            self.grid.remove(p.placement_id)
        return lesson

    # ─── Raster ──────────────────────────────────────────────────────────────

    def empty_grid(self) -> TimetableGrid:
        return TimetableGrid(self.cohorts, self.day_names, self.periods)

    def reset_grid(self) -> None:
        """Entfernt alle Platzierungen."""
        self.grid = self.empty_grid()

    def clear_cell(self, cohort: str, day: int, period: int) -> bool:
        """Leert eine Zelle; eine zusammengelegte Platzierung verschwindet komplett."""
        if not self.grid.has_cohort(cohort) or not self.grid.in_bounds(day, period):
            return False
        occupant = self.grid.cell(cohort, day, period)
        if occupant is None:
            return False
        return self.grid.remove(occupant.placement_id) is not None

    def replace_grid(self, grid: TimetableGrid) -> None:
        """Übernimmt ein fertiges Raster (z.B. vom AutoScheduler)."""
        if grid.shape != self.grid.shape or grid.cohorts != self.cohorts \
                or grid.day_names != self.day_names:
            raise ValueError(
                f"Rasterform {grid.shape} passt nicht zur Konfiguration {self.grid.shape}."
            )
        self.grid = grid

    def load_grid_rows(self, rows: list) -> TimetableGrid:
        """Übernimmt ein 3-D-Array vom Host und repariert dessen Form."""
        self.grid = TimetableGrid.from_rows(rows, self.cohorts, self.day_names, self.periods)
        return self.grid

    # ─── Übersicht ───────────────────────────────────────────────────────────

    def summary(self) -> str:
        """Kurze Übersicht über den Datensatz."""
        total_tokens = sum(l.count for l in self._lessons.values())
        merged = sum(1 for l in self._lessons.values() if l.is_merged)
        lines = [
            f"Schule: {self.config.school_name}",
            f"Raster: {len(self.cohorts)} Kohorten × {len(self.day_names)} Tage × "
            f"{self.slots_per_day} Slots = {self.grid.capacity} Zellen",
            f"Fächer: {len(self._subjects)}",
            f"Lehrkräfte: {len(self._teachers)}",
            f"Räume: {len(self._rooms)}",
            f"Unterrichtseinheiten: {len(self._lessons)} ({merged} zusammengelegt), "
            f"{total_tokens} Sitzungen/Woche",
            f"Platziert: {len(self.grid)}",
        ]
        return "\n".join(lines)

    # ─── Machbarkeits-Check ───────────────────────────────────────────────────

    def validate_feasibility(self) -> FeasibilityReport:
        """Prüft grob, ob alle Sitzungen überhaupt Platz finden können.

        Prüfungen:
        1. Referenzen: Fach/Lehrkraft/Raum/Kohorten existieren
        2. Pro Kohorte: Sitzungen ≤ Zellen (Form-Slot getrennt)
        3. Pro Lehrkraft: Sitzungen ≤ verfügbare Slots
        4. Pro Raum: Sitzungen ≤ Slots pro Woche
        5. Gesamt: Sitzungen ≤ adressierbare Zellen
        """
        errors: list[str] = []
        warnings: list[str] = []

        days = len(self.day_names)
        slots = self.slots_per_day
        cohort_regular: dict[str, int] = {c: 0 for c in self.cohorts}
        cohort_form: dict[str, int] = {c: 0 for c in self.cohorts}
        teacher_need: dict[str, int] = {}
        room_need: dict[str, int] = {}

        for lesson in self._lessons.values():
            subject = self.find_subject(lesson.subject_id)
            if subject is None:
                errors.append(f"Einheit {lesson.id}: Fach {lesson.subject_id} existiert nicht.")
                continue
            if lesson.teacher_id and lesson.teacher_id not in self._teachers:
                errors.append(f"Einheit {lesson.id}: Lehrkraft {lesson.teacher_id} existiert nicht.")
                continue
            if lesson.room_id and lesson.room_id not in self._rooms:
                errors.append(f"Einheit {lesson.id}: Raum {lesson.room_id} existiert nicht.")
                continue
            for c in lesson.cohorts:
                if c not in cohort_regular:
                    errors.append(f"Einheit {lesson.id}: Kohorte '{c}' ist nicht konfiguriert.")
                    continue
                if subject.is_form:
                    cohort_form[c] += lesson.count
                else:
                    cohort_regular[c] += lesson.count
            if lesson.teacher_id:
                teacher_need[lesson.teacher_id] = teacher_need.get(lesson.teacher_id, 0) + lesson.count
            if lesson.room_id:
                room_need[lesson.room_id] = room_need.get(lesson.room_id, 0) + lesson.count

        for c in self.cohorts:
            if cohort_form[c] > days:
                errors.append(
                    f"Kohorte {c}: {cohort_form[c]} Form-Sitzungen, aber nur {days} Form-Slots."
                )
            regular_cells = days * (slots - 1)
            if cohort_regular[c] > regular_cells:
                errors.append(
                    f"Kohorte {c}: {cohort_regular[c]} Sitzungen bei nur {regular_cells} Perioden-Zellen."
                )
            elif regular_cells and cohort_regular[c] > regular_cells * 0.9:
                warnings.append(
                    f"Kohorte {c}: Auslastung {cohort_regular[c]}/{regular_cells} "
                    f"({cohort_regular[c] / regular_cells * 100:.0f}%) – Lösung schwierig."
                )

        for t_id, need in teacher_need.items():
            teacher = self._teachers[t_id]
            available = teacher.available_slot_count(self.day_names, slots)
            if need > available:
                errors.append(
                    f"Lehrkraft {teacher.code} ({teacher.name}): {need} Sitzungen bei "
                    f"nur {available} verfügbaren Slots."
                )

        for r_id, need in room_need.items():
            if need > days * slots:
                errors.append(
                    f"Raum {self._rooms[r_id].name}: {need} Sitzungen bei {days * slots} Slots/Woche."
                )

        total_tokens = sum(l.count for l in self._lessons.values())
        if total_tokens > self.grid.capacity:
            errors.append(
                f"Gesamt: {total_tokens} Sitzungen > {self.grid.capacity} adressierbare Zellen."
            )
        elif total_tokens == 0:
            warnings.append("Keine Unterrichtseinheiten definiert.")

        return FeasibilityReport(
            is_feasible=len(errors) == 0,
            errors=errors,
            warnings=warnings,
        )
