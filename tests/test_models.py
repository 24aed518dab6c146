"""Tests für Datenmodelle, Raster und EntityStore."""

import pytest
from pydantic import ValidationError

from config.schema import CohortConfig, TimeGridConfig, TimetableConfig
from models.grid import TimetableGrid
from models.lesson import Lesson, Placement
from models.store import EntityStore
from models.subject import Subject
from models.teacher import (
    Teacher,
    empty_availability,
    full_availability,
    generate_teacher_code,
)


# ─── Hilfsfunktionen ──────────────────────────────────────────────────────────

def make_placement(pid: str, cohorts=("Y7",), day: int = 0, period: int = 1,
                   teacher_id=None, room_id=None, subject_id="sub_x",
                   lesson_id="les_x") -> Placement:
    return Placement(
        placement_id=pid,
        lesson_id=lesson_id,
        subject_id=subject_id,
        teacher_id=teacher_id,
        room_id=room_id,
        cohorts=tuple(cohorts),
        day=day,
        period=period,
    )


def make_small_store() -> EntityStore:
    """Store mit 3 Kohorten, 2 Tagen, 3 Perioden und einer Handvoll Fächer."""
    config = TimetableConfig(
        time_grid=TimeGridConfig(day_names=["Mon", "Tue"], periods=3),
        cohorts=CohortConfig(labels=["Y7", "Y8", "Y9"]),
    )
    store = EntityStore(config)
    store.add_subject("Form Time", default_count=2)
    store.add_subject("Mathematics", default_count=2, mergeable_cohorts={"Y7", "Y8"})
    store.add_subject("Drama", default_count=0)
    store.add_room("G-101")
    return store


# ─── LEHRKRÄFTE ───────────────────────────────────────────────────────────────

class TestTeacher:
    def test_code_generation_basic(self):
        """Initiale + n-ter Buchstabe + letzter Buchstabe des Nachnamens."""
        assert generate_teacher_code("Jane Smith", []) == "JSH"

    def test_code_generation_collision(self):
        """Bei Kollision wird der nächste Nachnamen-Buchstabe probiert."""
        assert generate_teacher_code("Jane Smith", ["JSH"]) == "JMH"
        assert generate_teacher_code("Jane Smith", ["JSH", "JMH"]) == "JIH"

    def test_code_generation_numeric_suffix(self):
        """Alle Buchstaben-Varianten vergeben → Nummer anhängen."""
        taken = ["JSH", "JMH", "JIH", "JTH", "JHH"]
        assert generate_teacher_code("Jane Smith", taken) == "JSH1"
        assert generate_teacher_code("Jane Smith", taken + ["JSH1"]) == "JSH2"

    def test_code_generation_single_name(self):
        assert generate_teacher_code("Cher", []) == "CCR"

    def test_code_generation_case_insensitive(self):
        assert generate_teacher_code("jane smith", ["jsh"]) == "JMH"

    def test_code_generation_empty_name(self):
        with pytest.raises(ValueError):
            generate_teacher_code("   ", [])

    def test_code_is_uppercased(self):
        t = Teacher(id="t1", name="A B", code=" abc ")
        assert t.code == "ABC"

    def test_availability_missing_day_is_unavailable(self):
        t = Teacher(id="t1", name="A B", code="ABB", availability={"Mon": [True, True]})
        assert t.is_available("Mon", 1)
        assert not t.is_available("Tue", 1)
        assert not t.is_available("Mon", 2)   # Liste zu kurz
        assert not t.is_available("Mon", -1)

    def test_with_availability(self):
        t = Teacher(id="t1", name="A B", code="ABB",
                    availability=full_availability(["Mon", "Tue"], 4))
        t2 = t.with_availability("Mon", [1, 3], 4)
        assert t2.availability["Mon"] == [False, True, False, True]
        assert t2.availability["Tue"] == [True] * 4
        assert t.availability["Mon"] == [True] * 4

    def test_available_slot_count(self):
        t = Teacher(id="t1", name="A B", code="ABB",
                    availability=empty_availability(["Mon", "Tue"], 4))
        assert t.available_slot_count(["Mon", "Tue"], 4) == 0
        t = t.with_availability("Tue", [0, 1], 4)
        assert t.available_slot_count(["Mon", "Tue"], 4) == 2


# ─── FÄCHER / EINHEITEN ───────────────────────────────────────────────────────

class TestSubjectAndLesson:
    def test_can_merge(self):
        s = Subject(id="s", name="PE", mergeable_cohorts={"Y10", "Y11"})
        assert s.can_merge(["Y7"])
        assert s.can_merge(["Y10", "Y11"])
        assert not s.can_merge(["Y10", "Y9"])

    def test_lesson_needs_cohort(self):
        with pytest.raises(ValidationError):
            Lesson(id="l", cohorts=[], subject_id="s")

    def test_lesson_duplicate_cohorts(self):
        with pytest.raises(ValidationError):
            Lesson(id="l", cohorts=["Y7", "Y7"], subject_id="s")

    def test_placement_is_frozen(self):
        p = make_placement("p1")
        with pytest.raises(ValidationError):
            p.day = 1

    def test_merged_flags(self):
        assert Lesson(id="l", cohorts=["Y7", "Y8"], subject_id="s").is_merged
        assert not make_placement("p1").is_merged


# ─── RASTER ───────────────────────────────────────────────────────────────────

class TestTimetableGrid:
    def test_shape(self):
        grid = TimetableGrid(["Y7", "Y8"], ["Mon", "Tue", "Wed"], 5)
        assert grid.shape == (2, 3, 6)
        assert grid.capacity == 36
        assert grid.is_empty()

    def test_merged_placement_shared_object(self):
        """Eine zusammengelegte Platzierung ist EIN Objekt in allen Zellen."""
        grid = TimetableGrid(["Y7", "Y8", "Y9"], ["Mon"], 3)
        p = make_placement("p1", cohorts=("Y7", "Y8"), teacher_id="t1")
        grid.add(p)
        assert grid.cell("Y7", 0, 1) is p
        assert grid.cell("Y8", 0, 1) is p
        assert grid.cell("Y9", 0, 1) is None
        assert len(grid) == 1

    def test_remove_clears_all_cells(self):
        grid = TimetableGrid(["Y7", "Y8"], ["Mon"], 3)
        grid.add(make_placement("p1", cohorts=("Y7", "Y8"), teacher_id="t1", room_id="r1"))
        removed = grid.remove("p1")
        assert removed is not None
        assert grid.cell("Y7", 0, 1) is None and grid.cell("Y8", 0, 1) is None
        assert not grid.teacher_busy("t1", 0, 1)
        assert not grid.room_busy("r1", 0, 1)
        assert grid.remove("p1") is None

    def test_add_is_all_or_nothing(self):
        grid = TimetableGrid(["Y7", "Y8"], ["Mon"], 3)
        grid.add(make_placement("p1", cohorts=("Y8",)))
        with pytest.raises(ValueError):
            grid.add(make_placement("p2", cohorts=("Y7", "Y8")))
        assert grid.cell("Y7", 0, 1) is None
        assert len(grid) == 1

    def test_add_out_of_bounds(self):
        grid = TimetableGrid(["Y7"], ["Mon"], 3)
        with pytest.raises(ValueError):
            grid.add(make_placement("p1", day=1))
        with pytest.raises(ValueError):
            grid.add(make_placement("p2", period=4))

    def test_occupancy_index(self):
        grid = TimetableGrid(["Y7", "Y8"], ["Mon", "Tue"], 3)
        grid.add(make_placement("p1", cohorts=("Y7",), teacher_id="t1", room_id="r1"))
        assert grid.teacher_busy("t1", 0, 1)
        assert not grid.teacher_busy("t1", 0, 2)
        assert grid.room_busy("r1", 0, 1)
        assert not grid.teacher_busy("t1", 0, 1, ignore=frozenset({"p1"}))
        assert grid.occupancy(0, 1) == {"teachers": {"t1"}, "rooms": {"r1"}}

    def test_day_counters(self):
        grid = TimetableGrid(["Y7", "Y8"], ["Mon"], 3)
        grid.add(make_placement("p1", cohorts=("Y7", "Y8"), teacher_id="t1", subject_id="m"))
        grid.add(make_placement("p2", cohorts=("Y7",), period=2, teacher_id="t1", subject_id="m"))
        assert grid.subject_count("Y7", 0, "m") == 2
        assert grid.subject_count("Y8", 0, "m") == 1
        assert grid.teacher_count("Y7", 0, "t1") == 2
        grid.remove("p2")
        assert grid.subject_count("Y7", 0, "m") == 1

    def test_reshape_keeps_by_label(self):
        """Umformen: Zuordnung über Tagesnamen, Überhang wird verworfen."""
        grid = TimetableGrid(["Y7", "Y8"], ["Mon", "Tue"], 4)
        grid.add(make_placement("keep", cohorts=("Y7",), day=1, period=2))
        grid.add(make_placement("late", cohorts=("Y7",), day=0, period=4))
        grid.add(make_placement("merged", cohorts=("Y7", "Y8"), day=0, period=1))

        new = grid.reshaped(["Y7"], ["Tue", "Wed"], 3)
        assert new.shape == (1, 2, 4)
        kept = new.get_placement("keep")
        assert kept is not None and kept.day == 0 and kept.period == 2
        assert new.get_placement("late") is None
        assert new.get_placement("merged") is None   # Y8 fällt weg → ganz verworfen

    def test_from_rows_normalizes(self):
        """Zu kurze Zeilen werden aufgefüllt, inkonsistente Platzierungen verworfen."""
        good = make_placement("good", cohorts=("Y7",), day=0, period=1)
        wrong_pos = make_placement("wrong", cohorts=("Y7",), day=1, period=1)
        rows = [
            [[None, good, wrong_pos]],   # Y7: nur ein Tag, "wrong" steht an falscher Stelle
        ]
        grid = TimetableGrid.from_rows(rows, ["Y7", "Y8"], ["Mon", "Tue"], 2)
        assert grid.shape == (2, 2, 3)
        assert grid.get_placement("good") is good
        assert grid.get_placement("wrong") is None

    def test_from_rows_drops_unrepresentable_merged(self):
        merged = make_placement("m", cohorts=("Y7", "Y9"), day=0, period=1)
        rows = [[[None, merged]]]
        grid = TimetableGrid.from_rows(rows, ["Y7", "Y8"], ["Mon"], 2)
        assert grid.is_empty()


# ─── ENTITYSTORE ──────────────────────────────────────────────────────────────

class TestEntityStore:
    def test_with_defaults(self):
        store = EntityStore.with_defaults()
        assert len(store.subjects) == 24
        assert len(store.rooms) == 38
        form = store.form_subject()
        assert form is not None and form.name == "Form Time"
        assert sum(1 for s in store.subjects if s.is_form) == 1
        assert store.grid.shape == (7, 5, 6)

    def test_add_teacher_generates_code_and_full_availability(self):
        store = make_small_store()
        t1 = store.add_teacher("Jane Smith")
        t2 = store.add_teacher("Jack Stone")
        assert t1.code == "JSH"
        assert t2.code != t1.code
        assert t1.availability == {"Mon": [True] * 4, "Tue": [True] * 4}

    def test_add_teacher_duplicate_code(self):
        store = make_small_store()
        store.add_teacher("Jane Smith", code="ABC")
        with pytest.raises(ValueError):
            store.add_teacher("Other Person", code="abc")

    def test_set_teacher_availability(self):
        store = make_small_store()
        t = store.add_teacher("Jane Smith")
        store.set_teacher_availability(t.id, "Mon", [1])
        assert store.get_teacher(t.id).availability["Mon"] == [False, True, False, False]
        with pytest.raises(ValueError):
            store.set_teacher_availability(t.id, "Sun", [1])

    def test_find_and_get(self):
        store = make_small_store()
        assert store.find_lesson("nope") is None
        assert store.find_teacher(None) is None
        with pytest.raises(KeyError):
            store.get_lesson("nope")

    def test_add_lesson_clamps_count(self):
        store = make_small_store()
        maths = store.subject_by_name("Mathematics")
        assert store.add_lesson(["Y7"], maths.id, count=99).count == 50
        assert store.add_lesson(["Y8"], maths.id, count=0).count == 1

    def test_add_lesson_returns_existing_duplicate(self):
        store = make_small_store()
        maths = store.subject_by_name("Mathematics")
        a = store.add_lesson(["Y7"], maths.id, count=2)
        b = store.add_lesson(["Y7"], maths.id, count=2)
        assert a.id == b.id
        assert len(store.lessons) == 1

    def test_add_lesson_rejects_bad_input(self):
        store = make_small_store()
        maths = store.subject_by_name("Mathematics")
        drama = store.subject_by_name("Drama")
        with pytest.raises(ValueError):
            store.add_lesson(["Y7"], "unknown_subject")
        with pytest.raises(ValueError):
            store.add_lesson(["Y12"], maths.id)
        with pytest.raises(ValueError):
            store.add_lesson(["Y7"], maths.id, teacher_id="ghost")
        with pytest.raises(ValueError):
            store.add_lesson(["Y7", "Y8"], drama.id)          # nicht zusammenlegbar
        with pytest.raises(ValueError):
            store.add_lesson(["Y8", "Y9"], maths.id)          # Y9 nicht erlaubt
        assert store.add_lesson(["Y7", "Y8"], maths.id).is_merged

    def test_generate_lessons_for_cohorts(self):
        """Eine Einheit pro Kohorte × Fach; default_count 0 wird übersprungen."""
        store = make_small_store()
        created = store.generate_lessons_for_cohorts(["Y7", "Y8"])
        assert len(created) == 4   # Form Time + Mathematics je Kohorte, Drama nicht
        assert all(l.teacher_id is None and l.room_id is None for l in created)
        assert store.generate_lessons_for_cohorts(["Y7"]) == []

    def test_generate_caps_form_sessions_to_days(self):
        """Form Time (5 pro Woche) bei nur 3 Tagen → 3 Sitzungen."""
        config = TimetableConfig(
            time_grid=TimeGridConfig(day_names=["Mon", "Tue", "Wed"], periods=5),
            cohorts=CohortConfig(labels=["Y7"]),
        )
        store = EntityStore.with_defaults(config)
        created = store.generate_lessons_for_cohorts(["Y7"])
        counts = {store.get_subject(l.subject_id).name: l.count for l in created}
        assert counts["Form Time"] == 3
        assert counts["Mathematics"] == 3
        errors = store.validate_feasibility().errors
        assert not any("Form-Sitzungen" in e for e in errors)

    def test_update_subject_rejects_breaking_merge_rule(self):
        store = make_small_store()
        maths = store.subject_by_name("Mathematics")
        store.add_lesson(["Y7", "Y8"], maths.id)
        with pytest.raises(ValueError):
            store.update_subject(maths.id, mergeable_cohorts={"Y8", "Y9"})
        assert store.get_subject(maths.id).mergeable_cohorts == {"Y7", "Y8"}

        widened = store.update_subject(maths.id, mergeable_cohorts={"Y7", "Y8", "Y9"})
        assert widened.can_merge(["Y7", "Y8", "Y9"])

    def test_update_subject_form_switch_removes_placements(self):
        store = make_small_store()
        drama = store.subject_by_name("Drama")
        maths = store.subject_by_name("Mathematics")
        lesson = store.add_lesson(["Y7"], drama.id)
        other = store.add_lesson(["Y8"], maths.id)
        store.grid.add(make_placement("p1", lesson_id=lesson.id, subject_id=drama.id))
        store.grid.add(make_placement("p2", cohorts=("Y8",), lesson_id=other.id,
                                      subject_id=maths.id))

        updated = store.update_subject(drama.id, is_form=True)
        assert updated.is_form
        assert store.grid.get_placement("p1") is None
        assert store.grid.get_placement("p2") is not None
        assert store.find_lesson(lesson.id) is not None

    def test_update_subject_keeps_id_and_clamps_count(self):
        store = make_small_store()
        maths = store.subject_by_name("Mathematics")
        with pytest.raises(ValueError):
            store.update_subject(maths.id, id="sub_other")
        assert store.update_subject(maths.id, default_count=-3).default_count == 0
        assert not hasattr(store, "update_lesson")

    def test_load_grid_rows_normalizes_into_store(self):
        store = make_small_store()
        good = make_placement("good", cohorts=("Y7",), day=0, period=1)
        wrong_pos = make_placement("wrong", cohorts=("Y7",), day=1, period=1)
        grid = store.load_grid_rows([[[None, good, wrong_pos]]])
        assert store.grid is grid
        assert grid.shape == (3, 2, 4)
        assert grid.get_placement("good") is good
        assert grid.get_placement("wrong") is None

    def test_remove_teacher_cascades(self):
        store = make_small_store()
        maths = store.subject_by_name("Mathematics")
        t = store.add_teacher("Jane Smith")
        lesson = store.add_lesson(["Y7"], maths.id, teacher_id=t.id)
        other = store.add_lesson(["Y8"], maths.id)
        store.grid.add(make_placement("p1", teacher_id=t.id, lesson_id=lesson.id,
                                      subject_id=maths.id))
        store.grid.add(make_placement("p2", cohorts=("Y8",), lesson_id=other.id,
                                      subject_id=maths.id))

        removed = store.remove_teacher(t.id)
        assert [l.id for l in removed] == [lesson.id]
        assert store.find_lesson(lesson.id) is None
        assert store.find_lesson(other.id) is not None
        assert store.grid.get_placement("p1") is None
        assert store.grid.get_placement("p2") is not None
        with pytest.raises(KeyError):
            store.remove_teacher(t.id)

    def test_remove_subject_cascades(self):
        store = make_small_store()
        maths = store.subject_by_name("Mathematics")
        lesson = store.add_lesson(["Y7", "Y8"], maths.id)
        store.grid.add(make_placement("p1", cohorts=("Y7", "Y8"), lesson_id=lesson.id,
                                      subject_id=maths.id))
        store.remove_subject(maths.id)
        assert store.lessons == []
        assert store.grid.is_empty()

    def test_apply_settings_clamps_and_reshapes(self):
        store = make_small_store()
        store.grid.add(make_placement("p1", day=1, period=3))
        store.apply_settings(periods=40)
        assert store.periods == 12
        assert store.grid.get_placement("p1") is not None
        store.apply_settings(periods=0)
        assert store.periods == 1
        assert store.grid.get_placement("p1") is None

    def test_apply_settings_requires_day(self):
        store = make_small_store()
        with pytest.raises(ValueError):
            store.apply_settings(day_names=[])

    def test_apply_settings_drops_cohort_row(self):
        store = make_small_store()
        store.grid.add(make_placement("p1", cohorts=("Y9",)))
        store.apply_settings(cohorts=["Y7", "Y8"])
        assert store.grid.shape == (2, 2, 4)
        assert store.grid.is_empty()

    def test_clear_cell_and_reset(self):
        store = make_small_store()
        store.grid.add(make_placement("p1", cohorts=("Y7", "Y8")))
        assert store.clear_cell("Y8", 0, 1) is True
        assert store.grid.cell("Y7", 0, 1) is None
        assert store.clear_cell("Y8", 0, 1) is False
        assert store.clear_cell("Y42", 0, 1) is False
        store.grid.add(make_placement("p2"))
        store.reset_grid()
        assert store.grid.is_empty()

    def test_replace_grid_checks_shape(self):
        store = make_small_store()
        with pytest.raises(ValueError):
            store.replace_grid(TimetableGrid(["Y7"], ["Mon"], 3))

    def test_feasibility_report(self):
        store = make_small_store()
        maths = store.subject_by_name("Mathematics")
        t = store.add_teacher("Jane Smith",
                              availability={"Mon": [False, True, False, False]})
        store.add_lesson(["Y7"], maths.id, teacher_id=t.id, count=3)
        report = store.validate_feasibility()
        assert not report.is_feasible
        assert any("JSH" in e for e in report.errors)

    def test_feasibility_ok(self):
        store = make_small_store()
        store.generate_lessons_for_cohorts(["Y7"])
        report = store.validate_feasibility()
        assert report.is_feasible
        assert "Unterrichtseinheiten" in store.summary()
