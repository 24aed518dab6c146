from config.schema import (
    CohortConfig,
    SolverConfig,
    TimeGridConfig,
    TimetableConfig,
)


# ─── Fächerkatalog ────────────────────────────────────────────────────────────
# Fach → Standard-Stunden pro Woche. "Form Time" ist das Registrierungsfach
# und liegt ausschließlich in Slot 0 (eine Sitzung pro Tag).

SUBJECT_CATALOG: dict[str, int] = {
    "Form Time": 5,
    "English Language": 3,
    "Mathematics": 3,
    "Science": 3,
    "History": 2,
    "Geography": 2,
    "Religious Education": 1,
    "Business Studies": 1,
    "German": 2,
    "French": 2,
    "Spanish": 1,
    "Art & Design": 1,
    "Drama": 1,
    "Music": 1,
    "Fashion Design": 1,
    "Food Technology": 2,
    "Design Technology": 1,
    "Computer Science": 2,
    "Sociology": 1,
    "Child Development": 1,
    "Psychology": 1,
    "Economics": 1,
    "Physical Education": 1,
    "Sports Science": 1,
}


def default_room_names() -> list[str]:
    """Standard-Räume: Erdgeschoss G-101..116, 1. Stock F-117..126, Sport/Science S-127..138."""
    names = [f"G-{i}" for i in range(101, 117)]
    names += [f"F-{i}" for i in range(117, 127)]
    names += [f"S-{i}" for i in range(127, 139)]
    return names


def default_time_grid() -> TimeGridConfig:
    """Fünf Tage Mon–Fri, Form-Slot + 5 Perioden."""
    return TimeGridConfig(
        day_names=["Mon", "Tue", "Wed", "Thu", "Fri"],
        periods=5,
    )


def default_cohorts() -> CohortConfig:
    return CohortConfig(labels=["Y7", "Y8", "Y9", "Y10", "Y11", "LSU", "SF"])


def default_timetable_config() -> TimetableConfig:
    """Vollständige Standard-Konfiguration."""
    return TimetableConfig(
        school_name="Example Academy",
        form_subject_name="Form Time",
        time_grid=default_time_grid(),
        cohorts=default_cohorts(),
        solver=SolverConfig(),
    )
