from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# ─── ZEITRASTER (Tage + Perioden) ───

class TimeGridConfig(BaseModel):
    """Wochenraster: Tage und Perioden pro Tag.

    Slot 0 ist immer die Form-/Registrierungszeit, danach folgen die
    Perioden P1..Pn. Ein Tag hat damit ``1 + periods`` Slots.
    """
    # Namen der Unterrichtstage in Reihenfolge
    day_names: list[str] = Field(
        default=["Mon", "Tue", "Wed", "Thu", "Fri"],
        description="Unterrichtstage (Reihenfolge = Spalten im Raster)")
    # Anzahl Perioden pro Tag (ohne Form-Slot)
    periods: int = Field(5, ge=1, le=12,
        description="Perioden pro Tag ohne Form-Slot")

    @field_validator("day_names")
    @classmethod
    def _check_days(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("Mindestens ein Unterrichtstag muss konfiguriert sein.")
        if len(set(v)) != len(v):
            raise ValueError(f"Doppelte Tagesnamen: {v}")
        return v

    @property
    def days_per_week(self) -> int:
        return len(self.day_names)

    @property
    def slots_per_day(self) -> int:
        """Slots pro Tag inklusive Form-Slot 0."""
        return 1 + self.periods


# ─── KOHORTEN (Jahrgänge) ───

class CohortConfig(BaseModel):
    """Geordnete Liste der Kohorten; jede Kohorte ist eine Zeile im Raster."""
    labels: list[str] = Field(
        default=["Y7", "Y8", "Y9", "Y10", "Y11", "LSU", "SF"],
        description="Kohorten-Bezeichner in Anzeige-Reihenfolge")

    @field_validator("labels")
    @classmethod
    def _check_unique(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError(f"Doppelte Kohorten-Bezeichner: {v}")
        return v


# ─── SOLVER ───

class RelaxationStep(BaseModel):
    """Eine Stufe der Lockerungs-Leiter: welche weichen Regeln aus, wie lange suchen."""
    # Bezeichner für Logs und Berichte ("strict", "relaxed", ...)
    name: str
    # Gleiches Fach am selben Tag nicht mehr bestrafen
    relax_same_subject: bool = False
    # Mehrfach-Einsatz eines Lehrers pro Tag nicht mehr bestrafen
    relax_teacher_repeat: bool = False
    # Wanduhr-Budget der Backtracking-Suche in Sekunden
    time_budget_seconds: float = Field(gt=0, le=600)


def _default_ladder() -> list[RelaxationStep]:
    return [
        RelaxationStep(name="strict", time_budget_seconds=4.0),
        RelaxationStep(name="relaxed", relax_same_subject=True,
                       relax_teacher_repeat=True, time_budget_seconds=3.0),
        RelaxationStep(name="relaxed_final", relax_same_subject=True,
                       relax_teacher_repeat=True, time_budget_seconds=1.5),
    ]


class SolverConfig(BaseModel):
    """Solver-Konfiguration: Strafgewichte und Lockerungs-Leiter."""
    # Strafe, wenn dasselbe Fach am selben Tag bereits in einer Zielkohorte liegt
    weight_same_subject: float = Field(20, ge=0,
        description="Strafe: gleiches Fach am selben Tag")
    # Strafe pro bestehender Tagesstunde desselben Lehrers in einer Zielkohorte
    weight_teacher_repeat: float = Field(8, ge=0,
        description="Strafe pro Lehrer-Wiederholung am Tag")
    # Kleiner Gleichstandsbrecher zugunsten früher Tage und Perioden
    weight_tie_break: float = Field(0.001, ge=0,
        description="Gleichstand: frühere Zellen bevorzugen")
    # Geordnete Suchstufen; danach folgt immer der Greedy-Fallback
    relaxation_ladder: list[RelaxationStep] = Field(
        default_factory=_default_ladder,
        description="Backtracking-Stufen (weiche Regeln + Zeitbudget)")
    # Seed für die Token-Mischung (None = zufällig)
    seed: Optional[int] = Field(None,
        description="Zufalls-Seed für reproduzierbare Läufe")

    @property
    def total_time_budget(self) -> float:
        """Summe aller Stufen-Budgets (ohne Greedy-Fallback)."""
        return sum(s.time_budget_seconds for s in self.relaxation_ladder)


# ─── GESAMT-CONFIG ───

class TimetableConfig(BaseModel):
    """Gesamtkonfiguration des Stundenplans."""
    # Name der Schule
    school_name: str = Field("Example Academy",
        description="Name der Schule")
    # Name des Form-/Registrierungsfachs (nur Slot 0)
    form_subject_name: str = Field("Form Time",
        description="Fach, das ausschließlich in Slot 0 liegt")
    # Tage und Perioden
    time_grid: TimeGridConfig = Field(default_factory=TimeGridConfig)
    # Kohorten-Zeilen
    cohorts: CohortConfig = Field(default_factory=CohortConfig)
    # Solver-Gewichte und Leiter
    solver: SolverConfig = Field(default_factory=SolverConfig)

    @model_validator(mode="after")
    def _check_cohorts(self):
        if not self.cohorts.labels:
            raise ValueError("Mindestens eine Kohorte muss konfiguriert sein.")
        return self
