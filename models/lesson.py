"""Datenmodelle für Unterrichtseinheiten und ihre Platzierungen (Pydantic v2)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Lesson(BaseModel):
    """Wiederkehrende Unterrichtseinheit: ``count`` Sitzungen pro Woche.

    Bei mehreren Kohorten (zusammengelegte Einheit) belegt jede Sitzung
    dieselbe (Tag, Slot)-Zelle in ALLEN Kohorten-Zeilen gleichzeitig.
    """

    id: str
    cohorts: list[str]                # Zielkohorten (eine oder mehrere)
    subject_id: str
    teacher_id: Optional[str] = None
    room_id: Optional[str] = None
    count: int = Field(1, ge=0)       # Sitzungen pro Woche

    @field_validator("cohorts")
    @classmethod
    def _check_cohorts(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("Eine Unterrichtseinheit braucht mindestens eine Kohorte.")
        if len(set(v)) != len(v):
            raise ValueError(f"Doppelte Kohorten in Unterrichtseinheit: {v}")
        return v

    @property
    def is_merged(self) -> bool:
        return len(self.cohorts) > 1


class Placement(BaseModel):
    """Eine realisierte Sitzung: belegt (day, period) in allen ``cohorts``.

    Eine Platzierung ist genau EIN Objekt, das von jeder belegten Zelle
    referenziert wird. Zellen derselben Platzierung werden nie einzeln geleert.
    """

    model_config = ConfigDict(frozen=True)

    placement_id: str
    lesson_id: str
    subject_id: str
    teacher_id: Optional[str] = None
    room_id: Optional[str] = None
    cohorts: tuple[str, ...]
    day: int                          # 0-basiert
    period: int                       # Slot-Index, 0 = Form

    @property
    def is_merged(self) -> bool:
        return len(self.cohorts) > 1
