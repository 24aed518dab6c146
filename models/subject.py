"""Datenmodell für ein Unterrichtsfach (Pydantic v2)."""

from pydantic import BaseModel, Field


class Subject(BaseModel):
    """Repräsentiert ein Unterrichtsfach."""

    id: str
    name: str
    color: str = "#777777"
    default_count: int = Field(0, ge=0)      # Standard-Sitzungen pro Woche
    mergeable_cohorts: set[str] = set()      # Kohorten, die eine Sitzung teilen dürfen
    is_form: bool = False                    # Form/Registrierung: nur Slot 0

    def can_merge(self, cohorts: list[str]) -> bool:
        """True wenn alle Kohorten gemeinsam in einer Sitzung sitzen dürfen."""
        if len(cohorts) <= 1:
            return True
        return set(cohorts) <= self.mergeable_cohorts
