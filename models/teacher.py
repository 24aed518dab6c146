"""Datenmodell für eine Lehrkraft (Pydantic v2)."""

from pydantic import BaseModel, field_validator


class Teacher(BaseModel):
    """Repräsentiert eine einzelne Lehrkraft."""

    id: str
    name: str                                   # "Jane Smith"
    code: str                                   # Kürzel ("JMH"), eindeutig
    availability: dict[str, list[bool]] = {}    # Tag → ein Flag pro Slot (inkl. Slot 0)
    subjects: list[str] = []                    # Fach-IDs (nur informativ)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    def is_available(self, day_name: str, slot: int) -> bool:
        """True wenn die Lehrkraft an diesem Tag in diesem Slot unterrichten darf.

        Fehlender Tag oder zu kurze Liste gelten als nicht verfügbar.
        """
        flags = self.availability.get(day_name)
        if not flags or slot < 0 or slot >= len(flags):
            return False
        return bool(flags[slot])

    def available_slot_count(self, day_names: list[str], slots_per_day: int) -> int:
        """Anzahl verfügbarer Slots im aktuellen Raster."""
        return sum(
            1
            for d in day_names
            for s in range(slots_per_day)
            if self.is_available(d, s)
        )

    def with_availability(self, day_name: str, slots: list[int],
                          slots_per_day: int) -> "Teacher":
        """Kopie, deren Verfügbarkeit an einem Tag genau ``slots`` umfasst."""
        availability = {d: list(v) for d, v in self.availability.items()}
        availability[day_name] = [s in slots for s in range(slots_per_day)]
        return self.model_copy(update={"availability": availability})


def full_availability(day_names: list[str], slots_per_day: int) -> dict[str, list[bool]]:
    """Verfügbarkeit: jeder Slot an jedem Tag."""
    return {d: [True] * slots_per_day for d in day_names}


def empty_availability(day_names: list[str], slots_per_day: int) -> dict[str, list[bool]]:
    return {d: [False] * slots_per_day for d in day_names}


def generate_teacher_code(full_name: str, existing_codes: list[str]) -> str:
    """Erzeugt ein eindeutiges Kürzel aus dem Namen.

    Schema: Initiale des Vornamens + n-ter Buchstabe des Nachnamens +
    letzter Buchstabe des Nachnamens. Sind alle Varianten vergeben, wird
    eine laufende Nummer angehängt ("JSH1", "JSH2", ...).
    """
    parts = full_name.split()
    if not parts:
        raise ValueError("Name der Lehrkraft darf nicht leer sein.")
    taken = {c.upper() for c in existing_codes}
    first = parts[0]
    surname = parts[-1] if len(parts) > 1 else first
    first_initial = first[0].upper()
    last_letter = surname[-1].upper()

    for n in range(max(3, len(surname))):
        nth = surname[n].upper() if n < len(surname) else surname[0].upper()
        code = f"{first_initial}{nth}{last_letter}"
        if code not in taken:
            return code

    i = 1
    while True:
        code = f"{first_initial}{surname[0].upper()}{last_letter}{i}"
        if code not in taken:
            return code
        i += 1
