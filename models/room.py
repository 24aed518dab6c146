"""Datenmodell für einen Raum (Pydantic v2)."""

from pydantic import BaseModel


class Room(BaseModel):
    """Repräsentiert einen Raum. Einzige Regel: nie doppelt belegt."""

    id: str
    name: str   # "G-101"
