from models.subject import Subject
from models.teacher import Teacher, generate_teacher_code
from models.room import Room
from models.lesson import Lesson, Placement
from models.grid import TimetableGrid
from models.store import EntityStore, FeasibilityReport

__all__ = [
    "Subject",
    "Teacher",
    "generate_teacher_code",
    "Room",
    "Lesson",
    "Placement",
    "TimetableGrid",
    "EntityStore",
    "FeasibilityReport",
]
