"""AutoScheduler: heuristische Backtracking-Suche mit Zeitbudget.

Ablauf:
  - Token-Expansion: ``count`` Tokens pro Unterrichtseinheit
  - Kapazitäts-Vorprüfung (nur Warnung)
  - Tokens mischen (seedbarer ``random.Random``)
  - Lockerungs-Leiter: iterative MRV-Backtracking-Suche je Stufe,
    jede Stufe auf leerem Raster mit eigenem Wanduhr-Budget
  - Greedy-Fallback: ein Durchlauf, alle weichen Regeln gelockert
"""

import time
import logging
import random
import uuid
from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, ConfigDict

from config.schema import RelaxationStep, SolverConfig
from models.grid import TimetableGrid
from models.lesson import Lesson, Placement
from models.store import EntityStore
from solver.constraint_relaxer import (
    STATUS_COMPLETE,
    STATUS_EXHAUSTED,
    STATUS_TIMEOUT,
    ConstraintRelaxer,
    RelaxReport,
    RelaxResult,
)
from solver.demand import CapacityCheck, capacity_check, remaining
from solver.evaluator import ConstraintEvaluator

logger = logging.getLogger(__name__)

GREEDY = "greedy"


# ─── Ergebnis-Modelle ─────────────────────────────────────────────────────────

class ScheduleResult(BaseModel):
    """Ergebnis von AutoScheduler.schedule()."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    grid: TimetableGrid
    unplaced_count: int
    remaining: dict[str, int]            # Lesson-ID → fehlende Sitzungen
    capacity: CapacityCheck
    capacity_warning: Optional[str] = None
    produced_by: str                      # Stufenname oder "greedy"
    report: RelaxReport
    elapsed_seconds: float

    @property
    def is_complete(self) -> bool:
        return self.unplaced_count == 0


# ─── Suchzustand ──────────────────────────────────────────────────────────────

class _SearchTimeout(Exception):
    """Zeitbudget einer Stufe erschöpft."""


@dataclass
class _Frame:
    """Entscheidungspunkt: eine Einheit, ihre sortierten Optionen, aktuelle Wahl."""
    lesson_id: str
    options: list[tuple[float, int, int]]
    index: int = 0
    placement: Optional[Placement] = None


@dataclass
class _SearchState:
    grid: TimetableGrid
    remaining: dict[str, int]
    stack: list[_Frame] = field(default_factory=list)
    open_tokens: int = 0


# ─── AutoScheduler ────────────────────────────────────────────────────────────

class AutoScheduler:
    """Automatische Stundenplan-Erstellung.

    Verändert das Raster des Stores NICHT; das Ergebnis-Raster wird vom
    Aufrufer übernommen (siehe TimetableEngine.auto_schedule).

    Verwendung:
        scheduler = AutoScheduler(store)
        result = scheduler.schedule()
    """

    def __init__(self, store: EntityStore, solver_config: Optional[SolverConfig] = None) -> None:
        self.store = store
        self.config = solver_config or store.config.solver
        self.evaluator = ConstraintEvaluator(store)
        self._lessons: dict[str, Lesson] = {}
        self._rank: dict[str, int] = {}     # Lesson-ID → erste Position in gemischter Folge
        self._tokens: list[str] = []        # gemischte Token-Folge (Lesson-IDs)
        self._run_tag = ""
        self._next_id = 0

    # ─── Öffentliche API ──────────────────────────────────────────────────────

    def schedule(self, lessons: Optional[list[Lesson]] = None,
                 seed: Optional[int] = None) -> ScheduleResult:
        """Plant alle Sitzungen neu auf einem leeren Raster.

        Wirft nie wegen Unlösbarkeit; fehlende Sitzungen stehen in
        ``unplaced_count``.
        """
        t0 = time.monotonic()
        lessons = list(self.store.lessons if lessons is None else lessons)
        rng = random.Random(self.config.seed if seed is None else seed)
        self._run_tag = uuid.uuid4().hex[:6]
        self._next_id = 0

        empty = self.store.empty_grid()
        capacity = capacity_check(lessons, empty)
        capacity_warning = None
        if capacity.over_capacity:
            capacity_warning = (
                f"{capacity.tokens} Sitzungen bei nur {capacity.cells} Zellen – "
                f"vollständige Platzierung unmöglich."
            )
            logger.warning(f"Kapazität überschritten: {capacity_warning}")

        self._expand_tokens(lessons, rng)
        logger.info(
            f"AutoScheduler: {len(self._tokens)} Tokens aus {len(self._lessons)} Einheiten, "
            f"{len(self.config.relaxation_ladder)} Stufen"
        )

        relaxer = ConstraintRelaxer(self.config.relaxation_ladder)
        grid, report = relaxer.run(self._search)
        produced_by = report.winner

        if grid is None:
            g0 = time.monotonic()
            grid = self._greedy()
            report.steps.append(RelaxResult(
                name=GREEDY,
                description="ein Durchlauf, alle weichen Regeln gelockert",
                status=STATUS_COMPLETE,
                solve_time=time.monotonic() - g0,
            ))
            produced_by = GREEDY

        rest = remaining(lessons, grid)
        unplaced = sum(rest.values())
        elapsed = time.monotonic() - t0
        logger.info(
            f"AutoScheduler beendet: {produced_by} | platziert: {len(grid)} | "
            f"offen: {unplaced} | Zeit: {elapsed:.2f}s"
        )
        return ScheduleResult(
            grid=grid,
            unplaced_count=unplaced,
            remaining=rest,
            capacity=capacity,
            capacity_warning=capacity_warning,
            produced_by=produced_by,
            report=report,
            elapsed_seconds=elapsed,
        )

    # ─── Tokens ───────────────────────────────────────────────────────────────

    def _expand_tokens(self, lessons: list[Lesson], rng: random.Random) -> None:
        """count Tokens pro Einheit, gemischt. Nicht platzierbare Einheiten entfallen."""
        self._lessons = {}
        empty = self.store.empty_grid()
        tokens: list[str] = []
        for lesson in lessons:
            if lesson.count <= 0:
                continue
            if not self.evaluator.is_placeable(lesson, empty):
                logger.warning(
                    f"Einheit {lesson.id} verweist auf unbekannte Daten – wird nicht geplant"
                )
                continue
            self._lessons[lesson.id] = lesson
            tokens.extend([lesson.id] * lesson.count)
        rng.shuffle(tokens)
        self._tokens = tokens
        self._rank = {}
        for pos, lesson_id in enumerate(tokens):
            self._rank.setdefault(lesson_id, pos)

    def _new_placement(self, lesson: Lesson, day: int, period: int) -> Placement:
        self._next_id += 1
        return Placement(
            placement_id=f"pl_{self._run_tag}_{self._next_id}",
            lesson_id=lesson.id,
            subject_id=lesson.subject_id,
            teacher_id=lesson.teacher_id,
            room_id=lesson.room_id,
            cohorts=tuple(lesson.cohorts),
            day=day,
            period=period,
        )

    # ─── Backtracking-Suche ───────────────────────────────────────────────────

    def _search(self, step: RelaxationStep) -> tuple[str, Optional[TimetableGrid]]:
        """Eine Stufe der Leiter: iterative MRV-Suche auf leerem Raster."""
        deadline = time.monotonic() + step.time_budget_seconds

        def tick() -> None:
            if time.monotonic() > deadline:
                raise _SearchTimeout()

        state = _SearchState(grid=self.store.empty_grid(), remaining={})
        for lesson_id in self._tokens:
            state.remaining[lesson_id] = state.remaining.get(lesson_id, 0) + 1
        state.open_tokens = len(self._tokens)

        try:
            while True:
                tick()
                if state.open_tokens == 0:
                    return STATUS_COMPLETE, state.grid
                lesson_id, options = self._select(state, step, tick)
                if options:
                    state.stack.append(_Frame(lesson_id=lesson_id, options=options))
                if not self._advance(state):
                    logger.debug(f"Stufe '{step.name}': Suchraum erschöpft")
                    return STATUS_EXHAUSTED, None
        except _SearchTimeout:
            logger.debug(
                f"Stufe '{step.name}': Zeitbudget erschöpft, "
                f"{state.open_tokens} Tokens offen – Teilraster verworfen"
            )
            return STATUS_TIMEOUT, None

    def _select(self, state: _SearchState, step: RelaxationStep,
                tick) -> tuple[str, list[tuple[float, int, int]]]:
        """MRV: Einheit mit den wenigsten legalen Optionen (Gleichstand: Token-Reihenfolge).

        Eine Einheit ohne Optionen wird sofort zurückgegeben (Sackgasse).
        """
        best_id = ""
        best_options: list[tuple[float, int, int]] = []
        candidates = sorted(
            (lid for lid, n in state.remaining.items() if n > 0),
            key=self._rank.__getitem__,
        )
        for lesson_id in candidates:
            tick()
            options = self.evaluator.options(
                self._lessons[lesson_id],
                state.grid,
                relax_same_subject=step.relax_same_subject,
                relax_teacher_repeat=step.relax_teacher_repeat,
                tick=tick,
            )
            if not options:
                return lesson_id, []
            if not best_id or len(options) < len(best_options):
                best_id, best_options = lesson_id, options
        return best_id, best_options

    def _advance(self, state: _SearchState) -> bool:
        """Nimmt die aktuelle Wahl des obersten Frames zurück und probiert die nächste.

        Frames ohne weitere Optionen werden abgebaut. False wenn der Stapel leer ist.
        """
        while state.stack:
            frame = state.stack[-1]
            lesson = self._lessons[frame.lesson_id]
            if frame.placement is not None:
                state.grid.remove(frame.placement.placement_id)
                state.remaining[frame.lesson_id] += 1
                state.open_tokens += 1
                frame.placement = None
            if frame.index < len(frame.options):
                _, day, period = frame.options[frame.index]
                frame.index += 1
                frame.placement = self._new_placement(lesson, day, period)
                state.grid.add(frame.placement)
                state.remaining[frame.lesson_id] -= 1
                state.open_tokens -= 1
                return True
            state.stack.pop()
        return False

    # ─── Greedy-Fallback ──────────────────────────────────────────────────────

    def _greedy(self) -> TimetableGrid:
        """Ein Durchlauf in Token-Reihenfolge; beste legale Option, kein Backtracking.

        Weil das Raster nur wächst, bleibt eine Einheit ohne Optionen für
        alle ihre weiteren Tokens ohne Optionen.
        """
        grid = self.store.empty_grid()
        dead: set[str] = set()
        for lesson_id in self._tokens:
            if lesson_id in dead:
                continue
            lesson = self._lessons[lesson_id]
            options = self.evaluator.options(
                lesson, grid, relax_same_subject=True, relax_teacher_repeat=True,
            )
            if not options:
                dead.add(lesson_id)
                continue
            _, day, period = options[0]
            grid.add(self._new_placement(lesson, day, period))
        if dead:
            logger.warning(f"Greedy-Fallback: {len(dead)} Einheit(en) nicht vollständig platzierbar")
        return grid
