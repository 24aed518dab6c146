"""Lockerungs-Leiter: Suchläufe mit schrittweise gelockerten weichen Regeln."""

import time
import logging
from typing import Any, Callable, Optional

from pydantic import BaseModel

from config.schema import RelaxationStep

logger = logging.getLogger(__name__)

# Status eines einzelnen Suchlaufs
STATUS_COMPLETE = "COMPLETE"      # alle Tokens platziert
STATUS_TIMEOUT = "TIMEOUT"        # Zeitbudget erschöpft, Teilraster verworfen
STATUS_EXHAUSTED = "EXHAUSTED"    # Suchraum vollständig abgesucht, keine Lösung

# Ein Suchlauf liefert (Status, Ergebnis); Ergebnis ist nur bei COMPLETE gesetzt
SearchAttempt = Callable[[RelaxationStep], tuple[str, Optional[Any]]]


# ─── Ergebnis-Modelle ─────────────────────────────────────────────────────────

class RelaxResult(BaseModel):
    """Ergebnis einer einzelnen Stufe."""
    name: str
    description: str
    status: str
    solve_time: float


class RelaxReport(BaseModel):
    """Bericht über alle ausgeführten Stufen."""
    steps: list[RelaxResult]
    winner: Optional[str] = None      # Name der erfolgreichen Stufe
    recommendation: str = ""

    @property
    def succeeded(self) -> bool:
        return self.winner is not None


# ─── ConstraintRelaxer ────────────────────────────────────────────────────────

class ConstraintRelaxer:
    """Führt die Stufen der Leiter der Reihe nach aus, bis eine gelingt.

    Die Stufen sind Daten (``SolverConfig.relaxation_ladder``); die
    eigentliche Suche wird als Callable übergeben:

        relaxer = ConstraintRelaxer(config.solver.relaxation_ladder)
        result, report = relaxer.run(lambda step: search(step))
    """

    def __init__(self, ladder: list[RelaxationStep]) -> None:
        self.ladder = list(ladder)

    def run(self, attempt: SearchAttempt) -> tuple[Optional[Any], RelaxReport]:
        """Ruft ``attempt`` pro Stufe auf; stoppt beim ersten COMPLETE."""
        results: list[RelaxResult] = []
        for step in self.ladder:
            t0 = time.monotonic()
            status, outcome = attempt(step)
            elapsed = time.monotonic() - t0
            results.append(RelaxResult(
                name=step.name,
                description=describe_step(step),
                status=status,
                solve_time=elapsed,
            ))
            logger.info(f"  Stufe '{step.name}': {status} ({elapsed:.2f}s)")
            if status == STATUS_COMPLETE:
                return outcome, RelaxReport(
                    steps=results,
                    winner=step.name,
                    recommendation=self._build_recommendation(results),
                )

        return None, RelaxReport(
            steps=results,
            winner=None,
            recommendation=self._build_recommendation(results),
        )

    # ─── Empfehlung ───────────────────────────────────────────────────────────

    def _build_recommendation(self, results: list[RelaxResult]) -> str:
        """Menschenlesbare Einschätzung des Leiter-Verlaufs."""
        if not results:
            return "Keine Suchstufen konfiguriert – nur Greedy-Fallback."
        if results[0].status == STATUS_COMPLETE:
            return "Strenge Suche erfolgreich; alle weichen Regeln eingehalten."
        if results[-1].status == STATUS_COMPLETE:
            return (
                f"Erst Stufe '{results[-1].name}' war erfolgreich. "
                "Weiche Regeln wurden gelockert."
            )
        if all(r.status == STATUS_EXHAUSTED for r in results):
            return (
                "Suchraum in allen Stufen erschöpft: vollständige Platzierung ist "
                "unmöglich. Verfügbarkeiten, Räume oder Stunden/Woche prüfen."
            )
        return (
            "Zeitbudget in mindestens einer Stufe erschöpft. "
            "Budget erhöhen oder das Problem verkleinern."
        )


def describe_step(step: RelaxationStep) -> str:
    """Kurzbeschreibung der gelockerten Regeln einer Stufe."""
    relaxed = []
    if step.relax_same_subject:
        relaxed.append("Fach-Wiederholung")
    if step.relax_teacher_repeat:
        relaxed.append("Lehrer-Wiederholung")
    if not relaxed:
        return f"streng, {step.time_budget_seconds:g}s"
    return f"gelockert: {', '.join(relaxed)}, {step.time_budget_seconds:g}s"
