"""Timetable Engine: Haupt-CLI.

Verwendung:
  python main.py config init              Standard-Konfiguration anlegen
  python main.py config show              Konfiguration anzeigen
  python main.py generate                 Testdaten erzeugen + Machbarkeits-Check
  python main.py solve                    Testdaten erzeugen → AutoScheduler → Validierung
  python main.py scenario save <name>     Szenario speichern
  python main.py scenario load <name>     Szenario laden
  python main.py scenario list            Szenarien auflisten

  -v / --verbose vor dem Befehl aktiviert Debug-Logging.
"""

import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich import box

console = Console()


def _load_config():
    """Lädt die Konfiguration (oder die Standard-Konfiguration) oder bricht ab."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    try:
        return mgr, mgr.load_or_default()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Konfiguration anlegen oder anzeigen."""


@cmd_config.command("init")
@click.option("--force", is_flag=True, default=False,
              help="Bestehende Konfiguration überschreiben.")
def config_init(force: bool):
    """Legt die Standard-Konfiguration an."""
    from config.defaults import default_timetable_config
    from config.manager import ConfigManager

    mgr = ConfigManager()
    if not mgr.first_run_check() and not force:
        console.print(
            "[yellow]Eine Konfiguration existiert bereits.[/yellow]\n"
            "Mit [bold]--force[/bold] überschreiben."
        )
        return
    mgr.save(default_timetable_config())


@cmd_config.command("show")
def config_show():
    """Zeigt die aktuelle Konfiguration an."""
    mgr, config = _load_config()

    console.print(Panel(
        f"[bold]{config.school_name}[/bold]  |  Form-Fach: {config.form_subject_name}",
        title="Konfiguration",
        border_style="cyan",
    ))

    tg = config.time_grid
    table = Table(title="Wochenraster", box=box.ROUNDED)
    table.add_column("Tage")
    table.add_column("Perioden")
    table.add_column("Slots/Tag")
    table.add_column("Kohorten")
    table.add_row(
        ", ".join(tg.day_names),
        str(tg.periods),
        str(tg.slots_per_day),
        ", ".join(config.cohorts.labels),
    )
    console.print(table)

    sc = config.solver
    ladder = Table(title="Lockerungs-Leiter", box=box.ROUNDED)
    ladder.add_column("Stufe", style="bold")
    ladder.add_column("Fach-Wdh. erlaubt")
    ladder.add_column("Lehrer-Wdh. erlaubt")
    ladder.add_column("Budget", justify="right")
    for step in sc.relaxation_ladder:
        ladder.add_row(
            step.name,
            "ja" if step.relax_same_subject else "nein",
            "ja" if step.relax_teacher_repeat else "nein",
            f"{step.time_budget_seconds:g}s",
        )
    console.print(ladder)
    console.print(
        f"[bold]Gewichte:[/bold] Fach/Tag {sc.weight_same_subject:g} | "
        f"Lehrer/Tag {sc.weight_teacher_repeat:g} | "
        f"Gleichstand {sc.weight_tie_break:g} | Seed {sc.seed}"
    )


# ─── GENERATE ─────────────────────────────────────────────────────────────────

@click.command("generate")
@click.option("--seed", default=42, help="Zufalls-Seed für reproduzierbare Daten.")
@click.option("--validate/--no-validate", "run_validate", default=True,
              help="Machbarkeits-Check nach Generierung.")
def cmd_generate(seed: int, run_validate: bool):
    """Erzeugt Testdaten (Lehrkräfte, Verfügbarkeiten, Unterrichtseinheiten)."""
    mgr, config = _load_config()
    from data.fake_data import FakeDataGenerator

    console.print("[bold]Testdaten werden generiert...[/bold]")
    gen = FakeDataGenerator(config, seed=seed)
    store = gen.generate()
    gen.print_summary(store)

    console.print(f"\n[dim]{store.summary()}[/dim]")

    if run_validate:
        store.validate_feasibility().print_rich()


# ─── SOLVE ────────────────────────────────────────────────────────────────────

@click.command("solve")
@click.option("--seed", default=None, type=int,
              help="Seed für die Token-Mischung (überschreibt die Config).")
@click.option("--data-seed", default=42, help="Seed für die Testdaten.")
def cmd_solve(seed, data_seed: int):
    """Erzeugt Testdaten und plant sie mit dem AutoScheduler."""
    mgr, config = _load_config()
    from analysis.solution_validator import SolutionValidator
    from data.fake_data import FakeDataGenerator
    from solver.engine import TimetableEngine

    store = FakeDataGenerator(config, seed=data_seed).generate()
    engine = TimetableEngine(store)

    budget = config.solver.total_time_budget
    with console.status(f"[bold]AutoScheduler läuft (max. {budget:g}s + Greedy)...[/bold]"):
        result = engine.auto_schedule(seed=seed)

    if result.capacity_warning:
        console.print(f"[yellow]⚠ {result.capacity_warning}[/yellow]")

    table = Table(title="Suchstufen", box=box.ROUNDED)
    table.add_column("Stufe", style="bold")
    table.add_column("Beschreibung")
    table.add_column("Status")
    table.add_column("Zeit", justify="right")
    for step in result.report.steps:
        color = "green" if step.status == "COMPLETE" else "yellow"
        table.add_row(step.name, step.description,
                      f"[{color}]{step.status}[/{color}]", f"{step.solve_time:.2f}s")
    console.print(table)

    color = "green" if result.is_complete else "yellow"
    console.print(Panel(
        f"Ergebnis von: [bold]{result.produced_by}[/bold]\n"
        f"Platziert: {len(result.grid)} | "
        f"[{color}]Offen: {result.unplaced_count}[/{color}] | "
        f"Zeit: {result.elapsed_seconds:.2f}s\n"
        f"[dim]{result.report.recommendation}[/dim]",
        title="AutoScheduler",
        border_style="cyan",
    ))

    report = SolutionValidator().validate(store)
    report.print_rich()
    if not report.is_valid:
        sys.exit(1)


# ─── SCENARIO ─────────────────────────────────────────────────────────────────

@click.group("scenario")
def cmd_scenario():
    """Szenarien verwalten (speichern, laden, auflisten)."""


@cmd_scenario.command("save")
@click.argument("name")
@click.option("--description", "-d", default="", help="Beschreibung des Szenarios.")
@click.option("--overwrite", is_flag=True, default=False,
              help="Bestehendes Szenario überschreiben.")
def scenario_save(name: str, description: str, overwrite: bool):
    """Speichert die aktuelle Konfiguration als Szenario."""
    mgr, config = _load_config()
    try:
        mgr.save_scenario(config, name, description, overwrite=overwrite)
    except FileExistsError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


@cmd_scenario.command("load")
@click.argument("name")
def scenario_load(name: str):
    """Lädt ein gespeichertes Szenario als aktive Konfiguration."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    try:
        config = mgr.load_scenario(name)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    mgr.save(config)
    console.print(f"[green]✓[/green] Szenario '{name}' als aktive Config gesetzt.")


@cmd_scenario.command("list")
def scenario_list():
    """Listet alle gespeicherten Szenarien auf."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    scenarios = mgr.list_scenarios()

    if not scenarios:
        console.print("[dim]Keine Szenarien vorhanden.[/dim]")
        return

    table = Table(title="Gespeicherte Szenarien", box=box.ROUNDED)
    table.add_column("Name", style="bold")
    table.add_column("Erstellt")
    table.add_column("Beschreibung")
    for s in scenarios:
        table.add_row(s["name"], str(s.get("created", "")), s.get("description", ""))
    console.print(table)


# ─── HAUPT-CLI ────────────────────────────────────────────────────────────────

@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Debug-Logging aktivieren.")
def cli(verbose: bool):
    """Timetable Engine: wöchentliche Kohorten-Stundenpläne.

    Starten Sie mit: python main.py config init
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main():
    """Einstiegspunkt."""
    cli()


# Befehle registrieren
cli.add_command(cmd_config)
cli.add_command(cmd_generate)
cli.add_command(cmd_solve)
cli.add_command(cmd_scenario)


if __name__ == "__main__":
    main()
