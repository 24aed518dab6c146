"""Konfigurationsmanager: Laden, Speichern und Szenarien.

Nutzt ruamel.yaml für YAML-Serialisierung mit Kommentaren. Szenarien sind
normale Konfigurationsdateien mit einem zusätzlichen ``_meta``-Block.
"""

import json
from datetime import date
from pathlib import Path
from typing import Optional

from rich.console import Console
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from config.schema import TimetableConfig

console = Console()
yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120

_META_KEY = "_meta"


# ─── YAML-KOMMENTAR-AUFBAU ───

_YAML_HEADER = f"""\
# ============================================
# Timetable Engine: Konfiguration
# Erstellt: {date.today().isoformat()}
# ============================================
"""

_SECTION_COMMENTS = {
    "time_grid": (
        "Wochenraster",
        "Slot 0 ist der Form-Slot, danach folgen 'periods' Perioden pro Tag.",
    ),
    "cohorts": (
        "Kohorten",
        "Eine Rasterzeile pro Kohorte, in dieser Reihenfolge.",
    ),
    "solver": (
        "Solver",
        "relaxation_ladder: Stufen werden der Reihe nach versucht,\n"
        "danach folgt immer der Greedy-Fallback.",
    ),
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "timetable.yaml"
    SCENARIOS_DIR = Path("scenarios")

    def __init__(self, config_path: Optional[Path] = None,
                 scenarios_dir: Optional[Path] = None) -> None:
        if config_path is not None:
            self.DEFAULT_CONFIG = Path(config_path)
        if scenarios_dir is not None:
            self.SCENARIOS_DIR = Path(scenarios_dir)

    def first_run_check(self) -> bool:
        """True solange noch keine Config angelegt wurde."""
        return not self.DEFAULT_CONFIG.exists()

    # ─── Laden ───

    @staticmethod
    def _read(target: Path) -> dict:
        with open(target, "r", encoding="utf-8") as f:
            return dict(yaml.load(f) or {})

    def load(self, path: Optional[Path] = None) -> TimetableConfig:
        """Config aus YAML lesen; Pydantic-Fehler werden als ValueError gemeldet."""
        target = Path(path) if path else self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Keine Konfiguration unter {target}.\n"
                f"Anlegen mit 'python main.py config init'."
            )
        raw = self._read(target)
        raw.pop(_META_KEY, None)
        try:
            return TimetableConfig.model_validate(raw)
        except Exception as e:
            raise ValueError(f"Ungültige Konfiguration in {target}:\n{e}") from e

    def load_or_default(self, path: Optional[Path] = None) -> TimetableConfig:
        """Wie load(), ohne Datei aber die Standard-Konfiguration."""
        target = Path(path) if path else self.DEFAULT_CONFIG
        if target.exists():
            return self.load(target)
        from config.defaults import default_timetable_config
        return default_timetable_config()

    # ─── Speichern ───

    def save(self, config: TimetableConfig, path: Optional[Path] = None,
             meta: Optional[dict] = None) -> Path:
        """Config als kommentiertes YAML schreiben (optional mit _meta-Block)."""
        target = Path(path) if path else self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)

        with open(target, "w", encoding="utf-8") as f:
            f.write(_YAML_HEADER + "\n")
            yaml.dump(self._build_commented_yaml(config, meta), f)

        console.print(f"[green]✓[/green] Konfiguration gespeichert: {target}")
        return target

    def _build_commented_yaml(self, config: TimetableConfig,
                              meta: Optional[dict] = None) -> CommentedMap:
        cm = CommentedMap()
        if meta:
            cm[_META_KEY] = CommentedMap(meta)
            cm.yaml_set_comment_before_after_key(_META_KEY, before="Szenario")
        cm.update(json.loads(config.model_dump_json()))

        for key, (label, comment) in _SECTION_COMMENTS.items():
            cm.yaml_set_comment_before_after_key(
                key,
                before=f"\n─── {label} ───" + (f"\n{comment}" if comment else ""),
            )

        solver_map = CommentedMap(cm["solver"])
        solver_map.yaml_add_eol_comment("None = zufällig", "seed")
        cm["solver"] = solver_map
        return cm

    # ─── Szenarios ───

    def _scenario_path(self, name: str) -> Path:
        return self.SCENARIOS_DIR / f"{name}.yaml"

    def save_scenario(self, config: TimetableConfig, name: str,
                      description: str = "", overwrite: bool = False) -> Path:
        """Speichert eine Config als benanntes Szenario.

        Raises:
            FileExistsError: Szenario existiert und ``overwrite`` ist nicht gesetzt.
        """
        path = self._scenario_path(name)
        if path.exists() and not overwrite:
            raise FileExistsError(
                f"Szenario '{name}' existiert bereits ({path}); "
                f"zum Ersetzen overwrite setzen."
            )
        meta = {"name": name, "description": description,
                "created": date.today().isoformat()}
        return self.save(config, path, meta=meta)

    def list_scenarios(self) -> list[dict]:
        """Name, Pfad, Beschreibung und Datum aller Szenarien (alphabetisch)."""
        if not self.SCENARIOS_DIR.is_dir():
            return []
        result = []
        for p in sorted(self.SCENARIOS_DIR.glob("*.yaml")):
            meta = dict(self._read(p).get(_META_KEY) or {})
            result.append({
                "name": p.stem,
                "path": str(p),
                "description": meta.get("description", ""),
                "created": meta.get("created", ""),
            })
        return result

    def load_scenario(self, name: str) -> TimetableConfig:
        path = self._scenario_path(name)
        if not path.exists():
            known = ", ".join(s["name"] for s in self.list_scenarios()) or "keine"
            raise FileNotFoundError(f"Szenario '{name}' nicht gefunden (vorhanden: {known}).")
        return self.load(path)
