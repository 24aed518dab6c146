"""Tests für das Konfigurationssystem und die CLI."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from config.schema import (
    CohortConfig,
    RelaxationStep,
    SolverConfig,
    TimeGridConfig,
    TimetableConfig,
)
from config.defaults import (
    SUBJECT_CATALOG,
    default_cohorts,
    default_room_names,
    default_time_grid,
    default_timetable_config,
)
from config.manager import ConfigManager


def make_fast_config() -> TimetableConfig:
    """Standard-Konfiguration mit sehr kurzer Lockerungs-Leiter."""
    config = default_timetable_config()
    config.solver = SolverConfig(
        relaxation_ladder=[
            RelaxationStep(name="strict", time_budget_seconds=0.2),
            RelaxationStep(name="relaxed", relax_same_subject=True,
                           relax_teacher_repeat=True, time_budget_seconds=0.2),
        ],
        seed=1,
    )
    return config


# ─── DEFAULT-KONFIGURATION ────────────────────────────────────────────────────

class TestDefaultConfig:
    def test_default_time_grid_valid(self):
        """Default-Raster: Mon–Fri, Form-Slot + 5 Perioden."""
        tg = default_time_grid()
        assert tg.day_names == ["Mon", "Tue", "Wed", "Thu", "Fri"]
        assert tg.days_per_week == 5
        assert tg.periods == 5
        assert tg.slots_per_day == 6

    def test_default_cohorts(self):
        cc = default_cohorts()
        assert cc.labels == ["Y7", "Y8", "Y9", "Y10", "Y11", "LSU", "SF"]

    def test_default_rooms(self):
        """38 Räume: G-101..116, F-117..126, S-127..138."""
        names = default_room_names()
        assert len(names) == 38
        assert names[0] == "G-101"
        assert names[15] == "G-116"
        assert "F-117" in names and "F-126" in names
        assert names[-1] == "S-138"
        assert len(set(names)) == len(names)

    def test_subject_catalog(self):
        """Katalog enthält 24 Fächer, Form Time mit 5 Sitzungen."""
        assert len(SUBJECT_CATALOG) == 24
        assert SUBJECT_CATALOG["Form Time"] == 5
        assert SUBJECT_CATALOG["Mathematics"] == 3
        assert all(v >= 0 for v in SUBJECT_CATALOG.values())

    def test_default_timetable_config_valid(self):
        config = default_timetable_config()
        assert config.school_name == "Example Academy"
        assert config.form_subject_name == "Form Time"
        assert [s.name for s in config.solver.relaxation_ladder] == [
            "strict", "relaxed", "relaxed_final"
        ]

    def test_default_ladder_budgets(self):
        """Leiter: streng 4.0s, gelockert 3.0s, gelockert 1.5s."""
        ladder = SolverConfig().relaxation_ladder
        assert [s.time_budget_seconds for s in ladder] == [4.0, 3.0, 1.5]
        assert not ladder[0].relax_same_subject and not ladder[0].relax_teacher_repeat
        assert ladder[1].relax_same_subject and ladder[1].relax_teacher_repeat
        assert ladder[2].relax_same_subject and ladder[2].relax_teacher_repeat
        assert SolverConfig().total_time_budget == pytest.approx(8.5)

    def test_default_weights(self):
        sc = SolverConfig()
        assert sc.weight_same_subject == 20
        assert sc.weight_teacher_repeat == 8
        assert sc.weight_tie_break == pytest.approx(0.001)
        assert sc.seed is None


# ─── PYDANTIC-VALIDIERUNG ─────────────────────────────────────────────────────

class TestPydanticValidation:
    def test_periods_bounds(self):
        """Perioden nur 1..12."""
        with pytest.raises(ValidationError):
            TimeGridConfig(periods=0)
        with pytest.raises(ValidationError):
            TimeGridConfig(periods=13)
        assert TimeGridConfig(periods=12).slots_per_day == 13

    def test_empty_days_rejected(self):
        with pytest.raises(ValidationError):
            TimeGridConfig(day_names=[])

    def test_duplicate_days_rejected(self):
        with pytest.raises(ValidationError):
            TimeGridConfig(day_names=["Mon", "Mon"])

    def test_duplicate_cohorts_rejected(self):
        with pytest.raises(ValidationError):
            CohortConfig(labels=["Y7", "Y7"])

    def test_no_cohorts_rejected(self):
        with pytest.raises(ValidationError):
            TimetableConfig(cohorts=CohortConfig(labels=[]))

    def test_step_budget_must_be_positive(self):
        with pytest.raises(ValidationError):
            RelaxationStep(name="x", time_budget_seconds=0)

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            SolverConfig(weight_same_subject=-1)


# ─── CONFIG-MANAGER ───────────────────────────────────────────────────────────

class TestConfigManager:
    def test_save_and_load_roundtrip(self, tmp_path: Path):
        """Config speichern, laden und validieren (vollständiger Roundtrip)."""
        config = make_fast_config()
        mgr = ConfigManager(config_path=tmp_path / "timetable.yaml")

        mgr.save(config)
        assert mgr.DEFAULT_CONFIG.exists()

        loaded = mgr.load()
        assert loaded == config

    def test_saved_yaml_has_comments(self, tmp_path: Path):
        mgr = ConfigManager(config_path=tmp_path / "timetable.yaml")
        mgr.save(default_timetable_config())
        text = mgr.DEFAULT_CONFIG.read_text(encoding="utf-8")
        assert "Timetable Engine" in text
        assert "─── Wochenraster ───" in text
        assert "None = zufällig" in text

    def test_first_run_check(self, tmp_path: Path):
        mgr = ConfigManager(config_path=tmp_path / "timetable.yaml")
        assert mgr.first_run_check() is True
        mgr.save(default_timetable_config())
        assert mgr.first_run_check() is False

    def test_load_nonexistent_raises(self, tmp_path: Path):
        """Laden einer nicht-existenten Datei → FileNotFoundError."""
        mgr = ConfigManager()
        with pytest.raises(FileNotFoundError):
            mgr.load(tmp_path / "not_there.yaml")

    def test_load_or_default_without_file(self, tmp_path: Path):
        mgr = ConfigManager(config_path=tmp_path / "missing.yaml")
        assert mgr.load_or_default() == default_timetable_config()

    def test_invalid_file_raises_value_error(self, tmp_path: Path):
        """Ungültige Werte → ValueError mit Dateinamen."""
        path = tmp_path / "bad.yaml"
        path.write_text("time_grid:\n  periods: 40\n", encoding="utf-8")
        mgr = ConfigManager()
        with pytest.raises(ValueError, match="bad.yaml"):
            mgr.load(path)

    def test_scenario_save_and_load(self, tmp_path: Path):
        """Szenario speichern und laden (Roundtrip)."""
        config = default_timetable_config().model_copy(update={"school_name": "Test-Schule"})
        mgr = ConfigManager(config_path=tmp_path / "timetable.yaml",
                            scenarios_dir=tmp_path / "scenarios")

        path = mgr.save_scenario(config, "test_szenario", "Nur zum Testen")
        assert path.exists()
        loaded = mgr.load_scenario("test_szenario")
        assert loaded.school_name == "Test-Schule"

        listed = mgr.list_scenarios()
        assert [s["name"] for s in listed] == ["test_szenario"]
        assert listed[0]["description"] == "Nur zum Testen"

    def test_scenario_no_silent_overwrite(self, tmp_path: Path):
        mgr = ConfigManager(scenarios_dir=tmp_path / "scenarios")
        config = default_timetable_config()
        mgr.save_scenario(config, "a")
        with pytest.raises(FileExistsError):
            mgr.save_scenario(config, "a")
        mgr.save_scenario(config, "a", overwrite=True)

    def test_list_scenarios_empty(self, tmp_path: Path):
        """Leeres Szenario-Verzeichnis → leere Liste."""
        mgr = ConfigManager(scenarios_dir=tmp_path / "scenarios")
        assert mgr.list_scenarios() == []

    def test_load_missing_scenario(self, tmp_path: Path):
        mgr = ConfigManager(scenarios_dir=tmp_path / "scenarios")
        with pytest.raises(FileNotFoundError):
            mgr.load_scenario("gibt_es_nicht")


# ─── CLI ──────────────────────────────────────────────────────────────────────

class TestCli:
    def test_help(self):
        """main.py --help gibt Usage aus."""
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Usage" in result.output

    def test_config_init_and_show(self):
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["config", "init"])
            assert result.exit_code == 0
            assert Path("config/timetable.yaml").exists()

            result = runner.invoke(cli, ["config", "show"])
            assert result.exit_code == 0
            assert "Example Academy" in result.output

    def test_config_init_does_not_overwrite(self):
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            runner.invoke(cli, ["config", "init"])
            result = runner.invoke(cli, ["config", "init"])
            assert result.exit_code == 0
            assert "existiert bereits" in result.output

    def test_generate_command(self):
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["generate", "--seed", "3"])
            assert result.exit_code == 0
            assert "Erzeugte Testdaten" in result.output

    def test_solve_command(self):
        """solve mit kurzer Leiter läuft durch; keine harten Verstöße → Exit 0."""
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            ConfigManager().save(make_fast_config())
            result = runner.invoke(cli, ["solve", "--data-seed", "5"])
            assert result.exit_code == 0, result.output
            assert "AutoScheduler" in result.output

    def test_scenario_list_command(self):
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["scenario", "list"])
            assert result.exit_code == 0
            assert "Keine Szenarien" in result.output

    def test_scenario_save_and_load_command(self):
        from click.testing import CliRunner
        from main import cli
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["scenario", "save", "basis", "-d", "Ausgangslage"])
            assert result.exit_code == 0
            result = runner.invoke(cli, ["scenario", "load", "basis"])
            assert result.exit_code == 0
            assert "basis" in result.output
