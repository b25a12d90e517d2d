"""Tests for the trainstate CLI against a throwaway SQLite file."""

import zipfile

import pytest
from typer.testing import CliRunner

import trainstate.db.session as session_module
from cli.cli import app
from trainstate.config.settings import settings

runner = CliRunner()

EXPORT_XML = """<?xml version="1.0" encoding="UTF-8"?>
<HealthData locale="en_US">
 <Workout workoutActivityType="HKWorkoutActivityTypeCycling" duration="60" durationUnit="min"
  totalDistance="25" totalDistanceUnit="km" totalEnergyBurned="600" sourceName="Apple Watch"
  startDate="2024-05-01 07:00:00 +0200" endDate="2024-05-01 08:00:00 +0200"/>
 <Workout workoutActivityType="HKWorkoutActivityTypeYoga" duration="30" durationUnit="min"
  sourceName="Apple Watch" startDate="2024-05-02 19:00:00 +0200" endDate="2024-05-02 19:30:00 +0200"/>
</HealthData>
"""


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path, monkeypatch):
    """Point the CLI at a fresh database and backup directory."""
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setattr(settings, "backup_dir", tmp_path / "backups")
    monkeypatch.setattr(settings, "health_read_consent", False)
    monkeypatch.setattr(session_module, "_engine", None)
    monkeypatch.setattr(session_module, "_SessionLocal", None)
    yield
    if session_module._engine is not None:
        session_module._engine.dispose()


@pytest.fixture
def export_zip(tmp_path):
    path = tmp_path / "export.zip"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("apple_health_export/export.xml", EXPORT_XML)
    return path


def _import(export_zip, answer="y\n"):
    return runner.invoke(app, ["health-import", "--export", str(export_zip)], input=answer)


def test_init_db_and_empty_stats():
    result = runner.invoke(app, ["init-db"])
    assert result.exit_code == 0
    assert "Database ready" in result.output

    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "workouts" in result.output


def test_health_import_with_consent(export_zip):
    result = _import(export_zip)

    assert result.exit_code == 0, result.output
    assert "Imported 2 new workouts." in result.output
    assert "Cycling" in result.output
    assert "Yoga" in result.output

    again = _import(export_zip)
    assert "Imported 0 new workouts." in again.output


def test_health_import_without_consent_is_denied(export_zip):
    result = _import(export_zip, answer="n\n")

    assert result.exit_code == 0
    assert "denied" in result.output


def test_health_import_missing_export(tmp_path):
    result = _import(tmp_path / "missing.zip")

    assert result.exit_code == 1
    assert "Unable to read workouts" in result.output


def test_export_and_restore(export_zip):
    _import(export_zip)

    result = runner.invoke(app, ["export"])
    assert result.exit_code == 0, result.output
    backups = sorted((settings.backup_dir).glob("TrainState_Backup_*.json"))
    assert len(backups) == 1

    listed = runner.invoke(app, ["list-backups"])
    assert backups[0].name in listed.output

    result = runner.invoke(app, ["restore", str(backups[0]), "--yes"])
    assert result.exit_code == 0, result.output
    assert "Restored 2 workouts." in result.output


def test_restore_can_be_declined(export_zip, tmp_path):
    _import(export_zip)
    runner.invoke(app, ["export"])
    backup = next(settings.backup_dir.glob("TrainState_Backup_*.json"))

    result = runner.invoke(app, ["restore", str(backup)], input="n\n")

    assert result.exit_code == 0
    assert "This will replace all existing data. Are you sure?" in result.output
    assert "Restore cancelled." in result.output


def test_restore_rejects_foreign_file(tmp_path):
    bogus = tmp_path / "notes.json"
    bogus.write_text('["not", "a", "backup"]')

    result = runner.invoke(app, ["restore", str(bogus), "--yes"])

    assert result.exit_code == 1
