"""Tests for the CLI entry point."""

import json
import os

import pytest
import yaml
from click.testing import CliRunner

from somnus.core.cli import main
from somnus.cycles import ALGORITHM_VERSION


def _write(tmp_dir, name, data):
    path = os.path.join(tmp_dir, name)
    with open(path, "w") as f:
        if name.endswith(".json"):
            json.dump(data, f)
        else:
            yaml.safe_dump(data, f)
    return path


PHASES = [
    {"id": "a", "stage": "light", "start_time": "2025-03-01T23:00:00+00:00", "end_time": "2025-03-01T23:20:00+00:00"},
    {"id": "b", "stage": "light", "start_time": "2025-03-01T23:20:45+00:00", "end_time": "2025-03-01T23:45:00+00:00"},
    {"id": "c", "stage": "deep", "start_time": "2025-03-01T23:45:00+00:00", "end_time": "2025-03-02T00:30:00+00:00"},
]


class TestCliGroup:
    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Somnus" in result.output
        for command in ("coalesce", "geometry", "distribute", "score"):
            assert command in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_bad_config(self, tmp_dir):
        path = _write(tmp_dir, "config.yaml", {"scoring": {"personal_blend": 3}})
        phases = _write(tmp_dir, "phases.json", PHASES)
        result = CliRunner().invoke(main, ["--config", path, "coalesce", phases])
        assert result.exit_code == 1
        assert "Invalid somnus configuration" in result.output


class TestCoalesceCommand:
    @pytest.mark.smoke
    def test_coalesce_list(self, tmp_dir):
        path = _write(tmp_dir, "phases.json", PHASES)
        result = CliRunner().invoke(main, ["coalesce", path])
        assert result.exit_code == 0
        rows = json.loads(result.output)
        assert [row["stage"] for row in rows] == ["light", "deep"]
        assert rows[0]["end_time"] == "2025-03-01T23:45:00+00:00"

    def test_coalesce_mapping_yaml(self, tmp_dir):
        path = _write(tmp_dir, "night.yaml", {"phases": PHASES})
        result = CliRunner().invoke(main, ["coalesce", path])
        assert result.exit_code == 0
        assert len(json.loads(result.output)) == 2

    def test_config_threshold_applies(self, tmp_dir, tmp_config_file):
        path = _write(tmp_dir, "phases.json", PHASES)
        result = CliRunner().invoke(main, ["--config", tmp_config_file, "coalesce", path])
        assert result.exit_code == 0
        assert len(json.loads(result.output)) == 3

    def test_invalid_phase(self, tmp_dir):
        bad = [{**PHASES[0], "end_time": "2025-03-01T22:00:00+00:00"}]
        path = _write(tmp_dir, "phases.json", bad)
        result = CliRunner().invoke(main, ["coalesce", path])
        assert result.exit_code == 1
        assert "must be after" in result.output

    def test_missing_file(self, tmp_dir):
        result = CliRunner().invoke(main, ["coalesce", os.path.join(tmp_dir, "nope.json")])
        assert result.exit_code == 2


class TestGeometryCommand:
    def test_geometry(self, tmp_dir):
        doc = {
            "session_start": "2025-03-01T23:00:00+00:00",
            "session_end": "2025-03-02T01:00:00+00:00",
            "phases": PHASES,
        }
        path = _write(tmp_dir, "night.json", doc)
        result = CliRunner().invoke(main, ["geometry", path, "--width", "240", "--height", "120"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["width"] == 240
        assert len(data["segments"]) == 2
        assert len(data["gaps"]) == 1
        assert data["ticks"][0]["label"] == "23:00"

    def test_geometry_needs_mapping(self, tmp_dir):
        path = _write(tmp_dir, "night.json", PHASES)
        result = CliRunner().invoke(main, ["geometry", path])
        assert result.exit_code == 1
        assert "mapping" in result.output


class TestDistributeCommand:
    @pytest.fixture
    def session(self, tmp_dir):
        doc = {
            "session_id": "n1",
            "start_time": "2025-03-01T23:00:00+00:00",
            "end_time": "2025-03-02T07:00:00+00:00",
            "deep_minutes": 90,
            "rem_minutes": 100,
            "light_minutes": 240,
            "awake_minutes": 30,
            "profile": {"age": 30, "sex": "female", "activity_level": "active"},
            "seed": 3,
        }
        return _write(tmp_dir, "session.yaml", doc)

    @pytest.mark.smoke
    def test_distribute(self, session):
        result = CliRunner().invoke(main, ["distribute", session])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["phases"][0]["id"] == "n1-p001"
        assert data["confidence"] == "medium"
        assert data["total_minutes"] <= 480

    def test_seed_is_reproducible(self, session):
        runner = CliRunner()
        first = runner.invoke(main, ["distribute", session, "--seed", "9"])
        second = runner.invoke(main, ["distribute", session, "--seed", "9"])
        assert first.output == second.output

    def test_timeline_rows(self, session):
        result = CliRunner().invoke(main, ["distribute", session, "--user-id", "u1"])
        assert result.exit_code == 0
        rows = json.loads(result.output)
        assert {row["user_id"] for row in rows} == {"u1"}
        assert {row["algorithm_version"] for row in rows} == {ALGORITHM_VERSION}

    def test_bad_profile(self, tmp_dir):
        doc = {
            "start_time": "2025-03-01T23:00:00+00:00",
            "end_time": "2025-03-02T07:00:00+00:00",
            "profile": {"activity_level": "olympian"},
        }
        result = CliRunner().invoke(main, ["distribute", _write(tmp_dir, "s.yaml", doc)])
        assert result.exit_code == 1
        assert "activity level" in result.output


class TestScoreCommand:
    @pytest.mark.smoke
    def test_score(self, tmp_dir):
        doc = {
            "record": {
                "id": "tonight",
                "start_time": "2025-03-01T23:00:00+00:00",
                "end_time": "2025-03-02T07:00:00+00:00",
                "total_minutes": 450,
                "deep_minutes": 85,
                "rem_minutes": 100,
                "light_minutes": 265,
                "wake_minutes": 30,
            },
            "history": [
                {"id": "h1", "date": "2025-02-28", "total_minutes": 440, "deep_minutes": 80, "rem_minutes": 95},
            ],
            "profile": {"age": 30, "chronotype": "intermediate"},
        }
        result = CliRunner().invoke(main, ["score", _write(tmp_dir, "score.json", doc)])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert 0 <= data["score"] <= 100
        assert "insufficient_history" in data["flags"]
        assert data["age_norm"]["band"] == "26-35"

    def test_score_needs_record(self, tmp_dir):
        result = CliRunner().invoke(main, ["score", _write(tmp_dir, "score.json", {"history": []})])
        assert result.exit_code == 1
        assert "no 'record'" in result.output

    def test_unknown_screen_time_field(self, tmp_dir):
        doc = {"record": {"id": "tonight", "date": "2025-03-01", "total_minutes": 450, "screen_time": {"foo": 1}}}
        result = CliRunner().invoke(main, ["score", _write(tmp_dir, "score.json", doc)])
        assert result.exit_code == 1
        assert "Unknown screen_time fields: foo" in result.output

    def test_unreadable_document(self, tmp_dir):
        path = os.path.join(tmp_dir, "broken.json")
        with open(path, "w") as f:
            f.write("{not json")
        result = CliRunner().invoke(main, ["score", path])
        assert result.exit_code == 1
        assert "Could not read" in result.output
