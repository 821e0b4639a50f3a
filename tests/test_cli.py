"""
Tests for the command-line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from slotbook.cli.app import app

runner = CliRunner()

DATA = {
    "businesses": [
        {
            "id": 1,
            "slug": "studio-bella",
            "name": "Studio Bella",
            "services": [{"name": "Haircut", "duration": 30}, {"name": "Coloring", "duration": 90}],
            "appointments": [
                {"id": 1, "date": "2024-06-10", "time": "10:00", "duration": 45, "status": "confirmed"}
            ],
        }
    ]
}


@pytest.fixture
def data_file(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps(DATA), encoding="utf-8")
    return path


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("log_level: WARNING\n", encoding="utf-8")
    return path


def _common(data_file, config_file):
    return ["--business", "studio-bella", "--data", str(data_file), "--today", "2024-06-01", "--config", str(config_file)]


class TestSlotsCommand:
    """Tests for `slotbook slots`."""

    def test_lists_available_times(self, data_file, config_file):
        result = runner.invoke(app, ["slots", "2024-06-10", "--service", "Haircut", *_common(data_file, config_file)])

        assert result.exit_code == 0, result.output
        assert "16 time(s) available" in result.output
        assert "09:30 - 10:00" in result.output
        assert "10:00 - 10:30" not in result.output

    def test_closed_day_shows_empty_state(self, data_file, config_file):
        result = runner.invoke(app, ["slots", "2024-06-09", *_common(data_file, config_file)])

        assert result.exit_code == 0, result.output
        assert "No available times" in result.output

    def test_unknown_service(self, data_file, config_file):
        result = runner.invoke(app, ["slots", "2024-06-10", "--service", "Massage", *_common(data_file, config_file)])

        assert result.exit_code == 1
        assert "Unknown service" in result.output

    def test_bad_date(self, data_file, config_file):
        result = runner.invoke(app, ["slots", "10/06/2024", *_common(data_file, config_file)])

        assert result.exit_code == 1


class TestDaysCommand:
    """Tests for `slotbook days`."""

    def test_shows_status_per_day(self, data_file, config_file):
        result = runner.invoke(
            app,
            ["days", "--start", "2024-05-31", "--end", "2024-06-03", *_common(data_file, config_file)],
        )

        assert result.exit_code == 0, result.output
        assert "past" in result.output
        assert "closed" in result.output
        assert "bookable" in result.output
        assert "Bookable until 2024-08-01" in result.output


class TestBookCommand:
    """Tests for `slotbook book`."""

    def test_books_and_saves(self, data_file, config_file):
        result = runner.invoke(
            app,
            ["book", "2024-06-10", "11:00", "--client", "Ana", "--service", "Haircut", *_common(data_file, config_file)],
        )

        assert result.exit_code == 0, result.output
        assert "Booked" in result.output

        saved = json.loads(data_file.read_text(encoding="utf-8"))
        appointments = saved["businesses"][0]["appointments"]
        assert appointments[-1]["time"] == "11:00"
        assert appointments[-1]["clientName"] == "Ana"
        assert appointments[-1]["serviceName"] == "Haircut"

    def test_overlapping_booking_is_refused(self, data_file, config_file):
        result = runner.invoke(
            app,
            ["book", "2024-06-10", "10:30", "--client", "Bia", "--service", "30", *_common(data_file, config_file)],
        )

        assert result.exit_code == 1
        assert "Not available" in result.output

        saved = json.loads(data_file.read_text(encoding="utf-8"))
        assert len(saved["businesses"][0]["appointments"]) == 1

    def test_past_day_is_rejected(self, data_file, config_file):
        result = runner.invoke(
            app,
            ["book", "2024-05-31", "10:00", "--client", "Bia", *_common(data_file, config_file)],
        )

        assert result.exit_code == 1
        assert "Rejected" in result.output


class TestOtherCommands:
    """Tests for the remaining commands."""

    def test_list_services(self, data_file, config_file):
        result = runner.invoke(app, ["list-services", "--business", "1", "--data", str(data_file), "--config", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "Haircut" in result.output
        assert "90 min" in result.output

    def test_missing_business(self, data_file, config_file):
        result = runner.invoke(app, ["slots", "2024-06-10", "--data", str(data_file), "--config", str(config_file)])

        assert result.exit_code == 1
        assert "No business given" in result.output

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "slotbook" in result.output
