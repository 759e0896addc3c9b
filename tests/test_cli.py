import json

import pytest

from alpaca_conform import cli
from alpaca_conform.config.settings import DeviceType


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr("alpaca_conform.cli.configure_logging", lambda settings: None)


def test_invalid_uri_cannot_start(capsys):
    assert cli.main(["alpacaprotocol", "http://host/api/v1/toaster/0"]) == -99
    assert capsys.readouterr().out.startswith("Cannot start test:")


def test_settings_without_device_type_cannot_start(monkeypatch, capsys):
    monkeypatch.delenv("ALPACA_CONFORM_DEVICE_TYPE", raising=False)
    monkeypatch.setenv("ALPACA_CONFORM_HOST", "10.0.0.5")

    assert cli.main(["alpacaprotocol-settings"]) == -99
    assert "No device type has been selected." in capsys.readouterr().out


def test_uri_command_runs_checks_and_writes_results(monkeypatch, tmp_path):
    captured = {}

    class FakeTester:
        def __init__(self, settings, session):
            captured["settings"] = settings
            self.session = session

        async def run(self):
            self.session.log_issue("GET Name", "bad")
            return 1

    monkeypatch.setattr("alpaca_conform.cli.AlpacaProtocolTester", FakeTester)
    results_file = tmp_path / "results.json"

    return_code = cli.main(
        [
            "alpacaprotocol",
            "http://192.168.1.20:11111/api/v1/focuser/1",
            "--results-file",
            str(results_file),
            "--strict",
        ]
    )

    assert return_code == 1
    settings = captured["settings"]
    assert settings.device_type is DeviceType.FOCUSER
    assert settings.device_number == 1
    assert settings.port == 11111
    assert settings.strict_checks is True
    data = json.loads(results_file.read_text(encoding="utf-8"))
    assert data["IssueCount"] == 1 and data["ReturnCode"] == 1
