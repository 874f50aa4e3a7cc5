from __future__ import annotations

import json
import logging

import pytest

from opsbot_safety import cli, config
from opsbot_safety import engine as engine_module


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)
    monkeypatch.delenv("OPSBOT_SAFETY_PATH", raising=False)
    monkeypatch.setattr(engine_module, "configure_logging", lambda settings=None: None)
    monkeypatch.setattr(cli, "get_logger", logging.getLogger)


def test_classify_prints_json(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["classify", "kubectl delete namespace staging"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["operation"] == "delete"
    assert payload["impact"] == "critical"
    assert payload["is_dangerous"] is True


def test_plan_prints_summary_and_status(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(
        ["plan", "terraform destroy -target=aws_instance.web", "--request", "tear down web"]
    )

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Request: tear down web" in out
    assert "  - terraform_resource/aws_instance.web" in out
    assert "Status: pending" in out


def test_missing_action_exits() -> None:
    with pytest.raises(SystemExit):
        cli.main([])
