from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from opsbot_safety import engine as engine_module
from opsbot_safety.config import SafetySettings, Settings, WorkflowSettings
from opsbot_safety.domain.plans import ExecutionResult
from opsbot_safety.domain.types import PlanStatus, SafetyMode
from opsbot_safety.engine import SafetyEngine
from opsbot_safety.policy.models import SafetyConfig
from opsbot_safety.workflow.errors import InvalidTransition, UnknownPlan


@pytest.fixture(autouse=True)
def _no_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(engine_module, "configure_logging", lambda settings=None: None)


def test_submit_approve_execute(clock) -> None:
    engine = SafetyEngine(clock=clock)

    submission = engine.submit(
        "kubectl delete pod web-1 -n prod",
        "remove the stuck pod",
        channel="C123",
        requester_id="U42",
    )

    assert submission.requires_approval
    assert submission.plan.status is PlanStatus.PENDING
    assert submission.plan.channel == "C123"
    assert submission.plan.expires_at == clock.now.replace(minute=5)
    assert submission.policy.reasons == ["Command matches an always-require-approval trigger"]

    approved = engine.approve(submission.plan.short_id, "alice", comment="go")
    assert approved.status is PlanStatus.APPROVED

    result = ExecutionResult(plan_id=approved.id, success=True, output="pod deleted")
    executed = engine.mark_executed(approved.id, result)
    assert executed.status is PlanStatus.EXECUTED
    assert engine.workflow.execution_result(approved.id) == result
    assert engine.workflow.stats.total_executed == 1


def test_reject_by_reference(clock) -> None:
    engine = SafetyEngine(clock=clock)
    submission = engine.submit("terraform apply", "apply infra")

    rejected = engine.reject(submission.plan.short_id, "bob", comment="wait for freeze")

    assert rejected.status is PlanStatus.REJECTED
    assert engine.workflow.recent_decisions[-1].comment == "wait for freeze"


def test_modify_by_reference(clock) -> None:
    engine = SafetyEngine(clock=clock)
    submission = engine.submit("terraform apply", "apply infra")

    modified = engine.modify(submission.plan.short_id, "bob", "terraform plan")

    assert modified.status is PlanStatus.APPROVED
    assert modified.command == "terraform plan"
    assert modified.analysis == submission.plan.analysis


def test_read_only_engine_rejects_immediately(clock) -> None:
    engine = SafetyEngine(SafetyConfig(mode=SafetyMode.READ_ONLY), clock=clock)

    submission = engine.submit("docker run nginx", "start nginx")

    assert submission.plan.status is PlanStatus.REJECTED
    assert not submission.requires_approval
    assert engine.workflow.pending_plans() == []


def test_expired_plan_cannot_be_approved_by_reference(clock) -> None:
    engine = SafetyEngine(SafetyConfig(plan_timeout_sec=60), clock=clock)
    submission = engine.submit("kubectl scale deployment web --replicas=3", "scale")

    clock.advance(61)

    assert engine.sweep_expired() == [submission.plan.id]
    with pytest.raises(InvalidTransition):
        engine.approve(submission.plan.short_id, "alice")


def test_unknown_reference(clock) -> None:
    engine = SafetyEngine(clock=clock)
    with pytest.raises(UnknownPlan):
        engine.approve("deadbeef", "alice")


def test_format_plan_mentions_reply_commands(clock) -> None:
    engine = SafetyEngine(clock=clock)
    submission = engine.submit("kubectl get pods", "list pods")

    text = engine.format_plan(submission.plan)

    assert f"/approve {submission.plan.short_id}" in text


def test_from_settings_without_safety_file() -> None:
    engine = SafetyEngine.from_settings(Settings())

    assert engine.safety == SafetyConfig()
    assert engine.classify("kubectl get pods").impact.value == "none"


def test_from_settings_loads_safety_file(tmp_path: Path, clock) -> None:
    data = {
        "safety": {
            "mode": "plan-mode",
            "planTimeoutSec": 120,
            "autoApproveLowImpact": True,
        },
        "rules": {
            "helm": {
                "read": ["^helm\\s+(list|status)"],
                "mutate": ["^helm\\s+(install|upgrade)"],
                "dangerous": ["^helm\\s+uninstall"],
            }
        },
    }
    path = tmp_path / "safety.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    settings = Settings(
        safety=SafetySettings(path=str(path)),
        workflow=WorkflowSettings(history_size=5),
    )

    engine = SafetyEngine.from_settings(settings)

    assert engine.safety.plan_timeout_sec == 120
    assert engine.safety.auto_approve_low_impact is True
    assert engine.classify("helm uninstall web").is_dangerous
    assert engine.classify("helm status web").impact.value == "none"
    assert engine.workflow._history_size == 5


def test_from_settings_missing_safety_file(tmp_path: Path) -> None:
    settings = Settings(safety=SafetySettings(path=str(tmp_path / "missing.yaml")))
    with pytest.raises(FileNotFoundError):
        SafetyEngine.from_settings(settings)


def test_engines_are_independent(clock) -> None:
    first = SafetyEngine(clock=clock)
    second = SafetyEngine(clock=clock)

    submission = first.submit("terraform apply", "apply infra")

    with pytest.raises(UnknownPlan):
        second.approve(submission.plan.short_id, "alice")
    assert second.workflow.stats.total_plans_created == 0


def test_from_settings_configures_logging_with_given_settings(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    seen: list[Settings] = []
    monkeypatch.setattr(engine_module, "configure_logging", seen.append)
    settings = Settings()

    SafetyEngine.from_settings(settings)

    assert seen == [settings]
