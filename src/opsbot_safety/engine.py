"""Facade wiring classifier, plan builder, approval policy and workflow together."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from opsbot_safety.classify.classifier import Classifier
from opsbot_safety.classify.rules import BUILTIN_RULE_SETS, ToolRuleSet
from opsbot_safety.config import Settings, load_settings
from opsbot_safety.domain.plans import (
    ApprovalDecision,
    ClassificationResult,
    CommandAnalysis,
    ExecutionResult,
    Plan,
)
from opsbot_safety.domain.types import DecisionKind
from opsbot_safety.logging_utils import configure_logging
from opsbot_safety.planning.builder import analyze, create_plan, format_plan
from opsbot_safety.policy.engine import PolicyDecision, evaluate_policy
from opsbot_safety.policy.loader import load_engine_config
from opsbot_safety.policy.models import SafetyConfig
from opsbot_safety.utils.time import Clock, utc_now
from opsbot_safety.workflow.state import DEFAULT_HISTORY_SIZE, WorkflowState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Submission:
    plan: Plan
    policy: PolicyDecision

    @property
    def requires_approval(self) -> bool:
        return self.policy.requires_approval


class SafetyEngine:
    """One independent approval workflow with its own safety configuration."""

    def __init__(
        self,
        safety: SafetyConfig | None = None,
        *,
        extra_rule_sets: tuple[ToolRuleSet, ...] = (),
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Clock = utc_now,
    ) -> None:
        self.safety = safety or SafetyConfig()
        self.classifier = Classifier(BUILTIN_RULE_SETS, extra_rule_sets=extra_rule_sets)
        self._clock = clock
        self.workflow = WorkflowState(
            safety=self.safety,
            history_size=history_size,
            clock=clock,
            classifier=self.classifier,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SafetyEngine":
        settings = settings or load_settings()
        configure_logging(settings)
        safety = SafetyConfig()
        extra_rule_sets: tuple[ToolRuleSet, ...] = ()
        if settings.safety.path:
            engine_config = load_engine_config(settings.safety.path)
            safety = engine_config.safety
            extra_rule_sets = tuple(engine_config.rule_sets())
            logger.info(
                "Loaded safety file %s (mode=%s, %d extra rule set(s))",
                settings.safety.path,
                safety.mode.value,
                len(extra_rule_sets),
            )
        return cls(
            safety,
            extra_rule_sets=extra_rule_sets,
            history_size=settings.workflow.history_size,
        )

    def classify(self, command: str) -> ClassificationResult:
        return self.classifier.classify(command)

    def analyze(self, command: str) -> CommandAnalysis:
        return analyze(command, self.classifier)

    def submit(
        self,
        command: str,
        original_request: str,
        *,
        context: str | None = None,
        channel: str | None = None,
        requester_id: str | None = None,
        dry_run_output: str | None = None,
    ) -> Submission:
        """Create a plan, evaluate policy for it and register it with the workflow."""
        plan = create_plan(
            command,
            original_request,
            channel=channel,
            requester_id=requester_id,
            timeout_sec=self.safety.plan_timeout_sec,
            dry_run_output=dry_run_output,
            context=context,
            classifier=self.classifier,
            clock=self._clock,
        )
        policy = evaluate_policy(plan, self.safety, context)
        stored = self.workflow.insert(plan, policy)
        return Submission(plan=stored, policy=policy)

    def decide(self, decision: ApprovalDecision) -> Plan:
        return self.workflow.apply_decision(decision)

    def approve(self, plan_ref: str, approver: str, *, comment: str | None = None) -> Plan:
        return self._decide_by_ref(plan_ref, DecisionKind.APPROVE, approver, comment=comment)

    def reject(self, plan_ref: str, approver: str, *, comment: str | None = None) -> Plan:
        return self._decide_by_ref(plan_ref, DecisionKind.REJECT, approver, comment=comment)

    def modify(
        self,
        plan_ref: str,
        approver: str,
        modified_command: str,
        *,
        comment: str | None = None,
    ) -> Plan:
        return self._decide_by_ref(
            plan_ref,
            DecisionKind.MODIFY,
            approver,
            comment=comment,
            modified_command=modified_command,
        )

    def sweep_expired(self) -> list[str]:
        return self.workflow.sweep_expired()

    def mark_executed(self, plan_id: str, result: ExecutionResult | None = None) -> Plan:
        return self.workflow.mark_executed(plan_id, result)

    def format_plan(self, plan: Plan) -> str:
        return format_plan(plan)

    def _decide_by_ref(
        self,
        plan_ref: str,
        kind: DecisionKind,
        approver: str,
        *,
        comment: str | None = None,
        modified_command: str | None = None,
    ) -> Plan:
        plan = self.workflow.find_plan(plan_ref)
        decision = ApprovalDecision(
            plan_id=plan.id,
            decision=kind,
            approver=approver,
            comment=comment,
            timestamp=self._clock(),
            modified_command=modified_command,
        )
        return self.workflow.apply_decision(decision)
