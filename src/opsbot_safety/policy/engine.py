"""Approval policy evaluation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from opsbot_safety.classify.classifier import Classifier, default_classifier, requires_approval
from opsbot_safety.domain.plans import ApprovalDecision, Plan
from opsbot_safety.domain.types import DecisionKind, ImpactLevel, OperationType, SafetyMode
from opsbot_safety.policy.models import SafetyConfig
from opsbot_safety.workflow.errors import PolicyViolation

logger = logging.getLogger(__name__)


@dataclass
class PolicyDecision:
    requires_approval: bool
    auto_decision: DecisionKind | None = None
    reasons: list[str] = field(default_factory=list)

    @property
    def auto_approved(self) -> bool:
        return self.auto_decision is DecisionKind.APPROVE

    @property
    def auto_rejected(self) -> bool:
        return self.auto_decision is DecisionKind.REJECT


def _approve(reasons: list[str], reason: str) -> PolicyDecision:
    return PolicyDecision(False, DecisionKind.APPROVE, [*reasons, reason])


def _reject(reasons: list[str], reason: str) -> PolicyDecision:
    return PolicyDecision(False, DecisionKind.REJECT, [*reasons, reason])


def _pending(reasons: list[str]) -> PolicyDecision:
    return PolicyDecision(True, None, reasons)


def evaluate_policy(
    plan: Plan,
    safety: SafetyConfig,
    context: str | None = None,
) -> PolicyDecision:
    """Decide whether ``plan`` is auto-approved, auto-rejected or needs a human.

    ``context`` defaults to the context the plan was submitted with. Dangerous
    plans are never auto-approved by any branch.
    """
    decision = _evaluate(plan, safety, context if context is not None else plan.context)
    if decision.auto_decision is not None:
        logger.info(
            "Plan %s auto-%s: %s",
            plan.short_id,
            "approved" if decision.auto_approved else "rejected",
            "; ".join(decision.reasons),
        )
    return decision


def _evaluate(plan: Plan, safety: SafetyConfig, context: str | None) -> PolicyDecision:
    analysis = plan.analysis
    impact = analysis.estimated_impact
    dangerous = analysis.is_dangerous or impact is ImpactLevel.CRITICAL
    always_required = requires_approval(plan.command, safety.always_require_approval)

    if safety.mode is SafetyMode.READ_ONLY and analysis.operation is not OperationType.READ:
        return _reject([], "Read-only mode denies non-read operations")

    reasons: list[str] = []
    if dangerous:
        reasons.append("Command is classified as dangerous")
    if always_required:
        reasons.append("Command matches an always-require-approval trigger")

    if safety.mode is SafetyMode.FULL_ACCESS and not always_required and not dangerous:
        return _approve(reasons, "Full-access mode")

    override = safety.override_for(context)
    if override is not None:
        allowed = override.allowed_operations
        if allowed is not None and analysis.operation not in allowed:
            return _reject(
                reasons,
                f"Operation '{analysis.operation.value}' is not allowed in context '{context}'",
            )
        require = override.require_approval
        if override.max_impact_level is not None and impact > override.max_impact_level:
            require = True
            reasons.append(
                f"Impact {impact.value} exceeds {override.max_impact_level.value} "
                f"allowed in context '{context}'"
            )
        if require or dangerous or always_required:
            return _pending(reasons)
        return _approve(reasons, f"Context '{context}' does not require approval")

    if (
        safety.auto_approve_low_impact
        and impact <= ImpactLevel.LOW
        and not dangerous
        and not always_required
    ):
        return _approve(reasons, f"Low-impact ({impact.value}) operation")

    return _pending(reasons)


def ensure_decision_allowed(
    plan: Plan,
    decision: ApprovalDecision,
    safety: SafetyConfig,
    classifier: Classifier | None = None,
) -> None:
    """Raise ``PolicyViolation`` if approving would run a disallowed operation.

    For ``modify`` decisions the replacement command is classified for this
    check only; the plan analysis is not recomputed.
    """
    if decision.decision is DecisionKind.REJECT:
        return
    override = safety.override_for(plan.context)
    if override is None or override.allowed_operations is None:
        return

    operation = plan.analysis.operation
    if decision.decision is DecisionKind.MODIFY and decision.modified_command:
        operation = (classifier or default_classifier()).classify(
            decision.modified_command
        ).operation
    if operation not in override.allowed_operations:
        raise PolicyViolation(plan.id, operation, plan.context)
