"""Plan lifecycle state machine.

States:
PENDING -> APPROVED | REJECTED | EXPIRED
APPROVED -> EXECUTED
REJECTED, EXPIRED, EXECUTED are terminal.

Every transition runs under one re-entrant lock per ``WorkflowState``, so
two decisions racing on the same plan resolve to a single winner and
counters move together with the status they account for.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass, replace

from opsbot_safety.classify.classifier import Classifier
from opsbot_safety.domain.plans import ApprovalDecision, ExecutionResult, Plan
from opsbot_safety.domain.types import DecisionKind, PlanStatus
from opsbot_safety.policy.engine import PolicyDecision, ensure_decision_allowed
from opsbot_safety.policy.models import SafetyConfig
from opsbot_safety.utils.time import Clock, utc_now
from opsbot_safety.workflow.errors import InvalidTransition, UnknownPlan

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 100

# Valid state transitions
TRANSITIONS: dict[PlanStatus, frozenset[PlanStatus]] = {
    PlanStatus.PENDING: frozenset(
        {PlanStatus.APPROVED, PlanStatus.REJECTED, PlanStatus.EXPIRED}
    ),
    PlanStatus.APPROVED: frozenset({PlanStatus.EXECUTED}),
    PlanStatus.REJECTED: frozenset(),  # Terminal
    PlanStatus.EXPIRED: frozenset(),  # Terminal
    PlanStatus.EXECUTED: frozenset(),  # Terminal
}

_DECISION_TARGETS = {
    DecisionKind.APPROVE: PlanStatus.APPROVED,
    DecisionKind.MODIFY: PlanStatus.APPROVED,
    DecisionKind.REJECT: PlanStatus.REJECTED,
}


def get_valid_transitions(current: PlanStatus) -> frozenset[PlanStatus]:
    return TRANSITIONS.get(current, frozenset())


def transition(plan: Plan, target: PlanStatus, *, command: str | None = None) -> Plan:
    """Return a copy of ``plan`` moved to ``target``, or raise ``InvalidTransition``."""
    if target not in get_valid_transitions(plan.status):
        raise InvalidTransition(plan.id, plan.status, target)
    if command is not None:
        return replace(plan, status=target, command=command)
    return replace(plan, status=target)


def decide(plan: Plan, decision: ApprovalDecision) -> Plan:
    """Apply ``decision`` to ``plan`` without touching any workflow state.

    ``modify`` approves the plan with its command replaced; the analysis is
    kept as it was and re-analysing the new command is up to the caller.
    """
    if decision.plan_id != plan.id:
        raise UnknownPlan(decision.plan_id, f"decision does not belong to plan {plan.id}")
    target = _DECISION_TARGETS[decision.decision]
    if decision.decision is DecisionKind.MODIFY:
        return transition(plan, target, command=decision.modified_command)
    return transition(plan, target)


@dataclass
class WorkflowStats:
    total_plans_created: int = 0
    total_approved: int = 0
    total_rejected: int = 0
    total_expired: int = 0
    total_executed: int = 0


_STAT_FIELDS = {
    PlanStatus.APPROVED: "total_approved",
    PlanStatus.REJECTED: "total_rejected",
    PlanStatus.EXPIRED: "total_expired",
    PlanStatus.EXECUTED: "total_executed",
}


class WorkflowState:
    """Owns every plan of one workflow instance and its aggregate counters.

    Non-terminal plans (pending, approved) live in the active map; terminal
    plans move to a bounded recent-history buffer.
    """

    def __init__(
        self,
        *,
        safety: SafetyConfig | None = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Clock = utc_now,
        classifier: Classifier | None = None,
    ) -> None:
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        self._safety = safety
        self._history_size = history_size
        self._clock = clock
        self._classifier = classifier
        self._lock = threading.RLock()
        self._active: dict[str, Plan] = {}
        self._history: OrderedDict[str, Plan] = OrderedDict()
        self._results: dict[str, ExecutionResult] = {}
        self._recent_decisions: deque[ApprovalDecision] = deque(maxlen=history_size)
        self._stats = WorkflowStats()

    @property
    def stats(self) -> WorkflowStats:
        with self._lock:
            return replace(self._stats)

    @property
    def recent_decisions(self) -> list[ApprovalDecision]:
        with self._lock:
            return list(self._recent_decisions)

    @property
    def history(self) -> list[Plan]:
        with self._lock:
            return list(self._history.values())

    def insert(self, plan: Plan, policy: PolicyDecision | None = None) -> Plan:
        """Register a freshly created plan, applying the policy's auto-decision."""
        with self._lock:
            if plan.id in self._active or plan.id in self._history:
                raise ValueError(f"Plan {plan.id} is already registered")
            if plan.status is not PlanStatus.PENDING:
                raise InvalidTransition(plan.id, plan.status, PlanStatus.PENDING)

            self._stats.total_plans_created += 1
            self._active[plan.id] = plan
            logger.info("Plan %s created: %s", plan.short_id, plan.command)

            if policy is not None and policy.auto_approved:
                return self._apply(plan, PlanStatus.APPROVED)
            if policy is not None and policy.auto_rejected:
                return self._apply(plan, PlanStatus.REJECTED)
            return plan

    def get_plan(self, plan_id: str) -> Plan:
        with self._lock:
            return self._expire_if_due(self._lookup(plan_id))

    def find_plan(self, prefix: str) -> Plan:
        """Resolve a full id or an id prefix (as shown by ``format_plan``)."""
        if not prefix:
            raise UnknownPlan(prefix, "empty identifier")
        with self._lock:
            if prefix in self._active or prefix in self._history:
                return self.get_plan(prefix)
            for pool in (self._active, self._history):
                matches = [plan_id for plan_id in pool if plan_id.startswith(prefix)]
                if len(matches) > 1:
                    raise UnknownPlan(prefix, "prefix is ambiguous")
                if matches:
                    return self.get_plan(matches[0])
            raise UnknownPlan(prefix)

    def pending_plans(self) -> list[Plan]:
        with self._lock:
            self.sweep_expired()
            return [plan for plan in self._active.values() if plan.status is PlanStatus.PENDING]

    def apply_decision(self, decision: ApprovalDecision) -> Plan:
        with self._lock:
            plan = self._expire_if_due(self._lookup(decision.plan_id))
            target = _DECISION_TARGETS[decision.decision]
            if target not in get_valid_transitions(plan.status):
                logger.warning(
                    "Rejected %s decision on plan %s in status %s",
                    decision.decision.value,
                    plan.short_id,
                    plan.status.value,
                )
                raise InvalidTransition(plan.id, plan.status, target)
            if self._safety is not None:
                ensure_decision_allowed(plan, decision, self._safety, self._classifier)

            updated = self._store(decide(plan, decision))
            self._recent_decisions.append(decision)
            logger.info(
                "Plan %s %s by %s", plan.short_id, updated.status.value, decision.approver
            )
            return updated

    def sweep_expired(self) -> list[str]:
        """Expire every pending plan past its deadline; return the newly expired ids."""
        with self._lock:
            now = self._clock()
            due = [
                plan
                for plan in self._active.values()
                if plan.status is PlanStatus.PENDING and plan.is_expired(now)
            ]
            expired = [self._apply(plan, PlanStatus.EXPIRED).id for plan in due]
            if expired:
                logger.info("Expired %d plan(s)", len(expired))
            return expired

    def mark_executed(self, plan_id: str, result: ExecutionResult | None = None) -> Plan:
        if result is not None and result.plan_id != plan_id:
            raise ValueError("Execution result does not belong to this plan")
        with self._lock:
            plan = self._expire_if_due(self._lookup(plan_id))
            updated = self._apply(plan, PlanStatus.EXECUTED)
            if result is not None:
                self._results[plan.id] = result
            return updated

    def execution_result(self, plan_id: str) -> ExecutionResult | None:
        with self._lock:
            return self._results.get(plan_id)

    def _lookup(self, plan_id: str) -> Plan:
        plan = self._active.get(plan_id) or self._history.get(plan_id)
        if plan is None:
            raise UnknownPlan(plan_id)
        return plan

    def _expire_if_due(self, plan: Plan) -> Plan:
        if plan.status is PlanStatus.PENDING and plan.is_expired(self._clock()):
            return self._apply(plan, PlanStatus.EXPIRED)
        return plan

    def _apply(self, plan: Plan, target: PlanStatus) -> Plan:
        updated = self._store(transition(plan, target))
        logger.info("Plan %s %s -> %s", plan.short_id, plan.status.value, target.value)
        return updated

    def _store(self, plan: Plan) -> Plan:
        counter = _STAT_FIELDS[plan.status]
        setattr(self._stats, counter, getattr(self._stats, counter) + 1)

        if plan.status.is_terminal:
            self._active.pop(plan.id, None)
            self._history[plan.id] = plan
            self._history.move_to_end(plan.id)
            while len(self._history) > self._history_size:
                pruned_id, _ = self._history.popitem(last=False)
                self._results.pop(pruned_id, None)
        else:
            self._active[plan.id] = plan
        return plan
