"""Errors raised by the approval workflow."""

from __future__ import annotations

from opsbot_safety.domain.types import OperationType, PlanStatus


class WorkflowError(Exception):
    """Base class for workflow failures reported to the caller."""


class InvalidTransition(WorkflowError):
    """Raised when a plan is not in the status a transition requires."""

    def __init__(self, plan_id: str, current: PlanStatus, target: PlanStatus) -> None:
        self.plan_id = plan_id
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid transition for plan {plan_id}: {current.value} -> {target.value}"
        )


class UnknownPlan(WorkflowError):
    """Raised when a plan identifier (or prefix) does not resolve to a known plan."""

    def __init__(self, plan_id: str, detail: str = "not found") -> None:
        self.plan_id = plan_id
        super().__init__(f"Unknown plan {plan_id}: {detail}")


class PolicyViolation(WorkflowError):
    """Raised when a decision would approve an operation its context does not allow."""

    def __init__(self, plan_id: str, operation: OperationType, context: str | None) -> None:
        self.plan_id = plan_id
        self.operation = operation
        self.context = context
        super().__init__(
            f"Operation '{operation.value}' is not allowed in context '{context}' "
            f"(plan {plan_id})"
        )
