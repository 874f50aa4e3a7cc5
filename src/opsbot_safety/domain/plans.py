"""Records produced by command analysis and consumed by the approval workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from opsbot_safety.domain.types import DecisionKind, ImpactLevel, OperationType, PlanStatus
from opsbot_safety.utils.time import utc_now


@dataclass(frozen=True)
class AffectedResource:
    type: str
    name: str
    namespace: str | None = None
    provider: str | None = None


@dataclass(frozen=True)
class ClassificationResult:
    operation: OperationType
    impact: ImpactLevel
    is_dangerous: bool
    matched_pattern: str | None = None


@dataclass(frozen=True)
class CommandAnalysis:
    operation: OperationType
    resources: tuple[AffectedResource, ...]
    estimated_impact: ImpactLevel
    warnings: tuple[str, ...] = ()
    dry_run_output: str | None = None
    is_dangerous: bool = False
    matched_pattern: str | None = None


@dataclass(frozen=True)
class Plan:
    """A proposed command with its analysis.

    Plans are immutable; the workflow replaces a stored plan with a copy
    carrying the new status (and, for ``modify`` decisions, the new command).
    """

    id: str
    command: str
    original_request: str
    analysis: CommandAnalysis
    created_at: datetime
    expires_at: datetime
    status: PlanStatus = PlanStatus.PENDING
    channel: str | None = None
    requester_id: str | None = None
    context: str | None = None

    def __post_init__(self) -> None:
        if self.expires_at <= self.created_at:
            raise ValueError("Plan expires_at must be later than created_at")

    @property
    def short_id(self) -> str:
        return self.id[:8]

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class ApprovalDecision:
    plan_id: str
    decision: DecisionKind
    approver: str
    approver_id: str | None = None
    comment: str | None = None
    timestamp: datetime = field(default_factory=utc_now)
    modified_command: str | None = None

    def __post_init__(self) -> None:
        if self.decision is DecisionKind.MODIFY and not self.modified_command:
            raise ValueError("A modify decision requires modified_command")


@dataclass(frozen=True)
class ExecutionResult:
    plan_id: str
    success: bool
    output: str | None = None
    error: str | None = None
    executed_at: datetime = field(default_factory=utc_now)
    duration_ms: int | None = None
