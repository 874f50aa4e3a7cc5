"""Enumerations shared by the classifier, policy and workflow."""

from __future__ import annotations

from enum import Enum
from functools import total_ordering


class OperationType(Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXEC = "exec"


@total_ordering
class ImpactLevel(Enum):
    """Blast-radius estimate, totally ordered from NONE to CRITICAL."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _IMPACT_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ImpactLevel):
            return NotImplemented
        return self.rank < other.rank


_IMPACT_ORDER = tuple(ImpactLevel)


class SafetyMode(Enum):
    READ_ONLY = "read-only"
    PLAN_MODE = "plan-mode"
    FULL_ACCESS = "full-access"


class PlanStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    EXECUTED = "executed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({PlanStatus.REJECTED, PlanStatus.EXPIRED, PlanStatus.EXECUTED})


class DecisionKind(Enum):
    APPROVE = "approve"
    REJECT = "reject"
    MODIFY = "modify"
