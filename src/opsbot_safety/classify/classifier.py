"""Command classification by operation type and impact.

Rule sets are consulted in a fixed precedence: dangerous, then mutate, then
read. The first hit wins. Anything no rule recognises is reported as an
``exec`` of ``medium`` impact so that unknown commands are never trusted as
read-only.

Operation type and impact for dangerous and mutating commands come from
keyword heuristics. They are best-effort estimates, not guarantees.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from opsbot_safety.classify.rules import (
    BUILTIN_RULE_SETS,
    PatternRule,
    RuleCategory,
    ToolRuleSet,
)
from opsbot_safety.domain.plans import ClassificationResult
from opsbot_safety.domain.types import ImpactLevel, OperationType

_WORD_PATTERN = re.compile(r"[\w-]+")

# Checked in order; the first keyword group present decides the operation.
_OPERATION_KEYWORDS: tuple[tuple[OperationType, frozenset[str]], ...] = (
    (
        OperationType.DELETE,
        frozenset({"delete", "remove", "rm", "rmi", "destroy", "drop", "prune", "terminate"}),
    ),
    (
        OperationType.CREATE,
        frozenset({"create", "new", "init", "run", "launch", "start"}),
    ),
    (
        OperationType.UPDATE,
        frozenset({"update", "edit", "patch", "scale", "modify", "apply", "restart"}),
    ),
    (OperationType.EXEC, frozenset({"exec", "shell", "sh", "bash"})),
)

_HIGH_IMPACT = re.compile(r"prod|production|--all|--force|(?:^|\s)-f(?:\s|$)")
_MEDIUM_IMPACT = re.compile(r"staging|delete|rm|stop|restart")
_LOW_IMPACT = re.compile(r"dev|local|test|--dry-run")

_CATEGORY_ORDER = (RuleCategory.DANGEROUS, RuleCategory.MUTATE, RuleCategory.READ)


def normalize_command(command: str) -> str:
    return command.strip().lower()


def _command_words(command: str) -> set[str]:
    """Non-flag words of a command, hyphenated words split into parts."""
    words: set[str] = set()
    for token in _WORD_PATTERN.findall(command):
        if token.startswith("-"):
            continue
        words.update(part for part in token.split("-") if part)
    return words


def infer_operation_type(command: str) -> OperationType:
    words = _command_words(command)
    for operation, keywords in _OPERATION_KEYWORDS:
        if words & keywords:
            return operation
    return OperationType.READ


def infer_impact(command: str) -> ImpactLevel:
    if _HIGH_IMPACT.search(command):
        return ImpactLevel.HIGH
    if _MEDIUM_IMPACT.search(command):
        return ImpactLevel.MEDIUM
    if _LOW_IMPACT.search(command):
        return ImpactLevel.LOW
    return ImpactLevel.MEDIUM


class Classifier:
    """Applies ordered tool rule sets to raw command strings.

    Instances hold only compiled, immutable rule lists and are safe to share
    between threads.
    """

    def __init__(
        self,
        rule_sets: Iterable[ToolRuleSet] = BUILTIN_RULE_SETS,
        *,
        extra_rule_sets: Iterable[ToolRuleSet] = (),
    ) -> None:
        self._rules: dict[RuleCategory, list[PatternRule]] = {
            category: [] for category in RuleCategory
        }
        for rule_set in rule_sets:
            self._extend(rule_set.compile(trusted=True))
        for rule_set in extra_rule_sets:
            self._extend(rule_set.compile(trusted=False))

    def _extend(self, compiled: dict[RuleCategory, list[PatternRule]]) -> None:
        for category, rules in compiled.items():
            self._rules[category].extend(rules)

    def match(self, command: str, category: RuleCategory) -> PatternRule | None:
        normalized = normalize_command(command)
        for rule in self._rules[category]:
            if rule.regex.search(normalized):
                return rule
        return None

    def classify(self, command: str) -> ClassificationResult:
        normalized = normalize_command(command)
        for category in _CATEGORY_ORDER:
            rule = self.match(normalized, category)
            if rule is None:
                continue
            if category is RuleCategory.DANGEROUS:
                return ClassificationResult(
                    operation=infer_operation_type(normalized),
                    impact=ImpactLevel.CRITICAL,
                    is_dangerous=True,
                    matched_pattern=rule.source,
                )
            if category is RuleCategory.MUTATE:
                return ClassificationResult(
                    operation=infer_operation_type(normalized),
                    impact=infer_impact(normalized),
                    is_dangerous=False,
                    matched_pattern=rule.source,
                )
            return ClassificationResult(
                operation=OperationType.READ,
                impact=ImpactLevel.NONE,
                is_dangerous=False,
                matched_pattern=rule.source,
            )

        return ClassificationResult(
            operation=OperationType.EXEC,
            impact=ImpactLevel.MEDIUM,
            is_dangerous=False,
        )


_default_classifier = Classifier()


def default_classifier() -> Classifier:
    return _default_classifier


def classify(command: str) -> ClassificationResult:
    """Classify ``command`` with the built-in rule sets."""
    return _default_classifier.classify(command)


def requires_approval(command: str, always_require_approval: Iterable[str]) -> bool:
    """True when any trigger is a case-insensitive substring of ``command``."""
    normalized = normalize_command(command)
    return any(trigger.lower() in normalized for trigger in always_require_approval if trigger)
