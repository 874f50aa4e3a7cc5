"""Pattern rule tables for infrastructure tool commands.

Every tool family contributes an ordered list of read, mutate and dangerous
patterns. Patterns are matched with ``re.search`` against the trimmed,
lower-cased command, so they are written in lower case and anchored with
``^`` where they must start the command.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

_MAX_RULE_REGEX_LENGTH = 256
_BACKREFERENCE_PATTERN = re.compile(r"\\[1-9]")
_NESTED_QUANTIFIER_PATTERN = re.compile(
    r"\((?:[^()\\]|\\.)*[+*](?:[^()\\]|\\.)*\)\s*(?:[+*]|\{\d+(?:,\d*)?\})"
)
_LOOKBEHIND_TOKENS = ("(?<=", "(?<!")


class RuleCategory(Enum):
    READ = "read"
    MUTATE = "mutate"
    DANGEROUS = "dangerous"


@dataclass(frozen=True)
class PatternRule:
    tool: str
    category: RuleCategory
    regex: re.Pattern[str]

    @property
    def source(self) -> str:
        return self.regex.pattern


@dataclass(frozen=True)
class ToolRuleSet:
    tool: str
    read: tuple[str, ...] = ()
    mutate: tuple[str, ...] = ()
    dangerous: tuple[str, ...] = ()

    def patterns(self, category: RuleCategory) -> tuple[str, ...]:
        return getattr(self, category.value)

    def compile(self, *, trusted: bool = True) -> dict[RuleCategory, list[PatternRule]]:
        compiled: dict[RuleCategory, list[PatternRule]] = {}
        for category in RuleCategory:
            label = f"{self.tool}:{category.value}"
            compiled[category] = [
                PatternRule(
                    self.tool,
                    category,
                    compile_rule_pattern(pattern, label, trusted=trusted),
                )
                for pattern in self.patterns(category)
            ]
        return compiled


def compile_rule_pattern(pattern: str, label: str, *, trusted: bool = False) -> re.Pattern[str]:
    if not trusted:
        validate_pattern_safety(pattern, label)
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"Invalid regex in {label} rule pattern '{pattern}': {exc}") from exc


def validate_pattern_safety(pattern: str, label: str) -> None:
    if len(pattern) > _MAX_RULE_REGEX_LENGTH:
        raise ValueError(
            f"Unsafe regex in {label} rule pattern '{pattern}': exceeds "
            f"{_MAX_RULE_REGEX_LENGTH} characters"
        )
    if any(token in pattern for token in _LOOKBEHIND_TOKENS):
        raise ValueError(
            f"Unsafe regex in {label} rule pattern '{pattern}': look-behind is not allowed"
        )
    if _BACKREFERENCE_PATTERN.search(pattern):
        raise ValueError(
            f"Unsafe regex in {label} rule pattern '{pattern}': backreferences are not allowed"
        )
    if _NESTED_QUANTIFIER_PATTERN.search(pattern):
        raise ValueError(
            f"Unsafe regex in {label} rule pattern '{pattern}': nested quantifiers are not allowed"
        )


DOCKER_RULES = ToolRuleSet(
    tool="docker",
    read=(r"^docker\s+(ps|images|logs|inspect|stats|top|volume\s+ls|network\s+ls)",),
    mutate=(r"^docker\s+(run|start|stop|restart|kill|rm|rmi|build|push|pull|exec|cp)",),
    dangerous=(
        r"^docker\s+(system\s+prune|container\s+prune|image\s+prune|volume\s+prune)",
        r"^docker\s+rm\s+-f",
    ),
)

KUBERNETES_RULES = ToolRuleSet(
    tool="kubectl",
    read=(
        r"^kubectl\s+(get|describe|logs|top|cluster-info"
        r"|config\s+(current-context|get-contexts)|api-resources)",
    ),
    mutate=(
        r"^kubectl\s+(apply|create|delete|edit|patch|scale|rollout|exec|cp|port-forward"
        r"|drain|cordon|uncordon)",
    ),
    dangerous=(
        r"^kubectl\s+delete\s+.*--all",
        r"^kubectl\s+delete\s+namespace",
        r"^kubectl\s+drain",
    ),
)

TERRAFORM_RULES = ToolRuleSet(
    tool="terraform",
    read=(
        r"^terraform\s+(plan|show|state\s+(list|show)|output|validate|version|providers"
        r"|workspace\s+(list|show)|graph)",
    ),
    mutate=(
        r"^terraform\s+(apply|destroy|import|state\s+(mv|rm|push)|taint|untaint|refresh)",
    ),
    dangerous=(
        r"^terraform\s+destroy",
        r"^terraform\s+force-unlock",
        r"^terraform\s+state\s+push",
    ),
)

GITHUB_RULES = ToolRuleSet(
    tool="gh",
    read=(
        r"^gh\s+(pr\s+(list|view|diff|checks)|issue\s+(list|view)|release\s+(list|view)"
        r"|run\s+(list|view)|repo\s+(view|list)|search|api\s+)",
    ),
    mutate=(
        r"^gh\s+(pr\s+(create|merge|close|reopen|review|edit|ready)"
        r"|issue\s+(create|close|reopen|edit)|release\s+(create|delete|upload)"
        r"|run\s+(rerun|cancel)|workflow\s+run)",
    ),
    dangerous=(
        r"^gh\s+repo\s+delete",
        r"^gh\s+release\s+delete",
    ),
)

AWS_RULES = ToolRuleSet(
    tool="aws",
    read=(r"^aws\s+\S+\s+(describe|list|get)",),
    mutate=(r"^aws\s+\S+\s+(create|delete|update|terminate|start|stop|reboot|modify)",),
    dangerous=(
        r"^aws\s+\S+\s+terminate",
        r"^aws\s+ec2\s+delete",
        r"^aws\s+s3\s+rm.*--recursive",
    ),
)

GCLOUD_RULES = ToolRuleSet(
    tool="gcloud",
    read=(r"^gcloud\s+\S+\s+(describe|list|get)",),
    mutate=(r"^gcloud\s+\S+\s+(create|delete|update|start|stop|reset)",),
)

SHELL_RULES = ToolRuleSet(
    tool="shell",
    read=(
        r"^(cat|head|tail|grep|awk|sed|jq|yq|curl\s+-s|curl\s+--silent|less|more|wc|sort|uniq)\s",
    ),
    dangerous=(
        r"rm\s+-rf",
        r"rm\s+-fr",
        r"rmdir",
        r"drop\s+database",
        r"drop\s+table",
        r"truncate",
    ),
)

BUILTIN_RULE_SETS: tuple[ToolRuleSet, ...] = (
    DOCKER_RULES,
    KUBERNETES_RULES,
    TERRAFORM_RULES,
    GITHUB_RULES,
    AWS_RULES,
    GCLOUD_RULES,
    SHELL_RULES,
)
