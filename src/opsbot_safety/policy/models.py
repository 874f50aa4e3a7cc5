"""Safety configuration models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from opsbot_safety.classify.rules import ToolRuleSet
from opsbot_safety.domain.types import ImpactLevel, OperationType, SafetyMode

DEFAULT_ALWAYS_REQUIRE_APPROVAL = ["delete", "destroy", "terminate", "drop", "rm -rf"]


def _ensure_list(v: Any) -> list:
    """Convert None to empty list, pass through lists."""
    if v is None:
        return []
    return v


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApprovalForwarding(_CamelModel):
    enabled: bool = Field(default=False)
    channel: Literal["slack", "telegram", "teams"] | None = Field(default=None)
    target: str | None = Field(default=None, description='e.g. "#ops-approvals" or a chat id')
    mention_on_critical: list[str] = Field(default_factory=list)

    @field_validator("mention_on_critical", mode="before")
    @classmethod
    def _validate_mentions(cls, v: Any) -> list:
        return _ensure_list(v)


class ContextOverride(_CamelModel):
    require_approval: bool = Field(default=True)
    allowed_operations: list[OperationType] | None = Field(default=None)
    max_impact_level: ImpactLevel | None = Field(default=None)


class SafetyConfig(_CamelModel):
    mode: SafetyMode = Field(default=SafetyMode.PLAN_MODE)
    plan_timeout_sec: int = Field(default=300, ge=60, le=3600)
    always_require_approval: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALWAYS_REQUIRE_APPROVAL)
    )
    forward_approvals: ApprovalForwarding | None = Field(default=None)
    auto_approve_low_impact: bool = Field(default=False)
    context_overrides: dict[str, ContextOverride] = Field(default_factory=dict)

    @field_validator("always_require_approval", mode="before")
    @classmethod
    def _validate_always_require_approval(cls, v: Any) -> list:
        return _ensure_list(v)

    @field_validator("context_overrides", mode="before")
    @classmethod
    def _validate_context_overrides(cls, v: Any) -> dict:
        if v is None:
            return {}
        return v

    def override_for(self, context: str | None) -> ContextOverride | None:
        if context is None:
            return None
        return self.context_overrides.get(context)


class RuleSetConfig(BaseModel):
    read: list[str] = Field(default_factory=list)
    mutate: list[str] = Field(default_factory=list)
    dangerous: list[str] = Field(default_factory=list)

    @field_validator("read", "mutate", "dangerous", mode="before")
    @classmethod
    def _validate_lists(cls, v: Any) -> list:
        return _ensure_list(v)

    def to_rule_set(self, tool: str) -> ToolRuleSet:
        return ToolRuleSet(
            tool=tool,
            read=tuple(self.read),
            mutate=tuple(self.mutate),
            dangerous=tuple(self.dangerous),
        )


class EngineConfig(BaseModel):
    version: int = Field(default=1)
    safety: SafetyConfig = Field(default_factory=SafetyConfig)
    rules: dict[str, RuleSetConfig] = Field(default_factory=dict)

    @field_validator("safety", mode="before")
    @classmethod
    def _validate_safety(cls, v: Any) -> Any:
        if v is None:
            return {}
        return v

    @field_validator("rules", mode="before")
    @classmethod
    def _validate_rules(cls, v: Any) -> dict:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {tool: ({} if val is None else val) for tool, val in v.items()}
        return v

    def rule_sets(self) -> list[ToolRuleSet]:
        return [config.to_rule_set(tool) for tool, config in self.rules.items()]

    @classmethod
    def from_yaml(cls, data: dict[str, object]) -> "EngineConfig":
        return cls.model_validate(data)
