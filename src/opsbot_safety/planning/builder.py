"""Command analysis, plan creation and plan rendering."""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import replace
from datetime import timedelta

from opsbot_safety.classify.classifier import Classifier, default_classifier
from opsbot_safety.classify.resources import extract_resources
from opsbot_safety.domain.plans import CommandAnalysis, Plan
from opsbot_safety.utils.time import Clock, utc_now

logger = logging.getLogger(__name__)

DEFAULT_PLAN_TIMEOUT_SEC = 300

WARNING_DANGEROUS = "This command is classified as dangerous and always requires approval"
WARNING_MULTI_RESOURCE = "This command affects multiple resources"
WARNING_PRODUCTION = "This command appears to target production"
WARNING_NO_DRY_RUN = "Consider using --dry-run or plan first"

_MULTI_RESOURCE = re.compile(r"--all|prune", re.IGNORECASE)
_PRODUCTION = re.compile(r"prod|production", re.IGNORECASE)
_DRY_RUN = re.compile(r"--dry-run|plan\b", re.IGNORECASE)
_NEEDS_DRY_RUN = re.compile(r"apply|delete|destroy", re.IGNORECASE)

_SEPARATOR = "─" * 40


def analyze(command: str, classifier: Classifier | None = None) -> CommandAnalysis:
    """Classify ``command``, extract its resources and collect warnings."""
    classification = (classifier or default_classifier()).classify(command)
    resources = tuple(extract_resources(command))

    warnings: list[str] = []
    if classification.is_dangerous:
        warnings.append(WARNING_DANGEROUS)
    if _MULTI_RESOURCE.search(command):
        warnings.append(WARNING_MULTI_RESOURCE)
    if _PRODUCTION.search(command):
        warnings.append(WARNING_PRODUCTION)
    if not _DRY_RUN.search(command) and _NEEDS_DRY_RUN.search(command):
        warnings.append(WARNING_NO_DRY_RUN)

    return CommandAnalysis(
        operation=classification.operation,
        resources=resources,
        estimated_impact=classification.impact,
        warnings=tuple(warnings),
        is_dangerous=classification.is_dangerous,
        matched_pattern=classification.matched_pattern,
    )


def create_plan(
    command: str,
    original_request: str,
    *,
    channel: str | None = None,
    requester_id: str | None = None,
    timeout_sec: int = DEFAULT_PLAN_TIMEOUT_SEC,
    dry_run_output: str | None = None,
    context: str | None = None,
    classifier: Classifier | None = None,
    clock: Clock = utc_now,
) -> Plan:
    """Build a pending plan for ``command``.

    The plan is not registered anywhere; inserting it into a workflow is the
    caller's step.
    """
    if timeout_sec <= 0:
        raise ValueError("timeout_sec must be positive")

    analysis = analyze(command, classifier)
    if dry_run_output:
        analysis = replace(analysis, dry_run_output=dry_run_output)

    now = clock()
    plan = Plan(
        id=str(uuid.uuid4()),
        command=command,
        original_request=original_request,
        analysis=analysis,
        created_at=now,
        expires_at=now + timedelta(seconds=timeout_sec),
        channel=channel,
        requester_id=requester_id,
        context=context,
    )
    logger.debug(
        "Created plan %s (%s, impact=%s)",
        plan.short_id,
        analysis.operation.value,
        analysis.estimated_impact.value,
    )
    return plan


def format_plan(plan: Plan) -> str:
    """Render ``plan`` as the plain-text summary shown to approvers."""
    analysis = plan.analysis
    short_id = plan.short_id
    lines = [
        f"Plan #{short_id}",
        _SEPARATOR,
        f"Request: {plan.original_request}",
        f"Command: {plan.command}",
        f"Impact: {analysis.estimated_impact.value.upper()}",
        f"Operation: {analysis.operation.value}",
    ]

    if analysis.resources:
        lines.append("Resources:")
        for resource in analysis.resources:
            namespace = f" (ns: {resource.namespace})" if resource.namespace else ""
            lines.append(f"  - {resource.type}/{resource.name}{namespace}")

    if analysis.warnings:
        lines.append("Warnings:")
        for warning in analysis.warnings:
            lines.append(f"  ⚠ {warning}")

    if analysis.dry_run_output:
        lines.append("Dry-run output:")
        lines.append(analysis.dry_run_output)

    lines.append("")
    lines.append(f"Reply: /approve {short_id} or /reject {short_id} [reason]")
    lines.append(f"Expires: {plan.expires_at.strftime('%H:%M:%S %Z').strip()}")

    return "\n".join(lines)
