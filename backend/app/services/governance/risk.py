"""
Risk assessment for AI generation requests.

Pre-execution rules, evaluated in this order (all rules fire, no short-circuit):
  1. question_count > HIGH_RISK_QUESTION_COUNT
  2. enable_critic_pass is True
  3. context_trim_percent > HIGH_RISK_TRIM_PERCENT

The post-execution rule flags a batch quality decision of "regen_full".
Reason strings are category labels and are safe to log and display.
"""
import math
from typing import Any, Optional

from app.services.governance.errors import RiskValidationError
from app.services.governance.schema import HighRiskCheck

HIGH_RISK_QUESTION_COUNT = 25
HIGH_RISK_TRIM_PERCENT = 0.25

REGEN_FULL_DECISION = "regen_full"

ADMIN_ROLES = frozenset({"tenant_admin", "super_admin"})


def _validate_inputs(
    question_count: Any,
    enable_critic_pass: Any,
    context_trim_percent: Any,
) -> None:
    if isinstance(question_count, bool) or not isinstance(question_count, int):
        raise RiskValidationError("question_count", "must be an integer")
    if not isinstance(enable_critic_pass, bool):
        raise RiskValidationError("enable_critic_pass", "must be a boolean")
    if context_trim_percent is not None and (
        isinstance(context_trim_percent, bool)
        or not isinstance(context_trim_percent, (int, float))
    ):
        raise RiskValidationError("context_trim_percent", "must be a number")
    if context_trim_percent is not None and not math.isfinite(context_trim_percent):
        raise RiskValidationError("context_trim_percent", "must be a finite number")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def detect_high_risk(
    question_count: int,
    enable_critic_pass: bool,
    context_trim_percent: Optional[float] = None,
) -> HighRiskCheck:
    """
    Classify a request before execution.

    Raises:
        RiskValidationError if any input has the wrong type.
    """
    _validate_inputs(question_count, enable_critic_pass, context_trim_percent)

    reasons = []

    if question_count > HIGH_RISK_QUESTION_COUNT:
        reasons.append(f"question_count_{question_count}")

    if enable_critic_pass:
        reasons.append("critic_pass_enabled")

    if context_trim_percent is not None and context_trim_percent > HIGH_RISK_TRIM_PERCENT:
        reasons.append(f"context_trimmed_{_round_half_up(context_trim_percent * 100)}pct")

    return HighRiskCheck(is_high_risk=len(reasons) > 0, reasons=reasons)


def detect_post_execution_high_risk(batch_decision: str) -> HighRiskCheck:
    """Classify the outcome of the batch quality pass. Only "regen_full" is high-risk."""
    if batch_decision == REGEN_FULL_DECISION:
        return HighRiskCheck(is_high_risk=True, reasons=["batch_quality_regen_full"])
    return HighRiskCheck(is_high_risk=False, reasons=[])


def is_admin_role(role: str) -> bool:
    return role in ADMIN_ROLES
