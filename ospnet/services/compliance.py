"""Splice loss validation, compliance scoring and batch statistics."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ospnet.models.network import SpliceStatus, SpliceType
from ospnet.services.errors import ValidationWarning


class LossStatus(enum.Enum):
    good = "good"
    acceptable = "acceptable"
    high = "high"
    failed = "failed"
    missing = "missing"


class ComplianceStatus(enum.Enum):
    passed = "pass"
    warn = "warn"
    fail = "fail"


@dataclass(frozen=True)
class LossThresholds:
    good: float
    acceptable: float
    max: float


SPLICE_LOSS_THRESHOLDS: dict[SpliceType, LossThresholds] = {
    SpliceType.fusion: LossThresholds(good=0.10, acceptable=0.15, max=0.30),
    SpliceType.mechanical: LossThresholds(good=0.20, acceptable=0.30, max=0.50),
}


@dataclass(frozen=True)
class LossCheck:
    status: LossStatus
    message: str


@dataclass
class ComplianceResult:
    status: ComplianceStatus
    warnings: list[ValidationWarning] = field(default_factory=list)
    loss_status: LossStatus | None = None

    @property
    def issues(self) -> list[str]:
        return [warning.detail for warning in self.warnings]


@dataclass
class SpliceStats:
    total: int = 0
    completed: int = 0
    pending: int = 0
    needs_review: int = 0
    failed: int = 0
    with_loss: int = 0
    avg_loss: float = 0.0
    max_loss: float = 0.0
    min_loss: float = 0.0
    pass_rate: float = 0.0


def _coerce(enum_cls: type[enum.Enum], value: Any):
    if isinstance(value, enum_cls) or value is None:
        return value
    # Accept "needs-review" style spellings from external callers
    return enum_cls(str(value).replace("-", "_"))


def validate_loss(loss_db: float | None, splice_type: SpliceType | str) -> LossCheck:
    if loss_db is None:
        return LossCheck(LossStatus.missing, "No loss measurement recorded")
    thresholds = SPLICE_LOSS_THRESHOLDS[_coerce(SpliceType, splice_type)]
    if loss_db <= thresholds.good:
        return LossCheck(LossStatus.good, f"Excellent ({loss_db:.2f} dB)")
    if loss_db <= thresholds.acceptable:
        return LossCheck(LossStatus.acceptable, f"Acceptable ({loss_db:.2f} dB)")
    if loss_db <= thresholds.max:
        return LossCheck(LossStatus.high, f"High but within tolerance ({loss_db:.2f} dB)")
    return LossCheck(LossStatus.failed, f"Exceeds maximum ({loss_db:.2f} dB > {thresholds.max} dB)")


def compliance_status(splice: Any) -> ComplianceResult:
    """Score one splice.

    ``splice`` is a ``Splice`` row or anything exposing ``loss_db``,
    ``splice_type``, ``otdr_trace_id``, ``technician_name`` and ``status``.
    Every triggered condition is reported, whatever the final status.
    """
    warnings: list[ValidationWarning] = []
    has_fail = False
    has_warn = False

    loss = validate_loss(splice.loss_db, splice.splice_type)
    if loss.status == LossStatus.failed:
        warnings.append(ValidationWarning("loss_exceeds_max", f"Loss exceeds maximum: {splice.loss_db:.2f} dB"))
        has_fail = True
    elif loss.status == LossStatus.high:
        warnings.append(ValidationWarning("loss_high", f"Loss is high: {splice.loss_db:.2f} dB"))
        has_warn = True
    elif loss.status == LossStatus.missing:
        warnings.append(ValidationWarning("loss_missing", "No loss measurement recorded"))
        has_warn = True

    if not splice.otdr_trace_id:
        warnings.append(ValidationWarning("otdr_missing", "No OTDR trace attached"))
        has_warn = True

    if not (splice.technician_name or "").strip():
        warnings.append(ValidationWarning("technician_missing", "No technician sign-off"))
        has_warn = True

    status = _coerce(SpliceStatus, splice.status)
    if status == SpliceStatus.needs_review:
        warnings.append(ValidationWarning("needs_review", "Marked for review"))
        has_warn = True
    elif status == SpliceStatus.failed:
        warnings.append(ValidationWarning("splice_failed", "Splice marked as failed"))
        has_fail = True

    if has_fail:
        result_status = ComplianceStatus.fail
    elif has_warn:
        result_status = ComplianceStatus.warn
    else:
        result_status = ComplianceStatus.passed
    return ComplianceResult(
        status=result_status,
        warnings=warnings,
        loss_status=None if loss.status == LossStatus.missing else loss.status,
    )


def batch_stats(splices: Iterable[Any]) -> SpliceStats:
    splices = list(splices)
    stats = SpliceStats(total=len(splices))
    losses: list[float] = []
    passed = 0
    for splice in splices:
        status = _coerce(SpliceStatus, splice.status)
        if status == SpliceStatus.completed:
            stats.completed += 1
        elif status == SpliceStatus.pending:
            stats.pending += 1
        elif status == SpliceStatus.needs_review:
            stats.needs_review += 1
        elif status == SpliceStatus.failed:
            stats.failed += 1
        if splice.loss_db is not None:
            losses.append(splice.loss_db)
        if compliance_status(splice).status == ComplianceStatus.passed:
            passed += 1

    if losses:
        stats.with_loss = len(losses)
        stats.avg_loss = sum(losses) / len(losses)
        stats.max_loss = max(losses)
        stats.min_loss = min(losses)
    if stats.total:
        stats.pass_rate = passed / stats.total * 100
    return stats
