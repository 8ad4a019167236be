"""Tests for splice loss validation and compliance scoring."""

from types import SimpleNamespace

import pytest

from ospnet.models.network import SpliceStatus, SpliceType
from ospnet.services.compliance import (
    ComplianceStatus,
    LossStatus,
    batch_stats,
    compliance_status,
    validate_loss,
)


def _splice(**overrides):
    values = {
        "loss_db": 0.05,
        "splice_type": SpliceType.fusion,
        "otdr_trace_id": 7,
        "technician_name": "A. Mensah",
        "status": SpliceStatus.completed,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.mark.parametrize(
    ("loss_db", "splice_type", "expected"),
    [
        (0.05, SpliceType.fusion, LossStatus.good),
        (0.12, SpliceType.fusion, LossStatus.acceptable),
        (0.25, SpliceType.fusion, LossStatus.high),
        (0.40, SpliceType.fusion, LossStatus.failed),
        (0.40, SpliceType.mechanical, LossStatus.high),
        (None, SpliceType.mechanical, LossStatus.missing),
    ],
)
def test_validate_loss_thresholds(loss_db, splice_type, expected):
    assert validate_loss(loss_db, splice_type).status == expected


def test_validate_loss_accepts_string_type():
    check = validate_loss(0.6, "mechanical")
    assert check.status == LossStatus.failed
    assert check.message == "Exceeds maximum (0.60 dB > 0.5 dB)"


def test_clean_splice_passes():
    result = compliance_status(_splice())
    assert result.status == ComplianceStatus.passed
    assert result.warnings == []
    assert result.loss_status == LossStatus.good


def test_excess_loss_fails_and_reports_everything():
    result = compliance_status(_splice(loss_db=0.4, otdr_trace_id=None, technician_name=None))
    assert result.status == ComplianceStatus.fail
    codes = [warning.code for warning in result.warnings]
    assert codes == ["loss_exceeds_max", "otdr_missing", "technician_missing"]
    assert result.issues[0] == "Loss exceeds maximum: 0.40 dB"


def test_missing_loss_warns():
    result = compliance_status(_splice(loss_db=None))
    assert result.status == ComplianceStatus.warn
    assert result.loss_status is None
    assert [warning.code for warning in result.warnings] == ["loss_missing"]


def test_needs_review_status_warns():
    result = compliance_status(_splice(status="needs-review"))
    assert result.status == ComplianceStatus.warn
    assert "needs_review" in [warning.code for warning in result.warnings]


def test_failed_status_fails_despite_good_loss():
    result = compliance_status(_splice(status=SpliceStatus.failed))
    assert result.status == ComplianceStatus.fail


def test_blank_technician_counts_as_missing():
    result = compliance_status(_splice(technician_name="   "))
    assert [warning.code for warning in result.warnings] == ["technician_missing"]


def test_batch_stats():
    splices = [
        _splice(loss_db=0.05),
        _splice(loss_db=0.15, status=SpliceStatus.pending),
        _splice(loss_db=None, status=SpliceStatus.needs_review),
        _splice(loss_db=0.5, status=SpliceStatus.failed),
    ]
    stats = batch_stats(splices)
    assert stats.total == 4
    assert stats.completed == 1
    assert stats.pending == 1
    assert stats.needs_review == 1
    assert stats.failed == 1
    assert stats.with_loss == 3
    assert stats.max_loss == 0.5
    assert stats.min_loss == 0.05
    assert stats.avg_loss == pytest.approx(0.7 / 3)
    # Pending splices with clean data still pass.
    assert stats.pass_rate == 50.0


def test_batch_stats_empty():
    stats = batch_stats([])
    assert stats.total == 0
    assert stats.pass_rate == 0.0
