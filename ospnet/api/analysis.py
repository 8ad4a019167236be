"""Loss budget, compliance and statistics endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ospnet.api.deps import get_db
from ospnet.models.network import FiberType
from ospnet.schemas.analysis import (
    ComplianceRead,
    HierarchyStatsRead,
    LossBudgetRead,
    LossBudgetRequest,
    PowerBudgetRead,
    PowerBudgetRequest,
    SpliceStatsRead,
)
from ospnet.services import network as network_service
from ospnet.services.compliance import compliance_status
from ospnet.services.hierarchy import hierarchy_stats, port_stats
from ospnet.services.loss_budget import (
    CONNECTOR_TYPES,
    POWER_BUDGETS,
    LossBudgetParams,
    calculate_budget,
    check_power_budget,
    wavelength_options,
)

router = APIRouter(prefix="/analysis", tags=["analysis"])


def _unknown_class(equipment_class: str) -> HTTPException:
    return HTTPException(status_code=422, detail=f"Unknown equipment class: {equipment_class}")


@router.get("/loss-budget/options")
def loss_budget_options(fiber_type: FiberType = FiberType.singlemode):
    return {
        "fiber_type": fiber_type.value,
        "wavelengths_nm": wavelength_options(fiber_type),
        "connector_types": CONNECTOR_TYPES,
        "equipment_classes": sorted(POWER_BUDGETS),
    }


@router.post("/loss-budget", response_model=LossBudgetRead)
def loss_budget(payload: LossBudgetRequest):
    breakdown = calculate_budget(LossBudgetParams(**payload.model_dump(exclude={"equipment_class"})))
    result = LossBudgetRead.model_validate(breakdown)
    if payload.equipment_class:
        check = check_power_budget(breakdown.total_loss, payload.equipment_class)
        if check is None:
            raise _unknown_class(payload.equipment_class)
        result.power_budget = PowerBudgetRead.model_validate(check)
    return result


@router.post("/power-budget", response_model=PowerBudgetRead)
def power_budget(payload: PowerBudgetRequest):
    check = check_power_budget(payload.total_loss, payload.equipment_class)
    if check is None:
        raise _unknown_class(payload.equipment_class)
    return PowerBudgetRead.model_validate(check)


@router.get("/splices/{splice_id}/compliance", response_model=ComplianceRead)
def splice_compliance(splice_id: int, db: Session = Depends(get_db)):
    return ComplianceRead.model_validate(compliance_status(network_service.splices.get(db, splice_id)))


@router.get("/trays/{tray_id}/stats", response_model=SpliceStatsRead)
def tray_stats(tray_id: int, db: Session = Depends(get_db)):
    return SpliceStatsRead.model_validate(network_service.trays.stats(db, tray_id))


@router.get("/enclosures/{enclosure_id}/stats", response_model=SpliceStatsRead)
def enclosure_splice_stats(enclosure_id: int, db: Session = Depends(get_db)):
    return SpliceStatsRead.model_validate(network_service.enclosures.splice_summary(db, enclosure_id))


@router.get("/enclosures/{enclosure_id}/hierarchy", response_model=HierarchyStatsRead)
def enclosure_hierarchy_stats(enclosure_id: int, db: Session = Depends(get_db)):
    network_service.enclosures.get(db, enclosure_id)
    return HierarchyStatsRead.model_validate(hierarchy_stats(db, enclosure_id=enclosure_id))


@router.get("/head-ends/{head_end_id}/hierarchy", response_model=HierarchyStatsRead)
def head_end_hierarchy_stats(head_end_id: int, db: Session = Depends(get_db)):
    network_service.head_ends.get(db, head_end_id)
    return HierarchyStatsRead.model_validate(hierarchy_stats(db, head_end_id=head_end_id))


@router.get("/enclosures/{enclosure_id}/ports")
def enclosure_port_stats(enclosure_id: int, db: Session = Depends(get_db)):
    network_service.enclosures.get(db, enclosure_id)
    return port_stats(db, enclosure_id)
