"""Fiber color lookup and splice matrix endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ospnet.api.deps import get_db
from ospnet.schemas.analysis import FiberColorRead, FiberOrdinalRead, MatrixCellRead, TubeRead
from ospnet.services import fiber_colors
from ospnet.services import network as network_service

router = APIRouter(prefix="/fiber", tags=["fiber"])


@router.get("/colors/{fiber_number}", response_model=FiberColorRead)
def get_fiber_color(fiber_number: int, cable_fiber_count: int = Query(default=48, ge=1, le=864)):
    info = fiber_colors.color_info(fiber_number, cable_fiber_count)
    if info is None:
        raise HTTPException(
            status_code=404,
            detail=f"Fiber {fiber_number} is outside a {cable_fiber_count}-fiber cable",
        )
    return FiberColorRead.model_validate(info)


@router.get("/ordinal", response_model=FiberOrdinalRead)
def get_fiber_ordinal(
    tube_number: int = Query(ge=1),
    position_in_tube: int = Query(ge=1),
    cable_fiber_count: int = Query(default=48, ge=1, le=864),
):
    fiber_number = fiber_colors.fiber_ordinal(tube_number, position_in_tube, cable_fiber_count)
    if fiber_number is None:
        raise HTTPException(status_code=404, detail="No such tube position in a standard cable of this size")
    return FiberOrdinalRead(
        tube_number=tube_number,
        position_in_tube=position_in_tube,
        cable_fiber_count=cable_fiber_count,
        fiber_number=fiber_number,
    )


@router.get("/tubes/{cable_fiber_count}", response_model=list[TubeRead])
def get_tube_layout(cable_fiber_count: int):
    return [TubeRead.model_validate(tube) for tube in fiber_colors.tube_layout(cable_fiber_count)]


@router.get("/trays/{tray_id}/matrix", response_model=list[list[MatrixCellRead]])
def get_splice_matrix(
    tray_id: int,
    cable_a_fiber_count: int | None = Query(default=None, ge=1, le=864),
    cable_b_fiber_count: int | None = Query(default=None, ge=1, le=864),
    db: Session = Depends(get_db),
):
    matrix = network_service.trays.matrix(db, tray_id, cable_a_fiber_count, cable_b_fiber_count)
    return [[MatrixCellRead.model_validate(cell) for cell in row] for row in matrix]


@router.get("/tubes/{cable_fiber_count}/{tube_number}", response_model=list[FiberColorRead])
def get_tube_fibers(cable_fiber_count: int, tube_number: int):
    fibers = fiber_colors.fibers_in_tube(tube_number, cable_fiber_count)
    if not fibers:
        raise HTTPException(status_code=404, detail="No such tube in a standard cable of this size")
    return [FiberColorRead.model_validate(info) for info in fibers]
