from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ospnet.api.deps import get_db, get_store
from ospnet.models.network import EnclosureKind, PortStatus, ProjectStatus, SpliceStatus
from ospnet.schemas.analysis import DeleteImpactRead, DeleteResult
from ospnet.schemas.common import ListResponse
from ospnet.schemas.network import (
    CableCreate,
    CableRead,
    EnclosureCreate,
    EnclosureRead,
    EnclosureUpdate,
    FrameCreate,
    FramePortRead,
    FramePortUpdate,
    FrameRead,
    HeadEndCreate,
    HeadEndRead,
    HeadEndUpdate,
    OtdrTraceCreate,
    OtdrTraceRead,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
    SpliceBatchCreate,
    SpliceCreate,
    SpliceRead,
    SpliceStatusBatchUpdate,
    SpliceUpdate,
    SplitterCreate,
    SplitterRead,
    SubscriberPortCreate,
    SubscriberPortRead,
    SubscriberPortUpdate,
    TrayCreate,
    TrayRead,
    TrayUpdate,
)
from ospnet.services import network as network_service
from ospnet.services.hierarchy import NodeKind, NodeRef, delete_impact_report, orphaned_enclosures
from ospnet.services.response import list_response
from ospnet.services.store import SqlAlchemyNetworkStore

router = APIRouter(prefix="/network", tags=["network"])


# ── Projects ──────────────────────────────────────────────────────


@router.post("/projects", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(payload: ProjectCreate, db: Session = Depends(get_db)):
    return network_service.projects.create(db, payload)


@router.get("/projects/{project_id}", response_model=ProjectRead)
def get_project(project_id: int, db: Session = Depends(get_db)):
    return network_service.projects.get(db, project_id)


@router.get("/projects", response_model=ListResponse[ProjectRead])
def list_projects(
    project_status: ProjectStatus | None = Query(default=None, alias="status"),
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = network_service.projects.list(db, project_status, order_by, order_dir, limit, offset)
    return list_response(items, limit, offset)


@router.patch("/projects/{project_id}", response_model=ProjectRead)
def update_project(project_id: int, payload: ProjectUpdate, db: Session = Depends(get_db)):
    return network_service.projects.update(db, project_id, payload)


@router.delete("/projects/{project_id}", response_model=DeleteResult)
def delete_project(project_id: int, db: Session = Depends(get_db)):
    return DeleteResult(deleted=network_service.projects.delete(db, project_id))


@router.get("/projects/{project_id}/orphans", response_model=list[EnclosureRead])
def list_orphaned_enclosures(
    project_id: int,
    kind: EnclosureKind | None = None,
    db: Session = Depends(get_db),
):
    network_service.projects.get(db, project_id)
    return orphaned_enclosures(db, project_id, kind)


# ── Head-ends, frames and frame ports ─────────────────────────────


@router.post("/head-ends", response_model=HeadEndRead, status_code=status.HTTP_201_CREATED)
def create_head_end(payload: HeadEndCreate, db: Session = Depends(get_db)):
    return network_service.head_ends.create(db, payload)


@router.get("/head-ends/{head_end_id}", response_model=HeadEndRead)
def get_head_end(head_end_id: int, db: Session = Depends(get_db)):
    return network_service.head_ends.get(db, head_end_id)


@router.get("/head-ends", response_model=ListResponse[HeadEndRead])
def list_head_ends(
    project_id: int | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = network_service.head_ends.list(db, project_id, limit, offset)
    return list_response(items, limit, offset)


@router.patch("/head-ends/{head_end_id}", response_model=HeadEndRead)
def update_head_end(head_end_id: int, payload: HeadEndUpdate, db: Session = Depends(get_db)):
    return network_service.head_ends.update(db, head_end_id, payload)


@router.delete("/head-ends/{head_end_id}", response_model=DeleteResult)
def delete_head_end(head_end_id: int, db: Session = Depends(get_db)):
    return DeleteResult(deleted=network_service.head_ends.delete(db, head_end_id))


@router.post("/frames", response_model=FrameRead, status_code=status.HTTP_201_CREATED)
def create_frame(payload: FrameCreate, db: Session = Depends(get_db)):
    return network_service.frames.create(db, payload)


@router.get("/frames/{frame_id}", response_model=FrameRead)
def get_frame(frame_id: int, db: Session = Depends(get_db)):
    return network_service.frames.get(db, frame_id)


@router.delete("/frames/{frame_id}", response_model=DeleteResult)
def delete_frame(frame_id: int, db: Session = Depends(get_db)):
    return DeleteResult(deleted=network_service.frames.delete(db, frame_id))


@router.get("/frames/{frame_id}/ports", response_model=list[FramePortRead])
def list_frame_ports(
    frame_id: int,
    port_status: PortStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    network_service.frames.get(db, frame_id)
    return network_service.frame_ports.list(db, frame_id, port_status)


@router.patch("/frame-ports/{port_id}", response_model=FramePortRead)
def update_frame_port(port_id: int, payload: FramePortUpdate, db: Session = Depends(get_db)):
    return network_service.frame_ports.update(db, port_id, payload)


# ── Enclosures and trays ──────────────────────────────────────────


@router.post("/enclosures", response_model=EnclosureRead, status_code=status.HTTP_201_CREATED)
def create_enclosure(payload: EnclosureCreate, db: Session = Depends(get_db)):
    return network_service.enclosures.create(db, payload)


@router.get("/enclosures/{enclosure_id}", response_model=EnclosureRead)
def get_enclosure(enclosure_id: int, db: Session = Depends(get_db)):
    return network_service.enclosures.get(db, enclosure_id)


@router.get("/enclosures", response_model=ListResponse[EnclosureRead])
def list_enclosures(
    project_id: int | None = None,
    kind: EnclosureKind | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = network_service.enclosures.list(db, project_id, kind, limit=limit, offset=offset)
    return list_response(items, limit, offset)


@router.patch("/enclosures/{enclosure_id}", response_model=EnclosureRead)
def update_enclosure(enclosure_id: int, payload: EnclosureUpdate, db: Session = Depends(get_db)):
    return network_service.enclosures.update(db, enclosure_id, payload)


@router.delete("/enclosures/{enclosure_id}", response_model=DeleteResult)
def delete_enclosure(enclosure_id: int, db: Session = Depends(get_db)):
    return DeleteResult(deleted=network_service.enclosures.delete(db, enclosure_id))


@router.post("/trays", response_model=TrayRead, status_code=status.HTTP_201_CREATED)
def create_tray(payload: TrayCreate, db: Session = Depends(get_db)):
    return network_service.trays.create(db, payload)


@router.get("/trays/{tray_id}", response_model=TrayRead)
def get_tray(tray_id: int, db: Session = Depends(get_db)):
    return network_service.trays.get(db, tray_id)


@router.get("/enclosures/{enclosure_id}/trays", response_model=list[TrayRead])
def list_trays(enclosure_id: int, db: Session = Depends(get_db)):
    network_service.enclosures.get(db, enclosure_id)
    return network_service.trays.list(db, enclosure_id)


@router.patch("/trays/{tray_id}", response_model=TrayRead)
def update_tray(tray_id: int, payload: TrayUpdate, db: Session = Depends(get_db)):
    return network_service.trays.update(db, tray_id, payload)


@router.delete("/trays/{tray_id}", response_model=DeleteResult)
def delete_tray(tray_id: int, db: Session = Depends(get_db)):
    return DeleteResult(deleted=network_service.trays.delete(db, tray_id))


# ── Cables and OTDR traces ────────────────────────────────────────


@router.post("/cables", response_model=CableRead, status_code=status.HTTP_201_CREATED)
def create_cable(payload: CableCreate, db: Session = Depends(get_db)):
    return network_service.cables.create(db, payload)


@router.get("/cables/{cable_id}", response_model=CableRead)
def get_cable(cable_id: int, db: Session = Depends(get_db)):
    return network_service.cables.get(db, cable_id)


@router.delete("/cables/{cable_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_cable(cable_id: int, db: Session = Depends(get_db)):
    network_service.cables.delete(db, cable_id)


@router.post("/otdr-traces", response_model=OtdrTraceRead, status_code=status.HTTP_201_CREATED)
def create_otdr_trace(payload: OtdrTraceCreate, db: Session = Depends(get_db)):
    return network_service.otdr_traces.create(db, payload)


@router.get("/otdr-traces/{trace_id}", response_model=OtdrTraceRead)
def get_otdr_trace(trace_id: int, db: Session = Depends(get_db)):
    return network_service.otdr_traces.get(db, trace_id)


@router.delete("/otdr-traces/{trace_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_otdr_trace(trace_id: int, db: Session = Depends(get_db)):
    network_service.otdr_traces.delete(db, trace_id)


# ── Splices ───────────────────────────────────────────────────────


@router.post("/splices", response_model=SpliceRead, status_code=status.HTTP_201_CREATED)
def create_splice(payload: SpliceCreate, db: Session = Depends(get_db)):
    return network_service.splices.create(db, payload)


@router.post("/splices/batch", response_model=list[SpliceRead], status_code=status.HTTP_201_CREATED)
def create_splice_batch(payload: SpliceBatchCreate, db: Session = Depends(get_db)):
    return network_service.splices.create_batch(db, payload)


@router.post("/splices/status")
def update_splice_status(payload: SpliceStatusBatchUpdate, db: Session = Depends(get_db)):
    updated = network_service.splices.update_status(db, payload.splice_ids, payload.status)
    return {"updated": updated}


@router.get("/splices/{splice_id}", response_model=SpliceRead)
def get_splice(splice_id: int, db: Session = Depends(get_db)):
    return network_service.splices.get(db, splice_id)


@router.get("/trays/{tray_id}/splices", response_model=list[SpliceRead])
def list_splices(
    tray_id: int,
    splice_status: SpliceStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    network_service.trays.get(db, tray_id)
    return network_service.splices.list(db, tray_id, splice_status)


@router.patch("/splices/{splice_id}", response_model=SpliceRead)
def update_splice(splice_id: int, payload: SpliceUpdate, db: Session = Depends(get_db)):
    return network_service.splices.update(db, splice_id, payload)


@router.delete("/splices/{splice_id}", response_model=DeleteResult)
def delete_splice(splice_id: int, db: Session = Depends(get_db)):
    return DeleteResult(deleted=network_service.splices.delete(db, splice_id))


# ── Splitters and subscriber ports ────────────────────────────────


@router.post("/splitters", response_model=SplitterRead, status_code=status.HTTP_201_CREATED)
def create_splitter(payload: SplitterCreate, db: Session = Depends(get_db)):
    return network_service.splitters.create(db, payload)


@router.get("/splitters/{splitter_id}", response_model=SplitterRead)
def get_splitter(splitter_id: int, db: Session = Depends(get_db)):
    return network_service.splitters.get(db, splitter_id)


@router.delete("/splitters/{splitter_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_splitter(splitter_id: int, db: Session = Depends(get_db)):
    network_service.splitters.delete(db, splitter_id)


@router.post("/subscriber-ports", response_model=SubscriberPortRead, status_code=status.HTTP_201_CREATED)
def create_subscriber_port(payload: SubscriberPortCreate, db: Session = Depends(get_db)):
    return network_service.subscriber_ports.create(db, payload)


@router.get("/subscriber-ports/{port_id}", response_model=SubscriberPortRead)
def get_subscriber_port(port_id: int, db: Session = Depends(get_db)):
    return network_service.subscriber_ports.get(db, port_id)


@router.get("/enclosures/{enclosure_id}/subscriber-ports", response_model=list[SubscriberPortRead])
def list_subscriber_ports(
    enclosure_id: int,
    port_status: PortStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    network_service.enclosures.get(db, enclosure_id)
    return network_service.subscriber_ports.list(db, enclosure_id, port_status)


@router.patch("/subscriber-ports/{port_id}", response_model=SubscriberPortRead)
def update_subscriber_port(port_id: int, payload: SubscriberPortUpdate, db: Session = Depends(get_db)):
    return network_service.subscriber_ports.update(db, port_id, payload)


@router.delete("/subscriber-ports/{port_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subscriber_port(port_id: int, db: Session = Depends(get_db)):
    network_service.subscriber_ports.delete(db, port_id)


# ── Delete impact ─────────────────────────────────────────────────


_IMPACT_LOOKUPS = {
    NodeKind.project: network_service.projects,
    NodeKind.head_end: network_service.head_ends,
    NodeKind.distribution_frame: network_service.frames,
    NodeKind.frame_port: network_service.frame_ports,
    NodeKind.enclosure: network_service.enclosures,
    NodeKind.tray: network_service.trays,
}


@router.get("/{kind}/{node_id}/delete-impact", response_model=DeleteImpactRead)
async def get_delete_impact(
    kind: NodeKind,
    node_id: int,
    db: Session = Depends(get_db),
    store: SqlAlchemyNetworkStore = Depends(get_store),
):
    _IMPACT_LOOKUPS[kind].get(db, node_id)
    impact = await delete_impact_report(store, NodeRef(kind, node_id))
    return DeleteImpactRead(
        kind=kind,
        id=node_id,
        total_descendants=impact.total_descendants,
        by_kind=dict(impact.by_kind),
    )
