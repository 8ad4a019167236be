"""CRUD services for the outside-plant network hierarchy.

Deletes cascade explicitly and report how many records of each kind were
removed. Every persisted parent link goes through the enclosure type rules.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Collection

from sqlalchemy import func
from sqlalchemy.orm import Session

from ospnet.config import settings
from ospnet.models.network import (
    Cable,
    DistributionFrame,
    DistributionFramePort,
    Enclosure,
    HeadEndTerminal,
    OtdrTrace,
    ParentKind,
    PortStatus,
    Project,
    ProjectStatus,
    Splice,
    SpliceStatus,
    Splitter,
    SubscriberPort,
    Tray,
)
from ospnet.schemas.network import (
    CableCreate,
    EnclosureCreate,
    EnclosureUpdate,
    FrameCreate,
    FramePortUpdate,
    HeadEndCreate,
    HeadEndUpdate,
    OtdrTraceCreate,
    ParentRef,
    ProjectCreate,
    ProjectUpdate,
    SpliceBatchCreate,
    SpliceCreate,
    SpliceUpdate,
    SplitterCreate,
    SubscriberPortCreate,
    SubscriberPortUpdate,
    TrayCreate,
    TrayUpdate,
)
from ospnet.services.common import apply_ordering, apply_pagination
from ospnet.services.compliance import SpliceStats, batch_stats
from ospnet.services.errors import (
    Conflict,
    InvalidFiber,
    InvalidHierarchy,
    NotFound,
    SpliceConflict,
)
from ospnet.services.hierarchy import child_enclosures, ensure_can_attach
from ospnet.services.response import ListResponseMixin
from ospnet.services.splice_matrix import (
    BatchSpliceInput,
    SpliceMatrixCell,
    build_matrix,
    color_snapshot,
    generate_batch_splices,
)

logger = logging.getLogger(__name__)


def _safe_get(db: Session, model, item_id: object):
    if item_id is None:
        return None
    try:
        return db.get(model, int(item_id))
    except (TypeError, ValueError):
        return None


def _require(db: Session, model, item_id: object, label: str):
    item = _safe_get(db, model, item_id)
    if not item:
        raise NotFound(code=f"{model.__tablename__}_not_found", detail=f"{label} not found")
    return item


def _conflict(code: str, detail: str) -> Conflict:
    return Conflict(code=code, detail=detail)


# ---------------------------------------------------------------------------
# Cascade helpers
# ---------------------------------------------------------------------------


def _release_otdr_traces(db: Session, trace_ids: set[int], removed: Counter) -> None:
    """Delete traces no remaining splice points at."""
    for trace_id in trace_ids:
        still_used = db.query(Splice.id).filter(Splice.otdr_trace_id == trace_id).first()
        if still_used:
            continue
        trace = db.get(OtdrTrace, trace_id)
        if trace is not None:
            db.delete(trace)
            removed["otdr_trace"] += 1


def _purge_enclosure(db: Session, enclosure: Enclosure, removed: Counter, visited: set[int]) -> None:
    visited.add(enclosure.id)
    for child in child_enclosures(db, ParentKind.enclosure, enclosure.id):
        if child.id not in visited:
            _purge_enclosure(db, child, removed, visited)

    for port in db.query(DistributionFramePort).filter(DistributionFramePort.enclosure_id == enclosure.id).all():
        port.enclosure_id = None
        port.status = PortStatus.unconnected

    trace_ids: set[int] = set()
    for tray in enclosure.trays:
        removed["tray"] += 1
        for splice in tray.splices:
            removed["splice"] += 1
            if splice.otdr_trace_id is not None:
                trace_ids.add(splice.otdr_trace_id)
    removed["splitter"] += len(enclosure.splitters)
    removed["subscriber_port"] += len(enclosure.subscriber_ports)

    db.delete(enclosure)
    db.flush()
    removed["enclosure"] += 1
    _release_otdr_traces(db, trace_ids, removed)


def _purge_frame(db: Session, frame: DistributionFrame, removed: Counter, visited: set[int]) -> None:
    for port in frame.ports:
        for child in child_enclosures(db, ParentKind.frame_port, port.id):
            if child.id not in visited:
                _purge_enclosure(db, child, removed, visited)
    removed["frame_port"] += len(frame.ports)
    # Detached so a later head-end cascade does not delete it twice.
    if frame.head_end is not None and frame in frame.head_end.frames:
        frame.head_end.frames.remove(frame)
    db.delete(frame)
    db.flush()
    removed["distribution_frame"] += 1


def _purge_head_end(db: Session, head_end: HeadEndTerminal, removed: Counter, visited: set[int]) -> None:
    for child in child_enclosures(db, ParentKind.head_end, head_end.id):
        if child.id not in visited:
            _purge_enclosure(db, child, removed, visited)
    for frame in list(head_end.frames):
        _purge_frame(db, frame, removed, visited)
    db.delete(head_end)
    db.flush()
    removed["head_end"] += 1


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class Projects(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: ProjectCreate):
        project = Project(**payload.model_dump())
        db.add(project)
        db.commit()
        db.refresh(project)
        logger.info("Created project %s", project.id)
        return project

    @staticmethod
    def get(db: Session, project_id: int):
        return _require(db, Project, project_id, "Project")

    @staticmethod
    def list(
        db: Session,
        status: ProjectStatus | None = None,
        order_by: str = "created_at",
        order_dir: str = "desc",
        limit: int = 100,
        offset: int = 0,
    ):
        query = db.query(Project)
        if status is not None:
            query = query.filter(Project.status == status)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Project.created_at, "name": Project.name},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, project_id: int, payload: ProjectUpdate):
        project = _require(db, Project, project_id, "Project")
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(project, key, value)
        db.commit()
        db.refresh(project)
        return project

    @staticmethod
    def delete(db: Session, project_id: int) -> dict[str, int]:
        project = _require(db, Project, project_id, "Project")
        removed: Counter = Counter()
        visited: set[int] = set()
        for head_end in db.query(HeadEndTerminal).filter(HeadEndTerminal.project_id == project.id).all():
            _purge_head_end(db, head_end, removed, visited)
        for enclosure in db.query(Enclosure).filter(Enclosure.project_id == project.id).order_by(Enclosure.id).all():
            if enclosure.id not in visited:
                _purge_enclosure(db, enclosure, removed, visited)
        for cable in db.query(Cable).filter(Cable.project_id == project.id).all():
            _detach_cable(db, cable.id)
            db.delete(cable)
            removed["cable"] += 1
        db.flush()
        db.delete(project)
        db.commit()
        logger.info("Deleted project %s: %s", project_id, dict(removed))
        return dict(removed)


# ---------------------------------------------------------------------------
# Head-ends, frames and frame ports
# ---------------------------------------------------------------------------


class HeadEnds(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: HeadEndCreate):
        _require(db, Project, payload.project_id, "Project")
        head_end = HeadEndTerminal(**payload.model_dump())
        db.add(head_end)
        db.commit()
        db.refresh(head_end)
        logger.info("Created head-end %s in project %s", head_end.id, head_end.project_id)
        return head_end

    @staticmethod
    def get(db: Session, head_end_id: int):
        return _require(db, HeadEndTerminal, head_end_id, "Head-end")

    @staticmethod
    def list(db: Session, project_id: int | None = None, limit: int = 100, offset: int = 0):
        query = db.query(HeadEndTerminal)
        if project_id is not None:
            query = query.filter(HeadEndTerminal.project_id == project_id)
        return apply_pagination(query.order_by(HeadEndTerminal.id), limit, offset).all()

    @staticmethod
    def update(db: Session, head_end_id: int, payload: HeadEndUpdate):
        head_end = _require(db, HeadEndTerminal, head_end_id, "Head-end")
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(head_end, key, value)
        db.commit()
        db.refresh(head_end)
        return head_end

    @staticmethod
    def delete(db: Session, head_end_id: int) -> dict[str, int]:
        head_end = _require(db, HeadEndTerminal, head_end_id, "Head-end")
        removed: Counter = Counter()
        _purge_head_end(db, head_end, removed, set())
        db.commit()
        removed["head_end"] -= 1
        logger.info("Deleted head-end %s: %s", head_end_id, dict(removed))
        return {kind: count for kind, count in removed.items() if count}


class Frames(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: FrameCreate):
        _require(db, HeadEndTerminal, payload.head_end_id, "Head-end")
        frame = DistributionFrame(**payload.model_dump())
        frame.ports = [DistributionFramePort(port_number=number) for number in range(1, payload.port_count + 1)]
        db.add(frame)
        db.commit()
        db.refresh(frame)
        logger.info("Created distribution frame %s with %s ports", frame.id, frame.port_count)
        return frame

    @staticmethod
    def get(db: Session, frame_id: int):
        return _require(db, DistributionFrame, frame_id, "Distribution frame")

    @staticmethod
    def list(db: Session, head_end_id: int | None = None, limit: int = 100, offset: int = 0):
        query = db.query(DistributionFrame)
        if head_end_id is not None:
            query = query.filter(DistributionFrame.head_end_id == head_end_id)
        return apply_pagination(query.order_by(DistributionFrame.id), limit, offset).all()

    @staticmethod
    def delete(db: Session, frame_id: int) -> dict[str, int]:
        frame = _require(db, DistributionFrame, frame_id, "Distribution frame")
        removed: Counter = Counter()
        _purge_frame(db, frame, removed, set())
        db.commit()
        removed["distribution_frame"] -= 1
        logger.info("Deleted distribution frame %s: %s", frame_id, dict(removed))
        return {kind: count for kind, count in removed.items() if count}


class FramePorts(ListResponseMixin):
    @staticmethod
    def get(db: Session, port_id: int):
        return _require(db, DistributionFramePort, port_id, "Frame port")

    @staticmethod
    def list(db: Session, frame_id: int, status: PortStatus | None = None, limit: int = 600, offset: int = 0):
        query = db.query(DistributionFramePort).filter(DistributionFramePort.frame_id == frame_id)
        if status is not None:
            query = query.filter(DistributionFramePort.status == status)
        return apply_pagination(query.order_by(DistributionFramePort.port_number), limit, offset).all()

    @staticmethod
    def update(db: Session, port_id: int, payload: FramePortUpdate):
        port = _require(db, DistributionFramePort, port_id, "Frame port")
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(port, key, value)
        db.commit()
        db.refresh(port)
        return port


# ---------------------------------------------------------------------------
# Enclosures and trays
# ---------------------------------------------------------------------------


def _ancestor_ids(db: Session, enclosure: Enclosure) -> set[int]:
    seen: set[int] = set()
    current = enclosure
    while current is not None and current.parent_kind == ParentKind.enclosure and current.parent_id not in seen:
        seen.add(current.parent_id)
        current = db.get(Enclosure, current.parent_id)
    return seen


def _resolve_parent(db: Session, enclosure: Enclosure, parent: ParentRef) -> DistributionFramePort | None:
    """Validate a parent link for ``enclosure``; returns the frame port to occupy, if any."""
    if parent.parent_kind == ParentKind.head_end:
        head_end = _require(db, HeadEndTerminal, parent.parent_id, "Head-end")
        if head_end.project_id != enclosure.project_id:
            raise InvalidHierarchy(code="cross_project_parent", detail="Parent belongs to another project")
        ensure_can_attach(enclosure.kind, ParentKind.head_end)
        return None

    if parent.parent_kind == ParentKind.frame_port:
        port = _require(db, DistributionFramePort, parent.parent_id, "Frame port")
        if port.frame.head_end.project_id != enclosure.project_id:
            raise InvalidHierarchy(code="cross_project_parent", detail="Parent belongs to another project")
        ensure_can_attach(enclosure.kind, ParentKind.frame_port)
        if port.enclosure_id is not None and port.enclosure_id != enclosure.id:
            raise _conflict("frame_port_in_use", f"Frame port {port.port_number} is already connected")
        return port

    parent_enclosure = _require(db, Enclosure, parent.parent_id, "Parent enclosure")
    if enclosure.id is not None and parent_enclosure.id == enclosure.id:
        raise InvalidHierarchy(code="self_parent", detail="An enclosure cannot be its own parent")
    if parent_enclosure.project_id != enclosure.project_id:
        raise InvalidHierarchy(code="cross_project_parent", detail="Parent belongs to another project")
    ensure_can_attach(enclosure.kind, parent_enclosure.kind)
    if enclosure.id is not None and enclosure.id in _ancestor_ids(db, parent_enclosure):
        raise InvalidHierarchy(code="parent_cycle", detail="Parent link would create a cycle")
    return None


def _release_frame_port(db: Session, enclosure: Enclosure) -> None:
    if enclosure.parent_kind != ParentKind.frame_port:
        return
    port = _safe_get(db, DistributionFramePort, enclosure.parent_id)
    if port is not None and port.enclosure_id == enclosure.id:
        port.enclosure_id = None
        port.status = PortStatus.unconnected


def _next_tray_number(db: Session, enclosure_id: int) -> int:
    current = db.query(func.max(Tray.tray_number)).filter(Tray.enclosure_id == enclosure_id).scalar()
    return (current or 0) + 1


class Enclosures(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: EnclosureCreate):
        _require(db, Project, payload.project_id, "Project")
        data = payload.model_dump(exclude={"parent", "tray_count"})
        enclosure = Enclosure(**data)
        port = None
        if payload.parent is not None:
            port = _resolve_parent(db, enclosure, payload.parent)
            enclosure.parent_kind = payload.parent.parent_kind
            enclosure.parent_id = payload.parent.parent_id
        enclosure.trays = [
            Tray(tray_number=number, capacity=settings.default_tray_capacity)
            for number in range(1, payload.tray_count + 1)
        ]
        db.add(enclosure)
        db.flush()
        if port is not None:
            port.enclosure_id = enclosure.id
            port.status = PortStatus.connected
        db.commit()
        db.refresh(enclosure)
        logger.info("Created %s enclosure %s", enclosure.kind.value, enclosure.id)
        return enclosure

    @staticmethod
    def get(db: Session, enclosure_id: int):
        return _require(db, Enclosure, enclosure_id, "Enclosure")

    @staticmethod
    def list(
        db: Session,
        project_id: int | None = None,
        kind=None,
        parent_kind: ParentKind | None = None,
        parent_id: int | None = None,
        limit: int = 100,
        offset: int = 0,
    ):
        query = db.query(Enclosure)
        if project_id is not None:
            query = query.filter(Enclosure.project_id == project_id)
        if kind is not None:
            query = query.filter(Enclosure.kind == kind)
        if parent_kind is not None:
            query = query.filter(Enclosure.parent_kind == parent_kind)
        if parent_id is not None:
            query = query.filter(Enclosure.parent_id == parent_id)
        return apply_pagination(query.order_by(Enclosure.id), limit, offset).all()

    @staticmethod
    def update(db: Session, enclosure_id: int, payload: EnclosureUpdate):
        enclosure = _require(db, Enclosure, enclosure_id, "Enclosure")
        data = payload.model_dump(exclude_unset=True, exclude={"parent"})
        for key, value in data.items():
            setattr(enclosure, key, value)
        if "parent" in payload.model_fields_set:
            port = _resolve_parent(db, enclosure, payload.parent) if payload.parent is not None else None
            _release_frame_port(db, enclosure)
            if payload.parent is None:
                enclosure.parent_kind = None
                enclosure.parent_id = None
            else:
                enclosure.parent_kind = payload.parent.parent_kind
                enclosure.parent_id = payload.parent.parent_id
            if port is not None:
                port.enclosure_id = enclosure.id
                port.status = PortStatus.connected
        db.commit()
        db.refresh(enclosure)
        return enclosure

    @staticmethod
    def delete(db: Session, enclosure_id: int) -> dict[str, int]:
        enclosure = _require(db, Enclosure, enclosure_id, "Enclosure")
        removed: Counter = Counter()
        _purge_enclosure(db, enclosure, removed, set())
        db.commit()
        removed["enclosure"] -= 1
        logger.info("Deleted enclosure %s: %s", enclosure_id, dict(removed))
        return {kind: count for kind, count in removed.items() if count}

    @staticmethod
    def splice_summary(db: Session, enclosure_id: int) -> SpliceStats:
        _require(db, Enclosure, enclosure_id, "Enclosure")
        splices = (
            db.query(Splice)
            .join(Tray, Tray.id == Splice.tray_id)
            .filter(Tray.enclosure_id == enclosure_id)
            .order_by(Splice.id)
            .all()
        )
        return batch_stats(splices)


class Trays(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: TrayCreate):
        _require(db, Enclosure, payload.enclosure_id, "Enclosure")
        tray_number = payload.tray_number or _next_tray_number(db, payload.enclosure_id)
        taken = (
            db.query(Tray.id)
            .filter(Tray.enclosure_id == payload.enclosure_id)
            .filter(Tray.tray_number == tray_number)
            .first()
        )
        if taken:
            raise _conflict("tray_number_taken", f"Tray {tray_number} already exists in this enclosure")
        tray = Tray(
            enclosure_id=payload.enclosure_id,
            tray_number=tray_number,
            capacity=payload.capacity or settings.default_tray_capacity,
            notes=payload.notes,
        )
        db.add(tray)
        db.commit()
        db.refresh(tray)
        return tray

    @staticmethod
    def get(db: Session, tray_id: int):
        return _require(db, Tray, tray_id, "Tray")

    @staticmethod
    def list(db: Session, enclosure_id: int, limit: int = 100, offset: int = 0):
        query = db.query(Tray).filter(Tray.enclosure_id == enclosure_id).order_by(Tray.tray_number)
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, tray_id: int, payload: TrayUpdate):
        tray = _require(db, Tray, tray_id, "Tray")
        data = payload.model_dump(exclude_unset=True)
        if data.get("capacity") is not None and data["capacity"] < _active_splice_count(db, tray.id):
            raise _conflict("capacity_below_usage", "Capacity is below the number of splices in the tray")
        for key, value in data.items():
            setattr(tray, key, value)
        db.commit()
        db.refresh(tray)
        return tray

    @staticmethod
    def delete(db: Session, tray_id: int) -> dict[str, int]:
        tray = _require(db, Tray, tray_id, "Tray")
        trace_ids = {splice.otdr_trace_id for splice in tray.splices if splice.otdr_trace_id is not None}
        removed: Counter = Counter(splice=len(tray.splices))
        db.delete(tray)
        db.flush()
        _release_otdr_traces(db, trace_ids, removed)
        db.commit()
        return {kind: count for kind, count in removed.items() if count}

    @staticmethod
    def matrix(
        db: Session,
        tray_id: int,
        cable_a_fiber_count: int | None = None,
        cable_b_fiber_count: int | None = None,
    ) -> list[list[SpliceMatrixCell]]:
        tray = _require(db, Tray, tray_id, "Tray")
        splices = list(tray.splices)
        if cable_a_fiber_count is None or cable_b_fiber_count is None:
            known_a, known_b = _tray_cable_counts(splices)
            cable_a_fiber_count = cable_a_fiber_count or known_a
            cable_b_fiber_count = cable_b_fiber_count or known_b
        return build_matrix(cable_a_fiber_count, cable_b_fiber_count, splices)

    @staticmethod
    def stats(db: Session, tray_id: int) -> SpliceStats:
        tray = _require(db, Tray, tray_id, "Tray")
        return batch_stats(tray.splices)


def _tray_cable_counts(splices: list[Splice]) -> tuple[int, int]:
    default = settings.trace_default_cable_fiber_count
    count_a = next((s.cable_a.fiber_count for s in splices if s.cable_a is not None), default)
    count_b = next((s.cable_b.fiber_count for s in splices if s.cable_b is not None), default)
    return count_a, count_b


# ---------------------------------------------------------------------------
# Cables and OTDR traces
# ---------------------------------------------------------------------------


def _detach_cable(db: Session, cable_id: int) -> None:
    db.query(Splice).filter(Splice.cable_a_id == cable_id).update({Splice.cable_a_id: None})
    db.query(Splice).filter(Splice.cable_b_id == cable_id).update({Splice.cable_b_id: None})


class Cables(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: CableCreate):
        _require(db, Project, payload.project_id, "Project")
        cable = Cable(**payload.model_dump())
        db.add(cable)
        db.commit()
        db.refresh(cable)
        return cable

    @staticmethod
    def get(db: Session, cable_id: int):
        return _require(db, Cable, cable_id, "Cable")

    @staticmethod
    def list(db: Session, project_id: int | None = None, limit: int = 100, offset: int = 0):
        query = db.query(Cable)
        if project_id is not None:
            query = query.filter(Cable.project_id == project_id)
        return apply_pagination(query.order_by(Cable.id), limit, offset).all()

    @staticmethod
    def delete(db: Session, cable_id: int) -> None:
        cable = _require(db, Cable, cable_id, "Cable")
        # Splices keep their frozen cable names and colors.
        _detach_cable(db, cable.id)
        db.delete(cable)
        db.commit()


class OtdrTraces(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: OtdrTraceCreate):
        trace = OtdrTrace(**payload.model_dump())
        db.add(trace)
        db.commit()
        db.refresh(trace)
        return trace

    @staticmethod
    def get(db: Session, trace_id: int):
        return _require(db, OtdrTrace, trace_id, "OTDR trace")

    @staticmethod
    def list(db: Session, limit: int = 100, offset: int = 0):
        return apply_pagination(db.query(OtdrTrace).order_by(OtdrTrace.id), limit, offset).all()

    @staticmethod
    def delete(db: Session, trace_id: int) -> None:
        trace = _require(db, OtdrTrace, trace_id, "OTDR trace")
        db.query(Splice).filter(Splice.otdr_trace_id == trace.id).update({Splice.otdr_trace_id: None})
        db.delete(trace)
        db.commit()


# ---------------------------------------------------------------------------
# Splices
# ---------------------------------------------------------------------------


def _active_splice_count(db: Session, tray_id: int) -> int:
    return (
        db.query(func.count(Splice.id))
        .filter(Splice.tray_id == tray_id)
        .filter(Splice.status != SpliceStatus.failed)
        .scalar()
    )


def _resolve_cable(db: Session, cable_id: int | None, explicit_count: int | None, name: str | None):
    if cable_id is not None:
        cable = _require(db, Cable, cable_id, "Cable")
        return cable.fiber_count, name or cable.name
    return explicit_count or settings.trace_default_cable_fiber_count, name


def _check_fiber(fiber: int, fiber_count: int, side: str) -> None:
    if fiber < 1 or fiber > fiber_count:
        raise InvalidFiber(
            code=f"fiber_{side}_out_of_range",
            detail=f"Fiber {fiber} is outside cable {side.upper()} (1-{fiber_count})",
        )


def _check_splice_slots(tray: Tray, pairs: list[tuple[int, int]], ignore_ids: Collection[int] = ()) -> None:
    """Reject pairs that would break the tray's splice invariants."""
    others = [splice for splice in tray.splices if splice.id not in ignore_ids]
    active = [splice for splice in others if splice.status != SpliceStatus.failed]
    if len(active) + len(pairs) > tray.capacity:
        raise SpliceConflict(
            code="tray_full",
            detail=f"Tray {tray.tray_number} holds at most {tray.capacity} splices",
        )
    existing_pairs = {(splice.fiber_a, splice.fiber_b) for splice in others}
    used_a = {splice.fiber_a for splice in active}
    used_b = {splice.fiber_b for splice in active}
    for fiber_a, fiber_b in pairs:
        if (fiber_a, fiber_b) in existing_pairs:
            raise SpliceConflict(
                code="duplicate_pair",
                detail=f"Fibers {fiber_a} and {fiber_b} are already spliced in this tray",
            )
        if fiber_a in used_a:
            raise SpliceConflict(code="fiber_a_in_use", detail=f"Fiber {fiber_a} on cable A is already spliced")
        if fiber_b in used_b:
            raise SpliceConflict(code="fiber_b_in_use", detail=f"Fiber {fiber_b} on cable B is already spliced")
        existing_pairs.add((fiber_a, fiber_b))
        used_a.add(fiber_a)
        used_b.add(fiber_b)


class Splices(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: SpliceCreate):
        tray = _require(db, Tray, payload.tray_id, "Tray")
        count_a, name_a = _resolve_cable(db, payload.cable_a_id, payload.cable_a_fiber_count, payload.cable_a_name)
        count_b, name_b = _resolve_cable(db, payload.cable_b_id, payload.cable_b_fiber_count, payload.cable_b_name)
        _check_fiber(payload.fiber_a, count_a, "a")
        _check_fiber(payload.fiber_b, count_b, "b")
        if payload.otdr_trace_id is not None:
            _require(db, OtdrTrace, payload.otdr_trace_id, "OTDR trace")
        _check_splice_slots(tray, [(payload.fiber_a, payload.fiber_b)])

        data = payload.model_dump(exclude={"cable_a_fiber_count", "cable_b_fiber_count"})
        data["cable_a_name"] = name_a
        data["cable_b_name"] = name_b
        data["tube_a_color"], data["fiber_a_color"] = color_snapshot(payload.fiber_a, count_a)
        data["tube_b_color"], data["fiber_b_color"] = color_snapshot(payload.fiber_b, count_b)
        splice = Splice(**data)
        db.add(splice)
        db.commit()
        db.refresh(splice)
        logger.info("Created splice %s in tray %s (%s -> %s)", splice.id, tray.id, splice.fiber_a, splice.fiber_b)
        return splice

    @staticmethod
    def create_batch(db: Session, payload: SpliceBatchCreate) -> list[Splice]:
        """Persist a run of consecutive splices; nothing is saved if any pair conflicts."""
        tray = _require(db, Tray, payload.tray_id, "Tray")
        count_a, name_a = _resolve_cable(db, payload.cable_a_id, payload.cable_a_fiber_count, payload.cable_a_name)
        count_b, name_b = _resolve_cable(db, payload.cable_b_id, payload.cable_b_fiber_count, payload.cable_b_name)
        count = payload.count
        if count is None:
            count = max(min(count_a - payload.start_fiber_a, count_b - payload.start_fiber_b) + 1, 0)
        rows = generate_batch_splices(
            BatchSpliceInput(
                tray_id=tray.id,
                cable_a_fiber_count=count_a,
                cable_b_fiber_count=count_b,
                start_fiber_a=payload.start_fiber_a,
                start_fiber_b=payload.start_fiber_b,
                count=count,
                cable_a_id=payload.cable_a_id,
                cable_a_name=name_a,
                cable_b_id=payload.cable_b_id,
                cable_b_name=name_b,
                splice_type=payload.splice_type,
                technician_name=payload.technician_name,
            )
        )
        _check_splice_slots(tray, [(row["fiber_a"], row["fiber_b"]) for row in rows])
        splices = [Splice(**row) for row in rows]
        db.add_all(splices)
        db.commit()
        for splice in splices:
            db.refresh(splice)
        logger.info("Created %s splices in tray %s", len(splices), tray.id)
        return splices

    @staticmethod
    def get(db: Session, splice_id: int):
        return _require(db, Splice, splice_id, "Splice")

    @staticmethod
    def list(
        db: Session,
        tray_id: int | None = None,
        status: SpliceStatus | None = None,
        limit: int = 200,
        offset: int = 0,
    ):
        query = db.query(Splice)
        if tray_id is not None:
            query = query.filter(Splice.tray_id == tray_id)
        if status is not None:
            query = query.filter(Splice.status == status)
        return apply_pagination(query.order_by(Splice.fiber_a, Splice.fiber_b), limit, offset).all()

    @staticmethod
    def update(db: Session, splice_id: int, payload: SpliceUpdate):
        splice = _require(db, Splice, splice_id, "Splice")
        data = payload.model_dump(exclude_unset=True)
        if data.get("otdr_trace_id") is not None:
            _require(db, OtdrTrace, data["otdr_trace_id"], "OTDR trace")
        reviving = splice.status == SpliceStatus.failed and data.get("status") not in (None, SpliceStatus.failed)
        if reviving:
            _check_splice_slots(splice.tray, [(splice.fiber_a, splice.fiber_b)], ignore_ids={splice.id})
        for key, value in data.items():
            setattr(splice, key, value)
        db.commit()
        db.refresh(splice)
        return splice

    @staticmethod
    def update_status(db: Session, splice_ids: list[int], status: SpliceStatus) -> int:
        """Set ``status`` on every listed splice; nothing changes if a revived splice conflicts."""
        rows = db.query(Splice).filter(Splice.id.in_(splice_ids)).order_by(Splice.id).all()
        if status != SpliceStatus.failed:
            reviving: dict[int, list[Splice]] = defaultdict(list)
            for splice in rows:
                if splice.status == SpliceStatus.failed:
                    reviving[splice.tray_id].append(splice)
            for revived in reviving.values():
                _check_splice_slots(
                    revived[0].tray,
                    [(splice.fiber_a, splice.fiber_b) for splice in revived],
                    ignore_ids={splice.id for splice in revived},
                )
        for splice in rows:
            splice.status = status
        db.commit()
        return len(rows)

    @staticmethod
    def delete(db: Session, splice_id: int) -> dict[str, int]:
        splice = _require(db, Splice, splice_id, "Splice")
        trace_ids = {splice.otdr_trace_id} if splice.otdr_trace_id is not None else set()
        removed: Counter = Counter()
        db.delete(splice)
        db.flush()
        _release_otdr_traces(db, trace_ids, removed)
        db.commit()
        logger.info("Deleted splice %s", splice_id)
        return dict(removed)


# ---------------------------------------------------------------------------
# Splitters and subscriber ports
# ---------------------------------------------------------------------------


class Splitters(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: SplitterCreate):
        _require(db, Enclosure, payload.enclosure_id, "Enclosure")
        splitter = Splitter(**payload.model_dump())
        db.add(splitter)
        db.commit()
        db.refresh(splitter)
        return splitter

    @staticmethod
    def get(db: Session, splitter_id: int):
        return _require(db, Splitter, splitter_id, "Splitter")

    @staticmethod
    def list(db: Session, enclosure_id: int, limit: int = 100, offset: int = 0):
        query = db.query(Splitter).filter(Splitter.enclosure_id == enclosure_id).order_by(Splitter.id)
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def delete(db: Session, splitter_id: int) -> None:
        splitter = _require(db, Splitter, splitter_id, "Splitter")
        db.query(SubscriberPort).filter(SubscriberPort.splitter_id == splitter.id).update(
            {SubscriberPort.splitter_id: None}
        )
        db.delete(splitter)
        db.commit()


def _check_port_splitter(db: Session, enclosure_id: int, splitter_id: int | None) -> None:
    if splitter_id is None:
        return
    splitter = _require(db, Splitter, splitter_id, "Splitter")
    if splitter.enclosure_id != enclosure_id:
        raise InvalidHierarchy(code="splitter_elsewhere", detail="Splitter belongs to another enclosure")


class SubscriberPorts(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: SubscriberPortCreate):
        _require(db, Enclosure, payload.enclosure_id, "Enclosure")
        _check_port_splitter(db, payload.enclosure_id, payload.splitter_id)
        taken = (
            db.query(SubscriberPort.id)
            .filter(SubscriberPort.enclosure_id == payload.enclosure_id)
            .filter(SubscriberPort.port_number == payload.port_number)
            .first()
        )
        if taken:
            raise _conflict("port_number_taken", f"Port {payload.port_number} already exists in this enclosure")
        port = SubscriberPort(**payload.model_dump())
        db.add(port)
        db.commit()
        db.refresh(port)
        return port

    @staticmethod
    def get(db: Session, port_id: int):
        return _require(db, SubscriberPort, port_id, "Subscriber port")

    @staticmethod
    def list(
        db: Session,
        enclosure_id: int,
        status: PortStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ):
        query = db.query(SubscriberPort).filter(SubscriberPort.enclosure_id == enclosure_id)
        if status is not None:
            query = query.filter(SubscriberPort.status == status)
        return apply_pagination(query.order_by(SubscriberPort.port_number), limit, offset).all()

    @staticmethod
    def update(db: Session, port_id: int, payload: SubscriberPortUpdate):
        port = _require(db, SubscriberPort, port_id, "Subscriber port")
        data = payload.model_dump(exclude_unset=True)
        if "splitter_id" in data:
            _check_port_splitter(db, port.enclosure_id, data["splitter_id"])
        for key, value in data.items():
            setattr(port, key, value)
        db.commit()
        db.refresh(port)
        return port

    @staticmethod
    def delete(db: Session, port_id: int) -> None:
        port = _require(db, SubscriberPort, port_id, "Subscriber port")
        db.delete(port)
        db.commit()


projects = Projects()
head_ends = HeadEnds()
frames = Frames()
frame_ports = FramePorts()
enclosures = Enclosures()
trays = Trays()
cables = Cables()
otdr_traces = OtdrTraces()
splices = Splices()
splitters = Splitters()
subscriber_ports = SubscriberPorts()
