"""Enclosure type rules, delete-impact reporting and hierarchy statistics."""

from __future__ import annotations

import enum
import logging
from collections import Counter
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from ospnet.models.network import (
    Cable,
    DistributionFrame,
    DistributionFramePort,
    Enclosure,
    EnclosureKind,
    HeadEndTerminal,
    ParentKind,
    PortStatus,
    Splice,
    Splitter,
    SubscriberPort,
    Tray,
)
from ospnet.services.errors import InvalidHierarchy
from ospnet.services.store import NetworkStore

logger = logging.getLogger(__name__)


class NodeKind(enum.Enum):
    project = "project"
    head_end = "head_end"
    distribution_frame = "distribution_frame"
    frame_port = "frame_port"
    enclosure = "enclosure"
    tray = "tray"


@dataclass(frozen=True)
class NodeRef:
    kind: NodeKind
    id: int

    @property
    def key(self) -> str:
        return f"{self.kind.value}-{self.id}"


# ---------------------------------------------------------------------------
# Type rules
# ---------------------------------------------------------------------------

ParentType = EnclosureKind | ParentKind

SPLICE_POINT_KINDS = frozenset(
    {
        EnclosureKind.closure,
        EnclosureKind.handhole,
        EnclosureKind.pole_mount,
        EnclosureKind.cabinet,
    }
)

_FEEDS = frozenset({ParentKind.head_end, ParentKind.frame_port})

ALLOWED_PARENTS: dict[EnclosureKind, frozenset[ParentType]] = {
    **{kind: _FEEDS | SPLICE_POINT_KINDS for kind in SPLICE_POINT_KINDS},
    EnclosureKind.building_entry: _FEEDS | SPLICE_POINT_KINDS,
    EnclosureKind.distribution_point: frozenset({ParentKind.head_end})
    | SPLICE_POINT_KINDS
    | {EnclosureKind.building_entry},
    EnclosureKind.termination_point: frozenset({EnclosureKind.distribution_point}),
}

ALLOWED_CHILDREN: dict[EnclosureKind, frozenset[EnclosureKind]] = {
    parent: frozenset(child for child, parents in ALLOWED_PARENTS.items() if parent in parents)
    for parent in EnclosureKind
}


def allowed_parents(child_kind: EnclosureKind) -> frozenset[ParentType]:
    return ALLOWED_PARENTS.get(child_kind, frozenset())


def allowed_children(parent_kind: ParentType) -> frozenset[EnclosureKind]:
    if isinstance(parent_kind, EnclosureKind):
        return ALLOWED_CHILDREN[parent_kind]
    return frozenset(child for child, parents in ALLOWED_PARENTS.items() if parent_kind in parents)


def can_attach(child_kind: EnclosureKind, parent_kind: ParentType) -> bool:
    """Whether an enclosure of ``child_kind`` may hang below ``parent_kind``.

    ``parent_kind`` is either a non-enclosure parent (head-end, frame port) or
    the concrete kind of a parent enclosure. The bare ``ParentKind.enclosure``
    tag carries no kind and is never accepted; resolve the parent row first.
    """
    if parent_kind == ParentKind.enclosure:
        return False
    return parent_kind in allowed_parents(child_kind)


def _label(kind: ParentType) -> str:
    return kind.value.replace("_", " ")


def ensure_can_attach(child_kind: EnclosureKind, parent_kind: ParentType) -> None:
    if not can_attach(child_kind, parent_kind):
        logger.warning(
            "Rejected hierarchy link %s -> %s",
            child_kind.value,
            parent_kind.value,
        )
        raise InvalidHierarchy(
            code="invalid_parent",
            detail=f"A {_label(child_kind)} cannot be attached to a {_label(parent_kind)}",
        )


# ---------------------------------------------------------------------------
# Delete impact
# ---------------------------------------------------------------------------


@dataclass
class DeleteImpact:
    node: NodeRef
    by_kind: Counter[str] = field(default_factory=Counter)
    splice_ids: set[int] = field(default_factory=set, repr=False)
    trace_ids: set[int] = field(default_factory=set, repr=False)

    @property
    def total_descendants(self) -> int:
        return sum(self.by_kind.values())


async def _count_enclosure(
    store: NetworkStore,
    enclosure_id: int,
    impact: DeleteImpact,
    visited: set[tuple[str, int]],
    recurse: bool = True,
) -> None:
    trays = await store.list_by(Tray, enclosure_id=enclosure_id)
    impact.by_kind["tray"] += len(trays)
    for tray in trays:
        await _count_tray(store, tray.id, impact)
    impact.by_kind["splitter"] += len(await store.list_by(Splitter, enclosure_id=enclosure_id))
    impact.by_kind["subscriber_port"] += len(await store.list_by(SubscriberPort, enclosure_id=enclosure_id))
    if recurse:
        await _count_child_enclosures(store, ParentKind.enclosure, enclosure_id, impact, visited)


async def _count_tray(store: NetworkStore, tray_id: int, impact: DeleteImpact) -> None:
    splices = await store.list_by(Splice, tray_id=tray_id)
    impact.by_kind["splice"] += len(splices)
    for splice in splices:
        impact.splice_ids.add(splice.id)
        if splice.otdr_trace_id is not None:
            impact.trace_ids.add(splice.otdr_trace_id)


async def _count_released_traces(store: NetworkStore, impact: DeleteImpact) -> int:
    """Traces whose every referencing splice is inside the deleted subtree."""
    released = 0
    for trace_id in sorted(impact.trace_ids):
        users = await store.list_by(Splice, otdr_trace_id=trace_id)
        if all(splice.id in impact.splice_ids for splice in users):
            released += 1
    return released


async def _count_child_enclosures(
    store: NetworkStore,
    parent_kind: ParentKind,
    parent_id: int,
    impact: DeleteImpact,
    visited: set[tuple[str, int]],
) -> None:
    children = await store.list_by(Enclosure, parent_kind=parent_kind, parent_id=parent_id)
    for child in children:
        key = ("enclosure", child.id)
        if key in visited:
            continue
        visited.add(key)
        impact.by_kind["enclosure"] += 1
        await _count_enclosure(store, child.id, impact, visited)


async def _count_frame(
    store: NetworkStore,
    frame_id: int,
    impact: DeleteImpact,
    visited: set[tuple[str, int]],
) -> None:
    ports = await store.list_by(DistributionFramePort, frame_id=frame_id)
    impact.by_kind["frame_port"] += len(ports)
    for port in ports:
        await _count_child_enclosures(store, ParentKind.frame_port, port.id, impact, visited)


async def _count_head_end(
    store: NetworkStore,
    head_end_id: int,
    impact: DeleteImpact,
    visited: set[tuple[str, int]],
) -> None:
    frames = await store.list_by(DistributionFrame, head_end_id=head_end_id)
    impact.by_kind["distribution_frame"] += len(frames)
    for frame in frames:
        await _count_frame(store, frame.id, impact, visited)
    await _count_child_enclosures(store, ParentKind.head_end, head_end_id, impact, visited)


async def delete_impact_report(store: NetworkStore, node: NodeRef) -> DeleteImpact:
    """Count every record a cascading delete of ``node`` would remove.

    The node itself is not included. Child enclosures are followed through
    their tagged parent reference with a visited set, so a corrupted parent
    cycle is counted once instead of recursing forever.
    """
    impact = DeleteImpact(node=node)
    visited: set[tuple[str, int]] = {(node.kind.value, node.id)}

    if node.kind == NodeKind.enclosure:
        await _count_enclosure(store, node.id, impact, visited)
    elif node.kind == NodeKind.tray:
        await _count_tray(store, node.id, impact)
    elif node.kind == NodeKind.frame_port:
        await _count_child_enclosures(store, ParentKind.frame_port, node.id, impact, visited)
    elif node.kind == NodeKind.distribution_frame:
        await _count_frame(store, node.id, impact, visited)
    elif node.kind == NodeKind.head_end:
        await _count_head_end(store, node.id, impact, visited)
    elif node.kind == NodeKind.project:
        head_ends = await store.list_by(HeadEndTerminal, project_id=node.id)
        impact.by_kind["head_end"] += len(head_ends)
        for head_end in head_ends:
            frames = await store.list_by(DistributionFrame, head_end_id=head_end.id)
            impact.by_kind["distribution_frame"] += len(frames)
            for frame in frames:
                impact.by_kind["frame_port"] += len(await store.list_by(DistributionFramePort, frame_id=frame.id))
        # Every enclosure is project scoped, parented or not.
        enclosures = await store.list_by(Enclosure, project_id=node.id)
        impact.by_kind["enclosure"] += len(enclosures)
        for enclosure in enclosures:
            await _count_enclosure(store, enclosure.id, impact, visited, recurse=False)
        impact.by_kind["cable"] += len(await store.list_by(Cable, project_id=node.id))

    impact.by_kind["otdr_trace"] += await _count_released_traces(store, impact)
    impact.by_kind = Counter({kind: count for kind, count in impact.by_kind.items() if count})
    return impact


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


@dataclass
class HierarchyStats:
    closure_count: int = 0
    distribution_point_count: int = 0
    termination_point_count: int = 0
    customer_count: int = 0
    splitter_count: int = 0
    tray_count: int = 0
    total_ports: int = 0
    connected_ports: int = 0

    @property
    def utilization(self) -> int:
        if not self.total_ports:
            return 0
        return round(self.connected_ports / self.total_ports * 100)


def child_enclosures(db: Session, parent_kind: ParentKind, parent_id: int) -> list[Enclosure]:
    return (
        db.query(Enclosure)
        .filter(Enclosure.parent_kind == parent_kind)
        .filter(Enclosure.parent_id == parent_id)
        .order_by(Enclosure.id)
        .all()
    )


def _descendant_enclosures(db: Session, roots: list[Enclosure]) -> list[Enclosure]:
    seen: set[int] = set()
    ordered: list[Enclosure] = []
    stack = list(reversed(roots))
    while stack:
        enclosure = stack.pop()
        if enclosure.id in seen:
            continue
        seen.add(enclosure.id)
        ordered.append(enclosure)
        stack.extend(reversed(child_enclosures(db, ParentKind.enclosure, enclosure.id)))
    return ordered


def hierarchy_stats(
    db: Session,
    enclosure_id: int | None = None,
    head_end_id: int | None = None,
) -> HierarchyStats:
    """Roll up everything below an enclosure or a head-end.

    For an enclosure the enclosure itself contributes its trays, splitters
    and ports; only descendants are counted by kind.
    """
    if enclosure_id is not None:
        root = db.get(Enclosure, enclosure_id)
        if root is None:
            return HierarchyStats()
        members = _descendant_enclosures(db, [root])
        counted_kinds = members[1:]
    elif head_end_id is not None:
        roots = child_enclosures(db, ParentKind.head_end, head_end_id)
        port_ids = [
            port_id
            for (port_id,) in db.query(DistributionFramePort.id)
            .join(DistributionFrame, DistributionFrame.id == DistributionFramePort.frame_id)
            .filter(DistributionFrame.head_end_id == head_end_id)
            .all()
        ]
        for port_id in port_ids:
            roots.extend(child_enclosures(db, ParentKind.frame_port, port_id))
        members = _descendant_enclosures(db, roots)
        counted_kinds = members
    else:
        return HierarchyStats()

    stats = HierarchyStats()
    for enclosure in counted_kinds:
        if enclosure.kind in SPLICE_POINT_KINDS:
            stats.closure_count += 1
        elif enclosure.kind == EnclosureKind.distribution_point:
            stats.distribution_point_count += 1
        elif enclosure.kind == EnclosureKind.termination_point:
            stats.termination_point_count += 1
    for enclosure in members:
        stats.tray_count += len(enclosure.trays)
        stats.splitter_count += len(enclosure.splitters)
        for port in enclosure.subscriber_ports:
            stats.total_ports += 1
            if port.status == PortStatus.connected:
                stats.connected_ports += 1
    stats.customer_count = stats.connected_ports
    return stats


def port_stats(db: Session, enclosure_id: int) -> dict[str, int]:
    ports = db.query(SubscriberPort).filter(SubscriberPort.enclosure_id == enclosure_id).all()
    counts = Counter(port.status.value for port in ports)
    result = {"total": len(ports)}
    for status in PortStatus:
        result[status.value] = counts.get(status.value, 0)
    return result


def orphaned_enclosures(
    db: Session,
    project_id: int,
    kind: EnclosureKind | None = None,
) -> list[Enclosure]:
    query = (
        db.query(Enclosure)
        .filter(Enclosure.project_id == project_id)
        .filter((Enclosure.parent_kind.is_(None)) | (Enclosure.parent_id.is_(None)))
    )
    if kind is not None:
        query = query.filter(Enclosure.kind == kind)
    return query.order_by(Enclosure.id).all()
