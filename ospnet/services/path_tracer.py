"""Bidirectional fiber path tracing.

A trace starts at any head-end, distribution frame, frame port or enclosure
and reconstructs one representative circuit: an upstream walk follows tagged
parent references to the head-end, then a downstream walk descends through
the first eligible child at each level to a subscriber port. Each walk
threads an immutable :class:`TraceContext` and returns the updated one.

Broken references and parent cycles end a walk early and are reported in
``missing_links``; they never abort the trace. Any other exception is caught
at the top level and returned as ``TraceResult(success=False)``.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace

from ospnet.config import settings
from ospnet.models.network import (
    DistributionFrame,
    DistributionFramePort,
    Enclosure,
    EnclosureKind,
    HeadEndTerminal,
    ParentKind,
    PortStatus,
    Splice,
    SpliceStatus,
    Splitter,
    SubscriberPort,
    Tray,
)
from ospnet.services.errors import TraceFailure
from ospnet.services.fiber_colors import color_info
from ospnet.services.hierarchy import NodeKind, NodeRef
from ospnet.services.store import NetworkStore
from ospnet.telemetry import get_tracer

logger = logging.getLogger(__name__)

_TRACEABLE = frozenset({NodeKind.head_end, NodeKind.distribution_frame, NodeKind.frame_port, NodeKind.enclosure})


class TraceStatus(enum.Enum):
    complete = "complete"
    partial = "partial"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FiberIdentity:
    number: int
    tube_color: str
    fiber_color: str


@dataclass(frozen=True)
class SpliceHop:
    splice_id: int
    tray_id: int
    tray_number: int
    loss_db: float
    measured: bool
    status: str


@dataclass(frozen=True)
class SplitterHop:
    splitter_id: int
    ratio: str
    insertion_loss_db: float


@dataclass(frozen=True)
class PortHop:
    port_id: int
    port_number: int
    status: str
    customer_name: str | None = None
    customer_address: str | None = None
    service_id: str | None = None


@dataclass(frozen=True)
class PathSegment:
    order: int
    node_id: str
    node_kind: str
    node_name: str
    db_id: int
    fiber_in: FiberIdentity | None = None
    fiber_out: FiberIdentity | None = None
    splice: SpliceHop | None = None
    splitter: SplitterHop | None = None
    port: PortHop | None = None


@dataclass(frozen=True)
class TraceEdge:
    """Edge drawn by a rendering collaborator between two ``node_id`` values."""

    id: str
    source: str
    target: str


@dataclass
class FiberPath:
    start_node_id: str
    start_description: str
    end_node_id: str
    end_description: str
    segments: list[PathSegment]
    total_loss: float
    splice_count: int
    connector_count: int
    status: TraceStatus
    missing_links: list[str]


@dataclass
class TraceResult:
    success: bool
    path: FiberPath | None = None
    error: str | None = None
    highlighted_node_ids: list[str] = field(default_factory=list)
    highlighted_edge_ids: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Trace context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TraceContext:
    visited: frozenset[str] = frozenset()
    segments: tuple[PathSegment, ...] = ()
    total_loss: float = 0.0
    splice_count: int = 0
    connector_count: int = 0
    missing_links: tuple[str, ...] = ()

    def visit(self, key: str) -> TraceContext:
        return replace(self, visited=self.visited | {key})

    def reset_visited(self, start: NodeRef) -> TraceContext:
        """Forget upstream visits, keeping only the start node."""
        return replace(self, visited=frozenset({start.key}))

    def prepend(self, segment: PathSegment) -> TraceContext:
        return replace(self, segments=(segment, *self.segments))

    def append(self, segment: PathSegment) -> TraceContext:
        return replace(self, segments=(*self.segments, segment))

    def missing(self, message: str) -> TraceContext:
        logger.warning("Trace missing link: %s", message)
        return replace(self, missing_links=(*self.missing_links, message))

    def add_splice(self, loss_db: float) -> TraceContext:
        return replace(self, total_loss=self.total_loss + loss_db, splice_count=self.splice_count + 1)

    def add_loss(self, loss_db: float) -> TraceContext:
        return replace(self, total_loss=self.total_loss + loss_db)

    def add_connector(self) -> TraceContext:
        return replace(self, connector_count=self.connector_count + 1)


# ---------------------------------------------------------------------------
# Segment helpers
# ---------------------------------------------------------------------------


def _fiber_identity(
    number: int | None,
    tube_color: str | None = None,
    fiber_color: str | None = None,
) -> FiberIdentity | None:
    if number is None:
        return None
    info = color_info(number, settings.trace_default_cable_fiber_count)
    return FiberIdentity(
        number=number,
        tube_color=tube_color or (info.tube_color.name if info else "Unknown"),
        fiber_color=fiber_color or (info.fiber_color.name if info else "Unknown"),
    )


def _node_id(kind: NodeKind, db_id: int) -> str:
    return NodeRef(kind, db_id).key


def _enclosure_name(enclosure: Enclosure) -> str:
    return enclosure.name or f"{enclosure.kind.value.upper()}-{enclosure.id}"


async def _find_splice(
    store: NetworkStore,
    enclosure_id: int,
    fiber: int | None,
    side: str,
) -> tuple[Splice, Tray] | None:
    """First non-failed splice in the enclosure with ``fiber`` on ``side``."""
    if fiber is None:
        return None
    for tray in await store.list_by(Tray, enclosure_id=enclosure_id):
        for splice in await store.list_by(Splice, tray_id=tray.id):
            if splice.status == SpliceStatus.failed:
                continue
            if getattr(splice, side) == fiber:
                return splice, tray
    return None


async def _first_connected_port(store: NetworkStore, enclosure_id: int) -> PortHop | None:
    for port in await store.list_by(SubscriberPort, enclosure_id=enclosure_id):
        if port.status == PortStatus.connected:
            return PortHop(
                port_id=port.id,
                port_number=port.port_number,
                status=port.status.value,
                customer_name=port.customer_name,
                customer_address=port.customer_address,
                service_id=port.service_id,
            )
    return None


async def _enclosure_segment(
    store: NetworkStore,
    enclosure: Enclosure,
    fiber: int | None,
    ctx: TraceContext,
    upstream: bool,
) -> tuple[TraceContext, PathSegment, int | None]:
    """Build the segment for one enclosure and account for its losses.

    Walking upstream the current fiber arrives on the B side of a splice and
    leaves on the A side; downstream it is the reverse. Returns the updated
    context, the segment and the fiber to follow next.
    """
    segment = PathSegment(
        order=0,
        node_id=_node_id(NodeKind.enclosure, enclosure.id),
        node_kind=enclosure.kind.value,
        node_name=_enclosure_name(enclosure),
        db_id=enclosure.id,
        fiber_in=_fiber_identity(fiber),
    )
    next_fiber = fiber

    found = await _find_splice(store, enclosure.id, fiber, "fiber_b" if upstream else "fiber_a")
    if found is not None:
        splice, tray = found
        side_a = _fiber_identity(splice.fiber_a, splice.tube_a_color, splice.fiber_a_color)
        side_b = _fiber_identity(splice.fiber_b, splice.tube_b_color, splice.fiber_b_color)
        measured = splice.loss_db is not None
        loss = splice.loss_db if measured else settings.trace_assumed_splice_loss_db
        segment = replace(
            segment,
            fiber_in=side_b if upstream else side_a,
            fiber_out=side_a if upstream else side_b,
            splice=SpliceHop(
                splice_id=splice.id,
                tray_id=tray.id,
                tray_number=tray.tray_number,
                loss_db=loss,
                measured=measured,
                status=splice.status.value,
            ),
        )
        ctx = ctx.add_splice(loss)
        next_fiber = splice.fiber_a if upstream else splice.fiber_b

    if enclosure.kind == EnclosureKind.distribution_point:
        splitters = await store.list_by(Splitter, enclosure_id=enclosure.id)
        if splitters:
            splitter = splitters[0]
            segment = replace(
                segment,
                splitter=SplitterHop(
                    splitter_id=splitter.id,
                    ratio=splitter.ratio.value,
                    insertion_loss_db=splitter.insertion_loss_db,
                ),
            )
            ctx = ctx.add_loss(splitter.insertion_loss_db)

    if enclosure.kind == EnclosureKind.termination_point:
        port = await _first_connected_port(store, enclosure.id)
        if port is not None:
            segment = replace(segment, port=port)

    return ctx, segment, next_fiber


def _frame_segment(
    frame: DistributionFrame,
    port: DistributionFramePort | None,
    fiber: int | None,
) -> PathSegment:
    port_hop = None
    if port is not None:
        port_hop = PortHop(port_id=port.id, port_number=port.port_number, status=port.status.value)
    return PathSegment(
        order=0,
        node_id=_node_id(NodeKind.distribution_frame, frame.id),
        node_kind=NodeKind.distribution_frame.value,
        node_name=frame.name or f"ODF-{frame.id}",
        db_id=frame.id,
        fiber_in=_fiber_identity(fiber),
        port=port_hop,
    )


def _head_end_segment(head_end: HeadEndTerminal, fiber: int | None) -> PathSegment:
    return PathSegment(
        order=0,
        node_id=_node_id(NodeKind.head_end, head_end.id),
        node_kind=NodeKind.head_end.value,
        node_name=head_end.name or f"OLT-{head_end.id}",
        db_id=head_end.id,
        fiber_out=_fiber_identity(fiber),
    )


async def _frame_port_by_number(
    store: NetworkStore, frame_id: int, port_number: int | None
) -> DistributionFramePort | None:
    if port_number is None:
        return None
    for port in await store.list_by(DistributionFramePort, frame_id=frame_id):
        if port.port_number == port_number:
            return port
    return None


# ---------------------------------------------------------------------------
# Upstream walk
# ---------------------------------------------------------------------------


async def walk_upstream(
    store: NetworkStore,
    start: NodeRef,
    fiber: int | None,
    ctx: TraceContext,
    max_steps: int | None = None,
) -> TraceContext:
    """Walk from ``start`` toward the head-end, prepending segments.

    The start node is the first step, so its own splice and splitter losses
    are counted here and not again downstream.
    """
    current: NodeRef | None = start
    for _ in range(max_steps or settings.trace_max_steps):
        if current is None:
            return ctx
        if current.key in ctx.visited:
            return ctx.missing(f"Loop detected at {current.key}")
        ctx = ctx.visit(current.key)

        if current.kind == NodeKind.head_end:
            head_end = await store.get(HeadEndTerminal, current.id)
            if head_end is None:
                return ctx.missing(f"Head-end {current.id} not found")
            return ctx.prepend(_head_end_segment(head_end, fiber))

        if current.kind in (NodeKind.distribution_frame, NodeKind.frame_port):
            if current.kind == NodeKind.frame_port:
                port = await store.get(DistributionFramePort, current.id)
                if port is None:
                    return ctx.missing(f"Frame port {current.id} not found")
                frame = await store.get(DistributionFrame, port.frame_id)
                fiber = port.port_number
            else:
                frame = await store.get(DistributionFrame, current.id)
                port = None
            if frame is None:
                return ctx.missing(f"Distribution frame {port.frame_id if port else current.id} not found")
            if port is None:
                port = await _frame_port_by_number(store, frame.id, fiber)
            if port is not None:
                ctx = ctx.add_connector()
            ctx = ctx.prepend(_frame_segment(frame, port, fiber))
            current = NodeRef(NodeKind.head_end, frame.head_end_id)
            continue

        enclosure = await store.get(Enclosure, current.id)
        if enclosure is None:
            return ctx.missing(f"Enclosure {current.id} not found")
        ctx, segment, fiber = await _enclosure_segment(store, enclosure, fiber, ctx, upstream=True)
        ctx = ctx.prepend(segment)

        if enclosure.parent_kind is None or enclosure.parent_id is None:
            return ctx.missing(f"{enclosure.kind.value} {_enclosure_name(enclosure)} has no upstream connection")
        if enclosure.parent_kind == ParentKind.head_end:
            current = NodeRef(NodeKind.head_end, enclosure.parent_id)
        elif enclosure.parent_kind == ParentKind.frame_port:
            current = NodeRef(NodeKind.frame_port, enclosure.parent_id)
        else:
            current = NodeRef(NodeKind.enclosure, enclosure.parent_id)

    return ctx.missing("Upstream trace step limit reached")


# ---------------------------------------------------------------------------
# Downstream walk
# ---------------------------------------------------------------------------


async def _first_child_enclosure(store: NetworkStore, parent_kind: ParentKind, parent_id: int) -> Enclosure | None:
    children = await store.list_by(Enclosure, parent_kind=parent_kind, parent_id=parent_id)
    return children[0] if children else None


async def _port_enclosure(store: NetworkStore, port: DistributionFramePort) -> Enclosure | None:
    if port.enclosure_id is not None:
        enclosure = await store.get(Enclosure, port.enclosure_id)
        if enclosure is not None:
            return enclosure
    return await _first_child_enclosure(store, ParentKind.frame_port, port.id)


async def _pick_frame_port(
    store: NetworkStore, frame_id: int, fiber: int | None
) -> tuple[DistributionFramePort, Enclosure] | None:
    """First connected port feeding an enclosure, preferring ``fiber``'s port."""
    candidates = []
    for port in await store.list_by(DistributionFramePort, frame_id=frame_id):
        if port.status != PortStatus.connected:
            continue
        enclosure = await _port_enclosure(store, port)
        if enclosure is not None:
            candidates.append((port, enclosure))
    for port, enclosure in candidates:
        if port.port_number == fiber:
            return port, enclosure
    return candidates[0] if candidates else None


async def walk_downstream(
    store: NetworkStore,
    start: NodeRef,
    fiber: int | None,
    ctx: TraceContext,
    max_steps: int | None = None,
) -> TraceContext:
    """Walk from ``start`` toward a subscriber, appending segments.

    The start node's segment already exists; only nodes below it are added.
    Only the first eligible child is followed at each level.
    """
    current = start
    for step in range(max_steps or settings.trace_max_steps):
        is_start = step == 0
        if not is_start:
            if current.key in ctx.visited:
                return ctx.missing(f"Loop detected at {current.key}")
            ctx = ctx.visit(current.key)

        if current.kind == NodeKind.head_end:
            head_end = await store.get(HeadEndTerminal, current.id)
            if head_end is None:
                return ctx.missing(f"Head-end {current.id} not found")
            frames = await store.list_by(DistributionFrame, head_end_id=head_end.id)
            if frames:
                current = NodeRef(NodeKind.distribution_frame, frames[0].id)
                continue
            child = await _first_child_enclosure(store, ParentKind.head_end, head_end.id)
            if child is None:
                return ctx.missing(f"No distribution frame or enclosure connected to head-end {head_end.name}")
            current = NodeRef(NodeKind.enclosure, child.id)
            continue

        if current.kind == NodeKind.distribution_frame:
            frame = await store.get(DistributionFrame, current.id)
            if frame is None:
                return ctx.missing(f"Distribution frame {current.id} not found")
            picked = await _pick_frame_port(store, frame.id, fiber)
            if picked is None:
                if not is_start:
                    ctx = ctx.append(_frame_segment(frame, None, fiber))
                return ctx.missing(f"No enclosure connected to distribution frame {frame.name}")
            port, enclosure = picked
            fiber = port.port_number
            if not is_start:
                ctx = ctx.add_connector().append(_frame_segment(frame, port, fiber))
            current = NodeRef(NodeKind.enclosure, enclosure.id)
            continue

        if current.kind == NodeKind.frame_port:
            port = await store.get(DistributionFramePort, current.id)
            if port is None:
                return ctx.missing(f"Frame port {current.id} not found")
            enclosure = await _port_enclosure(store, port)
            if enclosure is None:
                return ctx.missing(f"No enclosure connected to frame port {port.port_number}")
            fiber = port.port_number
            current = NodeRef(NodeKind.enclosure, enclosure.id)
            continue

        enclosure = await store.get(Enclosure, current.id)
        if enclosure is None:
            return ctx.missing(f"Enclosure {current.id} not found")
        if not is_start:
            ctx, segment, fiber = await _enclosure_segment(store, enclosure, fiber, ctx, upstream=False)
            ctx = ctx.append(segment)
        if enclosure.kind == EnclosureKind.termination_point:
            return ctx
        child = await _first_child_enclosure(store, ParentKind.enclosure, enclosure.id)
        if child is None:
            return ctx
        current = NodeRef(NodeKind.enclosure, child.id)

    return ctx.missing("Downstream trace step limit reached")


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def highlight_edges(segments: list[PathSegment], edges: Iterable[TraceEdge]) -> list[str]:
    """Ids of edges joining consecutive segments, in path order."""
    by_endpoints: dict[frozenset[str], str] = {}
    for edge in edges:
        by_endpoints.setdefault(frozenset((edge.source, edge.target)), edge.id)
    highlighted = []
    for left, right in zip(segments, segments[1:], strict=False):
        edge_id = by_endpoints.get(frozenset((left.node_id, right.node_id)))
        if edge_id is not None:
            highlighted.append(edge_id)
    return highlighted


def assemble_path(ctx: TraceContext) -> FiberPath:
    segments = [replace(segment, order=index) for index, segment in enumerate(ctx.segments)]
    first = segments[0] if segments else None
    last = segments[-1] if segments else None
    return FiberPath(
        start_node_id=first.node_id if first else "",
        start_description=first.node_name if first else "Unknown",
        end_node_id=last.node_id if last else "",
        end_description=last.node_name if last else "Unknown",
        segments=segments,
        total_loss=round(ctx.total_loss, 2),
        splice_count=ctx.splice_count,
        connector_count=ctx.connector_count,
        status=TraceStatus.complete if not ctx.missing_links else TraceStatus.partial,
        missing_links=list(ctx.missing_links),
    )


async def trace_path(
    store: NetworkStore,
    start: NodeRef,
    start_fiber: int | None = None,
    edges: Iterable[TraceEdge] | None = None,
    max_steps: int | None = None,
) -> TraceResult:
    """Trace the circuit through ``start``; never raises."""
    tracer = get_tracer(__name__)
    with tracer.start_as_current_span("network.trace_path") as span:
        span.set_attribute("trace.start_kind", start.kind.value)
        span.set_attribute("trace.start_id", start.id)
        try:
            if start.kind not in _TRACEABLE:
                raise TraceFailure(
                    code="untraceable_node",
                    detail=f"Cannot trace from a {start.kind.value.replace('_', ' ')}",
                )
            ctx = await walk_upstream(store, start, start_fiber, TraceContext(), max_steps)
            ctx = ctx.reset_visited(start)
            ctx = await walk_downstream(store, start, start_fiber, ctx, max_steps)
            path = assemble_path(ctx)
        except Exception as exc:
            logger.exception("Fiber trace from %s failed", start.key)
            span.set_attribute("trace.status", "error")
            return TraceResult(success=False, error=str(exc) or "Unknown error during path tracing")

        span.set_attribute("trace.status", path.status.value)
        span.set_attribute("trace.segment_count", len(path.segments))
        span.set_attribute("trace.total_loss_db", path.total_loss)
        return TraceResult(
            success=True,
            path=path,
            highlighted_node_ids=[segment.node_id for segment in path.segments],
            highlighted_edge_ids=highlight_edges(path.segments, edges or []),
        )
