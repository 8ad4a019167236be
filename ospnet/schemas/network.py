from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ospnet.models.network import (
    EnclosureKind,
    FiberType,
    ParentKind,
    PortStatus,
    ProjectStatus,
    SpliceStatus,
    SpliceType,
    SplitterRatio,
)

# ── Parent references ─────────────────────────────────────────────


class HeadEndParent(BaseModel):
    kind: Literal["head_end"] = "head_end"
    head_end_id: int

    @property
    def parent_kind(self) -> ParentKind:
        return ParentKind.head_end

    @property
    def parent_id(self) -> int:
        return self.head_end_id


class FramePortParent(BaseModel):
    kind: Literal["frame_port"] = "frame_port"
    frame_port_id: int

    @property
    def parent_kind(self) -> ParentKind:
        return ParentKind.frame_port

    @property
    def parent_id(self) -> int:
        return self.frame_port_id


class EnclosureParent(BaseModel):
    kind: Literal["enclosure"] = "enclosure"
    enclosure_id: int

    @property
    def parent_kind(self) -> ParentKind:
        return ParentKind.enclosure

    @property
    def parent_id(self) -> int:
        return self.enclosure_id


ParentRef = Annotated[HeadEndParent | FramePortParent | EnclosureParent, Field(discriminator="kind")]


class _Location(BaseModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = None
    notes: str | None = None


# ── Projects ──────────────────────────────────────────────────────


class ProjectBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    location: str | None = Field(default=None, max_length=255)
    description: str | None = None
    status: ProjectStatus = ProjectStatus.active


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    location: str | None = Field(default=None, max_length=255)
    description: str | None = None
    status: ProjectStatus | None = None


class ProjectRead(ProjectBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    updated_at: datetime


# ── Head-end terminals and distribution frames ────────────────────


class HeadEndBase(_Location):
    project_id: int
    name: str = Field(min_length=1, max_length=160)
    port_count: int = Field(default=16, ge=1, le=1024)
    model: str | None = Field(default=None, max_length=120)
    manufacturer: str | None = Field(default=None, max_length=120)


class HeadEndCreate(HeadEndBase):
    pass


class HeadEndUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    port_count: int | None = Field(default=None, ge=1, le=1024)
    model: str | None = None
    manufacturer: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = None
    notes: str | None = None


class HeadEndRead(HeadEndBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


class FrameBase(BaseModel):
    head_end_id: int
    name: str = Field(min_length=1, max_length=160)
    port_count: int = Field(default=24, ge=1, le=576)
    notes: str | None = None


class FrameCreate(FrameBase):
    pass


class FrameRead(FrameBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


class FramePortUpdate(BaseModel):
    status: PortStatus | None = None


class FramePortRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    frame_id: int
    port_number: int
    status: PortStatus
    enclosure_id: int | None = None


# ── Enclosures ────────────────────────────────────────────────────


class EnclosureCreate(_Location):
    project_id: int
    name: str = Field(min_length=1, max_length=160)
    kind: EnclosureKind
    parent: ParentRef | None = None
    tray_count: int = Field(default=0, ge=0, le=48)


class EnclosureUpdate(BaseModel):
    """Partial update; send ``"parent": null`` to detach from the hierarchy."""

    name: str | None = Field(default=None, min_length=1, max_length=160)
    parent: ParentRef | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = None
    notes: str | None = None


class EnclosureRead(_Location):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    name: str
    kind: EnclosureKind
    parent_kind: ParentKind | None = None
    parent_id: int | None = None
    created_at: datetime


# ── Trays and splices ─────────────────────────────────────────────


class TrayCreate(BaseModel):
    enclosure_id: int
    tray_number: int | None = Field(default=None, ge=1)
    capacity: int | None = Field(default=None, ge=1, le=144)
    notes: str | None = None


class TrayUpdate(BaseModel):
    capacity: int | None = Field(default=None, ge=1, le=144)
    notes: str | None = None


class TrayRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    enclosure_id: int
    tray_number: int
    capacity: int
    notes: str | None = None


class CableBase(BaseModel):
    project_id: int
    name: str = Field(min_length=1, max_length=160)
    fiber_count: int = Field(ge=1, le=864)
    fiber_type: FiberType = FiberType.singlemode
    length_m: float | None = Field(default=None, ge=0)
    notes: str | None = None


class CableCreate(CableBase):
    pass


class CableRead(CableBase):
    model_config = ConfigDict(from_attributes=True)

    id: int


class OtdrEvent(BaseModel):
    distance_m: float = Field(ge=0)
    event_type: str = Field(min_length=1, max_length=40)
    loss_db: float | None = None
    reflectance_db: float | None = None


class OtdrTraceCreate(BaseModel):
    filename: str = Field(min_length=1, max_length=255)
    wavelength_nm: int | None = Field(default=None, gt=0)
    pulse_width_ns: int | None = Field(default=None, gt=0)
    range_m: float | None = Field(default=None, ge=0)
    events: list[OtdrEvent] = Field(default_factory=list)
    notes: str | None = None


class OtdrTraceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str
    wavelength_nm: int | None = None
    pulse_width_ns: int | None = None
    range_m: float | None = None
    events: list[OtdrEvent] | None = None
    uploaded_at: datetime


class _SpliceCables(BaseModel):
    cable_a_id: int | None = None
    cable_a_name: str | None = Field(default=None, max_length=160)
    cable_a_fiber_count: int | None = Field(default=None, ge=1, le=864)
    cable_b_id: int | None = None
    cable_b_name: str | None = Field(default=None, max_length=160)
    cable_b_fiber_count: int | None = Field(default=None, ge=1, le=864)


class SpliceCreate(_SpliceCables):
    tray_id: int
    fiber_a: int = Field(ge=1)
    fiber_b: int = Field(ge=1)
    splice_type: SpliceType = SpliceType.fusion
    loss_db: float | None = Field(default=None, ge=0)
    technician_name: str | None = Field(default=None, max_length=160)
    otdr_trace_id: int | None = None
    status: SpliceStatus = SpliceStatus.pending
    notes: str | None = None


class SpliceUpdate(BaseModel):
    splice_type: SpliceType | None = None
    loss_db: float | None = Field(default=None, ge=0)
    technician_name: str | None = Field(default=None, max_length=160)
    otdr_trace_id: int | None = None
    status: SpliceStatus | None = None
    notes: str | None = None


class SpliceBatchCreate(_SpliceCables):
    """Consecutive pairings starting at the given fibers.

    Without ``count`` the cables are matched straight through up to the
    smaller fiber count.
    """

    tray_id: int
    start_fiber_a: int = Field(default=1, ge=1)
    start_fiber_b: int = Field(default=1, ge=1)
    count: int | None = Field(default=None, ge=1, le=864)
    splice_type: SpliceType = SpliceType.fusion
    technician_name: str | None = Field(default=None, max_length=160)


class SpliceStatusBatchUpdate(BaseModel):
    splice_ids: list[int] = Field(min_length=1)
    status: SpliceStatus


class SpliceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tray_id: int
    cable_a_id: int | None = None
    cable_a_name: str | None = None
    fiber_a: int
    tube_a_color: str | None = None
    fiber_a_color: str | None = None
    cable_b_id: int | None = None
    cable_b_name: str | None = None
    fiber_b: int
    tube_b_color: str | None = None
    fiber_b_color: str | None = None
    splice_type: SpliceType
    loss_db: float | None = None
    technician_name: str | None = None
    otdr_trace_id: int | None = None
    status: SpliceStatus
    notes: str | None = None
    created_at: datetime


# ── Splitters and subscriber ports ────────────────────────────────


class SplitterCreate(BaseModel):
    enclosure_id: int
    name: str = Field(min_length=1, max_length=160)
    ratio: SplitterRatio
    notes: str | None = None


class SplitterRead(SplitterCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    insertion_loss_db: float


class SubscriberPortBase(BaseModel):
    enclosure_id: int
    port_number: int = Field(ge=1)
    splitter_id: int | None = None
    status: PortStatus = PortStatus.unconnected
    customer_name: str | None = Field(default=None, max_length=160)
    customer_address: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    service_id: str | None = Field(default=None, max_length=80)
    notes: str | None = None


class SubscriberPortCreate(SubscriberPortBase):
    @model_validator(mode="after")
    def _customer_needs_connection(self) -> SubscriberPortCreate:
        if self.customer_name and self.status == PortStatus.unconnected:
            self.status = PortStatus.connected
        return self


class SubscriberPortUpdate(BaseModel):
    splitter_id: int | None = None
    status: PortStatus | None = None
    customer_name: str | None = Field(default=None, max_length=160)
    customer_address: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    service_id: str | None = Field(default=None, max_length=80)
    notes: str | None = None


class SubscriberPortRead(SubscriberPortBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
