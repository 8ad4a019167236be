import enum
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ospnet.db import Base


class ProjectStatus(enum.Enum):
    active = "active"
    completed = "completed"
    archived = "archived"


class EnclosureKind(enum.Enum):
    closure = "closure"
    distribution_point = "distribution_point"
    termination_point = "termination_point"
    handhole = "handhole"
    building_entry = "building_entry"
    pole_mount = "pole_mount"
    cabinet = "cabinet"


class ParentKind(enum.Enum):
    head_end = "head_end"
    frame_port = "frame_port"
    enclosure = "enclosure"


class SpliceType(enum.Enum):
    fusion = "fusion"
    mechanical = "mechanical"


class SpliceStatus(enum.Enum):
    pending = "pending"
    completed = "completed"
    needs_review = "needs_review"
    failed = "failed"


class SplitterRatio(enum.Enum):
    ratio_1x2 = "1:2"
    ratio_1x4 = "1:4"
    ratio_1x8 = "1:8"
    ratio_1x16 = "1:16"
    ratio_1x32 = "1:32"

    @property
    def insertion_loss_db(self) -> float:
        return SPLITTER_INSERTION_LOSS_DB[self]


# Typical insertion loss per ratio, connectors excluded.
SPLITTER_INSERTION_LOSS_DB: dict[SplitterRatio, float] = {
    SplitterRatio.ratio_1x2: 3.5,
    SplitterRatio.ratio_1x4: 7.0,
    SplitterRatio.ratio_1x8: 10.5,
    SplitterRatio.ratio_1x16: 14.0,
    SplitterRatio.ratio_1x32: 17.5,
}


class PortStatus(enum.Enum):
    connected = "connected"
    unconnected = "unconnected"
    reserved = "reserved"
    faulty = "faulty"


class FiberType(enum.Enum):
    singlemode = "singlemode"
    multimode = "multimode"


def _now() -> datetime:
    return datetime.now(UTC)


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    location: Mapped[str | None] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text)
    status: Mapped[ProjectStatus] = mapped_column(Enum(ProjectStatus), default=ProjectStatus.active)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)

    head_ends = relationship("HeadEndTerminal", back_populates="project")
    enclosures = relationship("Enclosure", back_populates="project")
    cables = relationship("Cable", back_populates="project")


class HeadEndTerminal(Base):
    __tablename__ = "head_end_terminals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    port_count: Mapped[int] = mapped_column(Integer, default=16)
    model: Mapped[str | None] = mapped_column(String(120))
    manufacturer: Mapped[str | None] = mapped_column(String(120))
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    address: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    project = relationship("Project", back_populates="head_ends")
    frames = relationship(
        "DistributionFrame",
        back_populates="head_end",
        cascade="all, delete-orphan",
        order_by="DistributionFrame.id",
    )


class DistributionFrame(Base):
    __tablename__ = "distribution_frames"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    head_end_id: Mapped[int] = mapped_column(ForeignKey("head_end_terminals.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    port_count: Mapped[int] = mapped_column(Integer, default=24)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    head_end = relationship("HeadEndTerminal", back_populates="frames")
    ports = relationship(
        "DistributionFramePort",
        back_populates="frame",
        cascade="all, delete-orphan",
        order_by="DistributionFramePort.port_number",
    )


class DistributionFramePort(Base):
    __tablename__ = "distribution_frame_ports"
    __table_args__ = (UniqueConstraint("frame_id", "port_number", name="uq_frame_ports_frame_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    frame_id: Mapped[int] = mapped_column(ForeignKey("distribution_frames.id"), nullable=False, index=True)
    port_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PortStatus] = mapped_column(Enum(PortStatus), default=PortStatus.unconnected)
    enclosure_id: Mapped[int | None] = mapped_column(ForeignKey("enclosures.id"))

    frame = relationship("DistributionFrame", back_populates="ports")
    enclosure = relationship("Enclosure")


class Enclosure(Base):
    __tablename__ = "enclosures"
    __table_args__ = (Index("ix_enclosures_parent", "parent_kind", "parent_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    kind: Mapped[EnclosureKind] = mapped_column(Enum(EnclosureKind), nullable=False)
    # Tagged reference: the target table depends on parent_kind, so no FK.
    parent_kind: Mapped[ParentKind | None] = mapped_column(Enum(ParentKind))
    parent_id: Mapped[int | None] = mapped_column(Integer)
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    address: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)

    project = relationship("Project", back_populates="enclosures")
    trays = relationship(
        "Tray",
        back_populates="enclosure",
        cascade="all, delete-orphan",
        order_by="Tray.tray_number",
    )
    splitters = relationship(
        "Splitter",
        back_populates="enclosure",
        cascade="all, delete-orphan",
        order_by="Splitter.id",
    )
    subscriber_ports = relationship(
        "SubscriberPort",
        back_populates="enclosure",
        cascade="all, delete-orphan",
        order_by="SubscriberPort.port_number",
    )


class Tray(Base):
    __tablename__ = "trays"
    __table_args__ = (UniqueConstraint("enclosure_id", "tray_number", name="uq_trays_enclosure_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    enclosure_id: Mapped[int] = mapped_column(ForeignKey("enclosures.id"), nullable=False, index=True)
    tray_number: Mapped[int] = mapped_column(Integer, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, default=12)
    notes: Mapped[str | None] = mapped_column(Text)

    enclosure = relationship("Enclosure", back_populates="trays")
    splices = relationship(
        "Splice",
        back_populates="tray",
        cascade="all, delete-orphan",
        order_by="Splice.id",
    )


class Cable(Base):
    __tablename__ = "cables"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    fiber_count: Mapped[int] = mapped_column(Integer, nullable=False)
    fiber_type: Mapped[FiberType] = mapped_column(Enum(FiberType), default=FiberType.singlemode)
    length_m: Mapped[float | None] = mapped_column(Float)
    notes: Mapped[str | None] = mapped_column(Text)

    project = relationship("Project", back_populates="cables")


class OtdrTrace(Base):
    __tablename__ = "otdr_traces"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    wavelength_nm: Mapped[int | None] = mapped_column(Integer)
    pulse_width_ns: Mapped[int | None] = mapped_column(Integer)
    range_m: Mapped[float | None] = mapped_column(Float)
    events: Mapped[list | None] = mapped_column(JSON)
    notes: Mapped[str | None] = mapped_column(Text)

    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)


class Splice(Base):
    __tablename__ = "splices"
    __table_args__ = (UniqueConstraint("tray_id", "fiber_a", "fiber_b", name="uq_splices_tray_fibers"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tray_id: Mapped[int] = mapped_column(ForeignKey("trays.id"), nullable=False, index=True)

    cable_a_id: Mapped[int | None] = mapped_column(ForeignKey("cables.id"))
    cable_a_name: Mapped[str | None] = mapped_column(String(160))
    fiber_a: Mapped[int] = mapped_column(Integer, nullable=False)
    tube_a_color: Mapped[str | None] = mapped_column(String(20))
    fiber_a_color: Mapped[str | None] = mapped_column(String(20))

    cable_b_id: Mapped[int | None] = mapped_column(ForeignKey("cables.id"))
    cable_b_name: Mapped[str | None] = mapped_column(String(160))
    fiber_b: Mapped[int] = mapped_column(Integer, nullable=False)
    tube_b_color: Mapped[str | None] = mapped_column(String(20))
    fiber_b_color: Mapped[str | None] = mapped_column(String(20))

    splice_type: Mapped[SpliceType] = mapped_column(Enum(SpliceType), default=SpliceType.fusion)
    loss_db: Mapped[float | None] = mapped_column(Float)
    technician_name: Mapped[str | None] = mapped_column(String(160))
    otdr_trace_id: Mapped[int | None] = mapped_column(ForeignKey("otdr_traces.id"))
    status: Mapped[SpliceStatus] = mapped_column(Enum(SpliceStatus), default=SpliceStatus.pending)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)

    tray = relationship("Tray", back_populates="splices")
    cable_a = relationship("Cable", foreign_keys=[cable_a_id])
    cable_b = relationship("Cable", foreign_keys=[cable_b_id])
    otdr_trace = relationship("OtdrTrace")


class Splitter(Base):
    __tablename__ = "splitters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    enclosure_id: Mapped[int] = mapped_column(ForeignKey("enclosures.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    ratio: Mapped[SplitterRatio] = mapped_column(Enum(SplitterRatio), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    enclosure = relationship("Enclosure", back_populates="splitters")

    @property
    def insertion_loss_db(self) -> float:
        return self.ratio.insertion_loss_db


class SubscriberPort(Base):
    __tablename__ = "subscriber_ports"
    __table_args__ = (UniqueConstraint("enclosure_id", "port_number", name="uq_subscriber_ports_enclosure_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    enclosure_id: Mapped[int] = mapped_column(ForeignKey("enclosures.id"), nullable=False, index=True)
    splitter_id: Mapped[int | None] = mapped_column(ForeignKey("splitters.id"))
    port_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PortStatus] = mapped_column(Enum(PortStatus), default=PortStatus.unconnected)
    customer_name: Mapped[str | None] = mapped_column(String(160))
    customer_address: Mapped[str | None] = mapped_column(Text)
    latitude: Mapped[float | None] = mapped_column(Float)
    longitude: Mapped[float | None] = mapped_column(Float)
    service_id: Mapped[str | None] = mapped_column(String(80))
    notes: Mapped[str | None] = mapped_column(Text)

    enclosure = relationship("Enclosure", back_populates="subscriber_ports")
    splitter = relationship("Splitter")
