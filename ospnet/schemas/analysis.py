from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from ospnet.models.network import FiberType
from ospnet.services.compliance import ComplianceStatus, LossStatus
from ospnet.services.hierarchy import NodeKind
from ospnet.services.path_tracer import TraceStatus

# ── Fiber colors ──────────────────────────────────────────────────


class ColorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    hex: str
    text_color: str


class FiberColorRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fiber_number: int
    tube_number: int
    position_in_tube: int
    tube_color: ColorRead
    fiber_color: ColorRead
    tube_color_index: int
    fiber_color_index: int
    label: str
    display: str


class FiberOrdinalRead(BaseModel):
    tube_number: int
    position_in_tube: int
    cable_fiber_count: int
    fiber_number: int


class TubeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tube_number: int
    color: ColorRead
    start_fiber: int
    end_fiber: int
    tube_group: int | None = None


class MatrixCellRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fiber_a: int
    fiber_b: int
    color_info_a: FiberColorRead
    color_info_b: FiberColorRead
    splice_id: int | None = None


# ── Loss budget ───────────────────────────────────────────────────


class LossBudgetRequest(BaseModel):
    fiber_type: FiberType = FiberType.singlemode
    wavelength_nm: int = 1310
    distance_km: float = Field(default=0, ge=0)
    fusion_splice_count: int = Field(default=0, ge=0)
    mechanical_splice_count: int = Field(default=0, ge=0)
    connector_pair_count: int = Field(default=0, ge=0)
    connector_type: str = "LC"
    use_max_values: bool = False
    margin_db: float = Field(default=0, ge=0)
    equipment_class: str | None = None


class PowerBudgetRequest(BaseModel):
    total_loss: float = Field(ge=0)
    equipment_class: str


class PowerBudgetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    passed: bool
    margin_db: float
    budget_db: float


class LossBudgetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    fiber_loss: float
    fusion_loss: float
    mechanical_loss: float
    connector_loss: float
    margin_loss: float
    total_loss: float
    fiber_attenuation: float
    fusion_value: float
    mechanical_value: float
    connector_value: float
    power_budget: PowerBudgetRead | None = None


# ── Compliance and stats ──────────────────────────────────────────


class ValidationWarningRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    detail: str


class ComplianceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: ComplianceStatus
    issues: list[str]
    warnings: list[ValidationWarningRead]
    loss_status: LossStatus | None = None


class SpliceStatsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    completed: int
    pending: int
    needs_review: int
    failed: int
    with_loss: int
    avg_loss: float
    max_loss: float
    min_loss: float
    pass_rate: float


class HierarchyStatsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    closure_count: int
    distribution_point_count: int
    termination_point_count: int
    customer_count: int
    splitter_count: int
    tray_count: int
    total_ports: int
    connected_ports: int
    utilization: int


class DeleteImpactRead(BaseModel):
    kind: NodeKind
    id: int
    total_descendants: int
    by_kind: dict[str, int]


class DeleteResult(BaseModel):
    deleted: dict[str, int]


# ── Path tracing ──────────────────────────────────────────────────


class TraceEdgeIn(BaseModel):
    id: str
    source: str
    target: str


class TraceRequest(BaseModel):
    start_kind: NodeKind
    start_id: int
    start_fiber: int | None = Field(default=None, ge=1)
    edges: list[TraceEdgeIn] = Field(default_factory=list)


class FiberIdentityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    number: int
    tube_color: str
    fiber_color: str


class SpliceHopRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    splice_id: int
    tray_id: int
    tray_number: int
    loss_db: float
    measured: bool
    status: str


class SplitterHopRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    splitter_id: int
    ratio: str
    insertion_loss_db: float


class PortHopRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    port_id: int
    port_number: int
    status: str
    customer_name: str | None = None
    customer_address: str | None = None
    service_id: str | None = None


class PathSegmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order: int
    node_id: str
    node_kind: str
    node_name: str
    db_id: int
    fiber_in: FiberIdentityRead | None = None
    fiber_out: FiberIdentityRead | None = None
    splice: SpliceHopRead | None = None
    splitter: SplitterHopRead | None = None
    port: PortHopRead | None = None


class FiberPathRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_node_id: str
    start_description: str
    end_node_id: str
    end_description: str
    segments: list[PathSegmentRead]
    total_loss: float
    splice_count: int
    connector_count: int
    status: TraceStatus
    missing_links: list[str]


class TraceResultRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    path: FiberPathRead | None = None
    error: str | None = None
    highlighted_node_ids: list[str]
    highlighted_edge_ids: list[str]
