"""create fiber network tables

Revision ID: 3f8a1c2d9b60
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "3f8a1c2d9b60"
down_revision = None
branch_labels = None
depends_on = None

PROJECT_STATUS = postgresql.ENUM("active", "completed", "archived", name="projectstatus", create_type=False)
ENCLOSURE_KIND = postgresql.ENUM(
    "closure",
    "distribution_point",
    "termination_point",
    "handhole",
    "building_entry",
    "pole_mount",
    "cabinet",
    name="enclosurekind",
    create_type=False,
)
PARENT_KIND = postgresql.ENUM("head_end", "frame_port", "enclosure", name="parentkind", create_type=False)
PORT_STATUS = postgresql.ENUM(
    "connected", "unconnected", "reserved", "faulty", name="portstatus", create_type=False
)
FIBER_TYPE = postgresql.ENUM("singlemode", "multimode", name="fibertype", create_type=False)
SPLICE_TYPE = postgresql.ENUM("fusion", "mechanical", name="splicetype", create_type=False)
SPLICE_STATUS = postgresql.ENUM(
    "pending", "completed", "needs_review", "failed", name="splicestatus", create_type=False
)
# Enum members are stored by name
SPLITTER_RATIO = postgresql.ENUM(
    "ratio_1x2", "ratio_1x4", "ratio_1x8", "ratio_1x16", "ratio_1x32", name="splitterratio",
    create_type=False,
)
ENUM_TYPES = (
    PROJECT_STATUS,
    ENCLOSURE_KIND,
    PARENT_KIND,
    PORT_STATUS,
    FIBER_TYPE,
    SPLICE_TYPE,
    SPLICE_STATUS,
    SPLITTER_RATIO,
)


def _location_columns():
    return [
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUM_TYPES:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", PROJECT_STATUS, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "head_end_terminals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("port_count", sa.Integer(), nullable=True),
        sa.Column("model", sa.String(120), nullable=True),
        sa.Column("manufacturer", sa.String(120), nullable=True),
        *_location_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_head_end_terminals_project_id", "head_end_terminals", ["project_id"])

    op.create_table(
        "distribution_frames",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("head_end_id", sa.Integer(), sa.ForeignKey("head_end_terminals.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("port_count", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_distribution_frames_head_end_id", "distribution_frames", ["head_end_id"])

    op.create_table(
        "enclosures",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("kind", ENCLOSURE_KIND, nullable=False),
        sa.Column("parent_kind", PARENT_KIND, nullable=True),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        *_location_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_enclosures_project_id", "enclosures", ["project_id"])
    op.create_index("ix_enclosures_parent", "enclosures", ["parent_kind", "parent_id"])

    op.create_table(
        "distribution_frame_ports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("frame_id", sa.Integer(), sa.ForeignKey("distribution_frames.id"), nullable=False),
        sa.Column("port_number", sa.Integer(), nullable=False),
        sa.Column("status", PORT_STATUS, nullable=True),
        sa.Column("enclosure_id", sa.Integer(), sa.ForeignKey("enclosures.id"), nullable=True),
        sa.UniqueConstraint("frame_id", "port_number", name="uq_frame_ports_frame_number"),
    )
    op.create_index("ix_distribution_frame_ports_frame_id", "distribution_frame_ports", ["frame_id"])

    op.create_table(
        "trays",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("enclosure_id", sa.Integer(), sa.ForeignKey("enclosures.id"), nullable=False),
        sa.Column("tray_number", sa.Integer(), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint("enclosure_id", "tray_number", name="uq_trays_enclosure_number"),
    )
    op.create_index("ix_trays_enclosure_id", "trays", ["enclosure_id"])

    op.create_table(
        "cables",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("fiber_count", sa.Integer(), nullable=False),
        sa.Column("fiber_type", FIBER_TYPE, nullable=True),
        sa.Column("length_m", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_cables_project_id", "cables", ["project_id"])

    op.create_table(
        "otdr_traces",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("wavelength_nm", sa.Integer(), nullable=True),
        sa.Column("pulse_width_ns", sa.Integer(), nullable=True),
        sa.Column("range_m", sa.Float(), nullable=True),
        sa.Column("events", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        "splices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tray_id", sa.Integer(), sa.ForeignKey("trays.id"), nullable=False),
        sa.Column("cable_a_id", sa.Integer(), sa.ForeignKey("cables.id"), nullable=True),
        sa.Column("cable_a_name", sa.String(160), nullable=True),
        sa.Column("fiber_a", sa.Integer(), nullable=False),
        sa.Column("tube_a_color", sa.String(20), nullable=True),
        sa.Column("fiber_a_color", sa.String(20), nullable=True),
        sa.Column("cable_b_id", sa.Integer(), sa.ForeignKey("cables.id"), nullable=True),
        sa.Column("cable_b_name", sa.String(160), nullable=True),
        sa.Column("fiber_b", sa.Integer(), nullable=False),
        sa.Column("tube_b_color", sa.String(20), nullable=True),
        sa.Column("fiber_b_color", sa.String(20), nullable=True),
        sa.Column("splice_type", SPLICE_TYPE, nullable=True),
        sa.Column("loss_db", sa.Float(), nullable=True),
        sa.Column("technician_name", sa.String(160), nullable=True),
        sa.Column("otdr_trace_id", sa.Integer(), sa.ForeignKey("otdr_traces.id"), nullable=True),
        sa.Column("status", SPLICE_STATUS, nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("tray_id", "fiber_a", "fiber_b", name="uq_splices_tray_fibers"),
    )
    op.create_index("ix_splices_tray_id", "splices", ["tray_id"])

    op.create_table(
        "splitters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("enclosure_id", sa.Integer(), sa.ForeignKey("enclosures.id"), nullable=False),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("ratio", SPLITTER_RATIO, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_splitters_enclosure_id", "splitters", ["enclosure_id"])

    op.create_table(
        "subscriber_ports",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("enclosure_id", sa.Integer(), sa.ForeignKey("enclosures.id"), nullable=False),
        sa.Column("splitter_id", sa.Integer(), sa.ForeignKey("splitters.id"), nullable=True),
        sa.Column("port_number", sa.Integer(), nullable=False),
        sa.Column("status", PORT_STATUS, nullable=True),
        sa.Column("customer_name", sa.String(160), nullable=True),
        sa.Column("customer_address", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("service_id", sa.String(80), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.UniqueConstraint(
            "enclosure_id", "port_number", name="uq_subscriber_ports_enclosure_number"
        ),
    )
    op.create_index("ix_subscriber_ports_enclosure_id", "subscriber_ports", ["enclosure_id"])


def downgrade() -> None:
    op.drop_index("ix_subscriber_ports_enclosure_id", table_name="subscriber_ports")
    op.drop_table("subscriber_ports")
    op.drop_index("ix_splitters_enclosure_id", table_name="splitters")
    op.drop_table("splitters")
    op.drop_index("ix_splices_tray_id", table_name="splices")
    op.drop_table("splices")
    op.drop_table("otdr_traces")
    op.drop_index("ix_cables_project_id", table_name="cables")
    op.drop_table("cables")
    op.drop_index("ix_trays_enclosure_id", table_name="trays")
    op.drop_table("trays")
    op.drop_index("ix_distribution_frame_ports_frame_id", table_name="distribution_frame_ports")
    op.drop_table("distribution_frame_ports")
    op.drop_index("ix_enclosures_parent", table_name="enclosures")
    op.drop_index("ix_enclosures_project_id", table_name="enclosures")
    op.drop_table("enclosures")
    op.drop_index("ix_distribution_frames_head_end_id", table_name="distribution_frames")
    op.drop_table("distribution_frames")
    op.drop_index("ix_head_end_terminals_project_id", table_name="head_end_terminals")
    op.drop_table("head_end_terminals")
    op.drop_table("projects")

    bind = op.get_bind()
    for enum_type in reversed(ENUM_TYPES):
        enum_type.drop(bind, checkfirst=True)
