"""Tests for enclosure type rules, delete impact and hierarchy statistics."""

from types import SimpleNamespace

import pytest

from ospnet.models.network import (
    Cable,
    DistributionFrame,
    DistributionFramePort,
    Enclosure,
    EnclosureKind,
    HeadEndTerminal,
    ParentKind,
    Splice,
    Splitter,
    SubscriberPort,
    Tray,
)
from ospnet.schemas.network import EnclosureCreate, OtdrTraceCreate, SpliceCreate
from ospnet.services import network as network_service
from ospnet.services.errors import InvalidHierarchy
from ospnet.services.hierarchy import (
    NodeKind,
    NodeRef,
    allowed_children,
    allowed_parents,
    can_attach,
    delete_impact_report,
    ensure_can_attach,
    hierarchy_stats,
    orphaned_enclosures,
    port_stats,
)
from ospnet.services.store import InMemoryNetworkStore, SqlAlchemyNetworkStore


class TestTypeRules:
    @pytest.mark.parametrize(
        ("child", "parent"),
        [
            (EnclosureKind.closure, ParentKind.head_end),
            (EnclosureKind.closure, ParentKind.frame_port),
            (EnclosureKind.closure, EnclosureKind.handhole),
            (EnclosureKind.cabinet, EnclosureKind.pole_mount),
            (EnclosureKind.building_entry, EnclosureKind.closure),
            (EnclosureKind.distribution_point, ParentKind.head_end),
            (EnclosureKind.distribution_point, EnclosureKind.closure),
            (EnclosureKind.distribution_point, EnclosureKind.building_entry),
            (EnclosureKind.termination_point, EnclosureKind.distribution_point),
        ],
    )
    def test_allowed_links(self, child, parent):
        assert can_attach(child, parent)

    @pytest.mark.parametrize(
        ("child", "parent"),
        [
            (EnclosureKind.termination_point, EnclosureKind.closure),
            (EnclosureKind.termination_point, ParentKind.head_end),
            (EnclosureKind.distribution_point, ParentKind.frame_port),
            (EnclosureKind.closure, EnclosureKind.distribution_point),
            (EnclosureKind.building_entry, EnclosureKind.termination_point),
            (EnclosureKind.closure, ParentKind.enclosure),
        ],
    )
    def test_rejected_links(self, child, parent):
        assert not can_attach(child, parent)

    def test_children_follow_parent_table(self):
        assert allowed_children(EnclosureKind.distribution_point) == {EnclosureKind.termination_point}
        assert allowed_children(EnclosureKind.termination_point) == frozenset()
        assert EnclosureKind.distribution_point in allowed_children(ParentKind.head_end)
        assert EnclosureKind.distribution_point not in allowed_children(ParentKind.frame_port)
        assert allowed_parents(EnclosureKind.termination_point) == {EnclosureKind.distribution_point}

    def test_ensure_can_attach_raises(self):
        with pytest.raises(InvalidHierarchy) as exc_info:
            ensure_can_attach(EnclosureKind.termination_point, EnclosureKind.closure)
        assert exc_info.value.code == "invalid_parent"
        assert exc_info.value.status_code == 422
        assert str(exc_info.value) == "A termination point cannot be attached to a closure"


def _enclosure(enclosure_id, kind=EnclosureKind.closure, parent_kind=None, parent_id=None, project_id=1):
    return SimpleNamespace(
        id=enclosure_id,
        kind=kind,
        parent_kind=parent_kind,
        parent_id=parent_id,
        project_id=project_id,
    )


class TestDeleteImpact:
    @pytest.mark.asyncio
    async def test_enclosure_counts_children_and_splices(self):
        store = InMemoryNetworkStore(
            {
                Enclosure: [
                    _enclosure(1),
                    _enclosure(2, EnclosureKind.distribution_point, ParentKind.enclosure, 1),
                    _enclosure(3, EnclosureKind.closure, ParentKind.enclosure, 1),
                ],
                Tray: [SimpleNamespace(id=10, enclosure_id=1)],
                Splice: [
                    SimpleNamespace(id=100 + n, tray_id=10, otdr_trace_id=None) for n in range(3)
                ],
            }
        )
        impact = await delete_impact_report(store, NodeRef(NodeKind.enclosure, 1))
        assert impact.by_kind == {"enclosure": 2, "tray": 1, "splice": 3}
        assert impact.total_descendants >= 6

    @pytest.mark.asyncio
    async def test_parent_cycle_is_counted_once(self):
        store = InMemoryNetworkStore(
            {
                Enclosure: [
                    _enclosure(1, parent_kind=ParentKind.enclosure, parent_id=2),
                    _enclosure(2, parent_kind=ParentKind.enclosure, parent_id=1),
                ],
            }
        )
        impact = await delete_impact_report(store, NodeRef(NodeKind.enclosure, 1))
        assert impact.by_kind == {"enclosure": 1}

    @pytest.mark.asyncio
    async def test_head_end_counts_frames_ports_and_enclosures(self):
        store = InMemoryNetworkStore(
            {
                HeadEndTerminal: [SimpleNamespace(id=1, project_id=1)],
                DistributionFrame: [SimpleNamespace(id=5, head_end_id=1)],
                DistributionFramePort: [
                    SimpleNamespace(id=50, frame_id=5),
                    SimpleNamespace(id=51, frame_id=5),
                ],
                Enclosure: [
                    _enclosure(1, parent_kind=ParentKind.frame_port, parent_id=50),
                    _enclosure(2, EnclosureKind.distribution_point, ParentKind.head_end, 1),
                    _enclosure(3, EnclosureKind.termination_point, ParentKind.enclosure, 2),
                ],
                Splitter: [SimpleNamespace(id=9, enclosure_id=2)],
                SubscriberPort: [SimpleNamespace(id=90, enclosure_id=3)],
            }
        )
        impact = await delete_impact_report(store, NodeRef(NodeKind.head_end, 1))
        assert impact.by_kind == {
            "distribution_frame": 1,
            "frame_port": 2,
            "enclosure": 3,
            "splitter": 1,
            "subscriber_port": 1,
        }

    @pytest.mark.asyncio
    async def test_project_counts_every_enclosure_once(self):
        store = InMemoryNetworkStore(
            {
                HeadEndTerminal: [SimpleNamespace(id=1, project_id=1)],
                Enclosure: [
                    _enclosure(1, parent_kind=ParentKind.head_end, parent_id=1),
                    _enclosure(2, EnclosureKind.distribution_point, ParentKind.enclosure, 1),
                    _enclosure(3),
                ],
                Cable: [SimpleNamespace(id=1, project_id=1)],
            }
        )
        impact = await delete_impact_report(store, NodeRef(NodeKind.project, 1))
        assert impact.by_kind == {"head_end": 1, "enclosure": 3, "cable": 1}

    @pytest.mark.asyncio
    async def test_shared_trace_counted_once_when_released(self):
        store = InMemoryNetworkStore(
            {
                Enclosure: [_enclosure(1), _enclosure(2)],
                Tray: [SimpleNamespace(id=10, enclosure_id=1), SimpleNamespace(id=20, enclosure_id=2)],
                Splice: [
                    SimpleNamespace(id=100, tray_id=10, otdr_trace_id=7),
                    SimpleNamespace(id=101, tray_id=10, otdr_trace_id=7),
                    SimpleNamespace(id=102, tray_id=10, otdr_trace_id=8),
                    SimpleNamespace(id=200, tray_id=20, otdr_trace_id=8),
                ],
            }
        )
        impact = await delete_impact_report(store, NodeRef(NodeKind.enclosure, 1))
        assert impact.by_kind == {"tray": 1, "splice": 3, "otdr_trace": 1}

    @pytest.mark.asyncio
    async def test_report_matches_enclosure_delete(self, db_session, project):
        def closure(name):
            return network_service.enclosures.create(
                db_session,
                EnclosureCreate(project_id=project.id, name=name, kind=EnclosureKind.closure, tray_count=1),
            )

        target, neighbour = closure("SC-20"), closure("SC-21")
        own = network_service.otdr_traces.create(db_session, OtdrTraceCreate(filename="sc20.sor"))
        shared = network_service.otdr_traces.create(db_session, OtdrTraceCreate(filename="sc20-sc21.sor"))
        for fiber, trace in ((1, own), (2, own), (3, shared)):
            network_service.splices.create(
                db_session,
                SpliceCreate(tray_id=target.trays[0].id, fiber_a=fiber, fiber_b=fiber, otdr_trace_id=trace.id),
            )
        network_service.splices.create(
            db_session,
            SpliceCreate(tray_id=neighbour.trays[0].id, fiber_a=1, fiber_b=1, otdr_trace_id=shared.id),
        )

        impact = await delete_impact_report(SqlAlchemyNetworkStore(db_session), NodeRef(NodeKind.enclosure, target.id))
        removed = network_service.enclosures.delete(db_session, target.id)

        assert dict(impact.by_kind) == removed == {"tray": 1, "splice": 3, "otdr_trace": 1}

    @pytest.mark.asyncio
    async def test_unknown_node_reports_nothing(self, db_session):
        impact = await delete_impact_report(SqlAlchemyNetworkStore(db_session), NodeRef(NodeKind.tray, 999))
        assert impact.total_descendants == 0


class TestHierarchyStats:
    def test_enclosure_rollup(self, db_session, feeder_network):
        stats = hierarchy_stats(db_session, enclosure_id=feeder_network["closure"].id)
        assert stats.distribution_point_count == 1
        assert stats.termination_point_count == 1
        assert stats.closure_count == 0
        assert stats.splitter_count == 1
        assert stats.tray_count == 2
        assert stats.total_ports == 2
        assert stats.customer_count == 1
        assert stats.utilization == 50

    def test_head_end_rollup_includes_frame_fed_enclosures(self, db_session, head_end, feeder_network):
        stats = hierarchy_stats(db_session, head_end_id=head_end.id)
        assert stats.closure_count == 1
        assert stats.distribution_point_count == 1
        assert stats.termination_point_count == 1

    def test_missing_root_yields_empty_stats(self, db_session):
        assert hierarchy_stats(db_session, enclosure_id=424242).total_ports == 0

    def test_port_stats(self, db_session, feeder_network):
        counts = port_stats(db_session, feeder_network["tp"].id)
        assert counts["total"] == 2
        assert counts["connected"] == 1
        assert counts["unconnected"] == 1
        assert counts["faulty"] == 0

    def test_orphaned_enclosures(self, db_session, project, feeder_network):
        orphan = Enclosure(project_id=project.id, name="HH-9", kind=EnclosureKind.handhole)
        db_session.add(orphan)
        db_session.commit()
        assert [enclosure.id for enclosure in orphaned_enclosures(db_session, project.id)] == [orphan.id]
        assert orphaned_enclosures(db_session, project.id, EnclosureKind.closure) == []
