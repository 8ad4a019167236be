"""Tests for network CRUD services and their invariants."""

import warnings

import pytest
from sqlalchemy.exc import SAWarning

from ospnet.models.network import (
    DistributionFrame,
    DistributionFramePort,
    Enclosure,
    EnclosureKind,
    OtdrTrace,
    PortStatus,
    Splice,
    SpliceStatus,
    Tray,
)
from ospnet.schemas.network import (
    CableCreate,
    EnclosureCreate,
    EnclosureParent,
    EnclosureUpdate,
    FrameCreate,
    FramePortParent,
    HeadEndCreate,
    HeadEndParent,
    OtdrTraceCreate,
    ProjectCreate,
    SpliceBatchCreate,
    SpliceCreate,
    SpliceUpdate,
    SplitterCreate,
    SubscriberPortCreate,
    TrayCreate,
    TrayUpdate,
)
from ospnet.services import network as network_service
from ospnet.services.errors import (
    Conflict,
    InvalidFiber,
    InvalidHierarchy,
    InvalidRequest,
    NotFound,
    SpliceConflict,
)


def _closure(db_session, project, name="SC-10", parent=None, tray_count=1, kind=EnclosureKind.closure):
    return network_service.enclosures.create(
        db_session,
        EnclosureCreate(project_id=project.id, name=name, kind=kind, parent=parent, tray_count=tray_count),
    )


class TestProjectsAndHeadEnds:
    def test_create_and_list_projects(self, db_session):
        network_service.projects.create(db_session, ProjectCreate(name="Northgate"))
        network_service.projects.create(db_session, ProjectCreate(name="Eastfield"))
        names = [p.name for p in network_service.projects.list(db_session, order_by="name", order_dir="asc")]
        assert names[:2] == ["Eastfield", "Northgate"]

    def test_invalid_order_by(self, db_session):
        with pytest.raises(InvalidRequest) as exc_info:
            network_service.projects.list(db_session, order_by="budget")
        assert exc_info.value.status_code == 400

    def test_missing_project(self, db_session):
        with pytest.raises(NotFound) as exc_info:
            network_service.projects.get(db_session, 424242)
        assert exc_info.value.code == "projects_not_found"

    def test_frame_creates_numbered_ports(self, db_session, project):
        head_end = network_service.head_ends.create(db_session, HeadEndCreate(project_id=project.id, name="OLT-9"))
        frame = network_service.frames.create(
            db_session, FrameCreate(head_end_id=head_end.id, name="ODF-9", port_count=6)
        )
        ports = network_service.frame_ports.list(db_session, frame.id)
        assert [port.port_number for port in ports] == [1, 2, 3, 4, 5, 6]
        assert all(port.status == PortStatus.unconnected for port in ports)


class TestEnclosureHierarchy:
    def test_frame_port_parent_marks_port_connected(self, db_session, project, frame):
        port = frame.ports[1]
        closure = _closure(db_session, project, parent=FramePortParent(frame_port_id=port.id))
        db_session.refresh(port)
        assert closure.parent_id == port.id
        assert port.enclosure_id == closure.id
        assert port.status == PortStatus.connected
        assert len(closure.trays) == 1

    def test_frame_port_cannot_feed_two_enclosures(self, db_session, project, frame):
        port = frame.ports[0]
        _closure(db_session, project, parent=FramePortParent(frame_port_id=port.id))
        with pytest.raises(Conflict) as exc_info:
            _closure(db_session, project, name="SC-11", parent=FramePortParent(frame_port_id=port.id))
        assert exc_info.value.code == "frame_port_in_use"

    def test_termination_point_under_closure_rejected(self, db_session, project):
        closure = _closure(db_session, project)
        with pytest.raises(InvalidHierarchy):
            _closure(
                db_session,
                project,
                name="NAP-1",
                kind=EnclosureKind.termination_point,
                parent=EnclosureParent(enclosure_id=closure.id),
            )

    def test_distribution_point_cannot_hang_off_frame_port(self, db_session, project, frame):
        with pytest.raises(InvalidHierarchy):
            _closure(
                db_session,
                project,
                name="LCP-1",
                kind=EnclosureKind.distribution_point,
                parent=FramePortParent(frame_port_id=frame.ports[0].id),
            )

    def test_missing_parent_is_not_found(self, db_session, project):
        with pytest.raises(NotFound):
            _closure(db_session, project, parent=EnclosureParent(enclosure_id=999999))

    def test_cross_project_parent_rejected(self, db_session, project):
        other = network_service.projects.create(db_session, ProjectCreate(name="Elsewhere"))
        foreign = network_service.head_ends.create(db_session, HeadEndCreate(project_id=other.id, name="OLT-X"))
        with pytest.raises(InvalidHierarchy) as exc_info:
            _closure(db_session, project, parent=HeadEndParent(head_end_id=foreign.id))
        assert exc_info.value.code == "cross_project_parent"

    def test_frame_port_of_another_project_rejected(self, db_session, project, frame):
        other = network_service.projects.create(db_session, ProjectCreate(name="Elsewhere"))
        port = frame.ports[0]
        with pytest.raises(InvalidHierarchy) as exc_info:
            _closure(db_session, other, name="SC-X", parent=FramePortParent(frame_port_id=port.id))
        assert exc_info.value.code == "cross_project_parent"
        db_session.refresh(port)
        assert port.enclosure_id is None
        assert db_session.query(Enclosure).filter(Enclosure.project_id == other.id).count() == 0

    def test_reparent_cycle_rejected(self, db_session, project):
        top = _closure(db_session, project, name="SC-TOP")
        below = _closure(db_session, project, name="SC-BELOW", parent=EnclosureParent(enclosure_id=top.id))
        with pytest.raises(InvalidHierarchy) as exc_info:
            network_service.enclosures.update(
                db_session, top.id, EnclosureUpdate(parent=EnclosureParent(enclosure_id=below.id))
            )
        assert exc_info.value.code == "parent_cycle"

    def test_detach_releases_frame_port(self, db_session, project, frame):
        port = frame.ports[2]
        closure = _closure(db_session, project, parent=FramePortParent(frame_port_id=port.id))
        updated = network_service.enclosures.update(
            db_session, closure.id, EnclosureUpdate.model_validate({"parent": None})
        )
        db_session.refresh(port)
        assert updated.parent_kind is None
        assert updated.parent_id is None
        assert port.enclosure_id is None
        assert port.status == PortStatus.unconnected

    def test_update_without_parent_keeps_link(self, db_session, project, head_end):
        closure = _closure(db_session, project, parent=HeadEndParent(head_end_id=head_end.id))
        updated = network_service.enclosures.update(db_session, closure.id, EnclosureUpdate(name="SC-RENAMED"))
        assert updated.name == "SC-RENAMED"
        assert updated.parent_id == head_end.id


class TestCascadingDeletes:
    def test_enclosure_delete_counts_descendants(self, db_session, project):
        closure = _closure(db_session, project)
        tray = closure.trays[0]
        for fiber in (1, 2, 3):
            network_service.splices.create(db_session, SpliceCreate(tray_id=tray.id, fiber_a=fiber, fiber_b=fiber))
        for name in ("LCP-1", "LCP-2"):
            _closure(
                db_session,
                project,
                name=name,
                kind=EnclosureKind.distribution_point,
                parent=EnclosureParent(enclosure_id=closure.id),
                tray_count=0,
            )

        removed = network_service.enclosures.delete(db_session, closure.id)

        assert removed == {"enclosure": 2, "tray": 1, "splice": 3}
        assert db_session.query(Enclosure).filter(Enclosure.project_id == project.id).count() == 0
        assert db_session.query(Splice).count() == 0

    def test_enclosure_delete_frees_frame_port(self, db_session, project, frame):
        port = frame.ports[0]
        closure = _closure(db_session, project, parent=FramePortParent(frame_port_id=port.id))
        network_service.enclosures.delete(db_session, closure.id)
        refreshed = db_session.get(DistributionFramePort, port.id)
        assert refreshed.enclosure_id is None
        assert refreshed.status == PortStatus.unconnected

    def test_head_end_delete_reaches_frame_fed_enclosures(self, db_session, project, head_end, feeder_network):
        removed = network_service.head_ends.delete(db_session, head_end.id)
        assert removed["distribution_frame"] == 1
        assert removed["frame_port"] == 4
        assert removed["enclosure"] == 3
        assert removed["splice"] == 2
        assert removed["splitter"] == 1
        assert removed["subscriber_port"] == 2
        assert "head_end" not in removed

    def test_head_end_delete_removes_each_frame_once(self, db_session, project, head_end, feeder_network):
        head_end_id = head_end.id
        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            network_service.head_ends.delete(db_session, head_end_id)
        assert db_session.query(DistributionFrame).filter(DistributionFrame.head_end_id == head_end_id).count() == 0

    def test_project_delete_removes_each_frame_once(self, db_session, project, feeder_network):
        project_id = project.id
        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            removed = network_service.projects.delete(db_session, project_id)
        assert removed["distribution_frame"] == 1

    def test_project_delete_removes_everything(self, db_session, project, feeder_network):
        project_id = project.id
        network_service.cables.create(db_session, CableCreate(project_id=project_id, name="F-1", fiber_count=48))
        removed = network_service.projects.delete(db_session, project_id)
        assert removed["head_end"] == 1
        assert removed["enclosure"] == 3
        assert removed["cable"] == 1
        with pytest.raises(NotFound):
            network_service.projects.get(db_session, project_id)

    def test_splice_delete_releases_otdr_trace(self, db_session, project):
        closure = _closure(db_session, project)
        trace = network_service.otdr_traces.create(
            db_session, OtdrTraceCreate(filename="sc10-f1.sor", wavelength_nm=1550)
        )
        splice = network_service.splices.create(
            db_session,
            SpliceCreate(tray_id=closure.trays[0].id, fiber_a=1, fiber_b=1, otdr_trace_id=trace.id),
        )
        trace_id = trace.id
        removed = network_service.splices.delete(db_session, splice.id)
        assert removed == {"otdr_trace": 1}
        assert db_session.get(OtdrTrace, trace_id) is None


class TestSplices:
    def test_create_freezes_colors_from_cable(self, db_session, project):
        closure = _closure(db_session, project)
        cable_a = network_service.cables.create(
            db_session, CableCreate(project_id=project.id, name="FEEDER-24", fiber_count=24)
        )
        splice = network_service.splices.create(
            db_session,
            SpliceCreate(tray_id=closure.trays[0].id, cable_a_id=cable_a.id, fiber_a=14, fiber_b=2),
        )
        assert splice.cable_a_name == "FEEDER-24"
        assert (splice.tube_a_color, splice.fiber_a_color) == ("Orange", "Orange")
        assert (splice.tube_b_color, splice.fiber_b_color) == ("Blue", "Orange")

        network_service.cables.delete(db_session, cable_a.id)
        db_session.refresh(splice)
        assert splice.cable_a_id is None
        assert splice.tube_a_color == "Orange"

    def test_fiber_out_of_range(self, db_session, project):
        closure = _closure(db_session, project)
        with pytest.raises(InvalidFiber) as exc_info:
            network_service.splices.create(
                db_session,
                SpliceCreate(tray_id=closure.trays[0].id, fiber_a=13, fiber_b=1, cable_a_fiber_count=12),
            )
        assert exc_info.value.code == "fiber_a_out_of_range"

    def test_fiber_reuse_rejected(self, db_session, project):
        tray_id = _closure(db_session, project).trays[0].id
        network_service.splices.create(db_session, SpliceCreate(tray_id=tray_id, fiber_a=1, fiber_b=1))
        with pytest.raises(SpliceConflict) as exc_info:
            network_service.splices.create(db_session, SpliceCreate(tray_id=tray_id, fiber_a=1, fiber_b=2))
        assert exc_info.value.code == "fiber_a_in_use"
        with pytest.raises(SpliceConflict) as exc_info:
            network_service.splices.create(db_session, SpliceCreate(tray_id=tray_id, fiber_a=1, fiber_b=1))
        assert exc_info.value.code == "duplicate_pair"

    def test_full_tray_rejects_new_splice(self, db_session, project):
        closure = _closure(db_session, project, tray_count=0)
        tray = network_service.trays.create(db_session, TrayCreate(enclosure_id=closure.id, capacity=2))
        for fiber in (1, 2):
            network_service.splices.create(db_session, SpliceCreate(tray_id=tray.id, fiber_a=fiber, fiber_b=fiber))
        with pytest.raises(SpliceConflict) as exc_info:
            network_service.splices.create(db_session, SpliceCreate(tray_id=tray.id, fiber_a=3, fiber_b=3))
        assert exc_info.value.code == "tray_full"
        assert exc_info.value.status_code == 409

    def test_failed_splice_frees_its_fibers(self, db_session, project):
        tray_id = _closure(db_session, project).trays[0].id
        first = network_service.splices.create(db_session, SpliceCreate(tray_id=tray_id, fiber_a=4, fiber_b=4))
        network_service.splices.update(db_session, first.id, SpliceUpdate(status=SpliceStatus.failed))
        resplice = network_service.splices.create(db_session, SpliceCreate(tray_id=tray_id, fiber_a=4, fiber_b=5))
        assert resplice.status == SpliceStatus.pending
        with pytest.raises(SpliceConflict):
            network_service.splices.update(db_session, first.id, SpliceUpdate(status=SpliceStatus.completed))

    def test_bulk_revival_rechecks_fiber_use(self, db_session, project):
        tray_id = _closure(db_session, project).trays[0].id
        first = network_service.splices.create(db_session, SpliceCreate(tray_id=tray_id, fiber_a=4, fiber_b=4))
        network_service.splices.update_status(db_session, [first.id], SpliceStatus.failed)
        network_service.splices.create(db_session, SpliceCreate(tray_id=tray_id, fiber_a=4, fiber_b=5))

        with pytest.raises(SpliceConflict) as exc_info:
            network_service.splices.update_status(db_session, [first.id], SpliceStatus.completed)

        assert exc_info.value.code == "fiber_a_in_use"
        active_on_fiber_4 = (
            db_session.query(Splice)
            .filter(Splice.tray_id == tray_id)
            .filter(Splice.fiber_a == 4)
            .filter(Splice.status != SpliceStatus.failed)
            .count()
        )
        assert active_on_fiber_4 == 1
        assert network_service.splices.get(db_session, first.id).status == SpliceStatus.failed

    def test_bulk_revival_checks_the_batch_together(self, db_session, project):
        tray_id = _closure(db_session, project).trays[0].id
        first = network_service.splices.create(db_session, SpliceCreate(tray_id=tray_id, fiber_a=6, fiber_b=6))
        network_service.splices.update_status(db_session, [first.id], SpliceStatus.failed)
        second = network_service.splices.create(db_session, SpliceCreate(tray_id=tray_id, fiber_a=6, fiber_b=7))
        network_service.splices.update_status(db_session, [second.id], SpliceStatus.failed)

        with pytest.raises(SpliceConflict):
            network_service.splices.update_status(db_session, [first.id, second.id], SpliceStatus.completed)
        assert network_service.trays.stats(db_session, tray_id).failed == 2

        assert network_service.splices.update_status(db_session, [first.id], SpliceStatus.completed) == 1
        assert network_service.splices.get(db_session, first.id).status == SpliceStatus.completed

    def test_bulk_revival_respects_tray_capacity(self, db_session, project):
        closure = _closure(db_session, project, tray_count=0)
        tray = network_service.trays.create(db_session, TrayCreate(enclosure_id=closure.id, capacity=1))
        first = network_service.splices.create(db_session, SpliceCreate(tray_id=tray.id, fiber_a=1, fiber_b=1))
        network_service.splices.update_status(db_session, [first.id], SpliceStatus.failed)
        network_service.splices.create(db_session, SpliceCreate(tray_id=tray.id, fiber_a=2, fiber_b=2))

        with pytest.raises(SpliceConflict) as exc_info:
            network_service.splices.update_status(db_session, [first.id], SpliceStatus.needs_review)
        assert exc_info.value.code == "tray_full"

    def test_batch_is_all_or_nothing(self, db_session, project):
        tray_id = _closure(db_session, project).trays[0].id
        network_service.splices.create(db_session, SpliceCreate(tray_id=tray_id, fiber_a=3, fiber_b=9))
        with pytest.raises(SpliceConflict):
            network_service.splices.create_batch(
                db_session, SpliceBatchCreate(tray_id=tray_id, start_fiber_a=1, start_fiber_b=1, count=4)
            )
        assert db_session.query(Splice).filter(Splice.tray_id == tray_id).count() == 1

    def test_batch_straight_through(self, db_session, project):
        tray_id = _closure(db_session, project).trays[0].id
        created = network_service.splices.create_batch(
            db_session,
            SpliceBatchCreate(tray_id=tray_id, cable_a_fiber_count=12, cable_b_fiber_count=24),
        )
        assert [(s.fiber_a, s.fiber_b) for s in created] == [(n, n) for n in range(1, 13)]
        assert all(s.status == SpliceStatus.pending for s in created)

    def test_bulk_status_update(self, db_session, project):
        tray_id = _closure(db_session, project).trays[0].id
        created = network_service.splices.create_batch(
            db_session, SpliceBatchCreate(tray_id=tray_id, count=3, cable_a_fiber_count=12, cable_b_fiber_count=12)
        )
        updated = network_service.splices.update_status(
            db_session, [s.id for s in created[:2]], SpliceStatus.completed
        )
        assert updated == 2
        stats = network_service.trays.stats(db_session, tray_id)
        assert stats.completed == 2
        assert stats.pending == 1


class TestTraysAndPorts:
    def test_tray_numbers_are_sequential(self, db_session, project):
        closure = _closure(db_session, project, tray_count=2)
        tray = network_service.trays.create(db_session, TrayCreate(enclosure_id=closure.id))
        assert tray.tray_number == 3
        assert tray.capacity == 12
        with pytest.raises(Conflict):
            network_service.trays.create(db_session, TrayCreate(enclosure_id=closure.id, tray_number=1))

    def test_capacity_cannot_drop_below_usage(self, db_session, project):
        tray_id = _closure(db_session, project).trays[0].id
        network_service.splices.create_batch(
            db_session, SpliceBatchCreate(tray_id=tray_id, count=3, cable_a_fiber_count=12, cable_b_fiber_count=12)
        )
        with pytest.raises(Conflict) as exc_info:
            network_service.trays.update(db_session, tray_id, TrayUpdate(capacity=2))
        assert exc_info.value.code == "capacity_below_usage"

    def test_tray_matrix_uses_cable_counts(self, db_session, project):
        closure = _closure(db_session, project)
        tray = closure.trays[0]
        cable_a = network_service.cables.create(db_session, CableCreate(project_id=project.id, name="A", fiber_count=12))
        cable_b = network_service.cables.create(db_session, CableCreate(project_id=project.id, name="B", fiber_count=24))
        network_service.splices.create(
            db_session,
            SpliceCreate(tray_id=tray.id, cable_a_id=cable_a.id, cable_b_id=cable_b.id, fiber_a=2, fiber_b=20),
        )
        matrix = network_service.trays.matrix(db_session, tray.id)
        assert len(matrix) == 12
        assert len(matrix[0]) == 24
        assert matrix[1][19].is_spliced

    def test_subscriber_port_with_customer_is_connected(self, db_session, project):
        nap = _closure(db_session, project, name="NAP-3", kind=EnclosureKind.termination_point, tray_count=0)
        port = network_service.subscriber_ports.create(
            db_session,
            SubscriberPortCreate(enclosure_id=nap.id, port_number=1, customer_name="K. Boateng"),
        )
        assert port.status == PortStatus.connected
        with pytest.raises(Conflict):
            network_service.subscriber_ports.create(
                db_session, SubscriberPortCreate(enclosure_id=nap.id, port_number=1)
            )

    def test_port_splitter_must_share_enclosure(self, db_session, project):
        lcp = _closure(db_session, project, name="LCP-5", kind=EnclosureKind.distribution_point, tray_count=0)
        nap = _closure(db_session, project, name="NAP-5", kind=EnclosureKind.termination_point, tray_count=0)
        splitter = network_service.splitters.create(
            db_session, SplitterCreate(enclosure_id=lcp.id, name="SPL-5", ratio="1:16")
        )
        assert splitter.insertion_loss_db == 14.0
        with pytest.raises(InvalidHierarchy):
            network_service.subscriber_ports.create(
                db_session, SubscriberPortCreate(enclosure_id=nap.id, port_number=1, splitter_id=splitter.id)
            )

    def test_splitter_delete_detaches_ports(self, db_session, project):
        lcp = _closure(db_session, project, name="LCP-6", kind=EnclosureKind.distribution_point, tray_count=0)
        splitter = network_service.splitters.create(
            db_session, SplitterCreate(enclosure_id=lcp.id, name="SPL-6", ratio="1:4")
        )
        port = network_service.subscriber_ports.create(
            db_session, SubscriberPortCreate(enclosure_id=lcp.id, port_number=1, splitter_id=splitter.id)
        )
        network_service.splitters.delete(db_session, splitter.id)
        db_session.refresh(port)
        assert port.splitter_id is None

    def test_tray_delete_counts_splices(self, db_session, project):
        tray_id = _closure(db_session, project).trays[0].id
        network_service.splices.create_batch(
            db_session, SpliceBatchCreate(tray_id=tray_id, count=2, cable_a_fiber_count=12, cable_b_fiber_count=12)
        )
        assert network_service.trays.delete(db_session, tray_id) == {"splice": 2}
        assert db_session.get(Tray, tray_id) is None
