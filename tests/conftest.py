import os

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ospnet.db import Base
from ospnet.models.network import (
    DistributionFrame,
    DistributionFramePort,
    Enclosure,
    EnclosureKind,
    HeadEndTerminal,
    ParentKind,
    PortStatus,
    Project,
    Splice,
    SpliceStatus,
    SpliceType,
    Splitter,
    SplitterRatio,
    SubscriberPort,
    Tray,
)

load_dotenv(os.path.join(os.getcwd(), ".env"))


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def project(db_session):
    project = Project(name="Riverside FTTH")
    db_session.add(project)
    db_session.commit()
    return project


@pytest.fixture()
def head_end(db_session, project):
    head_end = HeadEndTerminal(project_id=project.id, name="OLT-1", port_count=16)
    db_session.add(head_end)
    db_session.commit()
    return head_end


@pytest.fixture()
def frame(db_session, head_end):
    frame = DistributionFrame(head_end_id=head_end.id, name="ODF-A", port_count=4)
    frame.ports = [DistributionFramePort(port_number=number) for number in range(1, 5)]
    db_session.add(frame)
    db_session.commit()
    return frame


def add_enclosure(db_session, project, kind, name, parent_kind=None, parent_id=None):
    enclosure = Enclosure(
        project_id=project.id,
        name=name,
        kind=kind,
        parent_kind=parent_kind,
        parent_id=parent_id,
    )
    db_session.add(enclosure)
    db_session.flush()
    return enclosure


def add_splice(db_session, tray, fiber_a, fiber_b, loss_db=None, status=SpliceStatus.completed):
    splice = Splice(
        tray_id=tray.id,
        fiber_a=fiber_a,
        fiber_b=fiber_b,
        splice_type=SpliceType.fusion,
        loss_db=loss_db,
        status=status,
    )
    db_session.add(splice)
    db_session.flush()
    return splice


@pytest.fixture()
def feeder_network(db_session, project, head_end, frame):
    """Head-end -> ODF port 1 -> closure -> distribution point -> termination point.

    Fiber 3 enters the closure on cable A and leaves as fiber 5 on cable B;
    the distribution point carries fiber 5 through to fiber 1 of the drop.
    """
    port = frame.ports[0]
    closure = add_enclosure(
        db_session, project, EnclosureKind.closure, "SC-01", ParentKind.frame_port, port.id
    )
    port.enclosure_id = closure.id
    port.status = PortStatus.connected

    closure_tray = Tray(enclosure_id=closure.id, tray_number=1, capacity=12)
    db_session.add(closure_tray)
    db_session.flush()
    closure_splice = add_splice(db_session, closure_tray, 3, 5, loss_db=0.08)

    dp = add_enclosure(
        db_session, project, EnclosureKind.distribution_point, "LCP-01", ParentKind.enclosure, closure.id
    )
    dp_tray = Tray(enclosure_id=dp.id, tray_number=1, capacity=12)
    db_session.add(dp_tray)
    db_session.flush()
    dp_splice = add_splice(db_session, dp_tray, 5, 1)
    splitter = Splitter(enclosure_id=dp.id, name="SPL-1", ratio=SplitterRatio.ratio_1x8)
    db_session.add(splitter)

    tp = add_enclosure(
        db_session, project, EnclosureKind.termination_point, "NAP-01", ParentKind.enclosure, dp.id
    )
    db_session.add_all(
        [
            SubscriberPort(enclosure_id=tp.id, port_number=1, status=PortStatus.unconnected),
            SubscriberPort(
                enclosure_id=tp.id,
                port_number=2,
                status=PortStatus.connected,
                customer_name="J. Osei",
                service_id="SVC-1002",
            ),
        ]
    )
    db_session.commit()
    return {
        "port": port,
        "closure": closure,
        "closure_splice": closure_splice,
        "dp": dp,
        "dp_splice": dp_splice,
        "splitter": splitter,
        "tp": tp,
    }


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient

    from ospnet.db import get_db
    from ospnet.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
