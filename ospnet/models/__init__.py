from ospnet.models.network import (  # noqa: F401
    SPLITTER_INSERTION_LOSS_DB,
    Cable,
    DistributionFrame,
    DistributionFramePort,
    Enclosure,
    EnclosureKind,
    FiberType,
    HeadEndTerminal,
    OtdrTrace,
    ParentKind,
    PortStatus,
    Project,
    ProjectStatus,
    Splice,
    SpliceStatus,
    SpliceType,
    Splitter,
    SplitterRatio,
    SubscriberPort,
    Tray,
)
