from fastapi import APIRouter, Depends

from ospnet.api.deps import get_store
from ospnet.schemas.analysis import TraceRequest, TraceResultRead
from ospnet.services.hierarchy import NodeRef
from ospnet.services.path_tracer import TraceEdge, trace_path
from ospnet.services.store import SqlAlchemyNetworkStore

router = APIRouter(prefix="/trace", tags=["trace"])


@router.post("", response_model=TraceResultRead)
async def run_trace(payload: TraceRequest, store: SqlAlchemyNetworkStore = Depends(get_store)):
    """Trace the fiber path through a node.

    Always answers 200; a failed trace carries ``success=false`` and an error.
    """
    edges = [TraceEdge(id=edge.id, source=edge.source, target=edge.target) for edge in payload.edges]
    result = await trace_path(
        store,
        NodeRef(payload.start_kind, payload.start_id),
        start_fiber=payload.start_fiber,
        edges=edges,
    )
    return TraceResultRead.model_validate(result)
