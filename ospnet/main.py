from fastapi import FastAPI

from ospnet.api.analysis import router as analysis_router
from ospnet.api.fiber import router as fiber_router
from ospnet.api.network import router as network_router
from ospnet.api.trace import router as trace_router
from ospnet.errors import register_error_handlers
from ospnet.logging import configure_logging
from ospnet.telemetry import setup_otel

app = FastAPI(title="ospnet API")

configure_logging()
setup_otel(app)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(network_router)
_include_api_router(fiber_router)
_include_api_router(analysis_router)
_include_api_router(trace_router)


@app.get("/health")
def health():
    return {"status": "ok"}
