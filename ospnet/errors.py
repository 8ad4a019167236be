import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ospnet.services.errors import NetworkError

logger = logging.getLogger(__name__)


async def network_error_handler(request: Request, exc: NetworkError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"code": exc.code, "detail": exc.detail})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NetworkError, network_error_handler)
