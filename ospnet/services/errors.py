"""Error taxonomy for network services."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import HTTPException


@dataclass(frozen=True)
class NetworkError(Exception):
    code: str
    detail: str
    status_code: int = 400

    def __str__(self) -> str:
        return self.detail

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.detail)


class InvalidRequest(NetworkError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=400)


class Conflict(NetworkError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=409)


class InvalidHierarchy(NetworkError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=422)


class NotFound(NetworkError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=404)


class SpliceConflict(NetworkError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=409)


class InvalidFiber(NetworkError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=422)


class TraceFailure(NetworkError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=500)


@dataclass(frozen=True)
class ValidationWarning:
    """Compliance finding attached to a result; never raised."""

    code: str
    detail: str


def as_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, NetworkError):
        return exc.to_http_exception()
    if isinstance(exc, HTTPException):
        return exc
    return HTTPException(status_code=500, detail=str(exc) or "Network error")
