from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from epns_dispatch.errors import (
    ChainError,
    DispatchError,
    SigningError,
    StorageError,
    TransportError,
    ValidationError,
)


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def bad_gateway(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(502, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_dispatch_error(e: DispatchError) -> "ApiError":
        details = e.details if isinstance(e.details, dict) else ({} if e.details is None else {"info": e.details})
        if isinstance(e, (ValidationError, SigningError)):
            return ApiError.bad_request(e.code, e.reason, details)
        if isinstance(e, TransportError):
            return ApiError.bad_gateway(e.code, e.reason, {**details, "retryable": e.retryable})
        if isinstance(e, (StorageError, ChainError)):
            return ApiError.bad_gateway(e.code, e.reason, details)
        return ApiError.internal(e.code, e.reason, details)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content={"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}},
        )


async def api_error_handler(_request: Request, exc: ApiError) -> JSONResponse:
    return exc.to_response()


async def dispatch_error_handler(_request: Request, exc: DispatchError) -> JSONResponse:
    return ApiError.from_dispatch_error(exc).to_response()
