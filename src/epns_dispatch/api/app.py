from __future__ import annotations

import os
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from epns_dispatch.api.errors import ApiError, api_error_handler, dispatch_error_handler
from epns_dispatch.api.routes import router
from epns_dispatch.api.structured_logging import RequestLogMiddleware
from epns_dispatch.config import DispatchConfig, load_dispatch_config
from epns_dispatch.errors import DispatchError
from epns_dispatch.service import DispatchService


def build_service(cfg: Optional[DispatchConfig] = None) -> DispatchService:
    """Build the DispatchService for API runtime.

    Tests monkeypatch `epns_dispatch.api.app.build_service` to inject fakes.
    """
    return DispatchService(cfg or load_dispatch_config())


def _parse_cors_origins(mode: str) -> List[str]:
    """Explicit allowlist from EPNS_CORS_ORIGINS; "*" is rejected in prod."""
    raw = os.environ.get("EPNS_CORS_ORIGINS", "").strip()
    if not raw:
        return []

    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if "*" in origins:
        if mode == "prod":
            raise RuntimeError(
                "Unsafe CORS configuration: wildcard '*' not allowed in production. "
                "Set explicit origins in EPNS_CORS_ORIGINS."
            )
        return ["*"]
    return origins


def create_app(*, cfg: Optional[DispatchConfig] = None, boot_service: bool = True) -> FastAPI:
    """Create the FastAPI application.

    boot_service:
      - True (default): load config and attach app.state.service
      - False: no service (route/middleware tests); dispatch routes answer 500
    """
    mode = (cfg.mode if cfg is not None else os.environ.get("EPNS_MODE", "prod")).strip().lower()

    if mode == "prod":
        app = FastAPI(title="EPNS Dispatch API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="EPNS Dispatch API")

    app.state.service = build_service(cfg) if boot_service else None

    app.add_middleware(RequestLogMiddleware)

    cors_origins = _parse_cors_origins(mode)
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=cors_origins != ["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["Authorization", "Content-Type"],
        )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(DispatchError, dispatch_error_handler)

    app.include_router(router, prefix="/v1")
    return app
