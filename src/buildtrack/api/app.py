"""FastAPI application factory for the BuildTrack module API.

/health, /config and the /modules router. The resolver is resolved per
request through ``Depends(get_module_resolver)`` so tests can override it.
"""
from __future__ import annotations

import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from buildtrack.api.routes.modules import router as modules_router
from core import metrics
from core.config import get_config
from core.log import configure_logging, get_logger

logger = get_logger("api")


def create_app() -> FastAPI:
    cfg = get_config()
    configure_logging(cfg.logging.level, cfg.logging.format)
    app = FastAPI(
        title="BuildTrack Module API",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.api.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():  # noqa: D401
        return {"status": "ok"}

    @app.get("/config")
    def config():  # noqa: D401
        current = get_config()
        return {
            "schema_version": current.schema_version,
            "timezone": current.system.timezone,
            "storage_backend": current.modules.storage_backend,
            "import_closes_dependencies": (
                current.modules.import_closes_dependencies
            ),
        }

    @app.get("/metrics")
    def metrics_snapshot():  # noqa: D401
        return metrics.snapshot()

    app.include_router(modules_router)

    @app.middleware("http")
    async def _metrics_mw(request: Request, call_next):  # noqa: D401
        start = time.time()
        labels = {"route": request.url.path, "method": request.method}
        try:
            response = await call_next(request)
        except Exception:
            metrics.inc("api_request_errors_total", labels | {"status": 500})
            logger.exception("unhandled error on %s", request.url.path)
            raise
        finally:
            duration_ms = (time.time() - start) * 1000.0
            metrics.inc("api_request_total", labels)
            metrics.observe("api_request_latency_ms", duration_ms, labels)
        if response.status_code >= 400:
            metrics.inc(
                "api_request_errors_total",
                labels | {"status": response.status_code},
            )
        return response

    return app


app = create_app()


def main() -> None:  # pragma: no cover
    import uvicorn

    cfg = get_config().api
    uvicorn.run(
        "buildtrack.api.app:app", host=cfg.host, port=cfg.port, reload=False
    )


if __name__ == "__main__":  # pragma: no cover
    main()
