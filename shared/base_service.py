"""
Base service class for report gateway services.
"""

from fastapi import FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import time

from prometheus_client import CONTENT_TYPE_LATEST

from shared.config import ServiceConfig, get_config
from shared.logging import configure_logging, get_logger, set_request_id, clear_context
from shared.metrics import get_metrics_collector
from shared.errors import AccessLayerException, http_status_for

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, config: Optional[ServiceConfig] = None):
        self.config = (config or get_config()).validate_required()
        self.service_name = self.config.service_name

        configure_logging(self.service_name, self.config.log_level, self.config.log_format)
        self.logger = get_logger(self.service_name)
        self.metrics = get_metrics_collector(self.service_name)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            description=f"Report Gateway - {self.service_name.title()} Service",
            version="1.0.0",
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url="/redoc" if self.config.env == "local" else None,
            lifespan=self._lifespan,
        )

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.on_startup()
        self.logger.info("Service started", port=self.config.port)
        try:
            yield
        finally:
            await self.on_shutdown()
            self.logger.info("Service stopped")

    async def on_startup(self) -> None:
        """Startup hook. Override in subclasses."""

    async def on_shutdown(self) -> None:
        """Shutdown hook. Override in subclasses."""

    def _setup_middleware(self):
        """Set up middleware."""

        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def add_request_context(request: Request, call_next):
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            start_time = time.time()

            if request.method in BODY_METHODS and not await self._read_body(request):
                self.metrics.record_error("READ_TIMEOUT")
                response = self.error_response(408, "Request body not received in time")
            else:
                response = await call_next(request)
            duration = time.time() - start_time

            self.metrics.record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration=duration
            )

            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )

            response.headers["X-Request-ID"] = request_id
            clear_context()
            return response

    async def _read_body(self, request: Request) -> bool:
        """Buffer the request body within ``read_timeout``; False when it runs out."""
        try:
            await asyncio.wait_for(request.body(), timeout=self.config.read_timeout)
        except asyncio.TimeoutError:
            self.logger.warning("Request body read timed out", path=request.url.path, read_timeout=self.config.read_timeout)
            return False
        return True

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/health")
        async def health_check():
            """Health check endpoint."""
            status = await self.health_status()
            healthy = bool(status.get("healthy"))
            self.metrics.record_health_check("ok" if healthy else "error")
            return JSONResponse(
                status_code=200 if healthy else 503,
                content=jsonable_encoder(status)
            )

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(
                content=self.metrics.export(),
                media_type=CONTENT_TYPE_LATEST
            )

        @self.app.exception_handler(AccessLayerException)
        async def access_layer_exception_handler(request: Request, exc: AccessLayerException):
            """Handle AccessLayerException."""
            self.logger.error(
                "Access layer error",
                code=exc.code,
                message=exc.message,
                path=request.url.path
            )
            self.metrics.record_error(exc.code)
            return self.error_response(http_status_for(exc), "Request failed", exc)

        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle general exceptions."""
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return self.error_response(500, "Internal server error")

    async def health_status(self) -> Dict[str, Any]:
        """Service health payload. Override in subclasses."""
        return {
            "service": self.service_name,
            "healthy": True,
            "message": "ok",
            "timestamp": datetime.now(timezone.utc),
            "components": {},
        }

    def success_response(self, status_code: int, message: str, data: Any) -> JSONResponse:
        """Wrap data in the standard success envelope."""
        return JSONResponse(
            status_code=status_code,
            content=jsonable_encoder({
                "success": True,
                "message": message,
                "data": data,
                "timestamp": datetime.now(timezone.utc),
            })
        )

    def error_response(
        self,
        status_code: int,
        message: str,
        exc: Optional[AccessLayerException] = None
    ) -> JSONResponse:
        """Build the standard error envelope without leaking internals."""
        content: Dict[str, Any] = {
            "success": False,
            "message": message,
            "timestamp": datetime.now(timezone.utc),
        }
        if exc is not None:
            error = exc.to_response()
            content["error"] = error.message
            content["code"] = error.code
            content["request_id"] = error.request_id
        return JSONResponse(status_code=status_code, content=jsonable_encoder(content))

    def run(self):
        """Run the service."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower(),
            timeout_keep_alive=int(self.config.idle_timeout),
            timeout_graceful_shutdown=30,
        )
