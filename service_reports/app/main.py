"""
Report service for the report gateway.
"""

from typing import Any, Dict, Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.config import ServiceConfig
from shared.errors import AccessLayerException, AuthenticationError, InvalidArgument, http_status_for

from .adapters.document_synthesizer import FileDocumentSynthesizer
from .adapters.upstream_client import UpstreamClient
from .domain.interfaces import DocumentSynthesizer, UpstreamGateway
from .domain.reporting import ReportOrchestrator


class ReportService(BaseService):
    """Report service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        upstream: Optional[UpstreamGateway] = None,
        synthesizer: Optional[DocumentSynthesizer] = None,
    ):
        super().__init__(config)

        self.upstream = upstream or UpstreamClient(
            self.config.upstream_base_url,
            self.config.upstream_identity,
            self.config.upstream_secret,
            entity_path=self.config.entity_path,
            timeout=self.config.request_timeout,
            health_timeout=self.config.health_timeout,
            retry_attempts=self.config.retry_attempts,
            retry_delay=self.config.retry_delay,
            metrics=self.metrics,
        )
        self.synthesizer = synthesizer or FileDocumentSynthesizer(
            self.config.output_dir,
            max_file_size=self.config.max_file_size,
            cleanup_enabled=self.config.cleanup_enabled,
            cleanup_after=self.config.cleanup_after,
            watermark_text=self.config.watermark_text,
        )
        self.orchestrator = ReportOrchestrator(
            upstream=self.upstream,
            synthesizer=self.synthesizer,
            metrics=self.metrics,
        )

        self._setup_report_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.report_service = self

    async def on_startup(self) -> None:
        if self.config.upstream_warm_login and hasattr(self.upstream, "ensure_authenticated"):
            try:
                await self.upstream.ensure_authenticated()
            except AuthenticationError as exc:
                self.logger.critical("Upstream login failed at startup", error=exc.message)
                raise
            self.logger.info("Upstream session established at startup")

        if self.config.cleanup_enabled:
            await self.orchestrator.start_cleanup_worker(self.config.cleanup_interval)

    async def on_shutdown(self) -> None:
        try:
            await self.orchestrator.stop_cleanup_worker()
        finally:
            await self.upstream.close()

    async def health_status(self) -> Dict[str, Any]:
        status = await self.orchestrator.health_check()
        return status.model_dump()

    def _setup_report_routes(self):
        """Set up entity and report routes."""

        @self.app.get("/entities")
        async def list_entities(
            name: Optional[str] = Query(None),
            class_name: Optional[str] = Query(None, alias="class"),
            section: Optional[str] = Query(None),
            roll: Optional[str] = Query(None),
        ):
            filters = {"name": name, "class": class_name, "section": section, "roll": roll}
            try:
                entities = await self.orchestrator.list_entities(
                    {key: value for key, value in filters.items() if value},
                    deadline=self.config.write_timeout,
                )
            except AccessLayerException as exc:
                return self._failure("Failed to fetch entities", exc)

            return self.success_response(
                200,
                "Entities retrieved successfully",
                [entity.model_dump(by_alias=True) for entity in entities]
            )

        @self.app.post("/reports/entity/{entity_id}")
        async def create_report(entity_id: str, generated_by: Optional[str] = Query(None)):
            try:
                parsed_id = self._parse_entity_id(entity_id)
                result = await self.orchestrator.create_report(
                    parsed_id,
                    (generated_by or "").strip() or "API",
                    deadline=self.config.write_timeout,
                )
            except AccessLayerException as exc:
                return self._failure("Failed to generate report", exc)

            return self.success_response(201, "Report generated successfully", result)

        @self.app.post("/reports/cleanup")
        async def cleanup_reports():
            try:
                removed = await self.orchestrator.cleanup_artifacts()
            except AccessLayerException as exc:
                self.metrics.record_error(exc.code)
                return self.error_response(500, "Failed to cleanup reports", exc)

            return self.success_response(200, "Old reports cleaned up successfully", {"removed": removed})

    def _failure(self, message: str, exc: AccessLayerException):
        status_code = http_status_for(exc)
        log = self.logger.warning if status_code < 500 else self.logger.error
        log(message, code=exc.code, error=exc.message, status_code=status_code)
        self.metrics.record_error(exc.code)
        return self.error_response(status_code, message, exc)

    @staticmethod
    def _parse_entity_id(raw: str) -> int:
        try:
            entity_id = int(raw)
        except ValueError:
            raise InvalidArgument("Invalid entity ID format", details={"entity_id": raw})
        if entity_id <= 0:
            raise InvalidArgument("Invalid entity ID format", details={"entity_id": raw})
        return entity_id


def create_app(config: Optional[ServiceConfig] = None, **collaborators):
    """Create FastAPI application."""
    service = ReportService(config, **collaborators)
    return service.app


def main():
    service = ReportService()
    service.run()


if __name__ == "__main__":
    main()
