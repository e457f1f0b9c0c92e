import logging
import os
import tempfile

from fastapi import FastAPI, Request
from fastapi.responses import Response, StreamingResponse
from starlette.background import BackgroundTask

from html_pdf_service import __version__
from html_pdf_service.conversion import ConversionService, ServiceError
from html_pdf_service.conversion.adapters import DEFAULT_TIMEOUT_MS, LocalArtifactStore, WkhtmltopdfRenderer
from html_pdf_service.conversion.errors import InvalidRequestError
from html_pdf_service.conversion.service import ACCEPTED_METHOD, PDF_MEDIA_TYPE
from html_pdf_service.logging_config import RequestLogger, configure_logging

configure_logging()
logger = logging.getLogger(__name__)

# Global configuration defaults
TMP_DIR = os.getenv("HTML_PDF_EXPORT_TMPDIR", tempfile.gettempdir())
TIMEOUT_MS = int(os.getenv("HTML_PDF_EXPORT_TIMEOUT_MS", str(DEFAULT_TIMEOUT_MS)))
RENDERER_BINARY = os.getenv("HTML_PDF_EXPORT_BINARY", "wkhtmltopdf")
PORT = int(os.getenv("PORT", "8000"))

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def build_service() -> ConversionService:
    store = LocalArtifactStore(TMP_DIR)
    renderer = WkhtmltopdfRenderer(store, binary=RENDERER_BINARY, timeout_ms=TIMEOUT_MS)
    return ConversionService(store=store, renderer=renderer, timeout_ms=TIMEOUT_MS)


def create_app(service: ConversionService | None = None) -> FastAPI:
    """Build the FastAPI application around a ConversionService.

    Tests pass their own service (fake renderer, tmp_path store); the
    module-level `app` uses the environment configuration.
    """
    service = service or build_service()

    app = FastAPI(
        title="HTML to PDF Export Service",
        version=__version__,
        description="Converts a posted HTML document into a PDF using wkhtmltopdf.",
    )
    app.state.service = service

    @app.on_event("startup")
    async def _startup() -> None:
        service.prepare()
        logger.info("Listening on port %d, rendering with %s...", PORT, service.renderer.binary)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Basic health check endpoint."""
        return {"status": "ok"}

    @app.api_route("/", methods=ALL_METHODS)
    async def convert(request: Request) -> Response:
        """Convert a text/html body into application/pdf.

        Any failure yields an empty-bodied response; details stay in the log.
        """
        request_id = service.new_request_id()
        log = RequestLogger(logger, request_id)
        try:
            return await _handle(service, request, log)
        except Exception:
            log.exception("Unhandled error while converting HTML to PDF")
            return Response(status_code=500)

    return app


async def _handle(service: ConversionService, request: Request, log: RequestLogger) -> Response:
    try:
        service.validate(request.method, request.headers)
    except InvalidRequestError as e:
        log.error("%s", e)
        headers = {"Allow": ACCEPTED_METHOD} if e.status_code == 405 else None
        return Response(status_code=e.status_code, headers=headers)

    conversion = service.open_request(log.request_id, log)
    try:
        artifact = await service.convert(conversion, request.stream())
    except ServiceError as e:
        log.error("Failed to convert HTML to PDF (%s): %s", getattr(e, "reason", type(e).__name__), e)
        return Response(status_code=500)

    return StreamingResponse(
        service.stream(conversion, artifact),
        status_code=200,
        media_type=PDF_MEDIA_TYPE,
        background=BackgroundTask(service.cleanup, conversion),
    )


app = create_app()


def run() -> None:
    """Run the ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:8000). Set HOST/PORT env vars to override.
    """
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    reload = os.getenv("RELOAD", "false").lower() in {"1", "true", "yes", "on"}

    uvicorn.run("html_pdf_service.webapi:app", host=host, port=PORT, reload=reload)


if __name__ == "__main__":
    run()
