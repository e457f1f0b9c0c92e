import secrets
from dataclasses import dataclass, field
from typing import AsyncIterator, Mapping

from ..logging_config import Log
from .errors import InvalidRequestError
from .interfaces import ArtifactGateway, ArtifactStream, ConversionPaths, RendererGateway

ACCEPTED_METHOD = "POST"
HTML_MEDIA_TYPE = "text/html"
PDF_MEDIA_TYPE = "application/pdf"


@dataclass
class ConversionRequest:
    request_id: str
    paths: ConversionPaths
    log: Log
    cleaned: bool = field(default=False, init=False)


class ConversionService:
    """Request handler orchestrating one HTML to PDF conversion per call.

    Framework-agnostic: the HTTP layer hands in method, headers and a body
    stream, and turns the returned artifact stream (or raised errors) into
    responses. Stages run strictly in order: persist input, convert,
    stream output, clean up. Cleanup runs on every exit path.
    """

    def __init__(
        self,
        store: ArtifactGateway,
        renderer: RendererGateway,
        *,
        timeout_ms: int | None = None,
    ) -> None:
        self._store = store
        self._renderer = renderer
        self._timeout_ms = timeout_ms

    @property
    def store(self) -> ArtifactGateway:
        return self._store

    @property
    def renderer(self) -> RendererGateway:
        return self._renderer

    @staticmethod
    def new_request_id() -> str:
        return secrets.token_urlsafe(16)

    def prepare(self) -> None:
        """One-time startup provisioning of the temporary directory."""
        self._store.ensure_root()

    @staticmethod
    def validate(method: str, headers: Mapping[str, str]) -> None:
        """Raise InvalidRequestError for the first failing check, in order."""
        if method.upper() != ACCEPTED_METHOD:
            raise InvalidRequestError(405, "Invalid request method")

        normalized = {k.lower(): v for k, v in headers.items()}
        if not _has_body(normalized):
            raise InvalidRequestError(400, "Missing request body")

        content_type = normalized.get("content-type")
        if content_type is None:
            raise InvalidRequestError(400, "Missing content-type request header")
        if content_type.strip() != HTML_MEDIA_TYPE:
            raise InvalidRequestError(400, "Invalid content-type request header")

    def open_request(self, request_id: str, log: Log) -> ConversionRequest:
        return ConversionRequest(request_id=request_id, paths=self._store.paths_for(request_id), log=log)

    async def convert(self, conversion: ConversionRequest, body: AsyncIterator[bytes]) -> ArtifactStream:
        """Persist the body, run the renderer and open the PDF for streaming.

        Raises ConversionError (or a filesystem ServiceError) on failure,
        after both artifacts have been removed.
        """
        try:
            input_path = await self._store.write_input(conversion.request_id, body, log=conversion.log)
            outcome = await self._renderer.convert(
                input_path,
                conversion.paths.output_path,
                self._timeout_ms,
                log=conversion.log,
            )
            if outcome.error is not None:
                raise outcome.error
            return await self._store.open_for_streaming(conversion.paths.output_path)
        except BaseException:
            await self.cleanup(conversion)
            raise

    async def stream(self, conversion: ConversionRequest, artifact: ArtifactStream) -> AsyncIterator[bytes]:
        try:
            async for chunk in artifact:
                yield chunk
        finally:
            await artifact.aclose()
            await self.cleanup(conversion)

    async def cleanup(self, conversion: ConversionRequest) -> None:
        if conversion.cleaned:
            return
        conversion.cleaned = True
        await self._store.delete_artifact(conversion.paths.output_path, log=conversion.log)
        await self._store.delete_artifact(conversion.paths.input_path, log=conversion.log)
        conversion.log.debug("Removed request artifacts")


def _has_body(headers: Mapping[str, str]) -> bool:
    if "transfer-encoding" in headers:
        return True
    try:
        return int(headers.get("content-length", "0")) > 0
    except ValueError:
        return False
