import asyncio
import logging
import os
import shutil
import time
from pathlib import Path
from typing import AsyncIterator, BinaryIO

from ..logging_config import Log
from .errors import (
    ArtifactIOError,
    ArtifactNotFoundError,
    ConversionError,
    DiagnosticOutputError,
    InputEmptyError,
    InputMissingError,
    NonZeroExitError,
    OutputEmptyError,
    RendererTimeoutError,
    RendererUnavailableError,
)
from .interfaces import ArtifactGateway, ArtifactStat, ConversionOutcome, ConversionPaths, RendererGateway

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 10_000

# Fixed argument contract: warnings only, print media CSS, no JS, no outline.
WKHTMLTOPDF_ARGS = (
    "--log-level",
    "warn",
    "--print-media-type",
    "--disable-javascript",
    "--no-outline",
)


class LocalArtifactStream:
    """One-shot forward-only reader over an opened artifact file."""

    def __init__(self, fh: BinaryIO, chunk_size: int) -> None:
        self._fh = fh
        self._chunk_size = chunk_size

    async def __aiter__(self) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await asyncio.to_thread(self._fh.read, self._chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if not self._fh.closed:
            self._fh.close()


class LocalArtifactStore(ArtifactGateway):
    CHUNK = 64 * 1024

    def __init__(self, tmp_dir: str) -> None:
        self._base = Path(tmp_dir).resolve()

    def ensure_root(self) -> None:
        if not self._base.exists():
            logger.info("Temporary file directory %s not found, creating a new directory", self._base)
            self._base.mkdir(parents=True, exist_ok=True)

    def paths_for(self, request_id: str) -> ConversionPaths:
        return ConversionPaths(
            input_path=str(self._base / f"{request_id}.html"),
            output_path=str(self._base / f"{request_id}.pdf"),
        )

    async def write_input(self, request_id: str, body: AsyncIterator[bytes], log: Log | None = None) -> str:
        log = log or logger
        input_path = Path(self.paths_for(request_id).input_path)
        log.info("Writing request body to file: %s", input_path)
        try:
            f_out = await asyncio.to_thread(input_path.open, "wb")
        except OSError as e:
            raise ArtifactIOError(f"cannot create input artifact {input_path}: {e}") from e
        size_bytes = 0
        try:
            async for chunk in body:
                if not chunk:
                    continue
                try:
                    await asyncio.to_thread(f_out.write, chunk)
                except OSError as e:
                    raise ArtifactIOError(f"cannot write input artifact {input_path}: {e}") from e
                size_bytes += len(chunk)
        finally:
            f_out.close()
        log.debug("Wrote %d bytes to %s", size_bytes, input_path)
        return str(input_path)

    async def stat_artifact(self, path: str) -> ArtifactStat:
        def _stat() -> ArtifactStat:
            p = Path(path)
            try:
                st = p.stat()
            except OSError:
                return ArtifactStat(exists=False)
            if not p.is_file():
                return ArtifactStat(exists=False)
            return ArtifactStat(exists=True, size=st.st_size, readable=os.access(p, os.R_OK))

        return await asyncio.to_thread(_stat)

    async def open_for_streaming(self, path: str) -> LocalArtifactStream:
        try:
            fh = await asyncio.to_thread(Path(path).open, "rb")
        except FileNotFoundError as e:
            raise ArtifactNotFoundError(f"artifact {path} not found") from e
        except OSError as e:
            raise ArtifactIOError(f"cannot open artifact {path}: {e}") from e
        return LocalArtifactStream(fh, self.CHUNK)

    async def delete_artifact(self, path: str, log: Log | None = None) -> None:
        log = log or logger
        try:
            await asyncio.to_thread(Path(path).unlink)
        except FileNotFoundError:
            log.debug("Artifact %s already removed", path)
        except OSError as e:
            log.warning("Failed to delete artifact %s: %s", path, e)


class WkhtmltopdfRenderer(RendererGateway):
    """Runs wkhtmltopdf as a child process per conversion."""

    def __init__(
        self,
        store: ArtifactGateway,
        *,
        binary: str = "wkhtmltopdf",
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._store = store
        self._binary = binary
        self._timeout_ms = timeout_ms

    @property
    def binary(self) -> str:
        return self._binary

    async def convert(
        self,
        input_path: str,
        output_path: str,
        timeout_ms: int | None = None,
        log: Log | None = None,
    ) -> ConversionOutcome:
        log = log or logger
        if timeout_ms is None:
            timeout_ms = self._timeout_ms
        try:
            size = await self._run(input_path, output_path, timeout_ms, log)
        except ConversionError as e:
            return ConversionOutcome.failure(e)
        return ConversionOutcome.success(output_path, size)

    async def _run(self, input_path: str, output_path: str, timeout_ms: int, log: Log) -> int:
        binary = shutil.which(self._binary)
        if binary is None:
            raise RendererUnavailableError(f"Missing HTML to PDF binary: {self._binary}")

        html = await self._store.stat_artifact(input_path)
        if not html.exists or not html.readable:
            raise InputMissingError(f"Html for conversion {input_path} does not exist or is not readable")
        if html.size < 1:
            raise InputEmptyError(f"Html file-size for conversion {input_path} is smaller than 1 byte")

        log.info("Starting conversion of HTML to PDF from %s, size: %d", input_path, html.size)
        started = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                binary,
                *WKHTMLTOPDF_ARGS,
                input_path,
                output_path,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            # binary vanished between which() and exec
            raise RendererUnavailableError(f"Missing HTML to PDF binary: {self._binary}") from e

        try:
            _stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            await self._kill(proc)
            raise RendererTimeoutError(
                f"Timing out after {timeout_ms} ms while calling {self._binary}, killed the process"
            )
        except asyncio.CancelledError:
            await self._kill(proc)
            raise

        if stderr:
            raise DiagnosticOutputError(stderr.decode("utf-8", errors="replace").strip() or repr(stderr))
        if proc.returncode != 0:
            raise NonZeroExitError(proc.returncode)

        pdf = await self._store.stat_artifact(output_path)
        if not pdf.exists or pdf.size < 1:
            raise OutputEmptyError(f"PDF file-size for conversion {output_path} is smaller than 1 byte")

        log.info("Created PDF output with size: %d in %.3fs", pdf.size, time.monotonic() - started)
        return pdf.size

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await proc.wait()
