from dataclasses import dataclass
from typing import AsyncIterator, Protocol

from ..logging_config import Log
from .errors import ConversionError


@dataclass(frozen=True)
class ConversionPaths:
    input_path: str
    output_path: str


@dataclass(frozen=True)
class ArtifactStat:
    exists: bool
    size: int = 0
    readable: bool = False


@dataclass(frozen=True)
class ConversionOutcome:
    """Result of one renderer invocation: either an output artifact or an error."""

    output_path: str | None = None
    size: int = 0
    error: ConversionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, output_path: str, size: int) -> "ConversionOutcome":
        return cls(output_path=output_path, size=size)

    @classmethod
    def failure(cls, error: ConversionError) -> "ConversionOutcome":
        return cls(error=error)


class ArtifactStream(Protocol):
    def __aiter__(self) -> AsyncIterator[bytes]:
        ...

    async def aclose(self) -> None:
        ...


class ArtifactGateway(Protocol):
    def ensure_root(self) -> None:
        ...

    def paths_for(self, request_id: str) -> ConversionPaths:
        ...

    async def write_input(self, request_id: str, body: AsyncIterator[bytes], log: Log | None = None) -> str:
        ...

    async def stat_artifact(self, path: str) -> ArtifactStat:
        ...

    async def open_for_streaming(self, path: str) -> ArtifactStream:
        ...

    async def delete_artifact(self, path: str, log: Log | None = None) -> None:
        """Delete the artifact if present. Never raises."""


class RendererGateway(Protocol):
    @property
    def binary(self) -> str:
        ...

    async def convert(
        self,
        input_path: str,
        output_path: str,
        timeout_ms: int | None = None,
        log: Log | None = None,
    ) -> ConversionOutcome:
        """Render input_path into output_path within timeout_ms.

        Failures are reported through the returned outcome, not raised.
        """
