"""
Domain layer for HTML to PDF conversion.
Provides interfaces (gateways) for artifact storage and the external
renderer, plus a service orchestrating one conversion per request, so the
HTTP front-end stays thin.
"""

from .errors import ConversionError, InvalidRequestError, ServiceError
from .interfaces import ArtifactGateway, ArtifactStat, ConversionOutcome, ConversionPaths, RendererGateway
from .service import ConversionRequest, ConversionService
