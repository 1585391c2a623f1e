"""Constructor API transport, errors and canonical types package."""

from services.constructor.client import AuthMode, ConstructorHttpClient, JsonBody, SseBody
from services.constructor.context import BackendContext
from services.constructor.errors import (
    AuthenticationError,
    CatalogFileNotFoundError,
    ConfigurationError,
    ConstructorError,
    ErrorCode,
    NetworkError,
    ParseError,
    RateLimitError,
    TaskTimeoutError,
    UpstreamRequestError,
)
from services.constructor.types import CanonicalProduct, Facet, FacetType, Group, GroupChild

__all__ = [
    "AuthMode",
    "AuthenticationError",
    "BackendContext",
    "CanonicalProduct",
    "CatalogFileNotFoundError",
    "ConfigurationError",
    "ConstructorError",
    "ConstructorHttpClient",
    "ErrorCode",
    "Facet",
    "FacetType",
    "Group",
    "GroupChild",
    "JsonBody",
    "NetworkError",
    "ParseError",
    "RateLimitError",
    "SseBody",
    "TaskTimeoutError",
    "UpstreamRequestError",
]
