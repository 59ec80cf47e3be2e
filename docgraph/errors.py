"""
Exception types shared across the ingestion and projection paths.
"""


class DocGraphError(Exception):
    """Base class for docgraph errors."""


class ServiceConnectionError(DocGraphError):
    """A store or external service is unreachable or misconfigured.

    Fatal to the operation that raised it; never retried here.
    """


class RequestValidationError(DocGraphError, ValueError):
    """A request was rejected before any I/O happened."""


class ExtractionError(DocGraphError):
    """The extraction service returned something we could not parse."""
