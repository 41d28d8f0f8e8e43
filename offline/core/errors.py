from __future__ import annotations


class OfflineError(RuntimeError):
    """Base class for all failures raised by the offline migration core."""


class MalformedManifestError(OfflineError):
    """Raised when the compose document is not well-formed YAML or has no services mapping."""


class UnsupportedShapeError(OfflineError):
    """Raised when a service's image or volumes are not in a supported short-syntax shape."""


class CatalogUnavailableError(OfflineError):
    """Raised when the artifact catalog source cannot be enumerated."""
