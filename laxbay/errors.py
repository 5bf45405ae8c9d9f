# laxbay/errors.py
"""Service error taxonomy.

Each error carries the HTTP status it maps to; `main.py` turns them into
JSON responses.
"""
from typing import Optional


class LaxbayError(Exception):
    status_code = 500
    detail = "Server error"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or self.detail)
        if detail:
            self.detail = detail


class ValidationFailed(LaxbayError):
    status_code = 400
    detail = "Invalid request"


class AuthenticationRequired(LaxbayError):
    status_code = 401
    detail = "Not authenticated"


class PermissionDenied(LaxbayError):
    status_code = 403
    detail = "Not allowed"


class NotFound(LaxbayError):
    status_code = 404
    detail = "Not found"


class ConfigurationError(LaxbayError):
    """Missing credentials or settings. Never retried."""
    detail = "Server misconfigured"


class UpstreamError(LaxbayError):
    """A dependency (database, generation API) failed permanently."""
    detail = "Upstream service error"


class UpstreamUnavailable(UpstreamError):
    """A transient upstream failure that outlived our retries."""
    status_code = 503
    detail = "Upstream service busy, try again later"

    def __init__(self, detail: Optional[str] = None, retry_after: int = 30):
        super().__init__(detail)
        self.retry_after = retry_after


class EmbeddingError(LaxbayError):
    """Embedding call failed; callers degrade to keyword-only recall."""
    detail = "Embedding unavailable"
