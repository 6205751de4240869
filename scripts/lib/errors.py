"""
Custom error classes for Truckinglane Hub.
Every error carries a machine-readable code, an HTTP status and a details
dict, so the API can render one error shape for all endpoints.

Hierarchy:
    HubError
    ├── APIError
    │   ├── APITimeoutError
    │   ├── APIRateLimitError
    │   ├── APIAuthError
    │   └── UpstreamUnavailableError
    ├── DataError
    │   ├── ConfigError
    │   ├── ValidationError
    │   ├── NotFoundError
    │   └── DataFetchError
    ├── PermissionDeniedError
    └── NotificationError
"""
import uuid


class HubError(Exception):
    """Base exception for all Truckinglane Hub errors."""

    status_code = 500

    def __init__(self, message: str, code: str = "INTERNAL", details: dict = None):
        self.code = code
        self.message = message
        self.details = details or {}
        self.debug_id = uuid.uuid4().hex[:12]
        super().__init__(f"[{code}] {message}")

    def to_dict(self) -> dict:
        """Shared error contract returned by every endpoint."""
        return {
            "success": False,
            "code": self.code,
            "error": self.message,
            "debug_id": self.debug_id,
        }


# --- Upstream API Errors ---

class APIError(HubError):
    """Base class for external API errors."""

    status_code = 502

    def __init__(self, message: str, code: str = "UPSTREAM_ERROR",
                 status_code: int = None, url: str = None, **kwargs):
        self.upstream_status = status_code
        self.url = url
        details = {"status_code": status_code, "url": url, **kwargs}
        super().__init__(message, code=code, details=details)


class APITimeoutError(APIError):
    """Request timed out."""

    status_code = 504

    def __init__(self, url: str, timeout: float):
        super().__init__(
            f"Request timed out after {timeout}s: {url}",
            code="UPSTREAM_TIMEOUT", url=url, timeout=timeout,
        )


class APIRateLimitError(APIError):
    """Rate limit exceeded."""

    def __init__(self, url: str, retry_after: int = None):
        msg = f"Rate limit exceeded: {url}"
        if retry_after:
            msg += f" (retry after {retry_after}s)"
        super().__init__(
            msg, code="UPSTREAM_RATE_LIMIT", status_code=429, url=url,
            retry_after=retry_after,
        )


class APIAuthError(APIError):
    """Authentication or authorization failure against an upstream."""

    def __init__(self, url: str, status_code: int = 401):
        super().__init__(
            f"Authentication failed: {url}",
            code="UPSTREAM_401", url=url, status_code=status_code,
        )


class UpstreamUnavailableError(APIError):
    """Upstream answered with a 5xx."""

    def __init__(self, url: str, status_code: int = 503):
        super().__init__(
            f"Upstream unavailable ({status_code}): {url}",
            code="UPSTREAM_5XX", url=url, status_code=status_code,
        )


# --- Data Errors ---

class DataError(HubError):
    """Base class for data processing errors."""
    pass


class ConfigError(DataError):
    """Missing or invalid configuration."""

    status_code = 500

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message, code="CONFIG_ERROR",
            details={"config_key": config_key},
        )


class ValidationError(DataError):
    """Caller supplied missing or malformed input."""

    status_code = 400

    def __init__(self, message: str, field: str = None):
        super().__init__(
            message, code="VALIDATION_ERROR", details={"field": field},
        )


class NotFoundError(DataError):
    """Requested row does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity} not found: {entity_id}",
            code="NOT_FOUND", details={"entity": entity, "id": entity_id},
        )


class DataFetchError(DataError):
    """Failed to fetch or write data in the database."""

    status_code = 500

    def __init__(self, message: str, source: str = None):
        super().__init__(
            message, code="DATA_FETCH_FAILED", details={"source": source},
        )


# --- Auth Errors ---

class PermissionDeniedError(HubError):
    """API key lacks the scope an endpoint requires."""

    status_code = 403

    def __init__(self, required: str, current: str):
        super().__init__(
            f"Requires '{required}' scope, current: '{current}'",
            code="FORBIDDEN", details={"required": required, "current": current},
        )


# --- Notification Errors ---

class NotificationError(HubError):
    """Email or SMS delivery failed."""

    status_code = 502

    def __init__(self, channel: str, message: str):
        super().__init__(
            f"{channel} delivery failed: {message}",
            code="NOTIFICATION_FAILED", details={"channel": channel},
        )
