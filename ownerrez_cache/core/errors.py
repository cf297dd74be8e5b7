"""
ownerrez_cache/core/errors.py
Error taxonomy for the cache service.

  ConfigurationError   → fatal at startup, process exits before binding
  UpstreamFetchError   → stops at the scheduler boundary, only ever logged
  AuthorizationError   → 401 with challenge header
  CacheNotReadyError   → 503 with Retry-After
  EntityNotFoundError  → 404 naming the requested id
"""

from typing import Any, Optional


class CacheServiceError(Exception):
    """Base exception for the cache service."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.details}


class ConfigurationError(CacheServiceError):
    def __init__(self, message: str):
        super().__init__("CONFIGURATION_ERROR", message)


class UpstreamFetchError(CacheServiceError):
    """Transport failure, non-2xx status or malformed body from OwnerRez."""

    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__("UPSTREAM_FETCH_ERROR", message, {"upstreamStatus": status})

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"HTTP {self.status}: {self.message}"


class AuthorizationError(CacheServiceError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__("AUTHORIZATION_ERROR", message)


class CacheNotReadyError(CacheServiceError):
    status_code = 503

    def __init__(self, resource: str, retry_after: int):
        self.resource = resource
        self.retry_after = retry_after
        super().__init__(
            "CACHE_NOT_READY",
            f"{resource} cache is not ready yet",
            {"resource": resource, "retryAfter": retry_after},
        )


class EntityNotFoundError(CacheServiceError):
    status_code = 404

    def __init__(self, resource: str, entity_id: str):
        self.resource = resource
        self.entity_id = entity_id
        super().__init__(
            "NOT_FOUND",
            f"No {resource} record with id {entity_id}",
            {"resource": resource, "id": entity_id},
        )
