"""
ownerrez_cache/core/auth.py
Static allow-list access gate for the cached endpoints.

Credential lookup order:
  1. Authorization: Bearer <token>
  2. X-API-Key: <token>
  3. ?api_key=<token>

/healthz is the only route without the gate.
"""

import logging
from typing import Iterable, Mapping, Optional

from fastapi import Request

from ownerrez_cache.core.errors import AuthorizationError, ConfigurationError

log = logging.getLogger("auth")

API_KEY_HEADER = "X-API-Key"
API_KEY_QUERY  = "api_key"
REALM          = "ownerrez-cache"

CHALLENGE_HEADERS = {
    "WWW-Authenticate": f'Bearer realm="{REALM}"',
    "Cache-Control":    "no-store",
}


def extract_credential(headers: Mapping[str, str], query: Mapping[str, str]) -> Optional[str]:
    """First candidate credential found on the request, or None."""
    auth = headers.get("authorization", "")
    scheme, _, value = auth.strip().partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()

    api_key = headers.get(API_KEY_HEADER.lower(), "").strip()
    if api_key:
        return api_key

    from_query = (query.get(API_KEY_QUERY) or "").strip()
    return from_query or None


class AccessGate:
    def __init__(self, tokens: Iterable[str]):
        self._tokens = frozenset(t for t in tokens if t)
        if not self._tokens:
            raise ConfigurationError("access allow-list is empty")

    def __len__(self) -> int:
        return len(self._tokens)

    def is_allowed(self, credential: Optional[str]) -> bool:
        return credential is not None and credential in self._tokens

    def authorize(self, request: Request) -> bool:
        credential = extract_credential(request.headers, request.query_params)
        if credential is None:
            log.debug(f"No credential on {request.url.path}")
            return False
        if not self.is_allowed(credential):
            log.info(f"Rejected unknown credential on {request.url.path}")
            return False
        return True


async def require_access(request: Request) -> None:
    """FastAPI dependency — raises AuthorizationError unless the gate passes."""
    gate: AccessGate = request.app.state.gate
    if not gate.authorize(request):
        raise AuthorizationError()
