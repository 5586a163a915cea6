"""
listingai/features/entitlements/store.py

Entitlement store adapters.

The record lives in the identity provider's per-user public metadata
(Clerk). The service only needs get(user_id) and set(user_id, partial)
with merge semantics; both raise EntitlementStoreUnavailableError on any
infrastructure failure so callers can fail closed.
"""

import copy
import logging
from typing import Any, Dict, Optional, Protocol

import httpx

from listingai.core.config import Settings, settings
from listingai.core.errors import EntitlementStoreUnavailableError
from listingai.models.entitlement import EntitlementRecord, to_metadata


logger = logging.getLogger(__name__)


class EntitlementStore(Protocol):
    async def get(self, user_id: str) -> EntitlementRecord:
        """Read the record; unseen users read back as a default (status none) record."""
        ...

    async def set(self, user_id: str, partial: Dict[str, Any]) -> None:
        """Merge `partial` (record field names) into the stored record."""
        ...


class InMemoryEntitlementStore:
    """Process-local store for development and tests."""

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        # user_id -> metadata dict (camelCase keys, same shape as Clerk)
        self._metadata: Dict[str, Dict[str, Any]] = copy.deepcopy(initial or {})
        self.writes = 0

    async def get(self, user_id: str) -> EntitlementRecord:
        return EntitlementRecord.from_metadata(self._metadata.get(user_id))

    async def set(self, user_id: str, partial: Dict[str, Any]) -> None:
        current = self._metadata.setdefault(user_id, {})
        current.update(to_metadata(partial))
        self.writes += 1

    def raw(self, user_id: str) -> Dict[str, Any]:
        return dict(self._metadata.get(user_id, {}))

    def clear(self) -> None:
        self._metadata.clear()
        self.writes = 0


class ClerkEntitlementStore:
    """Clerk Backend API store (users/{id} public_metadata)."""

    def __init__(
        self,
        secret_key: str,
        *,
        api_url: str = "https://api.clerk.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not secret_key:
            raise EntitlementStoreUnavailableError("CLERK_SECRET_KEY is not configured")
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {secret_key}",
            "Content-Type": "application/json",
        }
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, headers=self._headers, transport=self._transport)

    async def get(self, user_id: str) -> EntitlementRecord:
        url = f"{self.api_url}/users/{user_id}"
        try:
            async with self._client() as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error("[entitlements] clerk read failed", extra={"user_id": user_id, "error_message": str(e)})
            raise EntitlementStoreUnavailableError("Entitlement store is unavailable")

        if response.status_code >= 300:
            logger.error(
                "[entitlements] clerk read failed",
                extra={"user_id": user_id, "status": response.status_code},
            )
            raise EntitlementStoreUnavailableError("Entitlement store is unavailable")

        try:
            body = response.json()
        except ValueError:
            raise EntitlementStoreUnavailableError("Entitlement store returned an invalid response")
        return EntitlementRecord.from_metadata(body.get("public_metadata"))

    async def set(self, user_id: str, partial: Dict[str, Any]) -> None:
        # The metadata endpoint deep-merges, so only the changed keys are sent
        url = f"{self.api_url}/users/{user_id}/metadata"
        payload = {"public_metadata": to_metadata(partial)}
        try:
            async with self._client() as client:
                response = await client.patch(url, json=payload)
        except httpx.HTTPError as e:
            logger.error("[entitlements] clerk write failed", extra={"user_id": user_id, "error_message": str(e)})
            raise EntitlementStoreUnavailableError("Entitlement store is unavailable")

        if response.status_code >= 300:
            logger.error(
                "[entitlements] clerk write failed",
                extra={"user_id": user_id, "status": response.status_code},
            )
            raise EntitlementStoreUnavailableError("Entitlement store is unavailable")


def build_store(settings_obj: Optional[Settings] = None) -> EntitlementStore:
    """Clerk when configured (or forced), in-memory otherwise."""
    cfg = settings_obj or settings
    choice = (cfg.ENTITLEMENT_STORE or "").lower()
    if choice == "memory" or (not choice and not cfg.CLERK_SECRET_KEY):
        logger.warning("[entitlements] using in-memory entitlement store")
        return InMemoryEntitlementStore()
    return ClerkEntitlementStore(cfg.CLERK_SECRET_KEY or "", api_url=cfg.CLERK_API_URL)
