"""Identity-verification service client (three pass/fail document gates)."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from rental.domain.entities import VerificationStatus

logger = logging.getLogger(__name__)


def is_approved(document: Optional[dict[str, Any]]) -> bool:
    """A document passes when its status is approved or it is flagged verified."""
    if not document:
        return False
    return document.get("status") == "approved" or document.get("verified") is True


def parse_verification(data: dict[str, Any]) -> VerificationStatus:
    return VerificationStatus(
        id_approved=is_approved(data.get("id_document")),
        license_approved=is_approved(data.get("driving_license")),
        address_approved=is_approved(data.get("address")),
    )


class HttpVerificationService:
    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def get_status(self, user_id: str) -> VerificationStatus:
        try:
            response = await self.client.get(f"{self.base_url}/{user_id}")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Verification lookup for %s failed: %s", user_id, exc)
            return VerificationStatus()
        return parse_verification(data)
