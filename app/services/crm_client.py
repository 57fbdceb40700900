"""
CRM Client

Appends free-text notes to CRM contact records.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from app.core import config

log = logging.getLogger("crm_client")


class CRMError(Exception):
    """Raised when the CRM rejects a request or cannot be reached."""


class CRMClient:
    def __init__(
        self,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.api_token = api_token or config.CRM_API_TOKEN
        self.base_url = (base_url or config.CRM_API_BASE_URL).rstrip("/")
        self._client = client
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.api_token}",
            "Content-Type": "application/json",
            "Version": config.CRM_API_VERSION,
        }

    async def add_contact_note(self, contact_id: str, note: str) -> Dict[str, Any]:
        """POST /contacts/{id}/notes. Raises CRMError on any failure."""
        if not self.api_token:
            raise CRMError("CRM_API_TOKEN is not set")

        url = f"{self.base_url}/contacts/{contact_id}/notes"
        try:
            if self._client is not None:
                response = await self._client.post(url, json={"body": note}, headers=self._headers(), timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json={"body": note}, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CRMError(f"CRM returned {e.response.status_code}: {e.response.text[:200]}") from e
        except httpx.HTTPError as e:
            raise CRMError(f"CRM request failed: {e}") from e

        log.info(f"Added note to CRM contact {contact_id}")
        return response.json() if response.content else {}
