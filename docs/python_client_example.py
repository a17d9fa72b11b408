"""
tapmint relayer Python client example.

Uses the requests library. Mirrors what the tap UI does: resolve a name,
mint with a fresh requestId (reused on retry), list minted tokens.
Run: pip install requests

Usage:
    from docs.python_client_example import TapMintClient
    client = TapMintClient("http://localhost:8000", tap_key="...")
    result = client.mint("vitalik.eth")
    print(client.minted(result["resolvedAddress"]))
"""

from __future__ import annotations

import uuid
from typing import Any

import requests

# Worth retrying with the same requestId: in-flight duplicate, confirmation timeout.
RETRYABLE_STATUS = {409, 504}


class TapMintClientError(Exception):
    """Raised when the API returns an error response."""

    def __init__(self, message: str, status_code: int | None = None, response: requests.Response | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response

    @property
    def retryable(self) -> bool:
        return self.status_code in RETRYABLE_STATUS


class TapMintClient:
    """Client for the tapmint relayer API."""

    def __init__(self, base_url: str = "http://localhost:8000", tap_key: str = "", timeout: float = 150.0):
        self.base_url = base_url.rstrip("/")
        self.tap_key = tap_key
        self.timeout = timeout
        self._session = requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        url = f"{self.base_url}{path}"
        resp = self._session.request(
            method, url, params=params, json=json, headers=headers, timeout=self.timeout
        )
        if not resp.ok:
            is_json = resp.headers.get("content-type", "").startswith("application/json")
            detail = resp.json().get("error", resp.text) if is_json else resp.text
            raise TapMintClientError(
                f"API error: {detail}",
                status_code=resp.status_code,
                response=resp,
            )
        return resp

    def mint(self, recipient: str, request_id: str | None = None) -> dict[str, Any]:
        """
        Mint to recipient (ENS name or address). Pass the same request_id when
        retrying so the relayer mints at most once.
        """
        body = {"recipient": recipient, "requestId": request_id or str(uuid.uuid4())}
        r = self._request("POST", "/api/mint", json=body, headers={"x-tap-key": self.tap_key})
        return r.json()

    def minted(self, address: str, from_block: int | None = None) -> dict[str, Any]:
        """Token ids minted to an address or ENS name."""
        params: dict[str, Any] = {"address": address}
        if from_block is not None:
            params["fromBlock"] = str(from_block)
        return self._request("GET", "/api/minted", params=params).json()

    def resolve(self, name: str) -> dict[str, str]:
        return self._request("GET", "/api/resolve", params={"name": name}).json()

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/api/health").json()
