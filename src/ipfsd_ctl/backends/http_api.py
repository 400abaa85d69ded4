"""HTTP RPC API client for a running native node.

The node exposes its command surface as POST endpoints under /api/v0.
Arguments travel as repeated "arg" query parameters; errors come back as
a JSON body with a "Message" field.

Example:
    with NodeApiClient("/ip4/127.0.0.1/tcp/5001") as api:
        peer_id = api.id()["ID"]
        api.config_set("Bootstrap", "[]", as_json=True)
"""

from __future__ import annotations

__all__ = [
    "NodeApiClient",
]

import json
from typing import Any

import httpx

from ipfsd_ctl.constants import API_PATH_PREFIX, DEFAULT_API_TIMEOUT_SECONDS
from ipfsd_ctl.exceptions import NodeApiError
from ipfsd_ctl.models import ConfigDocument
from ipfsd_ctl.utils.net import multiaddr_to_url


def _error_message(response: httpx.Response) -> str:
    """Extract the node's error message from a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("Message"):
        return str(body["Message"])
    return f"HTTP {response.status_code}"


class NodeApiClient:
    """Synchronous client for the node's HTTP RPC API.

    Args:
        api_addr: API multiaddr, e.g. "/ip4/127.0.0.1/tcp/5001".
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        api_addr: str,
        *,
        timeout: float = DEFAULT_API_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_addr = api_addr
        self.base_url = multiaddr_to_url(api_addr) + API_PATH_PREFIX
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def _post(
        self,
        command: str,
        *,
        params: list[tuple[str, str]] | None = None,
        files: dict[str, Any] | None = None,
    ) -> Any:
        """POST one command and return the decoded body.

        Raises:
            NodeApiError: On transport failure or an error status.
        """
        try:
            response = self._client.post(f"/{command}", params=params, files=files)
        except httpx.HTTPError as e:
            raise NodeApiError(f"{command} request failed: {e}") from e

        if response.is_error:
            raise NodeApiError(_error_message(response), status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def id(self) -> dict[str, Any]:
        """Identity of the node (ID, PublicKey, Addresses, ...)."""
        return self._post("id")

    def version(self) -> dict[str, Any]:
        return self._post("version")

    def config_get(self, key: str) -> Any:
        """Value at a dotted config key, structured."""
        body = self._post("config", params=[("arg", key)])
        return body.get("Value") if isinstance(body, dict) else body

    def config_set(self, key: str, value: str, *, as_json: bool = False) -> None:
        """Write a config key.

        Args:
            key: Dotted config key.
            value: Raw string value, or a JSON document when as_json is set.
            as_json: Let the node parse value as JSON.
        """
        params = [("arg", key), ("arg", value)]
        if as_json:
            params.append(("json", "true"))
        self._post("config", params=params)

    def config_show(self) -> ConfigDocument:
        return self._post("config/show")

    def config_replace(self, document: ConfigDocument) -> None:
        payload = json.dumps(document).encode("utf-8")
        self._post("config/replace", files={"file": ("config", payload, "application/json")})

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "NodeApiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"NodeApiClient(api_addr={self.api_addr!r})"
