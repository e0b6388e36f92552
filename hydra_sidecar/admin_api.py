"""
Client for the authorization server's admin API.
One shared httpx.Client (connection reuse, bounded timeout). No retries here; callers own retry policy.
Upstream answers are mapped onto the sidecar error taxonomy:
connection failure / 5xx -> UpstreamError, 404 -> NotFoundError, other 4xx -> ValidationError.
"""
import logging
from urllib.parse import quote

import httpx

from hydra_sidecar.errors import NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)


def _client_path(client_id: str) -> str:
    return f"/admin/clients/{quote(client_id, safe='')}"


def _upstream_message(response: httpx.Response) -> str:
    """Best-effort human-readable message from an upstream error body."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error_description", "error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return f"upstream returned {response.status_code}"


class AdminApiClient:
    def __init__(self, base_url: str, timeout: float = 30.0, transport: httpx.BaseTransport | None = None):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, *, timeout: float | None = None, **kwargs) -> httpx.Response:
        extra = {"timeout": timeout} if timeout is not None else {}
        try:
            response = self._http.request(method, path, **kwargs, **extra)
        except httpx.TimeoutException as e:
            logger.warning("Admin API %s %s timed out", method, path)
            raise UpstreamError("authorization server admin API timed out") from e
        except httpx.HTTPError as e:
            logger.warning("Admin API %s %s failed: %s", method, path, e)
            raise UpstreamError("authorization server admin API unreachable") from e

        if response.status_code == 404:
            raise NotFoundError("client not found")
        if response.status_code >= 500:
            logger.warning("Admin API %s %s returned %d", method, path, response.status_code)
            raise UpstreamError(f"authorization server returned {response.status_code}")
        if response.status_code >= 400:
            raise ValidationError(_upstream_message(response))
        return response

    @staticmethod
    def _json_object(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError as e:
            raise UpstreamError("authorization server returned a non-JSON body") from e
        if not isinstance(body, dict):
            raise UpstreamError("authorization server returned an unexpected body")
        return body

    def create_client(self, spec: dict) -> tuple[int, dict]:
        """Forward a client spec unchanged. Returns (upstream status, created client incl. plaintext secret)."""
        response = self._request("POST", "/admin/clients", json=spec)
        return response.status_code, self._json_object(response)

    def get_client(self, client_id: str, timeout: float | None = None) -> dict:
        response = self._request("GET", _client_path(client_id), timeout=timeout)
        return self._json_object(response)

    def delete_client(self, client_id: str) -> None:
        self._request("DELETE", _client_path(client_id))

    def rotate_secret(self, client_id: str) -> dict:
        """Have the server generate a new secret; the response carries the new plaintext once."""
        response = self._request("POST", _client_path(client_id) + "/rotate")
        return self._json_object(response)

    def update_secret_expiry(self, client_id: str, expires_at: int) -> None:
        """Set only client_secret_expires_at (JSON Patch)."""
        patch = [{"op": "replace", "path": "/client_secret_expires_at", "value": expires_at}]
        self._request("PATCH", _client_path(client_id), json=patch)


_admin_api: AdminApiClient | None = None


def get_admin_api() -> AdminApiClient:
    """Dependency: the process-wide admin API client."""
    global _admin_api
    if _admin_api is None:
        from hydra_sidecar.config import ADMIN_API_TIMEOUT_SECONDS, HYDRA_ADMIN_URL

        _admin_api = AdminApiClient(HYDRA_ADMIN_URL, timeout=ADMIN_API_TIMEOUT_SECONDS)
    return _admin_api


def close_admin_api() -> None:
    global _admin_api
    if _admin_api is not None:
        _admin_api.close()
        _admin_api = None
